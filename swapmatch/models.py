"""
Records crossing the store boundary. Rows are validated into these models
on the way in; derived fields (shift type, viewer-relative match status)
are computed on read and never stored.
"""

from datetime import date, datetime, time
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator

DAY_SHIFT_LAST_HOUR = 8
AFTERNOON_SHIFT_END_HOUR = 16


class ShiftType(StrEnum):
    DAY = "day"
    AFTERNOON = "afternoon"
    NIGHT = "night"


class RequestStatus(StrEnum):
    PENDING = "pending"
    MATCHED = "matched"
    ACCEPTED = "accepted"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class MatchStatus(StrEnum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class DisplayStatus(StrEnum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    OTHER_ACCEPTED = "other_accepted"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


def normalize_date(value: date | datetime | str) -> date:
    """
    Reduce any date-ish value to its calendar day. Time zones are ignored:
    "2025-05-20T23:30:00-05:00" is 2025-05-20, as written.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return date.fromisoformat(value.strip()[:10])
    raise TypeError(f"Cannot interpret {value!r} as a date")


def shift_type_for(start_time: time) -> ShiftType:
    hour = start_time.hour
    if hour <= DAY_SHIFT_LAST_HOUR:
        return ShiftType.DAY
    if hour < AFTERNOON_SHIFT_END_HOUR:
        return ShiftType.AFTERNOON
    return ShiftType.NIGHT


class Shift(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    user_id: str
    date: date
    start_time: time
    end_time: time

    @field_validator("date", mode="before")
    @classmethod
    def _normalize_date(cls, value):
        return normalize_date(value)

    @property
    def shift_type(self) -> ShiftType:
        return shift_type_for(self.start_time)


class SwapRequest(BaseModel):
    id: str
    requester_id: str
    requester_shift_id: str
    status: RequestStatus = RequestStatus.PENDING
    required_skillsets: frozenset[str] = Field(default_factory=frozenset)


class PreferredDate(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    request_id: str
    date: date
    accepted_types: frozenset[ShiftType] = Field(default_factory=frozenset)

    @field_validator("date", mode="before")
    @classmethod
    def _normalize_date(cls, value):
        return normalize_date(value)

    def accepts(self, shift: Shift) -> bool:
        return self.date == shift.date and shift.shift_type in self.accepted_types


class Profile(BaseModel):
    id: str
    first_name: str
    last_name: str
    employee_id: str | None = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class Match(BaseModel):
    id: str
    request_a_id: str  # requester side
    request_b_id: str  # acceptor side
    shift_a_id: str
    shift_b_id: str
    status: MatchStatus = MatchStatus.PENDING
    requester_has_accepted: bool = False
    acceptor_has_accepted: bool = False
    created_at: datetime
    match_date: date | None = None

    @property
    def request_ids(self) -> tuple[str, str]:
        return (self.request_a_id, self.request_b_id)

    @property
    def is_active(self) -> bool:
        return self.status != MatchStatus.CANCELLED


def display_status(match: Match, *, viewer_is_requester: bool) -> DisplayStatus:
    if match.status != MatchStatus.PENDING:
        return DisplayStatus(match.status.value)

    mine, theirs = (
        (match.requester_has_accepted, match.acceptor_has_accepted)
        if viewer_is_requester
        else (match.acceptor_has_accepted, match.requester_has_accepted)
    )
    if theirs and not mine:
        return DisplayStatus.OTHER_ACCEPTED
    if mine and not theirs:
        return DisplayStatus.ACCEPTED
    return DisplayStatus.PENDING


class MatchView(BaseModel):
    """A match as seen by one of its two participants."""

    match_id: str
    status: DisplayStatus
    my_request_id: str
    my_shift: Shift
    other_request_id: str
    other_shift: Shift
    other_user_id: str
    other_user_name: str
    created_at: datetime


class UserSkillsets(BaseModel):
    """Skillset membership for one user, as held by the colleague-type registry."""

    user_id: str
    skillsets: frozenset[str] = Field(default_factory=frozenset)


Record = Shift | SwapRequest | PreferredDate | Profile | Match | UserSkillsets
