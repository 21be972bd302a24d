from collections.abc import Iterable

from swapmatch.database import InMemoryKeyValueDatabase
from swapmatch.models import (
    Match,
    PreferredDate,
    Profile,
    Record,
    RequestStatus,
    Shift,
    SwapRequest,
    UserSkillsets,
)

Database = InMemoryKeyValueDatabase[str, Record]


def shift_key(shift_id: str) -> str:
    return f"shift:{shift_id}"


def request_key(request_id: str) -> str:
    return f"request:{request_id}"


def preferred_date_key(preferred_date_id: str) -> str:
    return f"preferred_date:{preferred_date_id}"


def profile_key(user_id: str) -> str:
    return f"profile:{user_id}"


def match_key(match_id: str) -> str:
    return f"match:{match_id}"


def skillsets_key(user_id: str) -> str:
    return f"skillsets:{user_id}"


def key_for(record: Record) -> str:
    match record:
        case Shift():
            return shift_key(record.id)
        case SwapRequest():
            return request_key(record.id)
        case PreferredDate():
            return preferred_date_key(record.id)
        case Profile():
            return profile_key(record.id)
        case Match():
            return match_key(record.id)
        case UserSkillsets():
            return skillsets_key(record.user_id)
    raise TypeError(f"Unsupported record type: {type(record).__name__}")


class SwapStore:
    """
    Read side of the datastore used by the matching pipeline: filtered
    queries over the key/value records, each returning a list in insertion order.
    """

    def __init__(self, db: Database) -> None:
        self.db = db

    def put(self, *records: Record) -> None:
        self.db.put_many({key_for(r): r for r in records})

    def list_shifts(self) -> list[Shift]:
        return self.db.find(lambda r: isinstance(r, Shift))

    def list_requests(
        self, statuses: Iterable[RequestStatus] | None = None
    ) -> list[SwapRequest]:
        wanted = set(statuses) if statuses is not None else None
        return self.db.find(
            lambda r: isinstance(r, SwapRequest)
            and (wanted is None or r.status in wanted)
        )

    def list_preferred_dates(self) -> list[PreferredDate]:
        return self.db.find(lambda r: isinstance(r, PreferredDate))

    def list_profiles(self, user_ids: Iterable[str] | None = None) -> list[Profile]:
        wanted = set(user_ids) if user_ids is not None else None
        return self.db.find(
            lambda r: isinstance(r, Profile) and (wanted is None or r.id in wanted)
        )

    def list_matches(self) -> list[Match]:
        return self.db.find(lambda r: isinstance(r, Match))

    def skillsets_for(self, user_ids: Iterable[str]) -> dict[str, frozenset[str]]:
        result: dict[str, frozenset[str]] = {}
        for user_id in user_ids:
            entry = self.db.get(skillsets_key(user_id))
            result[user_id] = (
                entry.skillsets if isinstance(entry, UserSkillsets) else frozenset()
            )
        return result

    def get_shift(self, shift_id: str) -> Shift | None:
        value = self.db.get(shift_key(shift_id))
        return value if isinstance(value, Shift) else None

    def get_request(self, request_id: str) -> SwapRequest | None:
        value = self.db.get(request_key(request_id))
        return value if isinstance(value, SwapRequest) else None

    def get_profile(self, user_id: str) -> Profile | None:
        value = self.db.get(profile_key(user_id))
        return value if isinstance(value, Profile) else None

    def get_match(self, match_id: str) -> Match | None:
        value = self.db.get(match_key(match_id))
        return value if isinstance(value, Match) else None
