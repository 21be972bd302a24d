from datetime import UTC, datetime, timedelta

import pytest

from swapmatch.database import InMemoryKeyValueDatabase
from swapmatch.models import (
    PreferredDate,
    Profile,
    Record,
    RequestStatus,
    Shift,
    ShiftType,
    SwapRequest,
)
from swapmatch.store import SwapStore

START_TIMES = {
    ShiftType.DAY: "07:00",
    ShiftType.AFTERNOON: "12:00",
    ShiftType.NIGHT: "19:00",
}


def make_shift(
    shift_id: str, user_id: str, date: str, shift_type: ShiftType = ShiftType.DAY
) -> Shift:
    return Shift(
        id=shift_id,
        user_id=user_id,
        date=date,
        start_time=START_TIMES[shift_type],
        end_time="23:00",
    )


def make_request(
    request_id: str,
    user_id: str,
    shift_id: str,
    status: RequestStatus = RequestStatus.PENDING,
    required_skillsets: tuple[str, ...] = (),
) -> SwapRequest:
    return SwapRequest(
        id=request_id,
        requester_id=user_id,
        requester_shift_id=shift_id,
        status=status,
        required_skillsets=frozenset(required_skillsets),
    )


def make_preferred(request_id: str, date: str, *types: ShiftType) -> PreferredDate:
    return PreferredDate(
        id=f"pd-{request_id}-{date}",
        request_id=request_id,
        date=date,
        accepted_types=frozenset(types),
    )


def make_profile(user_id: str, first: str, last: str) -> Profile:
    return Profile(id=user_id, first_name=first, last_name=last)


class FakeClock:
    """Manually advanced clock; `sleep` moves time forward instead of waiting."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2025, 5, 1, 9, 0, tzinfo=UTC)
        self.sleeps: list[float] = []

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.advance(seconds)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> SwapStore:
    db: InMemoryKeyValueDatabase[str, Record] = InMemoryKeyValueDatabase()
    return SwapStore(db)


@pytest.fixture
def swap_pair(store: SwapStore) -> SwapStore:
    """
    alice works 2025-05-15 (day) and wants 2025-05-20 day;
    bob works 2025-05-20 (day) and wants 2025-05-15 day.
    """
    store.put(
        make_profile("alice", "Alice", "Ongwele"),
        make_profile("bob", "Bob", "Yan"),
        make_shift("shift-a", "alice", "2025-05-15"),
        make_shift("shift-b", "bob", "2025-05-20"),
        make_request("req-a", "alice", "shift-a"),
        make_request("req-b", "bob", "shift-b"),
        make_preferred("req-a", "2025-05-20", ShiftType.DAY),
        make_preferred("req-b", "2025-05-15", ShiftType.DAY),
    )
    return store
