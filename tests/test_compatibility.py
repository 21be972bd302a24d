from datetime import UTC, date, datetime, time

import pytest

from conftest import make_preferred, make_request, make_shift
from swapmatch.compatibility import COMPATIBLE_REASON, check_compatibility
from swapmatch.models import PreferredDate, Shift, ShiftType, normalize_date, shift_type_for


def _scenario(b_accepts: ShiftType = ShiftType.DAY):
    req_a = make_request("req-a", "alice", "shift-a")
    req_b = make_request("req-b", "bob", "shift-b")
    shift_a = make_shift("shift-a", "alice", "2025-05-15", ShiftType.DAY)
    shift_b = make_shift("shift-b", "bob", "2025-05-20", ShiftType.DAY)
    preferred = {
        "req-a": [make_preferred("req-a", "2025-05-20", ShiftType.DAY)],
        "req-b": [make_preferred("req-b", "2025-05-15", b_accepts)],
    }
    return req_a, shift_a, req_b, shift_b, preferred


@pytest.mark.parametrize(
    "start, expected",
    [
        ("00:00", ShiftType.DAY),
        ("06:30", ShiftType.DAY),
        ("08:59", ShiftType.DAY),
        ("09:00", ShiftType.AFTERNOON),
        ("15:59", ShiftType.AFTERNOON),
        ("16:00", ShiftType.NIGHT),
        ("22:00", ShiftType.NIGHT),
    ],
)
def test_shift_type_derived_from_start_hour(start: str, expected: ShiftType) -> None:
    assert shift_type_for(time.fromisoformat(start)) == expected


def test_dates_normalized_to_calendar_day() -> None:
    assert normalize_date("2025-05-20T23:30:00-05:00") == date(2025, 5, 20)
    assert normalize_date("2025-05-20 10:00:00") == date(2025, 5, 20)
    assert normalize_date(datetime(2025, 5, 20, 23, 0, tzinfo=UTC)) == date(2025, 5, 20)

    shift = Shift(
        id="s", user_id="u", date="2025-05-20T00:00:00Z", start_time="07:00:00", end_time="15:00"
    )
    preferred = PreferredDate(id="p", request_id="r", date=date(2025, 5, 20), accepted_types=["day"])
    assert shift.date == preferred.date
    assert preferred.accepts(shift)


def test_mutual_swap_is_compatible() -> None:
    req_a, shift_a, req_b, shift_b, preferred = _scenario()

    result = check_compatibility(req_a, shift_a, req_b, shift_b, preferred)

    assert result.is_compatible is True
    assert result.reason == COMPATIBLE_REASON == "mutual swap dates match"


def test_type_mismatch_is_not_compatible() -> None:
    req_a, shift_a, req_b, shift_b, preferred = _scenario(b_accepts=ShiftType.NIGHT)

    result = check_compatibility(req_a, shift_a, req_b, shift_b, preferred)

    assert result.is_compatible is False
    assert "type mismatch" in result.reason
    assert "req-b" in result.reason


def test_date_miss_is_not_compatible() -> None:
    req_a, shift_a, req_b, shift_b, preferred = _scenario()
    preferred["req-a"] = [make_preferred("req-a", "2025-05-21", ShiftType.DAY)]

    result = check_compatibility(req_a, shift_a, req_b, shift_b, preferred)

    assert not result
    assert "no preferred date matches 2025-05-20" in result.reason


def test_one_way_interest_is_not_compatible() -> None:
    req_a, shift_a, req_b, shift_b, preferred = _scenario()
    preferred["req-b"] = [make_preferred("req-b", "2025-06-01", ShiftType.DAY)]

    assert not check_compatibility(req_a, shift_a, req_b, shift_b, preferred)


@pytest.mark.parametrize("b_accepts", [ShiftType.DAY, ShiftType.NIGHT, ShiftType.AFTERNOON])
def test_compatibility_is_symmetric(b_accepts: ShiftType) -> None:
    req_a, shift_a, req_b, shift_b, preferred = _scenario(b_accepts)
    skillsets = {"alice": frozenset({"paramedic"})}
    req_b = req_b.model_copy(update={"required_skillsets": frozenset({"paramedic"})})

    forward = check_compatibility(req_a, shift_a, req_b, shift_b, preferred, skillsets)
    backward = check_compatibility(req_b, shift_b, req_a, shift_a, preferred, skillsets)

    assert forward.is_compatible == backward.is_compatible


def test_self_match_always_rejected() -> None:
    req_a, shift_a, _, _, preferred = _scenario()
    # even a request that would "want" its own shift
    preferred["req-a"] = [make_preferred("req-a", "2025-05-15", ShiftType.DAY)]

    result = check_compatibility(req_a, shift_a, req_a, shift_a, preferred)

    assert not result
    assert result.reason == "cannot match with self"


def test_same_requester_rejected() -> None:
    req_a, shift_a, req_b, shift_b, preferred = _scenario()
    req_b = req_b.model_copy(update={"requester_id": "alice"})

    assert check_compatibility(req_a, shift_a, req_b, shift_b, preferred).reason == (
        "cannot match with self"
    )


def test_missing_data_yields_reason_not_exception() -> None:
    req_a, shift_a, req_b, shift_b, preferred = _scenario()

    missing_shift = check_compatibility(req_a, shift_a, req_b, None, preferred)
    assert not missing_shift
    assert "missing shift data for request req-b" == missing_shift.reason

    no_prefs = check_compatibility(req_a, shift_a, req_b, shift_b, {"req-a": preferred["req-a"]})
    assert not no_prefs
    assert no_prefs.reason == "missing preferred dates"


def test_required_skillsets_enforced() -> None:
    req_a, shift_a, req_b, shift_b, preferred = _scenario()
    req_a = req_a.model_copy(update={"required_skillsets": frozenset({"paramedic", "driver"})})

    without = check_compatibility(req_a, shift_a, req_b, shift_b, preferred, {"bob": frozenset({"cook"})})
    assert not without
    assert "required skillset not satisfied" in without.reason

    unknown = check_compatibility(req_a, shift_a, req_b, shift_b, preferred)
    assert not unknown

    held = check_compatibility(req_a, shift_a, req_b, shift_b, preferred, {"bob": frozenset({"driver"})})
    assert held.is_compatible


def test_schedule_conflict_rejected() -> None:
    req_a, shift_a, req_b, shift_b, preferred = _scenario()
    # alice already works a night on the day she would take from bob
    night = make_shift("shift-a2", "alice", "2025-05-20", ShiftType.NIGHT)
    shifts_by_user = {"alice": [shift_a, night], "bob": [shift_b]}

    forward = check_compatibility(req_a, shift_a, req_b, shift_b, preferred, None, shifts_by_user)
    backward = check_compatibility(req_b, shift_b, req_a, shift_a, preferred, None, shifts_by_user)

    assert not forward and not backward
    assert forward.reason == (
        "schedule conflict: user alice already has a shift on 2025-05-20 (shift-a2)"
    )


def test_shift_being_given_away_is_not_a_conflict() -> None:
    req_a, shift_a, req_b, _, preferred = _scenario()
    # same-day swap: bob's day shift for alice's day shift on 2025-05-15
    shift_b = make_shift("shift-b", "bob", "2025-05-15", ShiftType.DAY)
    preferred["req-a"] = [make_preferred("req-a", "2025-05-15", ShiftType.DAY)]
    shifts_by_user = {"alice": [shift_a], "bob": [shift_b]}

    result = check_compatibility(req_a, shift_a, req_b, shift_b, preferred, None, shifts_by_user)

    assert result.is_compatible
