"""Compatibility checker - decides whether two requests form a mutual date swap."""

from collections.abc import Mapping, Sequence

from pydantic import BaseModel

from swapmatch.models import PreferredDate, Shift, SwapRequest

COMPATIBLE_REASON = "mutual swap dates match"


class CompatibilityResult(BaseModel):
    is_compatible: bool
    reason: str

    def __bool__(self) -> bool:
        return self.is_compatible


def _incompatible(reason: str) -> CompatibilityResult:
    return CompatibilityResult(is_compatible=False, reason=reason)


def _wants_shift(
    request: SwapRequest, preferred: Sequence[PreferredDate], shift: Shift
) -> str | None:
    """Return None if one of `preferred` takes `shift`, else why not."""
    same_day = [p for p in preferred if p.date == shift.date]
    if not same_day:
        return (
            f"no preferred date matches {shift.date.isoformat()} "
            f"for request {request.id}"
        )
    if not any(p.accepts(shift) for p in same_day):
        accepted = sorted({t.value for p in same_day for t in p.accepted_types})
        return (
            f"shift type mismatch: request {request.id} does not accept "
            f"{shift.shift_type.value} on {shift.date.isoformat()} "
            f"(accepts {', '.join(accepted) or 'nothing'})"
        )
    return None


def _has_skillset(
    request: SwapRequest,
    shift: Shift,
    skillsets_by_user: Mapping[str, frozenset[str]] | None,
) -> str | None:
    if not request.required_skillsets:
        return None
    held = (skillsets_by_user or {}).get(shift.user_id, frozenset())
    if request.required_skillsets & held:
        return None
    return (
        f"required skillset not satisfied: user {shift.user_id} holds none of "
        f"{', '.join(sorted(request.required_skillsets))} for request {request.id}"
    )


def _has_conflict(
    request: SwapRequest,
    own_shift: Shift,
    incoming_shift: Shift,
    shifts_by_user: Mapping[str, Sequence[Shift]] | None,
) -> str | None:
    """The requester must not already work the day they would take on."""
    for shift in (shifts_by_user or {}).get(request.requester_id, ()):
        if shift.id != own_shift.id and shift.date == incoming_shift.date:
            return (
                f"schedule conflict: user {request.requester_id} already has a shift "
                f"on {incoming_shift.date.isoformat()} ({shift.id})"
            )
    return None


def check_compatibility(
    request_a: SwapRequest,
    shift_a: Shift | None,
    request_b: SwapRequest,
    shift_b: Shift | None,
    preferred_dates_by_request: Mapping[str, Sequence[PreferredDate]],
    skillsets_by_user: Mapping[str, frozenset[str]] | None = None,
    shifts_by_user: Mapping[str, Sequence[Shift]] | None = None,
) -> CompatibilityResult:
    """
    A and B are compatible when each one has a preferred date equal to the
    other's shift date that accepts the other's shift type, neither one
    already works the day they would take on, and each side's required
    skillsets (if any) are held by the other shift's owner.

    Pure and total: bad or missing data yields an incompatible result.
    """
    if request_a.id == request_b.id or request_a.requester_id == request_b.requester_id:
        return _incompatible("cannot match with self")

    if shift_a is None or shift_b is None:
        missing = request_a.id if shift_a is None else request_b.id
        return _incompatible(f"missing shift data for request {missing}")

    preferred_a = preferred_dates_by_request.get(request_a.id) or []
    preferred_b = preferred_dates_by_request.get(request_b.id) or []
    if not preferred_a or not preferred_b:
        return _incompatible("missing preferred dates")

    for request, preferred, other_shift in (
        (request_a, preferred_a, shift_b),
        (request_b, preferred_b, shift_a),
    ):
        reason = _wants_shift(request, preferred, other_shift)
        if reason:
            return _incompatible(reason)

    for request, own_shift, other_shift in (
        (request_a, shift_a, shift_b),
        (request_b, shift_b, shift_a),
    ):
        reason = _has_conflict(request, own_shift, other_shift, shifts_by_user)
        if reason:
            return _incompatible(reason)

    for request, other_shift in ((request_a, shift_b), (request_b, shift_a)):
        reason = _has_skillset(request, other_shift, skillsets_by_user)
        if reason:
            return _incompatible(reason)

    return CompatibilityResult(is_compatible=True, reason=COMPATIBLE_REASON)
