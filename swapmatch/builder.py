"""Match builder - greedy first-fit pairing of eligible swap requests.

Every candidate request takes the first compatible counterpart found in
the comparison pool and both are then consumed. The result depends on
input order and is not a maximum matching.
"""

import logging
from collections.abc import Mapping, Sequence

from pydantic import BaseModel

from swapmatch.compatibility import check_compatibility
from swapmatch.logger import log
from swapmatch.models import PreferredDate, Profile, RequestStatus, Shift, SwapRequest


class MatchCandidate(BaseModel):
    request_a: SwapRequest
    request_b: SwapRequest
    shift_a: Shift
    shift_b: Shift
    reason: str


def _display_name(user_id: str, profiles: Mapping[str, Profile]) -> str:
    profile = profiles.get(user_id)
    return profile.full_name if profile else "Unknown User"


def _owns_shift(
    request: SwapRequest, shift: Shift, shift_ids_by_user: Mapping[str, set[str]]
) -> bool:
    return shift.id in shift_ids_by_user.get(request.requester_id, set())


def build_matches(
    eligible_requests: Sequence[SwapRequest],
    shift_for_request: Mapping[str, Shift],
    preferred_dates_by_request: Mapping[str, Sequence[PreferredDate]],
    shift_ids_by_user: Mapping[str, set[str]],
    profiles: Mapping[str, Profile],
    current_user_id: str | None = None,
    force_check: bool = False,
    *,
    skillsets_by_user: Mapping[str, frozenset[str]] | None = None,
    shifts_by_user: Mapping[str, Sequence[Shift]] | None = None,
    active_partners: Mapping[str, str] | None = None,
    verbose: bool = False,
) -> list[MatchCandidate]:
    """
    Pair requests greedily. With `current_user_id` only that user's requests
    are candidates and only other users' requests are compared against them;
    without it (admin) every request is compared with every other.

    `active_partners` maps a request id to the request it is already matched
    with. Such a request is only ever paired with that partner again, so a
    force_check run re-checks existing matches instead of consuming their
    requests with new partners.
    """
    active_partners = active_partners or {}
    level = logging.INFO if verbose else logging.DEBUG
    matched_request_ids: set[str] = set()
    matches: list[MatchCandidate] = []

    if current_user_id is not None:
        candidates = [r for r in eligible_requests if r.requester_id == current_user_id]
        pool = [r for r in eligible_requests if r.requester_id != current_user_id]
    else:
        candidates = list(eligible_requests)
        pool = candidates

    log.info(
        f"User {current_user_id or 'admin'} has {len(candidates)} candidate requests, "
        f"comparing against {len(pool)}"
    )

    def bound_elsewhere(request: SwapRequest, other: SwapRequest) -> bool:
        partner = active_partners.get(request.id)
        return partner is not None and partner != other.id

    def usable(request: SwapRequest) -> bool:
        if request.id in matched_request_ids:
            return False
        if not force_check and request.status == RequestStatus.MATCHED:
            return False
        shift = shift_for_request.get(request.id)
        if shift is None:
            return False
        if not _owns_shift(request, shift, shift_ids_by_user):
            log.warning(
                f"Request {request.id} points at shift {shift.id} not owned by "
                f"{request.requester_id}, skipping"
            )
            return False
        return True

    for request in candidates:
        if not usable(request):
            continue
        shift = shift_for_request[request.id]
        log.log(
            level,
            f"Processing request {request.id} from "
            f"{_display_name(request.requester_id, profiles)}",
        )

        for other in pool:
            if other.id == request.id or other.requester_id == request.requester_id:
                continue
            if not usable(other):
                continue
            if bound_elsewhere(request, other) or bound_elsewhere(other, request):
                log.log(level, f"Skipping {request.id} <-> {other.id}: already matched elsewhere")
                continue
            other_shift = shift_for_request[other.id]

            result = check_compatibility(
                request,
                shift,
                other,
                other_shift,
                preferred_dates_by_request,
                skillsets_by_user,
                shifts_by_user,
            )
            if not result.is_compatible:
                log.log(level, f"No match {request.id} <-> {other.id}: {result.reason}")
                continue

            log.info(
                f"Match found: {_display_name(request.requester_id, profiles)} "
                f"({shift.date} {shift.shift_type}) <-> "
                f"{_display_name(other.requester_id, profiles)} "
                f"({other_shift.date} {other_shift.shift_type})"
            )
            matches.append(
                MatchCandidate(
                    request_a=request,
                    request_b=other,
                    shift_a=shift,
                    shift_b=other_shift,
                    reason=result.reason,
                )
            )
            matched_request_ids.update((request.id, other.id))
            break

    log.info(f"Matching complete. Found {len(matches)} matches")
    return matches
