"""Data preparer - indexes raw rows into the lookups the matcher needs."""

import warnings
from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass, field

from swapmatch.errors import DataIntegrityWarning
from swapmatch.logger import log
from swapmatch.models import PreferredDate, Profile, RequestStatus, Shift, SwapRequest


@dataclass
class PreparedData:
    shift_by_id: dict[str, Shift] = field(default_factory=dict)
    preferred_dates_by_request: dict[str, list[PreferredDate]] = field(default_factory=dict)
    shift_for_request: dict[str, Shift] = field(default_factory=dict)
    shift_ids_by_user: dict[str, set[str]] = field(default_factory=dict)
    shifts_by_user: dict[str, list[Shift]] = field(default_factory=dict)
    profiles_by_id: dict[str, Profile] = field(default_factory=dict)
    eligible_requests: list[SwapRequest] = field(default_factory=list)


def eligible_statuses(force_check: bool) -> set[RequestStatus]:
    if force_check:
        return {RequestStatus.PENDING, RequestStatus.MATCHED}
    return {RequestStatus.PENDING}


def prepare_matching_data(
    shifts: Iterable[Shift],
    requests: Iterable[SwapRequest],
    preferred_dates: Iterable[PreferredDate],
    profiles: Iterable[Profile] = (),
    *,
    force_check: bool = False,
) -> PreparedData:
    """
    Build O(1) lookups and the eligible request subset.

    A request whose own shift cannot be resolved is dropped with a
    DataIntegrityWarning; the rest of the run carries on.
    """
    prepared = PreparedData()

    shift_ids_by_user: defaultdict[str, set[str]] = defaultdict(set)
    shifts_by_user: defaultdict[str, list[Shift]] = defaultdict(list)
    for shift in shifts:
        prepared.shift_by_id[shift.id] = shift
        shift_ids_by_user[shift.user_id].add(shift.id)
        shifts_by_user[shift.user_id].append(shift)
    prepared.shift_ids_by_user = dict(shift_ids_by_user)
    prepared.shifts_by_user = dict(shifts_by_user)

    by_request: defaultdict[str, list[PreferredDate]] = defaultdict(list)
    for preferred in preferred_dates:
        by_request[preferred.request_id].append(preferred)
    prepared.preferred_dates_by_request = dict(by_request)

    prepared.profiles_by_id = {p.id: p for p in profiles}

    statuses = eligible_statuses(force_check)
    for request in requests:
        if request.status not in statuses:
            continue
        if not prepared.preferred_dates_by_request.get(request.id):
            continue

        shift = prepared.shift_by_id.get(request.requester_shift_id)
        if shift is None:
            message = (
                f"Request {request.id} references missing shift "
                f"{request.requester_shift_id}, excluding it from matching"
            )
            log.warning(message)
            warnings.warn(message, DataIntegrityWarning, stacklevel=2)
            continue

        prepared.shift_for_request[request.id] = shift
        prepared.eligible_requests.append(request)

    log.info(
        f"Prepared {len(prepared.eligible_requests)} eligible requests "
        f"(force_check={force_check}), {len(prepared.shift_ids_by_user)} users with shifts"
    )
    return prepared
