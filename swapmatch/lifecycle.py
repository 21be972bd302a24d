"""Match lifecycle - the accept / cancel / complete / decline state machine.

    pending --accept (one side)--> pending (one flag set)
    pending --accept (both sides)--> accepted
    accepted --cancel--> pending (flags reset)
    accepted --complete--> completed (terminal)
    pending --decline--> cancelled (terminal, requests back to the pool)

Each transition writes the match and both of its requests in one
transaction, so request status never disagrees with the match.
"""

import uuid
from collections.abc import Callable
from datetime import UTC, datetime

from swapmatch.errors import (
    DuplicateMatchError,
    InvalidStateError,
    NotParticipantError,
    RecordNotFoundError,
)
from swapmatch.logger import log
from swapmatch.models import (
    Match,
    MatchStatus,
    MatchView,
    RequestStatus,
    SwapRequest,
    display_status,
)
from swapmatch.store import SwapStore

NowFn = Callable[[], datetime]

MATCHABLE_REQUEST_STATUSES = {RequestStatus.PENDING, RequestStatus.MATCHED}


class MatchLifecycleManager:
    def __init__(self, store: SwapStore, *, now_fn: NowFn | None = None) -> None:
        self.store = store
        self.now_fn = now_fn or (lambda: datetime.now(UTC))

    # lookups

    def get(self, match_id: str) -> Match:
        match = self.store.get_match(match_id)
        if match is None:
            raise RecordNotFoundError(f"Match {match_id} not found")
        return match

    def _get_request(self, request_id: str) -> SwapRequest:
        request = self.store.get_request(request_id)
        if request is None:
            raise RecordNotFoundError(f"Swap request {request_id} not found")
        return request

    def active_match_for(self, request_id: str) -> Match | None:
        return next(
            (
                m
                for m in self.store.list_matches()
                if m.is_active and request_id in m.request_ids
            ),
            None,
        )

    def find_active_pair(self, request_a_id: str, request_b_id: str) -> Match | None:
        match = self.active_match_for(request_a_id)
        if match and set(match.request_ids) == {request_a_id, request_b_id}:
            return match
        return None

    def active_partners(self) -> dict[str, str]:
        """request id -> the request it is paired with in a non-cancelled match"""
        partners: dict[str, str] = {}
        for match in self.store.list_matches():
            if match.is_active:
                partners[match.request_a_id] = match.request_b_id
                partners[match.request_b_id] = match.request_a_id
        return partners

    def participants(self, match: Match) -> tuple[str, str]:
        """(requester user id, acceptor user id)"""
        return (
            self._get_request(match.request_a_id).requester_id,
            self._get_request(match.request_b_id).requester_id,
        )

    # transitions

    def create(self, request_a_id: str, request_b_id: str) -> Match:
        if request_a_id == request_b_id:
            raise InvalidStateError("A request cannot be matched with itself")

        with self.store.db.transaction():
            request_a = self._get_request(request_a_id)
            request_b = self._get_request(request_b_id)

            for request in (request_a, request_b):
                existing = self.active_match_for(request.id)
                if existing is not None:
                    raise DuplicateMatchError(
                        f"Request {request.id} already belongs to match {existing.id}"
                    )
                if request.status not in MATCHABLE_REQUEST_STATUSES:
                    raise InvalidStateError(
                        f"Request {request.id} is {request.status} and cannot be matched"
                    )

            now = self.now_fn()
            match = Match(
                id=str(uuid.uuid4()),
                request_a_id=request_a.id,
                request_b_id=request_b.id,
                shift_a_id=request_a.requester_shift_id,
                shift_b_id=request_b.requester_shift_id,
                created_at=now,
                match_date=now.date(),
            )
            self.store.put(
                match,
                request_a.model_copy(update={"status": RequestStatus.MATCHED}),
                request_b.model_copy(update={"status": RequestStatus.MATCHED}),
            )

        log.info(f"Created match {match.id} for requests {request_a_id} <-> {request_b_id}")
        return match

    def accept(self, match_id: str, acting_user_id: str) -> Match:
        with self.store.db.transaction():
            match = self.get(match_id)
            if match.status in (MatchStatus.COMPLETED, MatchStatus.CANCELLED):
                raise InvalidStateError(f"Match {match_id} is {match.status} and cannot be accepted")

            request_a = self._get_request(match.request_a_id)
            request_b = self._get_request(match.request_b_id)
            if acting_user_id == request_a.requester_id:
                update = {"requester_has_accepted": True}
            elif acting_user_id == request_b.requester_id:
                update = {"acceptor_has_accepted": True}
            else:
                raise NotParticipantError(
                    f"User {acting_user_id} is not a participant in match {match_id}"
                )

            match = match.model_copy(update=update)
            if match.requester_has_accepted and match.acceptor_has_accepted:
                match = match.model_copy(update={"status": MatchStatus.ACCEPTED})
                status_a = status_b = RequestStatus.CONFIRMED
            else:
                status_a = (
                    RequestStatus.ACCEPTED if match.requester_has_accepted else RequestStatus.MATCHED
                )
                status_b = (
                    RequestStatus.ACCEPTED if match.acceptor_has_accepted else RequestStatus.MATCHED
                )

            self.store.put(
                match,
                request_a.model_copy(update={"status": status_a}),
                request_b.model_copy(update={"status": status_b}),
            )

        log.info(f"User {acting_user_id} accepted match {match_id} (status={match.status})")
        return match

    def cancel(self, match_id: str) -> Match:
        with self.store.db.transaction():
            match = self._require(match_id, MatchStatus.ACCEPTED, "cancelled")
            match = match.model_copy(
                update={
                    "status": MatchStatus.PENDING,
                    "requester_has_accepted": False,
                    "acceptor_has_accepted": False,
                }
            )
            self._write_with_requests(match, RequestStatus.MATCHED)

        log.info(f"Cancelled acceptance of match {match_id}, back to pending")
        return match

    def complete(self, match_id: str) -> Match:
        with self.store.db.transaction():
            match = self._require(match_id, MatchStatus.ACCEPTED, "completed")
            match = match.model_copy(update={"status": MatchStatus.COMPLETED})
            self._write_with_requests(match, RequestStatus.COMPLETED)

        log.info(f"Completed match {match_id}")
        return match

    def decline(self, match_id: str, acting_user_id: str) -> Match:
        with self.store.db.transaction():
            match = self._require(match_id, MatchStatus.PENDING, "declined")
            if acting_user_id not in self.participants(match):
                raise NotParticipantError(
                    f"User {acting_user_id} is not a participant in match {match_id}"
                )
            match = match.model_copy(update={"status": MatchStatus.CANCELLED})
            self._write_with_requests(match, RequestStatus.PENDING)

        log.info(f"User {acting_user_id} declined match {match_id}")
        return match

    def _require(self, match_id: str, status: MatchStatus, action: str) -> Match:
        match = self.get(match_id)
        if match.status != status:
            raise InvalidStateError(
                f"Match {match_id} is {match.status} and cannot be {action} (requires {status})"
            )
        return match

    def _write_with_requests(self, match: Match, request_status: RequestStatus) -> None:
        requests = [self._get_request(rid) for rid in match.request_ids]
        self.store.put(
            match,
            *(r.model_copy(update={"status": request_status}) for r in requests),
        )

    # projections

    def view(self, match_id: str, viewer_id: str) -> MatchView:
        with self.store.db.transaction():
            match = self.get(match_id)
            request_a = self._get_request(match.request_a_id)
            request_b = self._get_request(match.request_b_id)

            if viewer_id == request_a.requester_id:
                mine, theirs, viewer_is_requester = request_a, request_b, True
            elif viewer_id == request_b.requester_id:
                mine, theirs, viewer_is_requester = request_b, request_a, False
            else:
                raise NotParticipantError(
                    f"User {viewer_id} is not a participant in match {match_id}"
                )

            my_shift = self.store.get_shift(mine.requester_shift_id)
            other_shift = self.store.get_shift(theirs.requester_shift_id)
            if my_shift is None or other_shift is None:
                raise RecordNotFoundError(f"Shift data missing for match {match_id}")
            other_profile = self.store.get_profile(theirs.requester_id)

        return MatchView(
            match_id=match.id,
            status=display_status(match, viewer_is_requester=viewer_is_requester),
            my_request_id=mine.id,
            my_shift=my_shift,
            other_request_id=theirs.id,
            other_shift=other_shift,
            other_user_id=theirs.requester_id,
            other_user_name=other_profile.full_name if other_profile else "Unknown User",
            created_at=match.created_at,
        )
