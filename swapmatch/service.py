"""Composed swap matching service: fetch -> prepare -> build -> record, behind the cache."""

import asyncio
from datetime import datetime

from pydantic import BaseModel, Field

from swapmatch.builder import MatchCandidate, build_matches
from swapmatch.cache import MatchFinder, NowFn, SleepFn
from swapmatch.errors import DuplicateMatchError, InvalidStateError, RecordNotFoundError
from swapmatch.fetcher import fetch_matching_data
from swapmatch.lifecycle import MatchLifecycleManager
from swapmatch.logger import log
from swapmatch.models import Match, MatchView
from swapmatch.notifier import send_match_notification
from swapmatch.preparer import prepare_matching_data
from swapmatch.settings import Settings
from swapmatch.store import SwapStore


class MatchSearchResult(BaseModel):
    matches: list[Match] = Field(default_factory=list)
    new_match_ids: list[str] = Field(default_factory=list)
    views: list[MatchView] = Field(default_factory=list)


class SwapMatchingService:
    def __init__(
        self,
        store: SwapStore,
        settings: Settings,
        *,
        now_fn: NowFn | None = None,
        sleep_fn: SleepFn | None = None,
    ) -> None:
        self.store = store
        self.settings = settings
        self.lifecycle = MatchLifecycleManager(store, now_fn=now_fn)
        self.finder: MatchFinder[MatchSearchResult] = MatchFinder(
            self._search,
            ttl_seconds=settings.cache_ttl_seconds,
            min_interval_seconds=settings.min_request_interval_seconds,
            now_fn=now_fn,
            sleep_fn=sleep_fn,
        )
        self.notification_tasks: set[asyncio.Task] = set()

    async def find_matches(
        self, user_id: str | None, force_check: bool = False, verbose: bool = False
    ) -> MatchSearchResult:
        """Matches for `user_id` (every match when None), served through the cache."""
        return await self.finder.get(user_id, force_check, verbose)

    def accept_match(self, match_id: str, user_id: str) -> Match:
        return self._after_transition(self.lifecycle.accept(match_id, user_id))

    def cancel_match(self, match_id: str) -> Match:
        return self._after_transition(self.lifecycle.cancel(match_id))

    def complete_match(self, match_id: str) -> Match:
        return self._after_transition(self.lifecycle.complete(match_id))

    def decline_match(self, match_id: str, user_id: str) -> Match:
        return self._after_transition(self.lifecycle.decline(match_id, user_id))

    def view_match(self, match_id: str, viewer_id: str) -> MatchView:
        return self.lifecycle.view(match_id, viewer_id)

    async def close(self) -> None:
        await self.finder.close()
        tasks = list(self.notification_tasks)
        for t in tasks:
            t.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    def _after_transition(self, match: Match) -> Match:
        self.finder.invalidate(*self.lifecycle.participants(match))
        return match

    async def _search(
        self, user_id: str | None, force_check: bool, verbose: bool
    ) -> MatchSearchResult:
        started = datetime.now()
        log.info(f"Finding swap matches for {user_id or 'admin'} (force={force_check}, verbose={verbose})")

        data = await fetch_matching_data(
            self.store, timeout=self.settings.fetch_timeout_seconds
        )
        prepared = prepare_matching_data(
            data.shifts,
            data.requests,
            data.preferred_dates,
            data.profiles,
            force_check=force_check,
        )
        candidates = build_matches(
            prepared.eligible_requests,
            prepared.shift_for_request,
            prepared.preferred_dates_by_request,
            prepared.shift_ids_by_user,
            prepared.profiles_by_id,
            current_user_id=user_id,
            force_check=force_check,
            skillsets_by_user=data.skillsets,
            shifts_by_user=prepared.shifts_by_user,
            active_partners=self.lifecycle.active_partners(),
            verbose=verbose,
        )

        created = self._record(candidates)
        for match in created:
            self._notify(match.id)

        matches = self._matches_for(user_id)
        views = self._views_for(user_id, matches) if user_id is not None else []

        elapsed = (datetime.now() - started).total_seconds()
        log.info(
            f"Match search for {user_id or 'admin'} done in {elapsed:.2f}s: "
            f"{len(created)} new, {len(matches)} total"
        )
        return MatchSearchResult(
            matches=matches,
            new_match_ids=[m.id for m in created],
            views=views,
        )

    def _record(self, candidates: list[MatchCandidate]) -> list[Match]:
        created: list[Match] = []
        for candidate in candidates:
            a_id, b_id = candidate.request_a.id, candidate.request_b.id
            if self.lifecycle.find_active_pair(a_id, b_id) is not None:
                log.debug(f"Match for {a_id} <-> {b_id} already recorded")
                continue
            try:
                match = self.lifecycle.create(a_id, b_id)
            except (DuplicateMatchError, InvalidStateError) as e:
                # only reachable with force_check, where matched requests are re-examined
                log.warning(f"Not recording match {a_id} <-> {b_id}: {e}")
                continue
            created.append(match)
            self.finder.invalidate(
                candidate.request_a.requester_id, candidate.request_b.requester_id
            )
        return created

    def _matches_for(self, user_id: str | None) -> list[Match]:
        matches = [m for m in self.store.list_matches() if m.is_active]
        if user_id is not None:
            matches = [m for m in matches if user_id in self.lifecycle.participants(m)]
        return sorted(matches, key=lambda m: m.created_at)

    def _notify(self, match_id: str) -> None:
        task = asyncio.create_task(self._send_notification(match_id))
        self.notification_tasks.add(task)
        task.add_done_callback(self.notification_tasks.discard)

    async def _send_notification(self, match_id: str) -> None:
        try:
            await send_match_notification(match_id, self.settings)
        except asyncio.CancelledError:
            return
        except Exception as e:
            log.warning(f"Notification for match {match_id} failed: {e}")

    def _views_for(self, user_id: str, matches: list[Match]) -> list[MatchView]:
        views = []
        for match in matches:
            try:
                views.append(self.lifecycle.view(match.id, user_id))
            except RecordNotFoundError as e:
                log.warning(f"Skipping view of match {match.id}: {e}")
        return views
