"""Data fetcher - loads the universe of shifts, open requests, preferred dates and profiles."""

import asyncio
from dataclasses import dataclass, field

from swapmatch.errors import FetchError
from swapmatch.logger import log
from swapmatch.models import PreferredDate, Profile, RequestStatus, Shift, SwapRequest
from swapmatch.store import SwapStore

# requests in any other status cannot take part in matching
OPEN_STATUSES = (RequestStatus.PENDING, RequestStatus.MATCHED)


@dataclass
class MatchingData:
    shifts: list[Shift] = field(default_factory=list)
    requests: list[SwapRequest] = field(default_factory=list)
    preferred_dates: list[PreferredDate] = field(default_factory=list)
    profiles: list[Profile] = field(default_factory=list)
    skillsets: dict[str, frozenset[str]] = field(default_factory=dict)


async def fetch_matching_data(
    store: SwapStore, *, timeout: float | None = None
) -> MatchingData:
    """
    Fetch everything one matching cycle needs. Reads run concurrently in
    worker threads under a single deadline; any failure aborts the fetch.
    """
    try:
        async with asyncio.timeout(timeout):
            shifts, requests, preferred_dates = await asyncio.gather(
                asyncio.to_thread(store.list_shifts),
                asyncio.to_thread(store.list_requests, OPEN_STATUSES),
                asyncio.to_thread(store.list_preferred_dates),
            )

            requester_ids = {r.requester_id for r in requests}
            owner_ids = {s.user_id for s in shifts}
            profiles, skillsets = await asyncio.gather(
                asyncio.to_thread(store.list_profiles, requester_ids),
                asyncio.to_thread(store.skillsets_for, owner_ids),
            )
    except TimeoutError as e:
        log.error(f"Fetch timed out after {timeout}s")
        raise FetchError(f"Fetch timed out after {timeout}s") from e
    except FetchError:
        raise
    except Exception as e:
        log.error(f"Fetch failed: {e}")
        raise FetchError(f"Fetch failed: {e}") from e

    log.info(
        f"Fetched {len(shifts)} shifts, {len(requests)} open requests, "
        f"{len(preferred_dates)} preferred dates, {len(profiles)} profiles"
    )

    return MatchingData(
        shifts=shifts,
        requests=requests,
        preferred_dates=preferred_dates,
        profiles=profiles,
        skillsets=skillsets,
    )
