import asyncio
from collections.abc import Awaitable, Callable
from contextlib import asynccontextmanager
from datetime import UTC, datetime

from fastapi import APIRouter, FastAPI, HTTPException, Request
from pydantic import BaseModel

from swapmatch.database import InMemoryKeyValueDatabase
from swapmatch.errors import CUSTOM_ERRORS, SwapMatchError
from swapmatch.loader import load_fixture_file
from swapmatch.logger import log, set_console_level
from swapmatch.models import Match, MatchView, Record
from swapmatch.service import MatchSearchResult, SwapMatchingService
from swapmatch.settings import Settings, load_settings
from swapmatch.store import SwapStore

router = APIRouter()

NowFn = Callable[[], datetime]
SleepFn = Callable[[float], Awaitable[None]]


class FindMatchesRequest(BaseModel):
    user_id: str | None = None
    force_check: bool = False
    verbose: bool = False


class ActingUserRequest(BaseModel):
    user_id: str


def _service(request: Request) -> SwapMatchingService:
    return request.app.state.service


def _raise_http(e: SwapMatchError):
    status_code = CUSTOM_ERRORS.get(type(e), 400)
    raise HTTPException(status_code=status_code, detail=str(e)) from e


@router.get("/health")
async def health_check() -> dict[str, str]:
    return {"status": "ok"}


@router.post("/matches/find")
async def find_matches(body: FindMatchesRequest, request: Request) -> MatchSearchResult:
    try:
        return await _service(request).find_matches(
            body.user_id, force_check=body.force_check, verbose=body.verbose
        )
    except tuple(CUSTOM_ERRORS) as e:
        _raise_http(e)


@router.get("/matches/{match_id}")
async def get_match(match_id: str, viewer_id: str, request: Request) -> MatchView:
    try:
        return _service(request).view_match(match_id, viewer_id)
    except tuple(CUSTOM_ERRORS) as e:
        _raise_http(e)


@router.post("/matches/{match_id}/accept")
async def accept_match(match_id: str, body: ActingUserRequest, request: Request) -> Match:
    try:
        return _service(request).accept_match(match_id, body.user_id)
    except tuple(CUSTOM_ERRORS) as e:
        _raise_http(e)


@router.post("/matches/{match_id}/cancel")
async def cancel_match(match_id: str, request: Request) -> Match:
    try:
        return _service(request).cancel_match(match_id)
    except tuple(CUSTOM_ERRORS) as e:
        _raise_http(e)


@router.post("/matches/{match_id}/complete")
async def complete_match(match_id: str, request: Request) -> Match:
    try:
        return _service(request).complete_match(match_id)
    except tuple(CUSTOM_ERRORS) as e:
        _raise_http(e)


@router.post("/matches/{match_id}/decline")
async def decline_match(match_id: str, body: ActingUserRequest, request: Request) -> Match:
    try:
        return _service(request).decline_match(match_id, body.user_id)
    except tuple(CUSTOM_ERRORS) as e:
        _raise_http(e)


def create_app(
    settings: Settings | None = None,
    *,
    now_fn: NowFn | None = None,
    sleep_fn: SleepFn | None = None,
) -> FastAPI:
    settings = settings or load_settings()
    set_console_level(settings.log_level)

    db: InMemoryKeyValueDatabase[str, Record] = InMemoryKeyValueDatabase()
    store = SwapStore(db)
    if settings.fixture_path:
        load_fixture_file(store, settings.fixture_path)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        log.info(
            f"Swap matcher starting (cache ttl {settings.cache_ttl_seconds}s, "
            f"throttle {settings.min_request_interval_seconds}s)"
        )
        yield
        await app.state.service.close()
        log.info("Shutting down")

    app = FastAPI(title="Shift Swap Matcher", lifespan=lifespan)
    app.state.settings = settings
    app.state.database = db
    app.state.store = store

    app.state.now_fn = now_fn or (lambda: datetime.now(UTC))
    app.state.sleep_fn = sleep_fn or asyncio.sleep

    app.state.service = SwapMatchingService(
        store,
        settings,
        now_fn=lambda: app.state.now_fn(),
        sleep_fn=lambda seconds: app.state.sleep_fn(seconds),
    )

    app.include_router(router)
    return app
