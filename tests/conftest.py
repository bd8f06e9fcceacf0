"""
Pytest configuration and fixtures for the test suite.
"""

import asyncio
import inspect
from datetime import datetime, timedelta
from typing import Any, Callable

import httpx
import pytest
import pytest_asyncio

from orbguard.services import Credentials, MemoryCredentialStore, RequestPipeline
from orbguard.settings import Settings

BASE_URL = "https://guard.test"


class FakeBackend:
    """Routes MockTransport requests to per-endpoint handlers and records them."""

    def __init__(self):
        self.routes: dict[tuple[str, str], Callable[[httpx.Request], Any]] = {}
        self.calls: list[httpx.Request] = []

    def route(self, method: str, path: str, handler: Callable[[httpx.Request], Any]) -> None:
        self.routes[(method.upper(), path)] = handler

    def sequence(self, method: str, path: str, *steps: Any) -> None:
        """
        Answer successive calls with ``steps`` in order; the last step repeats.

        A step is a callable returning a response, or an exception to raise.
        """
        remaining = list(steps)

        def handler(request: httpx.Request):
            step = remaining.pop(0) if len(remaining) > 1 else remaining[0]
            if isinstance(step, Exception):
                raise step
            return step(request)

        self.route(method, path, handler)

    def calls_to(self, method: str, path: str) -> list[httpx.Request]:
        return [
            c for c in self.calls if c.method == method.upper() and c.url.path == path
        ]

    async def handle(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        handler = self.routes.get((request.method, request.url.path))
        if handler is None:
            return httpx.Response(404, json={"message": "Not found"})
        result = handler(request)
        if inspect.isawaitable(result):
            result = await result
        return result

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)


def json_response(status_code: int = 200, body: Any = None) -> Callable[[httpx.Request], httpx.Response]:
    return lambda request: httpx.Response(status_code, json=body if body is not None else {})


NEW_TOKENS = {"access_token": "new-access", "refresh_token": "refresh-2"}


def protected(valid_token: str = "new-access"):
    """Handler that only accepts requests carrying ``valid_token``."""

    async def handler(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(0)
        if request.headers.get("authorization") == f"Bearer {valid_token}":
            return httpx.Response(200, json={"path": request.url.path})
        return httpx.Response(401, json={"message": "Token expired"})

    return handler


def slow_refresh(body: Any = None, status_code: int = 200):
    """Refresh endpoint that yields a few times before answering."""

    async def handler(request: httpx.Request) -> httpx.Response:
        for _ in range(5):
            await asyncio.sleep(0)
        return httpx.Response(status_code, json=body if body is not None else NEW_TOKENS)

    return handler


class SleepRecorder:
    """Stands in for asyncio.sleep; records requested delays without waiting."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class FakeClock:
    def __init__(self):
        self.now = datetime(2026, 1, 1, 12, 0, 0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def settings() -> Settings:
    return Settings(base_url=BASE_URL, max_retries=3, retry_base_delay=1.0)


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def sleep() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> MemoryCredentialStore:
    return MemoryCredentialStore(
        Credentials(access_token="old-access", refresh_token="refresh-1", device_id="dev-1")
    )


@pytest_asyncio.fixture
async def make_pipeline(settings, backend, sleep, clock, store):
    created: list[RequestPipeline] = []

    async def factory(**kwargs) -> RequestPipeline:
        pipeline = RequestPipeline(
            kwargs.pop("settings", settings),
            kwargs.pop("credential_store", store),
            transport=backend.transport,
            sleep=sleep,
            clock=clock,
            **kwargs,
        )
        await pipeline.init()
        created.append(pipeline)
        return pipeline

    yield factory

    for pipeline in created:
        await pipeline.dispose()


@pytest_asyncio.fixture
async def pipeline(make_pipeline) -> RequestPipeline:
    return await make_pipeline()
