"""
RetryStage - resubmits requests that failed transiently, with exponential backoff.

Retryable:
- Timeouts (connect, send, receive, pool)
- Network errors (connection refused, unreachable, dropped)
- HTTP 5xx and HTTP 429

Everything else (other 4xx, cancellation, malformed responses) is returned or
raised unchanged on the first occurrence.
"""

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable

import httpx
from loguru import logger

from orbguard.services.models import ApiRequest, ApiResponse, RetryPolicy

Handler = Callable[[ApiRequest], Awaitable[ApiResponse]]
Sleep = Callable[[float], Awaitable[None]]


@dataclass
class RetryState:
    """Attempt counter for a single logical request."""

    attempt: int = 0


def is_retryable_status(status_code: int) -> bool:
    return status_code == 429 or 500 <= status_code < 600


def is_retryable_exception(exc: BaseException) -> bool:
    return isinstance(exc, (httpx.TimeoutException, httpx.NetworkError))


class RetryStage:
    """
    Re-issues retryable failures, strictly one attempt at a time.

    Usage:
        stage = RetryStage(RetryPolicy(max_retries=3))
        response = await stage.handle(request, auth_stage_handler)
    """

    def __init__(self, policy: RetryPolicy | None = None, sleep: Sleep = asyncio.sleep):
        self.policy = policy or RetryPolicy()
        self._sleep = sleep
        self.total_retries = 0

    async def handle(self, request: ApiRequest, call_next: Handler) -> ApiResponse:
        policy = request.retry or self.policy
        state = RetryState()

        while True:
            try:
                response = await call_next(request)
            except Exception as exc:
                if not is_retryable_exception(exc) or state.attempt >= policy.max_retries:
                    raise
                reason = type(exc).__name__
            else:
                if (
                    not is_retryable_status(response.status_code)
                    or state.attempt >= policy.max_retries
                ):
                    return response
                reason = f"HTTP {response.status_code}"

            delay = policy.delay_for(state.attempt)
            logger.warning(
                f"{request.method} {request.path} failed ({reason}), "
                f"retry {state.attempt + 1}/{policy.max_retries} in {delay:.1f}s"
            )
            await self._sleep(delay)
            state.attempt += 1
            self.total_retries += 1
