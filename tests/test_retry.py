from datetime import timedelta

import httpx
import pytest

from orbguard.services import ApiRequest, ApiResponse, RetryPolicy, RetryStage
from orbguard.services.retry import is_retryable_exception, is_retryable_status
from tests.conftest import SleepRecorder


def response(status_code: int) -> ApiResponse:
    return ApiResponse(status_code=status_code, headers={}, content=b"")


class Downstream:
    """Plays back scripted outcomes, one per call."""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls = 0

    async def __call__(self, request: ApiRequest) -> ApiResponse:
        self.calls += 1
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, Exception):
            raise outcome
        return response(outcome)


@pytest.fixture
def stage(sleep: SleepRecorder) -> RetryStage:
    return RetryStage(RetryPolicy(max_retries=3, base_delay=timedelta(seconds=1)), sleep=sleep)


REQUEST = ApiRequest("GET", "/api/v1/mitre/tactics")


class TestClassification:
    @pytest.mark.parametrize("status", [429, 500, 502, 503, 504, 599])
    def test_retryable_statuses(self, status):
        assert is_retryable_status(status)

    @pytest.mark.parametrize("status", [200, 400, 401, 403, 404, 409, 422])
    def test_non_retryable_statuses(self, status):
        assert not is_retryable_status(status)

    @pytest.mark.parametrize(
        "exc",
        [
            httpx.ConnectTimeout("connect"),
            httpx.ReadTimeout("read"),
            httpx.WriteTimeout("write"),
            httpx.PoolTimeout("pool"),
            httpx.ConnectError("refused"),
            httpx.ReadError("reset"),
        ],
    )
    def test_retryable_exceptions(self, exc):
        assert is_retryable_exception(exc)

    @pytest.mark.parametrize(
        "exc",
        [httpx.DecodingError("bad gzip"), httpx.UnsupportedProtocol("ftp"), ValueError("x")],
    )
    def test_non_retryable_exceptions(self, exc):
        assert not is_retryable_exception(exc)


class TestBackoff:
    async def test_recovers_after_transient_failures(self, stage, sleep):
        downstream = Downstream(503, 503, 200)

        result = await stage.handle(REQUEST, downstream)

        assert result.status_code == 200
        assert downstream.calls == 3
        assert sleep.delays == [1.0, 2.0]

    async def test_gives_up_after_max_retries(self, stage, sleep):
        downstream = Downstream(500)

        result = await stage.handle(REQUEST, downstream)

        assert result.status_code == 500
        assert downstream.calls == 4
        assert sleep.delays == [1.0, 2.0, 4.0]
        assert stage.total_retries == 3

    async def test_exception_reraised_once_budget_spent(self, stage, sleep):
        downstream = Downstream(httpx.ConnectTimeout("slow"))

        with pytest.raises(httpx.ConnectTimeout):
            await stage.handle(REQUEST, downstream)

        assert downstream.calls == 4
        assert sleep.delays == [1.0, 2.0, 4.0]

    async def test_rate_limit_is_retried(self, stage, sleep):
        downstream = Downstream(429, 200)

        result = await stage.handle(REQUEST, downstream)

        assert result.status_code == 200
        assert sleep.delays == [1.0]

    async def test_mixed_exception_then_status(self, stage, sleep):
        downstream = Downstream(httpx.ConnectError("refused"), 502, 200)

        result = await stage.handle(REQUEST, downstream)

        assert result.status_code == 200
        assert downstream.calls == 3

    @pytest.mark.parametrize("status", [400, 401, 403, 404])
    async def test_client_errors_are_not_retried(self, stage, sleep, status):
        downstream = Downstream(status)

        result = await stage.handle(REQUEST, downstream)

        assert result.status_code == status
        assert downstream.calls == 1
        assert sleep.delays == []

    async def test_malformed_response_is_not_retried(self, stage, sleep):
        downstream = Downstream(httpx.DecodingError("bad body"))

        with pytest.raises(httpx.DecodingError):
            await stage.handle(REQUEST, downstream)

        assert downstream.calls == 1
        assert sleep.delays == []

    async def test_per_request_policy_overrides_default(self, stage, sleep):
        request = ApiRequest(
            "GET",
            "/api/v1/stats",
            retry=RetryPolicy(max_retries=1, base_delay=timedelta(milliseconds=250)),
        )
        downstream = Downstream(503)

        result = await stage.handle(request, downstream)

        assert result.status_code == 503
        assert downstream.calls == 2
        assert sleep.delays == [0.25]

    async def test_zero_retries(self, sleep):
        stage = RetryStage(RetryPolicy(max_retries=0), sleep=sleep)
        downstream = Downstream(503)

        await stage.handle(REQUEST, downstream)

        assert downstream.calls == 1

    async def test_attempt_state_not_shared_between_requests(self, stage, sleep):
        await stage.handle(REQUEST, Downstream(503, 200))
        await stage.handle(REQUEST, Downstream(503, 200))

        assert sleep.delays == [1.0, 1.0]
