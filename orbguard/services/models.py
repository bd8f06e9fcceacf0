"""
Request, response and credential types shared by the pipeline stages.
"""

import json
from dataclasses import dataclass, field, replace
from datetime import timedelta
from typing import Any

from pydantic import BaseModel, ConfigDict

READ_METHODS = frozenset({"GET"})


class Credentials(BaseModel):
    """Tokens and device identity used to authenticate requests."""

    model_config = ConfigDict(frozen=True)

    access_token: str | None = None
    refresh_token: str | None = None
    device_id: str | None = None

    @property
    def is_empty(self) -> bool:
        return not (self.access_token or self.refresh_token or self.device_id)


@dataclass(frozen=True)
class RetryPolicy:
    """Retry budget for a request."""

    max_retries: int = 3
    base_delay: timedelta = timedelta(seconds=1)

    def delay_for(self, attempt: int) -> float:
        """Backoff in seconds before retry number ``attempt + 1``."""
        return self.base_delay.total_seconds() * (2**attempt)


@dataclass(frozen=True)
class CacheOptions:
    """Per-call cache behaviour."""

    enabled: bool = True
    ttl: timedelta | None = None  # overrides the endpoint default
    force_refresh: bool = False  # skip the read, still store the result


@dataclass(frozen=True)
class ApiRequest:
    """A logical request issued by a feature service."""

    method: str
    path: str
    query_params: dict[str, Any] | None = None
    body: Any = None
    headers: dict[str, str] = field(default_factory=dict)
    cache: CacheOptions = field(default_factory=CacheOptions)
    retry: RetryPolicy | None = None

    @property
    def is_read(self) -> bool:
        return self.method.upper() in READ_METHODS

    def with_headers(self, headers: dict[str, str]) -> "ApiRequest":
        """Copy of this request with ``headers`` merged over the existing ones."""
        return replace(self, headers={**self.headers, **headers})


@dataclass
class ApiResponse:
    """A fully read HTTP response, either from the network or the cache."""

    status_code: int
    headers: dict[str, str]
    content: bytes
    from_cache: bool = False

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def content_type(self) -> str:
        return self.headers.get("content-type", "")

    @property
    def data(self) -> Any:
        """Parsed body, see parse()."""
        return self.parse()

    def parse(self) -> Any:
        """
        Decode the body.

        JSON bodies are parsed, other bodies are returned as text and an
        empty body yields None. Raises ValueError for a malformed JSON body.
        """
        if not self.content:
            return None
        if "json" in self.content_type:
            return json.loads(self.content)
        return self.content.decode("utf-8", errors="replace")

    def try_parse(self) -> Any:
        """Like parse(), but returns None instead of raising."""
        try:
            return self.parse()
        except ValueError:
            return None
