"""
Service layer infrastructure - the resilient request pipeline.

Provides:
- CacheManager / CacheStage: TTL response cache for idempotent reads
- RetryStage: exponential backoff for transient failures
- AuthStage: credential attachment and single-flight token refresh
- RequestPipeline: the composed entry point used by feature services
"""

from orbguard.services.errors import (
    ApiError,
    ClientError,
    ConnectionFailedError,
    ErrorKind,
    MalformedResponseError,
    RateLimitError,
    RequestCancelledError,
    RequestTimeoutError,
    ServerError,
    UnauthorizedError,
    UnknownApiError,
)
from orbguard.services.models import (
    ApiRequest,
    ApiResponse,
    CacheOptions,
    Credentials,
    RetryPolicy,
)
from orbguard.services.credentials import CredentialStore, MemoryCredentialStore
from orbguard.services.cache import CacheEntry, CacheManager, CacheStage
from orbguard.services.retry import RetryStage
from orbguard.services.auth import AuthStage
from orbguard.services.client import RequestPipeline

__all__ = [
    # Errors
    "ApiError",
    "ClientError",
    "ConnectionFailedError",
    "ErrorKind",
    "MalformedResponseError",
    "RateLimitError",
    "RequestCancelledError",
    "RequestTimeoutError",
    "ServerError",
    "UnauthorizedError",
    "UnknownApiError",
    # Models
    "ApiRequest",
    "ApiResponse",
    "CacheOptions",
    "Credentials",
    "RetryPolicy",
    # Credentials
    "CredentialStore",
    "MemoryCredentialStore",
    # Stages
    "CacheEntry",
    "CacheManager",
    "CacheStage",
    "RetryStage",
    "AuthStage",
    # Pipeline
    "RequestPipeline",
]
