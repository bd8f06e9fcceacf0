"""
Base feature service interface.
"""

from abc import ABC, abstractmethod
from typing import Any

from orbguard.services.client import RequestPipeline


class BaseFeatureService(ABC):
    """
    Abstract base class for all backend-backed feature services.

    All feature services should:
    - Use the injected RequestPipeline for HTTP requests (auth, retry, cache)
    - Return Pydantic models
    - Let ApiError propagate to the caller
    """

    def __init__(self, client: RequestPipeline):
        self.client = client

    @property
    @abstractmethod
    def service_id(self) -> str:
        """Unique identifier for this feature service."""
        ...


def items_from(data: Any, key: str) -> list[dict[str, Any]]:
    """Extract a list of objects stored under ``key`` (or a bare list)."""
    if isinstance(data, list):
        items = data
    elif isinstance(data, dict):
        items = data.get(key) or []
    else:
        items = []
    return [item for item in items if isinstance(item, dict)]
