"""
URL and QR reputation checks.
"""

from datetime import datetime

from pydantic import BaseModel, Field

from orbguard import endpoints
from orbguard.datasource.base import BaseFeatureService, items_from


class UrlThreat(BaseModel):
    type: str = "unknown"
    severity: str = "unknown"
    description: str = ""
    source: str | None = None


class UrlReputationResult(BaseModel):
    url: str = ""
    domain: str = ""
    is_safe: bool = True
    should_block: bool = False
    severity: str = "info"
    risk_score: float = 0.0
    categories: list[str] = Field(default_factory=list)
    threats: list[UrlThreat] = Field(default_factory=list)
    recommendation: str | None = None
    checked_at: datetime | None = None


class UrlReputationService(BaseFeatureService):
    """Reputation lookups are POSTs, so they always reach the backend."""

    @property
    def service_id(self) -> str:
        return "url"

    async def check_url(self, url: str) -> UrlReputationResult:
        data = await self.client.post(endpoints.URL_CHECK, json_data={"url": url})
        return UrlReputationResult.model_validate(data or {"url": url})

    async def check_urls(self, urls: list[str]) -> list[UrlReputationResult]:
        if not urls:
            return []
        data = await self.client.post(endpoints.URL_CHECK_BATCH, json_data={"urls": urls})
        return [UrlReputationResult.model_validate(r) for r in items_from(data, "results")]
