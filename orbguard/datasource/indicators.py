"""
Threat indicator lookups.
"""

from typing import Any

from loguru import logger
from pydantic import BaseModel, Field

from orbguard import endpoints
from orbguard.datasource.base import BaseFeatureService, items_from


class ThreatIndicator(BaseModel):
    id: str
    value: str
    type: str = "unknown"
    severity: str = "unknown"
    confidence: float = 0.0
    tags: list[str] = Field(default_factory=list)
    campaign_id: str | None = None


class IndicatorPage(BaseModel):
    items: list[ThreatIndicator] = Field(default_factory=list)
    total: int = 0
    page: int = 1
    limit: int = 100


class IndicatorCheckResult(BaseModel):
    value: str
    type: str = "unknown"
    is_malicious: bool = False
    severity: str | None = None
    indicator: ThreatIndicator | None = None


class IndicatorService(BaseFeatureService):
    """
    Threat indicator queries.

    Listings use the medium TTL band; checks are POSTs and never cached.
    """

    @property
    def service_id(self) -> str:
        return "indicators"

    async def list_indicators(
        self,
        page: int = 1,
        limit: int = 100,
        type: str | None = None,
        severity: str | None = None,
        tags: list[str] | None = None,
        campaign: str | None = None,
    ) -> IndicatorPage:
        params: dict[str, Any] = {"page": page, "limit": limit}
        if type:
            params["type"] = type
        if severity:
            params["severity"] = severity
        if tags:
            params["tags"] = ",".join(tags)
        if campaign:
            params["campaign"] = campaign

        data = await self.client.get(endpoints.INDICATORS, params=params)
        body = data if isinstance(data, dict) else {}
        return IndicatorPage(
            items=[ThreatIndicator.model_validate(i) for i in items_from(data, "data")],
            total=body.get("total", 0),
            page=body.get("page", page),
            limit=body.get("limit", limit),
        )

    async def get_indicator(self, indicator_id: str) -> ThreatIndicator:
        data = await self.client.get(endpoints.indicator(indicator_id))
        return ThreatIndicator.model_validate(data)

    async def check_indicators(
        self, indicators: list[dict[str, str]]
    ) -> list[IndicatorCheckResult]:
        """Check ``[{"value": ..., "type": ...}]`` against threat intelligence."""
        data = await self.client.post(
            endpoints.INDICATORS_CHECK, json_data={"indicators": indicators}
        )
        results = [
            IndicatorCheckResult.model_validate(r) for r in items_from(data, "results")
        ]
        malicious = sum(1 for r in results if r.is_malicious)
        if malicious:
            logger.info(f"{malicious}/{len(results)} indicators flagged as malicious")
        return results
