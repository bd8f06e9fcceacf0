"""
Threat statistics and dashboard data.
"""

from datetime import datetime

from pydantic import BaseModel, Field

from orbguard import endpoints
from orbguard.datasource.base import BaseFeatureService


class ThreatStats(BaseModel):
    """Aggregate threat intelligence counters."""

    total_indicators: int = 0
    active_indicators: int = 0
    total_campaigns: int = 0
    active_campaigns: int = 0
    total_actors: int = 0
    total_sources: int = 0
    indicators_by_type: dict[str, int] = Field(default_factory=dict)
    indicators_by_severity: dict[str, int] = Field(default_factory=dict)
    indicators_by_platform: dict[str, int] = Field(default_factory=dict)
    indicators_last_24h: int = 0
    indicators_last_7d: int = 0
    indicators_last_30d: int = 0
    last_updated: datetime | None = None


class FeatureStatus(BaseModel):
    name: str = "Unknown"
    is_enabled: bool = False
    is_healthy: bool = True
    status: str | None = None
    threats_blocked: int | None = None


class ProtectionStatus(BaseModel):
    """Per-feature protection overview."""

    is_protected: bool = False
    protection_score: float = 0.0
    protection_grade: str = "U"
    sms_protection: FeatureStatus = Field(default_factory=FeatureStatus)
    web_protection: FeatureStatus = Field(default_factory=FeatureStatus)
    app_protection: FeatureStatus = Field(default_factory=FeatureStatus)
    network_protection: FeatureStatus = Field(default_factory=FeatureStatus)
    vpn_protection: FeatureStatus = Field(default_factory=FeatureStatus)
    last_scan: datetime | None = None


class DashboardSummary(BaseModel):
    protection: ProtectionStatus = Field(default_factory=ProtectionStatus)
    recent_alerts: list[dict] = Field(default_factory=list)
    recent_scans: list[dict] = Field(default_factory=list)
    generated_at: datetime | None = None


class ThreatStatsService(BaseFeatureService):
    """Dashboard statistics. Responses are cached with the short TTL band."""

    @property
    def service_id(self) -> str:
        return "stats"

    async def get_stats(self, force_refresh: bool = False) -> ThreatStats:
        data = await self.client.get(endpoints.STATS, force_refresh=force_refresh)
        return ThreatStats.model_validate(data or {})

    async def get_dashboard_summary(self, force_refresh: bool = False) -> DashboardSummary:
        data = await self.client.get(
            endpoints.STATS_DASHBOARD, force_refresh=force_refresh
        )
        return DashboardSummary.model_validate(data or {})

    async def get_protection_status(self) -> ProtectionStatus:
        data = await self.client.get(endpoints.STATS_PROTECTION)
        return ProtectionStatus.model_validate(data or {})
