"""
MITRE ATT&CK reference data.
"""

from datetime import timedelta

from pydantic import BaseModel, Field

from orbguard import endpoints
from orbguard.datasource.base import BaseFeatureService, items_from

# Taxonomy data changes rarely
MITRE_CACHE_TTL = timedelta(hours=24)


class MitreTactic(BaseModel):
    id: str
    name: str
    description: str = ""
    short_name: str | None = None


class MitreTechnique(BaseModel):
    id: str
    name: str
    description: str = ""
    tactics: list[str] = Field(default_factory=list)
    platforms: list[str] = Field(default_factory=list)
    is_subtechnique: bool = False


class MitreService(BaseFeatureService):
    @property
    def service_id(self) -> str:
        return "mitre"

    async def get_tactics(self) -> list[MitreTactic]:
        data = await self.client.get(endpoints.MITRE_TACTICS, cache_ttl=MITRE_CACHE_TTL)
        return [MitreTactic.model_validate(t) for t in items_from(data, "tactics")]

    async def get_techniques(self, tactic_id: str | None = None) -> list[MitreTechnique]:
        params = {"tactic": tactic_id} if tactic_id else None
        data = await self.client.get(
            endpoints.MITRE_TECHNIQUES, params=params, cache_ttl=MITRE_CACHE_TTL
        )
        return [MitreTechnique.model_validate(t) for t in items_from(data, "techniques")]

    async def get_technique(self, technique_id: str) -> MitreTechnique:
        data = await self.client.get(
            endpoints.mitre_technique(technique_id), cache_ttl=MITRE_CACHE_TTL
        )
        return MitreTechnique.model_validate(data)
