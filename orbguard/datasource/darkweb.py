"""
Dark web breach monitoring.

Passwords never leave the device: only the first five hex characters of the
SHA-1 digest are sent (k-anonymity range query).
"""

import hashlib

from pydantic import BaseModel, Field

from orbguard import endpoints
from orbguard.datasource.base import BaseFeatureService, items_from


class BreachRecord(BaseModel):
    id: str | None = None
    name: str = ""
    domain: str | None = None
    breach_date: str | None = None
    data_classes: list[str] = Field(default_factory=list)
    is_verified: bool = False


class BreachCheckResult(BaseModel):
    email: str
    is_breached: bool = False
    breach_count: int = 0
    breaches: list[BreachRecord] = Field(default_factory=list)


class PasswordBreachResult(BaseModel):
    is_breached: bool = False
    occurrences: int = 0


class BreachService(BaseFeatureService):
    @property
    def service_id(self) -> str:
        return "darkweb"

    async def check_email(self, email: str) -> BreachCheckResult:
        data = await self.client.post(
            endpoints.DARKWEB_CHECK_EMAIL, json_data={"email": email}
        )
        body = data if isinstance(data, dict) else {}
        breaches = [BreachRecord.model_validate(b) for b in items_from(body, "breaches")]
        return BreachCheckResult(
            email=email,
            is_breached=body.get("is_breached", bool(breaches)),
            breach_count=body.get("breach_count", len(breaches)),
            breaches=breaches,
        )

    async def check_password(self, password: str) -> PasswordBreachResult:
        digest = hashlib.sha1(password.encode()).hexdigest().upper()
        data = await self.client.post(
            endpoints.DARKWEB_CHECK_PASSWORD,
            json_data={"password_hash_prefix": digest[:5]},
        )
        return PasswordBreachResult.model_validate(data or {})

    async def get_alerts(self) -> list[dict]:
        data = await self.client.get(endpoints.DARKWEB_ALERTS)
        return items_from(data, "alerts")
