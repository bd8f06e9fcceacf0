"""
Webhook management.
"""

from loguru import logger
from pydantic import BaseModel, Field

from orbguard import endpoints
from orbguard.datasource.base import BaseFeatureService, items_from


class Webhook(BaseModel):
    id: str
    url: str
    events: list[str] = Field(default_factory=list)
    is_active: bool = True


class WebhookService(BaseFeatureService):
    @property
    def service_id(self) -> str:
        return "webhooks"

    async def list_webhooks(self, force_refresh: bool = False) -> list[Webhook]:
        data = await self.client.get(endpoints.WEBHOOKS, force_refresh=force_refresh)
        return [Webhook.model_validate(w) for w in items_from(data, "webhooks")]

    async def create_webhook(self, url: str, events: list[str]) -> Webhook:
        data = await self.client.post(
            endpoints.WEBHOOKS, json_data={"url": url, "events": events}
        )
        await self.client.clear_cache_for(endpoints.WEBHOOKS)
        return Webhook.model_validate(data)

    async def delete_webhook(self, webhook_id: str) -> None:
        await self.client.delete(endpoints.webhook(webhook_id))
        await self.client.clear_cache_for(endpoints.WEBHOOKS)
        logger.info(f"Webhook {webhook_id} deleted")
