"""
OrbGuard client entry point
Initializes the request pipeline and prints a dashboard snapshot
"""

import asyncio
import platform
import uuid

from loguru import logger

from orbguard.datasource import MitreService, ThreatStatsService
from orbguard.datastore.repositories import SqlCredentialStore
from orbguard.services import ApiError, RequestPipeline
from orbguard.settings import load_settings


async def describe_device() -> dict:
    """Device data sent on first registration"""
    return {
        "platform": platform.system().lower(),
        "model": platform.machine(),
        "version": platform.release(),
        "device_id": uuid.uuid4().hex,
    }


async def main() -> None:
    settings = load_settings()
    store = SqlCredentialStore(settings.credentials_db_url)

    logger.info("Starting OrbGuard client...")
    try:
        async with RequestPipeline(
            settings, store, device_info_provider=describe_device
        ) as api:
            stats = await ThreatStatsService(api).get_stats()
            logger.info(
                f"Indicators: {stats.total_indicators} total, "
                f"{stats.active_indicators} active, "
                f"{stats.indicators_last_24h} in the last 24h"
            )

            tactics = await MitreService(api).get_tactics()
            logger.info(f"MITRE tactics: {len(tactics)}")

            logger.info(f"Pipeline status: {api.get_health_status()}")

    except ApiError as e:
        logger.error(f"Request failed [{e.code}]: {e.message}")
    finally:
        await store.close()
        logger.info("OrbGuard client stopped")


if __name__ == "__main__":
    asyncio.run(main())
