"""
Feature services built on the request pipeline.
"""

from orbguard.datasource.base import BaseFeatureService
from orbguard.datasource.darkweb import BreachService
from orbguard.datasource.indicators import IndicatorService
from orbguard.datasource.mitre import MitreService
from orbguard.datasource.stats import ThreatStatsService
from orbguard.datasource.url_reputation import UrlReputationService
from orbguard.datasource.webhooks import WebhookService

__all__ = [
    "BaseFeatureService",
    "BreachService",
    "IndicatorService",
    "MitreService",
    "ThreatStatsService",
    "UrlReputationService",
    "WebhookService",
]
