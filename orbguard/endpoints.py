"""
Backend endpoint paths and default cache lifetimes per endpoint family.
"""

from datetime import timedelta

from orbguard.settings import Settings

V1 = "/api/v1"

# Auth
AUTH_REFRESH = f"{V1}/auth/refresh"
AUTH_DEVICE = f"{V1}/auth/device"

# Indicators
INDICATORS = f"{V1}/indicators"
INDICATORS_CHECK = f"{V1}/indicators/check"

# URL protection
URL_CHECK = f"{V1}/url/check"
URL_CHECK_BATCH = f"{V1}/url/check/batch"

# Dark web monitoring
DARKWEB_CHECK_EMAIL = f"{V1}/darkweb/check/email"
DARKWEB_CHECK_PASSWORD = f"{V1}/darkweb/check/password"
DARKWEB_ALERTS = f"{V1}/darkweb/alerts"

# MITRE ATT&CK
MITRE_TACTICS = f"{V1}/mitre/tactics"
MITRE_TECHNIQUES = f"{V1}/mitre/techniques"

# Statistics & dashboard
STATS = f"{V1}/stats"
STATS_DASHBOARD = f"{V1}/stats/dashboard"
STATS_PROTECTION = f"{V1}/stats/protection"

# Webhooks
WEBHOOKS = f"{V1}/webhooks"


def indicator(indicator_id: str) -> str:
    return f"{INDICATORS}/{indicator_id}"


def mitre_technique(technique_id: str) -> str:
    return f"{MITRE_TECHNIQUES}/{technique_id}"


def webhook(webhook_id: str) -> str:
    return f"{WEBHOOKS}/{webhook_id}"


# Path fragments per TTL band, checked in order. Anything unmatched is "short".
_SHORT_MARKERS = ("/stats", "/dashboard")
_MEDIUM_MARKERS = ("/indicators", "/rules")
_LONG_MARKERS = ("/mitre", "/trackers")


def default_ttl_for(path: str, settings: Settings) -> timedelta:
    """Pick the default cache lifetime for an endpoint path."""
    if any(marker in path for marker in _SHORT_MARKERS):
        return timedelta(seconds=settings.cache_ttl_short)
    if any(marker in path for marker in _MEDIUM_MARKERS):
        return timedelta(seconds=settings.cache_ttl_medium)
    if any(marker in path for marker in _LONG_MARKERS):
        return timedelta(seconds=settings.cache_ttl_long)
    return timedelta(seconds=settings.cache_ttl_short)
