import hashlib
import json

import httpx
import pytest

from orbguard import endpoints
from orbguard.datasource import (
    BreachService,
    IndicatorService,
    MitreService,
    ThreatStatsService,
    UrlReputationService,
    WebhookService,
)
from orbguard.datasource.base import items_from
from orbguard.services import ClientError
from tests.conftest import json_response


def echo_json(status_code: int = 200, body=None):
    """Respond with ``body`` and keep the decoded request payload for inspection."""
    received = []

    def handler(request: httpx.Request) -> httpx.Response:
        received.append(json.loads(request.content) if request.content else None)
        return httpx.Response(status_code, json=body if body is not None else {})

    handler.received = received
    return handler


class TestItemsFrom:
    def test_bare_list(self):
        assert items_from([{"a": 1}, "noise"], "items") == [{"a": 1}]

    def test_keyed_list(self):
        assert items_from({"tactics": [{"id": "TA1"}]}, "tactics") == [{"id": "TA1"}]

    @pytest.mark.parametrize("data", [None, "text", {"tactics": None}, {}])
    def test_missing(self, data):
        assert items_from(data, "tactics") == []


class TestThreatStatsService:
    async def test_get_stats(self, pipeline, backend):
        backend.route(
            "GET",
            endpoints.STATS,
            json_response(
                200,
                {
                    "total_indicators": 1200,
                    "active_indicators": 900,
                    "indicators_by_type": {"domain": 700},
                    "last_updated": "2026-01-01T10:00:00Z",
                },
            ),
        )

        stats = await ThreatStatsService(pipeline).get_stats()

        assert stats.total_indicators == 1200
        assert stats.indicators_by_type == {"domain": 700}
        assert stats.last_updated is not None

    async def test_force_refresh(self, pipeline, backend):
        backend.route("GET", endpoints.STATS, json_response(200, {}))
        service = ThreatStatsService(pipeline)

        await service.get_stats()
        await service.get_stats()
        await service.get_stats(force_refresh=True)

        assert len(backend.calls_to("GET", endpoints.STATS)) == 2

    async def test_protection_status_defaults(self, pipeline, backend):
        backend.route(
            "GET",
            endpoints.STATS_PROTECTION,
            json_response(200, {"is_protected": True, "web_protection": {"name": "Web"}}),
        )

        status = await ThreatStatsService(pipeline).get_protection_status()

        assert status.is_protected
        assert status.web_protection.name == "Web"
        assert status.sms_protection.name == "Unknown"


class TestIndicatorService:
    async def test_list_indicators_query(self, pipeline, backend):
        backend.route(
            "GET",
            endpoints.INDICATORS,
            json_response(
                200,
                {"data": [{"id": "i1", "value": "evil.test", "type": "domain"}], "total": 1},
            ),
        )

        page = await IndicatorService(pipeline).list_indicators(
            page=2, limit=10, severity="high", tags=["sms", "phishing"]
        )

        assert page.total == 1
        assert page.page == 2
        assert page.items[0].value == "evil.test"
        params = backend.calls_to("GET", endpoints.INDICATORS)[0].url.params
        assert dict(params) == {
            "page": "2",
            "limit": "10",
            "severity": "high",
            "tags": "sms,phishing",
        }

    async def test_check_indicators(self, pipeline, backend):
        handler = echo_json(
            200,
            {
                "results": [
                    {"value": "evil.test", "type": "domain", "is_malicious": True},
                    {"value": "1.2.3.4", "type": "ip"},
                ]
            },
        )
        backend.route("POST", endpoints.INDICATORS_CHECK, handler)
        lookups = [{"value": "evil.test", "type": "domain"}, {"value": "1.2.3.4", "type": "ip"}]

        results = await IndicatorService(pipeline).check_indicators(lookups)

        assert [r.is_malicious for r in results] == [True, False]
        assert handler.received == [{"indicators": lookups}]

    async def test_missing_indicator_raises(self, pipeline):
        with pytest.raises(ClientError):
            await IndicatorService(pipeline).get_indicator("missing")


class TestMitreService:
    async def test_tactics_cached_for_a_day(self, pipeline, backend, clock):
        backend.route(
            "GET",
            endpoints.MITRE_TACTICS,
            json_response(200, {"tactics": [{"id": "TA0001", "name": "Initial Access"}]}),
        )
        service = MitreService(pipeline)

        tactics = await service.get_tactics()
        clock.advance(23 * 3600)
        await service.get_tactics()

        assert tactics[0].name == "Initial Access"
        assert len(backend.calls_to("GET", endpoints.MITRE_TACTICS)) == 1

    async def test_techniques_filtered_by_tactic(self, pipeline, backend):
        backend.route(
            "GET",
            endpoints.MITRE_TECHNIQUES,
            json_response(200, {"techniques": [{"id": "T1566", "name": "Phishing"}]}),
        )

        techniques = await MitreService(pipeline).get_techniques("TA0001")

        assert techniques[0].id == "T1566"
        call = backend.calls_to("GET", endpoints.MITRE_TECHNIQUES)[0]
        assert call.url.params["tactic"] == "TA0001"


class TestUrlReputationService:
    async def test_check_url_is_never_cached(self, pipeline, backend):
        handler = echo_json(200, {"url": "http://evil.test", "is_safe": False, "should_block": True})
        backend.route("POST", endpoints.URL_CHECK, handler)
        service = UrlReputationService(pipeline)

        first = await service.check_url("http://evil.test")
        await service.check_url("http://evil.test")

        assert first.should_block
        assert len(handler.received) == 2

    async def test_check_urls_batch(self, pipeline, backend):
        backend.route(
            "POST",
            endpoints.URL_CHECK_BATCH,
            json_response(200, {"results": [{"url": "a"}, {"url": "b", "is_safe": False}]}),
        )

        results = await UrlReputationService(pipeline).check_urls(["a", "b"])

        assert [r.is_safe for r in results] == [True, False]


class TestBreachService:
    async def test_password_sends_only_hash_prefix(self, pipeline, backend):
        handler = echo_json(200, {"is_breached": True, "occurrences": 42})
        backend.route("POST", endpoints.DARKWEB_CHECK_PASSWORD, handler)

        result = await BreachService(pipeline).check_password("hunter2")

        prefix = hashlib.sha1(b"hunter2").hexdigest().upper()[:5]
        assert handler.received == [{"password_hash_prefix": prefix}]
        assert result.occurrences == 42

    async def test_check_email_counts_breaches(self, pipeline, backend):
        backend.route(
            "POST",
            endpoints.DARKWEB_CHECK_EMAIL,
            json_response(200, {"breaches": [{"name": "LeakCo"}, {"name": "DumpInc"}]}),
        )

        result = await BreachService(pipeline).check_email("me@example.com")

        assert result.is_breached
        assert result.breach_count == 2


class TestWebhookService:
    async def test_mutations_invalidate_listing(self, pipeline, backend):
        backend.route(
            "GET",
            endpoints.WEBHOOKS,
            json_response(200, {"webhooks": [{"id": "w1", "url": "https://hook.test"}]}),
        )
        backend.route(
            "POST",
            endpoints.WEBHOOKS,
            json_response(200, {"id": "w2", "url": "https://hook2.test", "events": ["alert"]}),
        )
        backend.route("DELETE", endpoints.webhook("w1"), lambda request: httpx.Response(204))
        service = WebhookService(pipeline)

        await service.list_webhooks()
        created = await service.create_webhook("https://hook2.test", ["alert"])
        await service.list_webhooks()
        await service.delete_webhook("w1")
        await service.list_webhooks()

        assert created.id == "w2"
        assert len(backend.calls_to("GET", endpoints.WEBHOOKS)) == 3
