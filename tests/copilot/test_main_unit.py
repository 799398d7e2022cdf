"""Tests for the FastAPI application routes and request wiring.

The lifespan is not run: each test installs its own pipeline on the
module so no settings or Linear clients are needed.
"""

import json
import time
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient
from starlette.datastructures import Headers

from src.copilot import main
from src.copilot.agents.protocols import AgentResult
from src.copilot.agents.tools import StackExchangeSearchProvider
from src.copilot.config import CopilotSettings
from src.copilot.events.emitter import CompositeEventEmitter
from src.copilot.orchestrator import PipelineResult, WebhookPipeline
from src.copilot.routing.models import AgentRole
from src.copilot.state.models import PipelineStage
from src.copilot.webhook.auth import LINEAR_WEBHOOK_IPS, compute_signature


SECRET = "whsec-main"


@pytest.fixture
def client():
    return TestClient(main.app)


class TestResolveSourceIp:
    @pytest.mark.parametrize(
        "headers, client_host, expected",
        [
            ({"x-forwarded-for": "35.231.147.226, 10.0.0.1"}, "10.0.0.2", "35.231.147.226"),
            ({"x-real-ip": " 52.15.16.217 "}, "10.0.0.2", "52.15.16.217"),
            ({"cf-connecting-ip": "35.243.134.228"}, None, "35.243.134.228"),
            ({"x-forwarded-for": " , 1.2.3.4", "x-real-ip": "5.6.7.8"}, None, "5.6.7.8"),
            ({}, "10.0.0.2", "10.0.0.2"),
            ({}, None, "0.0.0.0"),
        ],
    )
    def test_resolution_order(self, headers, client_host, expected):
        assert main.resolve_source_ip(Headers(headers), client_host) == expected


class TestRedaction:
    def test_redacts_all_but_prefix(self):
        assert main._redact_secret("lin_api_secret") == "lin_" + "*" * 10

    def test_short_and_missing_values(self):
        assert main._redact_secret("abc") == "***"
        assert main._redact_secret(None) == "<unset>"


class TestRoutes:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}

    def test_metrics(self, client):
        response = client.get("/metrics")
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/plain")

    def test_webhook_without_pipeline_is_500(self, client, monkeypatch):
        monkeypatch.setattr(main, "pipeline", None)

        response = client.post("/webhooks/linear", content=b"{}")

        assert response.status_code == 500
        assert response.json() == {
            "error": "Error processing webhook",
            "details": "Pipeline not initialized",
            "type": "ConfigurationError",
        }

    def test_webhook_passes_raw_body_and_resolved_ip(self, client, monkeypatch):
        pipeline = AsyncMock()
        pipeline.handle.return_value = PipelineResult(
            status_code=200,
            body={"message": "Event ignored", "details": "Event type not supported"},
            stage=PipelineStage.IGNORED,
        )
        monkeypatch.setattr(main, "pipeline", pipeline)

        response = client.post(
            "/webhooks/linear",
            content=b'{"type": "Comment"}',
            headers={"x-forwarded-for": "35.231.147.226", "Linear-Delivery": "d-1"},
        )

        assert response.status_code == 200
        assert response.json()["message"] == "Event ignored"
        headers, raw_body, source_ip = pipeline.handle.call_args.args
        assert raw_body == b'{"type": "Comment"}'
        assert source_ip == "35.231.147.226"
        assert headers["linear-delivery"] == "d-1"

    def test_unexpected_pipeline_error_is_500_envelope(self, client, monkeypatch):
        pipeline = AsyncMock()
        pipeline.handle.side_effect = RuntimeError("boom")
        monkeypatch.setattr(main, "pipeline", pipeline)

        response = client.post("/webhooks/linear", content=b"{}")

        assert response.status_code == 500
        assert response.json() == {
            "error": "Error processing webhook",
            "details": "boom",
            "type": "RuntimeError",
        }


class TestEndToEnd:
    def _signed(self, payload: dict):
        body = json.dumps(payload).encode("utf-8")
        headers = {
            "linear-delivery": "delivery-e2e",
            "linear-event": "Issue",
            "linear-signature": compute_signature(body, SECRET),
            "x-forwarded-for": LINEAR_WEBHOOK_IPS[0],
            "content-type": "application/json",
        }
        return headers, body

    def _payload(self, label: str) -> dict:
        return {
            "type": "Issue",
            "action": "create",
            "data": {
                "id": "issue-e2e",
                "title": "Add dark mode",
                "labels": {"nodes": [{"name": label}]},
            },
            "webhookTimestamp": int(time.time() * 1000),
        }

    def test_signed_feature_issue_is_processed(self, client, monkeypatch):
        dispatcher = AsyncMock()
        dispatcher.dispatch.return_value = AgentResult(text="Feature analysed")
        monkeypatch.setattr(
            main,
            "pipeline",
            WebhookPipeline(webhook_secret=SECRET, dispatcher=dispatcher, notifier=AsyncMock()),
        )
        headers, body = self._signed(self._payload("Feature"))

        response = client.post("/webhooks/linear", content=body, headers=headers)

        assert response.status_code == 200
        assert response.json() == {
            "message": "Issue processed successfully",
            "taskResult": "Feature analysed",
        }

    def test_bad_signature_is_401(self, client, monkeypatch):
        dispatcher = AsyncMock()
        monkeypatch.setattr(
            main,
            "pipeline",
            WebhookPipeline(webhook_secret=SECRET, dispatcher=dispatcher, notifier=AsyncMock()),
        )
        headers, body = self._signed(self._payload("Bug"))
        headers["linear-signature"] = "0" * 64

        response = client.post("/webhooks/linear", content=body, headers=headers)

        assert response.status_code == 401
        assert response.json()["error"] == "Invalid webhook request"
        dispatcher.dispatch.assert_not_called()


class TestWiring:
    def test_build_pipeline_uses_manager_client_as_notifier(self):
        cfg = CopilotSettings(
            linear_webhook_secret="s",
            manager_api_key="m",
            bug_api_key="b",
            feature_api_key="f",
            improvement_api_key="i",
            delivery_policy="deduplicate",
        )
        clients = main._build_linear_clients(cfg)

        pipeline = main._build_pipeline(cfg, clients)

        assert set(clients) == set(AgentRole)
        assert clients[AgentRole.BUG].api_key == "b"
        assert pipeline.notifier is clients[AgentRole.MANAGER]
        assert pipeline.dispatcher.step_limit == cfg.agent_max_steps
        assert pipeline.delivery_store is not None
        assert isinstance(pipeline.event_emitter, CompositeEventEmitter)
        assert isinstance(pipeline.dispatcher.qa_search, StackExchangeSearchProvider)
