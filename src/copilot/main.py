"""FastAPI application entry point for the Linear triage copilot.

This module exposes the Linear webhook receiver and wires the webhook
pipeline, the agent team and the Linear clients together at startup.

Endpoints:
- POST /webhooks/linear: Linear webhook receiver
- GET /health: Liveness probe
- GET /metrics: Prometheus metrics
"""

import logging
from contextlib import asynccontextmanager
from typing import Dict, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST

from .agents.dispatcher import IssueDispatcher
from .agents.runner import LangChainTaskRunner
from .agents.tools import DuckDuckGoSearchProvider, StackExchangeSearchProvider
from .config import CopilotSettings, DeliveryPolicy, get_settings
from .errors import ConfigurationError
from .events.emitter import EventSinkType, create_event_emitter
from .events.metrics import generate_metrics_output
from .linear.client import LinearClient
from .orchestrator import WebhookPipeline, error_body
from .routing.models import AgentRole
from .state.delivery import InMemoryDeliveryStore

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Global instances, initialized during lifespan startup
settings: Optional[CopilotSettings] = None
pipeline: Optional[WebhookPipeline] = None
linear_clients: Dict[AgentRole, LinearClient] = {}

UNKNOWN_SOURCE_IP = "0.0.0.0"


def _redact_secret(value: Optional[str], visible_chars: int = 4) -> str:
    """Redact a secret value, showing only the first few characters."""
    if not value:
        return "<unset>"
    if len(value) <= visible_chars:
        return "*" * len(value)
    return value[:visible_chars] + "*" * (len(value) - visible_chars)


def _log_configuration(settings: CopilotSettings) -> None:
    """Log configuration values with secrets redacted."""
    logger.info("Copilot configuration:")
    logger.info(f"  Linear API URL: {settings.linear_api_url}")
    logger.info(
        f"  Linear Webhook Secret: {_redact_secret(settings.linear_webhook_secret)}"
    )
    logger.info(f"  Manager API Key: {_redact_secret(settings.manager_api_key)}")
    logger.info(f"  Bug API Key: {_redact_secret(settings.bug_api_key)}")
    logger.info(f"  Feature API Key: {_redact_secret(settings.feature_api_key)}")
    logger.info(
        f"  Improvement API Key: {_redact_secret(settings.improvement_api_key)}"
    )
    logger.info(f"  LLM URL: {settings.llm_url}")
    logger.info(f"  LLM Model: {settings.llm_model}")
    logger.info(f"  LLM API Key: {_redact_secret(settings.llm_api_key)}")
    logger.info(f"  Agent Max Steps: {settings.agent_max_steps}")
    logger.info(f"  Delivery Policy: {settings.delivery_policy.value}")
    logger.info(f"  Delivery TTL Seconds: {settings.delivery_ttl_seconds}")
    logger.info(f"  Upstash Redis URL: {settings.upstash_redis_url or '<unset>'}")
    logger.info(
        f"  Upstash Redis Token: {_redact_secret(settings.upstash_redis_token)}"
    )
    logger.info(f"  Host: {settings.host}")
    logger.info(f"  Port: {settings.port}")


def resolve_source_ip(headers, client_host: Optional[str] = None) -> str:
    """Resolve the original client address of a request.

    Order: first entry of x-forwarded-for, x-real-ip, cf-connecting-ip,
    the socket peer, then "0.0.0.0".
    """
    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first

    for header in ("x-real-ip", "cf-connecting-ip"):
        value = headers.get(header)
        if value and value.strip():
            return value.strip()

    return client_host or UNKNOWN_SOURCE_IP


def _build_linear_clients(cfg: CopilotSettings) -> Dict[AgentRole, LinearClient]:
    keys = {
        AgentRole.MANAGER: cfg.manager_api_key,
        AgentRole.BUG: cfg.bug_api_key,
        AgentRole.FEATURE: cfg.feature_api_key,
        AgentRole.IMPROVEMENT: cfg.improvement_api_key,
    }
    return {
        role: LinearClient(api_key=key, api_url=cfg.linear_api_url)
        for role, key in keys.items()
    }


def _build_pipeline(
    cfg: CopilotSettings,
    clients: Dict[AgentRole, LinearClient],
) -> WebhookPipeline:
    """Wire all pipeline dependencies into a WebhookPipeline.

    Args:
        cfg: Validated copilot settings.
        clients: Linear client per agent role.

    Returns:
        Fully wired WebhookPipeline.
    """
    runner = LangChainTaskRunner(
        llm_url=cfg.llm_url,
        model_name=cfg.llm_model,
        api_key=cfg.llm_api_key,
    )

    dispatcher = IssueDispatcher(
        runner=runner,
        clients=clients,
        search=DuckDuckGoSearchProvider(),
        qa_search=StackExchangeSearchProvider(),
        step_limit=cfg.agent_max_steps,
    )

    delivery_store = None
    if cfg.delivery_policy == DeliveryPolicy.DEDUPLICATE:
        delivery_store = InMemoryDeliveryStore(ttl_seconds=cfg.delivery_ttl_seconds)

    event_emitter = create_event_emitter(
        [EventSinkType.LOGGING, EventSinkType.METRICS]
    )

    return WebhookPipeline(
        webhook_secret=cfg.linear_webhook_secret,
        dispatcher=dispatcher,
        notifier=clients[AgentRole.MANAGER],
        event_emitter=event_emitter,
        delivery_policy=cfg.delivery_policy,
        delivery_store=delivery_store,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown.

    Handles:
    - Configuration loading and validation (fatal on missing secrets)
    - Logging configuration (with secrets redacted)
    - Dependency wiring for the webhook pipeline
    - Closing Linear clients on shutdown
    """
    global settings, pipeline, linear_clients

    logger.info("Triage copilot starting up...")

    settings = get_settings()
    logging.getLogger().setLevel(settings.log_level)
    _log_configuration(settings)

    linear_clients = _build_linear_clients(settings)
    pipeline = _build_pipeline(settings, linear_clients)

    logger.info("Triage copilot started successfully")

    yield

    logger.info("Triage copilot shutting down...")

    for client in linear_clients.values():
        await client.close()
    linear_clients = {}
    pipeline = None

    logger.info("Triage copilot shutdown complete")


app = FastAPI(
    title="Linear Triage Copilot",
    description="Authenticates Linear webhooks and triages issues with an agent team",
    version="1.0.0",
    lifespan=lifespan,
)


@app.get("/health")
async def health():
    """Liveness probe endpoint."""
    return {"status": "healthy"}


@app.get("/metrics")
async def metrics():
    """Prometheus metrics endpoint."""
    return Response(content=generate_metrics_output(), media_type=CONTENT_TYPE_LATEST)


@app.post("/webhooks/linear")
async def linear_webhook(request: Request):
    """Linear webhook receiver endpoint.

    Authenticates the delivery against the raw body, then classifies,
    routes and dispatches it. The agent team runs before the response
    is returned, so the response carries its result.

    Returns:
        JSONResponse: 200, 401 or 500 with a JSON body.
    """
    if pipeline is None:
        logger.error("Pipeline not initialized")
        return JSONResponse(
            status_code=500,
            content=error_body(ConfigurationError("Pipeline not initialized")),
        )

    raw_body = await request.body()
    client_host = request.client.host if request.client else None
    source_ip = resolve_source_ip(request.headers, client_host)

    try:
        result = await pipeline.handle(request.headers, raw_body, source_ip)
    except Exception as exc:
        logger.exception("Error processing webhook")
        return JSONResponse(status_code=500, content=error_body(exc))

    return JSONResponse(status_code=result.status_code, content=result.body)


if __name__ == "__main__":
    import uvicorn

    # For local development, load settings to get host/port
    dev_settings = get_settings()
    uvicorn.run(
        "src.copilot.main:app",
        host=dev_settings.host,
        port=dev_settings.port,
        reload=True,
    )
