"""Prometheus metrics for webhook pipeline observability.

Metrics are exposed at the ``/metrics`` endpoint in Prometheus format.

Metrics Defined:
- copilot_webhook_outcomes_total: Counter of deliveries by terminal stage
- copilot_issues_routed_total: Counter of routing decisions by category
- copilot_dispatch_failures_total: Counter of failed dispatches by category
- copilot_dispatch_duration_seconds: Histogram of agent dispatch time

The MetricsEventEmitter updates these from pipeline events.

Source:
- src/copilot/events/models.py (PipelineEvent, EventType)
- src/copilot/state/models.py (PipelineStage)
"""

import logging
from typing import Optional

from prometheus_client import (
    REGISTRY,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

from src.copilot.events.emitter import EventEmitter
from src.copilot.events.models import EventType, PipelineEvent


logger = logging.getLogger(__name__)


# Agent runs take seconds to a few minutes
DEFAULT_DURATION_BUCKETS = (
    0.5,
    1.0,
    2.5,
    5.0,
    10.0,
    30.0,
    60.0,
    120.0,
    300.0,
)

# Label value used when an issue was not routed to a category
UNROUTED = "none"


class CopilotMetrics:
    """Container for the pipeline's Prometheus metrics.

    Pass a custom registry in tests to avoid duplicate registration in
    the process-wide default registry.

    Attributes:
        registry: The Prometheus registry for these metrics.
        webhook_outcomes_total: Deliveries by terminal stage.
        issues_routed_total: Routing decisions by category.
        dispatch_failures_total: Failed dispatches by category.
        dispatch_duration_seconds: Dispatch time by category.
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry or REGISTRY

        self.webhook_outcomes_total = Counter(
            "copilot_webhook_outcomes_total",
            "Webhook deliveries by terminal pipeline stage",
            labelnames=["stage"],
            registry=self.registry,
        )

        self.issues_routed_total = Counter(
            "copilot_issues_routed_total",
            "Issues routed to each category, 'none' for rejected labels",
            labelnames=["category"],
            registry=self.registry,
        )

        self.dispatch_failures_total = Counter(
            "copilot_dispatch_failures_total",
            "Agent dispatches that raised an error",
            labelnames=["category"],
            registry=self.registry,
        )

        self.dispatch_duration_seconds = Histogram(
            "copilot_dispatch_duration_seconds",
            "Time spent running the agent team in seconds",
            labelnames=["category"],
            buckets=DEFAULT_DURATION_BUCKETS,
            registry=self.registry,
        )

    def record_outcome(self, stage: str) -> None:
        self.webhook_outcomes_total.labels(stage=stage).inc()

    def record_routing(self, category: Optional[str]) -> None:
        self.issues_routed_total.labels(category=category or UNROUTED).inc()

    def record_dispatch(
        self,
        category: Optional[str],
        duration_seconds: Optional[float],
        success: bool,
    ) -> None:
        """Record one dispatch attempt.

        Args:
            category: Routed category, None for a rejected label.
            duration_seconds: Time the dispatch took, if measured.
            success: Whether the agent team completed without error.
        """
        label = category or UNROUTED
        if not success:
            self.dispatch_failures_total.labels(category=label).inc()
        if duration_seconds is not None:
            self.dispatch_duration_seconds.labels(category=label).observe(
                duration_seconds
            )


_default_metrics: Optional[CopilotMetrics] = None


def get_metrics(registry: Optional[CollectorRegistry] = None) -> CopilotMetrics:
    """Get the global metrics instance, or a new one for a custom registry."""
    global _default_metrics

    if registry is not None:
        return CopilotMetrics(registry=registry)

    if _default_metrics is None:
        _default_metrics = CopilotMetrics()

    return _default_metrics


def generate_metrics_output(registry: Optional[CollectorRegistry] = None) -> bytes:
    """Render a registry in Prometheus text format for ``/metrics``."""
    return generate_latest(registry or REGISTRY)


class MetricsEventEmitter(EventEmitter):
    """Event emitter that updates Prometheus metrics.

    - STATE_TRANSITION into routed/rejected: issues_routed_total
    - COMPLETION: outcome counter and dispatch duration
    - ERROR: outcome counter, dispatch failure and duration
    - REJECTED: outcome counter
    """

    def __init__(
        self,
        metrics: Optional[CopilotMetrics] = None,
        registry: Optional[CollectorRegistry] = None,
    ):
        self._metrics = metrics if metrics is not None else get_metrics(registry)

    @property
    def metrics(self) -> CopilotMetrics:
        return self._metrics

    async def emit(self, event: PipelineEvent) -> None:
        try:
            if event.event_type == EventType.STATE_TRANSITION:
                self._handle_state_transition(event)
            elif event.event_type == EventType.COMPLETION:
                self._metrics.record_outcome(event.stage)
                self._record_dispatch(event, success=True)
            elif event.event_type == EventType.ERROR:
                self._metrics.record_outcome(event.stage)
                self._record_dispatch(event, success=False)
            elif event.event_type == EventType.REJECTED:
                self._metrics.record_outcome(event.stage)
        except Exception:
            logger.exception(
                "Metrics update failed",
                extra={
                    "event_type": event.event_type.value,
                    "delivery_id": event.delivery_id,
                },
            )

    def _handle_state_transition(self, event: PipelineEvent) -> None:
        to_stage = event.details.get("to_stage")
        if to_stage in ("routed", "rejected"):
            self._metrics.record_routing(event.details.get("category"))

    def _record_dispatch(self, event: PipelineEvent, success: bool) -> None:
        # Payload faults end before any dispatch happens
        if "duration_seconds" not in event.details:
            return
        duration = event.details.get("duration_seconds")
        self._metrics.record_dispatch(
            category=event.details.get("category"),
            duration_seconds=float(duration) if duration is not None else None,
            success=success,
        )
