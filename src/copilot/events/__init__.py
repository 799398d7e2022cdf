"""Pipeline event emission and Prometheus metrics.

Event Emitters:
- EventEmitter: Abstract base class for event emission
- LoggingEventEmitter: Emits events as structured log entries
- CompositeEventEmitter: Emits to multiple sinks simultaneously
- MetricsEventEmitter: Updates Prometheus metrics from events
- NullEventEmitter: Discards events (for testing)

Metrics:
- CopilotMetrics: Container for all Prometheus metrics
- get_metrics: Get or create the metrics instance
- generate_metrics_output: Prometheus text output for /metrics
"""

from src.copilot.events.emitter import (
    CompositeEventEmitter,
    EventEmitter,
    EventSinkType,
    LoggingEventEmitter,
    NullEventEmitter,
    create_event_emitter,
)
from src.copilot.events.metrics import (
    CopilotMetrics,
    MetricsEventEmitter,
    generate_metrics_output,
    get_metrics,
)
from src.copilot.events.models import EventType, PipelineEvent

__all__ = [
    # Event models
    "EventType",
    "PipelineEvent",
    # Event emitters
    "EventEmitter",
    "LoggingEventEmitter",
    "CompositeEventEmitter",
    "MetricsEventEmitter",
    "NullEventEmitter",
    # Metrics
    "CopilotMetrics",
    "get_metrics",
    "generate_metrics_output",
    # Factory and configuration
    "EventSinkType",
    "create_event_emitter",
]
