"""Unit tests for pipeline events, emitters and Prometheus metrics."""

import asyncio
import logging
from unittest.mock import AsyncMock

import pytest
from prometheus_client import CollectorRegistry

from src.copilot.events.emitter import (
    CompositeEventEmitter,
    EventSinkType,
    LoggingEventEmitter,
    NullEventEmitter,
    create_event_emitter,
)
from src.copilot.events.metrics import (
    CopilotMetrics,
    MetricsEventEmitter,
    generate_metrics_output,
)
from src.copilot.events.models import EventType, PipelineEvent


def run_async(coro):
    return asyncio.run(coro)


def _event(event_type=EventType.COMPLETION, stage="succeeded", **details) -> PipelineEvent:
    return PipelineEvent(
        event_type=event_type,
        delivery_id="d-1",
        issue_id="issue-1",
        stage=stage,
        details=details,
    )


@pytest.fixture
def registry():
    return CollectorRegistry()


@pytest.fixture
def metrics(registry):
    return CopilotMetrics(registry=registry)


class TestPipelineEvent:
    def test_log_dict_flattens_details(self):
        record = _event(category="bug", duration_seconds=1.5).to_log_dict()

        assert record["event_type"] == "completion"
        assert record["delivery_id"] == "d-1"
        assert record["category"] == "bug"
        assert record["duration_seconds"] == 1.5
        assert record["timestamp"].endswith("+00:00")

    def test_stage_is_required(self):
        with pytest.raises(ValueError):
            PipelineEvent(event_type=EventType.ERROR, stage="")


class TestLoggingEventEmitter:
    @pytest.mark.parametrize(
        "event_type, level",
        [
            (EventType.STATE_TRANSITION, logging.DEBUG),
            (EventType.COMPLETION, logging.INFO),
            (EventType.REJECTED, logging.WARNING),
            (EventType.ERROR, logging.ERROR),
        ],
    )
    def test_log_levels(self, caplog, event_type, level):
        emitter = LoggingEventEmitter(logger_name="copilot.test.events")

        with caplog.at_level(logging.DEBUG, logger="copilot.test.events"):
            run_async(emitter.emit(_event(event_type=event_type, reason="r")))

        assert len(caplog.records) == 1
        record = caplog.records[0]
        assert record.levelno == level
        assert record.issue_id == "issue-1"
        assert record.reason == "r"


class TestCompositeEventEmitter:
    def test_failure_in_one_sink_does_not_stop_others(self):
        failing = AsyncMock()
        failing.emit.side_effect = RuntimeError("sink down")
        healthy = AsyncMock()
        composite = CompositeEventEmitter([failing, healthy])
        event = _event()

        run_async(composite.emit(event))

        healthy.emit.assert_awaited_once_with(event)

    def test_add_emitter_and_close(self):
        child = AsyncMock()
        composite = CompositeEventEmitter()
        composite.add_emitter(child)

        run_async(composite.close())

        assert composite.emitters == [child]
        child.close.assert_awaited_once()

    def test_null_emitter_accepts_anything(self):
        run_async(NullEventEmitter().emit(_event()))


class TestCreateEventEmitter:
    def test_default_is_logging(self):
        assert isinstance(create_event_emitter(), LoggingEventEmitter)

    def test_multiple_sinks_are_composed(self):
        emitter = create_event_emitter([EventSinkType.LOGGING, EventSinkType.METRICS])

        assert isinstance(emitter, CompositeEventEmitter)
        assert [type(e) for e in emitter.emitters] == [LoggingEventEmitter, MetricsEventEmitter]


class TestMetricsEventEmitter:
    def test_routing_transition_counts_category(self, registry, metrics):
        emitter = MetricsEventEmitter(metrics=metrics)

        run_async(
            emitter.emit(
                _event(
                    EventType.STATE_TRANSITION,
                    stage="routed",
                    from_stage="classified",
                    to_stage="routed",
                    category="bug",
                )
            )
        )
        run_async(
            emitter.emit(
                _event(
                    EventType.STATE_TRANSITION,
                    stage="rejected",
                    from_stage="classified",
                    to_stage="rejected",
                    category=None,
                )
            )
        )

        assert registry.get_sample_value(
            "copilot_issues_routed_total", {"category": "bug"}
        ) == 1.0
        assert registry.get_sample_value(
            "copilot_issues_routed_total", {"category": "none"}
        ) == 1.0

    def test_completion_records_outcome_and_duration(self, registry, metrics):
        emitter = MetricsEventEmitter(metrics=metrics)

        run_async(emitter.emit(_event(category="feature", duration_seconds=2.0)))

        assert registry.get_sample_value(
            "copilot_webhook_outcomes_total", {"stage": "succeeded"}
        ) == 1.0
        assert registry.get_sample_value(
            "copilot_dispatch_duration_seconds_count", {"category": "feature"}
        ) == 1.0
        assert registry.get_sample_value(
            "copilot_dispatch_failures_total", {"category": "feature"}
        ) is None

    def test_dispatch_error_counts_failure(self, registry, metrics):
        emitter = MetricsEventEmitter(metrics=metrics)

        run_async(
            emitter.emit(
                _event(
                    EventType.ERROR,
                    stage="failed",
                    category="bug",
                    error_type="TimeoutError",
                    duration_seconds=0.4,
                )
            )
        )

        assert registry.get_sample_value(
            "copilot_dispatch_failures_total", {"category": "bug"}
        ) == 1.0
        assert registry.get_sample_value(
            "copilot_webhook_outcomes_total", {"stage": "failed"}
        ) == 1.0

    def test_payload_error_is_not_a_dispatch(self, registry, metrics):
        emitter = MetricsEventEmitter(metrics=metrics)

        run_async(emitter.emit(_event(EventType.ERROR, stage="payload_invalid", error_type="PayloadError")))

        assert registry.get_sample_value(
            "copilot_webhook_outcomes_total", {"stage": "payload_invalid"}
        ) == 1.0
        assert registry.get_sample_value(
            "copilot_dispatch_failures_total", {"category": "none"}
        ) is None

    def test_rejected_records_outcome(self, registry, metrics):
        emitter = MetricsEventEmitter(metrics=metrics)

        run_async(emitter.emit(_event(EventType.REJECTED, stage="unauthorized", reason="x")))

        assert registry.get_sample_value(
            "copilot_webhook_outcomes_total", {"stage": "unauthorized"}
        ) == 1.0

    def test_metrics_output_is_prometheus_text(self, registry, metrics):
        metrics.record_outcome("ignored")

        output = generate_metrics_output(registry).decode("utf-8")

        assert 'copilot_webhook_outcomes_total{stage="ignored"} 1.0' in output
