"""Sinks for pipeline events.

The webhook pipeline hands every PipelineEvent to a single injected
EventEmitter. Sinks provided here:

- LoggingEventEmitter: one log record per event, level by event type
- CompositeEventEmitter: fans an event out to several sinks
- NullEventEmitter: drops everything

MetricsEventEmitter lives in metrics.py next to the Prometheus
collectors it updates.

Source:
- src/copilot/events/models.py (PipelineEvent, EventType)
"""

import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Iterable, List, Optional

from src.copilot.events.models import EventType, PipelineEvent


logger = logging.getLogger(__name__)


EVENT_LOG_LEVELS = {
    EventType.STATE_TRANSITION: logging.DEBUG,
    EventType.COMPLETION: logging.INFO,
    EventType.REJECTED: logging.WARNING,
    EventType.ERROR: logging.ERROR,
}


class EventSinkType(str, Enum):
    """Sinks that create_event_emitter knows how to build."""

    LOGGING = "logging"
    METRICS = "metrics"


class EventEmitter(ABC):
    """Destination for pipeline events.

    emit() may raise; WebhookPipeline logs and drops the failure so a
    broken sink never changes the response sent to Linear.
    """

    @abstractmethod
    async def emit(self, event: PipelineEvent) -> None:
        ...

    async def close(self) -> None:
        return None


class LoggingEventEmitter(EventEmitter):
    """Writes each event as a log record carrying the event fields as extras.

    Example:
        >>> await LoggingEventEmitter().emit(event)
        # WARNING - Pipeline rejected: delivery-123
    """

    def __init__(self, logger_name: Optional[str] = None):
        self._logger = logging.getLogger(logger_name) if logger_name else logger

    async def emit(self, event: PipelineEvent) -> None:
        subject = event.issue_id or event.delivery_id or "<unknown>"
        self._logger.log(
            EVENT_LOG_LEVELS.get(event.event_type, logging.INFO),
            "Pipeline %s: %s",
            event.event_type.value,
            subject,
            extra=event.to_log_dict(),
        )


class CompositeEventEmitter(EventEmitter):
    """Forwards every event to each child sink in order.

    A child that raises is logged and skipped; the remaining children
    still receive the event.
    """

    def __init__(self, emitters: Optional[Iterable[EventEmitter]] = None):
        self._emitters: List[EventEmitter] = list(emitters or [])

    @property
    def emitters(self) -> List[EventEmitter]:
        return list(self._emitters)

    def add_emitter(self, emitter: EventEmitter) -> None:
        self._emitters.append(emitter)

    async def emit(self, event: PipelineEvent) -> None:
        for child in self._emitters:
            try:
                await child.emit(event)
            except Exception:
                logger.exception(
                    "Event sink failed",
                    extra={
                        "sink": type(child).__name__,
                        "event_type": event.event_type.value,
                        "delivery_id": event.delivery_id,
                    },
                )

    async def close(self) -> None:
        for child in self._emitters:
            try:
                await child.close()
            except Exception:
                logger.exception(
                    "Event sink failed to close",
                    extra={"sink": type(child).__name__},
                )


class NullEventEmitter(EventEmitter):
    """Discards events. Used when no sink is configured."""

    async def emit(self, event: PipelineEvent) -> None:
        return None


def create_event_emitter(
    sink_types: Optional[List[EventSinkType]] = None,
    logger_name: Optional[str] = None,
) -> EventEmitter:
    """Build an emitter for the requested sinks.

    With no sinks, events are logged. A single sink is returned as is;
    several are wrapped in a CompositeEventEmitter.
    """
    if not sink_types:
        return LoggingEventEmitter(logger_name=logger_name)

    sinks: List[EventEmitter] = []
    for sink_type in sink_types:
        if sink_type == EventSinkType.LOGGING:
            sinks.append(LoggingEventEmitter(logger_name=logger_name))
        elif sink_type == EventSinkType.METRICS:
            # metrics.py imports this module
            from src.copilot.events.metrics import MetricsEventEmitter

            sinks.append(MetricsEventEmitter())
        else:
            logger.warning("Unknown event sink %r ignored", sink_type)

    if len(sinks) == 1:
        return sinks[0]
    return CompositeEventEmitter(sinks)
