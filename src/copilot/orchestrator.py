"""Webhook pipeline connecting all stages of a Linear delivery.

Drives one webhook delivery through:
authenticate → (deduplicate) → classify → parse → route → dispatch.

Each request gets its own PipelineRun; every stage change is validated
against the transition map and emitted as a pipeline event. All work
is delegated to injected collaborators, so the pipeline itself holds no
per-request state between calls.

On a dispatch failure the pipeline makes one best-effort attempt to
tell the reporter on the issue, then reports the original error.

Source:
- src/copilot/webhook/auth.py (WebhookAuthenticator)
- src/copilot/webhook/classifier.py (classify)
- src/copilot/webhook/handler.py (WebhookHandler)
- src/copilot/routing/router.py (LabelRouter)
- src/copilot/agents/dispatcher.py (IssueDispatcher)
- src/copilot/state/machine.py (PipelineRun)
- src/copilot/state/delivery.py (DeliveryStore)
- src/copilot/events/emitter.py (EventEmitter)
"""

import json
import logging
import time
from typing import Any, Dict, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from src.copilot.agents.dispatcher import IssueDispatcher
from src.copilot.agents.protocols import CommentPoster
from src.copilot.agents.tools import format_comment
from src.copilot.config import DeliveryPolicy
from src.copilot.errors import (
    AuthenticationError,
    ConfigurationError,
    DispatchError,
    PayloadError,
)
from src.copilot.events.emitter import EventEmitter, NullEventEmitter
from src.copilot.events.models import EventType, PipelineEvent
from src.copilot.routing.models import AgentRole, RoutingDecision
from src.copilot.routing.router import LabelRouter
from src.copilot.state.delivery import DeliveryStore, InMemoryDeliveryStore
from src.copilot.state.machine import PipelineRun
from src.copilot.state.models import PipelineStage
from src.copilot.webhook.auth import WebhookAuthenticator
from src.copilot.webhook.classifier import classify
from src.copilot.webhook.handler import WebhookHandler
from src.copilot.webhook.models import LinearIssueEvent, WebhookHeaders


logger = logging.getLogger(__name__)


ERROR_NOTIFICATION = (
    "An error occurred while processing this issue. The team has been notified."
)

UNAUTHORIZED_BODY = {
    "error": "Invalid webhook request",
    "details": "Failed to validate webhook signature or request",
}
IGNORED_MESSAGE = "Event ignored"
DUPLICATE_DELIVERY_REASON = "Duplicate delivery"
PROCESSED_MESSAGE = "Issue processed successfully"
NEEDS_LABEL_MESSAGE = "Issue needs a valid label"
NEEDS_LABEL_DETAILS = "Label must be one of: bug, feature, improvement"
ERROR_MESSAGE = "Error processing webhook"


class PipelineResult(BaseModel):
    """Outcome of one webhook delivery.

    Attributes:
        status_code: HTTP status to return to Linear.
        body: JSON response body.
        stage: Terminal stage the run ended in.
        error: The exception behind a 401 or 500 outcome, if any.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    status_code: int = Field(..., ge=100, le=599)
    body: Dict[str, Any]
    stage: PipelineStage
    error: Optional[BaseException] = Field(default=None, exclude=True)


def error_body(exc: BaseException) -> Dict[str, Any]:
    """Build the 500 response body for an exception."""
    return {
        "error": ERROR_MESSAGE,
        "details": str(exc),
        "type": type(exc).__name__,
    }


class WebhookPipeline:
    """Processes Linear webhook deliveries end to end.

    Attributes:
        authenticator: Verifies source IP, signature and timestamp.
        handler: Parses accepted payloads into LinearIssueEvents.
        router: Maps the first label to a category.
        dispatcher: Runs the agent team for an issue.
        notifier: Posts the failure notification (the manager's client).
        event_emitter: Receives pipeline events for observability.
        delivery_policy: Whether repeated delivery IDs are reprocessed.
        delivery_store: Remembers delivery IDs under the deduplicate policy.
    """

    def __init__(
        self,
        webhook_secret: str,
        dispatcher: IssueDispatcher,
        notifier: CommentPoster,
        authenticator: Optional[WebhookAuthenticator] = None,
        handler: Optional[WebhookHandler] = None,
        router: Optional[LabelRouter] = None,
        event_emitter: Optional[EventEmitter] = None,
        delivery_policy: DeliveryPolicy = DeliveryPolicy.REPROCESS,
        delivery_store: Optional[DeliveryStore] = None,
    ):
        """Initialize the pipeline.

        Raises:
            ConfigurationError: If the webhook secret is empty.
        """
        if not webhook_secret:
            raise ConfigurationError(
                "Linear webhook secret is not configured",
                missing=["linear_webhook_secret"],
            )

        self._secret = webhook_secret
        self.dispatcher = dispatcher
        self.notifier = notifier
        self.authenticator = authenticator or WebhookAuthenticator()
        self.handler = handler or WebhookHandler()
        self.router = router or LabelRouter()
        self.event_emitter = event_emitter or NullEventEmitter()
        self.delivery_policy = DeliveryPolicy(delivery_policy)
        self.delivery_store = delivery_store
        if self.delivery_policy == DeliveryPolicy.DEDUPLICATE and delivery_store is None:
            self.delivery_store = InMemoryDeliveryStore()

    async def handle(
        self,
        headers: Union[WebhookHeaders, Mapping[str, str]],
        raw_body: Union[bytes, str],
        source_ip: str,
    ) -> PipelineResult:
        """Process one webhook delivery.

        Args:
            headers: The request headers (any case) or parsed WebhookHeaders.
            raw_body: The exact raw request body.
            source_ip: The resolved client address.

        Returns:
            PipelineResult with the HTTP status, body and terminal stage.
            Dispatch failures are reported in the result, not raised.
        """
        if not isinstance(headers, WebhookHeaders):
            headers = WebhookHeaders.from_mapping(headers)

        run = PipelineRun(delivery_id=headers.delivery_id)

        validation = self.authenticator.check(headers, raw_body, source_ip, self._secret)
        if not validation.valid:
            return await self._reject(
                run,
                PipelineStage.UNAUTHORIZED,
                AuthenticationError.status_code,
                dict(UNAUTHORIZED_BODY),
                reason=validation.reason,
                error=AuthenticationError(validation.reason or "authentication failed"),
            )
        await self._transition(run, PipelineStage.VALIDATED)

        if await self._is_duplicate(run):
            return await self._reject(
                run,
                PipelineStage.IGNORED,
                200,
                {"message": IGNORED_MESSAGE, "details": DUPLICATE_DELIVERY_REASON},
                reason=DUPLICATE_DELIVERY_REASON,
            )

        payload = self._decode(raw_body)
        outcome = classify(payload)
        await self._transition(run, PipelineStage.CLASSIFIED)

        if not outcome.accepted:
            return await self._reject(
                run,
                PipelineStage.IGNORED,
                200,
                {"message": IGNORED_MESSAGE, "details": outcome.reason},
                reason=outcome.reason,
            )

        try:
            event = self._parse_event(outcome.payload, headers)
        except PayloadError as exc:
            return await self._payload_invalid(run, exc)
        run.issue_id = event.issue_id

        decision = self.router.route(event.first_label)
        await self._transition(
            run,
            PipelineStage.ROUTED if decision.is_routed else PipelineStage.REJECTED,
            details=self._decision_details(decision),
        )

        return await self._dispatch(run, event, decision)

    def _decode(self, raw_body: Union[bytes, str]) -> Any:
        """Decode a JSON body. Undecodable bodies become None and are ignored."""
        try:
            return json.loads(raw_body)
        except (TypeError, ValueError):
            logger.warning("Webhook body is not valid JSON")
            return None

    def _parse_event(
        self,
        payload: Optional[Dict[str, Any]],
        headers: WebhookHeaders,
    ) -> LinearIssueEvent:
        """Parse an accepted payload.

        Raises:
            PayloadError: If the payload yields no event or no issue ID.
        """
        event = self.handler.parse_issue_event(payload, headers)
        if event is None:
            raise PayloadError("Invalid payload: not a JSON object")
        if not event.issue_id:
            raise PayloadError("Invalid payload: missing issue ID")
        return event

    async def _is_duplicate(self, run: PipelineRun) -> bool:
        """Check and record the delivery ID under the deduplicate policy."""
        if self.delivery_policy != DeliveryPolicy.DEDUPLICATE or not run.delivery_id:
            return False

        if await self.delivery_store.seen(run.delivery_id):
            logger.info(
                "Duplicate delivery ignored",
                extra={"delivery_id": run.delivery_id},
            )
            return True

        await self.delivery_store.remember(run.delivery_id)
        return False

    async def _release_delivery(self, run: PipelineRun) -> None:
        """Forget a delivery that ended in a 500 so its re-send is processed."""
        if self.delivery_policy != DeliveryPolicy.DEDUPLICATE or not run.delivery_id:
            return
        await self.delivery_store.forget(run.delivery_id)

    async def _dispatch(
        self,
        run: PipelineRun,
        event: LinearIssueEvent,
        decision: RoutingDecision,
    ) -> PipelineResult:
        await self._transition(run, PipelineStage.DISPATCHED)
        started = time.monotonic()

        try:
            result = await self.dispatcher.dispatch(event, decision)
        except Exception as exc:
            return await self._recover_from_dispatch_failure(
                run, event, decision, exc, time.monotonic() - started
            )

        duration = time.monotonic() - started
        await self._transition(run, PipelineStage.SUCCEEDED)

        if decision.is_routed:
            body = {"message": PROCESSED_MESSAGE, "taskResult": result.text}
        else:
            body = {
                "message": NEEDS_LABEL_MESSAGE,
                "details": NEEDS_LABEL_DETAILS,
                "taskResult": result.text,
            }

        await self._emit(
            run,
            EventType.COMPLETION,
            {**self._decision_details(decision), "duration_seconds": duration},
        )
        logger.info(
            "Issue processed",
            extra={
                "issue_id": event.issue_id,
                "delivery_id": run.delivery_id,
                "routed": decision.is_routed,
                "duration_seconds": round(duration, 3),
            },
        )
        return PipelineResult(status_code=200, body=body, stage=run.stage)

    async def _recover_from_dispatch_failure(
        self,
        run: PipelineRun,
        event: LinearIssueEvent,
        decision: RoutingDecision,
        exc: Exception,
        duration: float,
    ) -> PipelineResult:
        """Log, notify the reporter once, and report the original error.

        The notification is best effort: its own failure is logged and
        dropped so that the caller always sees the dispatch error.
        """
        logger.exception(
            "Dispatch failed",
            extra={
                "issue_id": event.issue_id,
                "delivery_id": run.delivery_id,
                "error_type": type(exc).__name__,
            },
        )

        try:
            await self.notifier.post_comment(
                event.issue_id,
                format_comment(AgentRole.MANAGER, ERROR_NOTIFICATION),
            )
        except Exception:
            logger.exception(
                "Failed to post error notification on issue",
                extra={"issue_id": event.issue_id},
            )

        await self._release_delivery(run)

        await self._transition(
            run,
            PipelineStage.FAILED,
            details={"error": str(exc), "error_type": type(exc).__name__},
        )
        await self._emit(
            run,
            EventType.ERROR,
            {
                **self._decision_details(decision),
                "error_message": str(exc),
                "error_type": type(exc).__name__,
                "duration_seconds": duration,
            },
        )

        return PipelineResult(
            status_code=DispatchError.status_code,
            body=error_body(exc),
            stage=run.stage,
            error=DispatchError(str(exc), issue_id=event.issue_id, cause=exc),
        )

    async def _payload_invalid(self, run: PipelineRun, exc: PayloadError) -> PipelineResult:
        logger.error(
            "Accepted webhook has an invalid payload",
            extra={"delivery_id": run.delivery_id, "error": exc.message},
        )
        await self._release_delivery(run)
        await self._transition(
            run,
            PipelineStage.PAYLOAD_INVALID,
            details={"error": exc.message},
        )
        await self._emit(
            run,
            EventType.ERROR,
            {"error_message": exc.message, "error_type": type(exc).__name__},
        )
        return PipelineResult(
            status_code=exc.status_code,
            body=error_body(exc),
            stage=run.stage,
            error=exc,
        )

    async def _reject(
        self,
        run: PipelineRun,
        stage: PipelineStage,
        status_code: int,
        body: Dict[str, Any],
        reason: Optional[str],
        error: Optional[BaseException] = None,
    ) -> PipelineResult:
        """End the run without dispatching."""
        await self._transition(run, stage, details={"reason": reason})
        await self._emit(run, EventType.REJECTED, {"reason": reason})
        return PipelineResult(
            status_code=status_code,
            body=body,
            stage=run.stage,
            error=error,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _decision_details(decision: RoutingDecision) -> Dict[str, Any]:
        return {
            "category": decision.category.value if decision.category else None,
            "label": decision.label,
        }

    async def _transition(
        self,
        run: PipelineRun,
        to_stage: PipelineStage,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Advance the run and emit a state-transition event."""
        record = run.transition(to_stage, details)
        await self._emit(
            run,
            EventType.STATE_TRANSITION,
            {
                "from_stage": record.from_stage.value,
                "to_stage": record.to_stage.value,
                **(details or {}),
            },
        )

    async def _emit(
        self,
        run: PipelineRun,
        event_type: EventType,
        details: Dict[str, Any],
    ) -> None:
        """Emit an event, swallowing exceptions to avoid disrupting the pipeline."""
        event = PipelineEvent(
            event_type=event_type,
            delivery_id=run.delivery_id,
            issue_id=run.issue_id,
            stage=run.stage.value,
            details=details,
        )
        try:
            await self.event_emitter.emit(event)
        except Exception:
            logger.exception(
                "Failed to emit pipeline event",
                extra={
                    "event_type": event.event_type.value,
                    "delivery_id": run.delivery_id,
                },
            )
