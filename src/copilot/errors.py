"""Error taxonomy for the triage copilot.

Every error the webhook pipeline can surface to a caller derives from
CopilotError. Each subclass carries the HTTP status code it maps to so
the pipeline can build a response envelope without a lookup table.

Routing rejections are not errors: an unrecognised label is a
RoutingDecision, not an exception (see routing/router.py).
"""

from typing import Optional


class CopilotError(Exception):
    """Base class for triage copilot errors.

    Attributes:
        message: Human-readable error description.
        status_code: HTTP status code used when the error reaches a caller.
    """

    status_code: int = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ConfigurationError(CopilotError):
    """Raised when a required secret or credential is missing.

    Configuration errors are fatal: they are raised at startup and block
    all request processing.

    Attributes:
        missing: Names of the settings that were missing or invalid.
    """

    def __init__(self, message: str, missing: Optional[list[str]] = None):
        super().__init__(message)
        self.missing = list(missing or [])


class AuthenticationError(CopilotError):
    """Raised when a webhook fails IP, signature or timestamp checks."""

    status_code = 401


class PayloadError(CopilotError):
    """Raised when an accepted event is missing an identifying field."""


class DispatchError(CopilotError):
    """Raised when the agent team fails to process a routed issue.

    Attributes:
        issue_id: The Linear issue being processed.
        cause: The underlying exception raised by the collaborator.
    """

    def __init__(
        self,
        message: str,
        issue_id: str,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.issue_id = issue_id
        self.cause = cause
