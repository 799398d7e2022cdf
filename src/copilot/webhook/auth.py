"""Linear webhook authentication.

This module verifies that an inbound webhook genuinely comes from Linear
and is not a replay or a forgery. Three independent checks must all pass:

- IP: the source address is one of Linear's published webhook addresses
- Signature: the linear-signature header equals the lowercase hex
  HMAC-SHA256 of the raw request body keyed with the webhook secret
- Timestamp: the body's webhookTimestamp is within one minute of now

The checks are evaluated in that order and each failure is logged with
its reason. An empty webhook secret is a configuration error, not an
authentication failure.

Source:
- src/copilot/webhook/models.py (WebhookHeaders, ValidationResult)
- src/copilot/errors.py (ConfigurationError)
"""

import hashlib
import hmac
import ipaddress
import json
import logging
import time
from typing import Any, Callable, Iterable, Optional, Union

from src.copilot.errors import ConfigurationError
from src.copilot.webhook.models import ValidationResult, WebhookHeaders


logger = logging.getLogger(__name__)


# Addresses Linear sends webhooks from
LINEAR_WEBHOOK_IPS = (
    "35.231.147.226",
    "35.243.134.228",
    "34.140.253.14",
    "34.38.87.206",
)

# Maximum allowed distance between webhookTimestamp and now, inclusive
TIMESTAMP_TOLERANCE_MS = 60_000


def compute_signature(body: Union[bytes, str], secret: str) -> str:
    """Compute the lowercase hex HMAC-SHA256 of a webhook body.

    Args:
        body: The exact raw request body. Strings are UTF-8 encoded.
        secret: The shared webhook secret.

    Returns:
        The hex digest Linear sends in the linear-signature header.
    """
    if isinstance(body, str):
        body = body.encode("utf-8")
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def verify_signature(body: Union[bytes, str], signature: str, secret: str) -> bool:
    """Check a linear-signature header against the body.

    The comparison is exact (a differently cased or truncated digest
    fails) and runs in constant time.
    """
    if not isinstance(signature, str) or not signature:
        return False
    expected = compute_signature(body, secret)
    return hmac.compare_digest(
        expected.encode("utf-8"),
        signature.encode("utf-8"),
    )


def verify_timestamp(
    webhook_timestamp: Any,
    now_ms: int,
    tolerance_ms: int = TIMESTAMP_TOLERANCE_MS,
) -> bool:
    """Check that a webhook timestamp is within the tolerance window.

    Args:
        webhook_timestamp: Milliseconds since epoch from the payload.
        now_ms: Current time in milliseconds since epoch.
        tolerance_ms: Maximum allowed distance, inclusive.

    Returns:
        True when ``|now_ms - webhook_timestamp| <= tolerance_ms``.
        False for missing or non-numeric timestamps.
    """
    if isinstance(webhook_timestamp, bool):
        return False
    if not isinstance(webhook_timestamp, (int, float)):
        return False
    return abs(now_ms - webhook_timestamp) <= tolerance_ms


def extract_webhook_timestamp(body: Union[bytes, str]) -> Optional[Any]:
    """Read webhookTimestamp from a raw JSON body.

    Returns:
        The raw timestamp value, or None if the body is not a JSON
        object or has no timestamp.
    """
    try:
        payload = json.loads(body)
    except (ValueError, TypeError):
        return None
    if not isinstance(payload, dict):
        return None
    return payload.get("webhookTimestamp")


def _parse_ip(value: Any) -> Optional[Union[ipaddress.IPv4Address, ipaddress.IPv6Address]]:
    if not isinstance(value, str):
        return None
    try:
        return ipaddress.ip_address(value)
    except ValueError:
        return None


def _current_time_ms() -> int:
    return int(time.time() * 1000)


class WebhookAuthenticator:
    """Validates Linear webhook requests.

    The allowlist, tolerance window and clock are injected so alternate
    values can be used in tests; the defaults are Linear's published
    addresses, one minute, and the system clock.

    Attributes:
        allowed_ips: Frozen set of addresses allowed to deliver webhooks.
        tolerance_ms: Maximum timestamp skew in milliseconds, inclusive.

    Example:
        >>> authenticator = WebhookAuthenticator()
        >>> authenticator.validate(headers, body, "35.231.147.226", secret)
        True
    """

    def __init__(
        self,
        allowed_ips: Iterable[str] = LINEAR_WEBHOOK_IPS,
        tolerance_ms: int = TIMESTAMP_TOLERANCE_MS,
        clock: Callable[[], int] = _current_time_ms,
    ):
        """Initialize the authenticator.

        Args:
            allowed_ips: Literal IP addresses allowed to deliver webhooks.
            tolerance_ms: Maximum timestamp skew in milliseconds.
            clock: Returns the current time in milliseconds since epoch.

        Raises:
            ValueError: If an allowlist entry is not a valid IP address.
        """
        parsed = set()
        for ip in allowed_ips:
            address = _parse_ip(ip)
            if address is None:
                raise ValueError(f"Invalid allowlist address: {ip!r}")
            parsed.add(address)
        self.allowed_ips = frozenset(parsed)
        self.tolerance_ms = tolerance_ms
        self._clock = clock

    def verify_ip(self, source_ip: Any) -> bool:
        """Check that the source address is on the allowlist."""
        address = _parse_ip(source_ip)
        return address is not None and address in self.allowed_ips

    def check(
        self,
        headers: WebhookHeaders,
        raw_body: Union[bytes, str],
        source_ip: str,
        secret: str,
    ) -> ValidationResult:
        """Run all authentication checks and report the first failure.

        Args:
            headers: The linear-* headers of the request.
            raw_body: The exact raw request body.
            source_ip: The resolved client address.
            secret: The shared webhook secret.

        Returns:
            ValidationResult.ok() when all checks pass, otherwise an
            invalid result naming the failed check.

        Raises:
            ConfigurationError: If the webhook secret is empty.
        """
        if not secret:
            raise ConfigurationError(
                "Linear webhook secret is not configured",
                missing=["linear_webhook_secret"],
            )

        if not self.verify_ip(source_ip):
            logger.warning("Invalid webhook IP: %s", source_ip)
            return ValidationResult.invalid("invalid source IP")

        if not verify_signature(raw_body, headers.signature, secret):
            logger.warning(
                "Invalid webhook signature",
                extra={"delivery_id": headers.delivery_id},
            )
            return ValidationResult.invalid("invalid signature")

        webhook_timestamp = extract_webhook_timestamp(raw_body)
        if not verify_timestamp(webhook_timestamp, self._clock(), self.tolerance_ms):
            logger.warning(
                "Webhook timestamp outside tolerance window",
                extra={
                    "delivery_id": headers.delivery_id,
                    "webhook_timestamp": webhook_timestamp,
                },
            )
            return ValidationResult.invalid("stale or missing timestamp")

        return ValidationResult.ok()

    def validate(
        self,
        headers: WebhookHeaders,
        raw_body: Union[bytes, str],
        source_ip: str,
        secret: str,
    ) -> bool:
        """Return True only if IP, signature and timestamp all check out."""
        return self.check(headers, raw_body, source_ip, secret).valid
