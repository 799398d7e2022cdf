"""Property-based tests for Linear webhook authentication.

Covers the three independent checks (IP allowlist, HMAC signature,
timestamp window) and the order in which the authenticator reports them.

Testing Configuration:
- Library: Hypothesis (Python)
- Minimum iterations: 100 per property test
"""

import json

import pytest
from hypothesis import given, settings, strategies as st

from src.copilot.errors import ConfigurationError
from src.copilot.webhook.auth import (
    LINEAR_WEBHOOK_IPS,
    TIMESTAMP_TOLERANCE_MS,
    WebhookAuthenticator,
    compute_signature,
    extract_webhook_timestamp,
    verify_signature,
    verify_timestamp,
)
from src.copilot.webhook.models import WebhookHeaders


SECRET = "lin_wh_test_secret"
NOW_MS = 1_700_000_000_000
LINEAR_IP = LINEAR_WEBHOOK_IPS[0]


def _body(timestamp=NOW_MS, **extra) -> bytes:
    payload = {
        "type": "Issue",
        "action": "create",
        "data": {"id": "issue-1", "title": "Crash on save"},
        "webhookTimestamp": timestamp,
    }
    payload.update(extra)
    return json.dumps(payload).encode("utf-8")


def _headers(body: bytes, secret: str = SECRET) -> WebhookHeaders:
    return WebhookHeaders(
        delivery_id="delivery-1",
        event_type="Issue",
        signature=compute_signature(body, secret),
    )


def _authenticator(now_ms: int = NOW_MS) -> WebhookAuthenticator:
    return WebhookAuthenticator(clock=lambda: now_ms)


# =============================================================================
# Signature
# =============================================================================


class TestSignature:
    """The signature is the lowercase hex HMAC-SHA256 of the raw body."""

    @given(body=st.binary(max_size=512), secret=st.text(min_size=1, max_size=64))
    @settings(max_examples=100)
    def test_signature_is_deterministic(self, body: bytes, secret: str) -> None:
        assert compute_signature(body, secret) == compute_signature(body, secret)

    @given(body=st.binary(max_size=512), secret=st.text(min_size=1, max_size=64))
    @settings(max_examples=100)
    def test_signature_is_lowercase_hex_sha256(self, body: bytes, secret: str) -> None:
        signature = compute_signature(body, secret)
        assert len(signature) == 64
        assert signature == signature.lower()
        int(signature, 16)

    @given(
        body=st.binary(min_size=1, max_size=512),
        index=st.integers(min_value=0),
        flip=st.integers(min_value=1, max_value=255),
    )
    @settings(max_examples=100)
    def test_single_byte_mutation_invalidates_signature(
        self, body: bytes, index: int, flip: int
    ) -> None:
        signature = compute_signature(body, SECRET)
        position = index % len(body)
        mutated = bytearray(body)
        mutated[position] ^= flip

        assert verify_signature(body, signature, SECRET)
        assert not verify_signature(bytes(mutated), signature, SECRET)

    @given(body=st.binary(max_size=256))
    @settings(max_examples=100)
    def test_wrong_secret_fails(self, body: bytes) -> None:
        signature = compute_signature(body, "other-secret")
        assert not verify_signature(body, signature, SECRET)

    def test_empty_signature_fails(self) -> None:
        assert not verify_signature(b"{}", "", SECRET)

    def test_uppercase_signature_fails(self) -> None:
        body = b'{"a": 1}'
        assert not verify_signature(body, compute_signature(body, SECRET).upper(), SECRET)

    def test_string_body_matches_utf8_bytes(self) -> None:
        text = '{"title": "café"}'
        assert compute_signature(text, SECRET) == compute_signature(
            text.encode("utf-8"), SECRET
        )


# =============================================================================
# Timestamp
# =============================================================================


class TestTimestamp:
    """The timestamp must be within 60 000 ms of now, inclusive."""

    def test_boundary_is_inclusive(self) -> None:
        assert verify_timestamp(NOW_MS - 60_000, NOW_MS)
        assert verify_timestamp(NOW_MS + 60_000, NOW_MS)

    def test_one_past_boundary_fails(self) -> None:
        assert not verify_timestamp(NOW_MS - 60_001, NOW_MS)
        assert not verify_timestamp(NOW_MS + 60_001, NOW_MS)

    @given(skew=st.integers(min_value=-TIMESTAMP_TOLERANCE_MS, max_value=TIMESTAMP_TOLERANCE_MS))
    @settings(max_examples=100)
    def test_within_window_passes(self, skew: int) -> None:
        assert verify_timestamp(NOW_MS + skew, NOW_MS)

    @given(skew=st.integers(min_value=TIMESTAMP_TOLERANCE_MS + 1, max_value=10**12))
    @settings(max_examples=100)
    def test_outside_window_fails(self, skew: int) -> None:
        assert not verify_timestamp(NOW_MS - skew, NOW_MS)
        assert not verify_timestamp(NOW_MS + skew, NOW_MS)

    @pytest.mark.parametrize("value", [None, "1700000000000", True, [], {}])
    def test_non_numeric_timestamp_fails(self, value) -> None:
        assert not verify_timestamp(value, NOW_MS)

    def test_extract_timestamp_from_body(self) -> None:
        assert extract_webhook_timestamp(_body()) == NOW_MS
        assert extract_webhook_timestamp(b"not json") is None
        assert extract_webhook_timestamp(b"[1, 2]") is None
        assert extract_webhook_timestamp(b"{}") is None


# =============================================================================
# IP allowlist
# =============================================================================


class TestIPAllowlist:
    """Exactly the four published Linear addresses are accepted."""

    @pytest.mark.parametrize("ip", LINEAR_WEBHOOK_IPS)
    def test_allowlisted_addresses_pass(self, ip: str) -> None:
        assert _authenticator().verify_ip(ip)

    @given(ip=st.ip_addresses(v=4).map(str))
    @settings(max_examples=100)
    def test_other_addresses_fail(self, ip: str) -> None:
        assert _authenticator().verify_ip(ip) == (ip in LINEAR_WEBHOOK_IPS)

    @pytest.mark.parametrize("ip", ["", "not-an-ip", "35.231.147.226:443", None])
    def test_malformed_addresses_fail(self, ip) -> None:
        assert not _authenticator().verify_ip(ip)

    def test_invalid_allowlist_entry_rejected(self) -> None:
        with pytest.raises(ValueError):
            WebhookAuthenticator(allowed_ips=["35.231.147.226", "bogus"])

    def test_custom_allowlist(self) -> None:
        authenticator = WebhookAuthenticator(allowed_ips=["10.0.0.1"])
        assert authenticator.verify_ip("10.0.0.1")
        assert not authenticator.verify_ip(LINEAR_IP)


# =============================================================================
# Combined validation
# =============================================================================


class TestValidate:
    """validate() is true only when all three checks pass."""

    def test_valid_request_passes(self) -> None:
        body = _body()
        assert _authenticator().validate(_headers(body), body, LINEAR_IP, SECRET)

    def test_signature_mismatch_fails(self) -> None:
        body = _body()
        headers = _headers(body, secret="wrong")
        result = _authenticator().check(headers, body, LINEAR_IP, SECRET)
        assert not result.valid
        assert result.reason == "invalid signature"

    def test_stale_timestamp_fails(self) -> None:
        body = _body(timestamp=NOW_MS - 61_000)
        result = _authenticator().check(_headers(body), body, LINEAR_IP, SECRET)
        assert not result.valid
        assert result.reason == "stale or missing timestamp"

    def test_missing_timestamp_fails(self) -> None:
        body = json.dumps({"type": "Issue"}).encode("utf-8")
        assert not _authenticator().validate(_headers(body), body, LINEAR_IP, SECRET)

    def test_ip_checked_first(self) -> None:
        body = _body(timestamp=NOW_MS - 61_000)
        result = _authenticator().check(
            _headers(body, secret="wrong"), body, "1.2.3.4", SECRET
        )
        assert result.reason == "invalid source IP"

    def test_empty_secret_is_configuration_error(self) -> None:
        body = _body()
        with pytest.raises(ConfigurationError):
            _authenticator().validate(_headers(body), body, LINEAR_IP, "")

    @given(skew=st.integers(min_value=-TIMESTAMP_TOLERANCE_MS, max_value=TIMESTAMP_TOLERANCE_MS))
    @settings(max_examples=100)
    def test_any_fresh_signed_request_passes(self, skew: int) -> None:
        body = _body(timestamp=NOW_MS + skew)
        assert _authenticator().validate(_headers(body), body, LINEAR_IP, SECRET)
