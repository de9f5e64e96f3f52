"""
Tests for webhook signature computation and verification.
"""

import hashlib
import hmac

import pytest

from src.services.payments.signature import (
    compute_signature,
    extract_signature,
    verify_signature,
)

SALT = "webhook-salt"
BODY = b'{"payment_id":"pr-1","status":"completed"}'


class TestComputeSignature:
    def test_matches_hmac_sha256_hex(self):
        expected = hmac.new(SALT.encode(), BODY, hashlib.sha256).hexdigest()

        assert compute_signature(BODY, SALT) == expected

    def test_depends_on_every_byte(self):
        assert compute_signature(BODY, SALT) != compute_signature(BODY + b" ", SALT)


class TestVerifySignature:
    def test_accepts_valid_signature(self):
        assert verify_signature(BODY, compute_signature(BODY, SALT), SALT) is True

    def test_accepts_uppercase_and_padded_signature(self):
        signature = f"  {compute_signature(BODY, SALT).upper()} "

        assert verify_signature(BODY, signature, SALT) is True

    def test_rejects_wrong_salt(self):
        assert verify_signature(BODY, compute_signature(BODY, "other"), SALT) is False

    def test_rejects_tampered_body(self):
        signature = compute_signature(BODY, SALT)

        assert verify_signature(BODY.replace(b"completed", b"refunded"), signature, SALT) is False

    @pytest.mark.parametrize("signature", [None, ""])
    def test_rejects_missing_signature(self, signature):
        assert verify_signature(BODY, signature, SALT) is False

    def test_rejects_everything_without_salt(self):
        # An unconfigured salt must not turn into an HMAC keyed by "".
        assert verify_signature(BODY, compute_signature(BODY, ""), "") is False


class TestExtractSignature:
    def test_prefers_vendor_header(self):
        headers = {"X-HitPay-HMAC-SHA256": "primary", "HMAC-SHA256": "fallback"}

        assert extract_signature(headers) == "primary"

    def test_falls_back_to_generic_header(self):
        assert extract_signature({"hmac-sha256": "fallback"}) == "fallback"

    def test_returns_none_without_header(self):
        assert extract_signature({"content-type": "application/json"}) is None
