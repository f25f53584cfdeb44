"""
Unit tests for signed request verification.
"""
import json

import pytest

from storefront.core.signing.canonical import build_canonical_request
from storefront.core.signing.signer import sign_request
from storefront.core.signing.verify import (
    HEADER_SIGNATURE,
    HEADER_TIMESTAMP,
    MESSAGE_INVALID_SIGNATURE,
    MESSAGE_KEY_NOT_FOUND,
    MESSAGE_SIGNATURE_REQUIRED,
    VerificationError,
    get_header,
    validate_timestamp,
    verify_request_signature,
)

USER_ID = "user-1"
URL = "http://localhost:8000/api/addToCart"
BODY = {"productId": "P1", "quantity": 2}


@pytest.fixture
def secret(key_manager):
    return key_manager.get_or_create(USER_ID)


def signed_headers(secret, method, url, body, timestamp):
    canonical = build_canonical_request(method, url, body, str(timestamp))
    return {HEADER_SIGNATURE: sign_request(canonical, secret), HEADER_TIMESTAMP: str(timestamp)}


def verify(key_manager, headers, now_ms, method="POST", url=URL, body=BODY):
    return verify_request_signature(key_manager, USER_ID, method, url, headers, body=body, now_ms=now_ms)


def flip(char):
    return "0" if char != "0" else "1"


class TestAcceptance:
    """Correctly signed requests pass."""

    def test_valid_post(self, key_manager, secret, now_ms):
        result = verify(key_manager, signed_headers(secret, "POST", URL, BODY, now_ms), now_ms)

        assert result.success
        assert result.error is None
        assert result.user_id == USER_ID
        assert result.timestamp == now_ms
        assert result.response is None

    def test_body_key_order_irrelevant(self, key_manager, secret, now_ms):
        headers = signed_headers(secret, "POST", URL, {"quantity": 2, "productId": "P1"}, now_ms)
        assert verify(key_manager, headers, now_ms, body=json.loads('{"productId":"P1","quantity":2}')).success

    def test_query_order_irrelevant(self, key_manager, secret, now_ms):
        headers = signed_headers(secret, "GET", "/api/sellers/getOrders?status=pending&b=1", None, now_ms)
        result = verify(key_manager, headers, now_ms, method="GET", url="http://shop/api/sellers/getOrders?b=1&status=pending", body=None)
        assert result.success

    def test_get_body_ignored(self, key_manager, secret, now_ms):
        headers = signed_headers(secret, "GET", "/api/auth/me", None, now_ms)
        assert verify(key_manager, headers, now_ms, method="GET", url="/api/auth/me", body={"ignored": True}).success

    def test_lowercase_header_names(self, key_manager, secret, now_ms):
        headers = {k.lower(): v for k, v in signed_headers(secret, "POST", URL, BODY, now_ms).items()}
        assert verify(key_manager, headers, now_ms).success

    @pytest.mark.parametrize("offset", [-300_000, -299_999, 0, 299_999, 300_000])
    def test_timestamp_inside_window(self, key_manager, secret, now_ms, offset):
        headers = signed_headers(secret, "POST", URL, BODY, now_ms + offset)
        assert verify(key_manager, headers, now_ms).success

    def test_empty_body_symmetry(self, key_manager, secret, now_ms):
        headers = signed_headers(secret, "POST", URL, None, now_ms)
        assert verify(key_manager, headers, now_ms, body=None).success


class TestRejection:
    """Each failure mode maps to its error and client message."""

    def test_key_not_found(self, key_manager, now_ms):
        result = verify(key_manager, {}, now_ms)

        assert not result.success
        assert result.error == VerificationError.KEY_NOT_FOUND
        assert result.client_message == MESSAGE_KEY_NOT_FOUND

    def test_key_lookup_precedes_header_check(self, key_manager, now_ms):
        headers = {HEADER_SIGNATURE: "a" * 64, HEADER_TIMESTAMP: str(now_ms)}
        assert verify(key_manager, headers, now_ms).error == VerificationError.KEY_NOT_FOUND

    @pytest.mark.parametrize("stored", ["plain-legacy-value", "abc"])
    def test_unusable_stored_key_treated_as_missing(self, key_manager, key_store, now_ms, stored):
        key_store.keys[USER_ID] = stored
        headers = {HEADER_SIGNATURE: "a" * 64, HEADER_TIMESTAMP: str(now_ms)}

        result = verify(key_manager, headers, now_ms)

        assert result.error == VerificationError.KEY_NOT_FOUND
        assert result.client_message == MESSAGE_KEY_NOT_FOUND

    @pytest.mark.parametrize("drop", [HEADER_SIGNATURE, HEADER_TIMESTAMP])
    def test_missing_header(self, key_manager, secret, now_ms, drop):
        headers = signed_headers(secret, "POST", URL, BODY, now_ms)
        del headers[drop]

        result = verify(key_manager, headers, now_ms)

        assert result.error == VerificationError.MISSING_HEADERS
        assert drop in result.error_message
        assert result.client_message == MESSAGE_SIGNATURE_REQUIRED

    def test_empty_header_counts_as_missing(self, key_manager, secret, now_ms):
        headers = signed_headers(secret, "POST", URL, BODY, now_ms)
        headers[HEADER_SIGNATURE] = ""
        assert verify(key_manager, headers, now_ms).error == VerificationError.MISSING_HEADERS

    @pytest.mark.parametrize("offset", [-300_001, 300_001, -86_400_000])
    def test_stale_timestamp(self, key_manager, secret, now_ms, offset):
        headers = signed_headers(secret, "POST", URL, BODY, now_ms + offset)

        result = verify(key_manager, headers, now_ms)

        assert result.error == VerificationError.STALE_TIMESTAMP
        assert result.client_message == MESSAGE_INVALID_SIGNATURE

    @pytest.mark.parametrize("timestamp", ["soon", "1.7e12", " 1703002034000", "0x10"])
    def test_unparseable_timestamp(self, key_manager, secret, now_ms, timestamp):
        headers = {HEADER_SIGNATURE: "a" * 64, HEADER_TIMESTAMP: timestamp}
        assert verify(key_manager, headers, now_ms).error == VerificationError.STALE_TIMESTAMP

    def test_malformed_url(self, key_manager, secret, now_ms):
        headers = signed_headers(secret, "GET", "/api/x", None, now_ms)
        result = verify(key_manager, headers, now_ms, method="GET", url="http://[::1/api/x", body=None)

        assert result.error == VerificationError.MALFORMED_URL
        assert result.client_message == MESSAGE_INVALID_SIGNATURE

    def test_every_single_character_tamper_rejected(self, key_manager, secret, now_ms):
        headers = signed_headers(secret, "POST", URL, BODY, now_ms)
        good = headers[HEADER_SIGNATURE]

        for i in range(len(good)):
            tampered = good[:i] + flip(good[i]) + good[i + 1:]
            result = verify(key_manager, {**headers, HEADER_SIGNATURE: tampered}, now_ms)
            assert result.error == VerificationError.SIGNATURE_MISMATCH, f"position {i}"

    def test_uppercase_signature_rejected(self, key_manager, secret, now_ms):
        headers = signed_headers(secret, "POST", URL, BODY, now_ms)
        headers[HEADER_SIGNATURE] = headers[HEADER_SIGNATURE].upper()
        assert verify(key_manager, headers, now_ms).error == VerificationError.SIGNATURE_MISMATCH

    def test_truncated_signature_rejected(self, key_manager, secret, now_ms):
        headers = signed_headers(secret, "POST", URL, BODY, now_ms)
        headers[HEADER_SIGNATURE] = headers[HEADER_SIGNATURE][:-1]
        assert verify(key_manager, headers, now_ms).error == VerificationError.SIGNATURE_MISMATCH

    def test_altered_body(self, key_manager, secret, now_ms):
        headers = signed_headers(secret, "POST", URL, BODY, now_ms)
        result = verify(key_manager, headers, now_ms, body={"productId": "P1", "quantity": 20})
        assert result.error == VerificationError.SIGNATURE_MISMATCH

    def test_altered_query(self, key_manager, secret, now_ms):
        headers = signed_headers(secret, "GET", "/api/sellers/getOrders?status=pending", None, now_ms)
        result = verify(key_manager, headers, now_ms, method="GET", url="/api/sellers/getOrders?status=shipped", body=None)
        assert result.error == VerificationError.SIGNATURE_MISMATCH

    def test_altered_method(self, key_manager, secret, now_ms):
        headers = signed_headers(secret, "PUT", URL, BODY, now_ms)
        assert verify(key_manager, headers, now_ms).error == VerificationError.SIGNATURE_MISMATCH

    def test_altered_timestamp(self, key_manager, secret, now_ms):
        headers = signed_headers(secret, "POST", URL, BODY, now_ms)
        headers[HEADER_TIMESTAMP] = str(now_ms + 1)
        assert verify(key_manager, headers, now_ms).error == VerificationError.SIGNATURE_MISMATCH

    def test_empty_object_does_not_match_no_body(self, key_manager, secret, now_ms):
        headers = signed_headers(secret, "POST", URL, {}, now_ms)
        assert verify(key_manager, headers, now_ms, body=None).error == VerificationError.SIGNATURE_MISMATCH

    def test_body_without_canonical_form(self, key_manager, secret, now_ms):
        headers = signed_headers(secret, "POST", URL, BODY, now_ms)
        result = verify(key_manager, headers, now_ms, body={"quantity": float("nan")})
        assert result.error == VerificationError.SIGNATURE_MISMATCH

    def test_rotated_key_invalidates_old_signatures(self, key_manager, secret, now_ms):
        headers = signed_headers(secret, "POST", URL, BODY, now_ms)
        new_secret = key_manager.regenerate(USER_ID)

        assert verify(key_manager, headers, now_ms).error == VerificationError.SIGNATURE_MISMATCH
        assert verify(key_manager, signed_headers(new_secret, "POST", URL, BODY, now_ms), now_ms).success


class TestRejectionResponse:
    """Failed results render the 403 returned to clients."""

    @pytest.mark.parametrize("headers, message", [
        ({}, MESSAGE_SIGNATURE_REQUIRED),
        ({HEADER_SIGNATURE: "a" * 64, HEADER_TIMESTAMP: "1"}, MESSAGE_INVALID_SIGNATURE),
    ])
    def test_response_body(self, key_manager, secret, now_ms, headers, message):
        response = verify(key_manager, headers, now_ms).response

        assert response.status_code == 403
        assert json.loads(response.body) == {"message": message}

    def test_internal_detail_not_exposed(self, key_manager, secret, now_ms):
        result = verify(key_manager, {HEADER_SIGNATURE: "a" * 64, HEADER_TIMESTAMP: "1"}, now_ms)
        assert str(now_ms) not in result.response.body.decode()


class TestHelpers:
    def test_get_header_case_insensitive(self):
        assert get_header({"x-signature": "abc"}, "X-Signature") == "abc"
        assert get_header({}, "X-Signature") is None

    def test_validate_timestamp(self):
        assert validate_timestamp("1000", 1000, 0) == 1000
        assert validate_timestamp("999", 1000, 0) is None
        assert validate_timestamp("", 1000, 10) is None
