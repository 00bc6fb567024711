"""
Tests for the M-Pesa adapter.

Tests cover:
- Phone number normalization and validation
- OAuth token exchange and caching
- STK push payload and error translation
- STK query result interpretation
- Strict callback decoding

Daraja itself is replaced by FakeDaraja (httpx.MockTransport).
"""

import base64
import json
from datetime import datetime, timedelta
from datetime import timezone as dt_timezone
from decimal import Decimal
from zoneinfo import ZoneInfo

import httpx
import pytest

from payments.adapters import (
    AccessToken,
    ChargeRequest,
    MpesaAdapter,
    MpesaConfig,
    ProviderOutcome,
    normalize_phone_number,
)
from payments.adapters.mpesa_adapter import round_to_whole_units
from payments.exceptions import (
    CallbackValidationError,
    PaymentValidationError,
    ProviderAuthenticationError,
    ProviderRequestError,
    ProviderTimeoutError,
    ProviderUnavailableError,
)
from payments.tests.daraja import stk_callback

# 10:21:15 in Nairobi (UTC+3)
FIXED_NOW = datetime(2024, 1, 31, 7, 21, 15, tzinfo=dt_timezone.utc)


@pytest.fixture
def adapter(daraja, mpesa_config, token_cache):
    return MpesaAdapter(
        mpesa_config,
        token_cache=token_cache,
        http_client=daraja.client(),
        clock=lambda: FIXED_NOW,
    )


def make_charge(contact="0712345678", amount=500):
    return ChargeRequest(
        contact=contact,
        amount=amount,
        reference="GEM1A2B3C4D",
        description="Hidden Gems - new listing",
    )


# =============================================================================
# Phone Number Tests
# =============================================================================


class TestNormalizePhoneNumber:
    """Tests for normalize_phone_number."""

    @pytest.mark.parametrize(
        "raw",
        ["+254712345678", "254712345678", "0712345678", "712345678", "0712 345 678", "+254-712-345-678"],
    )
    def test_common_formats_share_one_canonical_form(self, raw):
        """Every way of writing the same number normalizes identically."""
        assert normalize_phone_number(raw) == "254712345678"

    def test_new_01_prefix(self):
        """Safaricom's 01XX range is handled like 07XX."""
        assert normalize_phone_number("0112345678") == "254112345678"

    @pytest.mark.parametrize(
        "raw",
        ["+254712345678", "0712345678", "712345678", "12345", "", "abc", "0000", "(0712) 345-678"],
    )
    def test_is_idempotent(self, raw):
        """normalize(normalize(x)) == normalize(x)."""
        once = normalize_phone_number(raw)
        assert normalize_phone_number(once) == once

    def test_unrecognized_input_fails_validation(self, adapter):
        with pytest.raises(PaymentValidationError) as exc_info:
            adapter.validate_contact("12345")

        assert exc_info.value.error_code == "INVALID_CONTACT"

    def test_missing_contact_is_rejected(self, adapter):
        """M-Pesa needs a phone to push the prompt to."""
        with pytest.raises(PaymentValidationError) as exc_info:
            adapter.validate_contact("  ")

        assert exc_info.value.error_code == "CONTACT_REQUIRED"


class TestRoundToWholeUnits:
    @pytest.mark.parametrize(
        "amount,expected",
        [(500, 500), (Decimal("499.5"), 500), (Decimal("499.49"), 499), (749.5, 750)],
    )
    def test_rounds_half_up(self, amount, expected):
        assert round_to_whole_units(amount) == expected


# =============================================================================
# Access Token Tests
# =============================================================================


class TestGetAccessToken:
    """Tests for the OAuth client-credentials exchange."""

    def test_fetches_with_basic_auth(self, adapter, daraja):
        """Should send the consumer key and secret as basic auth."""
        token = adapter.get_access_token()

        assert token == "test-access-token"
        request = daraja.token_calls[0]
        expected = base64.b64encode(b"test-consumer-key:test-consumer-secret").decode()
        assert request.headers["Authorization"] == f"Basic {expected}"
        assert request.url.params["grant_type"] == "client_credentials"
        assert request.url.host == "sandbox.safaricom.co.ke"

    def test_caches_with_safety_margin(self, adapter, daraja, token_cache):
        """Expiry is the provider's lifetime minus the safety margin."""
        adapter.get_access_token()
        adapter.get_access_token()

        assert len(daraja.token_calls) == 1
        cached = token_cache.get(adapter.token_cache_key)
        assert cached.expires_at == FIXED_NOW + timedelta(seconds=3599 - 60)

    def test_reuses_injected_valid_token(self, adapter, daraja, token_cache):
        token_cache.set(adapter.token_cache_key, AccessToken("seeded", FIXED_NOW + timedelta(minutes=5)))

        assert adapter.get_access_token() == "seeded"
        assert daraja.token_calls == []

    def test_refreshes_expired_token(self, adapter, daraja, token_cache):
        """An expired token is never sent."""
        token_cache.set(adapter.token_cache_key, AccessToken("stale", FIXED_NOW - timedelta(seconds=1)))

        assert adapter.get_access_token() == "test-access-token"
        assert len(daraja.token_calls) == 1

    def test_rejected_credentials(self, adapter, daraja):
        daraja.queue_token(httpx.Response(400, json={"errorMessage": "Invalid Authentication passed"}))

        with pytest.raises(ProviderAuthenticationError) as exc_info:
            adapter.get_access_token()

        assert "Invalid Authentication passed" in exc_info.value.message
        assert exc_info.value.details["operation"] == "get_access_token"
        assert not exc_info.value.is_retryable


# =============================================================================
# STK Push Tests
# =============================================================================


class TestCharge:
    """Tests for MpesaAdapter.charge."""

    def test_sends_signed_payload(self, adapter, daraja):
        """Should build password, timestamp and normalized phone."""
        result = adapter.charge(make_charge(contact="+254 712 345 678", amount=Decimal("499.5")))

        body = daraja.body(daraja.push_calls[0])
        assert body["Timestamp"] == "20240131102115"
        expected_password = base64.b64encode(b"174379test-passkey20240131102115").decode()
        assert body["Password"] == expected_password
        assert body["BusinessShortCode"] == "174379"
        assert body["PartyB"] == "174379"
        assert body["TransactionType"] == "CustomerPayBillOnline"
        assert body["Amount"] == 500
        assert body["PartyA"] == "254712345678"
        assert body["PhoneNumber"] == "254712345678"
        assert body["AccountReference"] == "GEM1A2B3C4D"
        assert body["TransactionDesc"] == "Hidden Gems - new listing"
        assert body["CallBackURL"] == "https://testserver/api/v1/payments/callbacks/mpesa/"
        assert daraja.push_calls[0].headers["Authorization"] == "Bearer test-access-token"

        assert result.merchant_request_id == "29115-34620561-1"
        assert result.checkout_request_id == "ws_CO_191220191020363921"
        assert result.confirmation_message == "Success. Request accepted for processing"

    def test_invalid_phone_makes_no_call(self, adapter, daraja):
        with pytest.raises(PaymentValidationError):
            adapter.charge(make_charge(contact="12345"))

        assert daraja.requests == []

    def test_rejection_surfaces_provider_message(self, adapter, daraja):
        """A non-zero ResponseCode carries Daraja's reason verbatim."""
        daraja.queue_push(daraja.rejected_push("Invalid PhoneNumber"))

        with pytest.raises(ProviderRequestError) as exc_info:
            adapter.charge(make_charge())

        error = exc_info.value
        assert error.message == "STK Push error: Invalid PhoneNumber"
        assert error.details["provider"] == "mpesa"
        assert error.details["operation"] == "charge"
        assert error.details["provider_message"] == "Invalid PhoneNumber"

    def test_timeout(self, adapter, daraja):
        daraja.queue_push(httpx.ReadTimeout("timed out"))

        with pytest.raises(ProviderTimeoutError) as exc_info:
            adapter.charge(make_charge())

        assert exc_info.value.is_retryable

    def test_connection_error(self, adapter, daraja):
        daraja.queue_push(httpx.ConnectError("connection refused"))

        with pytest.raises(ProviderUnavailableError):
            adapter.charge(make_charge())

    def test_server_error(self, adapter, daraja):
        daraja.queue_push(httpx.Response(503, text="Service Unavailable"))

        with pytest.raises(ProviderUnavailableError) as exc_info:
            adapter.charge(make_charge())

        assert exc_info.value.details["provider_code"] == "503"

    def test_bad_request(self, adapter, daraja):
        daraja.queue_push(
            httpx.Response(400, json={"errorCode": "400.002.02", "errorMessage": "Bad Request - Invalid Amount"})
        )

        with pytest.raises(ProviderRequestError) as exc_info:
            adapter.charge(make_charge())

        assert exc_info.value.provider_code == "400.002.02"
        assert exc_info.value.provider_message == "Bad Request - Invalid Amount"

    def test_unauthorized_drops_cached_token(self, adapter, daraja, token_cache):
        """A 401 means the cached token is dead; the next call fetches a new one."""
        daraja.queue_push(httpx.Response(401, json={"errorMessage": "Invalid Access Token"}))

        with pytest.raises(ProviderAuthenticationError):
            adapter.charge(make_charge())

        assert token_cache.get(adapter.token_cache_key) is None
        adapter.charge(make_charge())
        assert len(daraja.token_calls) == 2

    def test_production_base_url(self, daraja, token_cache):
        config = MpesaConfig(
            consumer_key="k",
            consumer_secret="s",
            shortcode="600000",
            passkey="p",
            callback_url="https://example.com/cb",
            environment="production",
        )
        adapter = MpesaAdapter(config, token_cache=token_cache, http_client=daraja.client())

        adapter.get_access_token()

        assert daraja.token_calls[0].url.host == "api.safaricom.co.ke"

    def test_unknown_environment_rejected(self):
        with pytest.raises(ValueError):
            MpesaConfig(
                consumer_key="k",
                consumer_secret="s",
                shortcode="1",
                passkey="p",
                callback_url="https://example.com/cb",
                environment="staging",
            )


# =============================================================================
# STK Query Tests
# =============================================================================


class TestQueryStatus:
    """Tests for MpesaAdapter.query_status."""

    def test_still_processing_is_pending(self, adapter, daraja):
        """Daraja's 500.001.1001 error means the payer has not acted yet."""
        result = adapter.query_status("ws_CO_1")

        assert result.outcome == ProviderOutcome.PENDING
        assert not result.is_terminal
        body = daraja.body(daraja.query_calls[0])
        assert body["CheckoutRequestID"] == "ws_CO_1"
        assert body["Timestamp"] == "20240131102115"

    def test_result_code_one_is_pending(self, adapter, daraja):
        daraja.queue_query(daraja.query_result(1, "The balance is insufficient for the transaction"))

        assert adapter.query_status("ws_CO_1").outcome == ProviderOutcome.PENDING

    def test_success(self, adapter, daraja):
        daraja.queue_query(daraja.query_result(0))

        result = adapter.query_status("ws_CO_1")

        assert result.outcome == ProviderOutcome.COMPLETED
        assert result.result_code == 0
        assert result.is_terminal

    def test_cancelled_by_user(self, adapter, daraja):
        daraja.queue_query(daraja.query_result(1032, "Request cancelled by user"))

        result = adapter.query_status("ws_CO_1")

        assert result.outcome == ProviderOutcome.FAILED
        assert result.message == "Payment cancelled by user"
        assert result.result_description == "Request cancelled by user"

    def test_other_codes_fail_with_provider_description(self, adapter, daraja):
        daraja.queue_query(daraja.query_result(2001, "The initiator information is invalid."))

        result = adapter.query_status("ws_CO_1")

        assert result.outcome == ProviderOutcome.FAILED
        assert result.message == "The initiator information is invalid."

    def test_other_server_errors_raise(self, adapter, daraja):
        daraja.queue_query(httpx.Response(500, json={"errorCode": "500.003.02", "errorMessage": "System busy"}))

        with pytest.raises(ProviderUnavailableError):
            adapter.query_status("ws_CO_1")


# =============================================================================
# Callback Tests
# =============================================================================


class TestParseCallback:
    """Tests for strict callback decoding."""

    def test_success_callback(self, adapter):
        data = adapter.parse_callback(json.dumps(stk_callback("ws_CO_1")).encode())

        assert data.checkout_request_id == "ws_CO_1"
        assert data.merchant_request_id == "29115-34620561-1"
        assert data.result_code == 0
        assert data.outcome == ProviderOutcome.COMPLETED
        assert data.provider_receipt == "NLJ7RT61SV"
        assert data.amount == Decimal("500")
        assert data.contact == "254712345678"
        assert data.transaction_timestamp == datetime(2024, 1, 31, 10, 21, 15, tzinfo=ZoneInfo("Africa/Nairobi"))

    def test_failure_callback(self, adapter):
        data = adapter.parse_callback(
            stk_callback("ws_CO_1", result_code=1032, result_desc="Request cancelled by user")
        )

        assert data.outcome == ProviderOutcome.FAILED
        assert data.result_description == "Request cancelled by user"
        assert data.provider_receipt is None
        assert data.amount is None

    def test_not_json(self, adapter):
        with pytest.raises(CallbackValidationError):
            adapter.parse_callback(b"<xml/>")

    @pytest.mark.parametrize(
        "payload",
        [
            {},
            {"Body": {}},
            {"Body": {"stkCallback": {"CheckoutRequestID": "ws_CO_1"}}},
            {
                "Body": {
                    "stkCallback": {
                        "MerchantRequestID": "m",
                        "CheckoutRequestID": "ws_CO_1",
                        "ResultCode": "not-a-number",
                        "ResultDesc": "x",
                    }
                }
            },
            [1, 2, 3],
        ],
    )
    def test_wrong_shape_fails_closed(self, adapter, payload):
        """Shape mismatches raise a typed error, never KeyError/TypeError."""
        with pytest.raises(CallbackValidationError) as exc_info:
            adapter.parse_callback(payload)

        assert exc_info.value.error_code == "INVALID_CALLBACK"

    def test_success_without_metadata_is_flagged(self, adapter):
        with pytest.raises(CallbackValidationError) as exc_info:
            adapter.parse_callback(stk_callback("ws_CO_1", result_code=0, include_metadata=False))

        assert exc_info.value.error_code == "CALLBACK_METADATA_MISSING"
        assert exc_info.value.details["checkout_request_id"] == "ws_CO_1"

    def test_malformed_transaction_date(self, adapter):
        with pytest.raises(CallbackValidationError):
            adapter.parse_callback(stk_callback("ws_CO_1", transaction_date="yesterday"))
