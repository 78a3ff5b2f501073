"""
Request builder tests: wire field order, PRN generation and input validation.
"""
import re

import pytest
from pydantic import ValidationError

from fonepay_tester.exceptions import InputValidationError
from fonepay_tester.models.transactions import Credentials, Environment, TransactionRequest
from fonepay_tester.services.request_builder import build_qr_request, build_status_request, generate_prn
from fonepay_tester.services.signature_service import compute_signature

from conftest import QR_VECTOR_DIGEST, STATUS_VECTOR_DIGEST


@pytest.fixture
def creds() -> Credentials:
    return Credentials(
        merchant_code="fonepay123",
        secret_key="fonepay",
        username="bijayk",
        password="password"
    )


class TestQrRequest:

    def test_payload_field_order(self, creds):
        payload, _ = build_qr_request(TransactionRequest(amount="100.50", prn="test-abc123"), creds)

        assert list(payload) == [
            "amount", "remarks1", "remarks2", "prn",
            "merchantCode", "dataValidation", "username", "password",
        ]

    def test_payload_values(self, creds):
        tx = TransactionRequest(
            amount="100.50",
            prn="test-abc123",
            remarks1="Test Transaction",
            remarks2="API Test"
        )
        payload, signature = build_qr_request(tx, creds)

        assert payload == {
            "amount": "100.50",
            "remarks1": "Test Transaction",
            "remarks2": "API Test",
            "prn": "test-abc123",
            "merchantCode": "fonepay123",
            "dataValidation": QR_VECTOR_DIGEST,
            "username": "bijayk",
            "password": "password",
        }
        assert signature.message == "100.50,test-abc123,fonepay123,Test Transaction,API Test"

    def test_generates_prn_when_missing(self, creds):
        payload, signature = build_qr_request(TransactionRequest(amount=10), creds)

        assert re.match(r"^test-[0-9a-f]{8}$", payload["prn"])
        assert payload["dataValidation"] == compute_signature(
            "fonepay",
            ["10", payload["prn"], "fonepay123", "Test Transaction", "API Test"]
        )
        assert signature.message.split(",")[1] == payload["prn"]

    def test_blank_prn_is_generated(self, creds):
        payload, _ = build_qr_request(TransactionRequest(amount="5", prn="  "), creds)
        assert payload["prn"].startswith("test-")


class TestStatusRequest:

    def test_payload_field_order_and_values(self, creds):
        payload, signature = build_status_request("test-abc123", creds)

        assert list(payload) == ["prn", "merchantCode", "dataValidation", "username", "password"]
        assert payload["dataValidation"] == STATUS_VECTOR_DIGEST
        assert signature.message == "test-abc123,fonepay123"

    @pytest.mark.parametrize("prn", [None, "", "   "])
    def test_missing_prn_rejected(self, creds, prn):
        with pytest.raises(InputValidationError, match="PRN is required"):
            build_status_request(prn, creds)


class TestTransactionRequestValidation:

    @pytest.mark.parametrize("amount, expected", [
        (100, "100"),
        (100.5, "100.5"),
        ("100.50", "100.50"),
        (" 42 ", "42"),
        ("100.505", "100.505"),
    ])
    def test_amount_normalized_to_string(self, amount, expected):
        assert TransactionRequest(amount=amount).amount == expected

    @pytest.mark.parametrize("amount", ["", "abc", "1,000", "0", "-5", "NaN", True])
    def test_invalid_amount_rejected(self, amount):
        with pytest.raises(ValidationError):
            TransactionRequest(amount=amount)

    def test_remarks_limited_to_25_characters(self):
        TransactionRequest(amount="1", remarks1="x" * 25)
        with pytest.raises(ValidationError):
            TransactionRequest(amount="1", remarks1="x" * 26)
        with pytest.raises(ValidationError):
            TransactionRequest(amount="1", remarks2="y" * 26)

    def test_environment_accepts_lowercase(self):
        assert TransactionRequest(amount="1", environment="production").environment == Environment.PRODUCTION

    def test_generated_prns_differ(self):
        assert len({generate_prn() for _ in range(200)}) == 200
