"""
Pydantic Transaction Models

Caller-level inputs for the Dynamic QR API: credentials, target environment
and the transaction fields that get signed.
"""
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field, field_validator


REMARKS_MAX_LENGTH = 25


class Environment(str, Enum):
    """Deployment target of the remote provider."""
    SANDBOX = "SANDBOX"
    PRODUCTION = "PRODUCTION"

    @classmethod
    def _missing_(cls, value):
        # Accept lowercase spellings from query strings and form fields.
        if isinstance(value, str):
            for member in cls:
                if member.value == value.upper():
                    return member
        return None


class Credentials(BaseModel):
    """
    Merchant identity used for one request/response cycle.

    secret_key is the HMAC key; it never leaves this process except when
    demo mode echoes it back in the request description.
    """
    merchant_code: str = Field(alias="merchantCode", min_length=1)
    secret_key: str = Field(alias="secretKey")
    username: str
    password: str

    model_config = {
        "populate_by_name": True,
        "frozen": True,
    }


class TransactionRequest(BaseModel):
    """
    QR-generation input.

    Notes:
    - amount is kept as a decimal string and signed verbatim
    - prn is optional; the request builder generates one when absent
    - remarks are limited to 25 characters by the provider
    """
    amount: str
    prn: Optional[str] = None
    remarks1: str = Field("Test Transaction", max_length=REMARKS_MAX_LENGTH)
    remarks2: str = Field("API Test", max_length=REMARKS_MAX_LENGTH)
    environment: Environment = Environment.SANDBOX

    model_config = {
        "json_schema_extra": {
            "example": {
                "amount": "100.50",
                "prn": "test-abc123",
                "remarks1": "Test Transaction",
                "remarks2": "API Test",
                "environment": "SANDBOX"
            }
        }
    }

    @field_validator("amount", mode="before")
    @classmethod
    def stringify_amount(cls, v):
        """Accept numbers as well as strings."""
        if isinstance(v, bool):
            raise ValueError("Amount must be a number or a decimal string")
        if isinstance(v, (int, float, Decimal)):
            return str(v)
        return v

    @field_validator("amount")
    @classmethod
    def amount_is_positive_decimal(cls, v: str) -> str:
        """Reject empty, non-numeric, separated or non-positive amounts."""
        v = v.strip()
        if not v:
            raise ValueError("Amount is required")
        if "," in v:
            raise ValueError("Amount must not contain thousands separators")
        try:
            value = Decimal(v)
        except InvalidOperation:
            raise ValueError(f"Amount is not a decimal number: {v!r}")
        if not value.is_finite() or value <= 0:
            raise ValueError("Amount must be greater than zero")
        return v

    @field_validator("prn")
    @classmethod
    def blank_prn_is_none(cls, v: Optional[str]) -> Optional[str]:
        """An empty PRN means "generate one"."""
        if v is None:
            return v
        v = v.strip()
        return v or None
