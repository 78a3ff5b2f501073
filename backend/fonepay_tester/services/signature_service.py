"""
Signature Service for Fonepay Dynamic QR Requests

Implements the provider's `dataValidation` digest: HMAC-SHA512 over a
comma-joined field list, rendered as uppercase hexadecimal.

Provider rules:
- Fields joined with a literal comma, in the exact order given
- Values used verbatim (no URL or JSON escaping, no escaping of commas)
- Digest is always 128 uppercase hex characters
"""
import hmac
import hashlib
import logging
from typing import Sequence

from ..config import settings
from ..exceptions import InvalidKeyError, EncodingError
from ..models.signatures import SignaturePayload

logger = logging.getLogger(__name__)

FIELD_DELIMITER = ","
DIGEST_LENGTH = 128


def build_message(fields: Sequence[str]) -> str:
    """
    Join signing fields with the provider delimiter.

    Raises:
        EncodingError: a field is not text
    """
    for index, field in enumerate(fields):
        if not isinstance(field, str):
            raise EncodingError(
                f"Signing field {index} is not text",
                {"index": index, "type": type(field).__name__}
            )
    return FIELD_DELIMITER.join(fields)


def compute_signature(secret_key: str, fields: Sequence[str]) -> str:
    """
    Compute the HMAC-SHA512 digest of the comma-joined fields.

    Args:
        secret_key: Merchant secret key (HMAC key)
        fields: Signing fields in provider order

    Returns:
        Uppercase hexadecimal digest, 128 characters

    Raises:
        InvalidKeyError: secret_key is empty
        EncodingError: a field is not text or cannot be UTF-8 encoded
    """
    if not secret_key:
        raise InvalidKeyError()

    message = build_message(fields)

    try:
        key_bytes = secret_key.encode("utf-8")
    except UnicodeEncodeError as e:
        raise InvalidKeyError(f"Secret key cannot be encoded as UTF-8: {e.reason}")

    try:
        message_bytes = message.encode("utf-8")
    except UnicodeEncodeError as e:
        raise EncodingError(
            f"Signing message cannot be encoded as UTF-8: {e.reason}",
            {"position": e.start}
        )

    digest = hmac.new(key_bytes, message_bytes, hashlib.sha512).hexdigest().upper()

    logger.debug(f"Signed message {message!r} with key {mask_secret(secret_key)}")

    return digest


def verify_signature(secret_key: str, fields: Sequence[str], digest_hex: str) -> bool:
    """
    Check a digest against the fields using constant-time comparison.

    Hex case is ignored; the provider only ever sends uppercase.
    """
    expected = compute_signature(secret_key, fields)
    return hmac.compare_digest(expected, digest_hex.upper())


def sign_fields(secret_key: str, fields: Sequence[str]) -> SignaturePayload:
    """Sign fields and keep the message alongside the digest."""
    return SignaturePayload(
        message=build_message(fields),
        digest_hex=compute_signature(secret_key, fields)
    )


def sign_qr_request(
    amount: str,
    prn: str,
    merchant_code: str,
    remarks1: str,
    remarks2: str,
    secret_key: str
) -> SignaturePayload:
    """Sign a QR-generation request: amount,prn,merchantCode,remarks1,remarks2."""
    return sign_fields(secret_key, [amount, prn, merchant_code, remarks1, remarks2])


def sign_status_request(prn: str, merchant_code: str, secret_key: str) -> SignaturePayload:
    """Sign a status-check request: prn,merchantCode."""
    return sign_fields(secret_key, [prn, merchant_code])


def mask_secret(value: str) -> str:
    """
    Render a secret for logs and echoed responses.

    Demo mode shows the value; otherwise only the first and last character
    survive.
    """
    if settings.demo_mode or not value:
        return value
    if len(value) <= 2:
        return "*" * len(value)
    return f"{value[0]}{'*' * (len(value) - 2)}{value[-1]}"
