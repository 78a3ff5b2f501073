"""
Request Builder

Assembles provider-shaped payloads for the Dynamic QR API from caller-level
fields and the computed `dataValidation` signature.

Wire contract (field order matters to the provider):
- QR generation: amount, remarks1, remarks2, prn, merchantCode,
  dataValidation, username, password
- Status check: prn, merchantCode, dataValidation, username, password

Pure transformations: no I/O, nothing retained between calls.
"""
import uuid
import logging
from typing import Dict, Optional, Tuple

from ..exceptions import InputValidationError
from ..models.signatures import SignaturePayload
from ..models.transactions import Credentials, TransactionRequest
from .signature_service import sign_qr_request, sign_status_request

logger = logging.getLogger(__name__)

PRN_PREFIX = "test-"

ProviderPayload = Dict[str, str]


def generate_prn() -> str:
    """
    Generate a product reference number for a test transaction.

    Returns:
        "test-" followed by 8 hex characters, e.g. "test-1a2b3c4d"

    Uniqueness is probabilistic only; the provider owns global uniqueness.
    """
    return f"{PRN_PREFIX}{uuid.uuid4().hex[:8]}"


def build_qr_request(
    tx: TransactionRequest,
    creds: Credentials
) -> Tuple[ProviderPayload, SignaturePayload]:
    """
    Build a signed QR-generation payload.

    Args:
        tx: Transaction fields (prn generated when absent)
        creds: Merchant credentials for this call

    Returns:
        (payload in wire field order, signature used for dataValidation)
    """
    prn = tx.prn or generate_prn()

    signature = sign_qr_request(
        amount=tx.amount,
        prn=prn,
        merchant_code=creds.merchant_code,
        remarks1=tx.remarks1,
        remarks2=tx.remarks2,
        secret_key=creds.secret_key
    )

    payload = {
        "amount": str(tx.amount),
        "remarks1": tx.remarks1,
        "remarks2": tx.remarks2,
        "prn": prn,
        "merchantCode": creds.merchant_code,
        "dataValidation": signature.digest_hex,
        "username": creds.username,
        "password": creds.password,
    }

    logger.debug(f"Built QR request: prn={prn}, amount={tx.amount}, merchant={creds.merchant_code}")

    return payload, signature


def build_status_request(
    prn: Optional[str],
    creds: Credentials
) -> Tuple[ProviderPayload, SignaturePayload]:
    """
    Build a signed status-check payload.

    Raises:
        InputValidationError: prn missing or blank
    """
    if not prn or not prn.strip():
        raise InputValidationError("PRN is required")

    signature = sign_status_request(prn, creds.merchant_code, creds.secret_key)

    payload = {
        "prn": prn,
        "merchantCode": creds.merchant_code,
        "dataValidation": signature.digest_hex,
        "username": creds.username,
        "password": creds.password,
    }

    logger.debug(f"Built status request: prn={prn}, merchant={creds.merchant_code}")

    return payload, signature
