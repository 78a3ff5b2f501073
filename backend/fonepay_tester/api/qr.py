"""
QR API Endpoints

Dynamic QR generation and status check against the provider.

Both endpoints echo the exact request sent (URL, payload, signing message
and digest) next to the provider response, so a failed call can be
diagnosed from the response alone.
"""
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field, ValidationError
from typing import Dict, Any, Optional
import logging

from ..exceptions import InputValidationError
from ..models.transactions import Credentials, Environment, REMARKS_MAX_LENGTH, TransactionRequest
from ..services.provider_gateway import ProviderGateway
from ..services.qr_service import generate_qr, check_status
from .dependencies import get_provider_gateway

logger = logging.getLogger(__name__)

router = APIRouter()


# ============================================================================
# Request Models
# ============================================================================

class GenerateQRRequest(BaseModel):
    """Request to generate a dynamic QR."""
    amount: Any
    remarks1: str = Field("Test Transaction", max_length=REMARKS_MAX_LENGTH)
    remarks2: str = Field("API Test", max_length=REMARKS_MAX_LENGTH)
    prn: Optional[str] = None
    environment: Environment = Environment.SANDBOX
    credentials: Optional[Credentials] = None


class StatusCheckRequest(BaseModel):
    """Request to check the status of a dynamic QR."""
    prn: Optional[str] = None
    environment: Environment = Environment.SANDBOX
    credentials: Optional[Credentials] = None


# ============================================================================
# Endpoints
# ============================================================================

@router.post("/generate")
async def generate_qr_endpoint(
    request: GenerateQRRequest,
    gateway: ProviderGateway = Depends(get_provider_gateway)
) -> Dict[str, Any]:
    """
    Generate a dynamic QR.

    Request Body:
        {
            "amount": "100.50",
            "remarks1": "Test Transaction",  # optional, max 25 chars
            "remarks2": "API Test",  # optional, max 25 chars
            "prn": "test-abc123",  # optional, generated when absent
            "environment": "SANDBOX" | "PRODUCTION",
            "credentials": {  # optional, default test identity otherwise
                "merchantCode": str,
                "secretKey": str,
                "username": str,
                "password": str
            }
        }

    Returns:
        {
            "requestSent": {"url": str, "payload": {...}, "signature": {...}},
            "providerResponse": Any,
            "prn": str,
            "relayUrl": str | null  # thirdpartyQrWebSocketUrl from the provider
        }

    Error Responses:
        400: Invalid amount/remarks or signing failure
        502: Provider returned non-2xx or network failure (status/body in details)
        504: Provider did not answer within the timeout
    """
    try:
        tx = TransactionRequest(
            amount=request.amount,
            prn=request.prn,
            remarks1=request.remarks1,
            remarks2=request.remarks2,
            environment=request.environment
        )
    except ValidationError as e:
        raise InputValidationError.from_errors(e.errors(), "Invalid transaction fields")

    return await generate_qr(gateway, tx, request.credentials)


@router.post("/status")
async def check_status_endpoint(
    request: StatusCheckRequest,
    gateway: ProviderGateway = Depends(get_provider_gateway)
) -> Dict[str, Any]:
    """
    Check the status of a previously generated QR.

    Request Body:
        {
            "prn": "test-abc123",
            "environment": "SANDBOX" | "PRODUCTION",
            "credentials": {...}  # optional
        }

    Returns:
        Same shape as /generate (relayUrl is null)

    Error Responses:
        400: PRN missing
        502/504: Provider failure
    """
    return await check_status(gateway, request.prn, request.environment, request.credentials)
