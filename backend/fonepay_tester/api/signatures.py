"""
Signature API Endpoints

Signature preview: computes `dataValidation` for given fields without
calling the provider, so a digest can be compared against one produced
elsewhere.
"""
from fastapi import APIRouter
from pydantic import BaseModel, Field
from typing import Dict, Any, Literal, List
import logging

from ..exceptions import InputValidationError
from ..services.signature_service import sign_qr_request, sign_status_request, mask_secret

logger = logging.getLogger(__name__)

router = APIRouter()


class SignatureRequest(BaseModel):
    """Fields to sign; which ones are required depends on kind."""
    kind: Literal["qr", "status"] = "qr"
    amount: str = ""
    prn: str = ""
    merchant_code: str = Field("", alias="merchantCode")
    remarks1: str = ""
    remarks2: str = ""
    secret_key: str = Field("", alias="secretKey")

    model_config = {"populate_by_name": True}


REQUIRED_FIELDS = {
    "qr": ["amount", "prn", "merchantCode", "remarks1", "remarks2", "secretKey"],
    "status": ["prn", "merchantCode", "secretKey"],
}


def _missing_fields(request: SignatureRequest) -> List[str]:
    values = request.model_dump(by_alias=True)
    return [name for name in REQUIRED_FIELDS[request.kind] if not str(values[name]).strip()]


@router.post("/signature")
async def signature_preview_endpoint(request: SignatureRequest) -> Dict[str, Any]:
    """
    Compute a request signature.

    Request Body:
        {
            "kind": "qr" | "status",
            "amount": str, "prn": str, "merchantCode": str,
            "remarks1": str, "remarks2": str,  # qr only
            "secretKey": str
        }

    Returns:
        {
            "kind": str,
            "message": str,  # exact signing message
            "signature": str,  # uppercase HMAC-SHA512 hex
            "length": 128,
            "secretKey": str  # masked outside demo mode
        }
    """
    missing = _missing_fields(request)
    if missing:
        raise InputValidationError(
            f"Missing required fields: {', '.join(missing)}",
            {"missing": missing}
        )

    if request.kind == "qr":
        signature = sign_qr_request(
            amount=request.amount,
            prn=request.prn,
            merchant_code=request.merchant_code,
            remarks1=request.remarks1,
            remarks2=request.remarks2,
            secret_key=request.secret_key
        )
    else:
        signature = sign_status_request(request.prn, request.merchant_code, request.secret_key)

    logger.info(f"Signature preview ({request.kind}) for message {signature.message!r}")

    return {
        "kind": request.kind,
        "message": signature.message,
        "signature": signature.digest_hex,
        "length": len(signature.digest_hex),
        "secretKey": mask_secret(request.secret_key),
    }
