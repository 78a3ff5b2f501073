"""
Pydantic CallRecord Model

One entry per attempted outbound provider call, kept in the bounded
in-memory call history for later inspection.
"""
import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional
from pydantic import BaseModel, Field


class CallCategory(str, Enum):
    """Which provider operation an outbound call belongs to."""
    QR_GENERATION = "QR_GENERATION"
    STATUS_CHECK = "STATUS_CHECK"
    OTHER = "OTHER"


class CallRecord(BaseModel):
    """
    Outbound call with both sides of the exchange.

    Notes:
    - http_status is 0 when no response was received (timeout, network error)
    - error is set for failed calls: {"kind": ..., "message": ...}
    """
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    category: CallCategory
    method: str
    url: str
    http_status: int = Field(0, alias="httpStatus")
    duration_ms: int = Field(0, alias="durationMs", ge=0)
    request_headers: Dict[str, str] = Field(default_factory=dict, alias="requestHeaders")
    request_body: Any = Field(None, alias="requestBody")
    response_headers: Dict[str, str] = Field(default_factory=dict, alias="responseHeaders")
    response_body: Any = Field(None, alias="responseBody")
    error: Optional[Dict[str, Any]] = None

    model_config = {
        "populate_by_name": True,
        "json_schema_extra": {
            "example": {
                "id": "0b6c1f9e-3a43-4d0c-9c55-2f1f3c1c2d11",
                "timestamp": "2025-10-17T14:35:00Z",
                "category": "STATUS_CHECK",
                "method": "POST",
                "url": "https://uat-new-merchant-api.fonepay.com/api/merchant/"
                       "merchantDetailsForThirdParty/thirdPartyDynamicQrGetStatus",
                "httpStatus": 200,
                "durationMs": 412,
                "requestHeaders": {"Content-Type": "application/json"},
                "requestBody": {"prn": "test-abc123", "merchantCode": "fonepay123"},
                "responseHeaders": {"content-type": "application/json"},
                "responseBody": {"paymentStatus": "pending"},
                "error": None
            }
        }
    }
