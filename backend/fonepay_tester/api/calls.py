"""
Call Log API Endpoints

Inspection and clearing of the in-memory outbound call history.
"""
from fastapi import APIRouter, Depends, Query
from typing import Dict, Any, Optional
import logging

from ..exceptions import InputValidationError
from ..models.calls import CallCategory
from ..services.call_recorder import CallRecorder
from .dependencies import get_call_recorder

logger = logging.getLogger(__name__)

router = APIRouter()


def parse_category(value: Optional[str]) -> Optional[CallCategory]:
    """'all' or empty means no filter; names are case-insensitive."""
    if value is None or not value.strip() or value.strip().lower() == "all":
        return None
    try:
        return CallCategory(value.strip().upper())
    except ValueError:
        raise InputValidationError(
            f"Unknown call category: {value}",
            {"allowed": ["all"] + [c.value for c in CallCategory]}
        )


@router.get("")
async def list_calls_endpoint(
    category: Optional[str] = Query(None, description="QR_GENERATION, STATUS_CHECK, OTHER or all"),
    limit: int = Query(50, ge=1, le=100, description="Max results"),
    recorder: CallRecorder = Depends(get_call_recorder)
) -> Dict[str, Any]:
    """
    List recorded provider calls, most recent first.

    Query Parameters:
        category: Filter by call category (default: all)
        limit: Max results (1-100, default 50)

    Returns:
        {
            "calls": List[CallRecord],
            "total": int,  # matching records before the limit
            "limit": int
        }

    Example:
        GET /api/calls?category=STATUS_CHECK&limit=10
    """
    selected = parse_category(category)

    calls = recorder.query(category=selected, limit=limit)
    total = recorder.count(category=selected)

    logger.debug(f"Listed calls: category={selected}, returned={len(calls)}, total={total}")

    return {
        "calls": [call.model_dump(mode="json", by_alias=True) for call in calls],
        "total": total,
        "limit": limit,
    }


@router.delete("")
async def clear_calls_endpoint(
    recorder: CallRecorder = Depends(get_call_recorder)
) -> Dict[str, Any]:
    """
    Clear the call history.

    Returns:
        {"success": true, "removed": int, "message": str}
    """
    removed = recorder.clear()

    return {
        "success": True,
        "removed": removed,
        "message": "Call log cleared successfully",
    }
