"""
Relay API Endpoints

Exposes the notification relay over HTTP:
- POST /api/relay/test: connect, listen for a short window, report
- GET /api/relay/stream: Server-Sent Events stream of one relay session
"""
from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field
from typing import Dict, Any, Optional, AsyncIterator
import asyncio
import json
import logging

import anyio

from ..exceptions import NotConnectedError, RelayError
from ..models.notifications import LifecycleKind, RelayEvent, RelayLifecycleEvent, RelayState
from .dependencies import RelayFactory, get_relay_factory

logger = logging.getLogger(__name__)

router = APIRouter()


class RelayProbeRequest(BaseModel):
    """Request to probe a relay endpoint."""
    relay_url: str = Field(alias="relayUrl", min_length=1)
    listen_seconds: float = Field(2.0, alias="listenSeconds", ge=0, le=30)
    prn: Optional[str] = None
    merchant_code: Optional[str] = Field(None, alias="merchantCode")

    model_config = {"populate_by_name": True}


def event_name(event: RelayEvent) -> str:
    if isinstance(event, RelayLifecycleEvent):
        return event.kind.value.lower()
    return "notification"


def format_sse_event(event_type: str, data: Dict[str, Any], event_id: Optional[str] = None) -> str:
    """
    Format event according to SSE specification.

    Args:
        event_type: Event type (e.g., "notification", "closed", "error")
        data: Event data payload
        event_id: Optional unique event ID

    Returns:
        Formatted SSE message string
    """
    lines = []

    if event_type:
        lines.append(f"event: {event_type}")

    if event_id:
        lines.append(f"id: {event_id}")

    if data:
        data_json = json.dumps(data)
        lines.append(f"data: {data_json}")

    lines.append("")
    lines.append("")

    return "\n".join(lines)


@router.post("/relay/test")
async def relay_probe_endpoint(
    request: RelayProbeRequest,
    relay_factory: RelayFactory = Depends(get_relay_factory)
) -> Dict[str, Any]:
    """
    Probe a relay endpoint.

    Connects, listens for `listenSeconds`, closes and reports every event
    seen during the window.

    Request Body:
        {
            "relayUrl": "wss://...",
            "listenSeconds": 2,
            "prn": str,  # optional, sent in the initiation message
            "merchantCode": str  # optional
        }

    Returns:
        {
            "relayUrl": str,
            "connected": bool,
            "state": str,  # final relay state
            "events": List[event],
            "error": str | null
        }
    """
    relay = relay_factory(
        request.relay_url,
        prn=request.prn,
        merchant_code=request.merchant_code
    )

    connected = False
    error: Optional[str] = None

    try:
        await relay.connect()
        connected = True
        await asyncio.sleep(request.listen_seconds)
    except (RelayError, NotConnectedError) as e:
        logger.warning(f"Relay probe of {request.relay_url} failed: {e.message}")
        error = e.message
    finally:
        await relay.close()

    if error is None and relay.state == RelayState.ERROR:
        failures = [
            e for e in relay.history
            if isinstance(e, RelayLifecycleEvent) and e.kind == LifecycleKind.ERROR
        ]
        if failures:
            error = failures[-1].message

    return {
        "relayUrl": request.relay_url,
        "connected": connected,
        "state": relay.state.value,
        "events": [event.model_dump(mode="json", by_alias=True) for event in relay.history],
        "error": error,
    }


@router.get("/relay/stream")
async def relay_stream_endpoint(
    request: Request,
    url: str = Query(..., min_length=1, description="Relay URL (thirdpartyQrWebSocketUrl)"),
    prn: Optional[str] = Query(None, description="PRN for the initiation message"),
    merchant_code: Optional[str] = Query(None, alias="merchantCode", description="Merchant code for the initiation message"),
    relay_factory: RelayFactory = Depends(get_relay_factory)
):
    """
    Stream one relay session as Server-Sent Events.

    Note: Uses GET method for EventSource compatibility.

    Streams SSE Events:
        - opened: Connection established
        - notification: Frame sent or received (classified)
        - closed: Normal closure (code 1000)
        - abnormal_close: Any other close code
        - error: Transport failure

    The relay is closed when the client disconnects.
    """
    relay = relay_factory(url, prn=prn, merchant_code=merchant_code)

    async def event_generator() -> AsyncIterator[str]:
        try:
            try:
                await relay.connect()
            except (RelayError, NotConnectedError) as e:
                # The terminal event is already queued for the stream
                logger.warning(f"Relay stream could not connect to {url}: {e.message}")

            async for event in relay.events():
                yield format_sse_event(
                    event_name(event),
                    event.model_dump(mode="json", by_alias=True)
                )
                if await request.is_disconnected():
                    logger.info(f"Relay stream client disconnected: {url}")
                    break
        finally:
            # Client disconnects cancel this generator; the close must still run
            with anyio.CancelScope(shield=True):
                await relay.close()

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        }
    )
