"""
Notification Relay

Session-scoped state machine over one WebSocket connection to the
provider's push endpoint (the `thirdpartyQrWebSocketUrl` returned by QR
generation).

States:
    IDLE -> CONNECTING -> OPEN -> CLOSING -> CLOSED
    CONNECTING | OPEN -> ERROR

Every frame and lifecycle change becomes an event, delivered in order
through `events()` and kept in `history` for the lifetime of the session.
The relay never reconnects; a new session means a new relay.
"""
import asyncio
import json
import logging
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional, Tuple, Union

import websockets
from websockets.exceptions import ConnectionClosed

from ..config import settings
from ..exceptions import NotConnectedError, RelayError
from ..models.notifications import (
    Classification,
    Direction,
    LifecycleKind,
    NotificationEvent,
    PaymentOutcome,
    RelayEvent,
    RelayLifecycleEvent,
    RelayState,
)

logger = logging.getLogger(__name__)

NORMAL_CLOSURE = 1000

PING_TYPES = {"ping", "pong", "heartbeat"}

PLAIN_STATUSES = {
    "SUCCESS": PaymentOutcome.PAYMENT_SUCCESS,
    "FAILED": PaymentOutcome.PAYMENT_FAILED,
}

ALLOWED_TRANSITIONS = {
    RelayState.IDLE: {RelayState.CONNECTING},
    RelayState.CONNECTING: {RelayState.OPEN, RelayState.CLOSED, RelayState.ERROR},
    RelayState.OPEN: {RelayState.CLOSING, RelayState.CLOSED, RelayState.ERROR},
    RelayState.CLOSING: {RelayState.CLOSED},
    RelayState.CLOSED: set(),
    RelayState.ERROR: set(),
}

ConnectFactory = Callable[..., Awaitable[Any]]


# ============================================================================
# Frame Classification
# ============================================================================

def _is_true(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return value is True


def _decode_outcome(data: Dict[str, Any]) -> Tuple[Optional[PaymentOutcome], Optional[str]]:
    """
    Find a payment outcome in a decoded frame.

    The provider nests a JSON-encoded object in `transactionStatus`
    carrying `paymentSuccess` / `QRVerified` flags; older payloads use a
    plain SUCCESS / FAILED string in `status` or `transactionStatus`.

    Returns:
        (outcome or None, decode error or None)
    """
    status = data.get("transactionStatus")

    if isinstance(status, str):
        plain = PLAIN_STATUSES.get(status.strip().upper())
        if plain is not None:
            return plain, None
        try:
            status = json.loads(status)
        except ValueError as e:
            return None, f"transactionStatus is not valid JSON: {e}"

    if isinstance(status, dict):
        if _is_true(status.get("paymentSuccess")):
            return PaymentOutcome.PAYMENT_SUCCESS, None
        if _is_true(status.get("QRVerified")):
            return PaymentOutcome.QR_VERIFIED, None
        if "paymentSuccess" in status:
            return PaymentOutcome.PAYMENT_FAILED, None
        return None, None

    plain_status = data.get("status")
    if isinstance(plain_status, str):
        return PLAIN_STATUSES.get(plain_status.strip().upper()), None

    return None, None


def classify_frame(
    frame: Union[str, bytes],
    direction: Direction = Direction.RECEIVED
) -> NotificationEvent:
    """
    Decode and classify one frame.

    Non-JSON frames are kept as raw text with UNKNOWN classification;
    nothing is dropped and nothing raises.
    """
    raw = frame.decode("utf-8", errors="replace") if isinstance(frame, bytes) else frame

    try:
        data = json.loads(raw)
    except ValueError:
        return NotificationEvent(
            direction=direction,
            payload=raw,
            raw=raw,
            classification=Classification.UNKNOWN
        )

    classification = Classification.UNKNOWN
    outcome = None
    decode_error = None

    if isinstance(data, dict):
        frame_type = data.get("type")
        if isinstance(frame_type, str) and frame_type.lower() in PING_TYPES:
            classification = Classification.PING
        else:
            outcome, decode_error = _decode_outcome(data)
            if outcome is not None:
                classification = Classification.STATUS_UPDATE

    return NotificationEvent(
        direction=direction,
        payload=data,
        raw=raw,
        classification=classification,
        outcome=outcome,
        decode_error=decode_error
    )


# ============================================================================
# Relay Session
# ============================================================================

class NotificationRelay:
    """
    One relay session.

    Usage:
        relay = NotificationRelay(url, prn="test-1a2b3c4d", merchant_code="fonepay123")
        await relay.connect()
        async for event in relay.events():
            ...
        await relay.close()

    All state changes go through `_transition`; illegal operations are
    rejected there or in `send`.
    """

    def __init__(
        self,
        url: str,
        prn: Optional[str] = None,
        merchant_code: Optional[str] = None,
        connect: Optional[ConnectFactory] = None,
        open_timeout: Optional[float] = None
    ):
        """
        Initialize relay session.

        Args:
            url: Provider push endpoint (ws:// or wss://)
            prn: Transaction reference sent in the initiation message
            merchant_code: Merchant code sent in the initiation message
            connect: WebSocket connect factory (defaults to websockets.connect)
            open_timeout: Handshake timeout in seconds
        """
        self.url = url
        self.prn = prn
        self.merchant_code = merchant_code

        self._connect = connect or websockets.connect
        self._open_timeout = open_timeout or settings.relay_open_timeout_seconds

        self._state = RelayState.IDLE
        self._ws: Any = None
        self._connect_task: Optional[asyncio.Future] = None
        self._reader_task: Optional[asyncio.Task] = None

        # None is the end-of-stream sentinel
        self._queue: "asyncio.Queue[Optional[RelayEvent]]" = asyncio.Queue()
        self.history: List[RelayEvent] = []

    @property
    def state(self) -> RelayState:
        return self._state

    @property
    def is_open(self) -> bool:
        return self._state == RelayState.OPEN

    def _transition(self, new_state: RelayState) -> None:
        if new_state not in ALLOWED_TRANSITIONS[self._state]:
            raise RelayError(
                f"Illegal relay transition {self._state.value} -> {new_state.value}",
                {"state": self._state.value}
            )
        logger.info(f"Relay {self.url}: {self._state.value} -> {new_state.value}")
        self._state = new_state

    def _emit(self, event: RelayEvent) -> None:
        self.history.append(event)
        self._queue.put_nowait(event)
        if isinstance(event, RelayLifecycleEvent) and event.is_terminal:
            self._queue.put_nowait(None)

    def _fail(self, message: str, code: Optional[int] = None) -> None:
        """Move to ERROR and emit the terminal error event."""
        if self._state not in (RelayState.CONNECTING, RelayState.OPEN):
            return
        self._transition(RelayState.ERROR)
        logger.warning(f"Relay {self.url} failed: {message}")
        self._emit(RelayLifecycleEvent(kind=LifecycleKind.ERROR, code=code, message=message))

    def _connection_closed(self, e: ConnectionClosed) -> None:
        """
        End the session from a ConnectionClosed raised by the client.

        No close frame from the peer means the transport dropped (ERROR);
        otherwise the peer's close code decides CLOSED or ABNORMAL_CLOSE.
        """
        if e.rcvd is None:
            self._fail(f"Relay connection lost: {e}", code=self._ws.close_code)
        else:
            self._finish_close(e.rcvd.code, e.rcvd.reason)

    def _finish_close(self, code: Optional[int], reason: Optional[str]) -> None:
        """Move to CLOSED and emit a normal or abnormal closure event."""
        if self._state in (RelayState.CLOSED, RelayState.ERROR):
            return
        self._transition(RelayState.CLOSED)

        if code == NORMAL_CLOSURE:
            kind = LifecycleKind.CLOSED
        else:
            kind = LifecycleKind.ABNORMAL_CLOSE
            logger.warning(f"Relay {self.url} closed unexpectedly (code {code})")

        self._emit(RelayLifecycleEvent(
            kind=kind,
            code=code,
            reason=reason or None,
            message=f"Relay connection closed (code {code})"
        ))

    async def connect(self) -> None:
        """
        Open the connection and start receiving.

        On success the session is OPEN and, when transaction context was
        supplied, the initiation message {prn, merchantCode} has been sent.

        Raises:
            RelayError: relay already used, or handshake failed
        """
        if self._state != RelayState.IDLE:
            raise RelayError(
                "Relay session already used; open a new relay",
                {"state": self._state.value}
            )

        self._transition(RelayState.CONNECTING)
        self._connect_task = asyncio.ensure_future(
            self._connect(self.url, open_timeout=self._open_timeout)
        )

        try:
            ws = await self._connect_task
        except asyncio.CancelledError:
            if self._state == RelayState.CLOSED:
                logger.info(f"Relay {self.url}: handshake aborted by close()")
                return
            raise
        except Exception as e:
            self._fail(f"Handshake failed: {e}")
            raise RelayError(f"Could not connect to relay: {e}", {"url": self.url}) from e
        finally:
            self._connect_task = None

        if self._state != RelayState.CONNECTING:
            await ws.close()
            return

        self._ws = ws
        self._transition(RelayState.OPEN)
        self._emit(RelayLifecycleEvent(
            kind=LifecycleKind.OPENED,
            message="Relay connection established"
        ))

        self._reader_task = asyncio.create_task(self._receive_loop())

        if self.prn and self.merchant_code:
            await self.send({"prn": self.prn, "merchantCode": self.merchant_code})

    async def _receive_loop(self) -> None:
        ws = self._ws
        try:
            async for frame in ws:
                event = classify_frame(frame)
                logger.debug(f"Relay frame received: {event.classification.value} {event.raw!r}")
                self._emit(event)
        except ConnectionClosed as e:
            self._connection_closed(e)
            return
        except Exception as e:
            logger.error(f"Relay receive loop failed: {e}", exc_info=True)
            self._fail(f"Relay transport error: {e}")
            return

        self._finish_close(ws.close_code, ws.close_reason)

    async def send(self, message: Union[str, Dict[str, Any]]) -> NotificationEvent:
        """
        Send a frame to the provider.

        Dicts are JSON-encoded. The frame is recorded as a SENT event.

        Raises:
            NotConnectedError: session is not OPEN
            RelayError: transport failure while sending
        """
        if self._state != RelayState.OPEN:
            raise NotConnectedError(self._state.value)

        raw = message if isinstance(message, str) else json.dumps(message)

        try:
            await self._ws.send(raw)
        except ConnectionClosed as e:
            self._connection_closed(e)
            raise NotConnectedError(self._state.value)
        except OSError as e:
            self._fail(f"Send failed: {e}")
            raise RelayError(f"Could not send relay message: {e}", {"url": self.url}) from e

        event = classify_frame(raw, direction=Direction.SENT)
        logger.debug(f"Relay frame sent: {raw!r}")
        self._emit(event)
        return event

    async def close(self, reason: str = "Manual disconnect") -> None:
        """
        Close the session.

        CONNECTING: the handshake is aborted and the session ends without
        further events. OPEN: the connection is closed with code 1000; if
        the closing handshake is cancelled the transport is aborted and the
        session still ends CLOSED.
        IDLE, CLOSING, CLOSED, ERROR: no-op.
        """
        if self._state == RelayState.CONNECTING:
            self._transition(RelayState.CLOSED)
            if self._connect_task is not None:
                self._connect_task.cancel()
            self._queue.put_nowait(None)
            return

        if self._state != RelayState.OPEN:
            return

        self._transition(RelayState.CLOSING)

        try:
            try:
                await self._ws.close(code=NORMAL_CLOSURE, reason=reason)
            except OSError as e:
                logger.warning(f"Error closing relay {self.url}: {e}")

            if self._reader_task is not None:
                await self._reader_task
        except asyncio.CancelledError:
            logger.warning(f"Close of relay {self.url} interrupted; aborting connection")
            if self._reader_task is not None:
                self._reader_task.cancel()
            self._ws.transport.abort()
            self._finish_close(self._ws.close_code, self._ws.close_reason)
            raise

        self._finish_close(self._ws.close_code, self._ws.close_reason)

    async def events(self) -> AsyncIterator[RelayEvent]:
        """
        Stream events in order until the session ends.

        Single consumer; ends after the terminal lifecycle event (or right
        away when the handshake was aborted).
        """
        while True:
            event = await self._queue.get()
            if event is None:
                break
            yield event

    async def __aenter__(self) -> "NotificationRelay":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
