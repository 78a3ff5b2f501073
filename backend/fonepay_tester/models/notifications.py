"""
Pydantic Notification Relay Models

Events emitted by one relay session: notification frames (sent or received)
and lifecycle changes of the underlying WebSocket connection.
"""
from datetime import datetime
from enum import Enum
from typing import Any, Literal, Optional, Union
from pydantic import BaseModel, Field


class RelayState(str, Enum):
    """Relay session states."""
    IDLE = "IDLE"
    CONNECTING = "CONNECTING"
    OPEN = "OPEN"
    CLOSING = "CLOSING"
    CLOSED = "CLOSED"
    ERROR = "ERROR"


class Direction(str, Enum):
    SENT = "SENT"
    RECEIVED = "RECEIVED"


class Classification(str, Enum):
    """What kind of frame the provider pushed."""
    PING = "PING"
    STATUS_UPDATE = "STATUS_UPDATE"
    UNKNOWN = "UNKNOWN"


class PaymentOutcome(str, Enum):
    """Payment outcome recognised inside a STATUS_UPDATE frame."""
    PAYMENT_SUCCESS = "PAYMENT_SUCCESS"
    PAYMENT_FAILED = "PAYMENT_FAILED"
    QR_VERIFIED = "QR_VERIFIED"


class LifecycleKind(str, Enum):
    OPENED = "OPENED"
    CLOSED = "CLOSED"
    ABNORMAL_CLOSE = "ABNORMAL_CLOSE"
    ERROR = "ERROR"


class NotificationEvent(BaseModel):
    """
    A frame sent to or received from the provider.

    payload is the decoded JSON when the frame parsed, otherwise the raw text.
    """
    type: Literal["notification"] = "notification"
    direction: Direction
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    payload: Any = None
    raw: str = ""
    classification: Classification = Classification.UNKNOWN
    outcome: Optional[PaymentOutcome] = None
    decode_error: Optional[str] = Field(None, alias="decodeError")

    model_config = {"populate_by_name": True}


class RelayLifecycleEvent(BaseModel):
    """
    Connection lifecycle change.

    CLOSED is a normal closure (code 1000); ABNORMAL_CLOSE carries any other
    close code. ERROR is a transport failure. All three are terminal.
    """
    type: Literal["lifecycle"] = "lifecycle"
    kind: LifecycleKind
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    code: Optional[int] = None
    reason: Optional[str] = None
    message: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.kind != LifecycleKind.OPENED


RelayEvent = Union[NotificationEvent, RelayLifecycleEvent]
