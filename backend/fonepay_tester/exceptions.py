"""
QR Tester Exception Hierarchy

Every failure carries a stable error code, a human-readable message and,
where available, the raw provider status and body so callers can tell
"our request was malformed" from "the provider rejected it" from
"the network failed".
"""
from typing import Optional, Dict, Any, List


class QRTesterError(Exception):
    """
    Base exception for all QR tester errors.

    Converted to a JSON error response by the handlers in main.py.
    """

    status_code = 400

    def __init__(
        self,
        error_code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None
    ):
        self.error_code = error_code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to API error response format."""
        return {
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details
        }


class InputValidationError(QRTesterError):
    """
    Missing or malformed caller input.

    Raised before any network call is attempted.

    Examples:
    - Status check without a PRN
    - Amount with a thousands separator
    - Remarks longer than 25 characters
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__("qr:request:invalid", message, details)

    @classmethod
    def from_errors(cls, errors: List[Dict[str, Any]], message: str = "Invalid request") -> "InputValidationError":
        """Build from pydantic error dicts, keeping only JSON-safe parts."""
        fields = [
            {
                "field": ".".join(str(part) for part in error.get("loc", ())),
                "message": error.get("msg", "")
            }
            for error in errors
        ]
        if fields:
            message = f"{message}: {fields[0]['field']}: {fields[0]['message']}"
        return cls(message, {"errors": fields})


class SignatureError(QRTesterError):
    """Signing failed; fatal to the current call."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        error_code: str = "qr:signature:error"
    ):
        super().__init__(error_code, message, details)


class InvalidKeyError(SignatureError):
    """HMAC secret key is empty."""

    def __init__(self, message: str = "Secret key must not be empty", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details, error_code="qr:signature:invalid_key")


class EncodingError(SignatureError):
    """A signing field is not text or cannot be represented as UTF-8."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details, error_code="qr:signature:encoding")


class GatewayError(QRTesterError):
    """
    Outbound provider call failed.

    Kinds:
    - TIMEOUT: no response within the request timeout
    - NETWORK: connection refused, DNS failure, reset, ...
    - HTTP: provider answered with a non-2xx status
    """

    TIMEOUT = "TIMEOUT"
    NETWORK = "NETWORK"
    HTTP = "HTTP"

    def __init__(
        self,
        kind: str,
        message: str,
        status: Optional[int] = None,
        body: Any = None,
        url: Optional[str] = None
    ):
        self.kind = kind
        self.status = status
        self.body = body
        self.url = url
        details: Dict[str, Any] = {"kind": kind, "url": url}
        if status is not None:
            details["status"] = status
        if body is not None:
            details["body"] = body
        super().__init__(f"qr:gateway:{kind.lower()}", message, details)
        self.status_code = 504 if kind == self.TIMEOUT else 502


class RelayError(QRTesterError):
    """Transport failure on the notification channel; ends the relay session only."""

    status_code = 502

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__("qr:relay:transport", message, details)


class NotConnectedError(QRTesterError):
    """Relay operation attempted while the session is not OPEN."""

    status_code = 409

    def __init__(self, state: str):
        super().__init__(
            "qr:relay:not_connected",
            f"Relay is not connected (state: {state})",
            {"state": state}
        )
