"""
Provider Gateway

Sends signed payloads to the Fonepay Dynamic QR API and normalizes the
outcome.

Behavior:
- One JSON POST per call, no retry
- The timeout bounds the whole exchange (connect, send, full body read),
  not each individual socket operation
- Timeout, transport failure and non-2xx responses raise GatewayError
- Every attempted call (success or failure) lands in the CallRecorder
"""
import asyncio
import logging
import time
from enum import Enum
from typing import Any, Dict, Mapping, Optional

import httpx
from pydantic import BaseModel, Field

from ..config import Settings, settings as default_settings
from ..exceptions import GatewayError
from ..models.calls import CallCategory, CallRecord
from ..models.transactions import Environment
from .call_recorder import CallRecorder
from .signature_service import mask_secret

logger = logging.getLogger(__name__)

QR_GENERATE_PATH = "/merchant/merchantDetailsForThirdParty/thirdPartyDynamicQrDownload"
STATUS_CHECK_PATH = "/merchant/merchantDetailsForThirdParty/thirdPartyDynamicQrGetStatus"

REQUEST_HEADERS = {"Content-Type": "application/json"}

# Payload fields masked in logs outside demo mode
SENSITIVE_FIELDS = ("password",)


class EndpointKind(str, Enum):
    QR_GENERATE = "QR_GENERATE"
    STATUS_CHECK = "STATUS_CHECK"


ENDPOINT_PATHS = {
    EndpointKind.QR_GENERATE: QR_GENERATE_PATH,
    EndpointKind.STATUS_CHECK: STATUS_CHECK_PATH,
}


class ProviderResponse(BaseModel):
    """Successful (2xx) provider response."""
    url: str
    status: int
    headers: Dict[str, str] = Field(default_factory=dict)
    body: Any = None
    duration_ms: int = Field(0, alias="durationMs")

    model_config = {"populate_by_name": True}


def categorize_url(url: str) -> CallCategory:
    """Derive the call category from the endpoint path."""
    path = httpx.URL(url).path
    if path.endswith(QR_GENERATE_PATH):
        return CallCategory.QR_GENERATION
    if path.endswith(STATUS_CHECK_PATH):
        return CallCategory.STATUS_CHECK
    return CallCategory.OTHER


def _decode_body(response: httpx.Response) -> Any:
    """Parsed JSON when possible, raw text otherwise."""
    try:
        return response.json()
    except ValueError:
        return response.text


def _loggable(payload: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        key: mask_secret(value) if key in SENSITIVE_FIELDS and isinstance(value, str) else value
        for key, value in payload.items()
    }


class ProviderGateway:
    """
    HTTP client for the provider endpoints.

    Holds one pooled httpx.AsyncClient; safe for concurrent calls. The
    transport can be replaced (httpx.MockTransport) for tests.
    """

    def __init__(
        self,
        recorder: CallRecorder,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: Optional[float] = None
    ):
        """
        Initialize provider gateway.

        Args:
            recorder: Call log receiving one record per attempted call
            settings: Endpoint configuration (defaults to global settings)
            transport: Optional httpx transport override
            timeout: Request timeout in seconds (defaults to settings)
        """
        self._settings = settings or default_settings
        self._recorder = recorder
        self._timeout = timeout if timeout is not None else self._settings.request_timeout_seconds
        self._client = httpx.AsyncClient(
            timeout=self._timeout,
            transport=transport
        )

    @property
    def timeout(self) -> float:
        return self._timeout

    def base_url(self, environment: Environment) -> str:
        if environment == Environment.PRODUCTION:
            return self._settings.production_base_url
        return self._settings.sandbox_base_url

    def resolve_url(self, endpoint_kind: EndpointKind, environment: Environment) -> str:
        """Environment base URL joined with the fixed path of the endpoint."""
        return f"{self.base_url(environment).rstrip('/')}{ENDPOINT_PATHS[endpoint_kind]}"

    async def send(
        self,
        endpoint_kind: EndpointKind,
        payload: Mapping[str, Any],
        environment: Environment
    ) -> ProviderResponse:
        """
        POST a payload to the provider.

        Args:
            endpoint_kind: QR_GENERATE or STATUS_CHECK
            payload: Provider payload (sent as JSON, field order preserved)
            environment: SANDBOX or PRODUCTION

        Returns:
            ProviderResponse for 2xx answers

        Raises:
            GatewayError: TIMEOUT, NETWORK or HTTP failure
        """
        url = self.resolve_url(endpoint_kind, environment)
        return await self.post(url, payload)

    async def post(self, url: str, payload: Mapping[str, Any]) -> ProviderResponse:
        """POST to an explicit URL; used by send()."""
        body = dict(payload)

        logger.info(f"POST {url}")
        logger.debug(f"Request body: {_loggable(body)}")

        started = time.perf_counter()
        response: Optional[httpx.Response] = None
        error: Optional[GatewayError] = None

        try:
            response = await asyncio.wait_for(
                self._client.post(url, json=body, headers=REQUEST_HEADERS),
                timeout=self._timeout
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            error = GatewayError(
                GatewayError.TIMEOUT,
                f"Provider did not respond within {self._timeout:g}s",
                url=url
            )
            logger.warning(f"Timeout calling {url}: {e!r}")
        except httpx.RequestError as e:
            error = GatewayError(
                GatewayError.NETWORK,
                f"Network error calling provider: {e}",
                url=url
            )
            logger.warning(f"Network error calling {url}: {e!r}")

        duration_ms = int((time.perf_counter() - started) * 1000)

        response_body = None
        response_headers: Dict[str, str] = {}
        status = 0
        if response is not None:
            status = response.status_code
            response_headers = dict(response.headers)
            response_body = _decode_body(response)
            if not response.is_success:
                error = GatewayError(
                    GatewayError.HTTP,
                    f"Provider returned HTTP {status}",
                    status=status,
                    body=response_body,
                    url=url
                )
                logger.warning(f"Provider returned HTTP {status} for {url}")

        self._recorder.record(CallRecord(
            category=categorize_url(url),
            method="POST",
            url=url,
            http_status=status,
            duration_ms=duration_ms,
            request_headers=dict(REQUEST_HEADERS),
            request_body=body,
            response_headers=response_headers,
            response_body=response_body,
            error={"kind": error.kind, "message": error.message} if error else None
        ))

        if error is not None:
            raise error

        logger.info(f"Provider responded {status} in {duration_ms}ms")

        return ProviderResponse(
            url=url,
            status=status,
            headers=response_headers,
            body=response_body,
            duration_ms=duration_ms
        )

    async def aclose(self) -> None:
        """Close the pooled HTTP client."""
        await self._client.aclose()
