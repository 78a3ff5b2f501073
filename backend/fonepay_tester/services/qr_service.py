"""
QR Service

Orchestrates one Dynamic QR round trip: resolve credentials, build and sign
the payload, send it through the gateway and shape the result for the API.
"""
import logging
from typing import Any, Dict, Optional

from ..config import settings
from ..models.signatures import SignaturePayload
from ..models.transactions import Credentials, Environment, TransactionRequest
from .provider_gateway import EndpointKind, ProviderGateway, ProviderResponse
from .request_builder import ProviderPayload, build_qr_request, build_status_request
from .signature_service import mask_secret

logger = logging.getLogger(__name__)

RELAY_URL_FIELD = "thirdpartyQrWebSocketUrl"


def default_credentials() -> Credentials:
    """Configured test identity."""
    return Credentials(
        merchant_code=settings.test_merchant_code,
        secret_key=settings.test_secret_key,
        username=settings.test_username,
        password=settings.test_password
    )


def resolve_credentials(creds: Optional[Credentials]) -> Credentials:
    return creds if creds is not None else default_credentials()


def describe_request(
    url: str,
    payload: ProviderPayload,
    signature: SignaturePayload,
    secret_key: str
) -> Dict[str, Any]:
    """
    Request description echoed back to the caller.

    Secrets are masked outside demo mode.
    """
    shown_payload = dict(payload)
    if "password" in shown_payload:
        shown_payload["password"] = mask_secret(shown_payload["password"])

    return {
        "url": url,
        "payload": shown_payload,
        "signature": {
            "message": signature.message,
            "secretKey": mask_secret(secret_key),
            "generated": signature.digest_hex,
        },
    }


def extract_relay_url(response: ProviderResponse) -> Optional[str]:
    """Relay endpoint announced by the provider, if any."""
    if isinstance(response.body, dict):
        url = response.body.get(RELAY_URL_FIELD)
        if isinstance(url, str) and url:
            return url
    return None


async def generate_qr(
    gateway: ProviderGateway,
    tx: TransactionRequest,
    creds: Optional[Credentials] = None
) -> Dict[str, Any]:
    """
    Build, sign and send a QR-generation request.

    Returns:
        {
            "requestSent": {...},
            "providerResponse": Any,
            "prn": str,
            "relayUrl": str | None
        }

    Raises:
        SignatureError, GatewayError
    """
    creds = resolve_credentials(creds)
    payload, signature = build_qr_request(tx, creds)

    logger.info(
        f"Generating QR: prn={payload['prn']}, amount={tx.amount}, "
        f"merchant={creds.merchant_code}, environment={tx.environment.value}"
    )

    url = gateway.resolve_url(EndpointKind.QR_GENERATE, tx.environment)
    response = await gateway.send(EndpointKind.QR_GENERATE, payload, tx.environment)

    return {
        "requestSent": describe_request(url, payload, signature, creds.secret_key),
        "providerResponse": response.body,
        "prn": payload["prn"],
        "relayUrl": extract_relay_url(response),
    }


async def check_status(
    gateway: ProviderGateway,
    prn: Optional[str],
    environment: Environment = Environment.SANDBOX,
    creds: Optional[Credentials] = None
) -> Dict[str, Any]:
    """
    Build, sign and send a status-check request.

    Raises:
        InputValidationError: prn missing
        SignatureError, GatewayError
    """
    creds = resolve_credentials(creds)
    payload, signature = build_status_request(prn, creds)

    logger.info(
        f"Checking QR status: prn={prn}, merchant={creds.merchant_code}, "
        f"environment={environment.value}"
    )

    url = gateway.resolve_url(EndpointKind.STATUS_CHECK, environment)
    response = await gateway.send(EndpointKind.STATUS_CHECK, payload, environment)

    return {
        "requestSent": describe_request(url, payload, signature, creds.secret_key),
        "providerResponse": response.body,
        "prn": prn,
        "relayUrl": None,
    }
