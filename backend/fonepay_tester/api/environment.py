"""
Environment API Endpoints

Exposes the provider and relay endpoints per environment, plus the default
test identity used when a request carries no credentials.
"""
from fastapi import APIRouter
from typing import Dict, Any

from ..config import settings
from ..services.signature_service import mask_secret

router = APIRouter()


@router.get("/config")
async def get_config_endpoint() -> Dict[str, Any]:
    """
    Get environment configuration.

    Returns:
        {
            "endpoints": {"sandbox": str, "production": str},
            "relay": {"sandbox": str, "production": str},
            "testCredentials": {"merchantCode", "secretKey", "username", "password"},
            "demoMode": bool
        }

    Secret values are masked outside demo mode.
    """
    return {
        "endpoints": {
            "sandbox": settings.sandbox_base_url,
            "production": settings.production_base_url,
        },
        "relay": {
            "sandbox": settings.sandbox_relay_url,
            "production": settings.production_relay_url,
        },
        "testCredentials": {
            "merchantCode": settings.test_merchant_code,
            "secretKey": mask_secret(settings.test_secret_key),
            "username": settings.test_username,
            "password": mask_secret(settings.test_password),
        },
        "demoMode": settings.demo_mode,
    }
