"""
Fonepay QR Tester Configuration Module

Loads environment variables for provider endpoints, relay endpoints and the
default test identity.
"""
from pydantic_settings import BaseSettings
from typing import Literal


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Notes:
    - Provider base URLs are fixed per environment (SANDBOX / PRODUCTION)
    - Default test identity is the one published in the Fonepay integration docs
    - Demo mode echoes secrets in responses; outside demo mode they are masked
    """

    # Demo Configuration
    demo_mode: bool = True
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # Provider Endpoints
    sandbox_base_url: str = "https://uat-new-merchant-api.fonepay.com/api"
    production_base_url: str = "https://merchantapi.fonepay.com/api"

    # Notification Relay Endpoints
    sandbox_relay_url: str = "ws://acquirer-websocket.fonepay.com/merchantEndPoint"
    production_relay_url: str = "wss://ws.fonepay.com/convergent-webSocket-web/merchantEndPoint"

    # Outbound Calls
    request_timeout_seconds: float = 30.0
    call_log_capacity: int = 100
    relay_open_timeout_seconds: float = 10.0

    # Default Test Identity
    test_merchant_code: str = "fonepay123"
    test_secret_key: str = "fonepay"
    test_username: str = "bijayk"
    test_password: str = "password"

    # Server
    host: str = "0.0.0.0"
    port: int = 3000

    class Config:
        env_file = ".env"
        case_sensitive = False


# Global settings instance
settings = Settings()
