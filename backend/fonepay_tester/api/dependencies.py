"""
API Dependencies

Resolves application-owned services for the routers. Services live on
app.state (created in the lifespan handler) so tests can swap them through
app.dependency_overrides.
"""
from typing import Callable

from fastapi import Request

from ..services.call_recorder import CallRecorder
from ..services.notification_relay import NotificationRelay
from ..services.provider_gateway import ProviderGateway

RelayFactory = Callable[..., NotificationRelay]


def get_call_recorder(request: Request) -> CallRecorder:
    return request.app.state.call_recorder


def get_provider_gateway(request: Request) -> ProviderGateway:
    return request.app.state.provider_gateway


def get_relay_factory() -> RelayFactory:
    """Factory for new relay sessions."""
    return NotificationRelay
