"""
Strategies for deciding which device a location belongs to.

Exactly one resolver is chosen at start-up from settings.device_id_strategy.
The default trusts the request body, which is how the tracking app has always
identified itself; the header and API key strategies exist for deployments
that put the identity outside the payload.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from config.settings import DeviceIdStrategy, Settings

logger = logging.getLogger(__name__)

UNKNOWN_DEVICE = "unknown-device"
UNKNOWN_API_KEY_DEVICE = "unknown"

USER_ID_HEADER = "x-user-id"
API_KEY_HEADER = "x-api-key"


@dataclass
class RequestContext:
    """What a resolver may look at. Header names are lower-cased."""

    body: Mapping[str, Any] = field(default_factory=dict)
    headers: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_request(cls, body: Mapping[str, Any], headers: Mapping[str, str]) -> "RequestContext":
        return cls(body=body, headers={k.lower(): v for k, v in headers.items()})

    @property
    def api_key(self) -> Optional[str]:
        return self.headers.get(API_KEY_HEADER) or None


class DeviceIdResolver(ABC):
    """Maps a request to a device identifier."""

    @abstractmethod
    def resolve(self, context: RequestContext) -> str:
        ...


class BodyDeviceIdResolver(DeviceIdResolver):
    """deviceId, then userId from the body, then "unknown-device"."""

    def resolve(self, context: RequestContext) -> str:
        value = context.body.get("deviceId") or context.body.get("userId")
        return str(value) if value else UNKNOWN_DEVICE


class HeaderDeviceIdResolver(DeviceIdResolver):
    """X-User-Id header, then the configured fallback."""

    def __init__(self, fallback: Optional[str] = None):
        self.fallback = fallback or UNKNOWN_DEVICE

    def resolve(self, context: RequestContext) -> str:
        return context.headers.get(USER_ID_HEADER) or self.fallback


class ApiKeyDeviceIdResolver(DeviceIdResolver):
    """Looks the X-Api-Key header up in a key to device map."""

    def __init__(self, key_map: Mapping[str, str]):
        self.key_map = dict(key_map)

    def resolve(self, context: RequestContext) -> str:
        api_key = context.api_key
        if api_key and api_key in self.key_map:
            return self.key_map[api_key]
        if api_key:
            logger.warning("Unrecognised API key presented")
        return UNKNOWN_API_KEY_DEVICE


def build_resolver(settings: Settings) -> DeviceIdResolver:
    """Select the resolver for the configured strategy."""
    strategy = DeviceIdStrategy(settings.device_id_strategy)
    if strategy == DeviceIdStrategy.HEADER:
        resolver: DeviceIdResolver = HeaderDeviceIdResolver(fallback=settings.device_id)
    elif strategy == DeviceIdStrategy.API_KEY:
        resolver = ApiKeyDeviceIdResolver(settings.api_key_device_map)
    else:
        resolver = BodyDeviceIdResolver()

    logger.info("Device identity resolver selected", extra={
        "extra_data": {"strategy": strategy.value, "resolver": type(resolver).__name__}
    })
    return resolver
