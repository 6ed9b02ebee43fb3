"""
Device identity resolution for inbound requests.
"""

from identity.resolver import (
    UNKNOWN_DEVICE,
    ApiKeyDeviceIdResolver,
    BodyDeviceIdResolver,
    DeviceIdResolver,
    HeaderDeviceIdResolver,
    RequestContext,
    build_resolver,
)

__all__ = [
    "UNKNOWN_DEVICE",
    "ApiKeyDeviceIdResolver",
    "BodyDeviceIdResolver",
    "DeviceIdResolver",
    "HeaderDeviceIdResolver",
    "RequestContext",
    "build_resolver",
]
