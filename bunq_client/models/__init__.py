"""
Domain models for the bunq client.

These are immutable (frozen) dataclasses for the handshake stages and the
authenticated principal.
"""

from bunq_client.models.principal import (
    OAuthPrincipal,
    Principal,
    PrincipalType,
    decode_principal,
)
from bunq_client.models.session import (
    ApiSession,
    DeviceRegistration,
    Installation,
    InstallState,
    parse_timestamp,
)

__all__ = [
    # Principals
    "Principal",
    "OAuthPrincipal",
    "PrincipalType",
    "decode_principal",
    # Handshake stages
    "ApiSession",
    "DeviceRegistration",
    "Installation",
    "InstallState",
    "parse_timestamp",
]
