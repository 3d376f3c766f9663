"""
Installation, device and session records.

Records are immutable; the session store swaps whole records so a reader
never observes a half-updated stage.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import StrEnum

from cryptography.hazmat.primitives.asymmetric import rsa

from bunq_client.models.principal import Principal

_TIMESTAMP_FORMATS = ("%Y-%m-%d %H:%M:%S.%f", "%Y-%m-%d %H:%M:%S")


def parse_timestamp(value: str) -> datetime:
    """
    Parse a bunq timestamp ("2017-07-13 15:22:40.123456"), which is UTC.

    Raises:
        ValueError: If the value matches no known format.
    """
    for fmt in _TIMESTAMP_FORMATS:
        try:
            return datetime.strptime(value, fmt).replace(tzinfo=timezone.utc)
        except ValueError:
            continue
    msg = f"Unrecognised timestamp: {value!r}"
    raise ValueError(msg)


class InstallState(StrEnum):
    """Progress of the installation handshake."""

    UNINSTALLED = "UNINSTALLED"
    INSTALLED = "INSTALLED"
    DEVICE_REGISTERED = "DEVICE_REGISTERED"


@dataclass(frozen=True, kw_only=True)
class Installation:
    """
    Result of exchanging public keys with the server.

    Attributes:
        server_public_key_pem: Server public key as received.
        server_public_key: Parsed server public key used for verification.
        token: Installation token authenticating device/session calls.
        created_at: When the installation token was created.
        updated_at: When the installation token was last updated.
    """

    server_public_key_pem: str
    server_public_key: rsa.RSAPublicKey = field(repr=False, compare=False)
    token: str = field(repr=False)
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True, kw_only=True)
class DeviceRegistration:
    """A device bound to an installation and a set of permitted IPs."""

    device_id: int
    description: str
    permitted_ips: tuple[str, ...] = ()


@dataclass(frozen=True, kw_only=True)
class ApiSession:
    """
    An authenticated session.

    Attributes:
        session_id: Session-server id.
        token: Session token sent with authenticated calls.
        token_id: Id of the session token.
        created_at: When the token was created.
        timeout_ms: Session lifetime in milliseconds.
        principal: Principal the session acts as.
    """

    session_id: int
    token: str = field(repr=False)
    token_id: int
    created_at: datetime
    timeout_ms: int
    principal: Principal

    @property
    def expiry_time(self) -> datetime:
        return self.created_at + timedelta(milliseconds=self.timeout_ms)

    @property
    def is_oauth(self) -> bool:
        return self.principal.is_oauth

    def is_valid(self, now: datetime) -> bool:
        return self.expiry_time > now
