"""
Principal models.

The session-server and user endpoints describe the identity behind an API
key as a single-key object whose key names the principal type, e.g.
``{"UserPerson": {...}}``. OAuth keys arrive as ``UserApiKey`` and nest the
user that requested the key and the user that granted it.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from bunq_client.exceptions import UnsupportedPrincipalError


class PrincipalType(StrEnum):
    """Principal shapes recognised in API payloads."""

    COMPANY = "UserCompany"
    PERSON = "UserPerson"
    LIGHT = "UserLight"
    API_KEY = "UserApiKey"


@dataclass(frozen=True, kw_only=True)
class Principal:
    """
    A classified user object.

    Attributes:
        type: Which principal shape the payload had.
        info: The user object as returned by the API.
    """

    type: PrincipalType
    info: Mapping[str, Any]

    @property
    def is_oauth(self) -> bool:
        return False

    @property
    def id(self) -> int | None:
        return self.info.get("id")

    @property
    def session_timeout(self) -> int:
        """Session lifetime in seconds configured for this user."""
        return int(self.info["session_timeout"])

    def to_payload(self) -> dict[str, Any]:
        return {self.type.value: dict(self.info)}


@dataclass(frozen=True, kw_only=True)
class OAuthPrincipal(Principal):
    """
    An OAuth API key principal.

    Attributes:
        requested_by: The user the key acts for; owns the session timeout.
        granted_by: The user that granted access.
    """

    requested_by: Principal
    granted_by: Principal

    @property
    def is_oauth(self) -> bool:
        return True

    @property
    def session_timeout(self) -> int:
        return self.requested_by.session_timeout


def decode_principal(payload: Mapping[str, Any]) -> Principal:
    """
    Classify a user payload into exactly one principal variant.

    Args:
        payload: Object keyed by principal type.

    Returns:
        A Principal, or an OAuthPrincipal for UserApiKey payloads.

    Raises:
        UnsupportedPrincipalError: If no known principal type is present.
    """
    for principal_type in PrincipalType:
        info = payload.get(principal_type.value)
        if info is None:
            continue
        if principal_type is PrincipalType.API_KEY:
            return _decode_api_key(info)
        return Principal(type=principal_type, info=info)

    msg = "No supported account type found"
    raise UnsupportedPrincipalError(
        msg,
        supported=[t.value for t in PrincipalType],
        received=sorted(payload),
    )


def _decode_api_key(info: Mapping[str, Any]) -> OAuthPrincipal:
    requested_by = decode_principal(info.get("requested_by_user") or {})
    granted_by = decode_principal(info.get("granted_by_user") or {})

    if not granted_by.id:
        granted_by_info = {**granted_by.info, "id": info.get("id")}
        if isinstance(granted_by, OAuthPrincipal):
            granted_by = OAuthPrincipal(
                type=granted_by.type,
                info=granted_by_info,
                requested_by=granted_by.requested_by,
                granted_by=granted_by.granted_by,
            )
        else:
            granted_by = Principal(type=granted_by.type, info=granted_by_info)

    return OAuthPrincipal(
        type=PrincipalType.API_KEY,
        info=info,
        requested_by=requested_by,
        granted_by=granted_by,
    )
