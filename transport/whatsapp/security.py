"""
Request authentication for the device routes.

Two credentials are checked: the ``apikey`` header and the ``authkey``
body field. When no shared AUTH_KEY is configured, the expected authkey is
derived from the caller's apikey with derive_auth_key. The derivation is
light obfuscation only, not a security boundary.
"""

import hmac
from typing import Any, Optional

from fastapi import status

from config import GatewayConfig
from .errors import ApiError

_KEY_GROUP_SIZE = 8


class AuthenticationError(ApiError):
    """Credentials missing or invalid (HTTP 401)."""

    def __init__(self, error: str):
        super().__init__(status.HTTP_401_UNAUTHORIZED, error)


def derive_auth_key(api_key: str) -> str:
    """
    Derive the fallback authkey from an API key.

    Hyphens are removed before the string is reversed; the reversed,
    lower-cased characters are then regrouped in blocks of 8 joined by
    hyphens (the last block may be shorter).

        >>> derive_auth_key("ABCDEFGHIJ")
        'jihgfedc-ba'
    """
    reversed_key = api_key.replace("-", "")[::-1].lower()
    return "-".join(
        reversed_key[i:i + _KEY_GROUP_SIZE] for i in range(0, len(reversed_key), _KEY_GROUP_SIZE)
    )


def credentials_match(supplied: Optional[str], expected: str) -> bool:
    if not isinstance(supplied, str) or not supplied:
        return False
    return hmac.compare_digest(supplied.encode("utf-8"), expected.encode("utf-8"))


def require_api_key(config: GatewayConfig, api_key: Optional[str]) -> str:
    """
    Check the ``apikey`` header.

    Always required; compared against PROVIDER_API_KEY only when that is
    configured.

    Raises:
        AuthenticationError: header missing or not the global key
    """
    if not api_key:
        raise AuthenticationError("API Key not provided (apikey)")

    if config.provider_api_key and not credentials_match(api_key, config.provider_api_key):
        raise AuthenticationError("Unauthorized: Invalid Global API Key (apikey)")

    return api_key


def require_auth_key(config: GatewayConfig, api_key: str, body: dict[str, Any]) -> None:
    """
    Check the ``authkey`` body field.

    Uses AUTH_KEY when configured, the key derived from ``api_key`` otherwise.

    Raises:
        AuthenticationError: authkey missing or wrong
    """
    supplied = body.get("authkey")

    if config.auth_key:
        if not credentials_match(supplied, config.auth_key):
            raise AuthenticationError(
                "Unauthorized: Invalid Global Authentication Key (AUTHKEY)"
            )
        return

    if not credentials_match(supplied, derive_auth_key(api_key)):
        raise AuthenticationError("Unauthorized: Invalid Authentication Key (authkey)")


def verify_webhook_challenge(
    mode: Optional[str],
    challenge: Optional[str],
    supplied_token: Optional[str],
    expected_token: str,
) -> Optional[str]:
    """
    Resolve a subscription handshake.

    Returns the challenge to echo back, or None when the handshake must be
    refused (wrong mode, token mismatch, or no token configured at all).
    """
    if mode != "subscribe" or not expected_token:
        return None
    if supplied_token is None or not hmac.compare_digest(
        supplied_token.encode("utf-8"), expected_token.encode("utf-8")
    ):
        return None
    return challenge or ""
