"""Access gates deciding whether the caller may mutate the catalog."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from pixvault.auth.tokens import create_signed_token, verify_signed_token
from pixvault.lib.exceptions import UnauthorizedError

ADMIN_ROLE = "admin"


@runtime_checkable
class AccessGate(Protocol):
    def is_privileged(self) -> bool:
        ...


class StaticGate:
    """Gate with a fixed answer, used by the CLI and in tests."""

    def __init__(self, privileged: bool) -> None:
        self._privileged = privileged

    def is_privileged(self) -> bool:
        return self._privileged


class AdminTokenGate:
    """Privileged when the caller presents a valid admin token."""

    def __init__(self, token: str | None, secret: str | None) -> None:
        self._token = token
        self._secret = secret

    def is_privileged(self) -> bool:
        if not self._token or not self._secret:
            return False
        payload = verify_signed_token(self._token, self._secret)
        return payload is not None and payload.get("role") == ADMIN_ROLE


def issue_admin_token(secret: str, ttl: int) -> str:
    """Create an admin token valid for *ttl* seconds."""
    return create_signed_token({"role": ADMIN_ROLE}, secret, ttl)


def require_privileged(gate: AccessGate) -> None:
    """Raise ``UnauthorizedError`` unless the gate grants privilege."""
    if not gate.is_privileged():
        raise UnauthorizedError()
