"""Token verification contract shared by the bearer-token providers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable


@dataclass
class AuthResult:
    """Outcome of verifying one bearer token.

    ``identity`` is the token's raw ``sub`` claim so it compares directly
    against ownership fields such as ``professorId`` and ``createdBy``.
    ``roles`` holds the normalized group claim.
    """

    authenticated: bool
    identity: str = ""
    provider: str = ""
    roles: list[str] = field(default_factory=list)
    claims: dict = field(default_factory=dict)
    error: str | None = None

    @classmethod
    def rejected(cls, provider: str, error: str) -> AuthResult:
        return cls(authenticated=False, provider=provider, error=error)


@runtime_checkable
class AuthProvider(Protocol):
    """Anything that can turn a bearer token into an :class:`AuthResult`."""

    name: str

    async def authenticate(self, token: str) -> AuthResult:
        """Verify *token*; failures come back as a rejected result, never raised."""
        ...
