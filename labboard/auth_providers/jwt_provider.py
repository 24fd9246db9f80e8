"""JWT-based authentication providers (shared-secret HS256, OIDC/Cognito)."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import jwt

from labboard.auth_providers.base import AuthResult
from labboard.rbac import roles_from_claim

logger = logging.getLogger("labboard.auth_providers.jwt")

DEFAULT_GROUPS_CLAIM = "cognito:groups"


def _result_from_claims(payload: dict[str, Any], provider: str, groups_claim: str) -> AuthResult:
    sub = payload.get("sub")
    if not sub:
        return AuthResult.rejected(provider, "Token has no subject")
    return AuthResult(
        authenticated=True,
        identity=str(sub),
        provider=provider,
        roles=roles_from_claim(payload.get(groups_claim)),
        claims=payload,
    )


class JWTProvider:
    """Authenticate HS256 tokens signed with a shared secret."""

    name = "jwt"

    def __init__(
        self,
        secret: str,
        audience: str | None = None,
        groups_claim: str = DEFAULT_GROUPS_CLAIM,
    ) -> None:
        self._secret = secret
        self._audience = audience
        self._groups_claim = groups_claim

    async def authenticate(self, token: str) -> AuthResult:
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=["HS256"],
                audience=self._audience,
                options={"verify_aud": self._audience is not None, "require": ["sub"]},
            )
        except jwt.PyJWTError as e:
            return AuthResult.rejected(self.name, f"JWT validation failed: {e}")
        return _result_from_claims(payload, self.name, self._groups_claim)


class OIDCProvider:
    """Authenticate OIDC tokens with JWKS signature verification.

    Uses ``jwt.PyJWKClient`` to fetch and cache the issuer's
    ``/.well-known/jwks.json``.  Cognito access tokens carry the app client
    in ``client_id`` rather than ``aud``, so the audience is checked against
    whichever of the two is present.  Key lookups go through urllib, so
    they run in a worker thread.
    """

    name = "oidc"

    def __init__(
        self,
        issuer: str,
        audience: str | None = None,
        groups_claim: str = DEFAULT_GROUPS_CLAIM,
    ) -> None:
        self._issuer = issuer.rstrip("/")
        self._audience = audience
        self._groups_claim = groups_claim
        self._jwks_client: jwt.PyJWKClient | None = None

    def _get_jwks_client(self) -> jwt.PyJWKClient:
        """Lazily create and cache the JWKS client (1-hour TTL)."""
        if self._jwks_client is None:
            jwks_url = f"{self._issuer}/.well-known/jwks.json"
            self._jwks_client = jwt.PyJWKClient(jwks_url, cache_jwk_set=True, lifespan=3600)
        return self._jwks_client

    def _audience_matches(self, payload: dict[str, Any]) -> bool:
        if self._audience is None:
            return True
        aud = payload.get("aud")
        if isinstance(aud, list):
            if self._audience in aud:
                return True
        elif aud == self._audience:
            return True
        return payload.get("client_id") == self._audience

    async def authenticate(self, token: str) -> AuthResult:
        try:
            jwks_client = self._get_jwks_client()
            signing_key = await asyncio.to_thread(jwks_client.get_signing_key_from_jwt, token)
        except jwt.PyJWTError as e:
            logger.warning("JWKS fetch/lookup failed: %s", e)
            return AuthResult.rejected(self.name, f"JWKS verification failed: {e}")

        try:
            payload = jwt.decode(
                token,
                signing_key.key,
                algorithms=["RS256", "ES256"],
                issuer=self._issuer,
                options={"verify_aud": False, "require": ["sub", "iss", "exp"]},
            )
        except jwt.PyJWTError as e:
            return AuthResult.rejected(self.name, f"OIDC validation failed: {e}")

        if not self._audience_matches(payload):
            return AuthResult.rejected(self.name, "OIDC validation failed: audience mismatch")
        return _result_from_claims(payload, self.name, self._groups_claim)
