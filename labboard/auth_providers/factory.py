"""Factory for creating auth providers based on configuration."""

from __future__ import annotations

import logging

from labboard.auth_providers.base import AuthProvider
from labboard.auth_providers.jwt_provider import DEFAULT_GROUPS_CLAIM, JWTProvider, OIDCProvider

logger = logging.getLogger("labboard.auth_providers.factory")


def create_provider(
    provider_name: str,
    *,
    jwt_secret: str | None = None,
    jwt_audience: str | None = None,
    oidc_issuer: str | None = None,
    oidc_audience: str | None = None,
    groups_claim: str = DEFAULT_GROUPS_CLAIM,
) -> AuthProvider:
    """Create an auth provider by name."""
    if provider_name == "jwt":
        if not jwt_secret:
            msg = "jwt_secret required for jwt auth provider"
            raise ValueError(msg)
        return JWTProvider(jwt_secret, audience=jwt_audience, groups_claim=groups_claim)

    if provider_name == "oidc":
        if not oidc_issuer:
            msg = "oidc_issuer required for OIDC auth provider"
            raise ValueError(msg)
        return OIDCProvider(oidc_issuer, audience=oidc_audience, groups_claim=groups_claim)

    msg = f"Unknown auth provider: {provider_name}"
    raise ValueError(msg)
