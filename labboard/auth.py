"""Bearer-token authentication for LabBoard.

Authentication is controlled by environment variables:
- ``LB_AUTH_PROVIDER`` selects the backend: ``jwt`` (HS256 shared secret,
  default) or ``oidc`` (JWKS-verified tokens, e.g. a Cognito user pool).
- ``LB_JWT_SECRET`` / ``LB_JWT_AUDIENCE`` configure the ``jwt`` provider.
- ``LB_OIDC_ISSUER`` / ``LB_OIDC_AUDIENCE`` configure the ``oidc`` provider.
- ``LB_GROUPS_CLAIM`` names the claim carrying the caller's groups
  (default ``cognito:groups``).

Clients supply credentials via ``Authorization: Bearer <token>``.
"""

from __future__ import annotations

import functools
import logging
import os

from fastapi import Request

from labboard.auth_providers.base import AuthProvider, AuthResult
from labboard.auth_providers.factory import create_provider
from labboard.config import settings
from labboard.exceptions import AuthenticationError, ConfigurationError, ForbiddenError
from labboard.rbac import has_any_role

# Paths that are always public.
PUBLIC_PATHS: frozenset[str] = frozenset({"/health", "/metrics"})
PUBLIC_PREFIXES: tuple[str, ...] = ("/public-jobs",)

_audit_logger = logging.getLogger("labboard.audit")


def is_public_path(path: str) -> bool:
    return path in PUBLIC_PATHS or path.startswith(PUBLIC_PREFIXES)


def _extract_token(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.lower().startswith("bearer "):
        token = auth_header[7:].strip()
        return token or None
    return None


@functools.lru_cache(maxsize=8)
def _cached_provider(
    provider_name: str,
    jwt_secret: str | None,
    jwt_audience: str | None,
    oidc_issuer: str | None,
    oidc_audience: str | None,
    groups_claim: str,
) -> AuthProvider:
    """One provider per configuration, so the OIDC signing-key cache survives across requests."""
    return create_provider(
        provider_name,
        jwt_secret=jwt_secret,
        jwt_audience=jwt_audience,
        oidc_issuer=oidc_issuer,
        oidc_audience=oidc_audience,
        groups_claim=groups_claim,
    )


def _configured_provider() -> AuthProvider:
    """Provider for the current environment (re-read per request so tests can monkeypatch)."""
    try:
        return _cached_provider(
            os.environ.get("LB_AUTH_PROVIDER", settings.auth_provider).lower(),
            os.environ.get("LB_JWT_SECRET", settings.jwt_secret),
            os.environ.get("LB_JWT_AUDIENCE", settings.jwt_audience),
            os.environ.get("LB_OIDC_ISSUER", settings.oidc_issuer),
            os.environ.get("LB_OIDC_AUDIENCE", settings.oidc_audience),
            os.environ.get("LB_GROUPS_CLAIM", settings.groups_claim),
        )
    except ValueError as exc:
        raise ConfigurationError(f"Authentication is misconfigured: {exc}") from exc

def _audit_failure(request: Request, reason: str, **extra: object) -> None:
    _audit_logger.warning(
        "Auth failure (%s): %s %s from %s",
        reason.replace("_", " "),
        request.method,
        request.url.path,
        request.client.host if request.client else "unknown",
        extra={
            "event_category": "audit",
            "action": "auth_failure",
            "reason": reason,
            "path": request.url.path,
            **extra,
        },
    )


async def require_auth(request: Request) -> None:
    """FastAPI dependency that enforces authentication.

    Behaviour:
    * Requests to public paths (``/health``, ``/metrics``, ``/public-jobs...``)
      are always allowed.
    * Otherwise the caller must present a valid bearer token.

    The :class:`AuthResult` is attached to ``request.state.auth`` so
    downstream handlers can inspect identity and roles.

    Raises:
        AuthenticationError: no token was provided, or it is not valid.
    """
    if is_public_path(request.url.path):
        return

    token = _extract_token(request)
    if token is None:
        _audit_failure(request, "no_token")
        raise AuthenticationError("Authentication required")

    result = await _configured_provider().authenticate(token)
    if not result.authenticated:
        _audit_failure(request, "invalid_token", provider=result.provider, error=result.error)
        raise AuthenticationError("Invalid token")

    request.state.auth = result


def get_principal(request: Request) -> AuthResult:
    """Return the authenticated caller for the current request."""
    auth: AuthResult | None = getattr(request.state, "auth", None)
    if auth is None:
        raise AuthenticationError("Authentication required")
    return auth


def require_role(*roles: str, message: str | None = None):
    """Dependency factory: require the caller to hold one of *roles*.

    Usage::

        @router.post("/labs", dependencies=[Depends(require_role(Role.ADMIN))])
        async def create_lab(): ...
    """

    async def _check(request: Request) -> None:
        auth = get_principal(request)
        if not has_any_role(auth.roles, roles):
            _audit_logger.warning(
                "Role check denied: %s %s for %s",
                request.method,
                request.url.path,
                auth.identity,
                extra={
                    "event_category": "audit",
                    "action": "role_denied",
                    "path": request.url.path,
                    "user_id": auth.identity,
                },
            )
            raise ForbiddenError(message or f"Requires one of roles: {', '.join(roles)}")

    return _check
