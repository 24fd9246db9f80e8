"""Bearer-token authentication providers."""

from labboard.auth_providers.base import AuthProvider, AuthResult
from labboard.auth_providers.factory import create_provider

__all__ = ["AuthProvider", "AuthResult", "create_provider"]
