"""Tests for the bearer-token authentication providers."""

from __future__ import annotations

import time

import jwt
import pytest
from cryptography.hazmat.primitives.asymmetric import rsa

from labboard.auth_providers.base import AuthProvider, AuthResult
from labboard.auth_providers.factory import create_provider
from labboard.auth_providers.jwt_provider import JWTProvider, OIDCProvider

SECRET = "unit-test-secret-0123456789abcdef"
ISSUER = "https://cognito-idp.us-east-1.amazonaws.com/us-east-1_TEST"


def _hs256(claims: dict, secret: str = SECRET) -> str:
    return jwt.encode(claims, secret, algorithm="HS256")


# ---------------------------------------------------------------------------
# AuthResult
# ---------------------------------------------------------------------------


class TestAuthResult:
    def test_defaults(self):
        r = AuthResult(authenticated=False)
        assert r.authenticated is False
        assert r.identity == ""
        assert r.roles == []
        assert r.claims == {}
        assert r.error is None

    def test_rejected(self):
        r = AuthResult.rejected("jwt", "expired")
        assert r.authenticated is False
        assert r.provider == "jwt"
        assert r.error == "expired"
        assert r.identity == ""


# ---------------------------------------------------------------------------
# JWTProvider (HS256)
# ---------------------------------------------------------------------------


class TestJWTProvider:
    @pytest.fixture
    def provider(self):
        return JWTProvider(SECRET)

    def test_satisfies_protocol(self, provider):
        assert isinstance(provider, AuthProvider)

    async def test_valid_token(self, provider):
        token = _hs256({"sub": "P1", "exp": int(time.time()) + 60, "cognito:groups": ["Professor"]})
        result = await provider.authenticate(token)
        assert result.authenticated is True
        assert result.provider == "jwt"
        assert result.identity == "P1"
        assert result.roles == ["Professor"]
        assert result.claims["sub"] == "P1"

    async def test_identity_is_raw_subject(self, provider):
        result = await provider.authenticate(_hs256({"sub": "a1b2-c3d4"}))
        assert result.identity == "a1b2-c3d4"

    async def test_comma_joined_groups_claim(self, provider):
        token = _hs256({"sub": "U1", "cognito:groups": "Professor,LabAssistant"})
        result = await provider.authenticate(token)
        assert result.roles == ["Professor", "LabAssistant"]

    async def test_missing_groups_claim_means_no_roles(self, provider):
        result = await provider.authenticate(_hs256({"sub": "U1"}))
        assert result.authenticated is True
        assert result.roles == []

    async def test_custom_groups_claim(self):
        provider = JWTProvider(SECRET, groups_claim="groups")
        result = await provider.authenticate(_hs256({"sub": "U1", "groups": ["Admin"]}))
        assert result.roles == ["Admin"]

    async def test_wrong_secret_rejected(self, provider):
        result = await provider.authenticate(_hs256({"sub": "U1"}, secret="another-secret-0123456789abcdef-xyz"))
        assert result.authenticated is False
        assert "JWT validation failed" in result.error

    async def test_expired_rejected(self, provider):
        result = await provider.authenticate(_hs256({"sub": "U1", "exp": int(time.time()) - 60}))
        assert result.authenticated is False

    async def test_missing_subject_rejected(self, provider):
        result = await provider.authenticate(_hs256({"cognito:groups": ["Admin"]}))
        assert result.authenticated is False

    async def test_garbage_rejected(self, provider):
        result = await provider.authenticate("not-a-jwt")
        assert result.authenticated is False

    async def test_audience_checked_when_configured(self):
        provider = JWTProvider(SECRET, audience="labboard")
        ok = await provider.authenticate(_hs256({"sub": "U1", "aud": "labboard"}))
        bad = await provider.authenticate(_hs256({"sub": "U1", "aud": "other"}))
        assert ok.authenticated is True
        assert bad.authenticated is False


# ---------------------------------------------------------------------------
# OIDCProvider (JWKS signature verification)
# ---------------------------------------------------------------------------


class _FakeSigningKey:
    """Mimics jwt.PyJWK with a .key attribute."""

    def __init__(self, key):
        self.key = key


class _FakeJWKSClient:
    """Replaces jwt.PyJWKClient in tests to avoid real HTTP."""

    def __init__(self, public_key):
        self._public_key = public_key

    def get_signing_key_from_jwt(self, token):
        return _FakeSigningKey(self._public_key)


class _FailingJWKSClient:
    def get_signing_key_from_jwt(self, token):
        raise jwt.PyJWKClientConnectionError("JWKS endpoint unreachable")


@pytest.fixture(scope="module")
def rsa_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


def _rs256(key, **overrides) -> str:
    claims = {
        "sub": "oidc-user",
        "iss": ISSUER,
        "exp": int(time.time()) + 3600,
        "cognito:groups": ["LabAssistant"],
        **overrides,
    }
    return jwt.encode(claims, key, algorithm="RS256")


class TestOIDCProvider:
    @pytest.fixture
    def provider(self, rsa_key):
        provider = OIDCProvider(ISSUER, audience="app-client")
        provider._jwks_client = _FakeJWKSClient(rsa_key.public_key())
        return provider

    async def test_valid_id_token(self, provider, rsa_key):
        result = await provider.authenticate(_rs256(rsa_key, aud="app-client"))
        assert result.authenticated is True
        assert result.provider == "oidc"
        assert result.identity == "oidc-user"
        assert result.roles == ["LabAssistant"]

    async def test_access_token_audience_in_client_id(self, provider, rsa_key):
        result = await provider.authenticate(_rs256(rsa_key, client_id="app-client"))
        assert result.authenticated is True

    async def test_wrong_audience_rejected(self, provider, rsa_key):
        result = await provider.authenticate(_rs256(rsa_key, aud="someone-else"))
        assert result.authenticated is False
        assert "audience" in result.error

    async def test_no_audience_configured_accepts_any(self, rsa_key):
        provider = OIDCProvider(ISSUER)
        provider._jwks_client = _FakeJWKSClient(rsa_key.public_key())
        result = await provider.authenticate(_rs256(rsa_key, aud="anything"))
        assert result.authenticated is True

    async def test_wrong_issuer_rejected(self, provider, rsa_key):
        token = _rs256(rsa_key, aud="app-client", iss="https://evil.example.com")
        result = await provider.authenticate(token)
        assert result.authenticated is False

    async def test_invalid_signature_rejected(self, provider):
        other_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
        result = await provider.authenticate(_rs256(other_key, aud="app-client"))
        assert result.authenticated is False
        assert "OIDC validation failed" in result.error

    async def test_expired_rejected(self, provider, rsa_key):
        token = _rs256(rsa_key, aud="app-client", exp=int(time.time()) - 3600)
        result = await provider.authenticate(token)
        assert result.authenticated is False

    async def test_jwks_failure_returns_unauthenticated(self, provider):
        provider._jwks_client = _FailingJWKSClient()
        result = await provider.authenticate("some.jwt.token")
        assert result.authenticated is False
        assert "JWKS verification failed" in result.error

    def test_trailing_slash_stripped_from_issuer(self):
        assert OIDCProvider(ISSUER + "/")._issuer == ISSUER


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


class TestCreateProvider:
    def test_jwt(self):
        provider = create_provider("jwt", jwt_secret=SECRET)
        assert isinstance(provider, JWTProvider)

    def test_jwt_requires_secret(self):
        with pytest.raises(ValueError, match="jwt_secret"):
            create_provider("jwt")

    def test_oidc(self):
        provider = create_provider("oidc", oidc_issuer=ISSUER, oidc_audience="app-client")
        assert isinstance(provider, OIDCProvider)

    def test_oidc_requires_issuer(self):
        with pytest.raises(ValueError, match="oidc_issuer"):
            create_provider("oidc")

    def test_unknown(self):
        with pytest.raises(ValueError, match="Unknown auth provider"):
            create_provider("api_key")
