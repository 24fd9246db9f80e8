"""Centralized configuration for LabBoard.

Uses Pydantic BaseSettings with environment variable loading and validation.
All LB_* environment variables are validated at import time.
"""

from __future__ import annotations

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Storage
    storage: str = Field(default="sqlite", description="Storage backend: sqlite or dynamodb")
    db_path: str = Field(default="labboard.db", description="SQLite database path")
    aws_region: str | None = Field(default=None, description="AWS region for DynamoDB/Cognito")
    dynamodb_endpoint_url: str | None = Field(
        default=None, description="Override DynamoDB endpoint (local DynamoDB)"
    )
    lab_table: str = Field(default="Lab", description="Physical table name for labs")
    job_table: str = Field(default="Job", description="Physical table name for jobs")
    user_table: str = Field(default="User", description="Physical table name for users")
    application_table: str = Field(
        default="Match", description="Physical table name for job applications"
    )
    cas_retries: int = Field(
        default=3, ge=1, le=20, description="Attempts for conditional list updates"
    )

    # Auth
    auth_provider: str = Field(default="jwt", description="Auth provider: jwt or oidc")
    jwt_secret: str | None = Field(default=None, description="HS256 shared secret")
    jwt_audience: str | None = Field(default=None, description="Expected audience for HS256 tokens")
    oidc_issuer: str | None = Field(default=None, description="OIDC issuer URL")
    oidc_audience: str | None = Field(default=None, description="OIDC audience / app client id")
    groups_claim: str = Field(
        default="cognito:groups", description="Claim carrying the caller's group membership"
    )

    # Identity directory
    user_pool_id: str | None = Field(
        default=None, description="Cognito user pool id (unset = local directory)"
    )

    # Logging
    log_format: str = Field(default="text", description="Log format: text or json")
    log_level: str = Field(default="INFO", description="Python log level")

    # Server
    host: str = Field(default="0.0.0.0", description="Server bind host")  # noqa: S104
    port: int = Field(default=8000, ge=1, le=65535, description="Server bind port")

    # CORS
    cors_origins: str = Field(default="*", description="Comma-separated CORS origins")

    # Rate limiting
    rate_limit: str = Field(
        default="100/minute",
        description="Default rate limit (e.g., 100/minute). Set to 'none' to disable.",
    )

    model_config = {"env_prefix": "LB_", "case_sensitive": False, "extra": "ignore"}

    @field_validator("storage")
    @classmethod
    def validate_storage(cls, v: str) -> str:
        v = v.lower()
        if v not in ("sqlite", "dynamodb"):
            msg = f"LB_STORAGE must be 'sqlite' or 'dynamodb', got '{v}'"
            raise ValueError(msg)
        return v

    @field_validator("auth_provider")
    @classmethod
    def validate_auth_provider(cls, v: str) -> str:
        v = v.lower()
        if v not in ("jwt", "oidc"):
            msg = f"LB_AUTH_PROVIDER must be 'jwt' or 'oidc', got '{v}'"
            raise ValueError(msg)
        return v

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        v = v.lower()
        if v not in ("text", "json"):
            msg = f"LB_LOG_FORMAT must be 'text' or 'json', got '{v}'"
            raise ValueError(msg)
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        import logging

        v = v.upper()
        if not hasattr(logging, v):
            msg = f"LB_LOG_LEVEL must be a valid Python log level, got '{v}'"
            raise ValueError(msg)
        return v

    @property
    def cors_origin_list(self) -> list[str]:
        """Return parsed list of CORS origins."""
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def table_names(self) -> dict[str, str]:
        """Logical table name -> physical table name."""
        return {
            "labs": self.lab_table,
            "jobs": self.job_table,
            "users": self.user_table,
            "applications": self.application_table,
        }


# Singleton, validated at import time.
settings = Settings()
