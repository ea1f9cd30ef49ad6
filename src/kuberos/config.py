"""Configuration management for Kuberos."""

import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import Annotated, Literal

import boto3
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

logger = logging.getLogger(__name__)

DEFAULT_KUBECFG_ENDPOINT = "ui"
DEFAULT_SERVICE_ACCOUNT_PATH = "/var/run/secrets/kubernetes.io/serviceaccount"


def get_aws_secret(secret_name: str, key: str, region_name: str) -> str:
    """Fetch a single value from a JSON secret in AWS Secrets Manager."""
    session = boto3.session.Session()
    client = session.client(service_name="secretsmanager", region_name=region_name)
    response = client.get_secret_value(SecretId=secret_name)
    secrets = json.loads(response["SecretString"])
    return secrets[key]


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env files."""

    model_config = SettingsConfigDict(
        env_prefix="KUBEROS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # OIDC provider
    issuer_url: str = Field(..., description="OpenID Connect issuer URL")
    client_id: str = Field(..., description="OAuth2 client ID")
    client_secret: str | None = Field(None, description="OAuth2 client secret")
    client_secret_file: Path | None = Field(None, description="File containing the OAuth2 client secret")

    # Optional AWS Secrets Manager source for the client secret
    aws_secret_name: str | None = Field(None)
    aws_secret_key: str = Field(default="client_secret")
    aws_region: str = Field(default="us-east-2")

    # Authentication policy
    extra_scopes: Annotated[list[str], NoDecode] = Field(default=["profile", "email"])
    email_domain: str | None = Field(None, description="Only allow users of this email domain")
    state_client_address: Literal["none", "forwarded_for", "remote_addr"] = Field(
        default="none",
        description="Client address component of the CSRF state fingerprint",
    )

    # Kubeconfig templating
    kubecfg_template: Path = Field(..., description="Kubeconfig containing clusters to populate")
    kubecfg_endpoint: str = Field(default=DEFAULT_KUBECFG_ENDPOINT)
    service_account_path: Path = Field(default=Path(DEFAULT_SERVICE_ACCOUNT_PATH))

    # Server
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=10003)
    ui_dir: Path | None = Field(None, description="Directory from which to serve the UI")
    http_timeout_s: float = Field(default=30.0)

    # Logging
    log_level: str = Field(default="INFO")
    debug: bool = Field(default=False)

    @field_validator("extra_scopes", mode="before")
    @classmethod
    def parse_extra_scopes(cls, v: str | list[str]) -> list[str]:
        if isinstance(v, str):
            v = v.strip()
            if v.startswith("["):
                return json.loads(v)
            return [scope.strip() for scope in v.split(",") if scope.strip()]
        return v

    @property
    def oidc_discovery_url(self) -> str:
        return f"{self.issuer_url.rstrip('/')}/.well-known/openid-configuration"

    @property
    def effective_log_level(self) -> str:
        return "DEBUG" if self.debug else self.log_level.upper()

    def resolve_client_secret(self) -> str:
        """Return the client secret from the first configured source."""
        if self.client_secret:
            return self.client_secret

        if self.client_secret_file:
            secret = self.client_secret_file.read_text(encoding="utf-8").strip()
            if secret:
                return secret

        if self.aws_secret_name:
            logger.info(f"Loading client secret from AWS secret {self.aws_secret_name}")
            return get_aws_secret(self.aws_secret_name, self.aws_secret_key, self.aws_region).strip()

        raise ValueError(
            "No client secret configured. Set KUBEROS_CLIENT_SECRET, "
            "KUBEROS_CLIENT_SECRET_FILE or KUBEROS_AWS_SECRET_NAME."
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
