"""Authentication data models."""

from collections.abc import Mapping
from dataclasses import dataclass, replace

from pydantic import BaseModel, ConfigDict

from kuberos.errors import ParamDecodeError

# Wire names of AuthenticationParams fields, shared by the callback JSON body
# and the template endpoint's URL parameters.
AUTH_PARAM_FIELDS: tuple[tuple[str, str], ...] = (
    ("username", "email"),
    ("client_id", "clientID"),
    ("client_secret", "clientSecret"),
    ("id_token", "idToken"),
    ("refresh_token", "refreshToken"),
    ("issuer_url", "issuer"),
)


@dataclass(frozen=True)
class AuthRequestConfig:
    """OAuth2 client configuration used for every authentication request."""

    client_id: str
    client_secret: str
    authorization_endpoint: str
    token_endpoint: str
    scopes: tuple[str, ...] = ()
    redirect_url: str = ""

    def with_redirect(self, redirect_url: str) -> "AuthRequestConfig":
        return replace(self, redirect_url=redirect_url)


class ProviderMetadata(BaseModel):
    """Subset of the OIDC discovery document used by Kuberos."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    issuer: str
    authorization_endpoint: str
    token_endpoint: str
    jwks_uri: str
    scopes_supported: list[str] | None = None
    id_token_signing_alg_values_supported: list[str] | None = None


class TokenResponse(BaseModel):
    """Token endpoint response."""

    model_config = ConfigDict(extra="allow")

    access_token: str
    token_type: str | None = None
    refresh_token: str | None = None
    id_token: str | None = None
    expires_in: int | None = None


class AuthenticationParams(BaseModel):
    """Parameters kubectl needs to authenticate to Kubernetes via OIDC."""

    model_config = ConfigDict(frozen=True)

    username: str = ""
    client_id: str = ""
    client_secret: str = ""
    id_token: str = ""
    refresh_token: str = ""
    issuer_url: str = ""

    def to_wire(self) -> dict[str, str]:
        return {wire: getattr(self, attr) for attr, wire in AUTH_PARAM_FIELDS}

    @classmethod
    def from_wire(cls, params: Mapping[str, list[str]]) -> "AuthenticationParams":
        """Decode parameters keyed by wire name, as produced by parse_qs."""
        by_wire = {wire: attr for attr, wire in AUTH_PARAM_FIELDS}

        values: dict[str, str] = {}
        for key, items in params.items():
            attr = by_wire.get(key)
            if attr is None:
                raise ParamDecodeError(f"cannot parse URL parameter: unknown parameter {key!r}")
            if len(items) != 1:
                raise ParamDecodeError(f"cannot parse URL parameter: {key!r} given {len(items)} times")
            values[attr] = items[0]

        if not values.get("username"):
            raise ParamDecodeError("cannot parse URL parameter: missing required parameter 'email'")

        return cls(**values)


@dataclass(frozen=True)
class RequestFingerprint:
    """Request attributes the CSRF state is derived from."""

    host: str
    user_agent: str
    client_address: str | None = None
