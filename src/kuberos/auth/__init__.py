"""Authentication module for Kuberos."""

from kuberos.auth.models import AuthenticationParams, AuthRequestConfig, ProviderMetadata
from kuberos.auth.scopes import ScopeRequests, offline_as_scope
from kuberos.auth.state import StateValidator
from kuberos.auth.oidc import ClaimsExtractor, OIDCExtractor, OIDCProvider
from kuberos.auth.handshake import AuthHandshake

__all__ = [
    # Models
    "AuthenticationParams",
    "AuthRequestConfig",
    "ProviderMetadata",
    # Scopes and state
    "ScopeRequests",
    "offline_as_scope",
    "StateValidator",
    # Providers
    "ClaimsExtractor",
    "OIDCExtractor",
    "OIDCProvider",
    # Handshake
    "AuthHandshake",
]
