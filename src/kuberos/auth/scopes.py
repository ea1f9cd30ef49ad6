"""OAuth2 scope negotiation.

Providers disagree on how a refresh token is requested. OpenID Connect Core asks
for the ``offline_access`` scope, while Google (and providers copying it)
expects ``access_type=offline`` on the authorization request instead and
rejects the unknown scope.

See http://openid.net/specs/openid-connect-core-1_0.html#OfflineAccess and
https://developers.google.com/identity/protocols/OAuth2WebServer#offline
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

SCOPE_OPENID = "openid"
SCOPE_OFFLINE_ACCESS = "offline_access"

# Minimum scopes for every authentication request.
DEFAULT_SCOPES: tuple[str, ...] = (SCOPE_OPENID,)

PARAM_ACCESS_TYPE = "access_type"
PARAM_PROMPT = "prompt"


def offline_as_scope(scopes_supported: Iterable[str] | None) -> bool:
    """Whether a refresh token should be requested via the offline_access scope.

    An empty or missing ``scopes_supported`` list is treated as conformant.
    """
    supported = list(scopes_supported or [])
    if not supported:
        return True
    return SCOPE_OFFLINE_ACCESS in supported


@dataclass(frozen=True)
class ScopeRequests:
    """The scopes to request during authentication."""

    offline_as_scope: bool
    scopes: Sequence[str] = field(default_factory=tuple)

    def get(self) -> list[str]:
        scopes = list(DEFAULT_SCOPES)
        if self.offline_as_scope:
            scopes.append(SCOPE_OFFLINE_ACCESS)
        scopes.extend(self.scopes)
        return scopes


def auth_code_params(scopes: Sequence[str]) -> dict[str, str]:
    """Extra authorization URL parameters for the given requested scopes.

    Consent is always prompted so that the provider issues a refresh token on
    every login. ``access_type=offline`` is only sent when the refresh token
    is not already requested as a scope.
    """
    params = {PARAM_PROMPT: "consent"}
    if SCOPE_OFFLINE_ACCESS not in scopes:
        params[PARAM_ACCESS_TYPE] = "offline"
    return params
