"""The two-leg OIDC redirect/callback exchange."""

import asyncio
import logging
from collections.abc import Awaitable
from typing import TypeVar
from urllib.parse import urlencode, urljoin

import httpx
from fastapi import Request

from kuberos.auth.models import AuthenticationParams, AuthRequestConfig
from kuberos.auth.oidc import ClaimsExtractor, OIDCExtractor, OIDCProvider
from kuberos.auth.scopes import ScopeRequests, auth_code_params
from kuberos.auth.state import StateFn, StateValidator, validate_state
from kuberos.config import DEFAULT_KUBECFG_ENDPOINT, Settings
from kuberos.errors import (
    ClientDisconnectedError,
    ExchangeFailedError,
    InvalidStateError,
    KuberosError,
    MissingCodeError,
    ProviderDeniedError,
)

logger = logging.getLogger(__name__)

SCHEME_HTTP = "http"
SCHEME_HTTPS = "https"

HEADER_FORWARDED_PROTO = "x-forwarded-proto"
HEADER_FORWARDED_PREFIX = "x-forwarded-prefix"

PARAM_STATE = "state"
PARAM_CODE = "code"
PARAM_ERROR = "error"
PARAM_ERROR_DESCRIPTION = "error_description"
PARAM_ERROR_URI = "error_uri"

DISCONNECT_POLL_INTERVAL_S = 0.5

T = TypeVar("T")


def redirect_url(request: Request, endpoint: str = DEFAULT_KUBECFG_ENDPOINT) -> str:
    """Build the URL the provider should send the browser back to.

    Honours X-Forwarded-Proto and X-Forwarded-Prefix so the same deployment
    works behind a TLS terminating reverse proxy.
    """
    scheme = SCHEME_HTTPS if request.url.scheme == SCHEME_HTTPS else SCHEME_HTTP
    for value in request.headers.getlist(HEADER_FORWARDED_PROTO):
        if SCHEME_HTTPS in (proto.strip() for proto in value.split(",")):
            scheme = SCHEME_HTTPS

    prefix = ""
    prefixes = request.headers.getlist(HEADER_FORWARDED_PREFIX)
    if prefixes:
        prefix = prefixes[-1].strip()
        if prefix and not prefix.startswith("/"):
            prefix = f"/{prefix}"

    host = request.headers.get("host", request.url.netloc)
    return urljoin(f"{scheme}://{host}{prefix}", endpoint)


async def cancel_on_disconnect(
    request: Request,
    work: Awaitable[T],
    poll_interval: float = DISCONNECT_POLL_INTERVAL_S,
) -> T:
    """Await work, cancelling it if the client disconnects first."""
    task = asyncio.ensure_future(work)
    try:
        while True:
            done, _ = await asyncio.wait({task}, timeout=poll_interval)
            if done:
                return task.result()
            if await request.is_disconnected():
                logger.info(f"Client disconnected, cancelling {request.url.path}")
                raise ClientDisconnectedError()
    finally:
        if not task.done():
            task.cancel()


class AuthHandshake:
    """Redirects browsers to the provider and handles their return."""

    def __init__(
        self,
        config: AuthRequestConfig,
        extractor: ClaimsExtractor,
        state: StateFn,
        endpoint: str = DEFAULT_KUBECFG_ENDPOINT,
        auth_params: dict[str, str] | None = None,
    ):
        self.config = config
        self.extractor = extractor
        self.state = state
        self.endpoint = endpoint
        if auth_params is None:
            auth_params = auth_code_params(config.scopes)
        self.auth_params = dict(auth_params)

    @classmethod
    async def from_settings(
        cls, settings: Settings, http_client: httpx.AsyncClient | None = None
    ) -> "AuthHandshake":
        """Discover the provider and wire up a handshake for it."""
        client_secret = settings.resolve_client_secret()
        provider = await OIDCProvider.discover(
            settings.issuer_url,
            settings.client_id,
            http_client=http_client,
            timeout=settings.http_timeout_s,
        )

        scopes = ScopeRequests(
            offline_as_scope=provider.offline_as_scope,
            scopes=tuple(settings.extra_scopes),
        )
        config = AuthRequestConfig(
            client_id=settings.client_id,
            client_secret=client_secret,
            authorization_endpoint=provider.metadata.authorization_endpoint,
            token_endpoint=provider.metadata.token_endpoint,
            scopes=tuple(scopes.get()),
        )
        logger.info(f"Requesting scopes {' '.join(config.scopes)} from {settings.issuer_url}")

        extractor = OIDCExtractor(
            provider,
            email_domain=settings.email_domain,
            http_client=http_client,
            timeout=settings.http_timeout_s,
        )
        return cls(
            config,
            extractor,
            StateValidator(client_secret, settings.state_client_address),
            endpoint=settings.kubecfg_endpoint,
        )

    def request_config(self, request: Request) -> AuthRequestConfig:
        return self.config.with_redirect(redirect_url(request, self.endpoint))

    def authorization_url(self, request: Request) -> str:
        """Build the provider authorization URL for a login request."""
        config = self.request_config(request)
        params = {
            "client_id": config.client_id,
            "redirect_uri": config.redirect_url,
            "response_type": "code",
            "scope": " ".join(config.scopes),
            PARAM_STATE: self.state(request),
            **self.auth_params,
        }
        query = urlencode(sorted(params.items()))
        separator = "&" if "?" in config.authorization_endpoint else "?"
        return f"{config.authorization_endpoint}{separator}{query}"

    async def callback(self, request: Request) -> AuthenticationParams:
        """Validate the provider's redirect and exchange its code for claims."""
        query = request.query_params

        if not validate_state(self.state, request, query.get(PARAM_STATE)):
            raise InvalidStateError()

        error = query.get(PARAM_ERROR)
        if error:
            raise ProviderDeniedError.from_params(
                error,
                query.get(PARAM_ERROR_DESCRIPTION),
                query.get(PARAM_ERROR_URI),
            )

        code = query.get(PARAM_CODE)
        if not code:
            raise MissingCodeError()

        try:
            return await cancel_on_disconnect(
                request, self.extractor.process(self.request_config(request), code)
            )
        except ClientDisconnectedError:
            raise
        except KuberosError as e:
            raise ExchangeFailedError(f"cannot process OAuth2 code: {e.message}") from e
