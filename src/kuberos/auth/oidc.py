"""OIDC provider discovery, ID token verification and claim extraction."""

import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any
from urllib.parse import parse_qsl

import httpx
from jose import jwt
from jose.exceptions import ExpiredSignatureError, JOSEError
from pydantic import ValidationError

from kuberos.auth.models import (
    AuthenticationParams,
    AuthRequestConfig,
    ProviderMetadata,
    TokenResponse,
)
from kuberos.auth.scopes import offline_as_scope
from kuberos.errors import (
    DiscoveryError,
    EmailDomainRejectedError,
    ExchangeFailedError,
    MissingIDTokenError,
)

logger = logging.getLogger(__name__)

DEFAULT_ID_TOKEN_ALGORITHMS = ["RS256"]

CLAIM_EMAIL = "email"
CLAIM_ISSUER = "iss"


@asynccontextmanager
async def _http(
    client: httpx.AsyncClient | None, timeout: float
) -> AsyncIterator[httpx.AsyncClient]:
    """Yield the injected httpx client, or a short-lived one."""
    if client is not None:
        yield client
        return
    async with httpx.AsyncClient(timeout=timeout) as owned:
        yield owned


class OIDCProvider:
    """An OIDC identity provider and an ID token verifier bound to a client ID."""

    def __init__(
        self,
        metadata: ProviderMetadata,
        client_id: str,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ):
        self.metadata = metadata
        self.client_id = client_id
        self._http_client = http_client
        self._timeout = timeout
        self._jwks_cache: dict | None = None

    @classmethod
    async def discover(
        cls,
        issuer_url: str,
        client_id: str,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ) -> "OIDCProvider":
        """Fetch the OIDC discovery document and build a provider from it."""
        url = f"{issuer_url.rstrip('/')}/.well-known/openid-configuration"
        try:
            async with _http(http_client, timeout) as client:
                resp = await client.get(url)
                resp.raise_for_status()
                document = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            raise DiscoveryError(f"cannot fetch OIDC discovery document from {url}: {e}") from e

        try:
            metadata = ProviderMetadata.model_validate(document)
        except ValidationError as e:
            raise DiscoveryError(f"invalid OIDC discovery document from {url}: {e}") from e

        if metadata.issuer != issuer_url:
            raise DiscoveryError(
                f"issuer did not match the issuer returned by provider, "
                f"expected {issuer_url!r} got {metadata.issuer!r}"
            )

        logger.debug(f"Discovered OIDC provider with token endpoint {metadata.token_endpoint}")
        return cls(metadata, client_id, http_client=http_client, timeout=timeout)

    @property
    def offline_as_scope(self) -> bool:
        return offline_as_scope(self.metadata.scopes_supported)

    @property
    def algorithms(self) -> list[str]:
        return self.metadata.id_token_signing_alg_values_supported or DEFAULT_ID_TOKEN_ALGORITHMS

    async def get_jwks(self, force_refresh: bool = False) -> dict:
        """Fetch the JSON Web Key Set used to sign ID tokens."""
        if self._jwks_cache and not force_refresh:
            return self._jwks_cache

        async with _http(self._http_client, self._timeout) as client:
            resp = await client.get(self.metadata.jwks_uri)
            resp.raise_for_status()
            self._jwks_cache = resp.json()
            return self._jwks_cache

    async def _find_key(self, kid: str | None) -> dict:
        for force_refresh in (False, True):
            keys = (await self.get_jwks(force_refresh=force_refresh)).get("keys", [])
            if kid is None and len(keys) == 1:
                return keys[0]
            for key in keys:
                if key.get("kid") == kid:
                    return key
        raise ExchangeFailedError("cannot verify ID token: unable to find matching key")

    async def verify_id_token(self, token: str) -> dict[str, Any]:
        """Verify an ID token's signature, issuer, audience and expiry."""
        try:
            header = jwt.get_unverified_header(token)
        except JOSEError as e:
            raise ExchangeFailedError(f"cannot verify ID token: {e}") from e

        try:
            key = await self._find_key(header.get("kid"))
        except (httpx.HTTPError, ValueError) as e:
            raise ExchangeFailedError(f"cannot verify ID token: cannot fetch keys: {e}") from e

        try:
            return jwt.decode(
                token,
                key,
                algorithms=self.algorithms,
                audience=self.client_id,
                issuer=self.metadata.issuer,
                options={
                    "verify_exp": True,
                    "verify_aud": True,
                    "verify_iss": True,
                    "verify_at_hash": False,
                },
            )
        except ExpiredSignatureError as e:
            raise ExchangeFailedError("cannot verify ID token: token has expired") from e
        except JOSEError as e:
            logger.warning(f"ID token validation error: {e}")
            raise ExchangeFailedError(f"cannot verify ID token: {e}") from e


class ClaimsExtractor(ABC):
    """Turns an OAuth2 authorization code into Kubernetes authentication params."""

    @abstractmethod
    async def process(self, config: AuthRequestConfig, code: str) -> AuthenticationParams:
        pass


def _token_body(resp: httpx.Response) -> dict[str, Any]:
    content_type = resp.headers.get("content-type", "").split(";")[0].strip()
    if content_type in ("application/x-www-form-urlencoded", "text/plain"):
        return dict(parse_qsl(resp.text))
    try:
        body = resp.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


class OIDCExtractor(ClaimsExtractor):
    """Performs OIDC validation, extracting what kubectl needs along the way."""

    def __init__(
        self,
        provider: OIDCProvider,
        email_domain: str | None = None,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ):
        self.provider = provider
        self.email_domain = email_domain
        self._http_client = http_client
        self._timeout = timeout

    async def exchange_code(self, config: AuthRequestConfig, code: str) -> TokenResponse:
        """Exchange an authorization code for tokens."""
        data = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": config.redirect_url,
            "client_id": config.client_id,
            "client_secret": config.client_secret,
        }

        try:
            async with _http(self._http_client, self._timeout) as client:
                resp = await client.post(
                    config.token_endpoint,
                    data=data,
                    headers={"Accept": "application/json"},
                )
        except httpx.HTTPError as e:
            raise ExchangeFailedError(f"cannot exchange code for token: {e}") from e

        body = _token_body(resp)
        if not resp.is_success:
            reason = body.get("error_description") or body.get("error") or f"HTTP {resp.status_code}"
            logger.error(f"Token exchange failed: {reason}")
            raise ExchangeFailedError(f"cannot exchange code for token: {reason}")

        try:
            return TokenResponse.model_validate(body)
        except ValidationError as e:
            raise ExchangeFailedError(
                "cannot exchange code for token: server response missing access_token"
            ) from e

    async def process(self, config: AuthRequestConfig, code: str) -> AuthenticationParams:
        logger.debug(f"Exchanging code {code}")
        tokens = await self.exchange_code(config, code)

        if not tokens.id_token:
            raise MissingIDTokenError()

        claims = await self.provider.verify_id_token(tokens.id_token)

        username = claims.get(CLAIM_EMAIL, "")
        if not isinstance(username, str):
            raise ExchangeFailedError("cannot extract claims from ID token: email is not a string")

        params = AuthenticationParams(
            username=username,
            client_id=config.client_id,
            client_secret=config.client_secret,
            id_token=tokens.id_token,
            refresh_token=tokens.refresh_token or "",
            issuer_url=claims[CLAIM_ISSUER],
        )

        if self.email_domain and not params.username.endswith(f"@{self.email_domain}"):
            logger.warning(f"Rejected user {params.username}: not in domain {self.email_domain}")
            raise EmailDomainRejectedError(self.email_domain)

        return params
