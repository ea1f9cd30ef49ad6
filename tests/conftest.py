"""Shared fixtures for Kuberos tests."""

import time

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from fastapi.testclient import TestClient
from jose import jwk, jwt

from kuberos.auth.handshake import AuthHandshake
from kuberos.auth.models import AuthenticationParams, AuthRequestConfig, ProviderMetadata
from kuberos.auth.oidc import ClaimsExtractor, OIDCProvider
from kuberos.kubecfg.models import Cluster, KubeConfig
from kuberos.kubecfg.templater import KubeConfigTemplater
from kuberos.main import create_app

ISSUER = "https://issuer.example.org"
CLIENT_ID = "testClientID"
CLIENT_SECRET = "testClientSecret"
AUTH_ENDPOINT = "https://auth.example.org"
TOKEN_ENDPOINT = "https://token.example.org"
JWKS_URI = "https://issuer.example.org/keys"
TEST_KID = "test-key-id"


def generate_test_keys():
    """Generate an RSA key pair for signing test ID tokens."""
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)

    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
    public_pem = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    return private_pem.decode(), public_pem.decode()


TEST_PRIVATE_KEY, TEST_PUBLIC_KEY = generate_test_keys()


def create_jwks(kid: str = TEST_KID) -> dict:
    key = jwk.construct(TEST_PUBLIC_KEY, "RS256").to_dict()
    key["kid"] = kid
    key["use"] = "sig"
    return {"keys": [key]}


def create_id_token(
    email: str = "user@example.org",
    issuer: str = ISSUER,
    audience: str = CLIENT_ID,
    exp_delta_seconds: int = 3600,
    kid: str = TEST_KID,
    **claims,
) -> str:
    now = int(time.time())
    payload = {
        "iss": issuer,
        "sub": "test-user-sub",
        "aud": audience,
        "exp": now + exp_delta_seconds,
        "iat": now,
        "email": email,
        **claims,
    }
    return jwt.encode(payload, TEST_PRIVATE_KEY, algorithm="RS256", headers={"kid": kid})


class PredictableExtractor(ClaimsExtractor):
    """Returns canned params and records what it was asked to process."""

    def __init__(self, params: AuthenticationParams | None = None, error: Exception | None = None):
        self.params = params
        self.error = error
        self.calls: list[tuple[AuthRequestConfig, str]] = []

    async def process(self, config: AuthRequestConfig, code: str) -> AuthenticationParams:
        self.calls.append((config, code))
        if self.error is not None:
            raise self.error
        return self.params


@pytest.fixture
def provider_metadata() -> ProviderMetadata:
    return ProviderMetadata(
        issuer=ISSUER,
        authorization_endpoint=AUTH_ENDPOINT,
        token_endpoint=TOKEN_ENDPOINT,
        jwks_uri=JWKS_URI,
        scopes_supported=["openid", "email", "offline_access"],
    )


@pytest.fixture
def provider(provider_metadata) -> OIDCProvider:
    return OIDCProvider(provider_metadata, CLIENT_ID)


@pytest.fixture
def request_config() -> AuthRequestConfig:
    return AuthRequestConfig(
        client_id=CLIENT_ID,
        client_secret=CLIENT_SECRET,
        authorization_endpoint=AUTH_ENDPOINT,
        token_endpoint=TOKEN_ENDPOINT,
        scopes=("openid", "profile", "email"),
        redirect_url="http://example.com/ui",
    )


@pytest.fixture
def auth_params() -> AuthenticationParams:
    return AuthenticationParams(
        username="user@example.org",
        client_id=CLIENT_ID,
        client_secret=CLIENT_SECRET,
        id_token="an.id.token",
        refresh_token="a-refresh-token",
        issuer_url=ISSUER,
    )


@pytest.fixture
def extractor(auth_params) -> PredictableExtractor:
    return PredictableExtractor(params=auth_params)


@pytest.fixture
def template() -> KubeConfig:
    return KubeConfig(
        clusters={
            "prod": Cluster(server="https://prod.example.org", certificate_authority_data=b"PROD-CA"),
            "staging": Cluster(server="https://staging.example.org", certificate_authority="/etc/ca.pem"),
        },
        current_context="prod",
    )


def missing_file(path):
    raise FileNotFoundError(2, "No such file or directory", str(path))


@pytest.fixture
def templater(template) -> KubeConfigTemplater:
    return KubeConfigTemplater(template, read_file=missing_file)


@pytest.fixture
def handshake(request_config, extractor) -> AuthHandshake:
    return AuthHandshake(request_config, extractor, state=lambda _request: "state")


@pytest.fixture
def client(handshake, templater) -> TestClient:
    app = create_app(handshake=handshake, templater=templater)
    return TestClient(app, base_url="http://example.com")
