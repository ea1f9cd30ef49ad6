"""Tests for settings and client secret resolution."""

import json
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from kuberos.cli import build_parser, load_settings
from kuberos.config import Settings

REQUIRED = {
    "issuer_url": "https://accounts.example.org",
    "client_id": "testClientID",
    "kubecfg_template": "/cfg/template",
}


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for key in ("CLIENT_SECRET", "CLIENT_SECRET_FILE", "AWS_SECRET_NAME", "EXTRA_SCOPES", "DEBUG"):
        monkeypatch.delenv(f"KUBEROS_{key}", raising=False)
    monkeypatch.chdir(tmp_path)


def test_defaults():
    settings = Settings(**REQUIRED)

    assert settings.extra_scopes == ["profile", "email"]
    assert settings.kubecfg_endpoint == "ui"
    assert settings.state_client_address == "none"
    assert settings.service_account_path == Path("/var/run/secrets/kubernetes.io/serviceaccount")
    assert settings.port == 10003
    assert settings.oidc_discovery_url == "https://accounts.example.org/.well-known/openid-configuration"


def test_extra_scopes_from_env(monkeypatch):
    monkeypatch.setenv("KUBEROS_EXTRA_SCOPES", "profile, email,groups")

    assert Settings(**REQUIRED).extra_scopes == ["profile", "email", "groups"]


def test_debug_forces_debug_level():
    assert Settings(**REQUIRED, debug=True).effective_log_level == "DEBUG"
    assert Settings(**REQUIRED, log_level="warning").effective_log_level == "WARNING"


class TestClientSecret:
    def test_inline_secret(self):
        assert Settings(**REQUIRED, client_secret="s3cret").resolve_client_secret() == "s3cret"

    def test_secret_file_is_trimmed(self, tmp_path):
        path = tmp_path / "secret"
        path.write_text("s3cret\n")

        assert Settings(**REQUIRED, client_secret_file=path).resolve_client_secret() == "s3cret"

    def test_aws_secrets_manager(self):
        client = MagicMock()
        client.get_secret_value.return_value = {"SecretString": json.dumps({"client_secret": "from-aws"})}

        with patch("kuberos.config.boto3") as boto3:
            boto3.session.Session.return_value.client.return_value = client
            settings = Settings(**REQUIRED, aws_secret_name="kuberos")
            assert settings.resolve_client_secret() == "from-aws"

        client.get_secret_value.assert_called_once_with(SecretId="kuberos")

    def test_no_secret(self):
        with pytest.raises(ValueError, match="No client secret configured"):
            Settings(**REQUIRED).resolve_client_secret()


def test_cli_arguments_override_settings(tmp_path):
    secret = tmp_path / "secret"
    secret.write_text("s3cret")
    args = build_parser().parse_args(
        [
            "https://accounts.example.org",
            "testClientID",
            str(secret),
            "/cfg/template",
            "--port",
            "8080",
            "--email-domain",
            "example.org",
        ]
    )

    settings = load_settings(args)

    assert settings.client_id == "testClientID"
    assert settings.port == 8080
    assert settings.email_domain == "example.org"
    assert settings.kubecfg_template == Path("/cfg/template")
    assert settings.resolve_client_secret() == "s3cret"
