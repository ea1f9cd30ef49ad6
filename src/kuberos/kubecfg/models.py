"""Kubeconfig data model and its YAML wire format."""

import base64
import binascii
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_serializer, field_validator

API_VERSION = "v1"
KIND = "Config"


class KubeConfigError(ValueError):
    """A kubeconfig document could not be parsed."""


class _KubeModel(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_defaults=True)


class Cluster(_KubeModel):
    """How to reach a cluster's API server."""

    server: str = ""
    tls_server_name: str | None = Field(None, alias="tls-server-name")
    insecure_skip_tls_verify: bool = Field(False, alias="insecure-skip-tls-verify")
    certificate_authority: str | None = Field(None, alias="certificate-authority")
    certificate_authority_data: bytes | None = Field(None, alias="certificate-authority-data")
    proxy_url: str | None = Field(None, alias="proxy-url")

    @field_validator("certificate_authority_data", mode="before")
    @classmethod
    def decode_ca_data(cls, v: Any) -> Any:
        if isinstance(v, str):
            # Line-wrapped data, as pasted from base64(1), is accepted.
            v = "".join(v.split())
            try:
                return base64.b64decode(v, validate=True)
            except binascii.Error as e:
                raise ValueError(f"certificate-authority-data is not valid base64: {e}") from e
        return v

    @field_serializer("certificate_authority_data")
    def encode_ca_data(self, v: bytes | None) -> str | None:
        if v is None:
            return None
        return base64.b64encode(v).decode("ascii")

    @property
    def has_certificate_authority(self) -> bool:
        return bool(self.certificate_authority_data) or bool(self.certificate_authority)


class Context(_KubeModel):
    """Binds a cluster to a user."""

    cluster: str = ""
    auth_info: str = Field("", alias="user")
    namespace: str | None = None


class AuthProviderConfig(_KubeModel):
    name: str
    config: dict[str, str] = Field(default_factory=dict)


class AuthInfo(_KubeModel):
    """Credentials for a user."""

    auth_provider: AuthProviderConfig | None = Field(None, alias="auth-provider")


def _named(entries: Any, kind: str, model: type[_KubeModel]) -> dict[str, Any]:
    if entries is None:
        return {}
    if not isinstance(entries, list):
        raise KubeConfigError(f"{kind}s must be a list")

    named = {}
    for entry in entries:
        if not isinstance(entry, dict) or not entry.get("name"):
            raise KubeConfigError(f"{kind} entry without a name")
        named[entry["name"]] = model.model_validate(entry.get(kind) or {})
    return named


class KubeConfig(_KubeModel):
    """A kubeconfig: clusters, users and the contexts binding them."""

    clusters: dict[str, Cluster] = Field(default_factory=dict)
    contexts: dict[str, Context] = Field(default_factory=dict)
    auth_infos: dict[str, AuthInfo] = Field(default_factory=dict)
    current_context: str = ""

    @classmethod
    def from_yaml(cls, text: str) -> "KubeConfig":
        try:
            document = yaml.safe_load(text) or {}
        except yaml.YAMLError as e:
            raise KubeConfigError(f"cannot parse kubeconfig: {e}") from e
        if not isinstance(document, dict):
            raise KubeConfigError("kubeconfig must be a mapping")

        try:
            return cls(
                clusters=_named(document.get("clusters"), "cluster", Cluster),
                contexts=_named(document.get("contexts"), "context", Context),
                auth_infos=_named(document.get("users"), "user", AuthInfo),
                current_context=document.get("current-context") or "",
            )
        except ValidationError as e:
            raise KubeConfigError(f"invalid kubeconfig: {e}") from e

    @classmethod
    def load(cls, path: str | Path) -> "KubeConfig":
        return cls.from_yaml(Path(path).read_text(encoding="utf-8"))

    def to_wire(self) -> dict[str, Any]:
        return {
            "apiVersion": API_VERSION,
            "kind": KIND,
            "clusters": [
                {"name": name, "cluster": cluster.to_wire()}
                for name, cluster in sorted(self.clusters.items())
            ],
            "contexts": [
                {"name": name, "context": context.to_wire()}
                for name, context in sorted(self.contexts.items())
            ],
            "users": [
                {"name": name, "user": auth_info.to_wire()}
                for name, auth_info in sorted(self.auth_infos.items())
            ],
            "current-context": self.current_context,
            "preferences": {},
        }

    def to_yaml(self) -> str:
        return yaml.safe_dump(self.to_wire(), default_flow_style=False, sort_keys=True)
