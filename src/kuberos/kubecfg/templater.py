"""Kubeconfig generation from a cluster template and OIDC claims."""

import logging
from collections.abc import Callable
from pathlib import Path

import yaml

from kuberos.auth.models import AuthenticationParams
from kuberos.config import DEFAULT_SERVICE_ACCOUNT_PATH, Settings
from kuberos.errors import SerializationError
from kuberos.kubecfg.models import AuthInfo, AuthProviderConfig, Cluster, Context, KubeConfig

logger = logging.getLogger(__name__)

SERVICE_ACCOUNT_ROOT_CA_KEY = "ca.crt"
DEFAULT_CA_PATH = Path(DEFAULT_SERVICE_ACCOUNT_PATH) / SERVICE_ACCOUNT_ROOT_CA_KEY

AUTH_PROVIDER_OIDC = "oidc"
OIDC_CLIENT_ID = "client-id"
OIDC_CLIENT_SECRET = "client-secret"
OIDC_ID_TOKEN = "id-token"
OIDC_ISSUER = "idp-issuer-url"
OIDC_REFRESH_TOKEN = "refresh-token"

FileReader = Callable[[Path], bytes]


def read_local_file(path: Path) -> bytes:
    return Path(path).read_bytes()


def oidc_auth_info(params: AuthenticationParams) -> AuthInfo:
    return AuthInfo(
        auth_provider=AuthProviderConfig(
            name=AUTH_PROVIDER_OIDC,
            config={
                OIDC_CLIENT_ID: params.client_id,
                OIDC_CLIENT_SECRET: params.client_secret,
                OIDC_ID_TOKEN: params.id_token,
                OIDC_REFRESH_TOKEN: params.refresh_token,
                OIDC_ISSUER: params.issuer_url,
            },
        )
    )


class KubeConfigTemplater:
    """Populates a template's clusters with a user and a context per cluster."""

    def __init__(
        self,
        template: KubeConfig,
        ca_path: Path = DEFAULT_CA_PATH,
        read_file: FileReader = read_local_file,
    ):
        self.template = template
        self.ca_path = Path(ca_path)
        self.read_file = read_file

    @classmethod
    def from_settings(cls, settings: Settings) -> "KubeConfigTemplater":
        template = KubeConfig.load(settings.kubecfg_template)
        logger.info(f"Loaded kubecfg template with {len(template.clusters)} cluster(s)")
        return cls(template, ca_path=settings.service_account_path / SERVICE_ACCOUNT_ROOT_CA_KEY)

    def _with_service_account_ca(self, name: str, cluster: Cluster) -> Cluster:
        # Clusters without a CA can usually still be reached with the CA of
        # the cluster Kuberos runs in. Failing to read it is not fatal.
        try:
            ca = self.read_file(self.ca_path)
        except OSError as e:
            logger.warning(f"Cannot read CA certificate {self.ca_path} for cluster {name}: {e}")
            return cluster
        if not ca:
            return cluster
        return cluster.model_copy(update={"certificate_authority_data": ca})

    def render(self, params: AuthenticationParams) -> KubeConfig:
        """Build a kubeconfig for the user described by params."""
        clusters: dict[str, Cluster] = {}
        contexts: dict[str, Context] = {}
        for name, cluster in self.template.clusters.items():
            if not cluster.has_certificate_authority:
                cluster = self._with_service_account_ca(name, cluster)
            clusters[name] = cluster
            contexts[name] = Context(cluster=name, auth_info=params.username)

        return KubeConfig(
            clusters=clusters,
            contexts=contexts,
            auth_infos={params.username: oidc_auth_info(params)},
            current_context=self.template.current_context,
        )

    def render_yaml(self, params: AuthenticationParams) -> str:
        try:
            return self.render(params).to_yaml()
        except (yaml.YAMLError, ValueError) as e:
            raise SerializationError(f"cannot marshal template to YAML: {e}") from e
