"""Kubeconfig templating."""

from kuberos.kubecfg.models import AuthInfo, AuthProviderConfig, Cluster, Context, KubeConfig
from kuberos.kubecfg.templater import KubeConfigTemplater

__all__ = [
    "AuthInfo",
    "AuthProviderConfig",
    "Cluster",
    "Context",
    "KubeConfig",
    "KubeConfigTemplater",
]
