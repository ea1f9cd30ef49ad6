"""Kuberos: OIDC authentication configuration for kubectl."""

__version__ = "0.1.0"
