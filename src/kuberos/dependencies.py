"""FastAPI dependencies exposing the application's shared, read-only state."""

from typing import Annotated

from fastapi import Depends, Request

from kuberos.auth.handshake import AuthHandshake
from kuberos.kubecfg.templater import KubeConfigTemplater


def get_handshake(request: Request) -> AuthHandshake:
    return request.app.state.handshake


def get_templater(request: Request) -> KubeConfigTemplater:
    return request.app.state.templater


# Type aliases for dependency injection
Handshake = Annotated[AuthHandshake, Depends(get_handshake)]
Templater = Annotated[KubeConfigTemplater, Depends(get_templater)]
