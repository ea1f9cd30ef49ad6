"""Routes for the OIDC login redirect and callback."""

import logging

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse, RedirectResponse

from kuberos.dependencies import Handshake

logger = logging.getLogger(__name__)

router = APIRouter(tags=["authentication"])


@router.get("/", name="login")
async def login(request: Request, handshake: Handshake):
    """Redirect to the OIDC provider to start authentication."""
    url = handshake.authorization_url(request)
    logger.debug(f"Redirecting to {url}")
    return RedirectResponse(url=url, status_code=status.HTTP_303_SEE_OTHER)


@router.get("/kubecfg", name="kubecfg")
async def kubecfg(request: Request, handshake: Handshake):
    """
    Handle the provider's redirect.
    Exchanges the authorization code and returns what kubectl needs as JSON.
    """
    params = await handshake.callback(request)
    logger.info(f"Authenticated {params.username}")
    return JSONResponse(content=params.to_wire())
