"""Main FastAPI application for Kuberos."""

import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse
from fastapi.staticfiles import StaticFiles

from kuberos import __version__
from kuberos.auth.handshake import AuthHandshake
from kuberos.auth.routes import router as auth_router
from kuberos.config import Settings, get_settings
from kuberos.errors import KuberosError
from kuberos.kubecfg.routes import router as kubecfg_router
from kuberos.kubecfg.templater import KubeConfigTemplater

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level, format=LOG_FORMAT)


def create_app(
    settings: Settings | None = None,
    handshake: AuthHandshake | None = None,
    templater: KubeConfigTemplater | None = None,
) -> FastAPI:
    """
    Create the Kuberos application.
    Components not passed in are built from settings at startup.
    """
    if settings is None and (handshake is None or templater is None):
        settings = get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting Kuberos...")

        http_client = None
        if app.state.handshake is None:
            http_client = httpx.AsyncClient(timeout=settings.http_timeout_s)
            try:
                app.state.handshake = await AuthHandshake.from_settings(settings, http_client)
            except Exception as e:
                await http_client.aclose()
                logger.error(f"Failed to set up OIDC provider {settings.issuer_url}: {e}")
                raise
        if app.state.templater is None:
            try:
                app.state.templater = KubeConfigTemplater.from_settings(settings)
            except Exception as e:
                if http_client is not None:
                    await http_client.aclose()
                logger.error(f"Failed to load kubecfg template {settings.kubecfg_template}: {e}")
                raise

        yield

        logger.info("Shutting down Kuberos...")
        if http_client is not None:
            await http_client.aclose()

    app = FastAPI(
        title="Kuberos",
        description="Provides OIDC authentication configuration for kubectl",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.handshake = handshake
    app.state.templater = templater

    @app.middleware("http")
    async def log_request(request: Request, call_next):
        logger.info(
            f"request host={request.headers.get('host', '')} method={request.method} "
            f"path={request.url.path} agent={request.headers.get('user-agent', '')} "
            f"addr={request.client.host if request.client else ''}"
        )
        return await call_next(request)

    @app.exception_handler(KuberosError)
    async def kuberos_exception_handler(request: Request, exc: KuberosError):
        logger.warning(f"{request.url.path} failed with {exc.status_code}: {exc.message}")
        return PlainTextResponse(exc.message, status_code=exc.status_code)

    @app.get("/healthz")
    async def health_check():
        return {"status": "ok"}

    app.include_router(auth_router)
    app.include_router(kubecfg_router)

    if settings is not None and settings.ui_dir is not None:
        app.mount("/ui", StaticFiles(directory=settings.ui_dir, html=True), name="ui")

    return app


if __name__ == "__main__":
    from kuberos.cli import main

    main()
