"""
Main application file for the Prerender Gateway API.

This file builds the FastAPI application, sets up logging, registers the
exception handlers that turn gateway errors into plain-text responses, and
includes the routers. The render pipeline (and with it the shared browser) is
owned by the application and closed when the application shuts down.
"""
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from prerender_gateway.api.routes import render_routes, system_routes
from prerender_gateway.core.config import ConfigurationManager, config_manager
from prerender_gateway.core.exceptions import AuthError, PolicyError, PrerenderGatewayError, ValidationError
from prerender_gateway.core.logger import setup_logging, get_logger
from prerender_gateway.core.pipeline import RenderPipeline

setup_logging(config_manager)
logger = get_logger(__name__)

API_VERSION = "1.0.0"


def error_body(exc: PrerenderGatewayError) -> str:
    """Plain-text body sent for a gateway error."""
    if isinstance(exc, AuthError):
        return "unauthorized"
    if isinstance(exc, ValidationError):
        return exc.message
    if isinstance(exc, PolicyError):
        return "forbidden: host not allowed"
    return f"Render error: {exc.message}"


def create_app(config: Optional[ConfigurationManager] = None,
               pipeline: Optional[RenderPipeline] = None) -> FastAPI:
    """
    Builds the FastAPI application.

    Args:
        config (Optional[ConfigurationManager]): Configuration to use. Defaults to the
            global `config_manager`.
        pipeline (Optional[RenderPipeline]): Pre-built pipeline. Defaults to one built
            from `config`.

    Returns:
        FastAPI: The configured application.
    """
    app_config = config if config is not None else config_manager
    render_pipeline = pipeline if pipeline is not None else RenderPipeline.from_config(app_config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Prerender Gateway starting; browser launches on first render.")
        yield
        logger.info("Prerender Gateway shutting down; releasing browser session.")
        await render_pipeline.aclose()

    app = FastAPI(
        title="Prerender Gateway",
        description="Renders client-side pages with a headless browser and serves static HTML to crawlers.",
        version=API_VERSION,
        lifespan=lifespan,
    )
    app.state.config = app_config
    app.state.pipeline = render_pipeline

    @app.exception_handler(PrerenderGatewayError)
    async def gateway_exception_handler(request: Request, exc: PrerenderGatewayError):
        """Maps gateway errors to their status code and a plain-text body."""
        if exc.status_code >= 500:
            logger.error(f"{exc.__class__.__name__} for {request.method} {request.url.path}: {exc.message}")
        else:
            logger.warning(f"{exc.__class__.__name__} for {request.method} {request.url.path}: {exc.message}")
        return PlainTextResponse(error_body(exc), status_code=exc.status_code)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Anything that is not a known route and method is simply not served here."""
        if exc.status_code in (status.HTTP_404_NOT_FOUND, status.HTTP_405_METHOD_NOT_ALLOWED):
            return PlainTextResponse("", status_code=status.HTTP_404_NOT_FOUND)
        return PlainTextResponse(str(exc.detail), status_code=exc.status_code, headers=exc.headers)

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        """Catch-all so clients always get a response, with the error message included."""
        logger.critical(
            f"Unhandled exception: {exc.__class__.__name__} - {str(exc)} "
            f"for request: {request.method} {request.url.path}",
            exc_info=True
        )
        return PlainTextResponse(f"Render error: {exc}", status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)

    app.include_router(system_routes.router, tags=["System"])
    app.include_router(render_routes.router, tags=["Render"])
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    host = config_manager.get("server.host", "0.0.0.0")
    port = int(config_manager.get("server.port", 8080))
    logger.info(f"Prerender Gateway listening on {host}:{port}")
    uvicorn.run(app, host=host, port=port)
