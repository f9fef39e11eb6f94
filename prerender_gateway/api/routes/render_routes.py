"""
Render routes for the Prerender Gateway.

Two request shapes reach the same handler:

- `GET /render?url=<absolute-url>`
- `GET /render/<absolute-url>`, optionally percent-encoded

Every render request must carry the shared secret in `X-Render-Secret`. With no
secret configured, every request is refused.
"""
import hmac
from typing import Optional
from urllib.parse import unquote

from fastapi import APIRouter, Depends, Header, Query, Request
from fastapi.responses import Response

from prerender_gateway.core.exceptions import AuthError, PrerenderGatewayError
from prerender_gateway.core.logger import get_logger
from prerender_gateway.core.pipeline import RenderPipeline
from prerender_gateway.core.targets import RenderTarget

logger = get_logger(__name__)

RENDER_PATH_PREFIX = "/render/"

router = APIRouter()


def get_pipeline(request: Request) -> RenderPipeline:
    """Returns the pipeline owned by the running application."""
    return request.app.state.pipeline


def require_render_secret(
    request: Request,
    x_render_secret: Optional[str] = Header(default=None),
) -> None:
    """
    Checks the `X-Render-Secret` header against the configured secret.

    Raises:
        AuthError: If the secret is unset/empty, the header is missing, or the values differ.
    """
    secret = request.app.state.config.get("auth.secret") or ""
    if not secret or x_render_secret is None:
        raise AuthError("unauthorized")
    if not hmac.compare_digest(x_render_secret.encode("utf-8"), str(secret).encode("utf-8")):
        raise AuthError("unauthorized")


def extract_target_url(query_url: Optional[str], raw_path: str) -> str:
    """
    Picks the target URL out of a render request.

    The `url` query parameter wins. Otherwise everything after `/render/` in the
    raw request path is percent-decoded once; if that fails, the raw remainder
    is used as is.

    Args:
        query_url (Optional[str]): Value of the `url` query parameter.
        raw_path (str): The undecoded request path.

    Returns:
        str: The candidate target, or '' when none was supplied.
    """
    if query_url:
        return query_url
    if not raw_path.lower().startswith(RENDER_PATH_PREFIX):
        return ""
    remainder = raw_path[len(RENDER_PATH_PREFIX):]
    if not remainder:
        return ""
    try:
        return unquote(remainder, errors="strict")
    except UnicodeDecodeError:
        return remainder


def _raw_request_path(request: Request) -> str:
    raw_path = request.scope.get("raw_path")
    if raw_path:
        # Some servers include the query string in raw_path.
        return raw_path.decode("latin-1").split("?", 1)[0]
    return request.url.path


@router.get("/render", dependencies=[Depends(require_render_secret)], include_in_schema=False)
@router.get("/render/{target:path}", dependencies=[Depends(require_render_secret)],
            summary="Render a page to static HTML")
async def render_endpoint(
    request: Request,
    url: Optional[str] = Query(default=None),
    pipeline: RenderPipeline = Depends(get_pipeline),
) -> Response:
    """
    Renders a target page and returns the normalized snapshot.

    Validation order: secret (401), absolute http(s) URL (400), allow-list (403),
    public-address check (500). Failures are raised as gateway exceptions and
    turned into responses by the application's exception handlers.
    """
    target = RenderTarget.parse(extract_target_url(url, _raw_request_path(request)))
    logger.info(f"Render requested for {target.url}")

    try:
        html = await pipeline.render(target)
    except PrerenderGatewayError:
        raise
    except Exception as e:
        logger.error(f"Unexpected error rendering {target.url}: {e}", exc_info=True)
        raise PrerenderGatewayError(str(e) or e.__class__.__name__)

    return Response(
        content=html,
        media_type="text/html",
        headers={"Cache-Control": f"public, max-age={int(pipeline.cache.ttl_seconds)}"},
    )
