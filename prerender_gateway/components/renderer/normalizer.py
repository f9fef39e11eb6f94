"""
Turns a live page into a static, non-executing snapshot.

The serialized DOM gets a `<base href>` pointing at the target's origin, so
relative asset links in the cached snapshot resolve against the original site
instead of the rendering host, and loses every `<script>` plus the
preload/modulepreload/prefetch hints.
"""
from typing import TYPE_CHECKING

from bs4 import BeautifulSoup
from playwright.async_api import Error as PlaywrightError, Page

from prerender_gateway.core.exceptions import RendererError
from prerender_gateway.core.logger import get_logger

if TYPE_CHECKING:
    from prerender_gateway.core.targets import RenderTarget

logger = get_logger(__name__)

STRIPPED_LINK_RELS = frozenset({"preload", "modulepreload", "prefetch"})


def _with_trailing_slash(url: str) -> str:
    return url if url.endswith("/") else url + "/"


def normalize_html(html: str, origin: str) -> str:
    """
    Rewrites an HTML document into a crawler snapshot.

    Args:
        html (str): Serialized document.
        origin (str): Origin of the rendered target, e.g. 'https://example.com'.

    Returns:
        str: The document with a single leading `<base>` in `<head>` and no
             scripts or preload hints.
    """
    soup = BeautifulSoup(html, "html.parser")

    head = soup.head
    if head is None:
        head = soup.new_tag("head")
        if soup.html is not None:
            soup.html.insert(0, head)
        else:
            soup.insert(0, head)

    bases = soup.find_all("base")
    if bases:
        base = bases[0]
        for extra in bases[1:]:
            extra.decompose()
        base.extract()
    else:
        base = soup.new_tag("base")
    base["href"] = _with_trailing_slash(origin)
    head.insert(0, base)

    for script in soup.find_all("script"):
        script.decompose()
    for link in soup.find_all("link", rel=True):
        rel = link.get("rel")
        rel_value = " ".join(rel) if isinstance(rel, list) else str(rel)
        if rel_value.strip().lower() in STRIPPED_LINK_RELS:
            link.decompose()

    return str(soup)


class ContentNormalizer:
    """Serializes a page and hands the markup to `normalize_html`."""

    async def normalize(self, page: Page, target: 'RenderTarget') -> str:
        try:
            html = await page.content()
        except PlaywrightError as e:
            raise RendererError(f"Failed to serialize page for '{target.url}': {e}")
        snapshot = normalize_html(html, target.origin)
        logger.debug(f"Normalized snapshot for {target.url}: {len(html)} -> {len(snapshot)} chars")
        return snapshot
