"""Helpers that read data out of a loaded Playwright page."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Mapping

from bs4 import BeautifulSoup
from playwright.async_api import Page

from .errors import UpstreamFetchError

logger = logging.getLogger("ig_links")

SCRIPT_SELECTOR = 'script[type="application/json"][data-sjs]'

_FETCH_SCRIPT = """
async ({ url, headers }) => {
    const response = await fetch(url, { headers, credentials: 'include' });
    return { status: response.status, ok: response.ok, body: await response.text() };
}
"""


def extract_require_entries(html: str) -> List[Any]:
    """Collect the ``require`` arrays of every data script, flattened one level."""
    soup = BeautifulSoup(html, "html.parser")
    entries: List[Any] = []
    for script in soup.select(SCRIPT_SELECTOR):
        raw = script.string or script.get_text()
        if not raw or not raw.strip():
            continue
        try:
            payload = json.loads(raw)
        except ValueError as exc:
            logger.warning("Skipping malformed data script: %s", exc)
            continue
        require = payload.get("require") if isinstance(payload, dict) else None
        if isinstance(require, list):
            entries.extend(require)
    return entries


async def collect_require_entries(page: Page) -> List[Any]:
    html = await page.content()
    return extract_require_entries(html)


async def fetch_json(page: Page, url: str, headers: Mapping[str, str]) -> Dict[str, Any]:
    """GET ``url`` from inside the page so the session cookies are sent along."""
    logger.debug("Fetching %s", url)
    response = await page.evaluate(_FETCH_SCRIPT, {"url": url, "headers": dict(headers)})
    if not response.get("ok"):
        raise UpstreamFetchError(f"GET {url} returned HTTP {response.get('status')}")
    try:
        data = json.loads(response.get("body") or "")
    except ValueError as exc:
        raise UpstreamFetchError(f"GET {url} returned invalid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise UpstreamFetchError(f"GET {url} returned {type(data).__name__}, expected object")
    return data
