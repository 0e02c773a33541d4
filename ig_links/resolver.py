"""Per-link resolution: load the page, classify it, fetch and flatten its media."""

from __future__ import annotations

import asyncio
import logging
from typing import (
    Any,
    AsyncContextManager,
    Dict,
    List,
    Optional,
    Protocol,
    Sequence,
    Tuple,
    Type,
    TypeVar,
)

from playwright.async_api import Page
from pydantic import BaseModel, TypeAdapter, ValidationError

from .config import API_HEADERS, API_URL, SITE_URL, ResolverConfig
from .errors import LinkTimeoutError, NoMediaFoundError, UnhandledPageTypeError, UpstreamFetchError
from .media import flatten
from .models import (
    ContentDescriptor,
    MediaInfoResponse,
    PostDescriptor,
    ReelsMediaResponse,
    ResolvedContent,
    StoryDescriptor,
)
from .pages import collect_require_entries, fetch_json
from .search import find_post_data, find_shared_data, find_story_data

logger = logging.getLogger("ig_links")

ResponseT = TypeVar("ResponseT", bound=BaseModel)

_DESCRIPTOR_ADAPTER: TypeAdapter[ContentDescriptor] = TypeAdapter(ContentDescriptor)


class PageProvider(Protocol):
    def open_page(self) -> AsyncContextManager[Page]:
        ...


def decode_descriptor(raw: Any) -> Optional[ContentDescriptor]:
    """Validate a located page blob into a post or story descriptor."""
    try:
        return _DESCRIPTOR_ADAPTER.validate_python(raw)
    except ValidationError as exc:
        logger.warning("Ignoring page descriptor with unexpected shape: %s", exc)
        return None


def classify(entries: Sequence[Any]) -> ContentDescriptor:
    """Pick the page's descriptor; a post wins when both kinds are present."""
    for searcher in (find_post_data, find_story_data):
        raw = searcher.first(entries)
        if raw is None:
            continue
        descriptor = decode_descriptor(raw)
        if descriptor is not None:
            return descriptor
    raise UnhandledPageTypeError()


def _parse_response(model: Type[ResponseT], data: Dict[str, Any], url: str) -> ResponseT:
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise UpstreamFetchError(f"Unexpected response from {url}: {exc}") from exc


async def fetch_post(
    page: Page, descriptor: PostDescriptor
) -> Tuple[Optional[str], List[Dict[str, Any]]]:
    url = f"{API_URL}/media/{descriptor.media_id}/info/"
    response = _parse_response(MediaInfoResponse, await fetch_json(page, url, API_HEADERS), url)
    return descriptor.title, response.items


async def fetch_story(
    page: Page, descriptor: StoryDescriptor
) -> Tuple[Optional[str], List[Dict[str, Any]]]:
    url = f"{API_URL}/feed/reels_media/?reel_ids={descriptor.user_id}"
    response = _parse_response(ReelsMediaResponse, await fetch_json(page, url, API_HEADERS), url)
    reel = response.reels.get(descriptor.user_id)
    if reel is None:
        raise UpstreamFetchError(f"No reel for user {descriptor.user_id} in response from {url}")
    items = [
        item
        for item in reel.items
        if isinstance(item, dict) and str(item.get("pk")) == descriptor.initial_media_id
    ]
    return reel.user.display_name, items[:1]


class ContentResolver:
    """Resolves single links to their title, canonical URL and media list."""

    def __init__(self, session: PageProvider, config: ResolverConfig) -> None:
        self.session = session
        self.config = config

    async def resolve(self, link: str) -> ResolvedContent:
        timeout = self.config.link_timeout
        if not timeout:
            return await self._resolve(link)
        try:
            return await asyncio.wait_for(self._resolve(link), timeout)
        except asyncio.TimeoutError as exc:
            raise LinkTimeoutError(f"{link} did not resolve within {timeout:g}s") from exc

    async def _resolve(self, link: str) -> ResolvedContent:
        async with self.session.open_page() as page:
            logger.debug("Processing link %s", link)
            await page.goto(link, wait_until="networkidle")

            entries = await collect_require_entries(page)
            logger.debug(
                "Found %d data entries on %s (shared data: %s)",
                len(entries),
                link,
                "yes" if find_shared_data.first(entries) is not None else "no",
            )

            descriptor = classify(entries)
            logger.debug("Classified %s as %r", link, descriptor)

            if isinstance(descriptor, PostDescriptor):
                title, raw_items = await fetch_post(page, descriptor)
            else:
                title, raw_items = await fetch_story(page, descriptor)

        media = flatten(raw_items)
        if not media:
            raise NoMediaFoundError()
        logger.debug("Resolved %d media item(s) for %s", len(media), link)
        return ResolvedContent(
            title=title,
            url=f"{SITE_URL}{descriptor.url}",
            media=media,
        )
