from __future__ import annotations

import asyncio
import json
import unittest
from contextlib import asynccontextmanager

from ig_links.batch import run_batch
from ig_links.config import API_HEADERS, ResolverConfig
from ig_links.errors import (
    LinkTimeoutError,
    NoMediaFoundError,
    UnhandledPageTypeError,
    UpstreamFetchError,
)
from ig_links.models import MediaDescriptor, PostDescriptor, StoryDescriptor
from ig_links.pages import extract_require_entries
from ig_links.resolver import ContentResolver, classify, decode_descriptor

POST_INFO_URL = "https://i.instagram.com/api/v1/media/123/info/"
REELS_URL = "https://i.instagram.com/api/v1/feed/reels_media/?reel_ids=u1"


def post_blob(media_id="123", title="Hello", url="/p/ABC/"):
    blob = {
        "tracePolicy": "polaris.postPage",
        "url": url,
        "rootView": {"props": {"media_id": media_id}},
    }
    if title is not None:
        blob["meta"] = {"title": title}
    return blob


def story_blob(user_id="u1", media_id="99", url="/stories/someone/99/"):
    return {
        "tracePolicy": "polaris.StoriesPage",
        "url": url,
        "rootView": {"props": {"user": {"id": user_id}}},
        "params": {"initial_media_id": media_id},
    }


def page_html(*blobs):
    scripts = []
    for blob in blobs:
        payload = {
            "require": [
                ["ScheduledServerJS", "handle", None, [{"__bbox": {"require": [["Root", "render", [], [blob]]]}}]],
            ]
        }
        scripts.append(
            '<script type="application/json" data-sjs>%s</script>' % json.dumps(payload)
        )
    return "<html><head>%s</head><body></body></html>" % "".join(scripts)


class FakePage:
    def __init__(self, html, responses=None, goto_delay=0.0):
        self.html = html
        self.responses = responses or {}
        self.goto_delay = goto_delay
        self.requests = []
        self.closed = 0

    def set_default_navigation_timeout(self, timeout):
        self.navigation_timeout = timeout

    async def goto(self, url, wait_until=None):
        self.url = url
        self.wait_until = wait_until
        if self.goto_delay:
            await asyncio.sleep(self.goto_delay)

    async def content(self):
        return self.html

    async def evaluate(self, script, arg):
        self.requests.append(arg)
        response = self.responses[arg["url"]]
        if isinstance(response, tuple):
            status, body = response
        else:
            status, body = 200, json.dumps(response)
        return {"status": status, "ok": 200 <= status < 300, "body": body}

    async def close(self):
        self.closed += 1


class FakeSession:
    """Hands out the given pages in the order they are opened."""

    def __init__(self, *pages):
        self.pages = list(pages)
        self.opened = 0

    @asynccontextmanager
    async def open_page(self):
        page = self.pages[self.opened]
        self.opened += 1
        try:
            yield page
        finally:
            await page.close()


def make_resolver(*pages, **config):
    return ContentResolver(FakeSession(*pages), ResolverConfig(**config))


class TestExtraction(unittest.TestCase):
    def test_require_arrays_are_flattened_across_scripts(self) -> None:
        html = (
            '<script type="application/json" data-sjs>{"require": [["A"], ["B"]]}</script>'
            '<script type="application/json">{"require": [["ignored"]]}</script>'
            '<script type="application/json" data-sjs>{"other": 1}</script>'
            '<script type="application/json" data-sjs>not json</script>'
            '<script type="application/json" data-sjs>{"require": [["C"]]}</script>'
        )
        self.assertEqual(extract_require_entries(html), [["A"], ["B"], ["C"]])

    def test_descriptor_ids_are_coerced_to_strings(self) -> None:
        descriptor = decode_descriptor(post_blob(media_id=123))
        self.assertIsInstance(descriptor, PostDescriptor)
        self.assertEqual(descriptor.media_id, "123")

    def test_missing_title_is_none(self) -> None:
        self.assertIsNone(decode_descriptor(post_blob(title=None)).title)

    def test_post_takes_precedence_over_story(self) -> None:
        entries = extract_require_entries(page_html(story_blob(), post_blob()))
        self.assertIsInstance(classify(entries), PostDescriptor)

    def test_story_classification(self) -> None:
        descriptor = classify(extract_require_entries(page_html(story_blob())))
        self.assertIsInstance(descriptor, StoryDescriptor)
        self.assertEqual((descriptor.user_id, descriptor.initial_media_id), ("u1", "99"))

    def test_malformed_descriptor_is_unrecognized(self) -> None:
        blob = {"tracePolicy": "polaris.postPage", "url": "/p/X/"}
        with self.assertRaises(UnhandledPageTypeError):
            classify([blob])

    def test_no_descriptor(self) -> None:
        with self.assertRaises(UnhandledPageTypeError) as ctx:
            classify([["Something", {"tracePolicy": "polaris.profilePage"}]])
        self.assertEqual(str(ctx.exception), "Unhandled page type")


class TestContentResolver(unittest.IsolatedAsyncioTestCase):
    async def test_post_link(self) -> None:
        page = FakePage(
            page_html(post_blob()),
            {POST_INFO_URL: {"items": [{"image_versions2": {"candidates": [{"url": "a.jpg"}]}}]}},
        )
        resolver = make_resolver(page)

        result = await resolver.resolve("https://www.instagram.com/p/ABC/")

        self.assertEqual(result.title, "Hello")
        self.assertEqual(result.url, "https://www.instagram.com/p/ABC/")
        self.assertEqual(result.media, [MediaDescriptor("photo", "a.jpg")])
        self.assertEqual(page.wait_until, "networkidle")
        self.assertEqual(page.requests, [{"url": POST_INFO_URL, "headers": API_HEADERS}])
        self.assertEqual(page.closed, 1)

    async def test_story_link(self) -> None:
        response = {
            "reels": {
                "u1": {
                    "user": {"full_name": "A B", "username": "ab"},
                    "items": [
                        {"pk": "98", "image_versions2": {"candidates": [{"url": "other.jpg"}]}},
                        {"pk": "99", "video_versions": [{"url": "v.mp4"}]},
                    ],
                }
            }
        }
        page = FakePage(page_html(story_blob()), {REELS_URL: response})
        resolver = make_resolver(page)

        result = await resolver.resolve("https://www.instagram.com/stories/someone/99/")

        self.assertEqual(result.title, "A B")
        self.assertEqual(result.url, "https://www.instagram.com/stories/someone/99/")
        self.assertEqual(result.media, [MediaDescriptor("video", "v.mp4")])

    async def test_story_title_falls_back_to_username_and_numeric_pk_matches(self) -> None:
        response = {
            "reels": {
                "u1": {
                    "user": {"full_name": "", "username": "ab"},
                    "items": [{"pk": 99, "image_versions2": {"candidates": [{"url": "s.jpg"}]}}],
                }
            }
        }
        resolver = make_resolver(FakePage(page_html(story_blob()), {REELS_URL: response}))
        result = await resolver.resolve("https://www.instagram.com/stories/someone/99/")
        self.assertEqual(result.title, "ab")
        self.assertEqual(result.media, [MediaDescriptor("photo", "s.jpg")])

    async def test_story_skips_non_object_items(self) -> None:
        response = {
            "reels": {
                "u1": {
                    "user": {"username": "ab"},
                    "items": [None, "ad-slot", 7, {"pk": "99", "video_versions": [{"url": "v.mp4"}]}],
                }
            }
        }
        resolver = make_resolver(FakePage(page_html(story_blob()), {REELS_URL: response}))
        result = await resolver.resolve("https://www.instagram.com/stories/someone/99/")
        self.assertEqual(result.media, [MediaDescriptor("video", "v.mp4")])

    async def test_story_without_target_item_has_no_media(self) -> None:
        response = {"reels": {"u1": {"user": {}, "items": [{"pk": "1", "video_versions": [{"url": "x"}]}]}}}
        resolver = make_resolver(FakePage(page_html(story_blob()), {REELS_URL: response}))
        with self.assertRaises(NoMediaFoundError):
            await resolver.resolve("https://www.instagram.com/stories/someone/99/")

    async def test_missing_reel_is_upstream_failure(self) -> None:
        resolver = make_resolver(FakePage(page_html(story_blob()), {REELS_URL: {"reels": {}}}))
        with self.assertRaises(UpstreamFetchError):
            await resolver.resolve("https://www.instagram.com/stories/someone/99/")

    async def test_unhandled_page_releases_page(self) -> None:
        page = FakePage("<html><body>login wall</body></html>")
        resolver = make_resolver(page)
        with self.assertRaises(UnhandledPageTypeError):
            await resolver.resolve("https://www.instagram.com/accounts/login/")
        self.assertEqual(page.closed, 1)

    async def test_empty_items_is_no_media_found(self) -> None:
        page = FakePage(page_html(post_blob()), {POST_INFO_URL: {"items": []}})
        resolver = make_resolver(page)
        with self.assertRaises(NoMediaFoundError) as ctx:
            await resolver.resolve("https://www.instagram.com/p/ABC/")
        self.assertEqual(str(ctx.exception), "No media found")
        self.assertEqual(page.closed, 1)

    async def test_http_error_is_upstream_failure(self) -> None:
        page = FakePage(page_html(post_blob()), {POST_INFO_URL: (500, "oops")})
        resolver = make_resolver(page)
        with self.assertRaises(UpstreamFetchError):
            await resolver.resolve("https://www.instagram.com/p/ABC/")
        self.assertEqual(page.closed, 1)

    async def test_unexpected_response_shape_is_upstream_failure(self) -> None:
        for body in ({"status": "fail"}, (200, "<html>"), (200, "[1, 2]")):
            page = FakePage(page_html(post_blob()), {POST_INFO_URL: body})
            resolver = make_resolver(page)
            with self.assertRaises(UpstreamFetchError):
                await resolver.resolve("https://www.instagram.com/p/ABC/")

    async def test_link_timeout_releases_page(self) -> None:
        page = FakePage(page_html(post_blob()), goto_delay=1.0)
        resolver = make_resolver(page, link_timeout=0.05)
        with self.assertRaises(LinkTimeoutError):
            await resolver.resolve("https://www.instagram.com/p/ABC/")
        self.assertEqual(page.closed, 1)

    async def test_batch_keeps_going_after_failed_link(self) -> None:
        good = FakePage(
            page_html(post_blob()),
            {POST_INFO_URL: {"items": [{"carousel_media": [
                {"image_versions2": {"candidates": [{"url": "1.jpg"}]}},
                {"video_versions": [{"url": "2.mp4"}]},
            ]}]}},
        )
        empty = FakePage(
            page_html(post_blob(media_id="456")),
            {"https://i.instagram.com/api/v1/media/456/info/": {"items": []}},
        )
        unknown = FakePage("<html></html>")
        resolver = make_resolver(good, empty, unknown)
        links = [
            "https://www.instagram.com/p/ABC/",
            "https://www.instagram.com/p/DEF/",
            "https://www.instagram.com/explore/",
        ]

        outcomes = await run_batch(links, resolver.resolve, 1)

        self.assertEqual(len(outcomes), 3)
        self.assertTrue(outcomes[0].ok)
        self.assertEqual(
            outcomes[0].result.media,
            [MediaDescriptor("photo", "1.jpg"), MediaDescriptor("video", "2.mp4")],
        )
        self.assertEqual(outcomes[1].item, links[1])
        self.assertEqual(outcomes[1].reason, "No media found")
        self.assertIsInstance(outcomes[2].error, UnhandledPageTypeError)
        self.assertEqual([page.closed for page in (good, empty, unknown)], [1, 1, 1])


if __name__ == "__main__":
    unittest.main()
