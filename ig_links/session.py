"""Browser session management and the login precondition."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable, Optional

from playwright.async_api import (
    BrowserContext,
    Error as PlaywrightError,
    Page,
    async_playwright,
)

from .config import LOGIN_URL, ResolverConfig
from .errors import AuthenticationError

logger = logging.getLogger("ig_links")

VIEWPORT = {"width": 1280, "height": 1600}

USERNAME_INPUT = 'input[name="username"]'
PASSWORD_INPUT = 'input[name="password"]'
SUBMIT_BUTTON = 'button[type="submit"]'
CODE_INPUT = 'input[name="verificationCode"], input[name="security_code"]'

VerificationCodeResolver = Callable[[], Awaitable[str]]


class BrowserSession:
    """An authenticated browser context that hands out one page per caller."""

    def __init__(self, context: BrowserContext, config: ResolverConfig) -> None:
        self.context = context
        self.config = config

    @asynccontextmanager
    async def open_page(self) -> AsyncIterator[Page]:
        page = await self.context.new_page()
        page.set_default_navigation_timeout(self.config.navigation_timeout * 1000)
        try:
            yield page
        finally:
            await page.close()


@asynccontextmanager
async def launch_session(config: ResolverConfig) -> AsyncIterator[BrowserSession]:
    """Connect to a remote Chromium or launch a persistent local one."""
    async with async_playwright() as playwright:
        if config.remote_url:
            logger.info("Connecting to browser at %s", config.remote_url)
            browser = await playwright.chromium.connect_over_cdp(config.remote_url)
            if browser.contexts:
                context = browser.contexts[0]
            else:
                context = await browser.new_context(viewport=VIEWPORT)
            try:
                yield BrowserSession(context, config)
            finally:
                await browser.close()
            return

        config.user_data_dir.mkdir(parents=True, exist_ok=True)
        logger.info("Launching browser with profile %s", config.user_data_dir)
        context = await playwright.chromium.launch_persistent_context(
            str(config.user_data_dir),
            headless=config.headless,
            executable_path=config.executable_path,
            args=config.browser_args or None,
            proxy={"server": config.proxy} if config.proxy else None,
            viewport=VIEWPORT,
        )
        try:
            yield BrowserSession(context, config)
        finally:
            await context.close()


async def _has(page: Page, selector: str) -> bool:
    return await page.locator(selector).count() > 0


async def login(
    session: BrowserSession,
    username: Optional[str],
    password: Optional[str],
    resolve_verification_code: VerificationCodeResolver,
) -> None:
    """Make sure the session is logged in, signing in when it is not.

    Raises :class:`AuthenticationError` on any failure; callers treat that as
    fatal for the whole run.
    """
    async with session.open_page() as page:
        try:
            await page.goto(LOGIN_URL, wait_until="networkidle")
            if not await _has(page, USERNAME_INPUT):
                logger.info("Session is already authenticated")
                return

            if not username or not password:
                raise AuthenticationError(
                    "Login required but IG_USERNAME / IG_PASSWORD are not set"
                )

            logger.info("Logging in as %s", username)
            await page.fill(USERNAME_INPUT, username)
            await page.fill(PASSWORD_INPUT, password)
            await page.click(SUBMIT_BUTTON)
            await page.wait_for_load_state("networkidle")

            if await _has(page, CODE_INPUT):
                logger.info("Verification code requested")
                try:
                    code = await resolve_verification_code()
                except AuthenticationError:
                    raise
                except Exception as exc:
                    raise AuthenticationError(
                        f"Could not obtain verification code: {exc}"
                    ) from exc
                await page.fill(CODE_INPUT, code)
                await page.click(SUBMIT_BUTTON)
                await page.wait_for_load_state("networkidle")

            if await _has(page, USERNAME_INPUT) or await _has(page, CODE_INPUT):
                raise AuthenticationError("Login was rejected")
        except PlaywrightError as exc:
            raise AuthenticationError(f"Login failed: {exc}") from exc
    logger.info("Logged in")
