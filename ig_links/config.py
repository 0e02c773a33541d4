"""Configuration objects and constants for the link resolver."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

logger = logging.getLogger("ig_links")

SITE_URL = "https://www.instagram.com"
API_URL = "https://i.instagram.com/api/v1"
LOGIN_URL = f"{SITE_URL}/accounts/login/"

API_HEADERS = {
    "X-IG-App-ID": "936619743392459",
    "X-ASBD-ID": "198387",
    "X-IG-WWW-Claim": "0",
    "Accept": "*/*",
}

DEFAULT_CONCURRENCY = 4


@dataclass
class ResolverConfig:
    """Top-level settings that control the browser session and batch runs."""

    concurrency: int = DEFAULT_CONCURRENCY
    navigation_timeout: float = 30.0
    link_timeout: Optional[float] = 90.0
    headless: bool = True
    user_data_dir: Path = Path("data")
    executable_path: Optional[str] = None
    browser_args: List[str] = field(default_factory=list)
    proxy: Optional[str] = None
    remote_url: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None

    @classmethod
    def from_env(cls) -> "ResolverConfig":
        """Build a config from ``IG_*`` and ``BROWSER_*`` environment variables."""
        config = cls(
            executable_path=os.getenv("BROWSER_EXECUTABLE_PATH") or None,
            browser_args=(os.getenv("BROWSER_ARGS") or "").split(),
            proxy=os.getenv("BROWSER_PROXY") or None,
            remote_url=os.getenv("BROWSER_REMOTE_URL") or None,
            username=os.getenv("IG_USERNAME") or None,
            password=os.getenv("IG_PASSWORD") or None,
        )
        data_path = os.getenv("BROWSER_DATA_PATH")
        if data_path:
            config.user_data_dir = Path(data_path).expanduser()
        concurrency = os.getenv("IG_CONCURRENCY")
        if concurrency:
            try:
                config.concurrency = int(concurrency)
            except ValueError:
                logger.warning(
                    "IG_CONCURRENCY is set to %r which is not an integer; using %d",
                    concurrency,
                    config.concurrency,
                )
        return config
