"""Command-line entry point for the link resolver."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
import time
from pathlib import Path
from typing import List, Sequence

from .config import ResolverConfig
from .errors import AuthenticationError
from .pipeline import outcome_to_dict, run_resolver

logger = logging.getLogger("ig_links.cli")


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Resolve Instagram post and story links to their photo and video URLs.",
    )
    parser.add_argument("links", nargs="*", help="One or more post or story links")
    parser.add_argument(
        "--file",
        type=Path,
        default=None,
        help="Read additional links from this file, one per line",
    )
    parser.add_argument(
        "--concurrency",
        type=int,
        default=None,
        help="Maximum number of links resolved at the same time (default: 4)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=30.0,
        help="Navigation timeout in seconds",
    )
    parser.add_argument(
        "--link-timeout",
        type=float,
        default=90.0,
        help="Give up on a single link after this many seconds (0 disables)",
    )
    parser.add_argument(
        "--headful",
        action="store_true",
        help="Show the browser window instead of running headless",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    return parser.parse_args(argv)


def read_links(links: Sequence[str], path: Path | None) -> List[str]:
    collected = [link.strip() for link in links if link.strip()]
    if path is not None:
        for line in path.read_text(encoding="utf-8").splitlines():
            line = line.strip()
            if line and not line.startswith("#"):
                collected.append(line)
    return collected


async def prompt_verification_code() -> str:
    """Ask for the login verification code on the terminal."""
    code = await asyncio.to_thread(input, "Verification code: ")
    code = code.strip()
    if not code:
        raise AuthenticationError("No verification code entered")
    return code


def build_config(args: argparse.Namespace) -> ResolverConfig:
    config = ResolverConfig.from_env()
    if args.concurrency is not None:
        config.concurrency = args.concurrency
    config.navigation_timeout = args.timeout
    config.link_timeout = args.link_timeout or None
    config.headless = not args.headful
    return config


async def _run(links: List[str], config: ResolverConfig) -> int:
    failures = 0
    async for outcome in run_resolver(links, config, prompt_verification_code):
        if not outcome.ok:
            failures += 1
        sys.stdout.write(json.dumps(outcome_to_dict(outcome), ensure_ascii=False) + "\n")
        sys.stdout.flush()
    return failures


def main(argv: Sequence[str] | None = None) -> None:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
        force=True,
    )

    try:
        links = read_links(args.links, args.file)
    except OSError as exc:
        logger.error("Could not read links from %s: %s", args.file, exc)
        raise SystemExit(2) from exc
    if not links:
        logger.error("No links given")
        raise SystemExit(2)
    config = build_config(args)
    if config.concurrency < 1:
        logger.error("--concurrency must be at least 1")
        raise SystemExit(2)

    overall_start = time.perf_counter()
    try:
        failures = asyncio.run(_run(links, config))
    except AuthenticationError as exc:
        logger.error("Could not log in: %s", exc)
        raise SystemExit(2) from exc
    total_elapsed = time.perf_counter() - overall_start

    logger.info(
        "Finished in %.2fs (%d/%d succeeded, %d failed)",
        total_elapsed,
        len(links) - failures,
        len(links),
        failures,
    )
    if failures:
        raise SystemExit(1)


if __name__ == "__main__":
    main()
