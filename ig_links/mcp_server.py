"""MCP server exposing the link resolver as a tool."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List

from mcp.server.fastmcp import FastMCP

from .config import ResolverConfig
from .errors import AuthenticationError
from .pipeline import outcome_to_dict, run_resolver

logger = logging.getLogger("ig_links.mcp")
logger.setLevel(logging.ERROR)

mcp = FastMCP(name="ig-links")

# Every run opens the same persistent browser profile, which only one process
# can hold at a time.
_session_lock = asyncio.Lock()


async def _no_verification_code() -> str:
    raise AuthenticationError(
        "A verification code is required; log in once with the ig-links CLI first"
    )


@mcp.tool()
async def resolve(links: List[str]) -> List[Dict[str, Any]]:
    """Resolve Instagram post or story links to their title and media URLs."""
    config = ResolverConfig.from_env()
    async with _session_lock:
        outcomes = [
            outcome
            async for outcome in run_resolver(links, config, _no_verification_code)
        ]
    outcomes.sort(key=lambda outcome: outcome.index)
    return [outcome_to_dict(outcome) for outcome in outcomes]


def main() -> None:
    """Entry point for running the MCP server."""
    logging.basicConfig(level=logging.ERROR)
    mcp.run()


if __name__ == "__main__":
    main()
