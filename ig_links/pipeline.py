"""High-level orchestration: open a session, log in, resolve a batch of links."""

from __future__ import annotations

import logging
from typing import Any, AsyncIterator, Dict, Sequence

from .batch import iter_outcomes
from .config import ResolverConfig
from .models import BatchOutcome, ResolvedContent
from .resolver import ContentResolver
from .session import VerificationCodeResolver, launch_session, login

logger = logging.getLogger("ig_links")

LinkOutcome = BatchOutcome[str, ResolvedContent]


def outcome_to_dict(outcome: LinkOutcome) -> Dict[str, Any]:
    """Serializable view of an outcome, keyed by its link."""
    if outcome.ok and outcome.result is not None:
        return {"link": outcome.item, "ok": True, **outcome.result.to_dict()}
    return {"link": outcome.item, "ok": False, "error": outcome.reason}


async def run_resolver(
    links: Sequence[str],
    config: ResolverConfig,
    resolve_verification_code: VerificationCodeResolver,
) -> AsyncIterator[LinkOutcome]:
    """Yield one outcome per link as soon as it settles.

    Login problems raise :class:`~ig_links.errors.AuthenticationError` before
    any link is processed.
    """
    async with launch_session(config) as session:
        await login(session, config.username, config.password, resolve_verification_code)
        resolver = ContentResolver(session, config)
        logger.info(
            "Resolving %d link(s) with concurrency %d", len(links), config.concurrency
        )
        async for outcome in iter_outcomes(links, resolver.resolve, config.concurrency):
            if outcome.ok:
                logger.info("Resolved %s", outcome.item)
            else:
                logger.error("Failed to resolve %s: %s", outcome.item, outcome.reason)
            yield outcome
