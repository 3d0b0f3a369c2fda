"""Redis connection pool and best-effort event publishing.

Completion and badge events go out on pub/sub channels for the notification and
feed fan-out. Publishing never raises into the caller.
"""

import json
import logging
from typing import Any

import redis.asyncio as redis

logger = logging.getLogger(__name__)

CHALLENGE_COMPLETED_CHANNEL = "pubsub:challenge_completed"
BADGE_EARNED_CHANNEL = "pubsub:badge_earned"

_pool: redis.Redis | None = None


async def init_redis(url: str) -> None:
    global _pool  # noqa: PLW0603
    _pool = redis.from_url(  # type: ignore[no-untyped-call]
        url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=20,
    )


async def close_redis() -> None:
    global _pool  # noqa: PLW0603
    if _pool:
        await _pool.aclose()
        _pool = None


def get_redis() -> redis.Redis:
    """The shared client. Raises RuntimeError before init_redis()."""
    if _pool is None:
        msg = "Redis not initialized. Call init_redis() first."
        raise RuntimeError(msg)
    return _pool


async def publish_event(client: Any, channel: str, payload: dict[str, Any]) -> bool:
    """JSON-encode payload onto channel. Returns False when skipped or failed."""
    if client is None:
        return False
    try:
        await client.publish(channel, json.dumps(payload))
    except Exception:
        logger.warning("Failed to publish %s event", channel, exc_info=True)
        return False
    return True
