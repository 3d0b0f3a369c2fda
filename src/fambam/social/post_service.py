"""Family feed posts consumed by the gamification core."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from fambam.db.models import Post
from fambam.gamification.connection_classifier import get_connection_action_word, get_connection_icon
from fambam.gamification.week_index import ensure_utc, utc_now

CONTENT_TYPES = ("text", "photo", "video", "audio")


def connection_message(actor_name: str, challenge_title: str, target_name: str) -> str:
    """Feed line for a visit/call, e.g. 'visited' with a house icon."""
    icon = get_connection_icon(challenge_title)
    action = get_connection_action_word(challenge_title)
    return f"{icon} {actor_name} {action} {target_name}!"


async def create_post(
    db: AsyncSession,
    user_id: int,
    family_id: int | None,
    message: str | None,
    content_type: str = "text",
    content_url: str | None = None,
    now: datetime | None = None,
) -> Post:
    """Add a feed post (flushed, not committed)."""
    if content_type not in CONTENT_TYPES:
        raise ValueError(f"Unknown content type: {content_type}")
    post = Post(
        user_id=user_id,
        family_id=family_id,
        content_type=content_type,
        content_url=content_url,
        message=message,
        created_at=ensure_utc(now) if now else utc_now(),
    )
    db.add(post)
    await db.flush()
    return post


async def count_posts_between(
    db: AsyncSession,
    user_id: int,
    start: datetime,
    end: datetime,
) -> int:
    """Posts by user_id with start <= created_at < end."""
    result = await db.execute(
        select(func.count())
        .select_from(Post)
        .where(
            Post.user_id == user_id,
            Post.created_at >= ensure_utc(start),
            Post.created_at < ensure_utc(end),
        )
    )
    return result.scalar_one()
