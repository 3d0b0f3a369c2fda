"""Badge catalog and default weekly challenges, upserted on startup."""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fambam.db.models import Badge, Challenge

logger = logging.getLogger(__name__)

BADGE_TYPE_WEEKLY = "weekly"
BADGE_TYPE_MILESTONE = "milestone"
BADGE_TYPE_ACHIEVEMENT = "achievement"

BADGE_SEED_DATA: list[dict] = [
    # Weekly leaderboard
    {"name": "Gold", "description": "Most points in the family this week", "icon": "\U0001f947", "badge_type": BADGE_TYPE_WEEKLY, "sort_order": 1},
    {"name": "Silver", "description": "Second most points in the family this week", "icon": "\U0001f948", "badge_type": BADGE_TYPE_WEEKLY, "sort_order": 2},
    {"name": "Bronze", "description": "Third most points in the family this week", "icon": "\U0001f949", "badge_type": BADGE_TYPE_WEEKLY, "sort_order": 3},
    {"name": "Most Improved", "description": "Biggest jump in points over last week", "icon": "\U0001f4c8", "badge_type": BADGE_TYPE_WEEKLY, "sort_order": 4},
    # Points milestones
    {"name": "Century Club", "description": "Earn 100 points", "icon": "\U0001f4af", "badge_type": BADGE_TYPE_MILESTONE, "sort_order": 5},
    {"name": "High Roller", "description": "Earn 500 points", "icon": "\U0001f3b0", "badge_type": BADGE_TYPE_MILESTONE, "sort_order": 6},
    {"name": "Legend", "description": "Earn 1,000 points", "icon": "\U0001f451", "badge_type": BADGE_TYPE_MILESTONE, "sort_order": 7},
    {"name": "Streak Master", "description": "Keep a 4-day activity streak", "icon": "\U0001f525", "badge_type": BADGE_TYPE_MILESTONE, "sort_order": 8},
    # Achievements
    {"name": "Comeback Kid", "description": "Come back after missing a week", "icon": "\U0001f4aa", "badge_type": BADGE_TYPE_ACHIEVEMENT, "sort_order": 9},
    {"name": "Storyteller", "description": "Share 3 posts in a single week", "icon": "\U0001f4d6", "badge_type": BADGE_TYPE_ACHIEVEMENT, "sort_order": 10},
    {"name": "Visitor", "description": "Visit 3 different family members", "icon": "\U0001f3e0", "badge_type": BADGE_TYPE_ACHIEVEMENT, "sort_order": 11},
    {"name": "Connector", "description": "Call 5 different family members", "icon": "\U0001f4de", "badge_type": BADGE_TYPE_ACHIEVEMENT, "sort_order": 12},
    {"name": "Perfect Week", "description": "Complete every challenge to its weekly maximum", "icon": "⭐", "badge_type": BADGE_TYPE_WEEKLY, "sort_order": 13},
    {"name": "Round Robin", "description": "Connect with every family member in one week", "icon": "\U0001f3af", "badge_type": BADGE_TYPE_WEEKLY, "sort_order": 14},
    {"name": "Bridge Builder", "description": "Most connections in the family this week", "icon": "\U0001f309", "badge_type": BADGE_TYPE_WEEKLY, "sort_order": 15},
    {"name": "Inner Circle", "description": "Connect with the same person 4 weeks in a row", "icon": "\U0001f4ab", "badge_type": BADGE_TYPE_ACHIEVEMENT, "sort_order": 16},
]

CHALLENGE_SEED_DATA: list[dict] = [
    {"title": "Call a family member", "description": "Pick up the phone and catch up", "points_value": 10, "max_completions_per_week": 3},
    {"title": "Visit a family member", "description": "Spend time together in person", "points_value": 25, "max_completions_per_week": 2},
    {"title": "Share a photo", "description": "Post a photo from your week", "points_value": 5, "max_completions_per_week": 3},
    {"title": "Record a voice note", "description": "Send a short audio message to the family", "points_value": 5, "max_completions_per_week": 2},
    {"title": "Cook a family recipe", "description": "Make a dish that has been handed down", "points_value": 15, "max_completions_per_week": 1},
]


async def seed_badges(db: AsyncSession) -> int:
    """Upsert the badge catalog by name. Returns number of badges seeded."""
    existing = {b.name: b for b in (await db.execute(select(Badge))).scalars()}
    seeded = 0
    for badge_data in BADGE_SEED_DATA:
        badge = existing.get(badge_data["name"])
        if badge is None:
            db.add(Badge(**badge_data))
        else:
            for field, value in badge_data.items():
                setattr(badge, field, value)
        seeded += 1

    await db.commit()
    logger.info("Seeded %d badge definitions", seeded)
    return seeded


async def seed_challenges(db: AsyncSession) -> int:
    """Insert default challenges that are missing (by title). Existing rows are left alone."""
    existing = set((await db.execute(select(Challenge.title))).scalars())
    added = 0
    for challenge_data in CHALLENGE_SEED_DATA:
        if challenge_data["title"] in existing:
            continue
        db.add(Challenge(**challenge_data))
        added += 1

    await db.commit()
    logger.info("Seeded %d default challenges", added)
    return added
