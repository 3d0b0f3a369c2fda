"""Deterministic family rankings.

Equal scores are ordered by user id ascending. That order is arbitrary but
stable; there is no fairness tie-break beyond it.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass

PODIUM_BADGES = ("Gold", "Silver", "Bronze")


@dataclass
class MemberPoints:
    """Running weekly total for one family member."""

    user_id: int
    points: int = 0
    completions: int = 0


class FamilyTally:
    """Map of user id -> MemberPoints with a zero entry for anyone absent."""

    def __init__(self, user_ids: Iterable[int] = ()) -> None:
        self._entries: dict[int, MemberPoints] = {uid: MemberPoints(uid) for uid in user_ids}

    def add(self, user_id: int, points: int) -> None:
        entry = self._entries.setdefault(user_id, MemberPoints(user_id))
        entry.points += points
        entry.completions += 1

    def get(self, user_id: int) -> MemberPoints:
        return self._entries.get(user_id, MemberPoints(user_id))

    def points(self, user_id: int) -> int:
        return self.get(user_id).points

    def __contains__(self, user_id: object) -> bool:
        return user_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def ranked(self) -> list[MemberPoints]:
        """Entries by points DESC, user id ASC."""
        return sorted(self._entries.values(), key=lambda e: (-e.points, e.user_id))


def rank_podium(tally: FamilyTally) -> list[tuple[str, int]]:
    """(badge name, user id) for the top three members with points > 0."""
    podium = []
    for badge_name, entry in zip(PODIUM_BADGES, tally.ranked()):
        if entry.points > 0:
            podium.append((badge_name, entry.user_id))
    return podium


def pick_most_improved(current: FamilyTally, previous: FamilyTally) -> int | None:
    """Member with the largest positive week-over-week gain who scored this week.

    Scans in ranking order; only a strictly larger gain replaces the leader.
    """
    best_user: int | None = None
    best_gain = 0
    for entry in current.ranked():
        gain = entry.points - previous.points(entry.user_id)
        if gain > best_gain and entry.points > 0:
            best_gain = gain
            best_user = entry.user_id
    return best_user


def pick_strict_leader(counts: Mapping[int, int]) -> int | None:
    """User holding the strict maximum count (> 0). A shared maximum has no leader."""
    if not counts:
        return None
    top = max(counts.values())
    if top <= 0:
        return None
    leaders = [uid for uid, count in counts.items() if count == top]
    return leaders[0] if len(leaders) == 1 else None


def rank_of(counts: Mapping[int, int], user_id: int) -> int:
    """1-indexed position of user_id by count DESC, user id ASC (0 if absent)."""
    ordered = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    for idx, (uid, _count) in enumerate(ordered):
        if uid == user_id:
            return idx + 1
    return 0
