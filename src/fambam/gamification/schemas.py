"""Pydantic request/response models for gamification endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


# --- Weeks ---


class WeekResponse(BaseModel):
    week_number: int
    start: datetime
    end: datetime
    label: str


# --- Badge ---


class BadgeResponse(BaseModel):
    name: str
    description: str
    icon: str
    badge_type: str


class AllBadgesResponse(BaseModel):
    badges: list[BadgeResponse]


class EarnedBadgeResponse(BaseModel):
    name: str
    icon: str
    badge_type: str
    week_number: int | None = None
    earned_at: datetime


class UserBadgesResponse(BaseModel):
    earned: list[EarnedBadgeResponse]
    total_available: int
    total_earned: int


# --- Challenges ---


class ChallengeProgressResponse(BaseModel):
    challenge_id: int
    title: str
    description: str | None = None
    points_value: int
    max_completions_per_week: int
    completed: int
    remaining: int
    needs_target: bool
    connection_type: str | None = None


class WeeklyChallengesResponse(BaseModel):
    week_number: int
    challenges: list[ChallengeProgressResponse]


class CompleteChallengeRequest(BaseModel):
    target_user_id: int | None = None
    target_name: str | None = None


class CompleteChallengeResponse(BaseModel):
    completed: bool
    reason: str | None = None
    points_earned: int = 0
    challenge_title: str | None = None
    completion_number: int | None = None
    week_number: int | None = None
    target_rewarded: bool = False
    badges_awarded: list[str] = []


class UserSummaryResponse(BaseModel):
    user_id: int
    name: str
    family_id: int | None = None
    points_total: int
    streak_days: int
    last_active: datetime | None = None
    last_challenge_week: int | None = None
    week_number: int
    weekly_completed: int


# --- Connections ---


class MemberConnectionResponse(BaseModel):
    user_id: int
    name: str
    avatar_url: str | None = None
    total_connections: int
    this_week_connections: int
    last_connection: datetime | None = None
    days_since_last_connection: int | None = None
    streak: int
    needs_reconnect: bool


class ConnectionStatsResponse(BaseModel):
    members: list[MemberConnectionResponse]
    total_connections: int


class MemberProgressResponse(BaseModel):
    user_id: int
    name: str
    connected: bool


class ConnectionProgressResponse(BaseModel):
    connected: int
    total: int
    is_complete: bool
    members: list[MemberProgressResponse]


class ConnectionRankResponse(BaseModel):
    rank: int
    total: int
    user_connections: int
    top_connections: int
    is_top: bool


# --- Leaderboard ---


class LeaderboardEntryResponse(BaseModel):
    user_id: int
    name: str
    avatar_url: str | None = None
    points: int
    rank: int
    badges: list[BadgeResponse] = []


class LeaderboardResponse(BaseModel):
    view: str
    week_number: int
    entries: list[LeaderboardEntryResponse]
