from __future__ import annotations

import json
from dataclasses import dataclass, fields, replace
from typing import Any, Mapping

from flask import current_app, has_app_context

MILESTONE_POLICIES = ("exact", "crossing")


@dataclass(frozen=True)
class PointsConfig:
    STREAK_DAILY: int = 5
    STREAK_MILESTONE_7: int = 50
    STREAK_MILESTONE_14: int = 100
    STREAK_MILESTONE_30: int = 200
    STREAK_MILESTONE_100: int = 500
    GOAL_COMPLETED: int = 100
    VIDEO_WATCHED: int = 10
    VIDEO_COMPLETED: int = 20
    CHAT_SESSION: int = 5
    CHAT_MESSAGE: int = 1
    CHAT_MESSAGE_DAILY_CAP: int = 10
    FIRST_ACTIVITY: int = 25

    BADGE_STREAK_3: int = 75
    BADGE_STREAK_7: int = 100
    BADGE_STREAK_30: int = 150
    BADGE_CONSISTENT: int = 75

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> "PointsConfig":
        """Defaults overridden by any recognised key in `data`; unknown keys are ignored."""
        if not data:
            return cls()
        known = {f.name for f in fields(cls)}
        overrides = {}
        for k, v in data.items():
            key = str(k).strip().upper()
            if key not in known:
                continue
            overrides[key] = int(v)
        return replace(cls(), **overrides)

    def milestones(self) -> dict[int, int]:
        """Streak length -> bonus points."""
        return {
            7: self.STREAK_MILESTONE_7,
            14: self.STREAK_MILESTONE_14,
            30: self.STREAK_MILESTONE_30,
            100: self.STREAK_MILESTONE_100,
        }

    def badge_points(self, badge_type: str) -> int:
        return int(getattr(self, f"BADGE_{badge_type.upper()}", 0) or 0)

    def to_dict(self) -> dict:
        return {f.name: getattr(self, f.name) for f in fields(self)}


def current_points_config() -> PointsConfig:
    if not has_app_context():
        return PointsConfig()
    cfg = current_app.config
    merged: dict[str, Any] = {}
    raw = (cfg.get("ENGAGEMENT_POINTS_JSON") or "").strip()
    if raw:
        loaded = json.loads(raw)
        if not isinstance(loaded, dict):
            raise ValueError("ENGAGEMENT_POINTS_JSON must be a JSON object")
        merged.update(loaded)
    merged.update(cfg.get("ENGAGEMENT_POINTS") or {})
    return PointsConfig.from_mapping(merged)


def current_milestone_policy() -> str:
    policy = "exact"
    if has_app_context():
        policy = (current_app.config.get("ENGAGEMENT_MILESTONE_POLICY") or "exact").strip().lower()
    if policy not in MILESTONE_POLICIES:
        raise ValueError(f"Unknown milestone policy: {policy}")
    return policy
