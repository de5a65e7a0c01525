"""Leaderboard cache: a materialized ranking rebuilt wholesale from all users."""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from .levels import rank_for

logger = logging.getLogger(__name__)

LEADERBOARD_SIZE = 50


@dataclass(frozen=True)
class ProgressionSnapshot:
    """One user's progression as read from the system of record."""
    display_name: Optional[str]
    cumulative_experience: int


@dataclass(frozen=True)
class LeaderboardEntry:
    rank: int
    display_name: str
    cumulative_experience: int
    rank_tier: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rank": self.rank,
            "display_name": self.display_name,
            "cumulative_experience": self.cumulative_experience,
            "rank_tier": self.rank_tier,
        }


def build_entries(
    records: Iterable[ProgressionSnapshot],
    size: int = LEADERBOARD_SIZE,
) -> List[LeaderboardEntry]:
    """Rank named users by experience, densely from 1. Unnamed users are left out."""
    named = [
        r for r in records
        if r.display_name and r.display_name.strip()
    ]
    named.sort(key=lambda r: (-r.cumulative_experience, r.display_name.strip()))
    return [
        LeaderboardEntry(
            rank=position,
            display_name=record.display_name.strip(),
            cumulative_experience=record.cumulative_experience,
            rank_tier=rank_for(record.cumulative_experience),
        )
        for position, record in enumerate(named[:size], start=1)
    ]


class LeaderboardCache:
    """Read-mostly ranking. Never patched; ``rebuild`` replaces it entirely."""

    def __init__(self, size: int = LEADERBOARD_SIZE):
        self.size = size
        self.entries: List[LeaderboardEntry] = []

    def rebuild(self, records: Iterable[ProgressionSnapshot]) -> List[LeaderboardEntry]:
        self.entries = build_entries(records, self.size)
        logger.info(f"Leaderboard rebuilt with {len(self.entries)} entries")
        return self.entries

    def load(self, entries: Iterable[LeaderboardEntry]) -> None:
        self.entries = sorted(entries, key=lambda e: e.rank)

    def top(self, limit: int = LEADERBOARD_SIZE) -> List[LeaderboardEntry]:
        if limit <= 0:
            return []
        return self.entries[:limit]
