"""Level rewards: the feature each rank unlocks, loaded from YAML."""

import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import yaml

from .levels import MAX_RANK

logger = logging.getLogger(__name__)

REWARDS_FILE = os.path.join(os.path.dirname(__file__), "data", "level_rewards.yml")


@dataclass(frozen=True)
class LevelReward:
    rank: int
    name: str
    icon: str
    description: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rank": self.rank,
            "name": self.name,
            "icon": self.icon,
            "description": self.description,
        }


_rewards: Optional[Dict[int, LevelReward]] = None


def load_rewards(path: str = REWARDS_FILE) -> Dict[int, LevelReward]:
    """Load level rewards from a YAML file, keyed by rank."""
    global _rewards
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.error(f"Failed to load level rewards from {path}: {e}")
        raw = {}

    rewards = {}
    for rank, data in raw.items():
        rank = int(rank)
        if not 1 <= rank <= MAX_RANK:
            logger.warning(f"Ignoring reward for out-of-range rank {rank}")
            continue
        rewards[rank] = LevelReward(
            rank=rank,
            name=data["name"],
            icon=data.get("icon", ""),
            description=data.get("description", ""),
        )
    _rewards = rewards
    logger.info(f"Loaded {len(rewards)} level rewards")
    return rewards


def get_rewards() -> Dict[int, LevelReward]:
    if _rewards is None:
        return load_rewards()
    return _rewards


def unlocked_rewards(rank: int) -> List[LevelReward]:
    """Rewards earned at or below ``rank``, lowest first."""
    rewards = get_rewards()
    return [rewards[r] for r in sorted(rewards) if r <= rank]


def next_reward(rank: int) -> Optional[LevelReward]:
    """The next reward still locked above ``rank``, if any."""
    rewards = get_rewards()
    return next((rewards[r] for r in sorted(rewards) if r > rank), None)
