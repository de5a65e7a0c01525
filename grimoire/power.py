"""Magical power rating: 40% transits + 40% natal dignity + 20% active talisman.

A meditation (stasis) session of at least five minutes grants a x1.15 buff
for the following hour.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

TRANSIT_WEIGHT = 0.4
DIGNITY_WEIGHT = 0.4
RUNE_WEIGHT = 0.2
STASIS_MULTIPLIER = 1.15

STASIS_BUFF_WINDOW = timedelta(minutes=60)
STASIS_BUFF_MIN_MINUTES = 5

NEUTRAL_RUNE_MODIFIER = 50


@dataclass(frozen=True)
class PowerLabel:
    label: str
    color_token: str


# Highest breakpoint first; lower bounds are inclusive.
POWER_LABELS = [
    (80, PowerLabel("Transcendent", "gold")),
    (65, PowerLabel("Empowered", "green")),
    (50, PowerLabel("Balanced", "blue")),
    (35, PowerLabel("Challenged", "amber")),
]
DORMANT = PowerLabel("Dormant", "red")


def round_half_up(value: float) -> int:
    """Round .5 upwards, unlike Python's banker's rounding."""
    return int(math.floor(value + 0.5))


def _clamp(value: int, low: int = 0, high: int = 100) -> int:
    return max(low, min(high, value))


def _check_sub_score(name: str, value: int) -> None:
    if not 0 <= value <= 100:
        raise ValueError(f"{name} must be within 0-100, got {value}")


def compute(
    transit_score: int,
    dignity_score: int,
    rune_modifier: int,
    stasis_buff_active: bool = False,
) -> int:
    """Combine the three sub-scores into a composite rating in 0-100.

    Clamping happens after the buff, so a maxed score stays at exactly 100.
    """
    _check_sub_score("transit_score", transit_score)
    _check_sub_score("dignity_score", dignity_score)
    _check_sub_score("rune_modifier", rune_modifier)

    raw = round_half_up(
        transit_score * TRANSIT_WEIGHT
        + dignity_score * DIGNITY_WEIGHT
        + rune_modifier * RUNE_WEIGHT
    )
    if stasis_buff_active:
        raw = round_half_up(raw * STASIS_MULTIPLIER)
    return _clamp(raw)


def classify(score: int) -> PowerLabel:
    for threshold, label in POWER_LABELS:
        if score >= threshold:
            return label
    return DORMANT


def rune_modifier_for(dignity_score: Optional[int]) -> int:
    """Sub-score contributed by the active talisman's creation-time dignity."""
    if dignity_score is None:
        return NEUTRAL_RUNE_MODIFIER
    return _clamp(NEUTRAL_RUNE_MODIFIER + round_half_up(dignity_score * 5))


def stasis_buff_active(last_session_at: Optional[datetime], now: datetime) -> bool:
    """True while ``now`` is within the buff window after a qualifying session."""
    if last_session_at is None:
        return False
    elapsed = now - last_session_at
    return timedelta(0) <= elapsed <= STASIS_BUFF_WINDOW
