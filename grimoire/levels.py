"""Initiatic level system: 11 ranks (0–10) computed from cumulative XP.

Ranks follow a fixed threshold table; there is no progress past Ipsissimus.
"""

LEVEL_THRESHOLDS = [0, 100, 300, 600, 1000, 1600, 2400, 3500, 5000, 7000, 10000]

LEVEL_TITLES = [
    "Neophyte",
    "Zelator",
    "Theoricus",
    "Practicus",
    "Philosophus",
    "Adeptus Minor",
    "Adeptus Major",
    "Adeptus Exemptus",
    "Magister Templi",
    "Magus",
    "Ipsissimus",
]

MAX_RANK = len(LEVEL_THRESHOLDS) - 1  # 10


def _clamp_rank(rank: int) -> int:
    return max(0, min(MAX_RANK, rank))


def rank_for(xp: int) -> int:
    """Return the rank reached with ``xp`` cumulative experience."""
    if xp < 0:
        raise ValueError(f"Experience cannot be negative: {xp}")
    for rank in range(MAX_RANK, -1, -1):
        if xp >= LEVEL_THRESHOLDS[rank]:
            return rank
    return 0


def xp_floor_for_rank(rank: int) -> int:
    """XP threshold at which ``rank`` starts."""
    return LEVEL_THRESHOLDS[_clamp_rank(rank)]


def xp_ceiling_for_rank(rank: int) -> int:
    """XP threshold of the next rank. Equals the floor at max rank."""
    return LEVEL_THRESHOLDS[_clamp_rank(rank + 1)]


def title_for_rank(rank: int) -> str:
    return LEVEL_TITLES[_clamp_rank(rank)]


def progress_fraction(xp: int) -> float:
    """Fraction (0.0–1.0) of the way from the current rank to the next."""
    rank = rank_for(xp)
    floor = xp_floor_for_rank(rank)
    ceiling = xp_ceiling_for_rank(rank)
    if ceiling <= floor:
        return 1.0
    return (xp - floor) / (ceiling - floor)


def get_level_progress(xp: int) -> dict:
    """Return level info dict with progress toward next rank."""
    rank = rank_for(xp)
    floor = xp_floor_for_rank(rank)
    ceiling = xp_ceiling_for_rank(rank)
    return {
        "rank": rank,
        "title": title_for_rank(rank),
        "xp": xp,
        "xp_floor": floor,
        "xp_ceiling": ceiling,
        "xp_to_next": max(0, ceiling - xp),
        "progress": round(progress_fraction(xp), 4),
        "is_max_rank": rank == MAX_RANK,
    }
