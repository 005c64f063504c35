"""Level thresholds and computation.

Levels are a step function over cumulative XP. ``cumulative`` must be
strictly increasing; ``level_for_xp`` is then monotonic non-decreasing.
"""

from __future__ import annotations

from bisect import bisect_right

LEVEL_THRESHOLDS: list[dict] = [
    {"level": 1, "title": "First Note", "xp_required": 0, "cumulative": 0},
    {"level": 2, "title": "Note Reader", "xp_required": 100, "cumulative": 100},
    {"level": 3, "title": "Interval Spotter", "xp_required": 150, "cumulative": 250},
    {"level": 4, "title": "Scale Climber", "xp_required": 250, "cumulative": 500},
    {"level": 5, "title": "Chord Builder", "xp_required": 500, "cumulative": 1000},
    {"level": 6, "title": "Rhythm Keeper", "xp_required": 750, "cumulative": 1750},
    {"level": 7, "title": "Key Signature Sage", "xp_required": 1000, "cumulative": 2750},
    {"level": 8, "title": "Ear Trainer", "xp_required": 1250, "cumulative": 4000},
    {"level": 9, "title": "Harmony Seeker", "xp_required": 1500, "cumulative": 5500},
    {"level": 10, "title": "Theory Adept", "xp_required": 2000, "cumulative": 7500},
    {"level": 11, "title": "Cadence Crafter", "xp_required": 2500, "cumulative": 10000},
    {"level": 12, "title": "Modulation Master", "xp_required": 3000, "cumulative": 13000},
    {"level": 13, "title": "Counterpoint Scholar", "xp_required": 3500, "cumulative": 16500},
    {"level": 14, "title": "Virtuoso", "xp_required": 4000, "cumulative": 20500},
    {"level": 15, "title": "Maestro", "xp_required": 4500, "cumulative": 25000},
]

MAX_LEVEL: int = LEVEL_THRESHOLDS[-1]["level"]

_CUMULATIVE: list[int] = [t["cumulative"] for t in LEVEL_THRESHOLDS]


def _threshold_index(total_xp: int) -> int:
    return max(bisect_right(_CUMULATIVE, max(total_xp, 0)) - 1, 0)


def level_for_xp(total_xp: int) -> int:
    """Level reached with ``total_xp`` (negative XP counts as zero)."""
    return LEVEL_THRESHOLDS[_threshold_index(total_xp)]["level"]


def compute_level(total_xp: int) -> dict:
    """Compute level info from total XP for display."""
    idx = _threshold_index(total_xp)
    current = LEVEL_THRESHOLDS[idx]
    next_level = LEVEL_THRESHOLDS[min(idx + 1, len(LEVEL_THRESHOLDS) - 1)]

    xp_into_level = max(total_xp, 0) - current["cumulative"]
    xp_for_level = next_level["cumulative"] - current["cumulative"]

    # At max level, avoid division by zero
    if xp_for_level == 0:
        progress = 100
        xp_for_level = 1
    else:
        progress = min(100, xp_into_level * 100 // xp_for_level)

    return {
        "level": current["level"],
        "title": current["title"],
        "xp_into_level": xp_into_level,
        "xp_for_level": xp_for_level,
        "next_level": next_level["level"],
        "next_title": next_level["title"],
        "progress_percent": progress,
    }
