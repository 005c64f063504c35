"""XP grant service with idempotency and level-up detection."""

from __future__ import annotations

import logging
from datetime import datetime
from enum import Enum

from edugame.gamification.errors import InvalidQuizResultError, InvalidXPAwardError
from edugame.gamification.level_thresholds import level_for_xp
from edugame.gamification.ports import GamificationStore, ProfileRecord
from edugame.gamification.schemas import XPAwardResult, XPBreakdownItem

logger = logging.getLogger(__name__)


class XPReason(str, Enum):
    QUIZ_COMPLETE = "quiz_complete"
    SCORE_BONUS = "score_bonus"
    PERFECT_SCORE = "perfect_score"
    STREAK_BONUS = "streak_bonus"
    DAILY_GOAL = "daily_goal"
    ACHIEVEMENT = "achievement"


XP_REWARDS: dict[str, int] = {
    "QUIZ_COMPLETE": 10,
    "SCORE_BONUS_MAX": 20,  # scaled by score / total_questions
    "PERFECT_SCORE": 25,
    "STREAK_BONUS_PER_DAY": 2,
    "STREAK_BONUS_MAX": 20,
    "DAILY_GOAL_MET": 15,
}

# Goal stored on profiles created outside an explicit goal update
DEFAULT_DAILY_GOAL = 3


def validate_quiz_result(score: int, total_questions: int, attempt_id: str) -> None:
    """Reject outcomes that cannot be scored before anything is written."""
    if total_questions <= 0:
        raise InvalidQuizResultError(f"total_questions must be positive, got {total_questions}")
    if score < 0 or score > total_questions:
        raise InvalidQuizResultError(f"score {score} outside 0..{total_questions}")
    if not attempt_id:
        raise InvalidQuizResultError("attempt_id is required")


def is_perfect_score(score: int, total_questions: int) -> bool:
    return total_questions > 0 and score == total_questions


def calculate_quiz_xp(score: int, total_questions: int) -> list[XPBreakdownItem]:
    """Base XP for one completed quiz.

    Every completion earns QUIZ_COMPLETE. The score bonus is proportional
    (``score * SCORE_BONUS_MAX // total_questions``) and omitted when it
    rounds to zero. A perfect score adds PERFECT_SCORE on top.
    """
    validate_quiz_result(score, total_questions, attempt_id="-")

    breakdown = [XPBreakdownItem(reason=XPReason.QUIZ_COMPLETE.value, amount=XP_REWARDS["QUIZ_COMPLETE"])]

    score_bonus = score * XP_REWARDS["SCORE_BONUS_MAX"] // total_questions
    if score_bonus > 0:
        breakdown.append(XPBreakdownItem(reason=XPReason.SCORE_BONUS.value, amount=score_bonus))

    if is_perfect_score(score, total_questions):
        breakdown.append(XPBreakdownItem(reason=XPReason.PERFECT_SCORE.value, amount=XP_REWARDS["PERFECT_SCORE"]))

    return breakdown


def streak_bonus_for(streak: int) -> int:
    """+2 XP per streak day, capped at +20."""
    if streak <= 0:
        return 0
    return min(streak * XP_REWARDS["STREAK_BONUS_PER_DAY"], XP_REWARDS["STREAK_BONUS_MAX"])


async def get_or_create_profile(
    store: GamificationStore,
    user_id: str,
    *,
    now: datetime,
    daily_goal: int = DEFAULT_DAILY_GOAL,
) -> ProfileRecord:
    """Get or create the denormalized gamification row for a user."""
    if not user_id:
        raise InvalidXPAwardError("user_id is required")
    return await store.get_or_create_profile(user_id, daily_goal=daily_goal, now=now)


async def award_xp(
    store: GamificationStore,
    user_id: str,
    amount: int,
    reason: XPReason | str,
    source_ref: str | None = None,
    *,
    now: datetime,
    default_daily_goal: int = DEFAULT_DAILY_GOAL,
) -> XPAwardResult:
    """Grant XP to a user. Does not commit; the caller owns the transaction.

    With a ``source_ref``, (user_id, reason, source_ref) is the idempotency
    key: a repeat call returns the current totals with ``duplicate=True``
    and credits nothing. A profile created by the grant gets
    ``default_daily_goal``.

    After granting:
    1. Insert into xp_grants
    2. Atomically add the amount to user_gamification.total_xp
    3. Recompute level from the new total
    """
    if amount < 0:
        raise InvalidXPAwardError(f"XP amount must be >= 0, got {amount}")
    if not user_id:
        raise InvalidXPAwardError("user_id is required")
    try:
        reason = XPReason(reason)
    except ValueError:
        raise InvalidXPAwardError(f"Unknown XP reason: {reason!r}") from None

    profile = await get_or_create_profile(
        store, user_id, now=now, daily_goal=default_daily_goal
    )

    inserted = await store.insert_grant_if_absent(
        user_id, amount, reason.value, source_ref, now=now
    )
    if not inserted:
        current = await store.get_profile(user_id) or profile
        logger.debug(
            "Duplicate XP grant ignored: user=%s reason=%s ref=%s", user_id, reason.value, source_ref
        )
        return XPAwardResult(
            new_total_xp=current.total_xp,
            new_level=current.current_level,
            previous_level=current.current_level,
            duplicate=True,
        )

    new_total = await store.increment_xp(user_id, amount, now=now)

    # The increment holds the row lock until commit, so this write cannot
    # interleave with another grant for the same user.
    new_level = level_for_xp(new_total)
    previous_level = level_for_xp(new_total - amount)
    await store.set_level(user_id, new_level)

    if new_level > previous_level:
        logger.info("Level up: user=%s %d -> %d", user_id, previous_level, new_level)

    return XPAwardResult(
        new_total_xp=new_total,
        new_level=new_level,
        previous_level=previous_level,
        leveled_up=new_level > previous_level,
        amount_awarded=amount,
    )
