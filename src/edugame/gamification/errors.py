"""Gamification engine exceptions."""

from __future__ import annotations


class GamificationError(Exception):
    """Base class for engine errors."""


class InvalidXPAwardError(GamificationError, ValueError):
    """Negative amount, missing user or unknown reason. Nothing was written."""


class InvalidQuizResultError(GamificationError, ValueError):
    """Quiz outcome that cannot be scored. Nothing was written."""


class InvalidDailyGoalError(GamificationError, ValueError):
    """Daily goal outside the configured range."""


class StoreError(GamificationError):
    """The persistence backend cannot honour an engine guarantee."""
