from __future__ import annotations


class ReplenishmentError(Exception):
    """Base class for engine errors."""


class ConfigurationError(ReplenishmentError):
    """Engine settings are unusable, e.g. urgency thresholds out of order."""


class PublishError(ReplenishmentError):
    """Writing the suggestion batch failed. The previous pending set is kept."""

    def __init__(self, message: str, attempted: int = 0):
        super().__init__(message)
        self.attempted = attempted


class RunInProgressError(ReplenishmentError):
    """Another generation run holds the run lock."""
