"""Reconnect policy for dropped streaming connections."""
from __future__ import annotations

import logging
import random
from collections.abc import Callable
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..config import DEFAULT_RETRYABLE_ERRORS, ReconnectSettings

LOGGER = logging.getLogger(__name__)

ErrorClassifier = str | Callable[[BaseException], bool]
ReconnectObserver = Callable[[int, float], Any]


def log_reconnect(attempt: int, delay: float) -> None:
    """Default observer: record each reconnect in the client log."""

    LOGGER.warning("Gemini SSE reconnecting (attempt %d) after %.2fs delay", attempt, delay)


def describe_error(error: BaseException) -> str:
    """Render an error as ``"<Type>: <message>"`` for substring classification."""

    message = str(error)
    name = type(error).__name__
    return f"{name}: {message}" if message else name


class ReconnectPolicy(BaseModel):
    """Immutable rules for re-establishing a dropped stream.

    ``max_attempts == 0`` or ``enabled=False`` means a dropped stream fails
    immediately. Derive variants with :meth:`with_overrides`; instances are
    never mutated.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    enabled: bool = True
    max_attempts: int = Field(default=10, ge=0)
    initial_delay: float = Field(default=1.0, ge=0)
    max_delay: float = Field(default=30.0, ge=0)
    backoff_multiplier: float = Field(default=2.0, ge=1)
    jitter: bool = True
    retryable_errors: tuple[ErrorClassifier, ...] = Field(default=tuple(DEFAULT_RETRYABLE_ERRORS))
    on_reconnect: ReconnectObserver | None = log_reconnect

    @model_validator(mode="after")
    def _check_delays(self) -> "ReconnectPolicy":
        if self.max_delay < self.initial_delay:
            raise ValueError("max_delay must be greater than or equal to initial_delay")
        return self

    @classmethod
    def from_settings(cls, settings: ReconnectSettings) -> "ReconnectPolicy":
        return cls(
            enabled=settings.enabled,
            max_attempts=settings.max_attempts,
            initial_delay=settings.initial_delay,
            max_delay=settings.max_delay,
            backoff_multiplier=settings.backoff_multiplier,
            jitter=settings.jitter,
            retryable_errors=tuple(settings.retryable_errors),
        )

    @classmethod
    def disabled(cls) -> "ReconnectPolicy":
        return cls(enabled=False, max_attempts=0, on_reconnect=None)

    def with_overrides(self, **changes: Any) -> "ReconnectPolicy":
        """Return a validated copy with ``changes`` applied."""

        values = dict(self)
        values.update(changes)
        return type(self)(**values)

    def compute_delay(self, attempt_index: int, rng: random.Random | None = None) -> float:
        """Delay before reconnect ``attempt_index`` (zero based)."""

        delay = min(self.max_delay, self.initial_delay * self.backoff_multiplier**attempt_index)
        if self.jitter:
            delay *= (rng or random).uniform(0.5, 1.0)
        return delay

    def is_retryable(self, error: BaseException) -> bool:
        description = describe_error(error).lower()
        for classifier in self.retryable_errors:
            if isinstance(classifier, str):
                if classifier.lower() in description:
                    return True
            elif classifier(error):
                return True
        return False

    def should_reconnect(self, error: BaseException, attempts_used: int) -> bool:
        return self.enabled and attempts_used < self.max_attempts and self.is_retryable(error)


__all__ = ["ReconnectPolicy", "ErrorClassifier", "ReconnectObserver", "describe_error", "log_reconnect"]
