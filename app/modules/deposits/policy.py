"""Provider-configurable lifecycle policy."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

from app.core.config import Settings, get_settings


@dataclass(frozen=True, slots=True)
class LifecyclePolicy:
    """Timing and fee constants for deposits and completion confirmation."""

    late_threshold_hours: int = 24
    late_fee_percents: tuple[int, ...] = (40, 20, 15)
    retention_cap_percent: int = 75
    release_buffer_hours: int = 72
    confirmation_timeout_hours: int = 48
    dispute_window_hours: int = 72

    @classmethod
    def from_settings(cls, settings: Settings) -> LifecyclePolicy:
        return cls(
            late_threshold_hours=settings.deposit_late_threshold_hours,
            late_fee_percents=settings.deposit_late_fee_percents,
            retention_cap_percent=settings.deposit_retention_cap_percent,
            release_buffer_hours=settings.deposit_release_buffer_hours,
            confirmation_timeout_hours=settings.completion_confirmation_timeout_hours,
            dispute_window_hours=settings.completion_dispute_window_hours,
        )

    @property
    def release_buffer(self) -> timedelta:
        return timedelta(hours=self.release_buffer_hours)

    @property
    def confirmation_timeout(self) -> timedelta:
        return timedelta(hours=self.confirmation_timeout_hours)

    @property
    def dispute_window(self) -> timedelta:
        return timedelta(hours=self.dispute_window_hours)

    def fee_percent_for(self, late_reschedule_number: int) -> int:
        """Fee percentage for the n-th late reschedule (1-based); last tier repeats."""
        if not self.late_fee_percents or late_reschedule_number < 1:
            return 0
        index = min(late_reschedule_number, len(self.late_fee_percents)) - 1
        return self.late_fee_percents[index]


def get_lifecycle_policy() -> LifecyclePolicy:
    """Policy built from cached settings."""
    return LifecyclePolicy.from_settings(get_settings())
