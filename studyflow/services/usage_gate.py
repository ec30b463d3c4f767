"""
Daily Usage Gate - Per-day AI chat quota.

The counter belongs to a UTC calendar day. Any operation that observes a
new day resets it first, including a plain check. Pro accounts bypass the
gate and their counter is never touched.

Check and record are separate calls, so two sends issued back to back can
both pass the check. The quota is best effort, not a security boundary.
"""

from datetime import UTC, date, datetime

from structlog import get_logger

from studyflow.models.domain import DailyUsageState, ProfileFields

logger = get_logger(__name__)

DEFAULT_DAILY_QUOTA = 10


def utc_today() -> date:
    """Current UTC calendar date."""
    return datetime.now(UTC).date()


class DailyUsageGate:
    """Chat quota for one user."""

    def __init__(self, state: DailyUsageState, quota: int = DEFAULT_DAILY_QUOTA) -> None:
        """Initialize with loaded usage state and the daily quota."""
        self._state = state
        self._quota = quota
        self._rolled_over = False

    @property
    def state(self) -> DailyUsageState:
        """Current usage state."""
        return self._state

    @property
    def quota(self) -> int:
        """Messages allowed per day for non-pro users."""
        return self._quota

    @property
    def rolled_over(self) -> bool:
        """Whether a day rollover reset happened and still needs saving."""
        return self._rolled_over

    def _roll_over(self, today: date) -> None:
        if self._state.count_date != today:
            logger.debug(
                "daily_usage_rollover",
                previous_date=self._state.count_date.isoformat(),
                previous_count=self._state.message_count,
                today=today.isoformat(),
            )
            self._state.message_count = 0
            self._state.count_date = today
            self._rolled_over = True

    def can_send(self, today: date | None = None) -> bool:
        """Whether another user-authored turn is allowed today."""
        if self._state.is_privileged:
            return True

        self._roll_over(today or utc_today())
        return self._state.message_count < self._quota

    def record_sent(self, today: date | None = None) -> int:
        """
        Count one user-authored turn; returns the new count.

        Call only after a passing can_send and only for user turns.
        """
        if self._state.is_privileged:
            return self._state.message_count

        self._roll_over(today or utc_today())
        self._state.message_count += 1
        return self._state.message_count

    def remaining(self, today: date | None = None) -> int | None:
        """Turns left today, or None when unlimited."""
        if self._state.is_privileged:
            return None

        self._roll_over(today or utc_today())
        return max(0, self._quota - self._state.message_count)

    def persisted_fields(self) -> ProfileFields:
        """Profile columns holding the usage counter."""
        self._rolled_over = False
        return ProfileFields(
            {
                "daily_messages_count": self._state.message_count,
                "last_message_date": self._state.count_date,
            }
        )
