"""Date range selection for a run."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

import structlog

from mailsift.core.errors import ConfigurationError

logger = structlog.get_logger(__name__)

DEFAULT_LOOKBACK_DAYS = 31


def _parse(value: str, label: str, tz: ZoneInfo) -> datetime:
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError as e:
        raise ConfigurationError(
            f"Invalid {label} date format: {value}. Please use YYYY-MM-DD."
        ) from e
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=tz)
    return parsed


@dataclass(frozen=True)
class DateRange:
    """Inclusive range of message dates to process."""

    start: datetime
    end: datetime

    def contains(self, date: datetime) -> bool:
        """Check if a date falls inside the range."""
        return self.start <= date <= self.end

    @classmethod
    def create(
        cls,
        *,
        start: str | None = None,
        end: str | None = None,
        current_month: bool = False,
        timezone: str = "Etc/UTC",
        now: datetime | None = None,
    ) -> DateRange:
        """Build a date range from command line style arguments.

        Args:
            start: Start date (YYYY-MM-DD), defaults to 31 days before end.
            end: End date (YYYY-MM-DD), defaults to now.
            current_month: Use the first of the current month until now.
            timezone: Timezone used for naive dates.
            now: Override for the current time.

        Returns:
            DateRange instance.

        Raises:
            ConfigurationError: When no option selects a range, on
                conflicting options, bad formats or an end date before the
                start date.
        """
        tz = ZoneInfo(timezone)
        current = (now or datetime.now(tz)).astimezone(tz)

        if not (start or end or current_month):
            raise ConfigurationError(
                "You must specify a date range using --start/--end or use --current-month."
            )

        if current_month:
            if start or end:
                raise ConfigurationError(
                    "current_month cannot be used together with either start or end options"
                )
            start_date = current.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
            logger.info("date_range_current_month", start=start_date.isoformat())
            return cls(start=start_date, end=current)

        if end:
            end_date = _parse(end, "end", tz)
            if end_date.time() == datetime.min.time():
                # A bare end date includes the whole day.
                end_date = end_date.replace(hour=23, minute=59, second=59, microsecond=999999)
        else:
            end_date = current
            logger.info("date_range_default_end")

        if start:
            start_date = _parse(start, "start", tz)
        else:
            start_date = end_date - timedelta(days=DEFAULT_LOOKBACK_DAYS)
            logger.info("date_range_default_start", lookback_days=DEFAULT_LOOKBACK_DAYS)

        if end_date < start_date:
            raise ConfigurationError(
                f"End date ({end_date.isoformat()}) must be on or after "
                f"start date ({start_date.isoformat()})."
            )
        return cls(start=start_date, end=end_date)
