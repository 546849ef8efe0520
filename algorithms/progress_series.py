from __future__ import annotations

import datetime
import logging
from typing import Iterable

logger = logging.getLogger(__name__)


class ProgressSeriesBuilder:
    """Build dense daily progress series over a fixed window."""

    PERIOD_DAYS: dict[str, int] = {
        "week": 7,
        "month": 30,
        "3months": 90,
        "6months": 180,
        "year": 365,
    }

    @classmethod
    def days_for(cls, period: str) -> int:
        """Return the window length in days for ``period``."""
        try:
            return cls.PERIOD_DAYS[period]
        except KeyError:
            valid = ", ".join(cls.PERIOD_DAYS)
            raise ValueError(f"Invalid period. Must be one of: {valid}") from None

    @classmethod
    def window(
        cls, period: str, today: datetime.date | None = None
    ) -> tuple[datetime.date, datetime.date]:
        """Return the inclusive ``(start, end)`` dates covered by ``period``."""
        end = today or datetime.date.today()
        start = end - datetime.timedelta(days=cls.days_for(period) - 1)
        return start, end

    @staticmethod
    def _day_key(value: object) -> str:
        if isinstance(value, datetime.datetime):
            return value.date().isoformat()
        if isinstance(value, datetime.date):
            return value.isoformat()
        text = str(value)
        return text.split("T")[0].split(" ")[0]

    @classmethod
    def build_series(
        cls,
        period: str,
        daily_aggregates: Iterable[tuple],
        today: datetime.date | None = None,
    ) -> list[dict]:
        """Merge per-day ``(date, workout_count, total_volume)`` rows into the window.

        Every calendar day of the window is present in the result, ascending,
        with ``workoutCount`` and ``totalVolume`` set to zero where no
        aggregate exists. Aggregates dated outside the window are dropped and
        logged.
        """
        start, end = cls.window(period, today)
        days = (end - start).days + 1
        series: dict[str, dict] = {}
        for offset in range(days):
            key = (start + datetime.timedelta(days=offset)).isoformat()
            series[key] = {"date": key, "workoutCount": 0, "totalVolume": 0}

        for date, workout_count, total_volume in daily_aggregates:
            key = cls._day_key(date)
            if key not in series:
                logger.warning(
                    "Dropping progress aggregate for %s outside window %s..%s",
                    key,
                    start.isoformat(),
                    end.isoformat(),
                )
                continue
            series[key] = {
                "date": key,
                "workoutCount": int(workout_count or 0),
                "totalVolume": float(total_volume) if total_volume is not None else 0,
            }
        return list(series.values())
