from __future__ import annotations
import datetime
import logging
from typing import List, Dict, Optional
from dateutil import tz
from db import WorkoutRepository, AsyncWorkoutRepository, SettingsRepository
from algorithms import WorkoutAggregator, ProgressSeriesBuilder

logger = logging.getLogger(__name__)


class StatisticsService:
    """Compute workout logs and progress series for a user."""

    def __init__(
        self,
        workout_repo: WorkoutRepository,
        async_workout_repo: AsyncWorkoutRepository | None = None,
        settings: SettingsRepository | None = None,
    ) -> None:
        self.workouts = workout_repo
        self.async_workouts = async_workout_repo
        self.settings = settings

    def today(self) -> datetime.date:
        """Current date in the configured ``timezone``, local time without settings."""
        if self.settings is None:
            return datetime.date.today()
        name = self.settings.get_text("timezone", "UTC")
        zone = tz.gettz(name)
        if zone is None:
            logger.warning("Unknown timezone %r, using UTC", name)
            zone = tz.UTC
        return datetime.datetime.now(zone).date()

    def workout_logs(self, user_id: str) -> List[Dict]:
        """Return the user's workouts nested by exercise and set."""
        rows = self.workouts.fetch_set_rows(user_id)
        return WorkoutAggregator.aggregate(rows)

    def progress(
        self,
        user_id: str,
        period: str = "week",
        today: Optional[datetime.date] = None,
    ) -> List[Dict]:
        """Return one progress point per day of ``period`` ending ``today``."""
        start, end = ProgressSeriesBuilder.window(period, today or self.today())
        rows = self.workouts.fetch_daily_totals(
            user_id, start.isoformat(), end.isoformat()
        )
        return ProgressSeriesBuilder.build_series(period, rows, end)

    async def workout_logs_async(self, user_id: str) -> List[Dict]:
        if self.async_workouts is None:
            return self.workout_logs(user_id)
        rows = await self.async_workouts.fetch_set_rows(user_id)
        return WorkoutAggregator.aggregate(rows)

    async def progress_async(
        self,
        user_id: str,
        period: str = "week",
        today: Optional[datetime.date] = None,
    ) -> List[Dict]:
        if self.async_workouts is None:
            return self.progress(user_id, period, today)
        start, end = ProgressSeriesBuilder.window(period, today or self.today())
        rows = await self.async_workouts.fetch_daily_totals(
            user_id, start.isoformat(), end.isoformat()
        )
        return ProgressSeriesBuilder.build_series(period, rows, end)
