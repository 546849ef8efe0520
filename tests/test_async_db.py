import os
import sys
import sqlite3
import datetime
import pytest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from db import (
    AsyncBaseRepository,
    AsyncWorkoutRepository,
    ExerciseRepository,
    UserRepository,
    WorkoutRepository,
)
from stats_service import StatisticsService


class NumberRepository(AsyncBaseRepository):
    async def init_db(self) -> None:
        async with self._async_connection() as conn:
            await conn.execute("CREATE TABLE IF NOT EXISTS numbers (val INTEGER)")

    async def add(self, val: int) -> int:
        return await self.execute("INSERT INTO numbers (val) VALUES (?)", (val,))

    async def all(self):
        rows = await self.fetch_all("SELECT val FROM numbers")
        return [r[0] for r in rows]


def _user_with_exercise(db_file: str) -> tuple[str, int]:
    uid = UserRepository(db_file).create("async@example.com", "pw")
    eid = ExerciseRepository(db_file).add(uid, "Squat", "Legs")
    return uid, eid


@pytest.mark.asyncio
async def test_async_repository(tmp_path):
    repo = NumberRepository(str(tmp_path / "test.db"))
    await repo.init_db()
    await repo.add(5)
    assert await repo.all() == [5]


@pytest.mark.asyncio
async def test_async_workout_repo_matches_sync(tmp_path):
    db_file = str(tmp_path / "workout.db")
    uid, eid = _user_with_exercise(db_file)
    repo = AsyncWorkoutRepository(db_file)
    wid = await repo.create(
        uid,
        "2024-01-01",
        [
            {"exerciseId": eid, "setNumber": 1, "reps": 5, "weight": 100.0},
            {"exerciseId": eid, "setNumber": 2, "reps": 5, "weight": 105.0},
        ],
    )
    assert wid == 1
    rows = await repo.fetch_set_rows(uid)
    assert rows == WorkoutRepository(db_file).fetch_set_rows(uid)
    totals = await repo.fetch_daily_totals(uid, "2024-01-01", "2024-01-01")
    assert totals == [("2024-01-01", 1, 1025.0)]


@pytest.mark.asyncio
async def test_async_create_rolls_back(tmp_path):
    db_file = str(tmp_path / "rollback.db")
    uid, eid = _user_with_exercise(db_file)
    repo = AsyncWorkoutRepository(db_file)
    with pytest.raises(sqlite3.IntegrityError):
        await repo.create(
            uid,
            "2024-01-01",
            [
                {"exerciseId": eid, "setNumber": 1, "reps": 5, "weight": 100.0},
                {"exerciseId": 404, "setNumber": 2, "reps": 5, "weight": 100.0},
            ],
        )
    assert WorkoutRepository(db_file).count_for_user(uid) == 0


@pytest.mark.asyncio
async def test_statistics_async_paths(tmp_path):
    db_file = str(tmp_path / "stats.db")
    uid, eid = _user_with_exercise(db_file)
    today = datetime.date.today()
    sync_repo = WorkoutRepository(db_file)
    sync_repo.create(
        uid,
        today.isoformat(),
        [{"exerciseId": eid, "setNumber": 1, "reps": 10, "weight": 50.0}],
    )
    stats = StatisticsService(sync_repo, AsyncWorkoutRepository(db_file))
    logs = await stats.workout_logs_async(uid)
    assert logs == stats.workout_logs(uid)
    assert logs[0]["exercises"][0]["name"] == "Squat"
    series = await stats.progress_async(uid, "month")
    assert len(series) == 30
    assert series[-1] == {
        "date": today.isoformat(),
        "workoutCount": 1,
        "totalVolume": 500.0,
    }
