import datetime
import logging
import threading
import time
from typing import Callable
from fastapi import (
    FastAPI,
    HTTPException,
    Body,
    APIRouter,
    Header,
    Depends,
)
from pydantic import BaseModel, ValidationError

from db import (
    UserRepository,
    ExerciseRepository,
    WorkoutRepository,
    AsyncWorkoutRepository,
    SettingsRepository,
)
from stats_service import StatisticsService
from assistant_service import AssistantService
from config import APP_VERSION
from algorithms import ProgressSeriesBuilder

logger = logging.getLogger(__name__)


class SetInput(BaseModel):
    exerciseId: int
    setNumber: int
    reps: int
    weight: float


def _parse_workout_date(value) -> datetime.date:
    """Accept an ISO date or an ISO datetime; anything else is a ``ValueError``."""
    if not isinstance(value, str):
        raise ValueError(f"not a date string: {value!r}")
    try:
        return datetime.date.fromisoformat(value)
    except ValueError:
        return datetime.datetime.fromisoformat(value).date()


class RateLimiter:
    """In-memory sliding-window limiter keyed by caller identity.

    Timestamps older than ``window`` seconds expire on the next hit for the
    same key; nothing is ever cleared explicitly.
    """

    def __init__(
        self,
        limit: int = 10,
        window: float = 60,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.limit = limit
        self.window = window
        self.clock = clock
        self.requests: dict[str, list[float]] = {}
        self._lock = threading.Lock()

    def hit(self, key: str) -> bool:
        """Record a request for ``key``; return ``False`` if it is over the limit."""
        with self._lock:
            now = self.clock()
            history = [t for t in self.requests.get(key, []) if now - t < self.window]
            if len(history) >= self.limit:
                self.requests[key] = history
                return False
            history.append(now)
            self.requests[key] = history
            return True


class LiftLogAPI:
    """Provides REST endpoints for workout logging and progress."""

    def __init__(
        self,
        db_path: str = "workout.db",
        yaml_path: str = "settings.yaml",
        *,
        rate_limiter: RateLimiter | None = None,
        assistant_client=None,
    ) -> None:
        self.db_path = db_path
        self.settings = SettingsRepository(db_path, yaml_path)
        self.users = UserRepository(db_path)
        self.exercises = ExerciseRepository(db_path)
        self.workouts = WorkoutRepository(db_path)
        self.async_workouts = AsyncWorkoutRepository(db_path)
        self.statistics = StatisticsService(
            self.workouts, self.async_workouts, self.settings
        )
        self.assistant = AssistantService(self.settings, assistant_client)
        self.chat_limiter = rate_limiter or RateLimiter(
            limit=self.settings.get_int("chat_rate_limit", 10),
            window=self.settings.get_float("chat_rate_window", 60.0),
        )
        self.app = FastAPI(
            title="LiftLog API",
            description="REST API for workout logging, progress and coaching",
            version=APP_VERSION,
        )
        self._setup_routes()

    def _current_user(self, x_api_key: str | None = Header(None)) -> str:
        user = self.users.fetch_by_api_key(x_api_key) if x_api_key else None
        if user is None:
            raise HTTPException(status_code=401, detail="Unauthorized")
        return user[0]

    def _setup_routes(self) -> None:
        auth_router = APIRouter(prefix="/auth", tags=["Auth"])
        exercises_router = APIRouter(prefix="/exercises", tags=["Exercises"])
        workouts_router = APIRouter(prefix="/workouts", tags=["Workouts"])
        current_user = self._current_user

        @self.app.get(
            "/health",
            summary="Health check",
            description="Verify API and database connectivity.",
        )
        def health():
            """Return API and database connection status."""
            try:
                self.settings.fetch_all("SELECT 1;")
                return {"status": "ok"}
            except Exception as e:  # pragma: no cover - connectivity failure
                raise HTTPException(status_code=500, detail=str(e))

        @auth_router.post("/signin")
        def sign_in(payload: dict = Body(...)):
            email = payload.get("email")
            password = payload.get("password")
            if (
                not isinstance(email, str)
                or not isinstance(password, str)
                or not email.strip()
                or not password
            ):
                raise HTTPException(
                    status_code=400, detail="email and password are required"
                )
            user = self.users.authenticate(email.strip(), password)
            if user is None:
                raise HTTPException(status_code=401, detail="Invalid credentials")
            return user

        @exercises_router.get("")
        def list_exercises(user_id: str = Depends(current_user)):
            try:
                self.exercises.seed_base(user_id)
                rows = self.exercises.fetch_for_user(user_id)
            except Exception:
                logger.exception("Error fetching exercises for %s", user_id)
                raise HTTPException(
                    status_code=500, detail="Failed to fetch exercises"
                )
            return [
                {"id": eid, "name": name, "muscle_group": group}
                for eid, name, group in rows
            ]

        @exercises_router.post("", status_code=201)
        def add_exercise(
            payload: dict = Body(...), user_id: str = Depends(current_user)
        ):
            name = payload.get("name")
            if not isinstance(name, str) or not name.strip():
                raise HTTPException(
                    status_code=400, detail="Exercise name is required"
                )
            group = payload.get("muscle_group")
            group = group.strip() if isinstance(group, str) and group.strip() else None
            eid = self.exercises.add(user_id, name.strip(), group)
            return {"id": eid, "name": name.strip(), "muscle_group": group}

        @workouts_router.post("", status_code=201)
        def create_workout(
            payload: dict = Body(...), user_id: str = Depends(current_user)
        ):
            workout_date = payload.get("workoutDate")
            raw_sets = payload.get("sets")
            if not workout_date or not isinstance(raw_sets, list):
                raise HTTPException(status_code=400, detail="Invalid payload")
            try:
                date = _parse_workout_date(workout_date)
            except ValueError:
                raise HTTPException(
                    status_code=400,
                    detail="workoutDate must be in YYYY-MM-DD format",
                )
            try:
                sets = [SetInput(**s).model_dump() for s in raw_sets]
            except (TypeError, ValidationError):
                raise HTTPException(status_code=400, detail="Invalid payload")
            owned = {eid for eid, _name, _group in self.exercises.fetch_for_user(user_id)}
            unknown = sorted({s["exerciseId"] for s in sets} - owned)
            if unknown:
                raise HTTPException(
                    status_code=400, detail=f"Unknown exercise ids: {unknown}"
                )
            workout_id = self.workouts.create(user_id, date.isoformat(), sets)
            return {"workoutId": workout_id}

        @workouts_router.get(
            "",
            summary="List workouts",
            description="Workouts nested by exercise and set, newest first.",
        )
        async def list_workouts(user_id: str = Depends(current_user)):
            try:
                return await self.statistics.workout_logs_async(user_id)
            except Exception:
                logger.exception("Error fetching workouts for %s", user_id)
                raise HTTPException(
                    status_code=500, detail="Failed to fetch workouts"
                )

        @workouts_router.get(
            "/progress",
            summary="Workout progress",
            description="Daily workout count and volume for the selected period.",
        )
        async def workout_progress(
            period: str = "week", user_id: str = Depends(current_user)
        ):
            if period not in ProgressSeriesBuilder.PERIOD_DAYS:
                valid = ", ".join(ProgressSeriesBuilder.PERIOD_DAYS)
                raise HTTPException(
                    status_code=400,
                    detail=f"Invalid period. Must be one of: {valid}",
                )
            try:
                return await self.statistics.progress_async(user_id, period)
            except Exception:
                logger.exception("Error fetching workout progress for %s", user_id)
                raise HTTPException(
                    status_code=500, detail="Failed to fetch workout progress"
                )

        @self.app.post("/ai/chat", tags=["Assistant"])
        def chat(payload: dict = Body(...), user_id: str = Depends(current_user)):
            if not self.chat_limiter.hit(user_id):
                raise HTTPException(
                    status_code=429,
                    detail="Too many requests. Please wait a moment.",
                )
            message = payload.get("message")
            if not message:
                raise HTTPException(status_code=400, detail="Message is required")
            try:
                workouts = self.statistics.workout_logs(user_id)
                text = self.assistant.reply(message, workouts)
            except Exception:
                logger.exception("AI chat failed for %s", user_id)
                raise HTTPException(status_code=500, detail="Internal Server Error")
            return {"response": text}

        self.app.include_router(auth_router)
        self.app.include_router(exercises_router)
        self.app.include_router(workouts_router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(LiftLogAPI().app)
