import sqlite3
import aiosqlite
import secrets
import uuid
from contextlib import contextmanager, asynccontextmanager
from typing import List, Tuple, Optional, Iterable

from werkzeug.security import generate_password_hash, check_password_hash

from config import YamlConfig
from settings_schema import validate_settings


# Row order is part of the contract with WorkoutAggregator.
SET_ROWS_QUERY = """
    SELECT
        ws.id AS workout_id,
        ws.workout_date AS workout_date,
        e.id AS exercise_id,
        e.name AS exercise_name,
        sl.set_number,
        sl.reps,
        sl.weight
    FROM workout_sessions ws
    JOIN set_logs sl ON sl.workout_id = ws.id
    JOIN exercises e ON e.id = sl.exercise_id
    WHERE ws.user_id = ?
    ORDER BY ws.workout_date DESC, e.name ASC, sl.set_number ASC;
"""

DAILY_TOTALS_QUERY = """
    SELECT
        DATE(ws.workout_date) AS date,
        COUNT(DISTINCT ws.id) AS workout_count,
        SUM(sl.reps * sl.weight) AS total_volume
    FROM workout_sessions ws
    LEFT JOIN set_logs sl ON sl.workout_id = ws.id
    WHERE ws.user_id = ?
        AND DATE(ws.workout_date) >= ?
        AND DATE(ws.workout_date) <= ?
    GROUP BY DATE(ws.workout_date)
    ORDER BY DATE(ws.workout_date) ASC;
"""

INSERT_SESSION_QUERY = (
    "INSERT INTO workout_sessions (user_id, workout_date) VALUES (?, ?);"
)

INSERT_SET_QUERY = (
    "INSERT INTO set_logs (workout_id, exercise_id, set_number, reps, weight) "
    "VALUES (?, ?, ?, ?, ?);"
)


class Database:
    """Provides SQLite connection management and schema initialization."""

    _TABLE_DEFINITIONS = {
        "users": (
            """CREATE TABLE users (
                    id TEXT PRIMARY KEY,
                    email TEXT NOT NULL UNIQUE,
                    name TEXT,
                    password_hash TEXT,
                    api_key TEXT UNIQUE
                );""",
            ["id", "email", "name", "password_hash", "api_key"],
        ),
        "exercises": (
            """CREATE TABLE exercises (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id TEXT NOT NULL,
                    name TEXT NOT NULL,
                    muscle_group TEXT,
                    FOREIGN KEY(user_id) REFERENCES users(id) ON DELETE CASCADE
                );""",
            ["id", "user_id", "name", "muscle_group"],
        ),
        "workout_sessions": (
            """CREATE TABLE workout_sessions (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id TEXT NOT NULL,
                    workout_date TEXT NOT NULL,
                    FOREIGN KEY(user_id) REFERENCES users(id) ON DELETE CASCADE
                );""",
            ["id", "user_id", "workout_date"],
        ),
        "set_logs": (
            """CREATE TABLE set_logs (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    workout_id INTEGER NOT NULL,
                    exercise_id INTEGER NOT NULL,
                    set_number INTEGER NOT NULL,
                    reps INTEGER NOT NULL,
                    weight REAL NOT NULL,
                    FOREIGN KEY(workout_id) REFERENCES workout_sessions(id) ON DELETE CASCADE,
                    FOREIGN KEY(exercise_id) REFERENCES exercises(id) ON DELETE CASCADE
                );""",
            ["id", "workout_id", "exercise_id", "set_number", "reps", "weight"],
        ),
        "settings": (
            """CREATE TABLE settings (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                );""",
            ["key", "value"],
        ),
    }

    def __init__(self, db_path: str = "workout.db") -> None:
        self._db_path = db_path
        self._ensure_schema()

    @contextmanager
    def _connection(self):
        connection = sqlite3.connect(self._db_path)
        connection.execute("PRAGMA foreign_keys=on;")
        try:
            yield connection
            connection.commit()
        except Exception:
            connection.rollback()
            raise
        finally:
            connection.close()

    def transaction(self):
        """Return a context manager whose statements commit or roll back together."""
        return self._connection()

    def _ensure_schema(self) -> None:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute("PRAGMA foreign_keys=off;")
            for table, (sql, columns) in self._TABLE_DEFINITIONS.items():
                self._ensure_table(conn, table, sql, columns)
            cursor.execute("PRAGMA foreign_keys=on;")

    def _ensure_table(
        self, conn: sqlite3.Connection, table: str, sql: str, columns: List[str]
    ) -> None:
        cur = conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name=?;", (table,)
        )
        if cur.fetchone() is None:
            conn.execute(sql)
            return

        cur = conn.execute(f"PRAGMA table_info({table});")
        existing_cols = [row[1] for row in cur.fetchall()]
        if existing_cols == columns:
            return

        conn.execute(f"ALTER TABLE {table} RENAME TO {table}_old;")
        conn.execute(sql)

        common = [c for c in existing_cols if c in columns]
        if common:
            cols = ", ".join(common)
            conn.execute(
                f"INSERT INTO {table} ({cols}) SELECT {cols} FROM {table}_old;"
            )
        conn.execute(f"DROP TABLE {table}_old;")

    def vacuum(self) -> None:
        """Run SQLite VACUUM to reduce database size."""
        connection = sqlite3.connect(self._db_path, isolation_level=None)
        try:
            connection.execute("VACUUM;")
        finally:
            connection.close()


class BaseRepository(Database):
    """Base repository providing helper methods."""

    def execute(self, query: str, params: Tuple = ()) -> int:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return cursor.lastrowid

    def fetch_all(self, query: str, params: Tuple = ()) -> List[Tuple]:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return cursor.fetchall()


class AsyncDatabase(Database):
    """Provides asynchronous connection management."""

    @asynccontextmanager
    async def _async_connection(self):
        conn = await aiosqlite.connect(self._db_path)
        await conn.execute("PRAGMA foreign_keys=on;")
        try:
            yield conn
            await conn.commit()
        except Exception:
            await conn.rollback()
            raise
        finally:
            await conn.close()


class AsyncBaseRepository(AsyncDatabase):
    """Asynchronous variant of BaseRepository using aiosqlite."""

    async def execute(self, query: str, params: Tuple = ()) -> int:
        async with self._async_connection() as conn:
            cursor = await conn.execute(query, params)
            return cursor.lastrowid

    async def fetch_all(self, query: str, params: Tuple = ()) -> List[Tuple]:
        async with self._async_connection() as conn:
            cursor = await conn.execute(query, params)
            rows = await cursor.fetchall()
            return list(rows)


class UserRepository(BaseRepository):
    """Repository for user accounts and their API keys."""

    def create(self, email: str, password: str | None, name: str | None = None) -> str:
        user_id = uuid.uuid4().hex
        password_hash = generate_password_hash(password) if password else None
        self.execute(
            "INSERT INTO users (id, email, name, password_hash, api_key) VALUES (?, ?, ?, ?, ?);",
            (
                user_id,
                email,
                name if name is not None else email.split("@")[0],
                password_hash,
                secrets.token_hex(32),
            ),
        )
        return user_id

    def fetch_by_email(self, email: str) -> Optional[Tuple[str, str, str, Optional[str], str]]:
        rows = self.fetch_all(
            "SELECT id, email, name, password_hash, api_key FROM users WHERE email = ?;",
            (email,),
        )
        return rows[0] if rows else None

    def fetch_by_api_key(self, api_key: str) -> Optional[Tuple[str, str, str]]:
        rows = self.fetch_all(
            "SELECT id, email, name FROM users WHERE api_key = ?;",
            (api_key,),
        )
        return rows[0] if rows else None

    def set_password(self, user_id: str, password: str) -> None:
        self.execute(
            "UPDATE users SET password_hash = ? WHERE id = ?;",
            (generate_password_hash(password), user_id),
        )

    def authenticate(self, email: str, password: str) -> Optional[dict]:
        """Return the user for ``email``, creating it on first sign-in.

        Existing users without a stored password adopt ``password``. ``None``
        is returned when the password does not match.
        """
        row = self.fetch_by_email(email)
        if row is None:
            self.create(email, password)
            row = self.fetch_by_email(email)
        else:
            user_id, _email, _name, password_hash, _key = row
            if not password_hash:
                self.set_password(user_id, password)
            elif not check_password_hash(password_hash, password):
                return None
        user_id, email, name, _hash, api_key = row
        return {"id": user_id, "email": email, "name": name, "api_key": api_key}


class ExerciseRepository(BaseRepository):
    """Repository for each user's exercise catalog."""

    BASE_EXERCISES = [
        ("Bench Press", "Chest"),
        ("Incline Bench Press", "Chest"),
        ("Dumbbell Press", "Chest"),
        ("Push-ups", "Chest"),
        ("Chest Fly", "Chest"),
        ("Deadlift", "Back"),
        ("Barbell Row", "Back"),
        ("Pull-ups", "Back"),
        ("Lat Pulldown", "Back"),
        ("Cable Row", "Back"),
        ("T-Bar Row", "Back"),
        ("Overhead Press", "Shoulders"),
        ("Lateral Raise", "Shoulders"),
        ("Front Raise", "Shoulders"),
        ("Rear Delt Fly", "Shoulders"),
        ("Arnold Press", "Shoulders"),
        ("Squat", "Legs"),
        ("Leg Press", "Legs"),
        ("Leg Curl", "Legs"),
        ("Leg Extension", "Legs"),
        ("Romanian Deadlift", "Legs"),
        ("Lunges", "Legs"),
        ("Calf Raise", "Legs"),
        ("Bicep Curl", "Arms"),
        ("Hammer Curl", "Arms"),
        ("Tricep Extension", "Arms"),
        ("Tricep Dip", "Arms"),
        ("Close Grip Bench Press", "Arms"),
        ("Plank", "Core"),
        ("Crunches", "Core"),
        ("Russian Twist", "Core"),
        ("Leg Raises", "Core"),
    ]

    def add(self, user_id: str, name: str, muscle_group: Optional[str] = None) -> int:
        return self.execute(
            "INSERT INTO exercises (user_id, name, muscle_group) VALUES (?, ?, ?);",
            (user_id, name, muscle_group),
        )

    def fetch_for_user(self, user_id: str) -> List[Tuple[int, str, Optional[str]]]:
        return self.fetch_all(
            "SELECT id, name, muscle_group FROM exercises WHERE user_id = ? ORDER BY name ASC;",
            (user_id,),
        )

    def has_any(self, user_id: str) -> bool:
        rows = self.fetch_all(
            "SELECT COUNT(*) FROM exercises WHERE user_id = ?;", (user_id,)
        )
        return int(rows[0][0]) > 0

    def seed_base(self, user_id: str) -> int:
        """Insert the base catalog for a user without exercises; return rows added."""
        if self.has_any(user_id):
            return 0
        with self.transaction() as conn:
            conn.executemany(
                "INSERT INTO exercises (user_id, name, muscle_group) VALUES (?, ?, ?);",
                [(user_id, name, group) for name, group in self.BASE_EXERCISES],
            )
        return len(self.BASE_EXERCISES)


class WorkoutRepository(BaseRepository):
    """Repository for workout sessions and their set logs."""

    def create(self, user_id: str, workout_date: str, sets: Iterable[dict]) -> int:
        """Insert a session and all of its sets atomically."""
        with self.transaction() as conn:
            cursor = conn.execute(INSERT_SESSION_QUERY, (user_id, workout_date))
            workout_id = cursor.lastrowid
            for s in sets:
                conn.execute(
                    INSERT_SET_QUERY,
                    (
                        workout_id,
                        s["exerciseId"],
                        s["setNumber"],
                        s["reps"],
                        s["weight"],
                    ),
                )
        return workout_id

    def fetch_set_rows(self, user_id: str) -> List[Tuple]:
        return self.fetch_all(SET_ROWS_QUERY, (user_id,))

    def fetch_daily_totals(
        self, user_id: str, start_date: str, end_date: str
    ) -> List[Tuple[str, int, Optional[float]]]:
        return self.fetch_all(DAILY_TOTALS_QUERY, (user_id, start_date, end_date))

    def count_for_user(self, user_id: str) -> int:
        rows = self.fetch_all(
            "SELECT COUNT(*) FROM workout_sessions WHERE user_id = ?;", (user_id,)
        )
        return int(rows[0][0])


class AsyncWorkoutRepository(AsyncBaseRepository):
    """Async repository for workout sessions and their set logs."""

    async def create(self, user_id: str, workout_date: str, sets: Iterable[dict]) -> int:
        async with self._async_connection() as conn:
            cursor = await conn.execute(INSERT_SESSION_QUERY, (user_id, workout_date))
            workout_id = cursor.lastrowid
            for s in sets:
                await conn.execute(
                    INSERT_SET_QUERY,
                    (
                        workout_id,
                        s["exerciseId"],
                        s["setNumber"],
                        s["reps"],
                        s["weight"],
                    ),
                )
        return workout_id

    async def fetch_set_rows(self, user_id: str) -> List[Tuple]:
        return await self.fetch_all(SET_ROWS_QUERY, (user_id,))

    async def fetch_daily_totals(
        self, user_id: str, start_date: str, end_date: str
    ) -> List[Tuple[str, int, Optional[float]]]:
        return await self.fetch_all(
            DAILY_TOTALS_QUERY, (user_id, start_date, end_date)
        )


class SettingsRepository(BaseRepository):
    """Repository for general application settings synchronized with YAML."""

    DEFAULTS = {
        "timezone": "UTC",
        "weight_unit": "kg",
        "chat_rate_limit": "10",
        "chat_rate_window": "60",
        "chat_history_limit": "20",
        "gemini_model": "gemini-2.0-flash",
        "log_level": "INFO",
    }

    def __init__(
        self, db_path: str = "workout.db", yaml_path: str = "settings.yaml"
    ) -> None:
        super().__init__(db_path)
        self._yaml = YamlConfig(yaml_path)
        self._init_defaults()
        self._sync_from_yaml()
        self._sync_to_yaml()

    def _init_defaults(self) -> None:
        with self._connection() as conn:
            for key, value in self.DEFAULTS.items():
                conn.execute(
                    "INSERT OR IGNORE INTO settings (key, value) VALUES (?, ?);",
                    (key, value),
                )

    def _raw_all_settings(self) -> dict:
        rows = self.fetch_all("SELECT key, value FROM settings ORDER BY key;")
        result: dict[str, float | str] = {}
        for k, v in rows:
            try:
                result[k] = float(v)
            except ValueError:
                result[k] = v
        return result

    def _sync_from_yaml(self) -> None:
        data = self._yaml.load()
        if not data:
            return
        validate_settings(data)
        with self._connection() as conn:
            for key, value in data.items():
                conn.execute(
                    "INSERT INTO settings (key, value) VALUES (?, ?) "
                    "ON CONFLICT(key) DO UPDATE SET value=excluded.value;",
                    (key, str(value)),
                )

    def _sync_to_yaml(self) -> None:
        self._yaml.save(self._raw_all_settings())

    def get_float(self, key: str, default: float) -> float:
        self._sync_from_yaml()
        rows = self.fetch_all("SELECT value FROM settings WHERE key = ?;", (key,))
        return float(rows[0][0]) if rows else default

    def get_text(self, key: str, default: str) -> str:
        self._sync_from_yaml()
        rows = self.fetch_all("SELECT value FROM settings WHERE key = ?;", (key,))
        return rows[0][0] if rows else default

    def get_int(self, key: str, default: int) -> int:
        try:
            return int(float(self.get_text(key, str(default))))
        except ValueError:
            return default

    def set_text(self, key: str, value: str) -> None:
        self.execute(
            "INSERT INTO settings (key, value) VALUES (?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value=excluded.value;",
            (key, value),
        )
        self._sync_to_yaml()

    def set_int(self, key: str, value: int) -> None:
        self.set_text(key, str(value))

    def all_settings(self) -> dict:
        self._sync_from_yaml()
        return self._raw_all_settings()
