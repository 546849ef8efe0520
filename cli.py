import argparse
import datetime
import json
import logging
import os
import shutil

from db import UserRepository, ExerciseRepository, WorkoutRepository, SettingsRepository
from stats_service import StatisticsService
from config import APP_VERSION

logger = logging.getLogger(__name__)

DEFAULT_DB = os.environ.get("LIFTLOG_DB", "workout.db")
DEFAULT_YAML = os.environ.get("LIFTLOG_SETTINGS", "settings.yaml")


def _user_id(db_path: str, email: str) -> str:
    row = UserRepository(db_path).fetch_by_email(email)
    if row is None:
        raise SystemExit(f"No user with email {email}")
    return row[0]


def export_workouts(db_path: str, email: str, output_path: str) -> int:
    """Write the user's nested workout logs as JSON; return the workout count."""
    stats = StatisticsService(WorkoutRepository(db_path))
    logs = stats.workout_logs(_user_id(db_path, email))
    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(logs, f, indent=2)
    logger.info("Exported %d workouts to %s", len(logs), output_path)
    return len(logs)


def print_progress(db_path: str, email: str, period: str) -> list[dict]:
    stats = StatisticsService(WorkoutRepository(db_path))
    series = stats.progress(_user_id(db_path, email), period)
    for point in series:
        print(f"{point['date']}  {point['workoutCount']:>2}  {point['totalVolume']:>10.1f}")
    return series


def backup_db(db_path: str, backup_path: str) -> None:
    WorkoutRepository(db_path).vacuum()
    shutil.copy(db_path, backup_path)


def restore_db(backup_path: str, db_path: str) -> None:
    shutil.copy(backup_path, db_path)


def demo_data(db_path: str, yaml_path: str, email: str = "demo@example.com") -> None:
    """Populate the database with a demo user and workout if it has none."""
    SettingsRepository(db_path, yaml_path)
    users = UserRepository(db_path)
    user = users.authenticate(email, "demo")
    if user is None:
        raise SystemExit(f"User {email} exists with a different password")
    workouts = WorkoutRepository(db_path)
    if workouts.count_for_user(user["id"]):
        print("Database already contains workouts")
        return
    exercises = ExerciseRepository(db_path)
    exercises.seed_base(user["id"])
    ids = {name: eid for eid, name, _group in exercises.fetch_for_user(user["id"])}
    today = datetime.date.today()
    workouts.create(
        user["id"],
        (today - datetime.timedelta(days=2)).isoformat(),
        [
            {"exerciseId": ids["Squat"], "setNumber": 1, "reps": 5, "weight": 100.0},
            {"exerciseId": ids["Squat"], "setNumber": 2, "reps": 5, "weight": 105.0},
        ],
    )
    workouts.create(
        user["id"],
        today.isoformat(),
        [
            {"exerciseId": ids["Bench Press"], "setNumber": 1, "reps": 8, "weight": 80.0},
            {"exerciseId": ids["Barbell Row"], "setNumber": 1, "reps": 10, "weight": 60.0},
        ],
    )
    print(f"Demo data inserted, API key: {user['api_key']}")


def serve(db_path: str, yaml_path: str, host: str, port: int) -> None:
    import uvicorn
    from rest_api import LiftLogAPI

    uvicorn.run(LiftLogAPI(db_path, yaml_path).app, host=host, port=port)


def main() -> None:
    parser = argparse.ArgumentParser(description="Utility commands")
    parser.add_argument("--db", default=DEFAULT_DB)
    parser.add_argument("--yaml", default=DEFAULT_YAML)
    parser.add_argument("--version", action="version", version=f"liftlog {APP_VERSION}")
    sub = parser.add_subparsers(dest="cmd", required=True)

    srv = sub.add_parser("serve")
    srv.add_argument("--host", default="127.0.0.1")
    srv.add_argument("--port", type=int, default=8000)

    sub.add_parser("demo").add_argument("--email", default="demo@example.com")

    exp = sub.add_parser("export")
    exp.add_argument("--email", required=True)
    exp.add_argument("--out", default="workouts.json")

    prog = sub.add_parser("progress")
    prog.add_argument("--email", required=True)
    prog.add_argument("--period", choices=["week", "month", "3months", "6months", "year"], default="week")

    bkp = sub.add_parser("backup")
    bkp.add_argument("--out", default="backup.db")

    rst = sub.add_parser("restore")
    rst.add_argument("--in", dest="src", default="backup.db")

    args = parser.parse_args()

    level = SettingsRepository(args.db, args.yaml).get_text("log_level", "INFO")
    logging.basicConfig(level=level.upper(), format="%(asctime)s %(levelname)s %(name)s %(message)s")

    if args.cmd == "serve":
        serve(args.db, args.yaml, args.host, args.port)
    elif args.cmd == "demo":
        demo_data(args.db, args.yaml, args.email)
    elif args.cmd == "export":
        export_workouts(args.db, args.email, args.out)
    elif args.cmd == "progress":
        print_progress(args.db, args.email, args.period)
    elif args.cmd == "backup":
        backup_db(args.db, args.out)
    elif args.cmd == "restore":
        restore_db(args.src, args.db)


if __name__ == "__main__":
    main()
