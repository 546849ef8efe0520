import os
import sys
import json
import unittest
sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from cli import (
    export_workouts,
    print_progress,
    backup_db,
    restore_db,
    demo_data,
)
from db import UserRepository, WorkoutRepository


class CLIToolsTest(unittest.TestCase):
    def setUp(self) -> None:
        self.db_path = "test_cli.db"
        self.yaml_path = "test_cli.yaml"
        self.cleanup = [self.db_path, self.yaml_path, "backup.db", "export.json"]
        for path in self.cleanup:
            if os.path.exists(path):
                os.remove(path)

    def tearDown(self) -> None:
        for path in self.cleanup:
            if os.path.exists(path):
                os.remove(path)

    def test_demo_data(self) -> None:
        demo_data(self.db_path, self.yaml_path)
        demo_data(self.db_path, self.yaml_path)
        uid = UserRepository(self.db_path).fetch_by_email("demo@example.com")[0]
        self.assertEqual(WorkoutRepository(self.db_path).count_for_user(uid), 2)

    def test_export_and_progress(self) -> None:
        demo_data(self.db_path, self.yaml_path)
        count = export_workouts(self.db_path, "demo@example.com", "export.json")
        self.assertEqual(count, 2)
        with open("export.json", encoding="utf-8") as f:
            logs = json.load(f)
        self.assertEqual(logs[1]["exercises"][0]["name"], "Squat")
        self.assertEqual(
            [e["name"] for e in logs[0]["exercises"]], ["Barbell Row", "Bench Press"]
        )
        series = print_progress(self.db_path, "demo@example.com", "week")
        self.assertEqual(len(series), 7)
        self.assertEqual(series[-1]["totalVolume"], 1240.0)
        self.assertEqual(series[-3]["totalVolume"], 1025.0)

    def test_unknown_user(self) -> None:
        demo_data(self.db_path, self.yaml_path)
        with self.assertRaises(SystemExit):
            export_workouts(self.db_path, "ghost@example.com", "export.json")

    def test_backup_restore(self) -> None:
        demo_data(self.db_path, self.yaml_path)
        backup_db(self.db_path, "backup.db")
        self.assertTrue(os.path.exists("backup.db"))
        os.remove(self.db_path)
        restore_db("backup.db", self.db_path)
        uid = UserRepository(self.db_path).fetch_by_email("demo@example.com")[0]
        self.assertEqual(WorkoutRepository(self.db_path).count_for_user(uid), 2)


if __name__ == "__main__":
    unittest.main()
