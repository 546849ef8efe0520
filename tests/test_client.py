import unittest
import sys
import os
import datetime
from fastapi.testclient import TestClient
sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from client import LiftLogClient
from rest_api import LiftLogAPI

class ClientTest(unittest.TestCase):
    def setUp(self) -> None:
        self.db_path = "test_client.db"
        self.yaml_path = "test_client.yaml"
        for p in [self.db_path, self.yaml_path]:
            if os.path.exists(p):
                os.remove(p)
        self.api = LiftLogAPI(db_path=self.db_path, yaml_path=self.yaml_path)
        self.client = LiftLogClient(base_url="http://testserver")
        self.client.session = TestClient(self.api.app)

    def tearDown(self) -> None:
        for p in [self.db_path, self.yaml_path]:
            if os.path.exists(p):
                os.remove(p)

    def test_log_and_read_back(self) -> None:
        user = self.client.sign_in("client@example.com", "pw")
        self.assertEqual(self.client.api_key, user["api_key"])
        ex_id = self.client.add_exercise("Front Squat", "Legs")
        names = [e["name"] for e in self.client.list_exercises()]
        self.assertEqual(names, ["Front Squat"])
        today = datetime.datetime.now(datetime.timezone.utc).date().isoformat()
        wid = self.client.log_workout(
            today, [{"exerciseId": ex_id, "setNumber": 1, "reps": 3, "weight": 90.0}]
        )
        self.assertEqual(wid, 1)
        workouts = self.client.list_workouts()
        self.assertEqual(workouts[0]["exercises"][0]["name"], "Front Squat")
        series = self.client.progress("month")
        self.assertEqual(len(series), 30)
        self.assertEqual(series[-1]["totalVolume"], 270.0)

if __name__ == '__main__':
    unittest.main()
