import requests
from typing import Optional

class LiftLogClient:
    """Simple REST client for the workout API."""

    def __init__(self, base_url: str = "http://localhost:8000", api_key: Optional[str] = None) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.session = requests.Session()

    def _headers(self) -> dict:
        return {"X-API-Key": self.api_key} if self.api_key else {}

    def _get(self, path: str, **params):
        resp = self.session.get(f"{self.base_url}{path}", params=params, headers=self._headers())
        resp.raise_for_status()
        return resp.json()

    def _post(self, path: str, payload: dict):
        resp = self.session.post(f"{self.base_url}{path}", json=payload, headers=self._headers())
        resp.raise_for_status()
        return resp.json()

    def sign_in(self, email: str, password: str) -> dict:
        user = self._post("/auth/signin", {"email": email, "password": password})
        self.api_key = user["api_key"]
        return user

    def list_exercises(self) -> list:
        return self._get("/exercises")

    def add_exercise(self, name: str, muscle_group: Optional[str] = None) -> int:
        return self._post("/exercises", {"name": name, "muscle_group": muscle_group})["id"]

    def log_workout(self, workout_date: str, sets: list[dict]) -> int:
        return self._post("/workouts", {"workoutDate": workout_date, "sets": sets})["workoutId"]

    def list_workouts(self) -> list:
        return self._get("/workouts")

    def progress(self, period: str = "week") -> list:
        return self._get("/workouts/progress", period=period)

    def chat(self, message: str) -> str:
        return self._post("/ai/chat", {"message": message})["response"]
