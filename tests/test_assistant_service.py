import os
import sys
import unittest
from unittest import mock
sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from assistant_service import AssistantService
from config import KEYRING_PLACEHOLDER
from db import SettingsRepository


class AssistantServiceTest(unittest.TestCase):
    def setUp(self) -> None:
        self.db_path = "test_assistant.db"
        self.yaml_path = "test_assistant.yaml"
        for p in [self.db_path, self.yaml_path]:
            if os.path.exists(p):
                os.remove(p)
        self.settings = SettingsRepository(self.db_path, self.yaml_path)

    def tearDown(self) -> None:
        for p in [self.db_path, self.yaml_path]:
            if os.path.exists(p):
                os.remove(p)

    def _workouts(self, count: int) -> list[dict]:
        return [
            {
                "date": f"2024-01-{day:02d}",
                "exercises": [
                    {
                        "id": 1,
                        "name": "Squat",
                        "sets": [
                            {"setNumber": 1, "reps": 5, "weight": 100.0},
                            {"setNumber": 2, "reps": 3, "weight": 110.0},
                        ],
                    }
                ],
            }
            for day in range(count, 0, -1)
        ]

    def test_history_context_limited_and_compressed(self) -> None:
        service = AssistantService(self.settings, client=mock.Mock())
        context = service.history_context(self._workouts(25))
        self.assertEqual(len(context), 20)
        self.assertEqual(context[0]["date"], "2024-01-25")
        self.assertEqual(
            context[0]["exercises"], [{"name": "Squat", "sets": "5x100.0kg, 3x110.0kg"}]
        )

    def test_history_limit_setting(self) -> None:
        self.settings.set_int("chat_history_limit", 2)
        service = AssistantService(self.settings, client=mock.Mock())
        self.assertEqual(len(service.history_context(self._workouts(5))), 2)

    def test_history_uses_weight_unit(self) -> None:
        self.settings.set_text("weight_unit", "lb")
        service = AssistantService(self.settings, client=mock.Mock())
        context = service.history_context(self._workouts(1))
        self.assertEqual(context[0]["exercises"][0]["sets"], "5x100.0lb, 3x110.0lb")

    def test_missing_api_key(self) -> None:
        service = AssistantService(self.settings)
        with mock.patch.dict(os.environ, {}, clear=False):
            os.environ.pop("GEMINI_API_KEY", None)
            with self.assertRaises(RuntimeError):
                service.reply("hi", [])

    def test_keyring_placeholder_is_not_a_key(self) -> None:
        self.settings.set_text("gemini_api_key", KEYRING_PLACEHOLDER)
        service = AssistantService(self.settings)
        with mock.patch.dict(os.environ, {}, clear=False):
            os.environ.pop("GEMINI_API_KEY", None)
            self.assertEqual(service.api_key(), "")

    def test_env_key_used(self) -> None:
        service = AssistantService(self.settings)
        with mock.patch.dict(os.environ, {"GEMINI_API_KEY": "k-123"}):
            self.assertEqual(service.api_key(), "k-123")
            with mock.patch("assistant_service.genai.Client") as client_cls:
                client_cls.return_value.models.generate_content.return_value.text = "ok"
                self.assertEqual(service.reply("hi", self._workouts(1)), "ok")
                client_cls.assert_called_once_with(api_key="k-123")


if __name__ == "__main__":
    unittest.main()
