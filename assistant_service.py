from __future__ import annotations
import json
import os
from typing import List, Dict

from google import genai
from google.genai import types

from config import KEYRING_PLACEHOLDER
from db import SettingsRepository


class AssistantService:
    """Answer fitness questions using the user's recent workout history."""

    INSTRUCTION = (
        "You are a helpful and motivating Gym Assistant. Help the user analyze "
        "their workout progress and give actionable recommendations.\n\n"
        "Recent workout history (JSON):\n{history}\n\n"
        "Only answer questions about fitness, workouts, nutrition and recovery; "
        "politely decline anything else. Base answers on the history above and "
        "say so when a record is missing instead of inventing one. Be concise "
        "and encouraging."
    )

    def __init__(
        self,
        settings: SettingsRepository,
        client: "genai.Client" | None = None,
    ) -> None:
        self.settings = settings
        self._client = client

    def api_key(self) -> str:
        key = os.environ.get("GEMINI_API_KEY")
        if key:
            return key
        stored = self.settings.get_text("gemini_api_key", "")
        return "" if stored == KEYRING_PLACEHOLDER else stored

    @property
    def client(self) -> "genai.Client":
        if self._client is None:
            key = self.api_key()
            if not key:
                raise RuntimeError("GEMINI_API_KEY is not set")
            self._client = genai.Client(api_key=key)
        return self._client

    def history_context(self, workouts: List[Dict]) -> List[Dict]:
        """Return the most recent workouts with sets compressed to ``RxW<unit>``."""
        limit = self.settings.get_int("chat_history_limit", 20)
        unit = self.settings.get_text("weight_unit", "kg")
        return [
            {
                "date": w["date"],
                "exercises": [
                    {
                        "name": e["name"],
                        "sets": ", ".join(
                            f"{s['reps']}x{s['weight']}{unit}" for s in e["sets"]
                        ),
                    }
                    for e in w["exercises"]
                ],
            }
            for w in workouts[:limit]
        ]

    def reply(self, message: str, workouts: List[Dict]) -> str:
        history = json.dumps(self.history_context(workouts), indent=2, default=str)
        response = self.client.models.generate_content(
            model=self.settings.get_text("gemini_model", "gemini-2.0-flash"),
            contents=message,
            config=types.GenerateContentConfig(
                system_instruction=self.INSTRUCTION.format(history=history),
            ),
        )
        return response.text or ""
