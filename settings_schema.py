from dateutil import tz
from pydantic import BaseModel, ValidationError, field_validator

class SettingsSchema(BaseModel):
    timezone: str = "UTC"
    weight_unit: str = "kg"
    chat_rate_limit: int = 10
    chat_rate_window: float = 60.0
    chat_history_limit: int = 20
    gemini_model: str = "gemini-2.0-flash"
    gemini_api_key: str = ""
    log_level: str = "INFO"

    @field_validator("timezone")
    @classmethod
    def known_timezone(cls, value: str) -> str:
        if tz.gettz(value) is None:
            raise ValueError(f"unknown timezone: {value}")
        return value

def validate_settings(data: dict) -> None:
    try:
        SettingsSchema(**data)
    except ValidationError as e:
        raise ValueError(str(e))
