from pydantic_settings import BaseSettings
from pydantic import field_validator
from typing import Optional, List


class Settings(BaseSettings):
    # Database Configuration
    database_url: str = "sqlite:///./aircontrol.db"

    # Google AI Configuration (rescheduling assistant)
    google_api_key: Optional[str] = None
    google_model: str = "gemini-2.0-flash"
    oracle_timeout_seconds: float = 30.0
    validate_google_key_on_startup: bool = False

    # Schedule views
    default_upcoming_days: int = 30

    # Dates sent as instants (epoch, Firestore timestamps) are read in this zone
    timezone: str = "Europe/Kyiv"

    cors_origins: List[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "capacitor://localhost",
    ]

    @field_validator('database_url', mode='before')
    @classmethod
    def parse_database_url(cls, v):
        if v is None or v == '':
            return "sqlite:///./aircontrol.db"
        return v

    @field_validator('google_api_key', mode='before')
    @classmethod
    def parse_google_api_key(cls, v):
        if v is None or v == '':
            return None
        return v

    @field_validator('oracle_timeout_seconds', mode='before')
    @classmethod
    def parse_oracle_timeout(cls, v):
        if v is None or v == '':
            return 30.0
        return float(v)

    @field_validator('timezone', mode='before')
    @classmethod
    def parse_timezone(cls, v):
        if v is None or v == '':
            return "Europe/Kyiv"
        return v

    @property
    def ai_enabled(self) -> bool:
        return bool(self.google_api_key)

    class Config:
        env_file = ".env"


settings = Settings()
