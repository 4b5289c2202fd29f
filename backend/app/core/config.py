from pydantic_settings import BaseSettings
from typing import List, Any
from pydantic import field_validator
import json


class Settings(BaseSettings):
    # Branding
    app_name: str = "Workout Session Runtime"
    version: str = "1.0.0"

    # Database
    database_url: str = "sqlite:///./workout_sessions.db"
    db_echo: bool = False

    # Security
    jwt_secret: str = "workout-runtime-jwt-secret-change-in-production"
    jwt_algorithm: str = "HS256"
    jwt_expire_hours: int = 24 * 7  # 1 week
    cors_origins: List[str] = ["http://localhost:3000", "http://localhost:8081"]

    # Device client
    api_base_url: str = "http://localhost:8000"
    client_request_timeout_s: float = 10.0
    client_queue_path: str = "./.workout/offline-queue.json"
    client_session_cache_path: str = "./.workout/active-session.json"
    client_flush_interval_s: float = 1.0
    client_error_max_length: int = 180

    class Config:
        env_file = ".env"

    @field_validator("cors_origins", mode="before")
    @classmethod
    def _parse_cors_origins(cls, v: Any) -> Any:
        """Allow CORS_ORIGINS to be provided as JSON array or comma-separated string."""
        if isinstance(v, str):
            sv = v.strip()
            if not sv:
                return []
            if sv.startswith("["):
                try:
                    parsed = json.loads(sv)
                    if isinstance(parsed, list):
                        return parsed
                except ValueError:
                    pass
            # Fallback: comma-separated
            return [s.strip() for s in sv.split(",") if s.strip()]
        return v


settings = Settings()
