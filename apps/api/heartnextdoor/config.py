"""Application configuration utilities."""
from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

DEFAULT_RED_FLAG_FEELINGS = ["in-pain", "overwhelmed", "disconnected", "anxious"]

# Environment variable -> AppConfig field.
_ENV_OVERRIDES = {
    "OPENAI_API_KEY": "openai_api_key",
    "HEART_OPENAI_MODEL": "openai_model",
    "HEART_DATABASE_PATH": "database_path",
    "HEART_JWT_SECRET": "jwt_secret",
    "SENDGRID_API_KEY": "sendgrid_api_key",
    "HEART_EMAIL_FROM": "email_from",
    "GOOGLE_API_KEY": "google_api_key",
}


class AppConfig(BaseModel):
    """Strongly typed configuration loaded from config.json and the environment."""

    openai_api_key: Optional[str] = Field(default=None)
    openai_model: str = Field(default="gpt-4o")
    database_path: str = Field(default="./data/heartnextdoor.db")
    jwt_secret: str = Field(default="local-dev-secret")
    access_token_ttl_minutes: int = Field(default=60 * 24)
    sendgrid_api_key: Optional[str] = Field(default=None)
    email_from: str = Field(default="care@theheartnextdoor.com")
    google_api_key: Optional[str] = Field(default=None)
    red_flag_feelings: List[str] = Field(default_factory=lambda: list(DEFAULT_RED_FLAG_FEELINGS))
    invite_ttl_days: int = Field(default=7)
    outbox_max_attempts: int = Field(default=3)
    cors_origins: List[str] = Field(
        default_factory=lambda: ["http://localhost:5173", "http://127.0.0.1:5173"]
    )

    @property
    def resolved_database_path(self) -> Path:
        """Return the absolute path for the SQLite database file."""
        path = Path(self.database_path)
        if path.is_absolute():
            return path
        return (Path(__file__).resolve().parents[1] / path).resolve()

    @property
    def concerning_feelings(self) -> frozenset[str]:
        return frozenset(value.strip().lower() for value in self.red_flag_feelings if value.strip())


def _config_path() -> Path:
    override = os.getenv("HEART_CONFIG_PATH")
    if override:
        return Path(override)
    return Path(__file__).resolve().parents[1] / "config.json"


def load_config() -> AppConfig:
    """Load configuration from config.json (when present), then apply env overrides."""

    contents: Dict[str, Any] = {}
    config_file = _config_path()
    if config_file.exists():
        contents = json.loads(config_file.read_text())

    for env_name, field_name in _ENV_OVERRIDES.items():
        value = os.getenv(env_name)
        if value:
            contents[field_name] = value

    feelings = os.getenv("HEART_RED_FLAG_FEELINGS")
    if feelings:
        contents["red_flag_feelings"] = [item.strip() for item in feelings.split(",") if item.strip()]

    return AppConfig(**contents)


CONFIG = load_config()
