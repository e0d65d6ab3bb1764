"""Application configuration.

Configuration is loaded from environment variables. For local development, you can provide a
`.env` file and set `THESISFORGE_ENV_FILE` to point to it.
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """ThesisForge settings.

    All fields are environment-configurable. Prefix is `THESISFORGE_`.
    """

    model_config = SettingsConfigDict(
        env_prefix="THESISFORGE_",
        env_file=None,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Core
    log_level: str = Field(default="INFO")
    log_file: Path | None = Field(default=None)

    # Custom OpenAI-compatible endpoint
    use_custom_api: bool = Field(default=True)
    custom_base_url: str | None = Field(default=None)
    custom_api_key: str | None = Field(default=None)
    custom_model: str = Field(default="gemini-2.5-flash")

    # Default hosted backend
    gemini_api_key: str | None = Field(default=None)
    gemini_model: str = Field(default="gemini-3-flash-preview")
    gemini_base_url: str = Field(default="https://generativelanguage.googleapis.com/v1beta")

    # Reasoning models can take a long time on whole-chapter batches
    llm_timeout_s: float = Field(default=900.0, ge=1.0)
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)

    # Sessions
    sessions_dir: Path = Field(default=Path("sessions"))

    # HTTP API
    api_host: str = Field(default="127.0.0.1")
    api_port: int = Field(default=8000, ge=1, le=65535)


def load_settings(env_file: Path | None = None) -> Settings:
    """Load settings from the environment plus an optional dotenv file.

    The dotenv file is, in order of preference: `env_file`, the path in
    `THESISFORGE_ENV_FILE`, or `.env` in the working directory if present. Real environment
    variables always win over dotenv values.
    """

    if env_file is None:
        override = os.getenv("THESISFORGE_ENV_FILE")
        if override:
            env_file = Path(override)
        elif (Path.cwd() / ".env").exists():
            env_file = Path.cwd() / ".env"

    if env_file is None:
        return Settings()
    return Settings(_env_file=env_file)
