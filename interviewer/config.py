"""Application configuration via environment variables."""

from __future__ import annotations

import logging

from pydantic_settings import BaseSettings

log = logging.getLogger("interviewer.config")


class Settings(BaseSettings):
    # Twilio
    twilio_account_sid: str = ""
    twilio_auth_token: str = ""
    twilio_phone_number: str = ""

    # Public URL Twilio uses to reach our webhooks (no trailing slash)
    public_base_url: str = "http://localhost:5000"

    # LLM
    openai_api_key: str = ""
    openai_model: str = "gpt-3.5-turbo"
    llm_timeout: float = 20.0

    # Interview
    question_limit: int = 5
    record_max_length: int = 90  # seconds per answer
    tts_voice: str = "alice"
    provider_timeout: float = 15.0

    # Persistence: JSONL file of interview records. Empty keeps them in memory.
    storage_path: str = ""

    # Server
    host: str = "127.0.0.1"
    port: int = 5000
    debug: bool = False

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    def validate_startup(self) -> list[str]:
        """Validate configuration at startup. Returns warnings, raises on errors."""
        warnings: list[str] = []
        _placeholders = {"sk-...", "AC...", "your_auth_token"}

        if self.question_limit < 1:
            raise ValueError("QUESTION_LIMIT must be at least 1.")

        if not self.openai_api_key or self.openai_api_key in _placeholders:
            warnings.append(
                "OPENAI_API_KEY is missing or a placeholder — question generation will fail."
            )

        if not self.twilio_account_sid or self.twilio_account_sid in _placeholders:
            warnings.append("TWILIO_ACCOUNT_SID is missing or a placeholder — calls won't be placed.")

        if not self.twilio_phone_number:
            warnings.append("TWILIO_PHONE_NUMBER not set — Twilio will reject outbound calls.")

        if self.public_base_url.startswith("http://localhost"):
            warnings.append(
                "PUBLIC_BASE_URL points at localhost — Twilio cannot reach the webhooks. "
                "Use a public tunnel URL."
            )

        if not self.storage_path:
            warnings.append("STORAGE_PATH not set — interview records are kept in memory only.")

        return warnings


settings = Settings()
