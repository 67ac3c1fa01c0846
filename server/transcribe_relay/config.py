"""Configuration helpers for the transcription relay."""
from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional


def _env_flag(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_float(name: str) -> Optional[float]:
    raw = os.getenv(name)
    if not raw:
        return None
    return float(raw)


@dataclass
class Settings:
    """Centralized environment-driven configuration.

    Defaults are read from the environment when this module is imported. Build an
    instance explicitly (``Settings(openai_api_key=..., upload_dir=...)``) and hand
    it to ``create_app`` to run the relay without touching process state.
    """

    openai_api_key: Optional[str] = os.getenv("OPENAI_API_KEY")
    openai_base_url: str = os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1")
    transcription_model: str = os.getenv("TRANSCRIPTION_MODEL", "whisper-1")
    port: int = int(os.getenv("PORT", "5015"))
    # Public base URL used to build the artifact link (the IA_URL of the web frontend).
    public_base_url: Optional[str] = os.getenv("IA_URL")
    upload_dir: str = os.getenv("UPLOAD_DIR", "uploads")
    include_artifact_url: bool = _env_flag("INCLUDE_ARTIFACT_URL")
    allowed_origin: str = os.getenv("ALLOWED_ORIGIN", "*")
    artifact_ttl_seconds: float = float(os.getenv("ARTIFACT_TTL_SECONDS", "3600"))
    max_upload_bytes: int = int(os.getenv("MAX_UPLOAD_BYTES", str(25 * 1024 * 1024)))
    # 0 disables the cap on simultaneous outbound calls.
    max_concurrent_relays: int = int(os.getenv("MAX_CONCURRENT_RELAYS", "8"))
    # None keeps the HTTP transport default.
    relay_timeout: Optional[float] = _env_float("RELAY_TIMEOUT")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    @property
    def retains_artifacts(self) -> bool:
        """Artifacts outlive their request only when clients get a link to them."""

        return self.include_artifact_url


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached settings instance to avoid repeated environment reads."""

    return Settings()


settings = get_settings()
