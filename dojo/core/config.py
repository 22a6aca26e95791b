import logging

from pydantic_settings import BaseSettings
from pydantic import ConfigDict
from typing import Optional

class Settings(BaseSettings):
    # Environment
    ENV: str = "development"
    CONFIG_STRICT: bool = False

    # Gemini
    GEMINI_API_KEY: Optional[str] = None  # bootstrap credential, stored key wins
    GEMINI_MODEL: str = "gemini-2.5-flash"
    GEMINI_BASE_URL: str = "https://generativelanguage.googleapis.com/v1beta"
    GEMINI_TEMPERATURE: float = 0.7
    GEMINI_MAX_OUTPUT_TOKENS: int = 2000
    GEMINI_TIMEOUT_SECONDS: float = 60.0

    # Generation retry policy
    GENERATION_MAX_ATTEMPTS: int = 3
    GENERATION_BACKOFF_SECONDS: float = 1.0

    # Key/value store
    STORE_BACKEND: str = "memory"  # memory | redis
    REDIS_URL: Optional[str] = None
    STORE_NAMESPACE: str = "od"

    # CORS
    ALLOWED_ORIGINS: str = "http://localhost:3000"  # comma-separated

    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )
settings = Settings()


def validate_config(strict: Optional[bool] = None, settings_obj: Optional[Settings] = None, logger: Optional[logging.Logger] = None) -> bool:
    """Validate store and retry configuration.

    In strict mode raise RuntimeError; otherwise emit warnings only.
    Secrets are not logged, only missing keys.
    """
    cfg = settings_obj or settings
    log = logger or logging.getLogger("dojo")
    strict_mode = strict if strict is not None else getattr(cfg, "CONFIG_STRICT", False)

    problems = []
    backend = (cfg.STORE_BACKEND or "").lower()
    if backend not in ("memory", "redis"):
        problems.append(f"Unknown STORE_BACKEND: {cfg.STORE_BACKEND}")
    elif backend == "redis" and not cfg.REDIS_URL:
        problems.append("Missing required configuration: REDIS_URL")

    if cfg.GENERATION_MAX_ATTEMPTS < 1:
        problems.append("GENERATION_MAX_ATTEMPTS must be at least 1")
    if cfg.GENERATION_BACKOFF_SECONDS < 0:
        problems.append("GENERATION_BACKOFF_SECONDS must not be negative")

    if problems:
        message = "; ".join(problems)
        if strict_mode:
            raise RuntimeError(message)
        log.warning(message)

    return True
