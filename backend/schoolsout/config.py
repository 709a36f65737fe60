"""
Runtime configuration for the activity search service.

Values come from the process environment (a local .env file is honoured via
python-dotenv) and are resolved once into an immutable Settings object.
"""

import os
import logging
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field

from schoolsout.integrations.exceptions import ConfigurationError

load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-2.0-flash"
DEFAULT_SECRET_NAME = "gemini-api-key"
DEFAULT_TIMEOUT_SECONDS = 60.0

# Rate limiting: max requests per client IP within one window
DEFAULT_RATE_LIMIT_MAX_REQUESTS = 1000
DEFAULT_RATE_LIMIT_WINDOW_SECONDS = 3600.0
DEFAULT_RATE_LIMIT_SWEEP_SECONDS = 600.0

DEFAULT_PORT = 8080


class Settings(BaseModel):
    model_config = ConfigDict(frozen=True)

    project_id: Optional[str] = None
    gemini_secret_name: str = DEFAULT_SECRET_NAME
    gemini_api_key: Optional[str] = None
    gemini_model: str = DEFAULT_MODEL
    gemini_timeout: float = DEFAULT_TIMEOUT_SECONDS

    allowed_ips: List[str] = Field(default_factory=list)
    skip_app_check: bool = False

    rate_limit_max_requests: int = DEFAULT_RATE_LIMIT_MAX_REQUESTS
    rate_limit_window_seconds: float = DEFAULT_RATE_LIMIT_WINDOW_SECONDS
    rate_limit_sweep_seconds: float = DEFAULT_RATE_LIMIT_SWEEP_SECONDS

    port: int = DEFAULT_PORT
    log_level: str = "INFO"


def parse_allowed_ips(raw: Optional[str]) -> List[str]:
    """Split a comma separated allowlist, dropping blanks."""
    if not raw:
        return []
    return [ip.strip() for ip in raw.split(",") if ip.strip()]


def _number(env, name: str, default, cast):
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = cast(raw.strip())
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from None
    if value <= 0:
        raise ConfigurationError(f"{name} must be positive, got {raw!r}")
    return value


def load_settings(env=None) -> Settings:
    env = os.environ if env is None else env

    # Cloud Functions Gen2 sets GOOGLE_CLOUD_PROJECT automatically
    project_id = env.get("GOOGLE_CLOUD_PROJECT") or env.get("GCP_PROJECT_ID") or None

    settings = Settings(
        project_id=project_id,
        gemini_secret_name=env.get("GEMINI_SECRET_NAME") or DEFAULT_SECRET_NAME,
        gemini_api_key=env.get("GEMINI_API_KEY") or None,
        gemini_model=env.get("GEMINI_MODEL") or DEFAULT_MODEL,
        gemini_timeout=_number(env, "GEMINI_TIMEOUT_SECONDS", DEFAULT_TIMEOUT_SECONDS, float),
        allowed_ips=parse_allowed_ips(env.get("ALLOWED_IPS")),
        skip_app_check=env.get("SKIP_APP_CHECK", "").strip().lower() == "true",
        rate_limit_max_requests=_number(env, "RATE_LIMIT_MAX_REQUESTS", DEFAULT_RATE_LIMIT_MAX_REQUESTS, int),
        rate_limit_window_seconds=_number(env, "RATE_LIMIT_WINDOW_SECONDS", DEFAULT_RATE_LIMIT_WINDOW_SECONDS, float),
        rate_limit_sweep_seconds=_number(env, "RATE_LIMIT_SWEEP_SECONDS", DEFAULT_RATE_LIMIT_SWEEP_SECONDS, float),
        port=_number(env, "PORT", DEFAULT_PORT, int),
        log_level=(env.get("LOG_LEVEL") or "INFO").upper(),
    )
    if settings.skip_app_check:
        logger.warning("SKIP_APP_CHECK is enabled: App Check verification is disabled for all clients")
    return settings
