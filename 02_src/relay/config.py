"""Project-level configuration and path helpers."""

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Union

from .errors import ConfigError

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
DATA_DIR = PROJECT_ROOT / "03_data"
LOGS_DIR = PROJECT_ROOT / "04_logs"
DEFAULT_DB_PATH = DATA_DIR / "relay.db"
DEFAULT_LOG_PATH = LOGS_DIR / "app.log"

DATA_DIR.mkdir(parents=True, exist_ok=True)
LOGS_DIR.mkdir(parents=True, exist_ok=True)


PathLike = Union[str, Path]

# Bot API accepts 1-256 characters from this set as a webhook secret_token
_SECRET_TOKEN = re.compile(r"[A-Za-z0-9_-]{1,256}")


def resolve_db_path(env_value: PathLike | None = None) -> PathLike:
    """Resolve DATABASE_URL to an absolute path."""
    if not env_value:
        return DEFAULT_DB_PATH

    if str(env_value) == ":memory:":
        return ":memory:"

    candidate = Path(env_value)
    return candidate if candidate.is_absolute() else PROJECT_ROOT / candidate


def _int_list(name: str) -> list[int]:
    raw = os.getenv(name, "")
    try:
        return [int(part) for part in raw.split(",") if part.strip()]
    except ValueError as e:
        raise ConfigError(f"{name} must be a comma-separated list of integers") from e


def _number(name: str, default: str, cast=float):
    raw = os.getenv(name, default)
    try:
        return cast(raw)
    except ValueError as e:
        raise ConfigError(f"{name} has invalid value {raw!r}") from e


@dataclass
class Settings:
    """Runtime settings read from the environment."""

    telegram_token: str = ""
    telegram_api_url: str = "https://api.telegram.org"
    telegram_webhook_url: str = ""
    telegram_webhook_secret: str = ""
    allowed_user_ids: list[int] = field(default_factory=list)
    allowed_group_ids: list[int] = field(default_factory=list)
    admin_ids: list[int] = field(default_factory=list)
    chat_command: str = "/chat"
    backends: list[str] = field(default_factory=lambda: ["anthropic"])

    anthropic_api_key: str | None = None
    anthropic_model: str = "claude-3-5-sonnet-20241022"
    max_tokens: int = 1024
    system_prompt: str | None = None

    throttle_interval: float = 3.0
    backend_timeout: float | None = 300.0
    update_concurrency: int = 20

    db_path: PathLike = DEFAULT_DB_PATH
    debug: int = 1

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables."""
        backends = [
            name.strip().lower()
            for name in os.getenv("BACKENDS", "anthropic").split(",")
            if name.strip()
        ]
        if not backends:
            raise ConfigError("BACKENDS must name at least one backend")

        chat_command = os.getenv("CHAT_COMMAND", "/chat")
        if not chat_command.startswith("/"):
            raise ConfigError("CHAT_COMMAND must start with '/'")

        webhook_url = os.getenv("TELEGRAM_WEBHOOK_URL", "")
        webhook_secret = os.getenv("TELEGRAM_WEBHOOK_SECRET", "")
        if webhook_secret and not _SECRET_TOKEN.fullmatch(webhook_secret):
            raise ConfigError(
                "TELEGRAM_WEBHOOK_SECRET must be 1-256 characters of A-Z, a-z, 0-9, _ and -"
            )
        if webhook_url and not webhook_secret:
            raise ConfigError("TELEGRAM_WEBHOOK_URL requires TELEGRAM_WEBHOOK_SECRET")

        timeout = _number("BACKEND_TIMEOUT", "300")
        interval = _number("THROTTLE_INTERVAL", "3.0")
        if interval < 0:
            raise ConfigError("THROTTLE_INTERVAL must not be negative")

        concurrency = _number("UPDATE_CONCURRENCY", "20", int)
        if concurrency < 1:
            raise ConfigError("UPDATE_CONCURRENCY must be >= 1")

        return cls(
            telegram_token=os.getenv("TELEGRAM_TOKEN", ""),
            telegram_api_url=os.getenv("TELEGRAM_API_URL", "https://api.telegram.org"),
            telegram_webhook_url=webhook_url,
            telegram_webhook_secret=webhook_secret,
            allowed_user_ids=_int_list("ALLOWED_USER_IDS"),
            allowed_group_ids=_int_list("ALLOWED_GROUP_IDS"),
            admin_ids=_int_list("ADMIN_IDS"),
            chat_command=chat_command,
            backends=backends,
            anthropic_api_key=os.getenv("ANTHROPIC_API_KEY"),
            anthropic_model=os.getenv("ANTHROPIC_MODEL", "claude-3-5-sonnet-20241022"),
            max_tokens=_number("MAX_TOKENS", "1024", int),
            system_prompt=os.getenv("SYSTEM_PROMPT") or None,
            throttle_interval=interval,
            backend_timeout=timeout if timeout > 0 else None,
            update_concurrency=concurrency,
            db_path=resolve_db_path(os.getenv("DATABASE_URL")),
            debug=_number("DEBUG", "1", int),
        )
