"""Configuration loading and validation."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})


@dataclass(frozen=True)
class Config:
    """Application configuration. All values sourced from environment variables."""

    # Required
    database_path: str

    # Optional — Sources
    urls_path: str = "./config/urls"
    rules_path: str = "./config/rules"

    # Optional — Network
    use_proxy: bool = False
    proxy: str = ""
    proxy_auth: str = ""
    user_agent: str = ""
    fetch_timeout_seconds: int = 30

    # Optional — Articles
    always_display_description: bool = False
    display_encoding: str = "utf-8"
    article_sort_order: str = "date-desc"

    # Optional — Application
    reload_interval_minutes: int = 0
    log_level: str = "INFO"
    log_format: str = "text"


_REQUIRED_VARS = [
    "DATABASE_PATH",
]


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUE_VALUES


def load_config(env_path: str | Path | None = None) -> Config:
    """Load configuration from environment variables.

    Loads a .env file if present (for local development), then validates
    that all required variables are set. Raises ValueError listing any
    missing variables.
    """
    load_dotenv(dotenv_path=env_path)

    missing = [var for var in _REQUIRED_VARS if not os.environ.get(var)]
    if missing:
        raise ValueError(
            f"Missing required environment variables: {', '.join(missing)}"
        )

    return Config(
        # Required
        database_path=os.environ["DATABASE_PATH"],
        # Optional — Sources
        urls_path=os.environ.get("URLS_PATH", "./config/urls"),
        rules_path=os.environ.get("RULES_PATH", "./config/rules"),
        # Optional — Network
        use_proxy=_env_bool("USE_PROXY"),
        proxy=os.environ.get("PROXY", ""),
        proxy_auth=os.environ.get("PROXY_AUTH", ""),
        user_agent=os.environ.get("USER_AGENT", ""),
        fetch_timeout_seconds=int(os.environ.get("FETCH_TIMEOUT_SECONDS", "30")),
        # Optional — Articles
        always_display_description=_env_bool("ALWAYS_DISPLAY_DESCRIPTION"),
        display_encoding=os.environ.get("DISPLAY_ENCODING", "utf-8"),
        article_sort_order=os.environ.get("ARTICLE_SORT_ORDER", "date-desc"),
        # Optional — Application
        reload_interval_minutes=int(os.environ.get("RELOAD_INTERVAL_MINUTES", "0")),
        log_level=os.environ.get("LOG_LEVEL", "INFO"),
        log_format=os.environ.get("LOG_FORMAT", "text"),
    )
