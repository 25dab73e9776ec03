from dotenv import load_dotenv
from dataclasses import dataclass
from typing import Optional
from pathlib import Path
import json
import os

import yaml

from swallows.constants import (
    DEFAULT_USER_AGENT,
    DEFAULT_MAX_PAGES_TO_CRAWL,
    DEFAULT_MAX_DEPTH,
    DEFAULT_CONCURRENT_REQUESTS,
    DEFAULT_REQUEST_TIMEOUT_SECONDS,
    DEFAULT_REQUEST_DELAY_SECONDS,
    PAUSE_POLL_INTERVAL_SECONDS,
)

load_dotenv()  # Loads variables from .env file


class Settings:
    """
    Manages application settings loaded from environment variables.
    """
    DATABASE_URL = os.getenv("SWALLOWS_DATABASE_URL", "sqlite:///swallows.db")  # Default to SQLite
    DB_BACKEND = os.getenv("SWALLOWS_DB_BACKEND", "local")
    LOG_LEVEL = os.getenv("SWALLOWS_LOG_LEVEL", "INFO")
    LOG_FILE = os.getenv("SWALLOWS_LOG_FILE")


settings = Settings()


def _optional_int(value: Optional[str]) -> Optional[int]:
    if value is None or value.strip().lower() in ("", "none"):
        return None
    return int(value)


@dataclass
class CrawlConfig:
    """Configuration surface of a single scan."""

    max_pages: int = DEFAULT_MAX_PAGES_TO_CRAWL
    max_depth: Optional[int] = DEFAULT_MAX_DEPTH  # None = unlimited
    user_agent: str = DEFAULT_USER_AGENT
    concurrent_requests: int = DEFAULT_CONCURRENT_REQUESTS
    save_images: bool = False
    timeout: float = DEFAULT_REQUEST_TIMEOUT_SECONDS
    request_delay: float = DEFAULT_REQUEST_DELAY_SECONDS
    pause_poll_interval: float = PAUSE_POLL_INTERVAL_SECONDS
    proxy_url: Optional[str] = None

    @classmethod
    def from_env(cls) -> "CrawlConfig":
        """Load configuration from environment variables.

        Returns:
            CrawlConfig: Configuration instance with values from environment
        """
        return cls(
            max_pages=int(os.getenv("SWALLOWS_MAX_PAGES", str(DEFAULT_MAX_PAGES_TO_CRAWL))),
            max_depth=_optional_int(os.getenv("SWALLOWS_MAX_DEPTH", str(DEFAULT_MAX_DEPTH))),
            user_agent=os.getenv("SWALLOWS_USER_AGENT", DEFAULT_USER_AGENT),
            concurrent_requests=int(
                os.getenv("SWALLOWS_CONCURRENT_REQUESTS", str(DEFAULT_CONCURRENT_REQUESTS))
            ),
            save_images=os.getenv("SWALLOWS_SAVE_IMAGES", "false").lower() in ("1", "true", "yes"),
            timeout=float(os.getenv("SWALLOWS_TIMEOUT", str(DEFAULT_REQUEST_TIMEOUT_SECONDS))),
            request_delay=float(
                os.getenv("SWALLOWS_REQUEST_DELAY", str(DEFAULT_REQUEST_DELAY_SECONDS))
            ),
            proxy_url=os.getenv("SWALLOWS_PROXY_URL") or None,
        )

    @classmethod
    def from_file(cls, path: str) -> "CrawlConfig":
        """Load configuration from a JSON or YAML file.

        Values may sit at the top level or under a ``crawler`` key. Unknown
        keys are ignored.

        Args:
            path: Path to a .json, .yaml or .yml file

        Returns:
            CrawlConfig with values from file (defaults if the file is missing)
        """
        config = cls()
        file_path = Path(path)

        if not file_path.exists():
            return config

        with open(file_path, 'r') as f:
            if file_path.suffix.lower() in (".yaml", ".yml"):
                data = yaml.safe_load(f) or {}
            else:
                data = json.load(f)

        crawler_config = data.get('crawler', data)

        for field_name in config.__dataclass_fields__:
            if field_name in crawler_config:
                setattr(config, field_name, crawler_config[field_name])

        return config

    def to_dict(self) -> dict:
        """Convert configuration to dictionary."""
        return {
            field_name: getattr(self, field_name)
            for field_name in self.__dataclass_fields__
        }

    def validate(self) -> None:
        """Reject values the scheduler cannot work with.

        Raises:
            ValueError: If any value is out of range
        """
        if self.max_pages < 1:
            raise ValueError(f"max_pages must be at least 1, got {self.max_pages}")
        if self.max_depth is not None and self.max_depth < 0:
            raise ValueError(f"max_depth must be >= 0 or None, got {self.max_depth}")
        if self.concurrent_requests < 1:
            raise ValueError(
                f"concurrent_requests must be at least 1, got {self.concurrent_requests}"
            )
        if self.timeout <= 0:
            raise ValueError(f"timeout must be positive, got {self.timeout}")
        if self.request_delay < 0:
            raise ValueError(f"request_delay must be >= 0, got {self.request_delay}")
        if self.pause_poll_interval <= 0:
            raise ValueError(
                f"pause_poll_interval must be positive, got {self.pause_poll_interval}"
            )
        if not self.user_agent:
            raise ValueError("user_agent must not be empty")
