"""
Configuration management for the podcast feed aggregator.

Provides centralized configuration using Pydantic for validation and
environment variable support. Supports podcast.yaml for the list of
feeds to seed and per-project sync settings.
"""

from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# Project root directory
PROJECT_ROOT = Path(__file__).parent.parent.parent

# Default data paths relative to project root
DB_PATH = PROJECT_ROOT / "data" / "db" / "podcasts.db"

ONE_DAY_SECONDS = 60 * 60 * 24


def load_podcast_yaml(search_dir: Optional[Path] = None) -> dict:
    """
    Load podcast.yaml configuration file.

    Searches for podcast.yaml starting from search_dir (or PROJECT_ROOT)
    and walking up to 3 parent directories.

    Args:
        search_dir: Directory to start searching from

    Returns:
        Dictionary with podcast.yaml contents, or empty dict if not found
    """
    start = search_dir or PROJECT_ROOT
    for parent in [start] + list(start.parents)[:3]:
        candidate = parent / "podcast.yaml"
        if candidate.exists():
            with open(candidate, "r", encoding="utf-8") as f:
                return yaml.safe_load(f) or {}
    return {}


def load_seed_feeds(yaml_config: dict) -> List[str]:
    """
    Extract the feed URLs listed under ``feeds:`` in podcast.yaml.

    Entries may be plain URL strings or mappings with a ``url`` key.
    Blank entries are dropped.
    """
    urls: List[str] = []
    for entry in yaml_config.get("feeds", []) or []:
        if isinstance(entry, dict):
            entry = entry.get("url", "")
        if isinstance(entry, str) and entry.strip():
            urls.append(entry.strip())
    return urls


class Config(BaseSettings):
    """
    Application configuration with environment variable support.

    Configuration can be provided via:
    1. Environment variables (prefixed with PODCAST_FEEDS_)
    2. .env file
    3. podcast.yaml (``sync.interval_seconds``)
    4. Default values

    Example:
        export PODCAST_FEEDS_DB_PATH="/custom/path/podcasts.db"
        export PODCAST_FEEDS_SYNC_INTERVAL_SECONDS=3600
    """

    model_config = SettingsConfigDict(
        env_prefix="PODCAST_FEEDS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Storage
    db_path: Path = Field(
        default=DB_PATH,
        description="Path to the SQLite document store file"
    )
    store_timeout: float = Field(
        default=10.0,
        gt=0,
        description="Seconds to wait on a locked store before failing"
    )

    # Fetching
    fetch_timeout: float = Field(
        default=30.0,
        gt=0,
        description="Timeout in seconds for fetching a feed"
    )
    user_agent: str = Field(
        default="podcast-feeds/0.1",
        description="User-Agent header sent with feed and media requests"
    )

    # Synchronization
    sync_interval_seconds: int = Field(
        default=ONE_DAY_SECONDS,
        gt=0,
        description="Seconds between scheduled synchronization passes"
    )
    item_workers: int = Field(
        default=8,
        ge=1,
        description="Threads used for concurrent item upserts within one feed"
    )

    def ensure_directories(self) -> None:
        """Create necessary directories if they don't exist."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)


def get_config(yaml_config: Optional[dict] = None) -> Config:
    """
    Get the application configuration instance.

    Merges settings from environment variables, .env file,
    and podcast.yaml (if present). Environment variables win over
    podcast.yaml.

    Args:
        yaml_config: Already-loaded podcast.yaml contents (optional)

    Returns:
        Config: Application configuration
    """
    if yaml_config is None:
        yaml_config = load_podcast_yaml()

    overrides = {}
    sync_section = yaml_config.get("sync", {}) or {}
    if "interval_seconds" in sync_section:
        overrides["sync_interval_seconds"] = sync_section["interval_seconds"]
    if "item_workers" in sync_section:
        overrides["item_workers"] = sync_section["item_workers"]

    config = Config()
    for key, value in overrides.items():
        if key not in config.model_fields_set:
            setattr(config, key, value)
    config.ensure_directories()
    return config
