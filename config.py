"""Configuration management for Tally.

Reads configuration from ~/.config/tally.toml and creates default config if needed.
"""

import os
from pathlib import Path
from dataclasses import dataclass
from typing import Optional
import tomllib
import tomli_w

DEFAULT_MODEL = "gemini-2.5-flash-lite"
DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com"


@dataclass
class ReclassificationSettings:
    """Explicit settings handed to the reclassification engine.

    The engine never reads configuration or the environment on its own;
    callers build one of these (usually via Config.reclassification_settings).
    """

    api_key: Optional[str]
    batch_days: int = 10
    timeout_seconds: float = 15.0
    batch_delay_seconds: float = 1.5
    retry_delay_seconds: float = 1.0
    confidence_threshold: float = 0.75
    undo_window_seconds: float = 30.0


@dataclass
class Config:
    """Application configuration."""

    base_dir: Path
    db_data_dir: Path
    db_filename: str
    log_level: str
    log_dir: Path
    llm_provider: str = "gemini"
    llm_api_key: Optional[str] = None
    llm_model: str = DEFAULT_MODEL
    llm_base_url: str = DEFAULT_BASE_URL
    batch_days: int = 10
    timeout_seconds: float = 15.0
    batch_delay_seconds: float = 1.5
    retry_delay_seconds: float = 1.0
    confidence_threshold: float = 0.75
    undo_window_seconds: float = 30.0

    @property
    def db_path(self) -> Path:
        """Get the full database path (data_dir/filename)."""
        return self.db_data_dir / self.db_filename

    def reclassification_settings(self) -> ReclassificationSettings:
        """Build the settings value passed into run_reclassification."""
        return ReclassificationSettings(
            api_key=self.llm_api_key,
            batch_days=self.batch_days,
            timeout_seconds=self.timeout_seconds,
            batch_delay_seconds=self.batch_delay_seconds,
            retry_delay_seconds=self.retry_delay_seconds,
            confidence_threshold=self.confidence_threshold,
            undo_window_seconds=self.undo_window_seconds,
        )

    @classmethod
    def default(cls) -> "Config":
        """Create a Config with default values."""
        home = Path.home()
        base_dir = home / "data" / "tally"
        return cls(
            base_dir=base_dir,
            db_data_dir=base_dir / "db",
            db_filename="tally.db",
            log_level="INFO",
            log_dir=base_dir / "logs",
        )


def get_config_path() -> Path:
    """Get the path to the config file."""
    return Path.home() / ".config" / "tally.toml"


def get_migrations_dir() -> Path:
    """Get the path to the migrations directory.

    This is always relative to the code location, not configurable.
    """
    return Path(__file__).parent / "db" / "migrations"


def _api_key_from_env() -> Optional[str]:
    return os.environ.get("GEMINI_API_KEY") or os.environ.get("GOOGLE_API_KEY")


def load_config(config_path: Optional[Path] = None) -> Config:
    """Load configuration from file, creating default if it doesn't exist.

    A missing API key is filled in from GEMINI_API_KEY or GOOGLE_API_KEY.

    Args:
        config_path: Optional override of the config file location.

    Returns:
        Config object with loaded or default values.
    """
    config_path = config_path or get_config_path()

    # If config doesn't exist, create it with defaults
    if not config_path.exists():
        config = Config.default()
        _write_config(config, config_path)
        config.llm_api_key = _api_key_from_env()
        return config

    # Load existing config
    with open(config_path, "rb") as f:
        data = tomllib.load(f)

    # Parse with defaults for any missing values
    base_dir = Path(data.get("base_dir", Path.home() / "data" / "tally"))

    db_config = data.get("database", {})
    db_data_dir = Path(db_config.get("data_dir", base_dir / "db"))
    db_filename = db_config.get("filename", "tally.db")

    log_config = data.get("logging", {})
    log_level = log_config.get("level", "INFO")
    log_dir = Path(log_config.get("log_dir", base_dir / "logs"))

    llm_config = data.get("llm", {})
    llm_provider = llm_config.get("provider", "gemini")
    llm_api_key = llm_config.get("api_key") or _api_key_from_env()
    llm_model = llm_config.get("model", DEFAULT_MODEL)
    llm_base_url = llm_config.get("base_url", DEFAULT_BASE_URL)

    reclassify_config = data.get("reclassify", {})

    return Config(
        base_dir=base_dir,
        db_data_dir=db_data_dir,
        db_filename=db_filename,
        log_level=log_level,
        log_dir=log_dir,
        llm_provider=llm_provider,
        llm_api_key=llm_api_key,
        llm_model=llm_model,
        llm_base_url=llm_base_url,
        batch_days=int(reclassify_config.get("batch_days", 10)),
        timeout_seconds=float(reclassify_config.get("timeout_seconds", 15.0)),
        batch_delay_seconds=float(reclassify_config.get("batch_delay_seconds", 1.5)),
        retry_delay_seconds=float(reclassify_config.get("retry_delay_seconds", 1.0)),
        confidence_threshold=float(
            reclassify_config.get("confidence_threshold", 0.75)
        ),
        undo_window_seconds=float(reclassify_config.get("undo_window_seconds", 30.0)),
    )


def _write_config(config: Config, config_path: Path) -> None:
    """Write config to the config file.

    The API key is never written; it belongs in the environment or is added by hand.

    Args:
        config: Config object to write.
        config_path: Destination file.
    """
    # Ensure config directory exists
    config_path.parent.mkdir(parents=True, exist_ok=True)

    # Convert config to TOML structure
    data = {
        "base_dir": str(config.base_dir),
        "database": {
            "data_dir": str(config.db_data_dir),
            "filename": config.db_filename,
        },
        "logging": {
            "level": config.log_level,
            "log_dir": str(config.log_dir),
        },
        "llm": {
            "provider": config.llm_provider,
            "model": config.llm_model,
            "base_url": config.llm_base_url,
        },
        "reclassify": {
            "batch_days": config.batch_days,
            "timeout_seconds": config.timeout_seconds,
            "batch_delay_seconds": config.batch_delay_seconds,
            "retry_delay_seconds": config.retry_delay_seconds,
            "confidence_threshold": config.confidence_threshold,
            "undo_window_seconds": config.undo_window_seconds,
        },
    }

    # Write TOML file
    with open(config_path, "wb") as f:
        tomli_w.dump(data, f)
