"""
Configuration management using a JSON/YAML file and dataclasses.

The config file holds the database location and the name of the acting
user. It is read once at startup and rewritten whenever the current user
changes. Configuration sections:
- LoggingConfig: Logging behavior
- FetchConfig: HTTP fetching settings for feed downloads
- AggConfig: Aggregation loop settings
- AppConfig: Root configuration container
"""

from __future__ import annotations

from dataclasses import dataclass, field
import json
import os
from pathlib import Path
from typing import Any

import yaml

from .errors import ConfigError


CONFIG_FILENAME = ".gatorconfig.json"
CONFIG_ENV = "GATOR_CONFIG"


@dataclass
class LoggingConfig:
    """Configuration for logging behavior.

    Attributes:
        level: Logging level ("DEBUG", "INFO", "WARNING", "ERROR")
        console: Whether to log to console
        file: Whether to log to file
        format: Log file format ("jsonl" or "plain")
        filename: Name of the log file, relative to the config file's directory
    """

    level: str = "INFO"
    console: bool = True
    file: bool = False
    format: str = "jsonl"
    filename: str = "gator.jsonl"


@dataclass
class FetchConfig:
    """Configuration for feed downloads.

    Attributes:
        timeout_seconds: Overall request timeout
        user_agent: HTTP User-Agent header string
    """

    timeout_seconds: float = 60.0
    user_agent: str = "gator"


@dataclass
class AggConfig:
    """Configuration for the aggregation loop.

    Attributes:
        run_immediately: Run the first cycle on start instead of after one interval
    """

    run_immediately: bool = True


@dataclass
class AppConfig:
    """Root configuration container.

    Attributes:
        db_url: Data store location (sqlite path, sqlite:/// URL or :memory:)
        current_user_name: The acting user, set by login/register
        path: File the configuration was loaded from and is written back to
    """

    db_url: str = ""
    current_user_name: str = ""
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    fetch: FetchConfig = field(default_factory=FetchConfig)
    agg: AggConfig = field(default_factory=AggConfig)
    path: Path | None = None

    def set_current_user(self, name: str) -> None:
        """Set the acting user and persist the change immediately."""
        self.current_user_name = name
        if self.path is not None:
            write_config(self, self.path)


def default_config_path() -> Path:
    """Return the config path from $GATOR_CONFIG or ~/.gatorconfig.json."""
    env = os.getenv(CONFIG_ENV)
    if env:
        return Path(env).expanduser()
    return Path.home() / CONFIG_FILENAME


def load_config(path: str | Path | None = None) -> AppConfig:
    """Load configuration from a JSON or YAML file with defaults.

    JSON is a subset of YAML, so a single safe_load handles both layouts.
    """
    cfg_path = Path(path).expanduser() if path else default_config_path()
    try:
        with open(cfg_path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    except OSError as exc:
        raise ConfigError(f"error reading config file '{cfg_path}': {exc.strerror}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"error parsing config file '{cfg_path}'") from exc

    if not isinstance(raw, dict):
        raise ConfigError(f"config file '{cfg_path}' must contain a mapping")

    cfg = _merge_config(AppConfig(), raw)
    cfg.path = cfg_path
    if not cfg.db_url:
        raise ConfigError(f"config file '{cfg_path}' has no db_url")
    return cfg


def write_config(cfg: AppConfig, path: str | Path) -> None:
    """Write configuration back to disk, as JSON for .json files and YAML otherwise."""
    target = Path(path)
    data = _asdict(cfg)
    try:
        if target.suffix == ".json":
            text = json.dumps(data, indent=2)
        else:
            text = yaml.safe_dump(data, sort_keys=False)
        target.write_text(text, encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"error writing config file '{target}': {exc.strerror}") from exc


def _merge_config(base: AppConfig, raw: dict[str, Any]) -> AppConfig:
    """Merge raw file contents into base AppConfig, ignoring unknown keys."""
    data = _asdict(base)
    for key, value in raw.items():
        if key not in data:
            continue
        if isinstance(data[key], dict):
            if isinstance(value, dict):
                data[key].update(value)
            continue
        data[key] = value
    return _fromdict(data)


def _asdict(cfg: AppConfig) -> dict[str, Any]:
    """Convert AppConfig to nested dictionary."""
    return {
        "db_url": cfg.db_url,
        "current_user_name": cfg.current_user_name,
        "logging": {
            "level": cfg.logging.level,
            "console": cfg.logging.console,
            "file": cfg.logging.file,
            "format": cfg.logging.format,
            "filename": cfg.logging.filename,
        },
        "fetch": {
            "timeout_seconds": cfg.fetch.timeout_seconds,
            "user_agent": cfg.fetch.user_agent,
        },
        "agg": {
            "run_immediately": cfg.agg.run_immediately,
        },
    }


def _fromdict(data: dict[str, Any]) -> AppConfig:
    """Reconstruct AppConfig from nested dictionary."""
    try:
        return AppConfig(
            db_url=str(data["db_url"] or ""),
            current_user_name=str(data["current_user_name"] or ""),
            logging=LoggingConfig(**data["logging"]),
            fetch=FetchConfig(**data["fetch"]),
            agg=AggConfig(**data["agg"]),
        )
    except TypeError as exc:
        raise ConfigError(f"invalid config section: {exc}") from exc
