"""
Configuration loading from config.yaml.

Uses typed dataclasses throughout so the rest of the app gets IDE
completion and type-checker support without touching raw dicts.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import yaml

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class ServerConfig:
    host: str = "0.0.0.0"
    port: int = 5678


@dataclass
class StorageConfig:
    data_dir: str = "./data"


@dataclass
class TournamentDefaults:
    half_time_minutes: int = 10
    group_size: int = 4
    match_minutes: int = 25      # slot length for schedule_all
    field: str = "Main pitch"
    assign_referees: bool = True
    live_tick_seconds: float = 5.0


@dataclass
class LoggingConfig:
    level: str = "INFO"
    file: str | None = "./logs/kickoff.log"


@dataclass
class Config:
    server: ServerConfig = field(default_factory=ServerConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    tournament: TournamentDefaults = field(default_factory=TournamentDefaults)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @property
    def data_dir_path(self) -> Path:
        return Path(self.storage.data_dir)


def load_config(path: str | Path = "config.yaml") -> Config:
    """
    Load and validate config.yaml.

    Raises:
        FileNotFoundError: config.yaml is missing.
        ValueError: required fields are absent or invalid.
    """
    cfg_path = Path(path)
    if not cfg_path.exists():
        raise FileNotFoundError(
            f"Config file not found: {cfg_path.resolve()}\n"
            "Copy config.example.yaml to config.yaml and adjust it."
        )

    with cfg_path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    try:
        server_raw = raw.get("server") or {}
        storage_raw = raw.get("storage") or {}
        tournament_raw = raw.get("tournament") or {}
        logging_raw = raw.get("logging") or {}

        config = Config(
            server=ServerConfig(
                host=str(server_raw.get("host", "0.0.0.0")),
                port=int(server_raw.get("port", 5678)),
            ),
            storage=StorageConfig(
                data_dir=str(storage_raw.get("data_dir", "./data")),
            ),
            tournament=TournamentDefaults(
                half_time_minutes=int(tournament_raw.get("half_time_minutes", 10)),
                group_size=int(tournament_raw.get("group_size", 4)),
                match_minutes=int(tournament_raw.get("match_minutes", 25)),
                field=str(tournament_raw.get("field", "Main pitch")),
                assign_referees=bool(tournament_raw.get("assign_referees", True)),
                live_tick_seconds=float(tournament_raw.get("live_tick_seconds", 5)),
            ),
            logging=LoggingConfig(
                level=str(logging_raw.get("level", "INFO")).upper(),
                file=logging_raw.get("file", "./logs/kickoff.log"),
            ),
        )
        _validate(config)
        return config

    except (AttributeError, KeyError, TypeError) as exc:
        raise ValueError(f"Invalid config.yaml structure: {exc}") from exc


def _validate(config: Config) -> None:
    t = config.tournament
    if t.half_time_minutes < 1:
        raise ValueError("tournament.half_time_minutes must be >= 1")
    if t.group_size not in (3, 4, 5):
        raise ValueError(
            f"tournament.group_size must be one of 3, 4, 5, got {t.group_size}"
        )
    if t.match_minutes < 1:
        raise ValueError("tournament.match_minutes must be >= 1")
    if t.live_tick_seconds <= 0:
        raise ValueError("tournament.live_tick_seconds must be > 0")
    if config.logging.level not in _LOG_LEVELS:
        raise ValueError(
            f"logging.level must be one of {_LOG_LEVELS}, got '{config.logging.level}'"
        )
