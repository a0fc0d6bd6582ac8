"""Configuration: process settings from the environment, bot config from JSON.

The bot config is validated once at startup and handed to the core as a
plain value; nothing in the core reads files or the environment.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Union

import structlog
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from chesster.domain.errors import ConfigError
from chesster.domain.models import League

load_dotenv()

log = structlog.get_logger(__name__)


class LeagueConfig(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    also_known_as: List[str] = Field(default_factory=list)
    channels: List[str] = Field(default_factory=list)
    moderators: List[str] = Field(default_factory=list)
    roster_tag: Optional[str] = None


class RosterConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    base_endpoint: str
    token: str = ""


class RefreshConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    # every 10 minutes
    interval_seconds: float = Field(default=600.0, gt=0)
    timeout_seconds: float = Field(default=30.0, gt=0)
    max_retries: int = Field(default=3, ge=1)
    backoff_base_seconds: float = Field(default=2.0, ge=0)
    backoff_max_seconds: float = Field(default=60.0, ge=0)
    refresh_leagues: bool = True


class ChessterConfig(BaseModel):
    """Validated bot configuration."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    leagues: Dict[str, LeagueConfig] = Field(default_factory=dict)
    channel_map: Dict[str, str] = Field(default_factory=dict)
    ping_mods: Dict[str, List[str]] = Field(default_factory=dict)
    roster: Optional[RosterConfig] = None
    refresh: RefreshConfig = Field(default_factory=RefreshConfig)

    def build_leagues(self) -> List[League]:
        return [
            League(
                name=name,
                aliases=frozenset(cfg.also_known_as),
                channel_bindings=frozenset(cfg.channels),
                moderators=frozenset(cfg.moderators),
                roster_tag=cfg.roster_tag,
            )
            for name, cfg in self.leagues.items()
        ]

    def dangling_channel_bindings(self) -> Dict[str, str]:
        """Channel map entries naming a league that is not configured."""
        return {ch: name for ch, name in self.channel_map.items() if name not in self.leagues}


def load_config(path: Union[str, Path]) -> ChessterConfig:
    path = Path(path)
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"cannot read config {path}: {e}") from e
    try:
        cfg = ChessterConfig.model_validate_json(raw)
    except ValidationError as e:
        raise ConfigError(f"invalid config {path}:\n{e}") from e

    for channel, name in cfg.dangling_channel_bindings().items():
        log.warning("channel bound to unknown league", channel=channel, league=name)
    log.info("config loaded", path=str(path), leagues=list(cfg.leagues))
    return cfg


@dataclass
class Settings:
    """Process settings from the environment."""

    discord_token: str = ""
    config_path: str = "config/config.json"
    log_level: str = "INFO"
    bot_name: str = "chesster"
    status_host: str = "127.0.0.1"
    status_port: int = 0  # 0 disables the status server

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            discord_token=os.getenv("CHESSTER_DISCORD_TOKEN", ""),
            config_path=os.getenv("CHESSTER_CONFIG", "config/config.json"),
            log_level=os.getenv("CHESSTER_LOG_LEVEL", "INFO").strip().upper(),
            bot_name=os.getenv("CHESSTER_BOT_NAME", "chesster").strip(),
            status_host=os.getenv("CHESSTER_STATUS_HOST", "127.0.0.1"),
            status_port=int(os.getenv("CHESSTER_STATUS_PORT", "0")),
        )
