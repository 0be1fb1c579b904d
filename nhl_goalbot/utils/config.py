from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from .dates import parse_interval, recent_seasons, today_utc

ROOT = Path(__file__).resolve().parents[2]


def _load_env_file() -> None:
    # Attempt to load .env at repo root so users can store secrets locally
    dotenv_path = ROOT / ".env"
    if dotenv_path.exists():
        load_dotenv(dotenv_path)


def _slug(name: str) -> str:
    parts = re.sub(r"[^a-z0-9 ]", "", name.lower()).split()
    return parts[-1] if parts else "subject"


@dataclass
class Subject:
    player_id: int = 8471214
    name: str = "Alex Ovechkin"
    team: str = "WSH"

    @property
    def last_name(self) -> str:
        return self.name.split()[-1] if self.name else ""

    @property
    def slug(self) -> str:
        """Redis key prefix, e.g. 'ovechkin'."""
        return _slug(self.name)


@dataclass
class Settings:
    redis_url: str = "redis://localhost:6379/0"
    subject: Subject = field(default_factory=Subject)
    seasons: List[str] = field(default_factory=lambda: recent_seasons(today_utc()))
    odds_api_key: Optional[str] = None
    discord_webhook_url: Optional[str] = None
    discord_image_url: Optional[str] = None
    collector_interval: float = 6 * 3600.0
    predictor_interval: float = 600.0
    ingestor_interval: float = 20.0
    evaluator_interval: float = 1800.0
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, env: Optional[dict] = None) -> "Settings":
        if env is None:
            _load_env_file()
            env = dict(os.environ)
        subject = Subject(
            player_id=int(env.get("SUBJECT_PLAYER_ID") or 8471214),
            name=env.get("SUBJECT_NAME") or "Alex Ovechkin",
            team=(env.get("SUBJECT_TEAM") or "WSH").upper(),
        )
        seasons_raw = env.get("GAME_LOG_SEASONS") or ""
        seasons = [s.strip() for s in seasons_raw.split(",") if s.strip()] or recent_seasons(today_utc())
        return cls(
            redis_url=env.get("REDIS_URL") or "redis://localhost:6379/0",
            subject=subject,
            seasons=seasons,
            odds_api_key=env.get("ODDS_API_KEY") or None,
            discord_webhook_url=env.get("DISCORD_WEBHOOK_URL") or None,
            discord_image_url=env.get("DISCORD_IMAGE_URL") or None,
            collector_interval=parse_interval(env.get("COLLECTOR_INTERVAL"), 6 * 3600.0),
            predictor_interval=parse_interval(env.get("PREDICTOR_INTERVAL"), 600.0),
            ingestor_interval=parse_interval(env.get("INGESTOR_INTERVAL"), 20.0),
            evaluator_interval=parse_interval(env.get("EVALUATOR_INTERVAL"), 1800.0),
            log_level=(env.get("LOG_LEVEL") or "INFO").upper(),
        )
