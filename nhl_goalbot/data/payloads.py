from __future__ import annotations

import json
from dataclasses import asdict, dataclass, fields
from typing import Any, Dict, Optional


def _from_dict(cls, d: Dict[str, Any]):
    names = {f.name for f in fields(cls)}
    return cls(**{k: v for k, v in d.items() if k in names})


@dataclass
class Prediction:
    """Latest prediction for a game; also the reminder payload and the per-game snapshot."""

    game_id: int
    opponent: str
    home_away: str  # HOME / AWAY
    probability_pct: int
    start_time_utc: str  # RFC3339
    game_date: str
    odds_american: Optional[str] = None
    goalie_name: Optional[str] = None

    def to_json(self) -> str:
        d = {k: v for k, v in asdict(self).items() if v not in (None, "")}
        return json.dumps(d)

    @classmethod
    def from_json(cls, raw: str) -> "Prediction":
        d = json.loads(raw)
        d["game_id"] = int(d["game_id"])
        d["probability_pct"] = int(d.get("probability_pct") or 0)
        d.setdefault("opponent", "")
        d.setdefault("home_away", "")
        d.setdefault("start_time_utc", "")
        d.setdefault("game_date", "")
        return _from_dict(cls, d)


@dataclass
class GoalEvent:
    player_id: int
    goals: int  # career total including this goal
    recorded_at: str
    game_id: int = 0
    goals_to_date: int = 0
    opponent: Optional[str] = None
    opponent_name: Optional[str] = None
    goalie_name: Optional[str] = None

    def to_json(self) -> str:
        d = {k: v for k, v in asdict(self).items() if v not in (None, "")}
        return json.dumps(d)

    @classmethod
    def from_json(cls, raw: str) -> "GoalEvent":
        d = json.loads(raw)
        d["player_id"] = int(d["player_id"])
        d["goals"] = int(d["goals"])
        d.setdefault("recorded_at", "")
        return _from_dict(cls, d)


@dataclass
class PostGameSummary:
    message: str

    def to_json(self) -> str:
        return json.dumps({"message": self.message})

    @classmethod
    def from_json(cls, raw: str) -> "PostGameSummary":
        d = json.loads(raw)
        msg = d.get("message")
        if not isinstance(msg, str):
            raise ValueError("post-game payload has no message")
        return cls(message=msg)
