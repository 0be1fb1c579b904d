"""Redis-backed state shared by the services.

Keys are namespaced with the subject's slug (``ovechkin:game_log``) except the
standings snapshot and the reminder-sent markers, which are not per-player.
"""
from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional, Tuple

import redis

from ..utils.calibration import MAX_SAMPLES, CalibrationSample, parse_samples
from .nhl_api_web import GameLogEntry, StandingsTeam
from .payloads import Prediction

HOUR = 3600
DAY = 24 * HOUR

GAME_LOG_TTL = 12 * HOUR
STANDINGS_TTL = 1 * HOUR
NEXT_PREDICTION_TTL = 1 * HOUR
SNAPSHOT_TTL = 7 * DAY
ODDS_TTL = 12 * HOUR
REMINDER_SENT_TTL = 25 * HOUR
SEEN_GOALS_TTL = 7 * DAY
LAST_REPORTED_TTL = 30 * DAY

STANDINGS_KEY = "standings:now"
PAYLOAD_FIELD = "payload"

GOALS = "goals"
REMINDERS = "reminders"
POST_GAME = "post_game"

log = logging.getLogger(__name__)

# (stream key, message id, fields)
StreamMessage = Tuple[str, str, Dict[str, str]]


def connect(url: str) -> redis.Redis:
    return redis.Redis.from_url(url, decode_responses=True, socket_timeout=10, socket_connect_timeout=5)


class GoalStore:
    def __init__(self, r: redis.Redis, prefix: str):
        self.r = r
        self.prefix = prefix.rstrip(":") + ":"

    def key(self, name: str) -> str:
        return f"{self.prefix}{name}"

    def stream(self, name: str) -> str:
        return self.key(name)

    def ping(self) -> bool:
        return bool(self.r.ping())

    # --- collector cache ---

    def write_game_log(self, entries: List[GameLogEntry]) -> None:
        body = json.dumps([e.to_json() for e in entries])
        self.r.set(self.key("game_log"), body, ex=GAME_LOG_TTL)

    def read_game_log(self) -> List[GameLogEntry]:
        raw = self.r.get(self.key("game_log"))
        if not raw:
            return []
        try:
            return [GameLogEntry.from_json(d) for d in json.loads(raw)]
        except (ValueError, TypeError, AttributeError) as e:
            log.warning("cached game log unreadable: %s", e)
            return []

    def write_standings(self, standings: Dict[str, StandingsTeam]) -> None:
        body = json.dumps({ab: t.to_json() for ab, t in standings.items()})
        self.r.set(STANDINGS_KEY, body, ex=STANDINGS_TTL)

    def read_standings(self) -> Dict[str, StandingsTeam]:
        raw = self.r.get(STANDINGS_KEY)
        if not raw:
            return {}
        try:
            return {ab: StandingsTeam.from_json(d) for ab, d in json.loads(raw).items()}
        except (ValueError, TypeError, AttributeError) as e:
            log.warning("cached standings unreadable: %s", e)
            return {}

    # --- predictions ---

    def write_prediction(self, pred: Prediction) -> None:
        """Latest prediction (short TTL) plus a per-game snapshot for the evaluator."""
        body = pred.to_json()
        pipe = self.r.pipeline()
        pipe.set(self.key("next_prediction"), body, ex=NEXT_PREDICTION_TTL)
        pipe.set(self.key(f"prediction_snapshot:{pred.game_id}"), body, ex=SNAPSHOT_TTL)
        pipe.execute()

    def _read_prediction(self, key: str) -> Optional[Prediction]:
        raw = self.r.get(key)
        if not raw:
            return None
        try:
            return Prediction.from_json(raw)
        except (ValueError, KeyError, TypeError) as e:
            log.warning("unreadable prediction key=%s: %s", key, e)
            return None

    def read_next_prediction(self) -> Optional[Prediction]:
        return self._read_prediction(self.key("next_prediction"))

    def read_snapshot(self, game_id: int) -> Optional[Prediction]:
        return self._read_prediction(self.key(f"prediction_snapshot:{game_id}"))

    def cached_odds(self, game_id: int) -> Optional[str]:
        return self.r.get(self.key(f"odds:{game_id}")) or None

    def cache_odds(self, game_id: int, american: str) -> None:
        self.r.set(self.key(f"odds:{game_id}"), american, ex=ODDS_TTL)

    # --- calibration ---

    def calibration_samples(self) -> List[CalibrationSample]:
        """Newest first; malformed entries are dropped."""
        return parse_samples(self.r.lrange(self.key("calibration:log"), 0, MAX_SAMPLES - 1))

    def append_calibration(self, sample: CalibrationSample) -> None:
        pipe = self.r.pipeline()
        pipe.lpush(self.key("calibration:log"), sample.to_json())
        pipe.ltrim(self.key("calibration:log"), 0, MAX_SAMPLES - 1)
        pipe.execute()

    # --- idempotency markers ---

    def reminder_sent(self, game_id: int) -> bool:
        return self.r.exists(f"reminder_sent:{game_id}") > 0

    def mark_reminder_sent(self, game_id: int) -> None:
        self.r.set(f"reminder_sent:{game_id}", "1", ex=REMINDER_SENT_TTL)

    def mark_goal_seen(self, game_id: int, goals_to_date: int) -> bool:
        """Record a goal; True the first time this (game, running total) is seen."""
        key = self.key(f"seen_goals:{game_id}")
        added = self.r.sadd(key, str(goals_to_date))
        if not added:
            return False
        self.r.expire(key, SEEN_GOALS_TTL)
        return True

    def last_reported(self) -> int:
        raw = self.r.get(self.key("evaluator_last_reported_game"))
        try:
            return int(raw) if raw else 0
        except ValueError:
            return 0

    def set_last_reported(self, game_id: int) -> None:
        self.r.set(self.key("evaluator_last_reported_game"), str(game_id), ex=LAST_REPORTED_TTL)

    # --- streams ---

    def publish(self, stream: str, payload: str, **extra: Any) -> str:
        fields: Dict[str, Any] = {PAYLOAD_FIELD: payload}
        fields.update({k: str(v) for k, v in extra.items()})
        return self.r.xadd(self.stream(stream), fields)

    def ensure_group(self, stream: str, group: str) -> None:
        try:
            self.r.xgroup_create(self.stream(stream), group, id="0", mkstream=True)
        except redis.ResponseError as e:
            if "BUSYGROUP" not in str(e):
                raise

    def read_group(
        self, group: str, consumer: str, streams: List[str], count: int = 10, block_ms: Optional[int] = 5000
    ) -> List[StreamMessage]:
        resp = self.r.xreadgroup(
            group, consumer, {self.stream(s): ">" for s in streams}, count=count, block=block_ms
        )
        if not resp:
            return []
        items = resp.items() if isinstance(resp, dict) else resp
        out: List[StreamMessage] = []
        for stream_key, messages in items:
            if isinstance(messages, list) and messages and isinstance(messages[0], list):
                # RESP3 wraps each stream's messages one level deeper
                messages = messages[0]
            for msg_id, fields in messages or []:
                out.append((stream_key, msg_id, fields or {}))
        return out

    def ack(self, stream_key: str, group: str, msg_id: str) -> None:
        self.r.xack(stream_key, group, msg_id)

    def stream_name(self, stream_key: str) -> str:
        """'ovechkin:goals' -> 'goals'."""
        if stream_key.startswith(self.prefix):
            return stream_key[len(self.prefix):]
        return stream_key
