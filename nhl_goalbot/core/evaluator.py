from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import redis

from ..data.nhl_api_web import Game, NHLWebClient, PlayerGameLine, player_line_from_boxscore
from ..data.payloads import PostGameSummary, Prediction
from ..data.store import POST_GAME, GoalStore
from ..errors import DeadlineExceeded, NHLAPIError
from ..utils.calibration import CalibrationSample, summarize
from ..utils.config import Subject
from ..utils.dates import today_utc
from ..utils.deadline import Deadline

TICK_SECONDS = 90.0

log = logging.getLogger(__name__)


@dataclass
class EvalResult:
    game: Optional[Game] = None
    summary: Optional[PostGameSummary] = None
    sample: Optional[CalibrationSample] = None


def is_hit(pred_pct: int, scored: bool) -> bool:
    return (pred_pct >= 50 and scored) or (pred_pct < 50 and not scored)


def post_game_message(subject: Subject, game: Game, line: PlayerGameLine, snapshot: Optional[Prediction]) -> str:
    opp = game.opponent(subject.team)
    msg = f"📊 **Post-game evaluation** · {game.game_date} vs **{opp}**\n"
    msg += (
        f"**{subject.last_name}:** {line.goals}G, {line.assists}A, {line.points} PTS · TOI {line.toi} · "
        f"{line.shifts} shifts · {line.sog} SOG\n"
    )
    if snapshot is None or snapshot.probability_pct <= 0:
        return msg + "_(No prediction snapshot for this game)_\n"
    scored = line.goals > 0
    result = "Hit" if is_hit(snapshot.probability_pct, scored) else "Miss"
    msg += f"**Prediction:** {snapshot.probability_pct}% · Actual: {'scored' if scored else 'no goal'} · **{result}**"
    if snapshot.odds_american:
        msg += f" · Odds had: {snapshot.odds_american}"
    if snapshot.goalie_name:
        msg += f" · Goalie: {snapshot.goalie_name}"
    return msg + "\n"


class Evaluator:
    """Publishes exactly one post-game summary per completed game."""

    def __init__(self, client: NHLWebClient, store: GoalStore, subject: Subject):
        self.client = client
        self.store = store
        self.subject = subject

    def tick(self, deadline: Deadline, now: Optional[datetime] = None) -> EvalResult:
        res = EvalResult()
        try:
            game = self.client.last_completed_game(self.subject.team, now or today_utc(), deadline)
        except NHLAPIError as e:
            log.warning("last completed game fetch failed: %s", e)
            return res
        if game is None:
            log.debug("no completed game")
            return res
        res.game = game
        if self.store.last_reported() >= game.game_id:
            log.debug("already reported game_id=%s", game.game_id)
            return res

        snapshot = self.store.read_snapshot(game.game_id)
        try:
            box = self.client.boxscore(game.game_id, deadline)
        except NHLAPIError as e:
            log.warning("boxscore failed game_id=%s: %s", game.game_id, e)
            return res
        line = player_line_from_boxscore(box or {}, self.subject.player_id)
        if line is None:
            log.warning("subject not in boxscore game_id=%s", game.game_id)
            return res

        res.summary = PostGameSummary(message=post_game_message(self.subject, game, line, snapshot))
        self.store.publish(POST_GAME, res.summary.to_json())
        log.info("post-game summary published game_id=%s", game.game_id)
        # Marked only after the publish succeeded
        self.store.set_last_reported(game.game_id)

        if snapshot is not None and snapshot.probability_pct > 0:
            scored = line.goals > 0
            res.sample = CalibrationSample(
                game_id=game.game_id,
                pred_pct=snapshot.probability_pct,
                scored=1 if scored else 0,
                hit=is_hit(snapshot.probability_pct, scored),
            )
            self.store.append_calibration(res.sample)
            log.info("calibration %s", summarize(self.store.calibration_samples()))
        return res

    def run_once(self, deadline: Optional[Deadline] = None) -> EvalResult:
        deadline = deadline or Deadline(TICK_SECONDS)
        try:
            return self.tick(deadline)
        except redis.RedisError as e:
            log.warning("evaluator tick skipped, redis error: %s", e)
        except DeadlineExceeded as e:
            log.warning("evaluator tick cut short: %s", e)
        return EvalResult()
