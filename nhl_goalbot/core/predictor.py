from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

import redis

from ..data.goalies import GoalieInfo, GoalieResolver
from ..data.nhl_api_web import Game, NHLWebClient
from ..data.odds_api import OddsAPIClient, within_fetch_window
from ..data.payloads import Prediction
from ..data.store import REMINDERS, GoalStore
from ..errors import DeadlineExceeded, UpstreamError
from ..models.blend import apply_calibration, blend_with_market
from ..models.estimator import predict
from ..utils.calibration import calibration_scale
from ..utils.config import Subject
from ..utils.dates import to_rfc3339, today_utc
from ..utils.deadline import Deadline

TICK_SECONDS = 120.0
EMPTY_LOG_RETRY_SECONDS = 60.0
REMINDER_FROM = timedelta(minutes=55)
REMINDER_TO = timedelta(minutes=65)

log = logging.getLogger(__name__)


@dataclass
class PredictResult:
    game: Optional[Game] = None
    prediction: Optional[Prediction] = None
    reminder_sent: bool = False


def in_reminder_window(game: Game, now: datetime) -> bool:
    until = game.start_time_utc - now
    return REMINDER_FROM <= until <= REMINDER_TO


class Predictor:
    def __init__(
        self,
        client: NHLWebClient,
        store: GoalStore,
        subject: Subject,
        goalies: Optional[GoalieResolver] = None,
        odds: Optional[OddsAPIClient] = None,
        sleeper: Optional[Callable[[float], None]] = None,
    ):
        self.client = client
        self.store = store
        self.subject = subject
        self.goalies = goalies or GoalieResolver.default(client, subject.team)
        self.odds = odds or OddsAPIClient(None)
        self.sleeper = sleeper or time.sleep

    def _game_log(self, deadline: Deadline):
        entries = self.store.read_game_log()
        if entries:
            return entries
        # Collector may still be filling the cache right after startup
        log.info("game log empty, retrying once in %ss", int(EMPTY_LOG_RETRY_SECONDS))
        deadline.sleep(EMPTY_LOG_RETRY_SECONDS, self.sleeper)
        return self.store.read_game_log()

    def _goalie(self, game: Game, deadline: Deadline) -> Optional[GoalieInfo]:
        try:
            deadline.check("goalie")
        except DeadlineExceeded as e:
            log.warning("%s", e)
            return None
        return self.goalies.opposing_starter(game, deadline)

    def _odds(self, game: Game, now: datetime, deadline: Deadline) -> Optional[str]:
        cached = self.store.cached_odds(game.game_id)
        if cached:
            return cached
        if not self.odds.enabled or not within_fetch_window(game, now):
            return None
        try:
            odds = self.odds.anytime_goal_odds(game, self.subject.team, self.subject.name, deadline)
        except (UpstreamError, DeadlineExceeded) as e:
            log.warning("odds fetch failed game_id=%s: %s", game.game_id, e)
            return None
        if odds:
            self.store.cache_odds(game.game_id, odds)
            log.info("odds anytime_goal=%s game_id=%s", odds, game.game_id)
        return odds

    def tick(self, deadline: Deadline, now: Optional[datetime] = None) -> PredictResult:
        res = PredictResult()
        now = now or today_utc()
        team = self.subject.team
        try:
            game = self.client.next_game(team, now, deadline)
        except UpstreamError as e:
            log.warning("next game fetch failed: %s", e)
            return res
        if game is None:
            log.info("no upcoming game")
            return res
        res.game = game
        log.info("next game game_id=%s opponent=%s home=%s start=%s", game.game_id, game.opponent(team),
                 game.is_home(team), to_rfc3339(game.start_time_utc))

        entries = self._game_log(deadline)
        if not entries:
            log.info("game log still empty, skipping until next tick")
            return res
        standings = self.store.read_standings()
        log.info("data loaded game_log_entries=%d standings_loaded=%s", len(entries), bool(standings))

        goalie = self._goalie(game, deadline)
        pct = predict(game, entries, standings, goalie.save_pct if goalie else 0.0, team)
        log.info("prediction game_id=%s pct=%d", game.game_id, pct)

        odds = self._odds(game, now, deadline)
        if odds:
            blended = blend_with_market(pct, odds)
            if blended != pct:
                log.info("blended with market model_pct=%d odds=%s final_pct=%d", pct, odds, blended)
            pct = blended

        scale = calibration_scale(self.store.calibration_samples())
        if scale != 1.0:
            calibrated = apply_calibration(pct, scale)
            log.info("calibrated before=%d scale=%.3f after=%d", pct, scale, calibrated)
            pct = calibrated

        pred = Prediction(
            game_id=game.game_id,
            opponent=game.opponent(team),
            home_away=game.home_away(team),
            probability_pct=pct,
            start_time_utc=to_rfc3339(game.start_time_utc),
            game_date=game.game_date,
            odds_american=odds,
            goalie_name=goalie.name if goalie else None,
        )
        self.store.write_prediction(pred)
        res.prediction = pred

        if not in_reminder_window(game, now):
            log.debug("reminder skip: outside 55-65m window game_id=%s", game.game_id)
            return res
        if self.store.reminder_sent(game.game_id):
            log.info("reminder skip: already sent game_id=%s", game.game_id)
            return res
        # Marker only after a successful XADD so a failed publish is retried next tick
        self.store.publish(REMINDERS, pred.to_json(), game_id=game.game_id)
        self.store.mark_reminder_sent(game.game_id)
        res.reminder_sent = True
        log.info("reminder published game_id=%s pct=%d", game.game_id, pct)
        return res

    def run_once(self, deadline: Optional[Deadline] = None) -> PredictResult:
        deadline = deadline or Deadline(TICK_SECONDS)
        try:
            return self.tick(deadline)
        except redis.RedisError as e:
            log.warning("predictor tick skipped, redis error: %s", e)
        except DeadlineExceeded as e:
            log.warning("predictor tick cut short: %s", e)
        return PredictResult()
