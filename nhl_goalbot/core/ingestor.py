from __future__ import annotations

import logging
import time
from dataclasses import dataclass, replace
from typing import Callable, Optional

import redis

from ..data.nhl_api_web import (
    NHLWebClient,
    ScoreGame,
    goalie_for_goal,
    opponent_from_boxscore,
    opposing_goalie_from_boxscore,
)
from ..data.payloads import GoalEvent
from ..data.store import GOALS, GoalStore
from ..errors import DeadlineExceeded, NHLAPIError
from ..utils.config import Subject
from ..utils.dates import to_rfc3339, today_utc
from ..utils.deadline import Deadline

TICK_SECONDS = 90.0
PBP_RETRY_SECONDS = 5.0
# Idle ticks between career-total syncs (about 5 minutes at the default interval)
RECONCILE_EVERY = 15

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class IngestState:
    known_total: int
    live_game_id: int = 0
    idle_ticks: int = 0  # polls since the last career-total sync while no game is live


class Ingestor:
    """Turns live score updates into one goal event per goal.

    De-duplication lives in Redis (a set per game keyed by the running goal
    total) so restarts and parallel ingestors agree on what was announced.
    """

    def __init__(
        self,
        client: NHLWebClient,
        store: GoalStore,
        subject: Subject,
        sleeper: Optional[Callable[[float], None]] = None,
    ):
        self.client = client
        self.store = store
        self.subject = subject
        self.sleeper = sleeper or time.sleep

    def initial_state(self, deadline: Optional[Deadline] = None) -> IngestState:
        """Raises NHLAPIError when the career total cannot be fetched."""
        return IngestState(known_total=self.client.career_goals(self.subject.player_id, deadline))

    def _goalie_in_net(self, game_id: int, goals_to_date: int, deadline: Deadline) -> Optional[str]:
        for attempt in range(2):
            try:
                name = goalie_for_goal(self.client.play_by_play(game_id, deadline), self.subject.player_id, goals_to_date)
            except NHLAPIError as e:
                log.info("play-by-play unavailable game_id=%s: %s", game_id, e)
                name = None
            if name or attempt == 1:
                return name
            # feed often lags the score by a few seconds
            deadline.sleep(PBP_RETRY_SECONDS, self.sleeper)
            if deadline.expired:
                return None
        return None

    def enrich(self, event: GoalEvent, deadline: Deadline) -> GoalEvent:
        box = None
        try:
            box = self.client.boxscore(event.game_id, deadline)
        except (NHLAPIError, DeadlineExceeded) as e:
            log.info("boxscore unavailable game_id=%s: %s", event.game_id, e)
        if box:
            opp, opp_name = opponent_from_boxscore(box, self.subject.team)
            event.opponent = opp or None
            event.opponent_name = opp_name or None
        try:
            event.goalie_name = self._goalie_in_net(event.game_id, event.goals_to_date, deadline)
        except DeadlineExceeded:
            event.goalie_name = None
        if not event.goalie_name and box:
            starter = opposing_goalie_from_boxscore(box, self.subject.team)
            if starter:
                event.goalie_name = starter[1] or None
        return event

    def _reconcile(self, state: IngestState, deadline: Deadline) -> IngestState:
        try:
            api_total = self.client.career_goals(self.subject.player_id, deadline)
        except NHLAPIError as e:
            log.warning("career total sync failed: %s", e)
            return replace(state, live_game_id=0, idle_ticks=1)
        return IngestState(known_total=max(state.known_total, api_total), live_game_id=0, idle_ticks=1)

    def _due_for_reconcile(self, state: IngestState) -> bool:
        # A game just ended, or the idle counter is fresh or has run out
        return state.live_game_id != 0 or state.idle_ticks == 0 or state.idle_ticks >= RECONCILE_EVERY

    def _handle_live(self, game: ScoreGame, state: IngestState, deadline: Deadline) -> IngestState:
        known = state.known_total
        for goal in game.goals:
            if goal.player_id != self.subject.player_id:
                continue
            try:
                first_sighting = self.store.mark_goal_seen(game.game_id, goal.goals_to_date)
            except redis.RedisError as e:
                log.warning("seen-goal check failed game_id=%s: %s", game.game_id, e)
                break
            if not first_sighting:
                continue
            known += 1
            event = GoalEvent(
                player_id=self.subject.player_id,
                goals=known,
                recorded_at=to_rfc3339(today_utc()),
                game_id=game.game_id,
                goals_to_date=goal.goals_to_date,
            )
            event = self.enrich(event, deadline)
            try:
                msg_id = self.store.publish(GOALS, event.to_json(), goals=known)
            except redis.RedisError as e:
                log.error("emit goal event failed goals=%d game_id=%s: %s", known, game.game_id, e)
                continue
            log.info("goal event emitted stream_id=%s goals=%d game_id=%s goals_to_date=%d",
                     msg_id, known, game.game_id, goal.goals_to_date)
        return IngestState(known_total=known, live_game_id=game.game_id)

    def poll_once(self, state: IngestState, deadline: Optional[Deadline] = None) -> IngestState:
        deadline = deadline or Deadline(TICK_SECONDS)
        try:
            game = self.client.live_game(self.subject.team, deadline)
        except NHLAPIError as e:
            log.warning("score/now fetch failed: %s", e)
            return state
        try:
            if game is None:
                if self._due_for_reconcile(state):
                    return self._reconcile(state, deadline)
                return replace(state, idle_ticks=state.idle_ticks + 1)
            return self._handle_live(game, state, deadline)
        except redis.RedisError as e:
            log.warning("ingestor tick skipped, redis error: %s", e)
        except DeadlineExceeded as e:
            log.warning("ingestor tick cut short: %s", e)
        return state
