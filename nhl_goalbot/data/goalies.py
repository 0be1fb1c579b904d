from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

import requests

from ..errors import DeadlineExceeded, NHLAPIError, UpstreamError
from ..utils.deadline import Deadline, unbounded
from .depth_chart import MatchupHints, parse_opposing_starter
from .nhl_api_web import Game, NHLWebClient, opposing_goalie_from_boxscore

# dayCount=2 covers today and tomorrow (ET); the page lists away goalie then home goalie per game
PUCKPEDIA_URL = "https://depth-charts.puckpedia.com/starting-goalies?dayCount=2&timezone=America/New_York"
PAGE_HEADERS = {
    "User-Agent": "Mozilla/5.0 (compatible; nhl-goalbot/0.4) Chrome/120.0.0.0",
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
}
MAX_PAGE_BYTES = 512 * 1024

log = logging.getLogger(__name__)


@dataclass
class GoalieInfo:
    name: str
    save_pct: float = 0.0  # 0 means unknown
    source: str = ""


def _default(v: Any) -> str:
    if isinstance(v, dict):
        return str(v.get("default") or "")
    return str(v or "")


def match_roster_goalie(roster: Dict[str, Any], full_name: str) -> Optional[Tuple[int, str]]:
    """Find a goalie on a roster payload by printed name.

    Accepts "Dan Vladar" or just "Vladar". Last name must match; first name
    must match fully or by initial when given. Returns (player id, "D. Vladar").
    """
    full_name = (full_name or "").strip()
    if not full_name:
        return None
    parts = full_name.split(" ", 1)
    first, last = (parts[0], parts[1]) if len(parts) == 2 else ("", full_name)
    for g in roster.get("goalies", []) or []:
        r_first = _default(g.get("firstName"))
        r_last = _default(g.get("lastName"))
        if r_last.lower() != last.lower():
            continue
        if first and r_first.lower() != first.lower() and not (r_first and r_first[0].lower() == first[0].lower()):
            continue
        try:
            pid = int(g.get("id"))
        except (TypeError, ValueError):
            continue
        display = f"{r_first[:1]}. {r_last}" if r_first else r_last
        return pid, display
    return None


class GoalieStrategy:
    """One source of opposing-starter information."""

    name = "base"

    def resolve(self, game: Game, deadline: Deadline) -> Optional[GoalieInfo]:
        raise NotImplementedError


class DepthChartStrategy(GoalieStrategy):
    """Projected starters from the PuckPedia page, normalized against the opponent's roster."""

    name = "depth_chart"

    def __init__(self, client: NHLWebClient, team: str, url: str = PUCKPEDIA_URL, timeout: float = 12.0):
        self.client = client
        self.team = team
        self.url = url
        self.timeout = timeout

    def fetch_page(self, deadline: Deadline) -> str:
        try:
            r = requests.get(self.url, headers=PAGE_HEADERS, timeout=deadline.timeout(self.timeout))
        except requests.RequestException as e:
            raise UpstreamError(f"depth chart: {e}") from e
        if r.status_code != 200:
            raise UpstreamError(f"depth chart: status {r.status_code}", status=r.status_code)
        return r.content[:MAX_PAGE_BYTES].decode(r.encoding or "utf-8", errors="replace")

    def resolve(self, game: Game, deadline: Deadline) -> Optional[GoalieInfo]:
        opp = game.opponent(self.team)
        hints = MatchupHints.for_game(self.team, opp, game.is_home(self.team), game.game_id)
        printed = parse_opposing_starter(self.fetch_page(deadline), hints)
        if not printed:
            return None
        match = match_roster_goalie(self.client.roster(opp, deadline), printed)
        if match is None:
            log.warning("depth chart name not on opponent roster, discarding name=%s opponent=%s", printed, opp)
            return None
        player_id, display = match
        try:
            save_pct = self.client.save_pct(player_id, deadline)
        except NHLAPIError as e:
            log.info("save pct unavailable player_id=%s: %s", player_id, e)
            save_pct = 0.0
        return GoalieInfo(name=display or printed, save_pct=save_pct, source=self.name)


class BoxscoreStrategy(GoalieStrategy):
    """Official starter flag; only published near puck drop."""

    name = "boxscore"

    def __init__(self, client: NHLWebClient, team: str):
        self.client = client
        self.team = team

    def resolve(self, game: Game, deadline: Deadline) -> Optional[GoalieInfo]:
        box = self.client.boxscore(game.game_id, deadline)
        if not box:
            return None
        pick = opposing_goalie_from_boxscore(box, self.team)
        if pick is None:
            return None
        player_id, name = pick
        try:
            save_pct = self.client.save_pct(player_id, deadline)
        except NHLAPIError as e:
            log.info("save pct unavailable player_id=%s: %s", player_id, e)
            save_pct = 0.0
        return GoalieInfo(name=name, save_pct=max(0.0, save_pct), source=self.name)


class GoalieResolver:
    """Try each strategy in order; the first one that returns a goalie wins."""

    def __init__(self, strategies: Sequence[GoalieStrategy]):
        self.strategies: List[GoalieStrategy] = list(strategies)

    @classmethod
    def default(cls, client: NHLWebClient, team: str) -> "GoalieResolver":
        return cls([DepthChartStrategy(client, team), BoxscoreStrategy(client, team)])

    def opposing_starter(self, game: Game, deadline: Optional[Deadline] = None) -> Optional[GoalieInfo]:
        deadline = deadline or unbounded()
        for strategy in self.strategies:
            try:
                info = strategy.resolve(game, deadline)
            except DeadlineExceeded as e:
                log.warning("goalie lookup out of time source=%s game_id=%s: %s", strategy.name, game.game_id, e)
                return None
            except UpstreamError as e:
                log.warning("goalie source failed source=%s game_id=%s: %s", strategy.name, game.game_id, e)
                continue
            if info is not None:
                log.info("goalie found source=%s name=%s save_pct=%.3f", strategy.name, info.name, info.save_pct)
                return info
        log.info("goalie unknown game_id=%s", game.game_id)
        return None
