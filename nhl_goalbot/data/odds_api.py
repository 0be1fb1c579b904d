from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

import requests

from ..errors import OddsAPIError
from ..utils.dates import parse_iso_utc
from ..utils.deadline import Deadline, unbounded
from ..utils.odds import format_american
from .depth_chart import TEAM_NAMES
from .nhl_api_web import Game

ODDS_API_BASE = "https://api.the-odds-api.com/v4"
SPORT = "icehockey_nhl"
ANYTIME_MARKET = "player_goal_scorer_anytime"
EVENT_MATCH_WINDOW = timedelta(minutes=90)

BOOKMAKER_PRIORITY = [
    "fanduel",
    "draftkings",
    "betmgm",
    "caesars",
    "pointsbetus",
    "betrivers",
    "bovada",
]

log = logging.getLogger(__name__)


def _ordered_bookmakers(bookmakers: List[Dict]) -> List[Dict]:
    rank = {k: i for i, k in enumerate(BOOKMAKER_PRIORITY)}
    return sorted(bookmakers, key=lambda b: rank.get(b.get("key"), len(rank)))


def match_event_id(events: List[Dict[str, Any]], game: Game, team: str) -> Optional[str]:
    """Id of the event starting within 90 minutes of the game and naming the team."""
    place, nick = TEAM_NAMES.get(team, (team, team))
    needles = [place.lower(), nick.lower()]
    for ev in events:
        start = parse_iso_utc(ev.get("commence_time"))
        if start is None or abs(game.start_time_utc - start) > EVENT_MATCH_WINDOW:
            continue
        sides = f"{ev.get('home_team') or ''} | {ev.get('away_team') or ''}".lower()
        if any(n in sides for n in needles):
            return ev.get("id")
    return None


def anytime_price(event_odds: Dict[str, Any], player_name: str) -> Optional[int]:
    """American price on the player's anytime-goal 'Yes' outcome, preferred bookmakers first."""
    last = player_name.split()[-1] if player_name else ""
    for book in _ordered_bookmakers(event_odds.get("bookmakers", []) or []):
        for market in book.get("markets", []) or []:
            if market.get("key") != ANYTIME_MARKET:
                continue
            for oc in market.get("outcomes", []) or []:
                desc = str(oc.get("description") or "")
                name = str(oc.get("name") or "")
                if last and last in desc and name in ("Yes", player_name):
                    try:
                        return int(oc.get("price"))
                    except (TypeError, ValueError):
                        continue
    return None


class OddsAPIClient:
    def __init__(self, api_key: Optional[str], timeout: float = 15.0):
        self.api_key = api_key
        self.timeout = timeout

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    def _get(self, path: str, params: Dict[str, Any], deadline: Deadline) -> Any:
        url = f"{ODDS_API_BASE}{path}"
        try:
            r = requests.get(url, params={"apiKey": self.api_key, **params}, timeout=deadline.timeout(self.timeout))
        except requests.RequestException as e:
            raise OddsAPIError(f"GET {path}: {e}") from e
        if r.status_code != 200:
            raise OddsAPIError(f"GET {path}: status {r.status_code}", status=r.status_code)
        remaining = r.headers.get("x-requests-remaining")
        if remaining is not None:
            log.debug("odds api quota remaining=%s", remaining)
        try:
            return r.json()
        except ValueError as e:
            raise OddsAPIError(f"GET {path}: malformed JSON") from e

    def events(self, deadline: Optional[Deadline] = None) -> List[Dict[str, Any]]:
        return self._get(f"/sports/{SPORT}/events", {}, deadline or unbounded()) or []

    def event_odds(self, event_id: str, deadline: Optional[Deadline] = None) -> Dict[str, Any]:
        params = {"regions": "us", "markets": ANYTIME_MARKET, "oddsFormat": "american"}
        return self._get(f"/sports/{SPORT}/events/{event_id}/odds", params, deadline or unbounded()) or {}

    def anytime_goal_odds(
        self, game: Game, team: str, player_name: str, deadline: Optional[Deadline] = None
    ) -> Optional[str]:
        """Signed American string like '+140', or None when no key, event or line."""
        if not self.enabled:
            return None
        deadline = deadline or unbounded()
        event_id = match_event_id(self.events(deadline), game, team)
        if not event_id:
            log.info("odds event not found game_id=%s", game.game_id)
            return None
        price = anytime_price(self.event_odds(event_id, deadline), player_name)
        if price is None:
            return None
        return format_american(price)


def within_fetch_window(game: Game, now: datetime, hours: float = 36.0) -> bool:
    """Odds are only worth a paid request inside the last `hours` before puck drop."""
    return timedelta(0) <= game.start_time_utc - now <= timedelta(hours=hours)
