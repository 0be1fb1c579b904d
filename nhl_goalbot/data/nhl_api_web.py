from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

import requests

from ..errors import NHLAPIError
from ..utils.dates import parse_iso_utc
from ..utils.deadline import Deadline, unbounded

BASE = "https://api-web.nhle.com/v1"
HEADERS = {"Accept": "application/json", "User-Agent": "nhl-goalbot/0.4"}

IN_PROGRESS_STATES = {"LIVE", "PRE", "CRIT"}
LIVE_STATES = {"LIVE", "CRIT"}
COMPLETED_STATES = {"FINAL", "OFF"}
REGULAR_SEASON = 2

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Game:
    game_id: int
    home_abbrev: str
    away_abbrev: str
    start_time_utc: datetime
    game_state: str
    game_date: str  # local calendar day, YYYY-MM-DD
    venue: Optional[str] = None

    def opponent(self, team: str) -> str:
        if self.home_abbrev == team:
            return self.away_abbrev
        return self.home_abbrev

    def is_home(self, team: str) -> bool:
        return self.home_abbrev == team

    def home_away(self, team: str) -> str:
        return "HOME" if self.is_home(team) else "AWAY"


@dataclass
class GameLogEntry:
    game_id: int
    game_date: str
    opponent_abbrev: str
    home_road_flag: str  # "H" or "R"
    goals: int

    @property
    def is_home(self) -> bool:
        return self.home_road_flag == "H"

    def to_json(self) -> Dict[str, Any]:
        return {
            "gameId": self.game_id,
            "gameDate": self.game_date,
            "opponentAbbrev": self.opponent_abbrev,
            "homeRoadFlag": self.home_road_flag,
            "goals": self.goals,
        }

    @classmethod
    def from_json(cls, d: Dict[str, Any]) -> "GameLogEntry":
        opp = d.get("opponentAbbrev")
        if isinstance(opp, dict):
            opp = opp.get("default")
        return cls(
            game_id=int(d.get("gameId") or 0),
            game_date=str(d.get("gameDate") or ""),
            opponent_abbrev=str(opp or ""),
            home_road_flag=str(d.get("homeRoadFlag") or ""),
            goals=int(d.get("goals") or 0),
        )


@dataclass
class StandingsTeam:
    team_abbrev: str
    games_played: int = 0
    goals_against: int = 0
    goals_for: int = 0
    goal_differential: int = 0
    point_pct: float = 0.0
    l10_games_played: int = 0
    l10_goals_against: int = 0
    l10_goals_for: int = 0
    home_games_played: int = 0
    home_goals_against: int = 0
    road_games_played: int = 0
    road_goals_against: int = 0

    _JSON_KEYS = (
        ("games_played", "gamesPlayed"),
        ("goals_against", "goalAgainst"),
        ("goals_for", "goalFor"),
        ("goal_differential", "goalDifferential"),
        ("l10_games_played", "l10GamesPlayed"),
        ("l10_goals_against", "l10GoalsAgainst"),
        ("l10_goals_for", "l10GoalsFor"),
        ("home_games_played", "homeGamesPlayed"),
        ("home_goals_against", "homeGoalsAgainst"),
        ("road_games_played", "roadGamesPlayed"),
        ("road_goals_against", "roadGoalsAgainst"),
    )

    def to_json(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"teamAbbrev": self.team_abbrev, "pointPctg": self.point_pct}
        for attr, key in self._JSON_KEYS:
            out[key] = getattr(self, attr)
        return out

    @classmethod
    def from_json(cls, d: Dict[str, Any]) -> "StandingsTeam":
        kwargs: Dict[str, Any] = {}
        for attr, key in cls._JSON_KEYS:
            try:
                kwargs[attr] = int(d.get(key) or 0)
            except (TypeError, ValueError):
                kwargs[attr] = 0
        try:
            point_pct = float(d.get("pointPctg") or 0.0)
        except (TypeError, ValueError):
            point_pct = 0.0
        return cls(team_abbrev=_abbrev(d.get("teamAbbrev")), point_pct=point_pct, **kwargs)


@dataclass
class ScoreGoal:
    player_id: int
    goals_to_date: int


@dataclass
class ScoreGame:
    game_id: int
    game_state: str
    home_abbrev: str
    away_abbrev: str
    goals: List[ScoreGoal] = field(default_factory=list)

    @property
    def is_live(self) -> bool:
        return self.game_state in LIVE_STATES

    def opponent(self, team: str) -> str:
        return self.away_abbrev if self.home_abbrev == team else self.home_abbrev


@dataclass
class PlayerGameLine:
    goals: int = 0
    assists: int = 0
    points: int = 0
    toi: str = ""
    shifts: int = 0
    sog: int = 0


def _abbrev(v: Any) -> str:
    # The API sends abbreviations either as a plain string or as {"default": "WSH"}
    if isinstance(v, str):
        return v
    if isinstance(v, dict):
        d = v.get("default")
        if isinstance(d, str):
            return d
    return ""


def _default(v: Any) -> str:
    if isinstance(v, dict):
        return str(v.get("default") or "")
    return str(v or "")


def _venue(v: Any) -> Optional[str]:
    if isinstance(v, dict):
        return v.get("default") or v.get("name")
    if isinstance(v, str):
        return v
    return None


def parse_club_schedule(data: Dict[str, Any]) -> List[Game]:
    games: List[Game] = []
    for g in data.get("games", []) or []:
        start = parse_iso_utc(g.get("startTimeUTC"))
        if start is None:
            continue
        try:
            game_id = int(g.get("id"))
        except (TypeError, ValueError):
            continue
        games.append(
            Game(
                game_id=game_id,
                home_abbrev=_abbrev((g.get("homeTeam") or {}).get("abbrev")),
                away_abbrev=_abbrev((g.get("awayTeam") or {}).get("abbrev")),
                start_time_utc=start,
                game_state=str(g.get("gameState") or ""),
                game_date=str(g.get("gameDate") or start.strftime("%Y-%m-%d")),
                venue=_venue(g.get("venue")),
            )
        )
    return games


def select_next_game(games: List[Game], now: datetime) -> Optional[Game]:
    """The game on now (LIVE/PRE/CRIT), else the first future game that has not started."""
    in_progress: Optional[Game] = None
    first_future: Optional[Game] = None
    for g in games:
        if g.game_state in IN_PROGRESS_STATES and in_progress is None:
            in_progress = g
        if g.game_state == "FUT" and g.start_time_utc >= now and first_future is None:
            first_future = g
    return in_progress or first_future


def select_last_completed(games: List[Game], now: datetime) -> Optional[Game]:
    last: Optional[Game] = None
    for g in games:
        if g.game_state not in COMPLETED_STATES or g.start_time_utc > now:
            continue
        if last is None or g.start_time_utc > last.start_time_utc:
            last = g
    return last


def parse_game_log(data: Dict[str, Any]) -> List[GameLogEntry]:
    """Game log entries oldest first (the API lists newest first)."""
    entries = [GameLogEntry.from_json(g) for g in data.get("gameLog", []) or []]
    entries.sort(key=lambda e: (e.game_date, e.game_id))
    return entries


def parse_standings(data: Dict[str, Any]) -> Dict[str, StandingsTeam]:
    out: Dict[str, StandingsTeam] = {}
    for t in data.get("standings", []) or []:
        team = StandingsTeam.from_json(t)
        if not team.team_abbrev:
            continue
        out[team.team_abbrev] = team
    return out


def parse_score_now(data: Dict[str, Any]) -> List[ScoreGame]:
    out: List[ScoreGame] = []
    for g in data.get("games", []) or []:
        goals = []
        for gl in g.get("goals", []) or []:
            try:
                goals.append(ScoreGoal(player_id=int(gl.get("playerId")), goals_to_date=int(gl.get("goalsToDate"))))
            except (TypeError, ValueError):
                continue
        try:
            game_id = int(g.get("id"))
        except (TypeError, ValueError):
            continue
        out.append(
            ScoreGame(
                game_id=game_id,
                game_state=str(g.get("gameState") or ""),
                home_abbrev=_abbrev((g.get("homeTeam") or {}).get("abbrev")),
                away_abbrev=_abbrev((g.get("awayTeam") or {}).get("abbrev")),
                goals=goals,
            )
        )
    return out


def save_pct_from_landing(landing: Dict[str, Any]) -> float:
    """Season save percentage from a player landing payload; 0.0 when unknown.

    featuredStats is absent for backup/inactive goalies, so fall back to the most
    recent regular-season seasonTotals row.
    """
    try:
        sub = landing["featuredStats"]["regularSeason"]["subSeason"]
        pct = float(sub.get("savePctg") or 0.0)
        if pct > 0:
            return pct
    except (KeyError, TypeError, ValueError, AttributeError):
        pass
    best_season = 0
    best_pct = 0.0
    for s in landing.get("seasonTotals", []) or []:
        if s.get("gameTypeId") != REGULAR_SEASON:
            continue
        try:
            season = int(s.get("season") or 0)
            pct = float(s.get("savePctg") or 0.0)
        except (TypeError, ValueError):
            continue
        if season > best_season and pct > 0:
            best_season, best_pct = season, pct
    return best_pct


def _box_sides(box: Dict[str, Any], team: str) -> Tuple[str, str]:
    """('homeTeam'|'awayTeam' for team, same for the other side)."""
    away = _abbrev((box.get("awayTeam") or {}).get("abbrev"))
    if away == team:
        return "awayTeam", "homeTeam"
    return "homeTeam", "awayTeam"


def opposing_goalie_from_boxscore(box: Dict[str, Any], team: str) -> Optional[Tuple[int, str]]:
    """(player id, name) of the opponent's starter; first listed goalie when none is flagged."""
    _, opp_side = _box_sides(box, team)
    goalies = ((box.get("playerByGameStats") or {}).get(opp_side) or {}).get("goalies") or []
    pick = next((gk for gk in goalies if gk.get("starter")), None)
    if pick is None and goalies:
        pick = goalies[0]
    if not pick or not pick.get("playerId"):
        return None
    return int(pick["playerId"]), _default(pick.get("name"))


def opponent_from_boxscore(box: Dict[str, Any], team: str) -> Tuple[str, str]:
    """(abbrev, common name) of the team's opponent."""
    _, opp_side = _box_sides(box, team)
    opp = box.get(opp_side) or {}
    return _abbrev(opp.get("abbrev")), _default(opp.get("commonName"))


def player_line_from_boxscore(box: Dict[str, Any], player_id: int) -> Optional[PlayerGameLine]:
    stats = box.get("playerByGameStats") or {}
    for side in ("awayTeam", "homeTeam"):
        for group in ("forwards", "defense"):
            for p in (stats.get(side) or {}).get(group, []) or []:
                if p.get("playerId") != player_id:
                    continue
                return PlayerGameLine(
                    goals=int(p.get("goals") or 0),
                    assists=int(p.get("assists") or 0),
                    points=int(p.get("points") or 0),
                    toi=str(p.get("toi") or ""),
                    shifts=int(p.get("shifts") or 0),
                    sog=int(p.get("sog") or 0),
                )
    return None


def goalie_for_goal(pbp: Dict[str, Any], scorer_id: int, goals_to_date: int) -> Optional[str]:
    """Name of the goalie in net for a specific goal, matched on scorer and running total."""
    goalie_id = None
    for play in pbp.get("plays", []) or []:
        if play.get("typeDescKey") != "goal":
            continue
        details = play.get("details") or {}
        if details.get("scoringPlayerId") != scorer_id:
            continue
        if details.get("scoringPlayerTotal") != goals_to_date:
            continue
        goalie_id = details.get("goalieInNetId")
        break
    if not goalie_id:
        return None
    for spot in pbp.get("rosterSpots", []) or []:
        if spot.get("playerId") == goalie_id:
            first = _default(spot.get("firstName"))
            last = _default(spot.get("lastName"))
            return f"{first} {last}".strip() or None
    return None


class NHLWebClient:
    """Read-only client for api-web.nhle.com.

    One attempt per call: the polling loop's next tick is the retry.
    """

    def __init__(self, timeout: float = 15.0, base: str = BASE):
        self.timeout = timeout
        self.base = base

    def _get(self, path: str, deadline: Optional[Deadline] = None, allow_404: bool = False) -> Optional[Dict]:
        deadline = deadline or unbounded()
        url = f"{self.base}{path}"
        try:
            r = requests.get(url, headers=HEADERS, timeout=deadline.timeout(self.timeout))
        except requests.RequestException as e:
            raise NHLAPIError(f"GET {path}: {e}") from e
        if allow_404 and r.status_code == 404:
            return None
        if r.status_code != 200:
            raise NHLAPIError(f"GET {path}: status {r.status_code}", status=r.status_code)
        try:
            return r.json()
        except ValueError as e:
            raise NHLAPIError(f"GET {path}: malformed JSON") from e

    def club_schedule(self, team: str, deadline: Optional[Deadline] = None) -> List[Game]:
        return parse_club_schedule(self._get(f"/club-schedule-season/{team}/now", deadline) or {})

    def next_game(self, team: str, now: datetime, deadline: Optional[Deadline] = None) -> Optional[Game]:
        return select_next_game(self.club_schedule(team, deadline), now)

    def last_completed_game(self, team: str, now: datetime, deadline: Optional[Deadline] = None) -> Optional[Game]:
        return select_last_completed(self.club_schedule(team, deadline), now)

    def game_log(self, player_id: int, season: str, deadline: Optional[Deadline] = None) -> List[GameLogEntry]:
        data = self._get(f"/player/{player_id}/game-log/{season}/{REGULAR_SEASON}", deadline) or {}
        return parse_game_log(data)

    def standings_now(self, deadline: Optional[Deadline] = None) -> Dict[str, StandingsTeam]:
        return parse_standings(self._get("/standings/now", deadline) or {})

    def player_landing(self, player_id: int, deadline: Optional[Deadline] = None) -> Dict[str, Any]:
        return self._get(f"/player/{player_id}/landing", deadline) or {}

    def career_goals(self, player_id: int, deadline: Optional[Deadline] = None) -> int:
        landing = self.player_landing(player_id, deadline)
        try:
            return int(landing["careerTotals"]["regularSeason"]["goals"])
        except (KeyError, TypeError, ValueError) as e:
            raise NHLAPIError(f"landing {player_id}: no career goals") from e

    def save_pct(self, player_id: int, deadline: Optional[Deadline] = None) -> float:
        return save_pct_from_landing(self.player_landing(player_id, deadline))

    def boxscore(self, game_id: int, deadline: Optional[Deadline] = None) -> Optional[Dict[str, Any]]:
        """Boxscore payload, or None while the game's lineup is not published (404)."""
        return self._get(f"/gamecenter/{int(game_id)}/boxscore", deadline, allow_404=True)

    def play_by_play(self, game_id: int, deadline: Optional[Deadline] = None) -> Dict[str, Any]:
        return self._get(f"/gamecenter/{int(game_id)}/play-by-play", deadline) or {}

    def roster(self, team: str, deadline: Optional[Deadline] = None) -> Dict[str, Any]:
        return self._get(f"/roster/{team}/current", deadline) or {}

    def team_game_from_score_now(self, team: str, deadline: Optional[Deadline] = None) -> Optional[ScoreGame]:
        for g in parse_score_now(self._get("/score/now", deadline) or {}):
            if team in (g.home_abbrev, g.away_abbrev):
                return g
        return None

    def live_game(self, team: str, deadline: Optional[Deadline] = None) -> Optional[ScoreGame]:
        g = self.team_game_from_score_now(team, deadline)
        return g if g is not None and g.is_live else None
