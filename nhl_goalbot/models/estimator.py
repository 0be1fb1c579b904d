"""Probability (percent) that the subject scores at least once in a game.

A Poisson baseline from the recent goal rate, times a handful of clamped
multiplicative factors, averaged with a small logistic model when the game log
is long enough. Every factor is 1.0 when its inputs are missing.
"""
from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from datetime import date
from typing import Dict, List, Optional

from ..data.nhl_api_web import Game, GameLogEntry, StandingsTeam
from ..utils.dates import parse_ymd
from .blend import blend_models, clamp, clamp_pct, round_half_up

EMPTY_LOG_PCT = 45
BASELINE_GAMES = 82
RECENT_GAMES = 5
H2H_GAMES = 10
H2H_MIN_GAMES = 3
SPLIT_MIN_GAMES = 5
L10_MIN_GAMES = 5
LEAGUE_FALLBACK = 3.0
LEAGUE_AVG_SAVE_PCT = 0.905

HOME_FACTOR = 1.05
AWAY_FACTOR = 0.95
BACK_TO_BACK = 0.92
RESTED = 1.02

StandingsMap = Dict[str, StandingsTeam]


@dataclass
class Factors:
    opponent: float = 1.0
    home: float = 1.0
    recent: float = 1.0
    h2h: float = 1.0
    strength: float = 1.0
    pace: float = 1.0
    rest: float = 1.0
    goalie: float = 1.0

    def product(self) -> float:
        out = 1.0
        for v in asdict(self).values():
            out *= v
        return out


@dataclass
class Breakdown:
    baseline_rate: float
    base_prob: float
    factors: Factors
    heuristic: int
    logistic: int
    pct: int


def league_avg_ga(standings: Optional[StandingsMap]) -> float:
    if not standings:
        return LEAGUE_FALLBACK
    ga = sum(t.goals_against for t in standings.values())
    gp = sum(t.games_played for t in standings.values())
    if gp == 0:
        return LEAGUE_FALLBACK
    return ga / gp


def league_avg_pace(standings: Optional[StandingsMap]) -> float:
    """Goals per team per game, both ends counted."""
    if not standings:
        return LEAGUE_FALLBACK
    total = sum(t.goals_for + t.goals_against for t in standings.values())
    gp = sum(t.games_played for t in standings.values())
    if gp == 0:
        return LEAGUE_FALLBACK
    return total / (2.0 * gp)


def effective_opp_ga_per_game(team: StandingsTeam, subject_home: bool) -> float:
    """Opponent GA/game at the relevant venue, blended 70/30 with last-10 form.

    When the subject is home the opponent is on the road, so its road split applies.
    """
    if team.games_played == 0:
        return LEAGUE_FALLBACK
    if subject_home and team.road_games_played >= SPLIT_MIN_GAMES:
        base = team.road_goals_against / team.road_games_played
    elif not subject_home and team.home_games_played >= SPLIT_MIN_GAMES:
        base = team.home_goals_against / team.home_games_played
    else:
        base = team.goals_against / team.games_played
    if team.l10_games_played < L10_MIN_GAMES:
        return base
    l10 = team.l10_goals_against / team.l10_games_played
    return 0.7 * base + 0.3 * l10


def baseline_rate(log: List[GameLogEntry], max_games: int = BASELINE_GAMES) -> float:
    window = log[-max_games:]
    if not window:
        return 0.0
    return sum(e.goals for e in window) / len(window)


def recent_rate(log: List[GameLogEntry], n: int = RECENT_GAMES) -> float:
    window = log[-n:]
    if not window:
        return 0.0
    return sum(e.goals for e in window) / len(window)


def recent_ratio(log: List[GameLogEntry], rate: float) -> float:
    """Unclamped recent-form ratio; 1.0 when there is no baseline."""
    if rate <= 0 or not log:
        return 1.0
    return recent_rate(log) / rate


def opponent_factor(standings: Optional[StandingsMap], opponent: str, subject_home: bool) -> float:
    t = (standings or {}).get(opponent)
    if t is None or t.games_played == 0:
        return 1.0
    return clamp(effective_opp_ga_per_game(t, subject_home) / league_avg_ga(standings), 0.75, 1.35)


def recent_factor(log: List[GameLogEntry], rate: float) -> float:
    if rate <= 0:
        return 1.0
    return clamp(recent_ratio(log, rate), 0.6, 1.4)


def h2h_factor(log: List[GameLogEntry], opponent: str, rate: float) -> float:
    meetings = [e for e in log if e.opponent_abbrev == opponent][-H2H_GAMES:]
    if len(meetings) < H2H_MIN_GAMES or rate <= 0:
        return 1.0
    gpg = sum(e.goals for e in meetings) / len(meetings)
    return clamp(gpg / rate, 0.85, 1.15)


def strength_factor(standings: Optional[StandingsMap], opponent: str) -> float:
    t = (standings or {}).get(opponent)
    if t is None or t.point_pct <= 0:
        return 1.0
    return clamp(0.96 + 0.08 * t.point_pct, 0.92, 1.08)


def pace_factor(standings: Optional[StandingsMap], opponent: str) -> float:
    t = (standings or {}).get(opponent)
    if t is None or t.l10_games_played < L10_MIN_GAMES:
        return 1.0
    pace = (t.l10_goals_for + t.l10_goals_against) / (2.0 * t.l10_games_played)
    return clamp(pace / league_avg_pace(standings), 0.97, 1.03)


def _game_day(game: Game) -> date:
    return parse_ymd(game.game_date) or game.start_time_utc.date()


def rest_factor(game: Game, log: List[GameLogEntry]) -> float:
    if not log:
        return 1.0
    last = parse_ymd(log[-1].game_date)
    if last is None:
        return 1.0
    gap = (_game_day(game) - last).days
    if gap == 1:
        return BACK_TO_BACK
    if gap >= 2:
        return RESTED
    return 1.0


def goalie_factor(save_pct: float) -> float:
    if not 0 < save_pct < 1:
        return 1.0
    return clamp(LEAGUE_AVG_SAVE_PCT / save_pct, 0.88, 1.12)


def heuristic_factors(
    game: Game, log: List[GameLogEntry], standings: Optional[StandingsMap], goalie_save_pct: float, team: str
) -> Factors:
    rate = baseline_rate(log)
    opp = game.opponent(team)
    home = game.is_home(team)
    return Factors(
        opponent=opponent_factor(standings, opp, home),
        home=HOME_FACTOR if home else AWAY_FACTOR,
        recent=recent_factor(log, rate),
        h2h=h2h_factor(log, opp, rate),
        strength=strength_factor(standings, opp),
        pace=pace_factor(standings, opp),
        rest=rest_factor(game, log),
        goalie=goalie_factor(goalie_save_pct),
    )


def predict_heuristic(
    game: Game, log: List[GameLogEntry], standings: Optional[StandingsMap], goalie_save_pct: float, team: str
) -> int:
    if not log:
        return EMPTY_LOG_PCT
    base_prob = 1.0 - math.exp(-baseline_rate(log))
    factors = heuristic_factors(game, log, standings, goalie_save_pct, team)
    return clamp_pct(round_half_up(100.0 * base_prob * factors.product()))


def breakdown(
    game: Game, log: List[GameLogEntry], standings: Optional[StandingsMap], goalie_save_pct: float, team: str
) -> Breakdown:
    # local import: logistic imports the helpers above
    from .logistic import logistic_predict

    rate = baseline_rate(log)
    heuristic = predict_heuristic(game, log, standings, goalie_save_pct, team)
    lg = logistic_predict(game, log, standings, team)
    pct = blend_models(heuristic, lg) if log else EMPTY_LOG_PCT
    return Breakdown(
        baseline_rate=rate,
        base_prob=1.0 - math.exp(-rate),
        factors=heuristic_factors(game, log, standings, goalie_save_pct, team) if log else Factors(),
        heuristic=heuristic,
        logistic=lg,
        pct=pct,
    )


def predict(
    game: Game, log: List[GameLogEntry], standings: Optional[StandingsMap], goalie_save_pct: float, team: str
) -> int:
    """Scoring probability in percent, always within [15, 75]; 45 with no history."""
    return breakdown(game, log, standings, goalie_save_pct, team).pct
