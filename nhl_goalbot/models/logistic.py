from __future__ import annotations

from typing import List, Optional, Tuple

import numpy as np

from ..data.nhl_api_web import Game, GameLogEntry
from .blend import clamp_pct, round_half_up
from .estimator import (
    StandingsMap,
    baseline_rate,
    effective_opp_ga_per_game,
    league_avg_ga,
    recent_ratio,
)

MIN_GAMES = 50
MIN_SAMPLES = 20
FIRST_SAMPLE = 6  # each sample needs a few prior games for its features
ITERATIONS = 400
LEARNING_RATE = 0.15
UNAVAILABLE = -1


def sigmoid(z: np.ndarray) -> np.ndarray:
    z = np.asarray(z, dtype=float)
    out = 1.0 / (1.0 + np.exp(-np.clip(z, -20.0, 20.0)))
    out = np.where(z > 20.0, 1.0, out)
    return np.where(z < -20.0, 0.0, out)


def _features(
    prior: List[GameLogEntry], opponent: str, home: bool, standings: Optional[StandingsMap], league_ga: float
) -> List[float]:
    t = (standings or {}).get(opponent)
    opp_ga = league_ga
    if t is not None and t.games_played > 0:
        opp_ga = effective_opp_ga_per_game(t, home)
    rate = baseline_rate(prior)
    return [1.0, 1.0 if home else 0.0, opp_ga / league_ga, rate, recent_ratio(prior, rate)]


def training_set(log: List[GameLogEntry], standings: Optional[StandingsMap]) -> Tuple[np.ndarray, np.ndarray]:
    """Features for each game from the games before it only; label is 'scored'."""
    league_ga = league_avg_ga(standings)
    rows, labels = [], []
    for i in range(FIRST_SAMPLE, len(log)):
        e = log[i]
        rows.append(_features(log[:i], e.opponent_abbrev, e.is_home, standings, league_ga))
        labels.append(1.0 if e.goals > 0 else 0.0)
    return np.array(rows, dtype=float).reshape(-1, 5), np.array(labels, dtype=float)


def fit(X: np.ndarray, y: np.ndarray, iterations: int = ITERATIONS, lr: float = LEARNING_RATE) -> np.ndarray:
    """Full-batch gradient descent on mean log-loss from zero weights; no regularization."""
    w = np.zeros(X.shape[1])
    n = float(len(y))
    for _ in range(iterations):
        p = sigmoid(X @ w)
        w -= lr * (X.T @ (p - y)) / n
    return w


def logistic_predict(game: Game, log: List[GameLogEntry], standings: Optional[StandingsMap], team: str) -> int:
    """Percent in [15, 75], or -1 when the log is too short to train on."""
    if len(log) < MIN_GAMES:
        return UNAVAILABLE
    X, y = training_set(log, standings)
    if len(y) < MIN_SAMPLES:
        return UNAVAILABLE
    w = fit(X, y)
    x = np.array(_features(log, game.opponent(team), game.is_home(team), standings, league_avg_ga(standings)))
    p = float(sigmoid(x @ w))
    return clamp_pct(round_half_up(100.0 * p))
