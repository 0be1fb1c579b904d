from __future__ import annotations

import math
from typing import Optional

from ..utils.odds import implied_pct_from_american

PCT_MIN = 15
PCT_MAX = 75
MODEL_WEIGHT = 0.85  # market gets the rest


def round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def clamp_pct(pct: float) -> int:
    return int(min(max(pct, PCT_MIN), PCT_MAX))


def clamp(x: float, lo: float, hi: float) -> float:
    return min(max(x, lo), hi)


def blend_models(heuristic: int, logistic: int) -> int:
    """Average of the two sub-models; heuristic alone when logistic is the -1 sentinel."""
    if logistic < 0:
        return heuristic
    return clamp_pct(round_half_up((heuristic + logistic) / 2.0))


def blend_with_market(pct: int, odds_american: Optional[str]) -> int:
    implied = implied_pct_from_american(odds_american)
    if implied is None or implied <= 0:
        return pct
    return clamp_pct(round_half_up(MODEL_WEIGHT * pct + (1.0 - MODEL_WEIGHT) * implied))


def apply_calibration(pct: int, scale: float) -> int:
    if scale == 1.0:
        return pct
    return clamp_pct(round_half_up(pct * scale))
