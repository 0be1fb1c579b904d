from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from typing import Dict, Iterable, List, Optional

import numpy as np

MIN_SAMPLES = 10
MAX_SAMPLES = 100
SCALE_MIN = 0.8
SCALE_MAX = 1.2


@dataclass
class CalibrationSample:
    game_id: int
    pred_pct: int
    scored: int  # 0/1
    hit: bool

    def to_json(self) -> str:
        return json.dumps(asdict(self))

    @classmethod
    def from_json(cls, raw: str) -> Optional["CalibrationSample"]:
        """Parse one stored sample; None when malformed."""
        try:
            d = json.loads(raw)
            return cls(
                game_id=int(d.get("game_id") or 0),
                pred_pct=int(d["pred_pct"]),
                scored=1 if int(d["scored"]) else 0,
                hit=bool(d.get("hit", False)),
            )
        except (ValueError, KeyError, TypeError, AttributeError):
            return None


def parse_samples(raw: Iterable[str]) -> List[CalibrationSample]:
    out = []
    for r in raw:
        s = CalibrationSample.from_json(r)
        if s is not None:
            out.append(s)
    return out


def calibration_scale(samples: List[CalibrationSample]) -> float:
    """Observed scoring rate over mean predicted probability, clamped to [0.8, 1.2].

    Uses the most recent 100 samples (newest first). Fewer than 10 samples, or a
    zero predicted mass, gives exactly 1.0.
    """
    samples = samples[:MAX_SAMPLES]
    n = len(samples)
    if n < MIN_SAMPLES:
        return 1.0
    scored = np.array([s.scored for s in samples], dtype=float)
    pred = np.array([s.pred_pct for s in samples], dtype=float) / 100.0
    if pred.sum() <= 0:
        return 1.0
    scale = (scored.sum() / n) / (pred.sum() / n)
    return float(np.clip(scale, SCALE_MIN, SCALE_MAX))


def _brier(p: np.ndarray, y: np.ndarray) -> float:
    p = np.asarray(p, dtype=float)
    y = np.asarray(y, dtype=float)
    return float(np.mean((p - y) ** 2))


def summarize(samples: List[CalibrationSample]) -> Dict[str, float]:
    """Hit rate, scoring rate, mean prediction and Brier score over the stored samples."""
    if not samples:
        return {"n": 0}
    pred = np.array([s.pred_pct for s in samples], dtype=float) / 100.0
    y = np.array([s.scored for s in samples], dtype=float)
    return {
        "n": len(samples),
        "hit_rate": float(np.mean([1.0 if s.hit else 0.0 for s in samples])),
        "scored_rate": float(y.mean()),
        "mean_pred": float(pred.mean()),
        "brier": _brier(pred, y),
    }
