from __future__ import annotations

from typing import Optional


def american_to_decimal(american: float) -> float:
    if american > 0:
        return 1.0 + american / 100.0
    else:
        return 1.0 + 100.0 / abs(american)


def decimal_to_implied_prob(decimal_odds: float) -> float:
    return 1.0 / decimal_odds


def parse_american(s: Optional[str]) -> Optional[int]:
    """'+140' -> 140, '-150' -> -150. None for blanks or junk."""
    if s is None:
        return None
    txt = str(s).strip().replace(" ", "")
    if not txt:
        return None
    try:
        val = int(float(txt))
    except ValueError:
        return None
    if val == 0:
        return None
    return val


def format_american(price: float) -> str:
    price = int(price)
    if price > 0:
        return f"+{price}"
    return str(price)


def implied_pct_from_american(s: Optional[str]) -> Optional[float]:
    """Implied probability (0-100) of an American price string, vig included."""
    val = parse_american(s)
    if val is None:
        return None
    return 100.0 * decimal_to_implied_prob(american_to_decimal(val))
