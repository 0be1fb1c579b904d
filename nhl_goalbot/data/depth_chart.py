"""Starting-goalie extraction from a third-party depth-chart page.

Everything here works on markup that was already fetched, so the fragile text
matching can be exercised without HTTP. Output is best-effort: callers must
cross-check the name against an official roster before trusting it.

Two passes:

1. The page embeds matchup JSON (sometimes backslash-escaped). If the game id
   is present, the first two ``lastName`` values after it are the home and
   away starters.
2. Otherwise look at the visible text: find the first spot where both teams
   are mentioned within ``MATCHUP_WINDOW`` characters, then collect the first
   two goalie-looking names in the block that follows. Away goalie is listed
   first.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from bs4 import BeautifulSoup

MATCHUP_WINDOW = 250
BLOCK_LEN = 3000
STATUS_LOOKAHEAD = 400
GAME_ID_LOOKAHEAD = 1500

# abbrev -> (place, nickname)
TEAM_NAMES: Dict[str, Tuple[str, str]] = {
    "ANA": ("Anaheim", "Ducks"),
    "BOS": ("Boston", "Bruins"),
    "BUF": ("Buffalo", "Sabres"),
    "CAR": ("Carolina", "Hurricanes"),
    "CBJ": ("Columbus", "Blue Jackets"),
    "CGY": ("Calgary", "Flames"),
    "CHI": ("Chicago", "Blackhawks"),
    "COL": ("Colorado", "Avalanche"),
    "DAL": ("Dallas", "Stars"),
    "DET": ("Detroit", "Red Wings"),
    "EDM": ("Edmonton", "Oilers"),
    "FLA": ("Florida", "Panthers"),
    "LAK": ("Los Angeles", "Kings"),
    "MIN": ("Minnesota", "Wild"),
    "MTL": ("Montreal", "Canadiens"),
    "NJD": ("New Jersey", "Devils"),
    "NSH": ("Nashville", "Predators"),
    "NYI": ("New York Islanders", "Islanders"),
    "NYR": ("New York Rangers", "Rangers"),
    "OTT": ("Ottawa", "Senators"),
    "PHI": ("Philadelphia", "Flyers"),
    "PIT": ("Pittsburgh", "Penguins"),
    "SEA": ("Seattle", "Kraken"),
    "SJS": ("San Jose", "Sharks"),
    "STL": ("St. Louis", "Blues"),
    "TBL": ("Tampa Bay", "Lightning"),
    "TOR": ("Toronto", "Maple Leafs"),
    "UTA": ("Utah", "Mammoth"),
    "VAN": ("Vancouver", "Canucks"),
    "VGK": ("Vegas", "Golden Knights"),
    "WPG": ("Winnipeg", "Jets"),
    "WSH": ("Washington", "Capitals"),
}

# Abbreviations some pages use instead of the league's
ALT_ABBREVS: Dict[str, List[str]] = {"WSH": ["WAS"], "LAK": ["LA"], "TBL": ["TB"], "SJS": ["SJ"], "NJD": ["NJ"]}

STATUS_WORDS = {"Confirmed", "Projected", "Likely", "Expected", "Unconfirmed", "Unknown"}
SKIP_NAMES = {"Show More", "Line Combos", "Starting Goalies", "Depth Charts", "Game Time"}

_GAME_ID_LASTNAME = re.compile(r'\\?"lastName\\?"\s*:\s*\\?"([^"\\]+)\\?"')
_NUMBERED_NAME = re.compile(r"#\d+\s+([A-Z][a-z]+(?:-[A-Z][a-z]+)?(?:\s+[A-Z][a-zA-Z'\-]+){1,2})")
_TWO_WORD_NAME = re.compile(r"\b([A-Z][a-z]+(?:-[A-Z][a-z]+)?\s+[A-Z][a-z]+(?:-[A-Z][a-z]+)?)\b")


@dataclass
class MatchupHints:
    """What the parser needs to know about the game."""

    team_fragments: List[str]
    opponent_fragments: List[str]
    subject_home: bool
    game_id: int = 0
    # Abbreviations are matched case-sensitively; place/nickname case-insensitively
    team_abbrevs: List[str] = field(default_factory=list)
    opponent_abbrevs: List[str] = field(default_factory=list)

    @classmethod
    def for_game(cls, team: str, opponent: str, subject_home: bool, game_id: int = 0) -> "MatchupHints":
        def names(ab: str) -> List[str]:
            return [n for n in TEAM_NAMES.get(ab, ("", "")) if n]

        return cls(
            team_fragments=names(team),
            opponent_fragments=names(opponent),
            subject_home=subject_home,
            game_id=game_id,
            team_abbrevs=[team, *ALT_ABBREVS.get(team, [])],
            opponent_abbrevs=[opponent, *ALT_ABBREVS.get(opponent, [])],
        )


def _team_words() -> set:
    words = set()
    for place, nick in TEAM_NAMES.values():
        words.add(nick.lower())
        words.add(place.lower())
    return words


_TEAM_WORDS = _team_words()


def _looks_like_team(name: str) -> bool:
    low = name.lower()
    if low in _TEAM_WORDS:
        return True
    return any(low.endswith(" " + w) or low == w for w in _TEAM_WORDS if " " not in w) or any(
        w in low for w in _TEAM_WORDS if " " in w
    )


def _strip_status(name: str) -> str:
    parts = name.split()
    while parts and parts[-1].capitalize() in STATUS_WORDS:
        parts.pop()
    return " ".join(parts)


def opposing_from_game_json(raw: str, game_id: int, subject_home: bool) -> Optional[str]:
    """Opponent's starter last name from embedded JSON keyed by game id (home listed first)."""
    if not game_id:
        return None
    idx = raw.find(str(game_id))
    if idx < 0:
        return None
    block = raw[idx:idx + GAME_ID_LOOKAHEAD]
    matches = _GAME_ID_LASTNAME.findall(block)
    if len(matches) < 2:
        return None
    home_last, away_last = matches[0].strip(), matches[1].strip()
    return away_last if subject_home else home_last


def visible_text(markup: str) -> str:
    soup = BeautifulSoup(markup, "html.parser")
    for tag in soup(["script", "style", "noscript"]):
        tag.decompose()
    return soup.get_text(" ", strip=True)


def _positions(text: str, fragments: List[str], abbrevs: List[str]) -> List[int]:
    low = text.lower()
    out: List[int] = []
    for frag in fragments:
        f = frag.lower()
        start = low.find(f)
        while start >= 0:
            out.append(start)
            start = low.find(f, start + 1)
    for ab in abbrevs:
        for m in re.finditer(rf"\b{re.escape(ab)}\b", text):
            out.append(m.start())
    return sorted(out)


def find_matchup_start(text: str, hints: MatchupHints, window: int = MATCHUP_WINDOW) -> Optional[int]:
    """Offset of the earliest spot where both teams appear within `window` characters."""
    team_pos = _positions(text, hints.team_fragments, hints.team_abbrevs)
    opp_pos = _positions(text, hints.opponent_fragments, hints.opponent_abbrevs)
    if not team_pos or not opp_pos:
        return None
    best: Optional[Tuple[int, int]] = None  # (later position, start)
    for t in team_pos:
        for o in opp_pos:
            if abs(t - o) > window:
                continue
            cand = (max(t, o), min(t, o))
            if best is None or cand < best:
                best = cand
    return best[1] if best else None


def goalie_names_in_block(block: str) -> List[str]:
    """First two goalie-looking names in a matchup block, in page order."""
    names: List[str] = []
    seen = set()
    for m in _NUMBERED_NAME.finditer(block):
        name = _strip_status(m.group(1).strip())
        if len(name) < 4 or " " not in name or name in seen or _looks_like_team(name):
            continue
        after = block[m.start():m.start() + STATUS_LOOKAHEAD].lower()
        if "confirmed" not in after and "projected" not in after:
            continue
        seen.add(name)
        names.append(name)
        if len(names) >= 2:
            return names
    # Fallback: plain two-word names
    for m in _TWO_WORD_NAME.finditer(block):
        name = m.group(1).strip()
        first, last = name.split()[0], name.split()[-1]
        if name in seen or name in SKIP_NAMES or _looks_like_team(name):
            continue
        if first in STATUS_WORDS or last in STATUS_WORDS:
            continue
        seen.add(name)
        names.append(name)
        if len(names) >= 2:
            break
    return names


def parse_opposing_starter(markup: str, hints: MatchupHints) -> Optional[str]:
    """Opponent's starting goalie as printed on the page, or None."""
    if not markup:
        return None
    name = opposing_from_game_json(markup, hints.game_id, hints.subject_home)
    if name:
        return name
    text = visible_text(markup)
    start = find_matchup_start(text, hints)
    if start is None:
        return None
    names = goalie_names_in_block(text[start:start + BLOCK_LEN])
    if len(names) < 2:
        return None
    # Away goalie first, home second; the opponent is whichever side the subject is not
    return names[0] if hints.subject_home else names[1]
