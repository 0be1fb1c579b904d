from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

import pandas as pd
import redis

from ..errors import DeadlineExceeded, NHLAPIError
from ..utils.config import Subject
from ..utils.deadline import Deadline, unbounded
from ..utils.io import RAW_DIR, save_df
from .nhl_api_web import GameLogEntry, NHLWebClient, StandingsTeam
from .store import GoalStore

GAME_LOG_COLUMNS = ["gameId", "gameDate", "opponentAbbrev", "homeRoadFlag", "goals"]

log = logging.getLogger(__name__)


@dataclass
class CollectResult:
    entries: List[GameLogEntry] = field(default_factory=list)
    standings: Dict[str, StandingsTeam] = field(default_factory=dict)
    failed_seasons: List[str] = field(default_factory=list)


def fetch_game_log(
    client: NHLWebClient, player_id: int, seasons: List[str], deadline: Optional[Deadline] = None
) -> tuple[List[GameLogEntry], List[str]]:
    """Concatenate regular-season logs, oldest season first. Failed seasons are skipped."""
    deadline = deadline or unbounded()
    entries: List[GameLogEntry] = []
    failed: List[str] = []
    for season in seasons:
        try:
            deadline.check(f"game log {season}")
            entries.extend(client.game_log(player_id, season, deadline))
        except (NHLAPIError, DeadlineExceeded) as e:
            log.warning("game log fetch failed season=%s: %s", season, e)
            failed.append(season)
    return entries, failed


def game_log_frame(entries: List[GameLogEntry]) -> pd.DataFrame:
    if not entries:
        return pd.DataFrame(columns=GAME_LOG_COLUMNS)
    return pd.DataFrame([e.to_json() for e in entries], columns=GAME_LOG_COLUMNS)


def collect_once(
    client: NHLWebClient,
    store: GoalStore,
    subject: Subject,
    seasons: List[str],
    deadline: Optional[Deadline] = None,
    export: Optional[Path] = None,
) -> CollectResult:
    """One collector tick: game log and standings into the cache.

    An all-empty game log is never written so a bad fetch cannot wipe a good cache.
    """
    deadline = deadline or unbounded()
    res = CollectResult()
    res.entries, res.failed_seasons = fetch_game_log(client, subject.player_id, seasons, deadline)
    if res.entries:
        try:
            store.write_game_log(res.entries)
        except redis.RedisError as e:
            log.warning("game log cache write failed: %s", e)
        else:
            log.info("game log updated entries=%d seasons=%d", len(res.entries), len(seasons) - len(res.failed_seasons))
        if export is not None:
            save_df(game_log_frame(res.entries), export)
            log.info("game log exported path=%s", export)
    else:
        log.warning("game log empty; cache left untouched")

    try:
        deadline.check("standings")
        res.standings = client.standings_now(deadline)
    except (NHLAPIError, DeadlineExceeded) as e:
        log.warning("standings fetch failed: %s", e)
        return res
    if not res.standings:
        return res
    try:
        store.write_standings(res.standings)
    except redis.RedisError as e:
        log.warning("standings cache write failed: %s", e)
        return res
    log.info("standings updated teams=%d", len(res.standings))
    return res


def default_export_path(subject: Subject) -> Path:
    return RAW_DIR / f"game_log_{subject.slug}.csv"
