import fakeredis

from nhl_goalbot.data.collect import collect_once, fetch_game_log
from nhl_goalbot.data.nhl_api_web import GameLogEntry, StandingsTeam
from nhl_goalbot.data.store import GoalStore
from nhl_goalbot.errors import NHLAPIError
from nhl_goalbot.utils.io import load_df


class FakeNHL:
    def __init__(self, logs, standings=None, standings_error=False):
        self.logs = logs
        self.standings = standings or {}
        self.standings_error = standings_error

    def game_log(self, player_id, season, deadline=None):
        entries = self.logs.get(season)
        if entries is None:
            raise NHLAPIError(f"game log {season}", status=500)
        return entries

    def standings_now(self, deadline=None):
        if self.standings_error:
            raise NHLAPIError("standings", status=502)
        return self.standings


LOGS = {
    "20242025": [GameLogEntry(2024020010, "2024-10-12", "NJD", "H", 1)],
    "20252026": [GameLogEntry(2025020005, "2025-10-08", "BOS", "R", 0), GameLogEntry(2025020020, "2025-10-10", "NYR", "H", 2)],
}


def test_failed_season_skipped():
    entries, failed = fetch_game_log(FakeNHL(LOGS), 8471214, ["20232024", "20242025", "20252026"])
    assert failed == ["20232024"]
    assert [e.game_id for e in entries] == [2024020010, 2025020005, 2025020020]


def test_collect_writes_cache_and_export(store, subject, tmp_path):
    client = FakeNHL(LOGS, standings={"MTL": StandingsTeam("MTL", games_played=40, goals_against=120)})
    out = tmp_path / "log.csv"
    res = collect_once(client, store, subject, ["20242025", "20252026"], export=out)
    assert len(res.entries) == 3
    assert len(store.read_game_log()) == 3
    assert store.read_standings()["MTL"].games_played == 40
    df = load_df(out)
    assert list(df.columns) == ["gameId", "gameDate", "opponentAbbrev", "homeRoadFlag", "goals"]
    assert df["goals"].sum() == 3


def test_empty_fetch_keeps_previous_cache(store, subject):
    store.write_game_log(LOGS["20252026"])
    res = collect_once(FakeNHL({}, standings_error=True), store, subject, ["20252026"])
    assert res.entries == [] and res.failed_seasons == ["20252026"]
    assert len(store.read_game_log()) == 2
    assert store.read_standings() == {}


def test_redis_outage_does_not_end_the_tick(subject):
    server = fakeredis.FakeServer()
    store = GoalStore(fakeredis.FakeRedis(server=server, decode_responses=True), subject.slug)
    server.connected = False
    client = FakeNHL(LOGS, standings={"MTL": StandingsTeam("MTL", games_played=40)})
    res = collect_once(client, store, subject, ["20252026"])
    assert len(res.entries) == 2
    assert "MTL" in res.standings

    server.connected = True
    assert store.read_game_log() == []
