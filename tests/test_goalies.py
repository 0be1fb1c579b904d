from datetime import datetime, timezone

from nhl_goalbot.data.goalies import (
    BoxscoreStrategy,
    DepthChartStrategy,
    GoalieInfo,
    GoalieResolver,
    GoalieStrategy,
    match_roster_goalie,
)
from nhl_goalbot.data.nhl_api_web import Game
from nhl_goalbot.errors import DeadlineExceeded, NHLAPIError, UpstreamError

GAME = Game(2025020940, "WSH", "MTL", datetime(2026, 1, 6, 0, 0, tzinfo=timezone.utc), "FUT", "2026-01-05")

ROSTER = {
    "goalies": [
        {"id": 8478470, "firstName": {"default": "Sam"}, "lastName": {"default": "Montembeault"}},
        {"id": 8482487, "firstName": {"default": "Jakub"}, "lastName": {"default": "Dobes"}},
    ]
}

PAGE = (
    "<div>Montreal Canadiens at Washington Capitals</div>"
    "<div>#35 Sam Montembeault CONFIRMED</div>"
    "<div>#79 Charlie Lindgren PROJECTED</div>"
)

BOX = {
    "homeTeam": {"abbrev": "WSH"},
    "awayTeam": {"abbrev": "MTL"},
    "playerByGameStats": {"awayTeam": {"goalies": [{"playerId": 8482487, "name": {"default": "J. Dobes"}, "starter": True}]}},
}


class FakeNHL:
    def __init__(self, save_pct=0.905, box=None):
        self.save_pct_value = save_pct
        self.box = box
        self.roster_calls = []

    def roster(self, team, deadline=None):
        self.roster_calls.append(team)
        return ROSTER

    def save_pct(self, player_id, deadline=None):
        if self.save_pct_value is None:
            raise NHLAPIError("landing", status=500)
        return self.save_pct_value

    def boxscore(self, game_id, deadline=None):
        return self.box


def _depth(client, page=PAGE, fail=False):
    strat = DepthChartStrategy(client, "WSH")

    def fetch_page(deadline):
        if fail:
            raise UpstreamError("depth chart: status 503", status=503)
        return page

    strat.fetch_page = fetch_page
    return strat


def test_roster_match_full_initial_or_last_name():
    assert match_roster_goalie(ROSTER, "Sam Montembeault") == (8478470, "S. Montembeault")
    assert match_roster_goalie(ROSTER, "S Montembeault") == (8478470, "S. Montembeault")
    assert match_roster_goalie(ROSTER, "dobes") == (8482487, "J. Dobes")
    assert match_roster_goalie(ROSTER, "Carey Price") is None
    assert match_roster_goalie(ROSTER, "Tom Dobes") is None
    assert match_roster_goalie(ROSTER, "") is None


def test_depth_chart_name_normalized_against_roster():
    client = FakeNHL()
    info = _depth(client).resolve(GAME, deadline=None)
    assert info == GoalieInfo("S. Montembeault", 0.905, "depth_chart")
    assert client.roster_calls == ["MTL"]


def test_missing_save_pct_is_zero():
    info = _depth(FakeNHL(save_pct=None)).resolve(GAME, deadline=None)
    assert info.name == "S. Montembeault"
    assert info.save_pct == 0.0


def test_resolver_falls_back_when_name_not_on_roster():
    client = FakeNHL(box=BOX)
    page = PAGE.replace("Sam Montembeault", "Carey Price")
    info = GoalieResolver([_depth(client, page), BoxscoreStrategy(client, "WSH")]).opposing_starter(GAME)
    assert info == GoalieInfo("J. Dobes", 0.905, "boxscore")


def test_resolver_falls_back_on_upstream_failure():
    client = FakeNHL(box=BOX)
    info = GoalieResolver([_depth(client, fail=True), BoxscoreStrategy(client, "WSH")]).opposing_starter(GAME)
    assert info.source == "boxscore"


def test_resolver_unknown_when_nothing_found():
    client = FakeNHL(box=None)
    assert GoalieResolver([_depth(client, page=""), BoxscoreStrategy(client, "WSH")]).opposing_starter(GAME) is None


class OutOfTime(GoalieStrategy):
    name = "slow"

    def resolve(self, game, deadline):
        raise DeadlineExceeded("tick deadline passed before roster")


def test_resolver_stops_when_tick_runs_out():
    client = FakeNHL(box=BOX)
    assert GoalieResolver([OutOfTime(), BoxscoreStrategy(client, "WSH")]).opposing_starter(GAME) is None
