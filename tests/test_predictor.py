import json
from datetime import date, datetime, timedelta, timezone

from nhl_goalbot.core.predictor import Predictor
from nhl_goalbot.data.goalies import GoalieInfo, GoalieResolver, GoalieStrategy
from nhl_goalbot.data.nhl_api_web import Game, GameLogEntry
from nhl_goalbot.data.odds_api import OddsAPIClient
from nhl_goalbot.errors import DeadlineExceeded
from nhl_goalbot.utils.calibration import CalibrationSample
from nhl_goalbot.utils.deadline import Deadline

NOW = datetime(2026, 1, 5, 23, 0, tzinfo=timezone.utc)


class FakeNHL:
    def __init__(self, game):
        self.game = game

    def next_game(self, team, now, deadline=None):
        return self.game


class FixedGoalie(GoalieStrategy):
    name = "fixed"

    def __init__(self, info):
        self.info = info

    def resolve(self, game, deadline):
        return self.info


def _game(minutes_to_start: int) -> Game:
    start = NOW + timedelta(minutes=minutes_to_start)
    return Game(2025020940, "WSH", "MTL", start, "FUT", "2026-01-05")


def _log(n=30):
    first = date(2025, 10, 1)
    return [
        GameLogEntry(2025020001 + i, (first + timedelta(days=2 * i)).isoformat(), "BOS", "H" if i % 2 else "R", 1 if i % 3 == 0 else 0)
        for i in range(n)
    ]


def _predictor(store, subject, game, goalie=None, sleeper=None):
    resolver = GoalieResolver([FixedGoalie(goalie)] if goalie else [])
    return Predictor(FakeNHL(game), store, subject, goalies=resolver, odds=OddsAPIClient(None), sleeper=sleeper)


def test_reminder_sent_once_inside_window(store, subject):
    store.write_game_log(_log())
    p = _predictor(store, subject, _game(60), goalie=GoalieInfo("S. Montembeault", 0.902, "fixed"))
    first = p.tick(Deadline(120), now=NOW)
    second = p.tick(Deadline(120), now=NOW + timedelta(minutes=2))
    assert first.reminder_sent is True
    assert second.reminder_sent is False
    reminders = store.r.xrange("ovechkin:reminders")
    assert len(reminders) == 1
    payload = json.loads(reminders[0][1]["payload"])
    assert payload["game_id"] == 2025020940
    assert payload["home_away"] == "HOME"
    assert payload["goalie_name"] == "S. Montembeault"
    assert 15 <= payload["probability_pct"] <= 75
    assert store.reminder_sent(2025020940)


def test_no_reminder_outside_window(store, subject):
    store.write_game_log(_log())
    for minutes in (54, 66, 300):
        res = _predictor(store, subject, _game(minutes)).tick(Deadline(120), now=NOW)
        assert res.prediction is not None
        assert res.reminder_sent is False
    assert store.r.xlen("ovechkin:reminders") == 0
    assert store.read_next_prediction().game_id == 2025020940
    assert store.read_snapshot(2025020940) is not None


def test_cached_odds_and_calibration_applied(store, subject):
    store.write_game_log(_log())
    base = _predictor(store, subject, _game(300)).tick(Deadline(120), now=NOW).prediction.probability_pct

    store.cache_odds(2025020940, "+150")
    for i in range(10):
        store.append_calibration(CalibrationSample(game_id=i, pred_pct=50, scored=1 if i < 6 else 0, hit=False))
    pred = _predictor(store, subject, _game(300)).tick(Deadline(120), now=NOW).prediction
    assert pred.odds_american == "+150"
    assert pred.probability_pct >= base
    assert 15 <= pred.probability_pct <= 75


def test_empty_game_log_retries_once_then_skips(store, subject):
    waits = []
    res = _predictor(store, subject, _game(60), sleeper=waits.append).tick(Deadline(120), now=NOW)
    assert res.prediction is None
    assert len(waits) == 1
    assert store.read_next_prediction() is None


def test_no_game_is_a_noop(store, subject):
    res = _predictor(store, subject, None).tick(Deadline(120), now=NOW)
    assert res.game is None and res.prediction is None


class SlowGoalie(GoalieStrategy):
    name = "slow"

    def resolve(self, game, deadline):
        raise DeadlineExceeded("tick deadline passed before landing")


def test_goalie_timeout_still_writes_prediction(store, subject):
    store.write_game_log(_log())
    resolver = GoalieResolver([SlowGoalie()])
    p = Predictor(FakeNHL(_game(60)), store, subject, goalies=resolver, odds=OddsAPIClient(None))
    res = p.tick(Deadline(120), now=NOW)
    assert res.prediction is not None
    assert res.prediction.goalie_name is None
    assert store.read_next_prediction().game_id == 2025020940
    assert res.reminder_sent is True
