import json
from datetime import datetime, timezone

from nhl_goalbot.core.evaluator import Evaluator, is_hit
from nhl_goalbot.data.nhl_api_web import Game
from nhl_goalbot.data.payloads import Prediction
from nhl_goalbot.utils.deadline import Deadline

GAME = Game(2025020940, "MTL", "WSH", datetime(2026, 1, 6, 0, 0, tzinfo=timezone.utc), "OFF", "2026-01-05")


def _box(goals: int):
    line = {"playerId": 8471214, "goals": goals, "assists": 1, "points": goals + 1, "toi": "18:22", "shifts": 21, "sog": 5}
    return {
        "awayTeam": {"abbrev": "WSH"},
        "homeTeam": {"abbrev": "MTL"},
        "playerByGameStats": {
            "awayTeam": {"forwards": [line], "defense": []},
            "homeTeam": {"forwards": [], "defense": []},
        },
    }


class FakeNHL:
    def __init__(self, game, box):
        self.game = game
        self.box = box

    def last_completed_game(self, team, now, deadline=None):
        return self.game

    def boxscore(self, game_id, deadline=None):
        return self.box


def _snapshot(pct: int, odds=None):
    return Prediction(2025020940, "MTL", "AWAY", pct, "2026-01-06T00:00:00Z", "2026-01-05", odds_american=odds, goalie_name="S. Montembeault")


def _posts(store):
    return [json.loads(f["payload"])["message"] for _, f in store.r.xrange("ovechkin:post_game")]


def test_hit_definition():
    assert is_hit(55, True) and is_hit(40, False)
    assert not is_hit(50, False) and not is_hit(49, True)


def test_publishes_once_and_records_sample(store, subject):
    store.write_prediction(_snapshot(55, odds="+140"))
    ev = Evaluator(FakeNHL(GAME, _box(1)), store, subject)
    res = ev.tick(Deadline(90))
    assert "Hit" in res.summary.message
    assert "Odds had: +140" in res.summary.message
    assert "Ovechkin:** 1G, 1A, 2 PTS" in res.summary.message

    ev.tick(Deadline(90))
    assert len(_posts(store)) == 1
    assert store.last_reported() == 2025020940
    samples = store.calibration_samples()
    assert len(samples) == 1
    assert (samples[0].pred_pct, samples[0].scored, samples[0].hit) == (55, 1, True)


def test_without_snapshot_no_calibration_sample(store, subject):
    res = Evaluator(FakeNHL(GAME, _box(0)), store, subject).tick(Deadline(90))
    assert "No prediction snapshot" in res.summary.message
    assert store.calibration_samples() == []
    assert store.last_reported() == 2025020940


def test_subject_missing_from_boxscore_is_retried_later(store, subject):
    box = _box(0)
    box["playerByGameStats"]["awayTeam"]["forwards"] = []
    res = Evaluator(FakeNHL(GAME, box), store, subject).tick(Deadline(90))
    assert res.summary is None
    assert store.last_reported() == 0
    assert _posts(store) == []
