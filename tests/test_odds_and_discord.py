from datetime import datetime, timezone

from nhl_goalbot.data.nhl_api_web import Game
from nhl_goalbot.data.odds_api import OddsAPIClient, anytime_price, match_event_id, within_fetch_window
from nhl_goalbot.data.payloads import GoalEvent, Prediction
from nhl_goalbot.notify.discord import DiscordWebhook, format_start_et, goal_embed, reminder_message
from nhl_goalbot.utils.config import Settings, Subject
from nhl_goalbot.utils.odds import format_american, implied_pct_from_american, parse_american

GAME = Game(2025020940, "WSH", "MTL", datetime(2026, 1, 6, 0, 0, tzinfo=timezone.utc), "FUT", "2026-01-05")

EVENTS = [
    {"id": "early", "commence_time": "2026-01-05T20:00:00Z", "home_team": "Washington Capitals", "away_team": "Montreal Canadiens"},
    {"id": "other", "commence_time": "2026-01-06T00:00:00Z", "home_team": "Boston Bruins", "away_team": "Toronto Maple Leafs"},
    {"id": "match", "commence_time": "2026-01-06T00:30:00Z", "home_team": "Washington Capitals", "away_team": "Montreal Canadiens"},
]

EVENT_ODDS = {
    "bookmakers": [
        {
            "key": "bovada",
            "markets": [{"key": "player_goal_scorer_anytime", "outcomes": [{"name": "Yes", "description": "Alex Ovechkin", "price": 120}]}],
        },
        {
            "key": "draftkings",
            "markets": [
                {"key": "player_goal_scorer_first", "outcomes": [{"name": "Yes", "description": "Alex Ovechkin", "price": 900}]},
                {"key": "player_goal_scorer_anytime", "outcomes": [{"name": "Yes", "description": "Alex Ovechkin", "price": 140}]},
            ],
        },
    ]
}


def test_event_matched_by_team_and_start_window():
    assert match_event_id(EVENTS, GAME, "WSH") == "match"
    assert match_event_id(EVENTS[:2], GAME, "WSH") is None


def test_anytime_price_prefers_bookmaker_order():
    assert anytime_price(EVENT_ODDS, "Alex Ovechkin") == 140
    assert anytime_price(EVENT_ODDS, "Sidney Crosby") is None


def test_odds_client_disabled_without_key():
    client = OddsAPIClient(None)
    assert not client.enabled
    assert client.anytime_goal_odds(GAME, "WSH", "Alex Ovechkin") is None


def test_fetch_window():
    assert within_fetch_window(GAME, datetime(2026, 1, 5, 12, 0, tzinfo=timezone.utc))
    assert not within_fetch_window(GAME, datetime(2026, 1, 3, 12, 0, tzinfo=timezone.utc))
    assert not within_fetch_window(GAME, datetime(2026, 1, 6, 0, 5, tzinfo=timezone.utc))


def test_american_helpers():
    assert parse_american("+140") == 140
    assert parse_american(" -150 ") == -150
    assert parse_american("") is None and parse_american("EVEN") is None
    assert format_american(140) == "+140" and format_american(-110) == "-110"
    assert round(implied_pct_from_american("+150"), 1) == 40.0


def test_start_time_in_eastern():
    assert format_start_et("2026-01-06T00:00:00Z") == "Mon Jan 5, 7:00 PM ET"
    assert format_start_et("2026-07-04T23:30:00Z") == "Sat Jul 4, 7:30 PM ET"
    assert format_start_et("tbd") == "tbd"


def test_reminder_message_home_and_away():
    subject = Subject()
    home = Prediction(1, "MTL", "HOME", 38, "2026-01-06T00:00:00Z", "2026-01-05")
    msg = reminder_message(subject, home)
    assert "vs **MTL** (HOME)" in msg
    assert "Ovechkin scoring chance: **38%**" in msg
    assert "Anytime goal" not in msg
    assert "Mon Jan 5, 7:00 PM ET" in msg

    away = Prediction(1, "MTL", "AWAY", 38, "", "2026-01-05", odds_american="+140", goalie_name="S. Montembeault")
    msg = reminder_message(subject, away)
    assert "@ **MTL** (AWAY)" in msg
    assert "Anytime goal: **+140**" in msg
    assert "Probable goalie: **S. Montembeault**" in msg


def test_goal_embed():
    embed = goal_embed(Subject(), GoalEvent(8471214, 900, "2026-01-06T01:02:03Z"), image_url="https://img/x.png")
    assert embed["thumbnail"]["url"] == "https://img/x.png"
    assert embed["timestamp"] == "2026-01-06T01:02:03Z"
    assert "Career goals (regular season): 900" in embed["description"]
    assert "Scored on" not in embed["description"]
    assert embed["footer"]["text"] == "Washington Capitals • NHL"


def test_webhook_without_url_is_noop():
    DiscordWebhook(None).post(content="hello")


def test_settings_from_env():
    s = Settings.from_env(
        {
            "REDIS_URL": "redis://cache:6379/1",
            "SUBJECT_NAME": "Sidney Crosby",
            "SUBJECT_TEAM": "pit",
            "SUBJECT_PLAYER_ID": "8471675",
            "GAME_LOG_SEASONS": "20242025, 20252026",
            "INGESTOR_INTERVAL": "30s",
            "COLLECTOR_INTERVAL": "2h",
        }
    )
    assert s.redis_url == "redis://cache:6379/1"
    assert s.subject.team == "PIT"
    assert s.subject.slug == "crosby"
    assert s.seasons == ["20242025", "20252026"]
    assert s.ingestor_interval == 30.0
    assert s.collector_interval == 7200.0
    assert s.predictor_interval == 600.0
    assert s.odds_api_key is None
