from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional
from zoneinfo import ZoneInfo

import requests

from ..data.depth_chart import TEAM_NAMES
from ..data.payloads import GoalEvent, Prediction
from ..errors import DiscordError
from ..utils.config import Subject
from ..utils.dates import parse_iso_utc, season_code, today_utc

EMBED_COLOR = 0xC41E3A
EASTERN = ZoneInfo("America/New_York")

log = logging.getLogger(__name__)


def headshot_url(subject: Subject) -> str:
    return f"https://assets.nhle.com/mugs/nhl/{season_code(today_utc())}/{subject.team}/{subject.player_id}.png"


def team_full_name(team: str) -> str:
    place, nick = TEAM_NAMES.get(team, (team, ""))
    return f"{place} {nick}".strip()


def goal_description(subject: Subject, goals: int, goalie_name: Optional[str] = None, opponent_name: Optional[str] = None) -> str:
    out = f"**{subject.name}** has scored!\n\n🥅 **Career goals (regular season): {goals}**"
    if goalie_name:
        if opponent_name:
            out += f"\n\nScored on **{goalie_name}** (vs {opponent_name})"
        else:
            out += f"\n\nScored on **{goalie_name}**"
    return out


def goal_embed(subject: Subject, event: GoalEvent, image_url: Optional[str] = None) -> Dict[str, Any]:
    embed: Dict[str, Any] = {
        "title": "🚨 GOAL! 🚨",
        "description": goal_description(subject, event.goals, event.goalie_name, event.opponent_name),
        "color": EMBED_COLOR,
        "thumbnail": {"url": image_url or headshot_url(subject)},
        "footer": {"text": f"{team_full_name(subject.team)} • NHL"},
    }
    if event.recorded_at:
        embed["timestamp"] = event.recorded_at
    return embed


def format_start_et(start_time_utc: str) -> str:
    """'Mon Jan 2, 7:00 PM ET'; the raw string when it does not parse."""
    dt = parse_iso_utc(start_time_utc)
    if dt is None:
        return start_time_utc
    et = dt.astimezone(EASTERN)
    hour = et.hour % 12 or 12
    return f"{et:%a %b} {et.day}, {hour}:{et:%M %p} ET"


def reminder_message(subject: Subject, pred: Prediction) -> str:
    nick = TEAM_NAMES.get(subject.team, ("", subject.team))[1] or subject.team
    vs = "@" if pred.home_away == "AWAY" else "vs"
    msg = (
        f"🏒 **{nick} game in ~1 hour** · {vs} **{pred.opponent}** ({pred.home_away})\n"
        f"📊 {subject.last_name} scoring chance: **{pred.probability_pct}%**"
    )
    if pred.odds_american:
        msg += f" · Anytime goal: **{pred.odds_american}**"
    if pred.goalie_name:
        msg += f"\n:goal: Probable goalie: **{pred.goalie_name}**"
    if pred.start_time_utc:
        msg += "\n🕐 " + format_start_et(pred.start_time_utc)
    return msg


class DiscordWebhook:
    """Posts to a channel webhook. Without a URL every post is a logged no-op."""

    def __init__(self, url: Optional[str], timeout: float = 10.0):
        self.url = url
        self.timeout = timeout

    def post(self, content: Optional[str] = None, embeds: Optional[List[Dict[str, Any]]] = None) -> None:
        if not self.url:
            log.info("no webhook configured; dropping message: %s", (content or "")[:80] or "<embed>")
            return
        body: Dict[str, Any] = {"allowed_mentions": {"parse": []}}
        if content:
            body["content"] = content
        if embeds:
            body["embeds"] = embeds
        try:
            r = requests.post(self.url, json=body, timeout=self.timeout)
        except requests.RequestException as e:
            raise DiscordError(f"webhook: {e}") from e
        if r.status_code >= 300:
            raise DiscordError(f"webhook: status {r.status_code}", status=r.status_code)
