from __future__ import annotations

import logging
import time
from dataclasses import asdict
from pathlib import Path
from typing import Callable, Optional

import redis
import typer
from rich import print

from .core.announcer import Announcer
from .core.evaluator import Evaluator
from .core.ingestor import Ingestor
from .core.predictor import Predictor
from .data.collect import collect_once, default_export_path, fetch_game_log, game_log_frame
from .data.goalies import GoalieResolver
from .data.nhl_api_web import NHLWebClient
from .data.odds_api import OddsAPIClient
from .data.store import GoalStore, connect
from .errors import NHLAPIError
from .models.estimator import breakdown
from .notify.discord import DiscordWebhook
from .utils.config import Settings
from .utils.dates import to_rfc3339, today_utc
from .utils.deadline import Deadline
from .utils.log import setup_logging

COLLECT_TICK_SECONDS = 120.0

app = typer.Typer(help="Goal tracker: collect, predict, ingest, evaluate and announce")
log = logging.getLogger("nhl_goalbot")


def _settings() -> Settings:
    settings = Settings.from_env()
    setup_logging(settings.log_level)
    return settings


def _store(settings: Settings) -> GoalStore:
    store = GoalStore(connect(settings.redis_url), settings.subject.slug)
    try:
        store.ping()
    except redis.RedisError as e:
        log.error("redis ping failed url=%s: %s", settings.redis_url, e)
        raise typer.Exit(code=1)
    return store


def _loop(name: str, tick: Callable[[], object], interval: float, once: bool) -> None:
    log.info("%s started interval=%ss", name, int(interval))
    try:
        while True:
            tick()
            if once:
                return
            time.sleep(interval)
    except KeyboardInterrupt:
        log.info("%s shutting down", name)


@app.command()
def collect(
    once: bool = typer.Option(False, help="Run a single tick and exit"),
    export: bool = typer.Option(False, help="Also write the game log to data/raw as CSV"),
):
    """Refresh the cached game log and standings."""
    settings = _settings()
    store = _store(settings)
    client = NHLWebClient()
    out: Optional[Path] = default_export_path(settings.subject) if export else None

    def tick():
        return collect_once(client, store, settings.subject, settings.seasons, Deadline(COLLECT_TICK_SECONDS), out)

    _loop("collector", tick, settings.collector_interval, once)


@app.command()
def predict(once: bool = typer.Option(False, help="Run a single tick and exit")):
    """Predict the next game and publish the pre-game reminder."""
    settings = _settings()
    store = _store(settings)
    client = NHLWebClient()
    predictor = Predictor(client, store, settings.subject, odds=OddsAPIClient(settings.odds_api_key))
    _loop("predictor", predictor.run_once, settings.predictor_interval, once)


@app.command()
def ingest(once: bool = typer.Option(False, help="Run a single tick and exit")):
    """Watch the live score feed and emit goal events."""
    settings = _settings()
    store = _store(settings)
    ingestor = Ingestor(NHLWebClient(), store, settings.subject)
    try:
        state = ingestor.initial_state(Deadline(30.0))
    except NHLAPIError as e:
        log.error("initial career total fetch failed: %s", e)
        raise typer.Exit(code=1)
    log.info("career goals=%d player_id=%s", state.known_total, settings.subject.player_id)

    def tick():
        nonlocal state
        state = ingestor.poll_once(state)

    _loop("ingestor", tick, settings.ingestor_interval, once)


@app.command()
def evaluate(once: bool = typer.Option(False, help="Run a single tick and exit")):
    """Post one summary per completed game and record calibration samples."""
    settings = _settings()
    store = _store(settings)
    evaluator = Evaluator(NHLWebClient(), store, settings.subject)
    _loop("evaluator", evaluator.run_once, settings.evaluator_interval, once)


@app.command()
def announce(once: bool = typer.Option(False, help="Read a single batch and exit")):
    """Relay goal, reminder and post-game messages to Discord."""
    settings = _settings()
    store = _store(settings)
    announcer = Announcer(
        store, settings.subject, DiscordWebhook(settings.discord_webhook_url), image_url=settings.discord_image_url
    )
    announcer.setup()
    # The blocking read paces the loop
    _loop("announcer", announcer.poll_once, 0.0, once)


@app.command()
def estimate(
    save_pct: Optional[float] = typer.Option(None, help="Override the opposing goalie's save percentage"),
    recent: int = typer.Option(10, help="Game log rows to show"),
):
    """Show the estimator breakdown for the next game, straight from the NHL API (no Redis)."""
    settings = _settings()
    subject = settings.subject
    client = NHLWebClient()
    now = today_utc()
    try:
        game = client.next_game(subject.team, now)
    except NHLAPIError as e:
        print(f"[red]Schedule fetch failed:[/red] {e}")
        raise typer.Exit(code=1)
    if game is None:
        print("No upcoming game.")
        return
    entries, failed = fetch_game_log(client, subject.player_id, settings.seasons)
    if failed:
        print(f"[yellow]Seasons skipped:[/yellow] {', '.join(failed)}")
    try:
        standings = client.standings_now()
    except NHLAPIError as e:
        print(f"[yellow]Standings unavailable:[/yellow] {e}")
        standings = {}
    goalie_name = None
    if save_pct is None:
        goalie = GoalieResolver.default(client, subject.team).opposing_starter(game)
        save_pct = goalie.save_pct if goalie else 0.0
        goalie_name = goalie.name if goalie else None

    b = breakdown(game, entries, standings, save_pct, subject.team)
    print(f"[bold]{subject.name}[/bold] {game.home_away(subject.team)} vs {game.opponent(subject.team)} "
          f"({to_rfc3339(game.start_time_utc)}) game_id={game.game_id}")
    print(f"Goalie: {goalie_name or 'unknown'} sv={save_pct:.3f}")
    print(f"Baseline rate {b.baseline_rate:.3f} gpg -> base prob {b.base_prob:.3f}")
    print({k: round(v, 3) for k, v in asdict(b.factors).items()})
    logistic = "n/a" if b.logistic < 0 else f"{b.logistic}%"
    print(f"Heuristic {b.heuristic}% | Logistic {logistic} | [bold green]Blend {b.pct}%[/bold green]")
    if entries:
        print(game_log_frame(entries).tail(recent).to_string(index=False))


def main() -> None:
    app()


if __name__ == "__main__":
    main()
