from __future__ import annotations

import logging
import socket
from typing import Dict, List, Optional

import redis

from ..data.payloads import GoalEvent, PostGameSummary, Prediction
from ..data.store import GOALS, PAYLOAD_FIELD, POST_GAME, REMINDERS, GoalStore
from ..errors import DiscordError
from ..notify.discord import DiscordWebhook, goal_embed, reminder_message
from ..utils.config import Subject

GROUP = "announcers"
STREAMS = [GOALS, REMINDERS, POST_GAME]
READ_COUNT = 10
BLOCK_MS = 5000

log = logging.getLogger(__name__)


class Announcer:
    """Relays stream messages to Discord.

    Every message that was read is acknowledged, including ones whose payload
    cannot be parsed or whose post failed; nothing is redelivered.
    """

    def __init__(
        self,
        store: GoalStore,
        subject: Subject,
        webhook: DiscordWebhook,
        image_url: Optional[str] = None,
        consumer: Optional[str] = None,
    ):
        self.store = store
        self.subject = subject
        self.webhook = webhook
        self.image_url = image_url
        self.consumer = consumer or f"announcer-{socket.gethostname()}"

    def setup(self) -> None:
        for s in STREAMS:
            self.store.ensure_group(s, GROUP)

    def render(self, stream: str, raw: str) -> Dict:
        """Webhook body for one payload; raises ValueError/KeyError/TypeError on malformed input."""
        if stream == GOALS:
            return {"embeds": [goal_embed(self.subject, GoalEvent.from_json(raw), self.image_url)]}
        if stream == REMINDERS:
            return {"content": reminder_message(self.subject, Prediction.from_json(raw))}
        if stream == POST_GAME:
            return {"content": PostGameSummary.from_json(raw).message}
        raise ValueError(f"unknown stream {stream}")

    def handle(self, stream: str, fields: Dict[str, str]) -> bool:
        raw = fields.get(PAYLOAD_FIELD)
        if not raw:
            log.warning("message without payload stream=%s", stream)
            return False
        try:
            body = self.render(stream, raw)
        except (ValueError, KeyError, TypeError) as e:
            log.warning("malformed payload dropped stream=%s: %s", stream, e)
            return False
        try:
            self.webhook.post(**body)
        except DiscordError as e:
            log.warning("discord post failed stream=%s: %s", stream, e)
            return False
        log.info("announced stream=%s", stream)
        return True

    def poll_once(self, block_ms: Optional[int] = BLOCK_MS) -> List[str]:
        """Read one batch, post each message, ack all. Returns the acked ids."""
        try:
            messages = self.store.read_group(GROUP, self.consumer, STREAMS, count=READ_COUNT, block_ms=block_ms)
        except redis.RedisError as e:
            log.warning("stream read failed: %s", e)
            return []
        acked: List[str] = []
        for stream_key, msg_id, fields in messages:
            self.handle(self.store.stream_name(stream_key), fields)
            try:
                self.store.ack(stream_key, GROUP, msg_id)
            except redis.RedisError as e:
                log.warning("ack failed id=%s: %s", msg_id, e)
                continue
            acked.append(msg_id)
        return acked
