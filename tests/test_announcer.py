from nhl_goalbot.core.announcer import GROUP, Announcer
from nhl_goalbot.data.payloads import GoalEvent, PostGameSummary, Prediction
from nhl_goalbot.errors import DiscordError


class FakeWebhook:
    def __init__(self, fail=False):
        self.posts = []
        self.fail = fail

    def post(self, content=None, embeds=None):
        if self.fail:
            raise DiscordError("webhook: status 429", status=429)
        self.posts.append({"content": content, "embeds": embeds})


def _fill(store):
    store.publish("goals", GoalEvent(8471214, 895, "2026-01-06T01:02:03Z", goalie_name="Sam Montembeault", opponent_name="Canadiens").to_json())
    store.publish("goals", "not json")
    store.publish("reminders", Prediction(2025020940, "MTL", "AWAY", 38, "2026-01-06T00:00:00Z", "2026-01-05", "+140").to_json())
    store.publish("post_game", PostGameSummary("📊 **Post-game evaluation**").to_json())
    store.publish("post_game", '{"nope": 1}')


def _pending(store, stream):
    return store.r.xpending(f"ovechkin:{stream}", GROUP)["pending"]


def test_relays_and_acks_everything(store, subject):
    hook = FakeWebhook()
    ann = Announcer(store, subject, hook, consumer="test")
    ann.setup()
    _fill(store)
    acked = ann.poll_once(block_ms=None)
    assert len(acked) == 5
    assert len(hook.posts) == 3
    embed = next(p["embeds"][0] for p in hook.posts if p["embeds"])
    assert "Career goals (regular season): 895" in embed["description"]
    assert "Scored on **Sam Montembeault** (vs Canadiens)" in embed["description"]
    reminder = next(p["content"] for p in hook.posts if p["content"] and "scoring chance" in p["content"])
    assert "@ **MTL** (AWAY)" in reminder
    assert "**38%**" in reminder
    assert "+140" in reminder
    for stream in ("goals", "reminders", "post_game"):
        assert _pending(store, stream) == 0


def test_failed_post_still_acked(store, subject):
    ann = Announcer(store, subject, FakeWebhook(fail=True), consumer="test")
    ann.setup()
    store.publish("post_game", PostGameSummary("summary").to_json())
    assert len(ann.poll_once(block_ms=None)) == 1
    assert _pending(store, "post_game") == 0
    assert ann.poll_once(block_ms=None) == []


def test_setup_is_idempotent(store, subject):
    ann = Announcer(store, subject, FakeWebhook(), consumer="test")
    ann.setup()
    ann.setup()
    assert store.r.exists("ovechkin:goals", "ovechkin:reminders", "ovechkin:post_game") == 3
