import fakeredis
import pytest

from nhl_goalbot.data.store import GoalStore
from nhl_goalbot.utils.config import Subject


@pytest.fixture
def subject():
    return Subject(player_id=8471214, name="Alex Ovechkin", team="WSH")


@pytest.fixture
def store(subject):
    return GoalStore(fakeredis.FakeRedis(decode_responses=True), subject.slug)
