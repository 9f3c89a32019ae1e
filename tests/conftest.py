"""
Shared fixtures: the in-memory store, a topic router with its fan-out
engine, and buyer/vendor identities.
"""
import os
import sys
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))
sys.path.insert(0, str(Path(__file__).parent))

os.environ.setdefault("LOG_TO_FILE", "0")
os.environ.setdefault("SCHEDULER_ENABLED", "0")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

from core.auth import TokenAuthenticator
from core.models.user import Identity
from core.realtime import EventFanOut, TopicRouter
from fakes import FakeStore


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def authenticator():
    return TokenAuthenticator(secret="carhub-test-secret-0123456789abcdef", algorithm="HS256", ttl_hours=1)


@pytest.fixture
def router(authenticator):
    return TopicRouter(authenticator)


@pytest.fixture
def fanout(router):
    return EventFanOut(router)


@pytest.fixture
def vendor():
    return Identity(user_id="vendor-1", role="vendor", name="Lone Star Motors", email="sales@lonestar.test")


@pytest.fixture
def other_vendor():
    return Identity(user_id="vendor-2", role="vendor", name="Gulf Coast Autos", email="hi@gulfcoast.test")


@pytest.fixture
def buyer():
    return Identity(user_id="buyer-1", role="buyer", name="Dana Reyes", email="dana@example.test")
