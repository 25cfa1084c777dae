"""Shared fixtures: in-memory token store, default settings, loguru capture."""
import pytest
from loguru import logger

from debo_api.storage.config import Settings
from debo_api.storage.tokens import MemoryTokenStore

API = "https://debo-ethiopia-api.onrender.com/api"


@pytest.fixture
def settings():
    return Settings()


@pytest.fixture
def store():
    return MemoryTokenStore()


@pytest.fixture
def redirects():
    """Collects every login redirect fired by a client."""
    return []


@pytest.fixture
def log_messages():
    messages = []
    handler_id = logger.add(lambda msg: messages.append(msg.record["message"]), level="DEBUG")
    yield messages
    logger.remove(handler_id)
