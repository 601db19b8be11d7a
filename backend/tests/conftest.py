"""Shared test fixtures for backend tests."""

import json
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine

from app.core.auth import User
from app.services.chat.stream_data import StreamData
from app.services.store import TranscriptStore
from app.services.tools.base import ToolContext
from tests.fakes import ScriptedProvider

# In-memory SQLite with StaticPool so all connections (including threads) share one DB
test_engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

USER_ID = "user-1"
AUTH = {"X-User-Id": USER_ID}


def parse_frames(body: str) -> list[tuple[str, object]]:
    """Split a data-stream body into (code, decoded payload) pairs."""
    frames = []
    for line in body.splitlines():
        if not line:
            continue
        code, _, payload = line.partition(":")
        frames.append((code, json.loads(payload)))
    return frames


@pytest.fixture(autouse=True)
def setup_test_db():
    """Create all tables before each test, drop after."""
    import app.models  # noqa: F401 - register models
    SQLModel.metadata.create_all(test_engine)
    yield
    SQLModel.metadata.drop_all(test_engine)


@pytest.fixture
def store():
    return TranscriptStore(test_engine)


@pytest.fixture
def provider():
    return ScriptedProvider()


@pytest.fixture
def tool_context(provider, store):
    return ToolContext(user=User(id=USER_ID), provider=provider, stream_data=StreamData(), store=store)


@pytest.fixture
def client(provider):
    """FastAPI TestClient with the database and LLM provider swapped out."""
    with (
        patch("app.core.database.engine", test_engine),
        patch("app.api.chat.engine", test_engine),
        patch("app.api.conversations.engine", test_engine),
        patch("app.api.documents.engine", test_engine),
        patch("app.api.chat.get_llm_provider", lambda api_identifier: provider),
    ):
        from app.main import app

        with TestClient(app) as c:
            yield c
