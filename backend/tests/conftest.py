import os

os.environ.setdefault("PYTEST_RUN", "1")

from pathlib import Path
from dotenv import load_dotenv

# Load environment variables for tests before the app reads its settings
load_dotenv(Path(__file__).resolve().parents[1] / ".env.test")

import pytest
from fastapi import WebSocketDisconnect
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool


class FakeConnection:
    """Stand-in for ``ClientConnection`` that records what it was sent."""

    def __init__(self, user_id: int, fail: bool = False) -> None:
        self.user_id = user_id
        self.fail = fail
        self.sent: list[dict] = []

    async def send_envelope(self, env) -> None:
        if self.fail:
            raise WebSocketDisconnect(code=1006)
        self.sent.append(env.to_dict())

    def types(self) -> list[str]:
        return [e["type"] for e in self.sent]

    def of_type(self, event_type: str) -> list[dict]:
        return [e for e in self.sent if e["type"] == event_type]


@pytest.fixture
def make_conn():
    return FakeConnection


@pytest.fixture
def Session(monkeypatch):
    """Fresh in-memory database shared by REST handlers and the websocket path."""
    from printshop import database
    from printshop.models.base import BaseModel

    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    BaseModel.metadata.create_all(engine)
    factory = sessionmaker(bind=engine, expire_on_commit=False)
    monkeypatch.setattr(database, "SessionLocal", factory)
    yield factory
    engine.dispose()


@pytest.fixture(autouse=True)
def fresh_hub(monkeypatch):
    """Give every test its own realtime hub so registrations never leak."""
    from printshop.api import api_chat, api_orders, api_ws
    from printshop.realtime.hub import RealtimeHub

    hub = RealtimeHub(
        save_message=api_ws.save_message,
        authorize=api_ws.authorize_order,
        send_timeout=2.0,
    )
    monkeypatch.setattr(api_ws, "hub", hub)
    monkeypatch.setattr(api_ws, "broadcaster", hub.broadcaster)
    monkeypatch.setattr(api_chat, "broadcaster", hub.broadcaster)
    monkeypatch.setattr(api_orders, "broadcaster", hub.broadcaster)
    return hub
