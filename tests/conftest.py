"""Shared fixtures: env before import, in-memory SQLite, fake clock, recording sink."""
import os

os.environ.setdefault("TOKEN_SECRET", "test-secret-0123456789abcdef")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("CB_STORAGE", "memory")
os.environ.setdefault("TELEGRAM_BOT_TOKEN", "123:test")
os.environ.setdefault("TELEGRAM_BOT_USERNAME", "nightpassbot")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import nightpass.models  # noqa: F401
from nightpass.core.errors import MessageNotFound, SinkError
from nightpass.db.base import Base
from nightpass.services.delivery.base import Sink

T0 = 1_700_000_000_000


class FakeClock:
    def __init__(self, now: int = T0) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class RecordingSink(Sink):
    """Keeps every emit/retract; fail_refs / gone_refs drive error paths."""

    def __init__(self) -> None:
        self.emitted = []
        self.retracted = []
        self.fail_file_refs: set[str] = set()
        self.gone_refs: set[int] = set()
        self._next_ref = 100

    def emit(self, destination, payload):
        if payload.file_ref and payload.file_ref in self.fail_file_refs:
            raise SinkError("send failed")
        self._next_ref += 1
        self.emitted.append((destination, payload, self._next_ref))
        return self._next_ref

    def retract(self, destination, message_ref):
        if message_ref in self.gone_refs:
            raise MessageNotFound("message to delete not found")
        self.retracted.append((destination, message_ref))

    def texts(self) -> list[str]:
        return [p.text for _, p, _ in self.emitted if p.kind == "text"]


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(bind=engine, autocommit=False, autoflush=False)()
    yield session
    session.close()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sink():
    return RecordingSink()
