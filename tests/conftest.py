"""Root conftest for all tests.

Provides an in-memory SQLite database patched into the session module, so
every `get_session()` call in the code under test hits the test database,
plus stub collaborators for PDF export and notification delivery.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import packet_engine.db.session as session_module
from packet_engine.db.models import Base, Client, Packet


@event.listens_for(Engine, "connect")
def _set_sqlite_pragma(dbapi_connection, connection_record):
    """Enable foreign key constraints in SQLite connections."""
    if type(dbapi_connection).__module__.startswith("sqlite3"):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


@pytest.fixture
def db_session(monkeypatch):
    """Isolated in-memory database shared by the test and the code under test.

    StaticPool keeps a single connection so every session (including ones
    opened from worker threads) sees the same in-memory database.
    """
    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    session_local = sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)

    monkeypatch.setattr(session_module, "_engine", engine)
    monkeypatch.setattr(session_module, "_SessionLocal", session_local)

    session = session_local()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture
def make_client(db_session):
    def _make_client(
        classification: str = "FULL_PROGRAM",
        profile: dict | None = None,
        responses: dict | str | None = None,
        full_name: str | None = "Jordan Rivera",
        email: str | None = "jordan@example.com",
        owner_id: str | None = None,
    ) -> Client:
        client = Client(
            owner_id=owner_id or f"owner-{db_session.query(Client).count() + 1}",
            full_name=full_name,
            email=email,
            classification=classification,
            profile=profile if profile is not None else {},
            intake_responses=responses if responses is not None else {},
        )
        db_session.add(client)
        db_session.commit()
        return client

    return _make_client


@pytest.fixture
def make_packet(db_session):
    def _make_packet(client: Client, document_type: str = "NUTRITION", **fields) -> Packet:
        packet = Packet(client_id=client.id, document_type=document_type, **fields)
        db_session.add(packet)
        db_session.commit()
        return packet

    return _make_packet


@pytest.fixture
def reload(db_session):
    """Fetch a fresh copy of a packet after the code under test changed it."""

    def _reload(packet_id: str) -> Packet | None:
        db_session.expire_all()
        return db_session.get(Packet, packet_id)

    return _reload


class FrozenClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock():
    return FrozenClock(datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc))


class RecordingChannel:
    def __init__(self, fail: bool = False):
        self.sent = []
        self.fail = fail

    def send(self, notification) -> None:
        if self.fail:
            raise ConnectionError("notification backend unavailable")
        self.sent.append(notification)

    def of_kind(self, kind: str) -> list:
        return [notification for notification in self.sent if notification.kind == kind]


@pytest.fixture
def channel():
    return RecordingChannel()


@pytest.fixture
def failing_channel():
    return RecordingChannel(fail=True)


class StubPdfExporter:
    def __init__(self, url: str = "https://files.example.com/packet.pdf", error: Exception | None = None):
        self.url = url
        self.error = error
        self.calls = []

    def export(self, packet_id, content, client_name, document_type, options) -> str:
        self.calls.append({"packet_id": packet_id, "client_name": client_name, "document_type": document_type, "options": options})
        if self.error is not None:
            raise self.error
        return self.url


@pytest.fixture
def pdf_exporter():
    return StubPdfExporter()


@pytest.fixture
def failing_pdf_exporter():
    from packet_engine.integrations.pdf_export import PdfExportError

    return StubPdfExporter(error=PdfExportError("PDF service returned 503"))


@pytest.fixture
def sample_profile() -> dict:
    return {
        "weight_lbs": 180,
        "height_inches": 70,
        "age": 34,
        "gender": "male",
        "activity_level": "moderately-active",
        "goal": "lose weight",
        "days_per_week": 4,
        "training_experience": "intermediate",
    }
