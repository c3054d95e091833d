from datetime import datetime, timedelta, timezone
import httpx
import pytest
from fastapi.testclient import TestClient
from sqlmodel import SQLModel, Session
from parking_admin.main import app
from parking_admin.database import build_engine, get_db, init_db
from parking_admin.dependencies import get_clock, get_notifier, get_plate_detector, get_session_registry
from parking_admin.utils.plate_detection import PlateDetectionClient
from parking_admin.utils.workflow import DetectionSessionRegistry


class FrozenClock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


class MemoryNotifier:
    def __init__(self):
        self.sent = []
        self.live = {}

    def notify(self, session_id, payload, ttl_seconds):
        self.sent.append((session_id, payload, ttl_seconds))
        self.live[session_id] = payload

    def latest(self, session_id):
        return self.live.get(session_id)


@pytest.fixture
def clock():
    return FrozenClock(datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def notifier():
    return MemoryNotifier()


@pytest.fixture
def engine():
    engine = build_engine("sqlite://")
    init_db(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture
def db(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def detector_responses():
    # Each test appends (status_code, json) tuples; the mock API replays them in order
    return []


@pytest.fixture
def client(engine, clock, notifier, detector_responses):
    def override_get_db():
        with Session(engine) as session:
            yield session

    def handler(request: httpx.Request):
        if not detector_responses:
            return httpx.Response(503, json={"error": "detector offline"})
        status_code, payload = detector_responses.pop(0)
        return httpx.Response(status_code, json=payload)

    registry = DetectionSessionRegistry()
    detector = PlateDetectionClient(url="http://detector.test/detect_plate", transport=httpx.MockTransport(handler))

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_session_registry] = lambda: registry
    app.dependency_overrides[get_plate_detector] = lambda: detector

    yield TestClient(app)

    app.dependency_overrides.clear()
