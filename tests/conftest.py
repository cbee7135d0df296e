import os
import sys
from datetime import timedelta
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

os.environ["LIFECYCLE_SWEEP_ENABLED"] = "false"
os.environ.pop("CHECKIN_SIGNING_SECRET", None)

from campus_events.config import get_config
from campus_events.database import Base, get_engine, init_engine
from campus_events.main import create_app
from campus_events.models import utcnow

ORGANIZER = {"id": "organizer-1", "name": "Olivia Organizer"}


def iso(value):
    return value.isoformat() + "Z"


@pytest.fixture(scope="session")
def database_url(tmp_path_factory):
    db_file = tmp_path_factory.mktemp("db") / "test.db"
    return f"sqlite:///{db_file}"


@pytest.fixture(scope="session")
def app(database_url):
    os.environ["DATABASE_URL"] = database_url
    get_config.cache_clear()
    flask_app = create_app({"TESTING": True, "DATABASE_URL": database_url})
    Base.metadata.create_all(bind=get_engine())
    yield flask_app
    Base.metadata.drop_all(bind=get_engine())
    get_engine().dispose()


@pytest.fixture(autouse=True)
def clean_database(app):
    engine = get_engine()
    with engine.begin() as connection:
        for table in reversed(Base.metadata.sorted_tables):
            connection.execute(table.delete())
    yield


@pytest.fixture
def client(app):
    with app.test_client() as client:
        yield client


@pytest.fixture
def headers():
    def make(user_id=ORGANIZER["id"], role="user", name=None):
        values = {"X-User-Id": user_id, "X-User-Role": role}
        if name is not None:
            values["X-User-Name"] = name
        elif user_id == ORGANIZER["id"]:
            values["X-User-Name"] = ORGANIZER["name"]
        return values

    return make


@pytest.fixture
def event_payload():
    def make(**overrides):
        start = utcnow().replace(microsecond=0) + timedelta(days=7)
        payload = {
            "title": "Career Fair",
            "description": "Meet recruiters from local companies.",
            "location": "Main Hall",
            "startDate": iso(start),
            "endDate": iso(start + timedelta(hours=3)),
            "category": "career",
        }
        payload.update(overrides)
        return payload

    return make


@pytest.fixture
def create_event(client, headers, event_payload):
    def make(organizer=ORGANIZER["id"], **overrides):
        response = client.post(
            "/events",
            json=event_payload(**overrides),
            headers=headers(organizer),
        )
        assert response.status_code == 201, response.json
        return response.json["event"]

    return make


@pytest.fixture
def register(client, headers):
    def make(event_id, user_id, name=None):
        return client.post(
            f"/events/{event_id}/register",
            headers=headers(user_id, name=name or user_id.title()),
        )

    return make
