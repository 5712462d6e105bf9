import os, tempfile, uuid
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

import config
from main import app
from db import Base, get_db
from models import UserRole

@pytest.fixture(scope="session")
def tmp_db_path():
    fd, path = tempfile.mkstemp(suffix=".db")
    os.close(fd)
    return path

@pytest.fixture(scope="session")
def test_engine(tmp_db_path):
    url = f"sqlite:///{tmp_db_path}"
    engine = create_engine(url, connect_args={"check_same_thread": False})

    # SQLite force foreign key constraints
    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(bind=engine)
    return engine

@pytest.fixture(scope="session")
def TestingSessionLocal(test_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=test_engine)

@pytest.fixture(scope="session", autouse=True)
def override_di(TestingSessionLocal):
    def _get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()
    app.dependency_overrides[get_db] = _get_db
    # cheap hashes keep the suite fast
    config.BCRYPT_ROUNDS = 4

@pytest.fixture
def client():
    return TestClient(app)

@pytest.fixture
def make_user(client, TestingSessionLocal):
    """Sign up a fresh account, optionally granting extra roles directly in the DB.

    Returns a dict with id, email, password and ready-to-use auth headers.
    """
    def _make(*roles, display_name="Tester"):
        email = f"user-{uuid.uuid4().hex[:10]}@example.com"
        r = client.post("/auth/signup", json={"email": email, "password": "secret123", "display_name": display_name})
        assert r.status_code == 200, r.text
        body = r.json()
        if roles:
            db = TestingSessionLocal()
            try:
                for role in roles:
                    db.add(UserRole(user_id=body["user"]["id"], role=role))
                db.commit()
            finally:
                db.close()
        return {
            "id": body["user"]["id"],
            "email": email,
            "password": "secret123",
            "headers": {"Authorization": f"Bearer {body['access_token']}"},
        }
    return _make

def survey_payload(title="Customer Satisfaction", status="published", **extra):
    data = {
        "title": title,
        "description": "How did we do?",
        "status": status,
        "questions": [
            {"type": "single", "question_text": "Would you come back?", "required": True,
             "options_list": [{"label": "Yes", "value": "yes"}, {"label": "No", "value": "no"}]},
            {"type": "multiple", "question_text": "What did you like?", "required": False,
             "options_list": [{"label": "Food", "value": "food"}, {"label": "Service", "value": "service"},
                              {"label": "Price", "value": "price"}]},
            {"type": "likert", "question_text": "Rate the staff", "required": True},
            {"type": "text", "question_text": "Anything else?", "required": False},
        ],
    }
    data.update(extra)
    return data

@pytest.fixture
def creator(make_user):
    return make_user("creator")

@pytest.fixture
def published_survey(client, creator):
    """A published survey with one question of each type, plus its question ids by type."""
    r = client.post("/surveys", json=survey_payload(), headers=creator["headers"])
    assert r.status_code == 200, r.text
    s = r.json()
    form = client.get(f"/surveys/{s['id']}/edit", headers=creator["headers"]).json()
    qids = {q["type"]: q["id"] for q in form["questions"]}
    return s, qids
