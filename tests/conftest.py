import os
import sys
from types import SimpleNamespace

import pytest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from interview_bot import create_app  # noqa: E402
from interview_bot.extensions import db  # noqa: E402
from interview_bot.models.user import User  # noqa: E402
from interview_bot.seed import seed_questions  # noqa: E402
from interview_bot.utils.security import issue_tokens  # noqa: E402


@pytest.fixture
def app(tmp_path):
    app = create_app("config.TestingConfig")
    app.config["LOCAL_STORAGE_DIR"] = str(tmp_path / "uploads")
    # requests push their own app context, so nothing is held open between calls
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(app):
    """Create a user and return its id, email, password and bearer headers."""
    counter = {"n": 0}

    def _make(role="candidate", email=None, password="Password123", **fields):
        counter["n"] += 1
        with app.app_context():
            user = User(email=email or f"user{counter['n']}@acme.io", first_name="Test",
                        last_name=f"User{counter['n']}", role=role, **fields)
            user.set_password(password)
            db.session.add(user)
            db.session.commit()
            token = issue_tokens(user)["accessToken"]
            return SimpleNamespace(id=user.id, email=user.email, password=password,
                                   headers={"Authorization": f"Bearer {token}"})

    return _make


@pytest.fixture
def candidate(make_user):
    return make_user()


@pytest.fixture
def admin(make_user):
    return make_user(role="admin", email="admin@acme.io")


@pytest.fixture
def question_bank(app):
    with app.app_context():
        return seed_questions()


@pytest.fixture
def new_interview(client, candidate, question_bank):
    """POST a scheduled interview for the candidate and return its JSON."""
    def _create(**overrides):
        body = {"title": "Practice run", "position": "Backend Engineer", "difficulty": "easy",
                "type": "behavioral", "questionsCount": 3}
        body.update(overrides)
        resp = client.post("/api/interviews", json=body, headers=candidate.headers)
        assert resp.status_code == 201, resp.get_json()
        return resp.get_json()["data"]["interview"]
    return _create
