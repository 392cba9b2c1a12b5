"""
Pytest configuration and fixtures for the QuizMania API tests.

Provides:
- An in-memory MongoDB (mongomock) per test
- FastAPI test client wired to fake LLM and email collaborators
- Helpers to create users and quizzes directly in the store
"""

import json
from typing import Generator, List

import mongomock
import pytest
from fastapi.testclient import TestClient

from config import Settings
from database import Database, utcnow
from errors import DeliveryError
from main import create_app

SAMPLE_ITEMS = [
    {
        "type": "Multiple Choice",
        "question": "What is the capital of France?",
        "options": ["Berlin", "Paris", "Madrid", "Rome"],
        "answer": "Paris",
    },
    {
        "type": "True or False",
        "question": "The Earth orbits the Sun.",
        "options": ["True", "False"],
        "answer": "True",
    },
]


class FakeWriter:
    """Stands in for the OpenAI-backed QuizWriter."""

    def __init__(self, reply: str = None):
        self.reply = reply if reply is not None else "```json\n" + json.dumps(SAMPLE_ITEMS) + "\n```"
        self.prompts: List[str] = []

    def write(self, prompt: str) -> str:
        self.prompts.append(prompt)
        return self.reply


class FakeNotifier:
    """Records emails instead of sending them."""

    def __init__(self):
        self.sent = []
        self.fail = False

    def send(self, to_email: str, subject: str, html: str) -> str:
        if self.fail:
            raise DeliveryError("Resend is down")
        self.sent.append({"to": to_email, "subject": subject, "html": html})
        return f"msg-{len(self.sent)}"


@pytest.fixture
def settings() -> Settings:
    return Settings(
        database_url="mongodb://unused",
        database_name="quizmania_test",
        frontend_url="http://quiz.test",
        bcrypt_rounds=4,
    )


@pytest.fixture
def database(settings: Settings) -> Database:
    return Database(mongomock.MongoClient(), settings.database_name)


@pytest.fixture
def writer() -> FakeWriter:
    return FakeWriter()


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def client(settings, database, writer, notifier) -> Generator[TestClient, None, None]:
    app = create_app(settings, database=database, writer=writer, notifier=notifier)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def signup(client):
    """Register a local account and return its id"""
    def _signup(email="test@quizmania.com", password="secret123", username="Tester"):
        response = client.post(
            "/signup",
            json={"email": email, "username": username, "password": password},
        )
        assert response.status_code == 200, response.text
        return response.json()["id"]
    return _signup


@pytest.fixture
def make_quiz(database):
    """Insert a quiz document and return its id as a string"""
    def _make_quiz(items=None, user="test@quizmania.com", **extra):
        doc = {
            "user": user,
            "topic": "General",
            "difficulty": "easy",
            "quiz_type": "Mixed",
            "quantity": len(items or SAMPLE_ITEMS),
            "quizzes": [dict(item) for item in (items or SAMPLE_ITEMS)],
            "status": "unsolved",
            "created_at": utcnow(),
        }
        doc.update(extra)
        return str(database.quizzes.insert_one(doc).inserted_id)
    return _make_quiz
