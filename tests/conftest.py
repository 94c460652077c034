"""
Pytest configuration and shared fixtures.

The app runs against an in-memory sqlite database and a fake Groq client,
so no network or external database is needed.
"""
import asyncio
import json
import sys
from pathlib import Path
from types import SimpleNamespace

import groq
import httpx
import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from tenx_cards.db.session import create_db_engine, init_db  # noqa: E402
from tenx_cards.main import create_app  # noqa: E402
from tenx_cards.models.user import User  # noqa: E402
from tenx_cards.services.proposal_generator import ProposalGenerator  # noqa: E402
from tenx_cards.utils.config import Settings  # noqa: E402

GROQ_REQUEST = httpx.Request("POST", "https://api.groq.com/openai/v1/chat/completions")
VALID_TEXT = "Photosynthesis converts light energy into chemical energy. " * 20


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Tests going through the HTTP app")


# ========================================
# Fake Groq client
# ========================================


def make_completion(content, model="test-model"):
    return SimpleNamespace(
        model=model,
        choices=[SimpleNamespace(message=SimpleNamespace(content=content), finish_reason="stop")],
        usage=SimpleNamespace(prompt_tokens=120, completion_tokens=380, total_tokens=500),
    )


def proposals_content(count):
    return json.dumps({
        "proposals": [
            {"front_text": f"Question {i + 1}?", "back_text": f"Answer {i + 1}."}
            for i in range(count)
        ]
    })


def status_error(cls, status, headers=None):
    response = httpx.Response(status, request=GROQ_REQUEST, headers=headers or {})
    return cls(f"Error code: {status}", response=response, body=None)


HANG = object()


class FakeCompletions:
    """Each call consumes the next queued outcome; falls back to `default`."""

    def __init__(self):
        self.queue = []
        self.default = make_completion(proposals_content(20))
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        outcome = self.queue.pop(0) if self.queue else self.default
        if outcome is HANG:
            await asyncio.sleep(10)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


class FakeGroqClient:
    def __init__(self):
        self.completions = FakeCompletions()
        self.chat = SimpleNamespace(completions=self.completions)

    def respond_with(self, *outcomes):
        self.completions.queue.extend(outcomes)

    @property
    def calls(self):
        return self.completions.calls


class RecordingSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


# ========================================
# Fixtures
# ========================================


@pytest.fixture
def fake_llm():
    return FakeGroqClient()


@pytest.fixture
def fake_sleep():
    return RecordingSleep()


@pytest.fixture
def generator(fake_llm, fake_sleep):
    return ProposalGenerator(client=fake_llm, model="test-model", timeout=5, max_retries=2, retry_delay=1.0, sleep=fake_sleep)


@pytest.fixture
def settings():
    return Settings(
        DATABASE_URL="sqlite://",
        ENV_NAME="local",
        GROQ_API_KEY=None,
        SECRET_KEY="test-secret",
        BCRYPT_ROUNDS=4,
        FEATURE_AUTH=None,
        FEATURE_AI_GENERATION=None,
    )


@pytest.fixture
def app(settings, generator):
    return create_app(settings=settings, generator=generator)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


def register_and_login(client, email="learner@example.com", password="secret-pass-1"):
    response = client.post("/api/auth/register", json={"email": email, "password": password})
    assert response.status_code == 201, response.text
    response = client.post("/api/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return response.json()["session"]["access_token"]


@pytest.fixture
def auth_headers(client):
    token = register_and_login(client)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def other_auth_headers(client):
    token = register_and_login(client, email="someone.else@example.com")
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def db():
    engine = create_db_engine("sqlite://")
    init_db(engine)
    with Session(engine) as session:
        yield session
    engine.dispose()


@pytest.fixture
def user(db):
    record = User(email="ledger@example.com", password_hash="x")
    db.add(record)
    db.commit()
    db.refresh(record)
    return record
