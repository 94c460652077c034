import json
import threading
import uuid

import groq
import pytest
from fastapi.testclient import TestClient

from tenx_cards.main import create_app
from tenx_cards.routers import generation_router
from tenx_cards.utils.config import Settings

from conftest import GROQ_REQUEST, VALID_TEXT, make_completion, proposals_content, register_and_login, status_error

URL = "/api/ai-generation/sessions"

pytestmark = pytest.mark.integration


def test_create_session_returns_session_and_proposals(client, auth_headers, fake_llm):
    request_id = str(uuid.uuid4())

    response = client.post(URL, json={"input_text": VALID_TEXT, "client_request_id": request_id}, headers=auth_headers)

    assert response.status_code == 201, response.text
    body = response.json()
    assert body["session"]["client_request_id"] == request_id
    assert body["session"]["model_identifier"] == "test-model"
    assert len(body["proposals"]) == 20
    assert len({p["temporary_id"] for p in body["proposals"]}) == 20
    assert len(fake_llm.calls) == 1


def test_requires_authentication(client):
    response = client.post(URL, json={"input_text": VALID_TEXT})

    assert response.status_code == 401
    assert response.json()["error"]["code"] == "UNAUTHORIZED"


@pytest.mark.parametrize(
    "length,status",
    [(999, 400), (1000, 201), (32768, 201), (32769, 400)],
)
def test_input_length_bounds(client, auth_headers, length, status):
    response = client.post(URL, json={"input_text": "a" * length}, headers=auth_headers)

    assert response.status_code == status, response.text
    if status == 400:
        error = response.json()["error"]
        assert error["code"] == "INVALID_INPUT"
        assert "input_text" in error["details"]


def test_length_is_measured_after_trimming(client, auth_headers, fake_llm):
    padded = "   " + "a" * 999 + "\n\n"

    response = client.post(URL, json={"input_text": padded}, headers=auth_headers)

    assert response.status_code == 400
    assert fake_llm.calls == []


def test_malformed_json_body(client, auth_headers):
    response = client.post(
        URL,
        content="{not json",
        headers={**auth_headers, "Content-Type": "application/json"},
    )

    assert response.status_code == 422
    assert response.json()["error"]["code"] == "INVALID_JSON"


def test_repeated_client_request_id_is_conflict(client, auth_headers, fake_llm):
    request_id = str(uuid.uuid4())
    payload = {"input_text": VALID_TEXT, "client_request_id": request_id}

    first = client.post(URL, json=payload, headers=auth_headers)
    second = client.post(URL, json=payload, headers=auth_headers)

    assert first.status_code == 201
    assert second.status_code == 409
    assert second.json()["error"]["code"] == "DUPLICATE_REQUEST_ID"
    # A repetição não chega ao provedor
    assert len(fake_llm.calls) == 1


def test_same_request_id_is_allowed_for_different_users(client, auth_headers, other_auth_headers):
    payload = {"input_text": VALID_TEXT, "client_request_id": str(uuid.uuid4())}

    assert client.post(URL, json=payload, headers=auth_headers).status_code == 201
    assert client.post(URL, json=payload, headers=other_auth_headers).status_code == 201


def test_empty_proposal_list_closes_session_immediately(client, auth_headers, fake_llm):
    fake_llm.respond_with(make_completion(json.dumps({"proposals": []})))

    response = client.post(URL, json={"input_text": VALID_TEXT}, headers=auth_headers)

    assert response.status_code == 201
    body = response.json()
    assert body["proposals"] == []

    # Já fechada: um batch save posterior é conflito
    save = client.post(
        "/api/flashcards/batch",
        json={
            "ai_generation_audit_id": body["session"]["id"],
            "cards": [{"front_text": "Q", "back_text": "A", "origin_status": "AI_ORIGINAL"}],
            "rejected_count": 0,
        },
        headers=auth_headers,
    )
    assert save.status_code == 409
    assert save.json()["error"]["code"] == "SESSION_ALREADY_COMPLETED"


@pytest.mark.parametrize(
    "outcome,status,code",
    [
        (status_error(groq.BadRequestError, 400), 502, "UPSTREAM_API_ERROR"),
        (groq.APITimeoutError(request=GROQ_REQUEST), 504, "TIMEOUT_ERROR"),
        (make_completion("not json at all"), 502, "RESPONSE_VALIDATION_ERROR"),
    ],
)
def test_generation_failures_map_to_http_errors(client, auth_headers, fake_llm, outcome, status, code):
    fake_llm.respond_with(outcome)

    response = client.post(URL, json={"input_text": VALID_TEXT}, headers=auth_headers)

    assert response.status_code == status
    assert response.json()["error"]["code"] == code


def test_persistent_network_failure_is_service_unavailable(client, auth_headers, fake_llm):
    fake_llm.respond_with(*[groq.APIConnectionError(request=GROQ_REQUEST) for _ in range(3)])

    response = client.post(URL, json={"input_text": VALID_TEXT}, headers=auth_headers)

    assert response.status_code == 503
    assert response.json()["error"]["code"] == "NETWORK_ERROR"


def test_rate_limit_exposes_retry_after(client, auth_headers, fake_llm):
    fake_llm.respond_with(*[status_error(groq.RateLimitError, 429, {"retry-after": "12"}) for _ in range(3)])

    response = client.post(URL, json={"input_text": VALID_TEXT}, headers=auth_headers)

    assert response.status_code == 429
    error = response.json()["error"]
    assert error["code"] == "RATE_LIMIT_ERROR"
    assert error["details"] == {"retry_after": "12"}


def test_failed_generation_opens_no_session(client, auth_headers, fake_llm):
    request_id = str(uuid.uuid4())
    fake_llm.respond_with(status_error(groq.BadRequestError, 400))

    failed = client.post(URL, json={"input_text": VALID_TEXT, "client_request_id": request_id}, headers=auth_headers)
    retried = client.post(URL, json={"input_text": VALID_TEXT, "client_request_id": request_id}, headers=auth_headers)

    assert failed.status_code == 502
    # Sem sessão gravada, a mesma chave pode ser reutilizada
    assert retried.status_code == 201


def test_successful_generation_is_logged_in_usage(client, auth_headers):
    client.post(URL, json={"input_text": VALID_TEXT}, headers=auth_headers)

    usage = client.get("/api/usage", headers=auth_headers).json()

    assert usage["summary"]["total_requests"] == 1
    assert usage["summary"]["total_tokens"] == 500
    assert usage["by_model"][0]["model"] == "test-model"


def test_feature_disabled_is_forbidden(generator):
    settings = Settings(
        DATABASE_URL="sqlite://",
        ENV_NAME="production",
        SECRET_KEY="test-secret",
        BCRYPT_ROUNDS=4,
    )
    with TestClient(create_app(settings=settings, generator=generator)) as client:
        token = register_and_login(client)
        response = client.post(URL, json={"input_text": VALID_TEXT}, headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 403
    assert response.json()["error"]["code"] == "FEATURE_DISABLED"


def test_default_generator_without_api_key_is_configuration_error(settings):
    with TestClient(create_app(settings=settings)) as client:
        token = register_and_login(client)
        response = client.post(URL, json={"input_text": VALID_TEXT}, headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 500
    assert response.json()["error"]["code"] == "CONFIGURATION_ERROR"


def test_model_override_is_recorded_on_session(client, auth_headers, fake_llm):
    fake_llm.respond_with(make_completion(proposals_content(15)))

    response = client.post(
        URL,
        json={"input_text": VALID_TEXT, "model_identifier": "llama-3.1-8b-instant"},
        headers=auth_headers,
    )

    assert response.json()["session"]["model_identifier"] == "llama-3.1-8b-instant"
    assert fake_llm.calls[0]["model"] == "llama-3.1-8b-instant"


def test_usage_report_only_counts_the_callers_generations(client, auth_headers, other_auth_headers):
    client.post(URL, json={"input_text": VALID_TEXT}, headers=auth_headers)

    mine = client.get("/api/usage", headers=auth_headers).json()
    theirs = client.get("/api/usage", headers=other_auth_headers).json()

    assert mine["summary"]["total_requests"] == 1
    assert theirs["summary"] == {"total_requests": 0, "total_tokens": 0}
    assert theirs["by_model"] == []


def test_database_work_runs_off_the_event_loop(client, auth_headers, fake_llm, monkeypatch):
    threads = {}
    original_create = fake_llm.completions.create
    original_log_usage = generation_router.log_usage

    async def create(**kwargs):
        threads["event_loop"] = threading.get_ident()
        return await original_create(**kwargs)

    def log_usage(*args, **kwargs):
        threads["database"] = threading.get_ident()
        return original_log_usage(*args, **kwargs)

    monkeypatch.setattr(fake_llm.completions, "create", create)
    monkeypatch.setattr(generation_router, "log_usage", log_usage)

    response = client.post(URL, json={"input_text": VALID_TEXT}, headers=auth_headers)

    assert response.status_code == 201
    assert threads["database"] != threads["event_loop"]
