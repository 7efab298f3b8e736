import json

from fastapi.testclient import TestClient

from app.auth import get_auth_session
from app.chat import DEFAULT_SYSTEM_PROMPT, KNOWLEDGE_BASE_SYSTEM_PROMPT
from app.main import create_app
from app.schemas import Message

from conftest import SIGNED_IN, ScriptedModel, text_step


def _client(services, signed_in=True):
    app = create_app(services)
    if signed_in:
        app.dependency_overrides[get_auth_session] = lambda: SIGNED_IN
    return TestClient(app)


def _parts(body):
    return [(line[0], json.loads(line[2:])) for line in body.splitlines()]


def test_health(make_services):
    with _client(make_services(ScriptedModel([text_step("x")]))) as client:
        r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}


def test_chat_requires_session(make_services):
    model = ScriptedModel([text_step("x")])
    with _client(make_services(model), signed_in=False) as client:
        r = client.post("/api/chat", json={"messages": [{"role": "user", "content": "hi"}]})
    assert r.status_code == 401
    assert r.json() == {"error": "Unauthorized"}
    assert model.calls == []


def test_unrecognized_body_streams_with_empty_history(make_services):
    model = ScriptedModel([text_step("Hello!")])
    with _client(make_services(model)) as client:
        r = client.post("/api/chat", json={})
    assert r.status_code == 200
    assert r.headers["x-vercel-ai-data-stream"] == "v1"
    assert r.headers["content-type"].startswith("text/plain")
    parts = _parts(r.text)
    assert ("0", "Hello!") in parts
    assert parts[-1][0] == "d"
    assert model.calls[0]["messages"] == []


def test_invalid_json_body_is_treated_as_empty(make_services):
    model = ScriptedModel([text_step("ok")])
    with _client(make_services(model)) as client:
        r = client.post("/api/chat", content=b"{not json", headers={"Content-Type": "application/json"})
    assert r.status_code == 200
    assert model.calls[0]["messages"] == []


def test_stored_conversation_is_loaded_and_saved(make_services, conversations):
    conversations.save("conv-1", [Message(role="user", content="hi"), Message(role="assistant", content="hey")])
    model = ScriptedModel([text_step("Paris.")])
    with _client(make_services(model)) as client:
        r = client.post(
            "/api/chat",
            json={"id": "conv-1", "message": {"role": "user", "content": "capital of France?"}},
        )
        assert r.status_code == 200
        assert ("0", "Paris.") in _parts(r.text)

    assert model.calls[0]["system"] == KNOWLEDGE_BASE_SYSTEM_PROMPT
    assert len(model.calls[0]["messages"]) == 3
    stored = conversations.load("conv-1")
    assert [(m.role, m.content) for m in stored][-2:] == [("user", "capital of France?"), ("assistant", "Paris.")]
    assert len(stored) == 4


def test_caller_history_is_not_saved(make_services, conversations):
    model = ScriptedModel([text_step("Hi there")])
    body = {
        "messages": [
            {"role": "user", "content": "hello"},
            {"role": "robot", "content": "dropped"},
            {"role": "user", "content": "again"},
        ]
    }
    with _client(make_services(model)) as client:
        r = client.post("/api/chat", json=body)
        assert r.status_code == 200

    assert model.calls[0]["system"] == DEFAULT_SYSTEM_PROMPT
    assert [m["content"] for m in model.calls[0]["messages"]] == ["hello", "again"]
    assert conversations._data == {}
