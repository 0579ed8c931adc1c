"""Tests for the /api routes, driven through the ASGI app."""

from unittest.mock import AsyncMock, patch

import httpx
import pytest

from arkham_keeper.llm import ChatCompletionClient
from arkham_keeper.pipeline.orchestrator import KeeperTurnOrchestrator
from arkham_keeper.storage import Storage
from backend.app import create_app
from backend.demo import create_demo_data


@pytest.fixture
def app(tmp_path, scenario, investigator, session):
    app = create_app(tmp_path)
    storage = app.state.storage
    storage.save_scenario(scenario)
    storage.save_investigator(investigator)
    storage.upsert_session(session)
    return app


@pytest.fixture
async def client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


async def test_health(client):
    resp = await client.get("/api/health")
    assert resp.json() == {"status": "ok"}


async def test_list_and_get_sessions(client):
    listed = (await client.get("/api/sessions")).json()
    assert [s["id"] for s in listed] == ["s1"]

    resp = await client.get("/api/sessions/s1")
    assert resp.status_code == 200
    assert resp.json()["title"] == "Farmhouse"


async def test_get_unknown_session(client):
    assert (await client.get("/api/sessions/nope")).status_code == 404


async def test_turn_without_endpoint_commits_fallback(client):
    resp = await client.post("/api/sessions/s1/turn", json={"message": "I knock."})
    assert resp.status_code == 200
    body = resp.json()
    assert body["fallback"] is True
    assert len(body["parsed"]["choices"]) == 5

    chat = (await client.get("/api/sessions/s1")).json()["chat"]
    assert [m["role"] for m in chat] == ["player", "keeper"]


async def test_blank_turn_rejected(client):
    resp = await client.post("/api/sessions/s1/turn", json={"message": "  "})
    assert resp.status_code == 400


async def test_turn_unknown_session(client):
    resp = await client.post("/api/sessions/nope/turn", json={"message": "Hi"})
    assert resp.status_code == 404


async def test_turn_rejected_while_streaming(app, client):
    app.state.orchestrator._in_flight.add("s1")
    resp = await client.post("/api/sessions/s1/turn", json={"message": "Hi"})
    assert resp.status_code == 409


async def test_intro_runs_once(client):
    first = await client.post("/api/sessions/s1/intro")
    assert first.json()["message"]["role"] == "keeper"

    second = await client.post("/api/sessions/s1/intro")
    assert second.json() == {"started": False}


async def test_choose(client):
    resp = await client.post("/api/sessions/s1/choose", json={"index": 1, "text": "Enter"})
    assert resp.status_code == 200
    chat = resp.json()["session"]["chat"]
    assert chat[0]["content"] == "I choose option 1: Enter"


async def test_rewrite(client):
    await client.post("/api/sessions/s1/turn", json={"message": "I knock."})
    resp = await client.post("/api/sessions/s1/rewrite", json={"message": "I kick."})
    chat = resp.json()["session"]["chat"]
    assert [m["role"] for m in chat] == ["player", "keeper", "system", "player", "keeper"]
    assert chat[3]["edited_from_message_id"] == chat[0]["id"]


async def test_cancel_without_turn(client):
    resp = await client.post("/api/sessions/s1/cancel")
    assert resp.json() == {"cancelled": False}


async def test_settings_roundtrip(client):
    resp = await client.patch("/api/settings", json={"language": "ru", "llm": {"model": "m2"}})
    assert resp.json()["language"] == "ru"

    settings = (await client.get("/api/settings")).json()
    assert settings["llm"]["model"] == "m2"
    assert settings["llm"]["temperature"] == 0.7


async def test_check_connection_ok(client):
    ok = httpx.Response(200, request=httpx.Request("GET", "http://llm.local/v1/models"))
    mock_get = AsyncMock(return_value=ok)
    with patch("httpx.AsyncClient.get", mock_get):
        resp = await client.post(
            "/api/check-connection",
            json={"base_url": "http://llm.local/", "api_key": "k"},
        )
    assert resp.json() == {"ok": True}
    assert mock_get.call_args[0][0] == "http://llm.local/v1/models"
    assert mock_get.call_args[1]["headers"] == {"Authorization": "Bearer k"}


async def test_check_connection_unreachable(client):
    mock_get = AsyncMock(side_effect=httpx.ConnectError("refused"))
    with patch("httpx.AsyncClient.get", mock_get):
        resp = await client.post("/api/check-connection", json={"base_url": "http://llm.local"})
    assert resp.json() == {"ok": False}


def test_demo_data(tmp_path):
    storage = Storage(tmp_path)
    (storage.sessions_dir() / "old.json").write_text("{}", encoding="utf-8")

    session = create_demo_data(storage)

    assert [s.id for s in storage.list_sessions()] == [session.id]
    assert session.status == "setup"
    assert session.chat == []
    assert storage.get_scenario(session.scenario_id).name == "The Haunting"
    assert storage.get_investigator(session.investigator_id).name == "Eleanor Price"


async def test_keyed_turn_streams_and_commits(app, client):
    requests: list[httpx.Request] = []

    def endpoint(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, content=(
            b'data: {"choices":[{"delta":{"content":"Hello"}}]}\n'
            b'data: {"choices":[{"delta":{"content":" world"}}]}\n'
            b"data: [DONE]\n"
        ))

    storage = app.state.storage
    app.state.orchestrator = KeeperTurnOrchestrator(
        storage,
        settings=storage.get_settings,
        client_factory=lambda llm: ChatCompletionClient.from_settings(
            llm, transport=httpx.MockTransport(endpoint)
        ),
    )
    await client.patch("/api/settings", json={"llm": {"api_key": "k", "base_url": "http://llm.local"}})

    resp = await client.post("/api/sessions/s1/turn", json={"message": "I knock."})
    body = resp.json()

    assert resp.status_code == 200
    assert body["fallback"] is False
    assert body["parsed"]["narration"] == "Hello world"
    assert str(requests[0].url) == "http://llm.local/v1/chat/completions"
    assert requests[0].headers["authorization"] == "Bearer k"

    keeper = (await client.get("/api/sessions/s1")).json()["chat"][-1]
    assert keeper["content"] == "Hello world"
    assert keeper["meta"]["is_fallback"] is None
