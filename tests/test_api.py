import base64
import json

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from api.main import app
from api.rate_limit import limiter
from chatbot.ChatBot import ChatBot
from conftest import FakeEncoding, FakeExecutor, FakeOpenAI, content_chunks
from database.errors import QueryExecutionError
from gate.ReadDataTool import ReadDataTool

AUTH = {"Authorization": "Bearer test-key"}


@pytest_asyncio.fixture(scope="function")
async def client(monkeypatch, sqlite_executor):
    monkeypatch.setenv("API_KEYS", "test-key, other-key")
    monkeypatch.setenv("RATE_LIMIT_PER_HOUR", "20")
    limiter.clear()

    # ASGITransport does not run the lifespan, so wire state directly
    app.state.tool = ReadDataTool(sqlite_executor)
    app.state.bot = None

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac

    limiter.clear()


@pytest.mark.asyncio
async def test_health_needs_no_auth(client: AsyncClient):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


@pytest.mark.asyncio
async def test_wrong_api_key_is_rejected(client: AsyncClient):
    response = await client.post(
        "/tools/read_data",
        json={"query": "SELECT 1"},
        headers={"Authorization": "Bearer wrong"},
    )

    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid API key"


@pytest.mark.asyncio
async def test_bare_key_is_accepted(client: AsyncClient):
    response = await client.get("/tools", headers={"Authorization": "other-key"})

    assert response.status_code == 200


@pytest.mark.asyncio
async def test_bearer_scheme_is_case_insensitive(client: AsyncClient):
    response = await client.get("/tools", headers={"Authorization": "bearer test-key"})

    assert response.status_code == 200


@pytest.mark.asyncio
async def test_missing_key_configuration_is_a_server_error(client, monkeypatch):
    monkeypatch.setenv("API_KEYS", "")

    response = await client.get("/tools", headers=AUTH)

    assert response.status_code == 500


@pytest.mark.asyncio
async def test_list_tools_describes_read_data(client: AsyncClient):
    response = await client.get("/tools", headers=AUTH)

    assert response.status_code == 200
    (tool,) = response.json()
    assert tool["name"] == "read_data"
    assert tool["inputSchema"]["required"] == ["query"]


@pytest.mark.asyncio
async def test_read_data_success(client: AsyncClient):
    response = await client.post(
        "/tools/read_data",
        json={"query": "SELECT title FROM movies WHERE genre = 'comedy' ORDER BY id"},
        headers=AUTH,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["data"] == [{"title": "Lady Bird"}, {"title": "Frances Ha"}]
    assert body["recordCount"] == 2
    assert body["totalRecords"] == 2
    assert body["executionTime"].endswith("ms")
    assert "error" not in body and "details" not in body
    assert response.headers["X-RateLimit-Remaining"] == "19"


@pytest.mark.asyncio
async def test_read_data_validation_failure_is_reported_in_body(client: AsyncClient):
    response = await client.post(
        "/tools/read_data",
        json={"query": "SELECT * FROM movies; DELETE FROM movies"},
        headers=AUTH,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is False
    assert body["error"] == "SECURITY_VALIDATION_FAILED"
    assert "DELETE" in body["message"]
    assert "data" not in body and "details" not in body


@pytest.mark.asyncio
async def test_read_data_blob_values_are_base64(client: AsyncClient):
    response = await client.post(
        "/tools/read_data", json={"query": "SELECT X'FF' AS b"}, headers=AUTH
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    (row,) = body["data"]
    assert base64.urlsafe_b64decode(row["b"]) == b"\xff"


@pytest.mark.asyncio
async def test_read_data_rejects_non_string_query(client: AsyncClient):
    response = await client.post("/tools/read_data", json={"query": 5}, headers=AUTH)

    body = response.json()
    assert body["success"] is False
    assert body["message"] == (
        "Security validation failed: Query must be a non-empty string"
    )


@pytest.mark.asyncio
async def test_read_data_execution_failure_details(client: AsyncClient):
    app.state.tool = ReadDataTool(
        FakeExecutor(
            error=QueryExecutionError(
                "Invalid object name 'nope'.", code="EREQUEST", number=208, severity=16
            )
        )
    )

    response = await client.post(
        "/tools/read_data", json={"query": "SELECT * FROM nope"}, headers=AUTH
    )

    body = response.json()
    assert body["success"] is False
    assert body["error"] == "QUERY_EXECUTION_FAILED"
    assert body["details"]["number"] == 208
    assert body["details"]["class"] == 16
    assert "originalError" not in body["details"]


@pytest.mark.asyncio
async def test_read_data_is_rate_limited(client: AsyncClient, monkeypatch):
    monkeypatch.setenv("RATE_LIMIT_PER_HOUR", "2")

    for _ in range(2):
        ok = await client.post(
            "/tools/read_data", json={"query": "SELECT 1"}, headers=AUTH
        )
        assert ok.status_code == 200

    limited = await client.post(
        "/tools/read_data", json={"query": "SELECT 1"}, headers=AUTH
    )

    assert limited.status_code == 429
    assert limited.headers["X-RateLimit-Remaining"] == "0"

    status = await client.get("/rate-limit", headers=AUTH)
    assert status.json()["remaining"] == 0
    assert status.json()["limit"] == 2


@pytest.mark.asyncio
async def test_chat_endpoints_unavailable_without_bot(client: AsyncClient):
    response = await client.post("/conversations", headers=AUTH)

    assert response.status_code == 503


@pytest.mark.asyncio
async def test_chat_round_trip(client: AsyncClient):
    bot = ChatBot(app.state.tool, client=FakeOpenAI(content_chunks("Three movies.")))
    bot._encoding = FakeEncoding()
    app.state.bot = bot

    created = await client.post("/conversations", headers=AUTH)
    assert created.status_code == 201
    conversation_id = created.json()["id"]

    reply = await client.post(
        f"/conversations/{conversation_id}/chat",
        json={"message": "How many movies?"},
        headers=AUTH,
    )
    assert reply.status_code == 200
    assert reply.json()["response"] == "Three movies."

    detail = await client.get(f"/conversations/{conversation_id}", headers=AUTH)
    assert [m["role"] for m in detail.json()["messages"]] == ["user", "assistant"]

    deleted = await client.delete(f"/conversations/{conversation_id}", headers=AUTH)
    assert deleted.status_code == 204
    missing = await client.get(f"/conversations/{conversation_id}", headers=AUTH)
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_chat_stream_emits_sse_events(client: AsyncClient):
    bot = ChatBot(app.state.tool, client=FakeOpenAI(content_chunks("Done here.")))
    bot._encoding = FakeEncoding()
    app.state.bot = bot
    conversation_id = bot.create_conversation().id

    response = await client.post(
        f"/conversations/{conversation_id}/chat/stream",
        json={"message": "hi"},
        headers=AUTH,
    )

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    events = [
        json.loads(line.removeprefix("data: "))
        for line in response.text.splitlines()
        if line.startswith("data: ")
    ]
    assert events[0] == {"type": "status", "status": "thinking"}
    assert events[-1]["type"] == "done"
    assert events[-1]["response"] == "Done here."
