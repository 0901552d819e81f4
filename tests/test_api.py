"""API tests with services wired onto app.state directly (no lifespan)."""

import base64

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

from src.api.app import create_app
from src.checking.client import CheckingServiceClient
from src.config import Settings
from src.db.history import HistoryStore
from src.llm.grammar_check import GrammarCheckService
from src.llm.text_check import LLMTextCheckService
from src.schemas.history import CheckRecordPatch

AUTH = {"Authorization": "Bearer api-token"}

SETTINGS = Settings(
    llm_provider="openai",
    openai_api_key="sk-test",
    acrolinx_base_url="https://acrolinx.example.com",
    acrolinx_api_token="api-token",
    max_file_size=1024,
)


def upstream(request: httpx.Request) -> httpx.Response:
    """The checking service, as seen by the proxy."""
    path = request.url.path
    if request.headers.get("X-Acrolinx-Auth") != "api-token":
        return httpx.Response(401, json={"error": {"type": "auth"}})
    if path == "/api/v1/checking/capabilities":
        return httpx.Response(200, json={"data": {"guidanceProfiles": [{"id": "p1", "displayName": "Tech Docs"}]}})
    if path == "/api/v1/checking/checks":
        return httpx.Response(202, json={"data": {"id": "check-1"}, "links": {}})
    if path == "/api/v1/checking/checks/check-1":
        return httpx.Response(200, json={"data": {
            "id": "check-1",
            "quality": {"score": 90.6, "status": "green"},
            "goals": [{"id": "clarity", "displayName": "Clarity"}],
            "issues": [],
        }})
    return httpx.Response(404, json={"error": {"type": "notFound", "detail": "No such check"}})


@pytest.fixture
async def app(stub_chat, teh_cat_answer, history_url):
    app = create_app(SETTINGS)
    http = httpx.AsyncClient(transport=httpx.MockTransport(upstream))
    chat = stub_chat(teh_cat_answer)
    history = HistoryStore(history_url)
    await history.initialize()

    app.state.http = http
    app.state.checking_client = CheckingServiceClient(SETTINGS, http)
    app.state.chat_service = chat
    app.state.text_check = LLMTextCheckService(chat, SETTINGS.default_model())
    app.state.grammar_check = GrammarCheckService(chat, SETTINGS.default_model())
    app.state.history = history
    yield app
    await history.close()
    await http.aclose()


@pytest.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


# =============================================================================
# Submit / poll
# =============================================================================

@pytest.mark.asyncio
async def test_submit_requires_token(client):
    resp = await client.post("/api/checking/submit", json={"content": "x", "profileId": "p1"})
    assert resp.status_code == 401
    assert resp.json()["error"]["code"] == "NO_TOKEN"


@pytest.mark.asyncio
async def test_llm_submit_completes_synchronously(client):
    resp = await client.post("/api/checking/submit", headers=AUTH, json={
        "content": "Teh cat sat.", "profileId": "p1", "provider": "llm",
    })
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "completed"
    data = body["data"]
    assert data["checkType"] == "llm"
    assert data["fileName"] == "document.txt"
    assert data["result"]["score"] == 78
    assert data["result"]["issues"][0]["displaySurface"] == "Teh"
    assert body["debug"]["model"] == "gpt-4o-mini"
    assert body["debug"]["contentLength"] == len("Teh cat sat.")


@pytest.mark.asyncio
async def test_llm_submit_with_file_content(client):
    encoded = base64.b64encode(b"<p>Teh cat sat.</p>").decode()
    resp = await client.post("/api/checking/submit", headers=AUTH, json={
        "content": encoded, "contentType": "file", "fileName": "cat.html",
        "profileId": "p1", "provider": "llm",
    })
    assert resp.status_code == 200
    assert resp.json()["data"]["fileName"] == "cat.html"


@pytest.mark.asyncio
async def test_submit_rejects_oversized_content(client):
    resp = await client.post("/api/checking/submit", headers=AUTH, json={
        "content": "x" * 2048, "profileId": "p1",
    })
    assert resp.status_code == 413
    assert resp.json()["error"]["code"] == "CONTENT_TOO_LARGE"


@pytest.mark.asyncio
async def test_submit_rejects_unsupported_format(client):
    resp = await client.post("/api/checking/submit", headers=AUTH, json={
        "content": "aGVsbG8=", "contentType": "file", "fileName": "tool.exe", "profileId": "p1",
    })
    assert resp.status_code == 400
    error = resp.json()["error"]
    assert error["code"] == "UNSUPPORTED_FORMAT"
    assert "txt" in error["details"]["supportedFormats"]


@pytest.mark.asyncio
async def test_native_submit_and_poll(client):
    resp = await client.post("/api/checking/submit", headers=AUTH, json={
        "content": "Plain words.", "profileId": "p1",
    })
    assert resp.status_code == 200
    assert resp.json()["checkId"] == "check-1"

    resp = await client.get("/api/checking/poll/check-1", headers=AUTH)
    body = resp.json()
    assert body["status"] == "completed"
    assert body["data"]["score"] == 91
    assert body["data"]["goals"][0]["displayName"] == "Clarity"


@pytest.mark.asyncio
async def test_poll_for_llm_check_is_an_error(client):
    resp = await client.get("/api/checking/poll/llm-check-123", headers=AUTH)
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "failed"
    assert body["error"]["code"] == "LLM_POLL_ERROR"


@pytest.mark.asyncio
async def test_upstream_error_is_mapped(client):
    resp = await client.get("/api/checking/poll/missing", headers=AUTH)
    assert resp.status_code == 404
    assert resp.json()["error"] == {"message": "No such check", "code": "notFound"}


@pytest.mark.asyncio
async def test_upstream_auth_failure(app, client):
    app.state.checking_client = CheckingServiceClient(
        SETTINGS.model_copy(update={"acrolinx_api_token": "stale"}), app.state.http
    )
    resp = await client.get("/api/checking/capabilities", headers=AUTH)
    assert resp.status_code == 401
    assert resp.json()["error"]["code"] == "AUTH_FAILED"


@pytest.mark.asyncio
async def test_unconfigured_checking_service(app, client):
    app.state.checking_client = None
    resp = await client.get("/api/checking/capabilities", headers=AUTH)
    assert resp.status_code == 503
    assert resp.json()["error"]["code"] == "CONFIGURATION_ERROR"


@pytest.mark.asyncio
async def test_capabilities(client):
    resp = await client.get("/api/checking/capabilities", headers=AUTH)
    assert resp.status_code == 200
    assert resp.json()["data"]["guidanceProfiles"][0]["id"] == "p1"


# =============================================================================
# LLM endpoints and auth
# =============================================================================

@pytest.mark.asyncio
async def test_llm_provider_info(client):
    resp = await client.get("/api/llm/provider", headers=AUTH)
    assert resp.json() == {"provider": "openai", "defaultModel": "gpt-4o-mini"}


@pytest.mark.asyncio
async def test_grammar_check_endpoint(app, client, stub_chat):
    chat = stub_chat({"errors": [{
        "text": "Teh", "type": "spelling", "severity": "error",
        "message": "Misspelling", "suggestions": ["The"], "position": 0,
    }]})
    app.state.grammar_check = GrammarCheckService(chat, "m")

    resp = await client.post("/api/grammar-check", headers=AUTH, json={"text": "Teh cat sat."})

    assert resp.status_code == 200
    body = resp.json()
    assert body["totalChunks"] == 1
    assert body["processedChunks"] == 1
    assert body["errors"][0]["offset"] == 0
    assert body["errors"][0]["context"]["after"] == " cat sat."


@pytest.mark.asyncio
async def test_auth_verify(client):
    ok = await client.post("/api/auth/verify", headers=AUTH)
    assert ok.status_code == 200
    assert ok.json()["data"]["user"]["id"] == "api-user"

    custom = await client.post("/api/auth/verify", headers=AUTH, json={"customToken": "bogus"})
    assert custom.status_code == 401
    assert custom.json()["error"]["code"] == "INVALID_TOKEN"


# =============================================================================
# History
# =============================================================================

@pytest.mark.asyncio
async def test_history_endpoints(app, client):
    history = app.state.history
    await history.save_check_record(CheckRecordPatch(
        id="r1", content="One.", profile_id="p1", profile_name="Tech Docs", status="completed", score=80,
    ))
    await history.save_check_record(CheckRecordPatch(
        id="r2", content="Two.", profile_id="p1", profile_name="Tech Docs", status="failed",
    ))

    page = (await client.get("/api/history?limit=10", headers=AUTH)).json()
    assert {r["id"] for r in page["records"]} == {"r1", "r2"}
    assert page["limit"] == 10

    stats = (await client.get("/api/history/stats", headers=AUTH)).json()
    assert stats["totalChecks"] == 2
    assert stats["averageScore"] == 80
    assert stats["checksByProfile"] == [{"profile": "Tech Docs", "count": 2}]

    record = (await client.get("/api/history/r1", headers=AUTH)).json()
    assert record["profileName"] == "Tech Docs"
    assert record["score"] == 80

    deleted = await client.delete("/api/history/r1", headers=AUTH)
    assert deleted.json() == {"deleted": True, "id": "r1"}

    missing = await client.get("/api/history/r1", headers=AUTH)
    assert missing.status_code == 404
    assert missing.json()["error"]["code"] == "NOT_FOUND"

    again = await client.delete("/api/history/r1", headers=AUTH)
    assert again.status_code == 404


@pytest.mark.asyncio
async def test_history_limit_is_bounded(client):
    resp = await client.get("/api/history?limit=5000", headers=AUTH)
    assert resp.status_code == 422
