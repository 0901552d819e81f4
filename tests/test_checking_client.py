"""Tests for the checking-service REST client."""

import json

import httpx
import pytest

from src.config import Settings
from src.errors import CheckingServiceError, ConfigurationError
from src.checking.client import CheckingServiceClient, raise_for_api_error, transform_check_result
from src.schemas.api import CheckSubmit

SETTINGS = Settings(
    acrolinx_base_url="https://acrolinx.example.com/",
    acrolinx_api_token="api-token",
    acrolinx_client_signature="sig",
    acrolinx_client_version="2.0.0",
)

COMPLETED_BODY = {
    "data": {
        "id": "check-1",
        "quality": {"score": 81.4, "status": "yellow", "metrics": [{"id": "clarity", "score": 70}]},
        "goals": [{"id": "clarity", "displayName": "Clarity", "color": "#1E88E5", "scoring": "high", "issues": 2}],
        "issues": [{"goalId": "clarity", "displaySurface": "utilize", "issueType": "warning"}],
        "counts": {"sentences": 4, "words": 40, "issues": 2, "scoredIssues": 2},
    }
}


def _client(handler) -> CheckingServiceClient:
    return CheckingServiceClient(SETTINGS, httpx.AsyncClient(transport=httpx.MockTransport(handler)))


def test_missing_configuration_fails_fast():
    with pytest.raises(ConfigurationError):
        CheckingServiceClient(Settings(acrolinx_api_token="t"), httpx.AsyncClient())
    with pytest.raises(ConfigurationError):
        CheckingServiceClient(Settings(acrolinx_base_url="https://x"), httpx.AsyncClient())


def test_client_headers():
    headers = _client(lambda r: httpx.Response(200)).headers
    assert headers["X-Acrolinx-Auth"] == "api-token"
    assert headers["X-Acrolinx-Client"] == "sig; 2.0.0"
    assert headers["X-Acrolinx-Client-Locale"] == "en"


def test_verify_token():
    client = _client(lambda r: httpx.Response(200))
    assert client.verify_token("api-token")
    assert client.verify_token("aaa.bbb.ccc")
    assert not client.verify_token("wrong")
    assert not client.verify_token(None)


@pytest.mark.asyncio
async def test_submit_text_returns_check_id():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(202, json={"data": {"id": "check-1"}, "links": {"result": "/checks/check-1"}})

    answer = await _client(handler).submit_check(CheckSubmit(content="Plain words.", profile_id="p1"))

    assert answer["checkId"] == "check-1"
    assert answer["status"] == "processing"
    assert answer["links"] == {"result": "/checks/check-1"}

    sent = json.loads(seen[0].content)
    assert str(seen[0].url) == "https://acrolinx.example.com/api/v1/checking/checks"
    assert sent["contentFormat"] == "TEXT"
    assert sent["contentEncoding"] == "none"
    assert sent["document"] == {"reference": "document.txt"}
    assert sent["guidanceProfileId"] == "p1"
    assert answer["debug"]["request"] == sent


@pytest.mark.asyncio
async def test_submit_detects_json_text_and_file_formats():
    sent = []

    def handler(request: httpx.Request) -> httpx.Response:
        sent.append(json.loads(request.content))
        return httpx.Response(202, json={"data": {"id": "c"}})

    client = _client(handler)
    await client.submit_check(CheckSubmit(content='{"title": "Hi"}', profile_id="p1"))
    await client.submit_check(CheckSubmit(content="PGgxPkhpPC9oMT4=", content_type="file",
                                          profile_id="p1", file_name="page.HTM"))

    assert sent[0]["contentFormat"] == "JSON"
    assert sent[0]["document"] == {"reference": "document.json"}
    assert sent[1]["contentFormat"] == "HTML"
    assert sent[1]["contentEncoding"] == "base64"
    assert sent[1]["document"] == {"reference": "page.HTM"}


@pytest.mark.asyncio
async def test_poll_processing_defaults_retry_after():
    client = _client(lambda r: httpx.Response(202, json={"progress": {"percent": 40, "message": "Checking"}}))
    answer = await client.poll_check("check-1")
    assert answer == {"status": "processing", "progress": 40, "message": "Checking", "retryAfter": 5}


@pytest.mark.asyncio
async def test_poll_completed_transforms_result():
    answer = await _client(lambda r: httpx.Response(200, json=COMPLETED_BODY)).poll_check("check-1")

    assert answer["status"] == "completed"
    result = answer["data"]
    assert result.id == "check-1"
    assert result.score == 81
    assert result.status == "yellow"
    assert result.goals[0].issues == 2
    assert result.issues[0].display_surface == "utilize"
    assert result.metrics[0].score == 70
    assert result.counts.words == 40
    assert result.debug["response"] == COMPLETED_BODY


def test_transform_uses_scores_by_goal_fallback():
    result = transform_check_result({"id": "c", "quality": {"scoresByGoal": [{"id": "clarity"}]}})
    assert result.goals[0].id == "clarity"
    assert result.score == 0
    assert result.status == "unknown"


@pytest.mark.parametrize("status,body,headers,code,expected_status", [
    (401, {"error": {"type": "auth"}}, {}, "AUTH_FAILED", 401),
    (403, {"error": {"type": "clientSignatureRejected"}}, {}, "INVALID_SIGNATURE", 403),
    (404, {"error": {"type": "guidanceProfileDoesntExist"}}, {}, "INVALID_PROFILE", 400),
    (413, {"error": {"type": "contentTooLarge"}}, {}, "CONTENT_TOO_LARGE", 413),
    (409, {"error": {"type": "somethingElse", "detail": "Nope"}}, {}, "somethingElse", 409),
    (500, {}, {}, "UNKNOWN_ERROR", 500),
])
def test_error_mapping(status, body, headers, code, expected_status):
    response = httpx.Response(status, json=body, headers=headers)
    with pytest.raises(CheckingServiceError) as excinfo:
        raise_for_api_error(response)
    assert excinfo.value.code == code
    assert excinfo.value.status_code == expected_status


def test_rate_limit_carries_retry_after():
    response = httpx.Response(429, json={"error": {"type": "queueLimitExceeded"}}, headers={"Retry-After": "30"})
    with pytest.raises(CheckingServiceError) as excinfo:
        raise_for_api_error(response)
    assert excinfo.value.code == "RATE_LIMITED"
    assert excinfo.value.status_code == 429
    assert excinfo.value.retry_after == 30


def test_custom_fields_error_carries_details():
    body = {"error": {"type": "customFieldsIncorrect", "validationDetails": [{"field": "project"}]}}
    with pytest.raises(CheckingServiceError) as excinfo:
        raise_for_api_error(httpx.Response(400, json=body))
    assert excinfo.value.details == [{"field": "project"}]


def test_non_json_error_is_server_error():
    with pytest.raises(CheckingServiceError) as excinfo:
        raise_for_api_error(httpx.Response(502, text="<html>Bad gateway</html>"))
    assert excinfo.value.code == "SERVER_ERROR"
    assert excinfo.value.status_code == 502


def test_success_does_not_raise():
    raise_for_api_error(httpx.Response(200, json={}))
