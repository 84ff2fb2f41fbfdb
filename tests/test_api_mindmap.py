# tests/test_api_mindmap.py
"""
Tests for the mind map HTTP API.

Covers:
- Health check
- /mindmap/build and /mindmap/sidebar round trip over JSON
- /mindmap/generate error mapping (422 / 503 / 504 / 400)
- /mindmap/generate/stream SSE framing

Generation is patched at the endpoint module; no provider is contacted.
"""

import asyncio
import json

from unittest.mock import AsyncMock, patch

from mindgraph.core.config import settings
from mindgraph.graph.builder import build_mind_map_graph
from mindgraph.services import ai_service

ENDPOINT = "mindgraph.api.v1.endpoints.mindmap.generate_mindmap"


def _sse_events(body: str):
    return [line[len("data: "):] for line in body.splitlines() if line.startswith("data: ")]


# ============== System ==============

def test_health_check(client):
    response = client.get("/")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "operational"
    assert data["service"] == "MindGraph"
    assert data["ai_provider"] == "hybrid"


# ============== Build ==============

def test_build_returns_camel_case_graph(client, biology_raw):
    response = client.post("/api/v1/mindmap/build", json={"raw": biology_raw, "subject_name": "Biology"})
    assert response.status_code == 200
    graph = response.json()

    assert graph["title"] == "Biology"
    assert [n["id"] for n in graph["nodes"]] == ["central", "topic1", "subtopic1_1"]
    topic = graph["nodes"][1]
    assert topic["label"] == "Cells"
    assert topic["parentId"] == "central"
    assert topic["childIds"] == ["subtopic1_1"]
    assert topic["hasChildren"] is True
    assert graph["edges"][0] == {
        "id": "central-topic1",
        "sourceId": "central",
        "targetId": "topic1",
        "kind": "bezier",
    }


def test_build_echoes_unrecognised_input(client):
    response = client.post("/api/v1/mindmap/build", json={"raw": {"foo": "bar"}})
    assert response.status_code == 200
    assert response.json() == {"foo": "bar"}


def test_build_without_raw_returns_null(client):
    response = client.post("/api/v1/mindmap/build", json={})
    assert response.status_code == 200
    assert response.json() is None


# ============== Sidebar ==============

def test_sidebar_from_built_graph(client, chemistry_raw):
    graph = client.post("/api/v1/mindmap/build", json={"raw": chemistry_raw}).json()
    response = client.post("/api/v1/mindmap/sidebar", json=graph)

    assert response.status_code == 200
    sidebar = response.json()
    assert [t["title"] for t in sidebar] == ["Atomic Structure", "Bonding", "Lab Safety"]
    assert sidebar[0]["isRead"] is False
    assert [s["id"] for s in sidebar[0]["subtopics"]] == ["subtopic1_1", "subtopic1_2", "subtopic1_3"]
    assert sidebar[2]["subtopics"] == []


def test_sidebar_degrades_to_empty_list(client):
    assert client.post("/api/v1/mindmap/sidebar", json={}).json() == []
    assert client.post("/api/v1/mindmap/sidebar", json={"nodes": []}).json() == []
    assert client.post("/api/v1/mindmap/sidebar", json=["junk"]).json() == []


# ============== Generate ==============

def test_generate_success(client, deep_raw):
    graph = build_mind_map_graph(deep_raw, "Physics")

    with patch(ENDPOINT, AsyncMock(return_value=graph)) as mock_generate:
        response = client.post(
            "/api/v1/mindmap/generate",
            json={"subject_name": "Physics", "prompt": "focus on mechanics"},
        )

    assert response.status_code == 200
    body = response.json()
    assert body["nodes"][-1]["id"] == "level41_1_1_1"
    assert body["nodes"][-1]["type"] == "level4"
    mock_generate.assert_awaited_once_with("Physics", "focus on mechanics")


def test_generate_passes_through_non_graph_result(client):
    with patch(ENDPOINT, AsyncMock(return_value={"error": "unsupported"})):
        response = client.post("/api/v1/mindmap/generate", json={"subject_name": "???"})

    assert response.status_code == 200
    assert response.json() == {"error": "unsupported"}


def test_generate_unparseable_output_is_422(client):
    with patch(ENDPOINT, AsyncMock(side_effect=ValueError("AI returned invalid JSON"))):
        response = client.post("/api/v1/mindmap/generate", json={"subject_name": "Biology"})

    assert response.status_code == 422
    assert "invalid JSON" in response.json()["detail"]


def test_generate_provider_outage_is_503(client):
    with patch(ENDPOINT, AsyncMock(side_effect=RuntimeError("All AI providers failed"))):
        response = client.post("/api/v1/mindmap/generate", json={"subject_name": "Biology"})

    assert response.status_code == 503


def test_generate_timeout_is_504(client, monkeypatch):
    async def slow_generate(subject_name, prompt=""):
        await asyncio.sleep(5)

    monkeypatch.setattr(settings, "AI_TIMEOUT_SECONDS", 0.05)
    with patch(ENDPOINT, slow_generate):
        response = client.post("/api/v1/mindmap/generate", json={"subject_name": "Biology"})

    assert response.status_code == 504
    assert "timed out" in response.json()["detail"]


def test_generate_blank_subject_is_400(client):
    with patch(ENDPOINT, AsyncMock()) as mock_generate:
        response = client.post("/api/v1/mindmap/generate", json={"subject_name": "   "})

    assert response.status_code == 400
    mock_generate.assert_not_awaited()


def test_generate_missing_subject_is_rejected(client):
    response = client.post("/api/v1/mindmap/generate", json={"prompt": "anything"})
    assert response.status_code == 422


# ============== Stream ==============

def test_stream_emits_status_then_result(client, monkeypatch, biology_raw):
    monkeypatch.setattr(ai_service, "STREAM_STAGE_DELAY", 0)
    graph = build_mind_map_graph(biology_raw, "Biology")

    with patch.object(ai_service, "generate_mindmap", AsyncMock(return_value=graph)):
        response = client.post("/api/v1/mindmap/generate/stream", json={"subject_name": "Biology"})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")

    events = _sse_events(response.text)
    assert events[-1] == "[DONE]"
    payloads = [json.loads(e) for e in events[:-1]]

    statuses = [p for p in payloads if p["type"] == "status"]
    assert len(statuses) == len(ai_service.STREAM_STAGES) + 1
    assert statuses[-1]["progress"] == 100

    result = payloads[-1]
    assert result["type"] == "result"
    assert result["data"]["nodes"][1]["label"] == "Cells"


def test_stream_blank_subject_is_400(client):
    with patch.object(ai_service, "_hybrid_call", AsyncMock()) as mock_call:
        response = client.post("/api/v1/mindmap/generate/stream", json={"subject_name": "   "})

    assert response.status_code == 400
    mock_call.assert_not_awaited()


def test_stream_reports_failure_as_error_event(client, monkeypatch):
    monkeypatch.setattr(ai_service, "STREAM_STAGE_DELAY", 0)

    with patch.object(ai_service, "generate_mindmap", AsyncMock(side_effect=RuntimeError("All AI providers failed"))):
        response = client.post("/api/v1/mindmap/generate/stream", json={"subject_name": "Biology"})

    events = _sse_events(response.text)
    assert events[-1] == "[DONE]"
    last = json.loads(events[-2])
    assert last == {"type": "error", "message": "All AI providers failed"}
