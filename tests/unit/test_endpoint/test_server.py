"""Tests for the HTTP endpoint server."""

from __future__ import annotations

import base64
import time

import pytest
from fastapi.testclient import TestClient
from helpers import PNG_A, ScriptedSource

from worktracker.capture.stream import StreamCapture
from worktracker.endpoint.server import create_app
from worktracker.service import TrackerService
from worktracker.storage.images import LocalImageStore
from worktracker.storage.memory import InMemoryStorage


def _service(source, tmp_path, classifier=None) -> TrackerService:
    return TrackerService(
        storage=InMemoryStorage(),
        source=source,
        images=LocalImageStore(tmp_path / "screenshots"),
        classifier=classifier,
        interval_ms=60_000,
        report_hook=None,
    )


def _wait_for_samples(client: TestClient, count: int, timeout: float = 2.0) -> dict:
    deadline = time.monotonic() + timeout
    while True:
        status = client.get("/status").json()
        if status["sample_count"] >= count or time.monotonic() > deadline:
            return status
        time.sleep(0.01)


class TestEndpointServer:
    """Session control, queries and frame upload over HTTP."""

    @pytest.fixture
    def stream(self) -> StreamCapture:
        return StreamCapture(frame_timeout=1.0)

    @pytest.fixture
    def client(self, stream, tmp_path, mock_classifier):
        app = create_app(_service(stream, tmp_path, mock_classifier))
        with TestClient(app) as client:
            yield client

    def test_health(self, client) -> None:
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok", "source": "stream", "capturing": False}

    def test_status_without_session(self, client) -> None:
        body = client.get("/status").json()
        assert body["is_active"] is False
        assert body["session_id"] is None

    def test_session_lifecycle(self, client) -> None:
        started = client.post("/session/start")
        assert started.status_code == 201
        session_id = started.json()["id"]
        assert started.json()["status"] == "active"
        assert client.get("/health").json()["capturing"] is True

        assert client.post("/session/pause").json()["status"] == "paused"
        assert client.post("/session/resume").json()["status"] == "active"
        ended = client.post("/session/end").json()
        assert ended["status"] == "completed"
        assert ended["ended_at"] is not None

        listed = client.get("/sessions").json()
        assert [s["id"] for s in listed] == [session_id]

    def test_conflict(self, client) -> None:
        client.post("/session/start")
        response = client.post("/session/start")
        assert response.status_code == 409
        assert response.json()["kind"] == "ConflictError"

    def test_illegal_transition(self, client) -> None:
        response = client.post("/session/pause")
        assert response.status_code == 409
        assert response.json()["kind"] == "InvalidStateError"

    def test_frame_upload_creates_sample(self, client) -> None:
        session_id = client.post("/session/start").json()["id"]
        payload = "data:image/png;base64," + base64.b64encode(PNG_A).decode()
        response = client.post("/frames", json={"image_base64": payload})
        assert response.status_code == 202

        status = _wait_for_samples(client, 1)
        assert status["sample_count"] == 1
        client.post("/session/end")

        timeline = client.get(f"/sessions/{session_id}/timeline").json()
        assert len(timeline) == 1
        assert timeline[0]["dominant_activity"] == "coding"
        assert timeline[0]["dominant_app"] == "VS Code"
        breakdown = client.get(f"/sessions/{session_id}/breakdown").json()
        assert breakdown[0]["activity_type"] == "coding"

    def test_frame_without_session(self, client) -> None:
        payload = base64.b64encode(PNG_A).decode()
        response = client.post("/frames", json={"image_base64": payload})
        assert response.status_code == 503

    def test_invalid_frame_payload(self, client) -> None:
        client.post("/session/start")
        response = client.post("/frames", json={"image_base64": "%%%"})
        assert response.status_code == 400

    def test_stream_end_pauses_session(self, client) -> None:
        client.post("/session/start")
        assert client.post("/frames/end").status_code == 200
        deadline = time.monotonic() + 2.0
        while client.get("/status").json()["status"] != "paused":
            assert time.monotonic() < deadline
            time.sleep(0.01)

    def test_unknown_session_timeline(self, client) -> None:
        assert client.get("/sessions/missing/timeline").status_code == 404
        assert client.get("/sessions/missing/breakdown").status_code == 404


class TestDisplaySourceEndpoint:
    def test_frames_rejected_without_stream_source(self, tmp_path) -> None:
        app = create_app(_service(ScriptedSource(), tmp_path))
        with TestClient(app) as client:
            payload = base64.b64encode(PNG_A).decode()
            response = client.post("/frames", json={"image_base64": payload})
        assert response.status_code == 409
