"""Tests for the background job and progress streaming endpoints."""
from __future__ import annotations

import asyncio
import json
from unittest.mock import MagicMock, patch
from uuid import UUID, uuid4

import pytest
from fastapi import status
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from catalog.api.progress import get_redis_client
from catalog.core.config import get_settings
from catalog.core.db import get_session
from catalog.core.redis_manager import ProgressManager
from catalog.main import app
from catalog.models.bulk_job import BulkJob, JobOperation, JobStatus
from catalog.services.job_service import BulkJobRepository

VALID_CSV = b"extId,title,description,price,category,image\n1,Desk,Oak desk,120,Furniture,https://example.com/d.png\n"


@pytest.fixture
def client(db_session: Session, fake_redis):
    """Create a FastAPI test client with overridden database session and Redis."""

    def override_get_session():
        yield db_session

    async def override_get_redis():
        yield fake_redis

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_redis_client] = override_get_redis

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def upload_dir(tmp_path, monkeypatch):
    monkeypatch.setattr(get_settings(), "upload_tmp_dir", str(tmp_path))
    return tmp_path


@pytest.fixture
def mock_enqueue():
    with patch("catalog.tasks.bulk_tasks.run_bulk_job") as task:
        task.apply_async.return_value = MagicMock(id="task-id")
        yield task


class TestQueueImport:
    def test_upload_is_stored_and_enqueued(self, client: TestClient, db_session: Session, upload_dir, mock_enqueue):
        response = client.post("/api/jobs/import", files={"file": ("products.csv", VALID_CSV, "text/csv")})

        assert response.status_code == status.HTTP_202_ACCEPTED
        body = response.json()
        assert body["sse_url"] == f"/api/progress/{body['job_id']}"
        assert "1 rows" in body["message"]

        job = db_session.get(BulkJob, UUID(body["job_id"]))
        assert job.operation is JobOperation.IMPORT
        assert job.status is JobStatus.QUEUED
        stored = list(upload_dir.glob("*.csv"))
        assert len(stored) == 1
        assert job.params["file_path"] == str(stored[0])
        mock_enqueue.apply_async.assert_called_once_with(args=[body["job_id"]], task_id=body["job_id"])

    def test_malformed_upload_is_rejected_before_queueing(self, client: TestClient, upload_dir, mock_enqueue):
        response = client.post("/api/jobs/import", files={"file": ("bad.csv", b'title\n"open\n', "text/csv")})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        mock_enqueue.apply_async.assert_not_called()
        assert list(upload_dir.glob("*.csv")) == []

    def test_empty_upload_is_rejected(self, client: TestClient, upload_dir, mock_enqueue):
        response = client.post("/api/jobs/import", files={"file": ("empty.csv", b"", "text/csv")})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json() == {"detail": "CSV file is required"}


class TestQueueOperation:
    def test_translate_job_records_params(self, client: TestClient, db_session: Session, mock_enqueue):
        response = client.post("/api/jobs/translate-all", json={"lang": "es", "limit": 3})

        assert response.status_code == status.HTTP_202_ACCEPTED
        jobs = BulkJobRepository(db_session).get_recent()
        assert jobs[0].operation is JobOperation.TRANSLATE
        assert jobs[0].params == {"limit": 3, "lang": "es"}
        mock_enqueue.apply_async.assert_called_once()

    def test_translate_job_requires_lang(self, client: TestClient, mock_enqueue):
        response = client.post("/api/jobs/translate-all", json={})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        mock_enqueue.apply_async.assert_not_called()

    def test_unknown_operation_is_not_found(self, client: TestClient, mock_enqueue):
        response = client.post("/api/jobs/delete-everything")

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_summaries_job_without_body(self, client: TestClient, mock_enqueue):
        response = client.post("/api/jobs/generate-summaries")

        assert response.status_code == status.HTTP_202_ACCEPTED


class TestGetJob:
    def test_returns_report(self, client: TestClient, db_session: Session):
        repository = BulkJobRepository(db_session)
        job = repository.create(JobOperation.ENSURE_CATEGORIES, {"limit": None})
        repository.record_result(job.id, attempted=2, updated=1, errors=["product 4: boom"])

        response = client.get(f"/api/jobs/{job.id}")

        body = response.json()
        assert response.status_code == status.HTTP_200_OK
        assert body["status"] == "done"
        assert body["operation"] == "ensure_categories"
        assert body["errors"] == ["product 4: boom"]

    def test_unknown_job(self, client: TestClient):
        response = client.get(f"/api/jobs/{uuid4()}")

        assert response.status_code == status.HTTP_404_NOT_FOUND


class TestProgressStream:
    def test_unknown_job_is_not_found(self, client: TestClient):
        response = client.get(f"/api/progress/{uuid4()}")

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_finished_job_streams_snapshot_and_closes(self, client: TestClient, db_session: Session, fake_redis):
        repository = BulkJobRepository(db_session)
        job = repository.create(JobOperation.GENERATE_SUMMARIES, {})
        repository.record_result(job.id, attempted=4, updated=4)

        with client.stream("GET", f"/api/progress/{job.id}") as response:
            assert response.status_code == status.HTTP_200_OK
            assert response.headers["content-type"].startswith("text/event-stream")
            events = [
                json.loads(line[len("data: "):])
                for line in response.iter_lines()
                if line.startswith("data: ")
            ]

        assert events[0]["status"] == "done"
        assert events[0]["processed"] == 4
        assert events[-1] == {"event": "close", "job_id": str(job.id)}

    def test_stored_progress_is_sent_first(self, client: TestClient, db_session: Session, fake_redis):
        job = BulkJobRepository(db_session).create(JobOperation.IMPORT, {})
        manager = ProgressManager(fake_redis)
        asyncio.run(manager.set_progress(job.id, {"status": "failed", "error_message": "boom"}))

        with client.stream("GET", f"/api/progress/{job.id}") as response:
            lines = [line for line in response.iter_lines() if line.startswith("data: ")]

        first = json.loads(lines[0][len("data: "):])
        assert first["status"] == "failed"
        assert first["error_message"] == "boom"
