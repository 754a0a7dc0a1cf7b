"""Tests for the background bulk job task."""
from __future__ import annotations

import json
from contextlib import contextmanager
from unittest.mock import MagicMock, Mock, patch
from uuid import uuid4

import pytest
from redis import Redis
from sqlalchemy.orm import Session

from catalog.models.bulk_job import JobOperation, JobStatus
from catalog.services.job_service import BulkJobRepository
from catalog.tasks.bulk_tasks import ProgressTracker, run_bulk_job

from conftest import FakeInference


class TestProgressTracker:
    """Tests for the ProgressTracker helper class."""

    def test_update_writes_hash_and_publishes(self):
        redis_mock = Mock(spec=Redis)
        job_id = str(uuid4())
        tracker = ProgressTracker(redis_mock, job_id, "import")

        tracker.update("running", 25, 100, force=True)

        mapping = redis_mock.hset.call_args.kwargs["mapping"]
        assert redis_mock.hset.call_args.args[0] == f"job_progress:hash:{job_id}"
        assert json.loads(mapping["status"]) == "running"
        assert json.loads(mapping["progress"]) == 25.0
        redis_mock.expire.assert_called_once_with(f"job_progress:hash:{job_id}", 3600)

        channel, message = redis_mock.publish.call_args.args
        assert channel == f"job_progress:channel:{job_id}"
        assert json.loads(message)["processed"] == 25

    def test_updates_are_throttled_unless_forced(self):
        redis_mock = Mock(spec=Redis)
        tracker = ProgressTracker(redis_mock, str(uuid4()), "translate")

        tracker.update("running", 1, 10, force=True)
        tracker.update("running", 2, 10)
        tracker.update("done", 10, 10, force=True)

        assert redis_mock.publish.call_count == 2

    def test_redis_failures_do_not_propagate(self):
        redis_mock = Mock(spec=Redis)
        redis_mock.hset.side_effect = ConnectionError("redis down")
        tracker = ProgressTracker(redis_mock, str(uuid4()), "import")

        tracker.update("running", 1, 1, force=True)


@pytest.fixture
def task_env(db_session: Session):
    """Run the task against the test session with Redis and OpenAI stubbed."""

    @contextmanager
    def scope():
        yield db_session
        db_session.commit()

    inference = FakeInference()
    with patch("catalog.tasks.bulk_tasks.session_scope", scope), patch(
        "catalog.tasks.bulk_tasks.Redis"
    ) as redis_cls, patch("catalog.tasks.bulk_tasks.InferenceService", return_value=inference):
        redis_cls.from_url.return_value = MagicMock()
        yield inference


class TestRunBulkJob:
    def test_summaries_job_stores_report(self, db_session: Session, make_product, task_env):
        make_product(description="first")
        failing = make_product(description="second")
        task_env.fail_on = {"second"}
        job = BulkJobRepository(db_session).create(JobOperation.GENERATE_SUMMARIES, {"limit": None})

        result = run_bulk_job.run(str(job.id))

        assert result["status"] == "done"
        db_session.refresh(job)
        assert job.status is JobStatus.DONE
        assert (job.attempted, job.updated, job.created) == (2, 1, 0)
        assert job.errors == [f"product {failing.id}: provider rejected second"]

    def test_import_job_reads_file_and_removes_it(self, db_session: Session, tmp_path, task_env):
        csv_path = tmp_path / "upload.csv"
        csv_path.write_text(
            "extId,title,description,price,category,image\n"
            "1,Desk,Oak desk,120,Furniture,https://example.com/desk.png\n"
            "2,Chair,Pine chair,-1,Furniture,https://example.com/chair.png\n"
        )
        job = BulkJobRepository(db_session).create(JobOperation.IMPORT, {"file_path": str(csv_path)})

        run_bulk_job.run(str(job.id))

        db_session.refresh(job)
        assert job.status is JobStatus.DONE
        assert (job.attempted, job.created, job.updated) == (2, 1, 0)
        assert len(job.errors) == 1
        assert not csv_path.exists()

    def test_precondition_failure_marks_job_failed(self, db_session: Session, make_product, task_env):
        make_product()
        task_env.configured = False
        job = BulkJobRepository(db_session).create(JobOperation.TRANSLATE, {"lang": "es"})

        result = run_bulk_job.run(str(job.id))

        assert result["status"] == "failed"
        db_session.refresh(job)
        assert job.status is JobStatus.FAILED
        assert job.error_message == "OpenAI API key is not configured"

    def test_missing_job_returns_failure(self, task_env):
        result = run_bulk_job.run(str(uuid4()))

        assert result["status"] == "failed"
        assert "not found" in result["error"]
