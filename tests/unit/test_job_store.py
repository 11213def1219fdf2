"""
Unit tests for the JSON job metadata store.
"""

import json

import pytest

from apex_batch.domain.models import JobStatus
from apex_batch.infrastructure.storage import JsonJobStore


@pytest.fixture
def store(tmp_path):
    return JsonJobStore.in_directory(tmp_path)


def test_get_missing_job(store):
    assert store.get("nope") is None
    assert store.list_jobs() == {}


def test_save_and_get_ignores_case(store):
    store.save("Nightly", target_org="dev", soql_query="SELECT Id FROM Account", apex_template="tpl")

    record = store.get("NIGHTLY")
    assert record.job_name == "Nightly"
    assert record.target_org == "dev"
    assert record.status is JobStatus.PREPARED


def test_save_merges_fields(store):
    store.save("job", target_org="dev", apex_template="tpl")
    store.save("JOB", status=JobStatus.COMPLETED, result={"successful": 2, "failed": 0, "total": 2})

    jobs = store.list_jobs()
    assert list(jobs) == ["job"]
    assert jobs["job"].apex_template == "tpl"
    assert jobs["job"].status is JobStatus.COMPLETED
    assert jobs["job"].result == {"successful": 2, "failed": 0, "total": 2}


def test_none_values_do_not_erase(store):
    store.save("job", target_org="dev")
    store.save("job", target_org=None, status="paused")

    record = store.get("job")
    assert record.target_org == "dev"
    assert record.status is JobStatus.PAUSED


def test_file_is_plain_json(store):
    store.save("job", target_org="dev", status=JobStatus.RUNNING)

    data = json.loads(store.path.read_text(encoding="utf-8"))
    assert data["job"]["status"] == "running"
    assert "timestamp" in data["job"]


def test_unknown_field_rejected(store):
    with pytest.raises(ValueError):
        store.save("job", colour="blue")


def test_corrupt_file_reads_as_empty(store):
    store.path.write_text("{not json", encoding="utf-8")

    assert store.get("job") is None
    store.save("job", target_org="dev")
    assert store.get("job").target_org == "dev"


def test_unknown_status_falls_back_to_prepared(store):
    store.path.write_text(json.dumps({"job": {"status": "exploded"}}), encoding="utf-8")

    assert store.get("job").status is JobStatus.PREPARED
