from __future__ import annotations

import json
import threading

import pytest

from helpers import ALPINE, MISSING, alpine_engine, make_config, wait_for
from inspector.core.cache import ResultCache
from inspector.core.db import Database
from inspector.core.errors import CapacityError, NotFoundError, ValidationError
from inspector.core.jobs import JobStore
from inspector.services.images import ImageAcquirer
from inspector.services.job_manager import JobManager
from inspector.services.sandbox import Sandbox, SandboxLeases


def _manager(tmp_path, engine=None, **overrides):
    cfg = make_config(tmp_path, **overrides)
    db = Database(cfg.db_path)
    db.init_schema()
    engine = engine or alpine_engine()
    sandbox = Sandbox(engine)
    jm = JobManager(cfg, JobStore(db), ResultCache(db), ImageAcquirer(engine), sandbox, SandboxLeases(sandbox))
    return jm, engine


def _terminal(jm, job_id):
    return wait_for(lambda: jm.get(job_id) if jm.get(job_id).terminal else None)


def test_create_is_pending_and_validates_reference(tmp_path):
    jm, _ = _manager(tmp_path)
    js = jm.create(ALPINE)
    assert js.status == "pending"
    assert js.path == "/"
    status = jm.get_status(js.job_id)
    assert status["jobId"] == js.job_id
    assert status["image"] == ALPINE and status["path"] == "/"
    assert (status["status"], status["result"], status["error"]) == ("pending", None, None)
    with pytest.raises(ValidationError):
        jm.create("  ")


def test_submit_returns_before_processing_completes(tmp_path):
    gate = threading.Event()
    jm, engine = _manager(tmp_path, alpine_engine(gate=gate))
    js = jm.submit(ALPINE)
    assert jm.get(js.job_id).status in ("pending", "processing")
    gate.set()
    done = _terminal(jm, js.job_id)
    assert done.status == "completed"


def test_completed_job_writes_result_to_record_and_cache(tmp_path):
    jm, engine = _manager(tmp_path)
    js = jm.submit(ALPINE)
    done = _terminal(jm, js.job_id)

    assert done.status == "completed" and done.error is None
    result = done.result
    assert result.config.os == "linux"
    assert [n.name for n in result.files] == ["bin", "etc"]
    etc = result.files[1]
    assert [n.name for n in etc.children] == ["os-release", "apk"]
    assert etc.children[0].size == "30.0B"
    assert json.loads(jm.cache.get(js.job_id)) == done.result.model_dump(mode="json")
    assert jm.cached_result(js.job_id) == jm.jobs.get_raw_result(js.job_id)
    # the listing container stays leased for later file reads
    assert engine.removed == []
    assert jm.leases.get(js.job_id) == engine.created[0]


def test_terminal_record_is_stable(tmp_path):
    jm, _ = _manager(tmp_path)
    js = jm.submit(ALPINE)
    first = _terminal(jm, js.job_id)
    jm.dispatch(js.job_id)
    wait_for(lambda: jm.in_flight() == 0)
    assert jm.get(js.job_id) == first
    assert jm.get_status(js.job_id) == jm.get_status(js.job_id)


def test_unresolvable_image_fails_the_job(tmp_path):
    jm, engine = _manager(tmp_path)
    js = jm.submit(MISSING)
    done = _terminal(jm, js.job_id)
    assert done.status == "failed"
    assert "pull access denied" in done.error
    assert done.result is None
    assert jm.cache.get(js.job_id) is None
    with pytest.raises(NotFoundError):
        jm.cached_result(js.job_id)
    assert "job_failed" in jm.cfg.job_log(js.job_id).read_text(encoding="utf-8")


def test_listing_failure_releases_the_lease(tmp_path):
    jm, engine = _manager(tmp_path, inspect_path="/app")
    js = jm.submit(ALPINE)
    done = _terminal(jm, js.job_id)
    assert done.status == "failed"
    assert "Could not find" in done.error
    assert engine.removed == engine.created
    assert jm.leases.get(js.job_id) is None


def test_read_file_reuses_job_sandbox(tmp_path):
    jm, engine = _manager(tmp_path)
    js = jm.submit(ALPINE)
    _terminal(jm, js.job_id)
    record = jm.read_file(js.job_id, "/etc/os-release")
    assert record.content.startswith(b'NAME="Alpine Linux"')
    assert len(engine.created) == 1

    jm.leases.release_all()
    jm.read_file(js.job_id, "/etc/os-release")
    assert len(engine.created) == 2
    with pytest.raises(NotFoundError):
        jm.read_file("unknown", "/etc/os-release")


def test_capacity_limit_rejects_submissions(tmp_path):
    gate = threading.Event()
    jm, _ = _manager(tmp_path, alpine_engine(gate=gate), max_workers=1, max_queue=1)
    a = jm.submit(ALPINE)
    b = jm.submit(ALPINE)
    with pytest.raises(CapacityError):
        jm.submit(ALPINE)
    gate.set()
    assert _terminal(jm, a.job_id).status == "completed"
    assert _terminal(jm, b.job_id).status == "completed"
    wait_for(lambda: jm.in_flight() == 0)
    assert _terminal(jm, jm.submit(ALPINE).job_id).status == "completed"


def test_unknown_job_status_raises(tmp_path):
    jm, _ = _manager(tmp_path)
    with pytest.raises(NotFoundError):
        jm.get_status("missing")
