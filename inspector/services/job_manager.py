from __future__ import annotations

import threading
import time
import uuid
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

from inspector.core.archive import archive_base
from inspector.core.cache import ResultCache
from inspector.core.config import Config
from inspector.core.errors import CapacityError, NotFoundError, ValidationError
from inspector.core.jobs import JobStore
from inspector.core.logging import console, log_exception, log_line
from inspector.core.models import PENDING, PROCESSING, FileRecord, InspectionResult, JobState
from inspector.core.tree import build_tree
from inspector.services.images import ImageAcquirer
from inspector.services.sandbox import Sandbox, SandboxLeases


class JobManager:
    def __init__(
        self,
        cfg: Config,
        jobs: JobStore,
        cache: ResultCache,
        acquirer: ImageAcquirer,
        sandbox: Sandbox,
        leases: SandboxLeases,
    ):
        self.cfg = cfg
        self.jobs = jobs
        self.cache = cache
        self.acquirer = acquirer
        self.sandbox = sandbox
        self.leases = leases
        self.pool = ThreadPoolExecutor(max_workers=cfg.max_workers, thread_name_prefix="inspect")
        # running + queued jobs
        self.capacity = cfg.max_workers + cfg.max_queue
        self._lock = threading.Lock()
        self._in_flight = 0

    def create(self, image: str, path: Optional[str] = None) -> JobState:
        image = (image or "").strip()
        if not image:
            raise ValidationError("image reference is required")
        js = JobState(
            job_id=str(uuid.uuid4()),
            image=image,
            path=path or self.cfg.inspect_path,
            status=PENDING,
            created=time.time(),
        )
        self.jobs.insert(js)
        log_line(self.cfg.job_log(js.job_id), f"job_created image={image} path={js.path}")
        return js

    def get(self, job_id: str) -> JobState:
        return self.jobs.get(job_id)

    def get_status(self, job_id: str) -> dict:
        js = self.jobs.get(job_id)
        return {
            "jobId": js.job_id,
            "image": js.image,
            "path": js.path,
            "status": js.status,
            "result": js.result.model_dump(mode="json") if js.result is not None else None,
            "error": js.error,
            "created": js.created,
            "updated": js.updated,
        }

    # Schedules background job
    def dispatch(self, job_id: str) -> None:
        if not self._claim_slot():
            self.jobs.fail(job_id, "rejected: inspection capacity exhausted")
            raise CapacityError("inspection capacity exhausted")
        try:
            future = self.pool.submit(self._process_job, job_id)
        except RuntimeError:
            self._release_slot()
            self.jobs.fail(job_id, "rejected: job manager is shut down")
            raise
        future.add_done_callback(self._release_slot)

    def submit(self, image: str, path: Optional[str] = None) -> JobState:
        if self.in_flight() >= self.capacity:
            raise CapacityError("inspection capacity exhausted")
        js = self.create(image, path)
        self.dispatch(js.job_id)
        return js

    def in_flight(self) -> int:
        with self._lock:
            return self._in_flight

    def _claim_slot(self) -> bool:
        with self._lock:
            if self._in_flight >= self.capacity:
                return False
            self._in_flight += 1
            return True

    def _release_slot(self, _future=None) -> None:
        with self._lock:
            self._in_flight -= 1

    def shutdown(self, wait: bool = False) -> None:
        self.pool.shutdown(wait=wait)

    def _process_job(self, job_id: str) -> None:
        log_path = self.cfg.job_log(job_id)
        try:
            if not self.jobs.set_status(job_id, PROCESSING):
                log_line(log_path, "skip: job is not pending")
                return
            js = self.jobs.get(job_id)
            console(f"job={job_id} stage=processing image={js.image}")

            meta = self.acquirer.acquire(js.image, log_path)

            console(f"job={job_id} stage=listing path={js.path}")
            container_id = self.leases.acquire(job_id, js.image, self.cfg.result_ttl_sec, log_path)
            records = self.sandbox.read_archive(container_id, js.path, include_content=False)
            log_line(log_path, f"extracted entries={len(records)}")

            files = build_tree(
                records,
                root=archive_base(js.path),
                synthesize_missing=self.cfg.synthesize_missing_dirs,
            )
            result = InspectionResult(
                image=js.image,
                path=js.path,
                layers=meta.layers,
                config=meta.config,
                files=files,
                manifest=meta.manifest,
            )
            payload = result.model_dump_json()
            # cache first so a completed status always has a cached result behind it
            self.cache.put(job_id, payload, self.cfg.result_ttl_sec)
            self.jobs.complete(job_id, payload)
            log_line(log_path, "job_done")
            console(f"job={job_id} stage=completed")
        except Exception as e:
            log_exception(log_path, "job_failed", e)
            self.leases.release(job_id, log_path)
            self.jobs.fail(job_id, str(e) or e.__class__.__name__)
            console(f"job={job_id} stage=failed error={e}")

    def read_file(self, job_id: str, path: str) -> FileRecord:
        """Read one path from a job's image, reusing its sandbox when alive."""
        js = self.jobs.get(job_id)
        container_id = self.leases.get(job_id)
        if container_id is None:
            return self.sandbox.fetch_file(js.image, path)
        return self.sandbox.read_file(container_id, path)

    def cached_result(self, job_id: str) -> str:
        """Serialized result from the cache, else from a completed job record."""
        payload = self.cache.get(job_id)
        if payload is not None:
            return payload
        payload = self.jobs.get_raw_result(job_id)
        if payload is None:
            raise NotFoundError(f"result not found: {job_id}")
        return payload
