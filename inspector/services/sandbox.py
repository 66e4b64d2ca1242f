from __future__ import annotations

import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Iterator, List, Optional, TypeVar

from inspector.core.archive import extract_records
from inspector.core.errors import EngineError, ExtractionError, NotFoundError, SandboxError
from inspector.core.logging import console, log_exception, log_line
from inspector.core.models import FileRecord
from inspector.services.engine import DockerEngine

T = TypeVar("T")


class Sandbox:
    """Non-executing containers used only as a handle on an image filesystem."""

    def __init__(self, engine: DockerEngine):
        self.engine = engine

    def create(self, image: str) -> str:
        try:
            return self.engine.create_container(image)
        except EngineError as e:
            raise SandboxError(str(e)) from e

    def remove(self, container_id: str) -> None:
        try:
            self.engine.remove_container(container_id)
        except EngineError as e:
            raise SandboxError(str(e)) from e

    @contextmanager
    def filesystem_handle(self, image: str, log_path: Optional[Path] = None) -> Iterator[str]:
        """Yield a fresh container id for ``image`` and always remove it.

        A removal failure is reported but never replaces the outcome of the
        body.
        """
        container_id = self.create(image)
        log_line(log_path, f"sandbox_created id={container_id} image={image}")
        try:
            yield container_id
        finally:
            try:
                self.remove(container_id)
                log_line(log_path, f"sandbox_removed id={container_id}")
            except SandboxError as e:
                log_exception(log_path, f"sandbox_remove_failed id={container_id}", e)

    def with_filesystem_handle(self, image: str, fn: Callable[[str], T], log_path: Optional[Path] = None) -> T:
        with self.filesystem_handle(image, log_path) as container_id:
            return fn(container_id)

    def read_archive(
        self, container_id: str, path: str, include_content: bool = True, follow_links: bool = False
    ) -> List[FileRecord]:
        try:
            with self.engine.archive(container_id, path, follow_links=follow_links) as stream:
                return extract_records(stream, path, include_content=include_content)
        except EngineError as e:
            raise ExtractionError(str(e)) from e

    def read_file(self, container_id: str, path: str) -> FileRecord:
        # a symlinked file is read through to its target
        records = self.read_archive(container_id, path, follow_links=True)
        if not records:
            raise NotFoundError(f"no such path: {path}")
        return records[0]

    def fetch_file(self, image: str, path: str) -> FileRecord:
        """Read one path from ``image`` through a one-shot sandbox."""
        return self.with_filesystem_handle(image, lambda cid: self.read_file(cid, path))


@dataclass
class Lease:
    container_id: str
    image: str
    expires_at: float


class SandboxLeases:
    """One sandbox per job, kept alive for as long as the job's cached result.

    The tree listing and later file fetches of the same job share the
    container; the cleanup loop releases it once the lease expires.
    """

    def __init__(self, sandbox: Sandbox):
        self.sandbox = sandbox
        self._lock = threading.Lock()
        self._leases: Dict[str, Lease] = {}

    def acquire(self, job_id: str, image: str, ttl_sec: int, log_path: Optional[Path] = None) -> str:
        with self._lock:
            lease = self._leases.get(job_id)
            if lease is not None:
                return lease.container_id
        container_id = self.sandbox.create(image)
        with self._lock:
            winner = self._leases.get(job_id)
            if winner is None:
                self._leases[job_id] = Lease(container_id, image, time.time() + ttl_sec)
        if winner is not None:
            # another caller leased this job while we were creating
            try:
                self.sandbox.remove(container_id)
            except SandboxError as e:
                log_exception(log_path, f"sandbox_remove_failed job={job_id} id={container_id}", e)
            return winner.container_id
        log_line(log_path, f"sandbox_leased id={container_id} ttl={ttl_sec}")
        return container_id

    def get(self, job_id: str) -> Optional[str]:
        with self._lock:
            lease = self._leases.get(job_id)
            if lease is None or lease.expires_at <= time.time():
                return None
            return lease.container_id

    def release(self, job_id: str, log_path: Optional[Path] = None) -> None:
        with self._lock:
            lease = self._leases.pop(job_id, None)
        if lease is None:
            return
        try:
            self.sandbox.remove(lease.container_id)
            log_line(log_path, f"sandbox_released id={lease.container_id}")
        except SandboxError as e:
            log_exception(log_path, f"sandbox_remove_failed job={job_id} id={lease.container_id}", e)

    def release_expired(self) -> List[str]:
        now = time.time()
        with self._lock:
            expired = [jid for jid, lease in self._leases.items() if lease.expires_at <= now]
        for jid in expired:
            self.release(jid)
        if expired:
            console(f"sandbox_leases released={len(expired)}")
        return expired

    def release_all(self) -> None:
        with self._lock:
            ids = list(self._leases)
        for jid in ids:
            self.release(jid)

    def __len__(self) -> int:
        with self._lock:
            return len(self._leases)
