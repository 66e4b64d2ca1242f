from __future__ import annotations

import time
from typing import Optional

import requests

TERMINAL = ("completed", "failed")


class InspectorClient:
    """HTTP client for the inspection service with the polling loop built in.

    There is no push channel: ``wait`` re-queries the job status at a fixed
    interval until it is terminal. Giving up (timeout) only stops polling;
    the job keeps running on the server.
    """

    def __init__(self, base_url: str, session=None, interval: float = 1.0, timeout: int = 60):
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.interval = interval
        self.timeout = timeout

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def submit(self, image: str, path: Optional[str] = None) -> str:
        body = {"image": image}
        if path:
            body["path"] = path
        r = self.session.post(self._url("/inspect"), json=body, timeout=self.timeout)
        r.raise_for_status()
        return r.json()["jobId"]

    def status(self, job_id: str) -> dict:
        r = self.session.get(self._url(f"/jobs/{job_id}"), timeout=self.timeout)
        r.raise_for_status()
        return r.json()

    def wait(self, job_id: str, timeout: Optional[float] = None) -> dict:
        deadline = time.monotonic() + timeout if timeout is not None else None
        while True:
            data = self.status(job_id)
            if data.get("status") in TERMINAL:
                return data
            if deadline is not None and time.monotonic() >= deadline:
                raise TimeoutError(f"job {job_id} still {data.get('status')} after {timeout}s")
            time.sleep(self.interval)

    def result(self, job_id: str, query: Optional[str] = None) -> dict:
        params = {"q": query} if query else None
        r = self.session.get(self._url(f"/jobs/{job_id}/result"), params=params, timeout=self.timeout)
        r.raise_for_status()
        return r.json()

    def file(self, image: str, path: str) -> dict:
        r = self.session.get(self._url("/files"), params={"image": image, "path": path}, timeout=self.timeout)
        r.raise_for_status()
        return r.json()

    def job_file(self, job_id: str, path: str) -> dict:
        r = self.session.get(self._url(f"/jobs/{job_id}/files"), params={"path": path}, timeout=self.timeout)
        r.raise_for_status()
        return r.json()
