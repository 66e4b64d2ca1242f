from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Optional

from .db import Database
from .errors import NotFoundError
from .models import COMPLETED, FAILED, PENDING, PROCESSING, InspectionResult, JobState

# status -> states it may be entered from
_SOURCES = {
    PROCESSING: (PENDING,),
    COMPLETED: (PROCESSING,),
    FAILED: (PENDING, PROCESSING),
}


@dataclass
class JobStore:
    db: Database

    def insert(self, js: JobState) -> None:
        with self.db.connect() as con:
            con.execute(
                "INSERT INTO jobs(job_id,image,path,status,result,error,created,updated) VALUES(?,?,?,?,?,?,?,?)",
                (
                    js.job_id,
                    js.image,
                    js.path,
                    js.status,
                    js.result.model_dump_json() if js.result is not None else None,
                    js.error,
                    js.created,
                    js.updated,
                ),
            )
            con.commit()

    def get(self, job_id: str) -> JobState:
        with self.db.connect() as con:
            cur = con.execute("SELECT * FROM jobs WHERE job_id=?", (job_id,))
            row = cur.fetchone()
            if not row:
                raise NotFoundError(f"job not found: {job_id}")
            return JobState(
                job_id=row["job_id"],
                image=row["image"],
                path=row["path"],
                status=row["status"],
                result=InspectionResult.model_validate_json(row["result"]) if row["result"] else None,
                error=row["error"],
                created=row["created"],
                updated=row["updated"],
            )

    def get_raw_result(self, job_id: str) -> Optional[str]:
        with self.db.connect() as con:
            cur = con.execute("SELECT status, result FROM jobs WHERE job_id=?", (job_id,))
            row = cur.fetchone()
            if not row:
                raise NotFoundError(f"job not found: {job_id}")
            if row["status"] != COMPLETED:
                return None
            return row["result"]

    def set_status(self, job_id: str, status: str, result: Optional[str] = None, error: Optional[str] = None) -> bool:
        """Move a job forward; returns False when the transition is not allowed.

        The WHERE clause on the current status keeps terminal records
        immutable even when two writers race.
        """
        sources = _SOURCES.get(status)
        if not sources:
            raise ValueError(f"not a target status: {status}")
        marks = ",".join("?" for _ in sources)
        with self.db.connect() as con:
            cur = con.execute(
                f"UPDATE jobs SET status=?, result=?, error=?, updated=? WHERE job_id=? AND status IN ({marks})",
                (status, result, error, time.time(), job_id, *sources),
            )
            con.commit()
            return cur.rowcount == 1

    def complete(self, job_id: str, payload: str) -> bool:
        return self.set_status(job_id, COMPLETED, result=payload)

    def fail(self, job_id: str, error: str) -> bool:
        return self.set_status(job_id, FAILED, error=error or "inspection failed")
