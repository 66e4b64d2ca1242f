from __future__ import annotations

import time
from typing import List, Optional

from .db import Database


class ResultCache:
    """Time-bounded store of serialized inspection results keyed by job id.

    Entries live in the `results` table and become invisible once
    `expires_at` has passed, whatever the job record says.
    """

    def __init__(self, db: Database):
        self.db = db

    def put(self, job_id: str, payload: str, ttl_sec: int) -> None:
        now = time.time()
        with self.db.connect() as con:
            con.execute(
                "INSERT OR REPLACE INTO results(job_id, payload, created, expires_at) VALUES(?,?,?,?)",
                (job_id, payload, now, now + ttl_sec),
            )
            con.commit()

    def get(self, job_id: str) -> Optional[str]:
        try:
            with self.db.connect() as con:
                cur = con.execute(
                    "SELECT payload FROM results WHERE job_id=? AND expires_at > ?",
                    (job_id, time.time()),
                )
                row = cur.fetchone()
                if not row:
                    return None
                return row["payload"]
        except Exception:
            return None

    def purge_expired(self) -> List[str]:
        now = time.time()
        with self.db.connect() as con:
            cur = con.execute("SELECT job_id FROM results WHERE expires_at <= ?", (now,))
            ids = [row["job_id"] for row in cur.fetchall()]
            if ids:
                con.executemany("DELETE FROM results WHERE job_id=?", [(i,) for i in ids])
                con.commit()
        return ids
