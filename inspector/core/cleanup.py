from __future__ import annotations

import threading
import time

from .cache import ResultCache
from .config import Config
from .logging import console


def start_cleanup_loop(cfg: Config, cache: ResultCache, leases) -> None:
    """Purge expired cache rows and release expired sandbox leases periodically.

    ``leases`` is a SandboxLeases; job records are never purged here.
    """
    if cfg.cleanup_interval_sec <= 0:
        return

    def loop():
        while True:
            try:
                purged = cache.purge_expired()
                if purged:
                    console(f"cleanup results_purged={len(purged)}")
            except Exception as e:
                console(f"cleanup results_failed: {e}")
            try:
                leases.release_expired()
            except Exception as e:
                console(f"cleanup leases_failed: {e}")
            time.sleep(max(1, cfg.cleanup_interval_sec))

    t = threading.Thread(target=loop, name="cleanup-loop", daemon=True)
    t.start()
