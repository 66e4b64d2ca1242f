from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


def _parse_int(val: str | None, default: int) -> int:
    if val is None or str(val).strip() == "":
        return default
    try:
        return int(str(val).strip())
    except ValueError:
        return default


def _parse_bool(val: str | None, default: bool) -> bool:
    if val is None or str(val).strip() == "":
        return default
    return str(val).strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Config:
    """Centralized configuration derived from environment variables."""

    data_root: Path
    log_dir: Path
    db_path: Path
    docker_bin: str
    inspect_path: str

    result_ttl_sec: int
    max_workers: int
    max_queue: int
    engine_timeout_sec: Optional[int]
    cleanup_interval_sec: int
    synthesize_missing_dirs: bool

    @staticmethod
    def from_env() -> "Config":
        data_root = Path(os.environ.get("DATA_ROOT", "/data")).resolve()
        log_dir = Path(os.environ.get("LOG_DIR", "/var/log/image-inspector")).resolve()
        db_path = Path(os.environ.get("STATE_DB", str(data_root / "state.db"))).resolve()
        docker_bin = os.environ.get("DOCKER_BIN", "").strip() or "docker"

        inspect_path = os.environ.get("INSPECT_PATH", "").strip() or "/"
        if not inspect_path.startswith("/"):
            inspect_path = "/" + inspect_path

        # ENGINE_TIMEOUT_SEC=0 (default) leaves engine calls unbounded
        timeout = _parse_int(os.environ.get("ENGINE_TIMEOUT_SEC"), 0)
        engine_timeout_sec: Optional[int] = timeout if timeout > 0 else None

        return Config(
            data_root=data_root,
            log_dir=log_dir,
            db_path=db_path,
            docker_bin=docker_bin,
            inspect_path=inspect_path,
            result_ttl_sec=_parse_int(os.environ.get("RESULT_TTL_SEC"), 3600),
            max_workers=max(1, _parse_int(os.environ.get("MAX_WORKERS"), 4)),
            max_queue=max(0, _parse_int(os.environ.get("MAX_QUEUE"), 16)),
            engine_timeout_sec=engine_timeout_sec,
            cleanup_interval_sec=_parse_int(os.environ.get("CLEANUP_INTERVAL_SEC"), 60),
            synthesize_missing_dirs=_parse_bool(os.environ.get("SYNTHESIZE_MISSING_DIRS"), False),
        )

    def job_log(self, job_id: str) -> Path:
        return self.log_dir / f"{job_id}.log"

    def as_dict(self) -> dict:
        return {
            "data_root": str(self.data_root),
            "log_dir": str(self.log_dir),
            "db_path": str(self.db_path),
            "docker_bin": self.docker_bin,
            "inspect_path": self.inspect_path,
            "result_ttl_sec": self.result_ttl_sec,
            "max_workers": self.max_workers,
            "max_queue": self.max_queue,
            "engine_timeout_sec": self.engine_timeout_sec,
            "cleanup_interval_sec": self.cleanup_interval_sec,
            "synthesize_missing_dirs": self.synthesize_missing_dirs,
        }


def get_config() -> Config:
    """Return a process-wide singleton Config instance."""
    global _CONFIG_SINGLETON
    try:
        cfg = _CONFIG_SINGLETON  # type: ignore[name-defined]
    except NameError:
        _CONFIG_SINGLETON = Config.from_env()  # type: ignore[assignment]
        cfg = _CONFIG_SINGLETON
    return cfg  # type: ignore[return-value]
