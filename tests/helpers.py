"""Shared fixtures-by-hand: tar builders, a fake engine and configs."""

from __future__ import annotations

import copy
import dataclasses
import io
import tarfile
import threading
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from inspector.core.config import Config
from inspector.core.errors import EngineError

ALPINE = "alpine:latest"
MISSING = "definitely-not-a-real-image:doesnotexist"

INSPECT_DOC = {
    "Id": "sha256:0ac33e5f5afa79e084075e8698a22d574816eea8d7b7d480586835657c3e1c8b",
    "Created": "2024-01-27T00:30:48.743965523Z",
    "Architecture": "amd64",
    "Os": "linux",
    "Size": 3072,
    "Config": {"Env": ["PATH=/usr/local/sbin:/usr/local/bin:/usr/sbin:/usr/bin:/sbin:/bin"]},
    "RootFS": {
        "Type": "layers",
        "Layers": ["sha256:aaa", "sha256:bbb", "sha256:ccc"],
    },
}

OS_RELEASE = b'NAME="Alpine Linux"\nID=alpine\n'


def make_tar(entries: List[Tuple[str, Optional[bytes]]], mtime: float = 1700000000) -> bytes:
    """Build an uncompressed tar; ``None`` content marks a directory."""
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w") as tf:
        for name, content in entries:
            info = tarfile.TarInfo(name)
            info.mtime = int(mtime)
            if content is None:
                info.type = tarfile.DIRTYPE
                info.mode = 0o755
                tf.addfile(info)
            else:
                info.size = len(content)
                info.mode = 0o644
                tf.addfile(info, io.BytesIO(content))
    return buf.getvalue()


def make_symlink_tar(name: str, target: str, mtime: float = 1700000000) -> bytes:
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w") as tf:
        info = tarfile.TarInfo(name)
        info.type = tarfile.SYMTYPE
        info.linkname = target
        info.mtime = int(mtime)
        info.mode = 0o777
        tf.addfile(info)
    return buf.getvalue()


def root_archive() -> bytes:
    return make_tar(
        [
            ("bin", None),
            ("bin/busybox", b"\x7fELF" + b"\x00" * 2044),
            ("etc", None),
            ("etc/os-release", OS_RELEASE),
            ("etc/apk", None),
            ("etc/apk/world", b"alpine-baselayout\nbusybox\n"),
        ]
    )


class FakeEngine:
    """In-memory stand-in for DockerEngine."""

    def __init__(self, images=None, registry=None, archives=None, links=None):
        self.images: Dict[str, dict] = dict(images or {})
        self.registry: Dict[str, dict] = dict(registry or {})
        self.archives: Dict[str, bytes] = dict(archives or {})
        # exports of symlinked paths when links are not followed
        self.links: Dict[str, bytes] = dict(links or {})
        self.pulls: List[str] = []
        self.created: List[str] = []
        self.removed: List[str] = []
        self.exports: List[Tuple[str, str]] = []
        self.fail_create = False
        self.fail_remove = False
        self.gate: Optional[threading.Event] = None
        self._lock = threading.Lock()

    def inspect_image(self, ref: str) -> Optional[dict]:
        if self.gate is not None:
            self.gate.wait(10)
        doc = self.images.get(ref)
        return copy.deepcopy(doc) if doc is not None else None

    def pull(self, ref: str) -> None:
        self.pulls.append(ref)
        if ref not in self.registry:
            raise EngineError(f"Error response from daemon: pull access denied for {ref}")
        self.images[ref] = self.registry[ref]

    def create_container(self, ref: str) -> str:
        if self.fail_create or ref not in self.images:
            raise EngineError(f"Error: No such image: {ref}")
        with self._lock:
            cid = f"c{len(self.created) + 1:04d}"
            self.created.append(cid)
        return cid

    def remove_container(self, container_id: str) -> None:
        if self.fail_remove:
            raise EngineError(f"Error: cannot remove container {container_id}")
        self.removed.append(container_id)

    @contextmanager
    def archive(self, container_id: str, path: str, follow_links: bool = False):
        self.exports.append((container_id, path))
        if not follow_links and path in self.links:
            yield io.BytesIO(self.links[path])
            return
        if path not in self.archives:
            raise EngineError(f"Error: Could not find the file {path} in container {container_id}")
        yield io.BytesIO(self.archives[path])


def alpine_engine(**kwargs) -> FakeEngine:
    engine = FakeEngine(
        registry={ALPINE: INSPECT_DOC},
        archives={
            "/": root_archive(),
            "/etc/os-release": make_tar([("os-release", OS_RELEASE)]),
        },
        links={"/etc/os-release": make_symlink_tar("os-release", "../usr/lib/os-release")},
    )
    for k, v in kwargs.items():
        setattr(engine, k, v)
    return engine


def make_config(root: Path, **overrides) -> Config:
    cfg = Config(
        data_root=root / "data",
        log_dir=root / "logs",
        db_path=root / "data" / "state.db",
        docker_bin="docker",
        inspect_path="/",
        result_ttl_sec=3600,
        max_workers=2,
        max_queue=2,
        engine_timeout_sec=None,
        cleanup_interval_sec=0,
        synthesize_missing_dirs=False,
    )
    return dataclasses.replace(cfg, **overrides)


def wait_for(predicate, timeout: float = 10.0, interval: float = 0.02):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        value = predicate()
        if value:
            return value
        time.sleep(interval)
    raise AssertionError("condition not met in time")
