from __future__ import annotations

import json
from contextlib import contextmanager
from typing import IO, Iterator, Optional

from inspector.core.errors import EngineError
from inspector.core.proc import close_pipe, open_pipe, run_subprocess


class DockerEngine:
    """Container engine operations through the ``docker`` CLI.

    Every call is a separate short-lived process, so one instance can be
    shared by all worker threads.
    """

    def __init__(self, docker_bin: str = "docker", timeout: Optional[int] = None):
        self.docker_bin = docker_bin
        self.timeout = timeout

    def _run(self, *args: str) -> tuple[int, str, str]:
        cmd = [self.docker_bin, *args]
        try:
            return run_subprocess(cmd, timeout=self.timeout)
        except OSError as e:
            raise EngineError(f"cannot run {self.docker_bin}: {e}") from e

    @staticmethod
    def _message(rc: int, err: str, what: str) -> str:
        msg = (err or "").strip()
        return msg or f"{what} failed (exit {rc})"

    def inspect_image(self, ref: str) -> Optional[dict]:
        """Return the inspect document of a local image, or None if absent."""
        rc, out, err = self._run("image", "inspect", ref)
        if rc != 0:
            return None
        try:
            docs = json.loads(out or "[]")
        except ValueError as e:
            raise EngineError(f"unreadable inspect output for {ref}: {e}") from e
        if not isinstance(docs, list) or not docs:
            return None
        return docs[0]

    def pull(self, ref: str) -> None:
        rc, _, err = self._run("pull", "--quiet", ref)
        if rc != 0:
            raise EngineError(self._message(rc, err, f"pull {ref}"))

    def create_container(self, ref: str) -> str:
        # never started; "true" only satisfies images without a default command
        rc, out, err = self._run("create", ref, "true")
        if rc != 0:
            raise EngineError(self._message(rc, err, f"create container from {ref}"))
        lines = (out or "").strip().splitlines()
        if not lines:
            raise EngineError(f"create container from {ref} returned no id")
        return lines[-1].strip()

    def remove_container(self, container_id: str) -> None:
        rc, _, err = self._run("rm", "--force", container_id)
        if rc != 0:
            raise EngineError(self._message(rc, err, f"remove container {container_id}"))

    @contextmanager
    def archive(self, container_id: str, path: str, follow_links: bool = False) -> Iterator[IO[bytes]]:
        """Yield the tar stream of ``path`` inside a container.

        With ``follow_links`` a symlinked ``path`` is exported as its target.
        A non-zero exit of the export command takes precedence over whatever
        the consumer raised while reading the (usually empty) stream.
        """
        cmd = [self.docker_bin, "cp"]
        if follow_links:
            cmd.append("--follow-link")
        cmd += [f"{container_id}:{path}", "-"]
        try:
            proc = open_pipe(cmd)
        except OSError as e:
            raise EngineError(f"cannot run {self.docker_bin}: {e}") from e
        try:
            yield proc.stdout  # type: ignore[misc]
        except Exception as exc:
            rc, err = close_pipe(proc, self.timeout)
            if rc != 0:
                raise EngineError(self._message(rc, err, f"export {path}")) from exc
            raise
        rc, err = close_pipe(proc, self.timeout)
        if rc != 0:
            raise EngineError(self._message(rc, err, f"export {path}"))
