from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Optional


def run_subprocess(cmd: list[str], cwd: Optional[Path] = None, env: Optional[dict] = None, timeout: Optional[int] = 600) -> tuple[int, str, str]:
    proc = subprocess.Popen(cmd, cwd=str(cwd) if cwd else None, stdout=subprocess.PIPE, stderr=subprocess.PIPE, text=True, env=env)
    try:
        out, err = proc.communicate(timeout=timeout)
        return proc.returncode, out, err
    except subprocess.TimeoutExpired:
        proc.kill()
        out, err = proc.communicate()
        return 124, out, err


def open_pipe(cmd: list[str], env: Optional[dict] = None) -> subprocess.Popen:
    """Start a command whose binary stdout is consumed as a stream."""
    return subprocess.Popen(cmd, stdout=subprocess.PIPE, stderr=subprocess.PIPE, env=env)


def close_pipe(proc: subprocess.Popen, timeout: Optional[int] = None) -> tuple[int, str]:
    """Drain what is left of stdout, wait, and return (returncode, stderr)."""
    try:
        if proc.stdout is not None:
            while proc.stdout.read(1024 * 1024):
                pass
            proc.stdout.close()
        err = proc.stderr.read() if proc.stderr is not None else b""
        rc = proc.wait(timeout=timeout)
    except subprocess.TimeoutExpired:
        proc.kill()
        proc.wait()
        return 124, "timed out"
    finally:
        if proc.stderr is not None:
            proc.stderr.close()
    return rc, (err or b"").decode("utf-8", errors="replace")
