"""Decode engine archive streams into flat file records."""

from __future__ import annotations

import posixpath
import tarfile
from datetime import datetime, timezone
from typing import IO, List

from .errors import ExtractionError
from .models import DIRECTORY, FILE, FileRecord


def archive_base(root_path: str) -> str:
    """Directory the archive entries are relative to.

    Exporting ``/usr/share`` yields entries named ``share/...``, so names are
    resolved against ``/usr``.
    """
    trimmed = (root_path or "/").rstrip("/")
    if not trimmed:
        return "/"
    return posixpath.dirname(trimmed) or "/"


def entry_path(base: str, name: str) -> str:
    rel = name
    while rel.startswith("./"):
        rel = rel[2:]
    rel = rel.strip("/")
    if rel in ("", "."):
        return base
    return posixpath.normpath(posixpath.join(base, rel))


def _modified(mtime: float) -> str:
    return datetime.fromtimestamp(mtime or 0, tz=timezone.utc).isoformat()


class _StrictTarInfo(tarfile.TarInfo):
    """Header parser that only accepts a zero block as the end of the stream.

    ``tarfile`` treats any unreadable header past the first one as the end of
    the archive, which would silently cut the listing short.
    """

    @classmethod
    def fromtarfile(cls, tarfile_):
        try:
            return super().fromtarfile(tarfile_)
        except tarfile.EOFHeaderError:
            raise
        except tarfile.HeaderError as e:
            raise ExtractionError(f"malformed archive header at offset {tarfile_.offset}: {e}") from e


def extract_records(stream: IO[bytes], root_path: str, include_content: bool = True) -> List[FileRecord]:
    """Read a tar stream to the end and return one record per entry.

    Entries keep stream order. File content is buffered only when
    ``include_content`` is set, but the stream is drained either way.
    """
    base = archive_base(root_path)
    records: List[FileRecord] = []
    try:
        with tarfile.open(fileobj=stream, mode="r|*", tarinfo=_StrictTarInfo) as tf:
            for member in tf:
                path = entry_path(base, member.name)
                is_dir = member.isdir()
                content = None
                if member.isfile():
                    fh = tf.extractfile(member)
                    data = fh.read() if fh is not None else b""
                    if len(data) != member.size:
                        raise ExtractionError(f"truncated entry: {member.name}")
                    if include_content:
                        content = data
                records.append(
                    FileRecord(
                        name=posixpath.basename(path) or "/",
                        path=path,
                        size=0 if is_dir else member.size,
                        kind=DIRECTORY if is_dir else FILE,
                        modified=_modified(member.mtime),
                        content=content,
                    )
                )
    except ExtractionError:
        raise
    except (tarfile.TarError, EOFError, OSError) as e:
        raise ExtractionError(f"malformed archive stream: {e}") from e
    return records
