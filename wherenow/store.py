"""Append-only JSON Lines location log guarded by a whole-file exclusive flock.

Writers (append, patch) hold ``LOCK_EX`` for the full write or read-modify-write.
Readers take no lock: a read that overlaps a patch's truncate+copy window can
see a short file. A stuck lock holder blocks every later writer.
"""

import fcntl
import logging
import os
import shutil
import tempfile
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Generator

from wherenow.errors import NotFound, StorageError
from wherenow.records import (
    DEFAULT_REASON,
    apply_patch,
    id_matches,
    parse_line,
    public_view,
    reason_of,
    serialize,
)

logger = logging.getLogger(__name__)


def iter_lines_reversed(f, chunk_size: int = 4096) -> Generator[bytes, None, None]:
    """Yield the lines of a binary file newest-first without loading it whole.

    The cursor starts at EOF and moves backward one chunk at a time. The first
    piece of each split may be a partial line, so it is carried into the next
    chunk; once the cursor reaches 0 the carry is the file's first line.
    """
    f.seek(0, os.SEEK_END)
    pos = f.tell()
    carry = b""

    while pos > 0:
        read_size = min(chunk_size, pos)
        pos -= read_size
        f.seek(pos)
        chunk = f.read(read_size)
        if len(chunk) != read_size:
            raise OSError(f"short read at offset {pos}")

        lines = (chunk + carry).split(b"\n")
        carry = lines.pop(0)
        for line in reversed(lines):
            yield line

    yield carry


@contextmanager
def exclusive_lock(f):
    try:
        fcntl.flock(f.fileno(), fcntl.LOCK_EX)
    except OSError as e:
        raise StorageError("cannot_lock_log") from e
    try:
        yield f
    finally:
        fcntl.flock(f.fileno(), fcntl.LOCK_UN)


class LocationLog:
    def __init__(self, path: str, chunk_size: int = 4096, time_func=None):
        self._path = path
        self._chunk_size = chunk_size
        self._time_func = time_func or (lambda: datetime.now(timezone.utc))

    @property
    def path(self) -> str:
        return self._path

    def recent(self, limit: int) -> list[dict]:
        """Return up to *limit* upload records, newest first, in their public form."""
        if not os.access(self._path, os.R_OK):
            raise StorageError("log_not_readable")
        try:
            f = open(self._path, "rb")
        except OSError as e:
            raise StorageError("cannot_open_log") from e

        entries = []
        with f:
            try:
                for line in iter_lines_reversed(f, self._chunk_size):
                    if len(entries) >= limit:
                        break
                    data = parse_line(line)
                    if data is None or reason_of(data) != DEFAULT_REASON:
                        continue
                    entries.append(public_view(data))
            except OSError as e:
                logger.error("Failed reading %s: %s", self._path, e)
                raise StorageError("log_not_readable") from e
        return entries

    def find(self, record_id: str) -> dict | None:
        """Return the first stored record with *record_id* (case-insensitive), or None."""
        try:
            f = open(self._path, "rb")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageError("cannot_open_log") from e
        with f:
            for line in f:
                data = parse_line(line)
                if data is not None and id_matches(data, record_id):
                    return data
        return None

    def append(self, record: dict) -> None:
        """Append one record as a single write under the exclusive lock."""
        line = serialize(record)
        try:
            directory = os.path.dirname(self._path)
            if directory:
                os.makedirs(directory, exist_ok=True)
            f = open(self._path, "ab")
        except OSError as e:
            logger.error("Cannot open %s for append: %s", self._path, e)
            raise StorageError("cannot_open_log") from e

        with f, exclusive_lock(f):
            try:
                f.write(line)
                f.flush()
            except OSError as e:
                logger.error("Write to %s failed: %s", self._path, e)
                raise StorageError("write_failed") from e

        logger.info("Appended record %s", record.get("id"))

    def patch(self, record_id: str, changes: dict) -> dict:
        """Rewrite the first line whose id matches, keeping its position and untouched fields.

        The file is streamed into a temp file next to it; only on a match is the
        log truncated and refilled from the temp file. Raises NotFound if no
        line matches. The temp file is always removed.
        """
        try:
            f = open(self._path, "r+b")
        except FileNotFoundError as e:
            raise NotFound("id_not_found") from e
        except OSError as e:
            logger.error("Cannot open %s for patch: %s", self._path, e)
            raise StorageError("cannot_open_log") from e

        with f, exclusive_lock(f):
            try:
                tmp = tempfile.NamedTemporaryFile(
                    mode="w+b",
                    dir=os.path.dirname(os.path.abspath(self._path)),
                    prefix=".wherenow-",
                    suffix=".tmp",
                    delete=False,
                )
            except OSError as e:
                logger.error("Cannot create temp file for %s: %s", self._path, e)
                raise StorageError("cannot_create_temp") from e

            try:
                with tmp:
                    patched = self._copy_with_patch(f, tmp, record_id, changes)
                    if patched is None:
                        raise NotFound("id_not_found")
                    self._replace_contents(f, tmp)
            except OSError as e:
                logger.error("Rewrite of %s failed: %s", self._path, e)
                raise StorageError("rewrite_failed") from e
            finally:
                try:
                    os.unlink(tmp.name)
                except FileNotFoundError:
                    pass

        logger.info("Patched record %s (%s)", record_id, ", ".join(sorted(changes)))
        return patched

    def _copy_with_patch(self, src, dst, record_id, changes):
        patched = None
        src.seek(0)
        for line in src:
            if patched is None:
                data = parse_line(line)
                if data is not None and id_matches(data, record_id):
                    patched = apply_patch(data, changes, self._time_func())
                    dst.write(serialize(patched))
                    continue
            dst.write(line)
        dst.flush()
        return patched

    @staticmethod
    def _replace_contents(f, tmp):
        expected = tmp.tell()
        tmp.seek(0)
        f.seek(0)
        f.truncate(0)
        shutil.copyfileobj(tmp, f)
        f.flush()
        if f.tell() != expected:
            raise OSError(f"copied {f.tell()} of {expected} bytes")
