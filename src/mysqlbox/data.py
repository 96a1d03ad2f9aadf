"""Initial-data artifacts and their materialization to a temporary file.

An artifact is either an open binary stream or an in-memory buffer, never
both. It is only written to disk while a sandbox is being provisioned::

    artifact = InitialData.from_reader(open("schema.sql", "rb"))
    with materialize(artifact) as path:
        ...  # bind-mount ``path`` into the container
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO

from mysqlbox.errors import InitialDataError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StreamData:
    """Artifact backed by an open binary stream, drained on materialization."""

    stream: BinaryIO

    def write_to(self, dest: BinaryIO) -> None:
        shutil.copyfileobj(self.stream, dest)


@dataclass(frozen=True)
class BufferData:
    """Artifact backed by an in-memory buffer."""

    buffer: bytes

    def write_to(self, dest: BinaryIO) -> None:
        dest.write(self.buffer)


InitialDataType = StreamData | BufferData


class InitialData:
    """Constructors for the two artifact variants."""

    @staticmethod
    def from_reader(reader: BinaryIO) -> StreamData:
        return StreamData(reader)

    @staticmethod
    def from_buffer(buf: bytes | str) -> BufferData:
        if isinstance(buf, str):
            buf = buf.encode("utf-8")
        return BufferData(bytes(buf))

    @staticmethod
    def from_file(path: str | Path) -> BufferData:
        """Read a SQL file eagerly into a buffer artifact."""
        try:
            return BufferData(Path(path).read_bytes())
        except OSError as exc:
            raise InitialDataError(f"Cannot read {path}: {exc}") from exc


@contextmanager
def materialize(artifact: InitialDataType) -> Iterator[Path]:
    """Write *artifact* to a new temporary ``.sql`` file and yield its path.

    The file is removed when the ``with`` block exits, however it exits.

    Raises:
        InitialDataError: If the source cannot be read or the file written.
    """
    try:
        fd, name = tempfile.mkstemp(prefix="schema-", suffix=".sql")
    except OSError as exc:
        raise InitialDataError(f"Cannot create temporary file: {exc}") from exc

    path = Path(name)
    try:
        try:
            with os.fdopen(fd, "wb") as dest:
                artifact.write_to(dest)
            # The engine reads init scripts as an unprivileged user
            path.chmod(0o644)
        except (OSError, ValueError, TypeError) as exc:
            # ValueError: closed stream; TypeError: text-mode stream
            raise InitialDataError(f"Cannot write initial data to {path}: {exc}") from exc
        logger.debug("Initial data written to %s (%d bytes)", path, path.stat().st_size)
        yield path
    finally:
        path.unlink(missing_ok=True)
