"""Filesystem access used by the pipeline stages."""

from __future__ import annotations

import hashlib
import os
import tempfile
from pathlib import Path

import structlog

logger = structlog.get_logger(__name__)

DEFAULT_ENCODING = "utf-8"


class Storage:
    """Thin wrapper over the filesystem.

    Writes go through a temporary file plus rename, so a partially written
    file is never visible at the destination path.
    """

    def exists(self, path: str | Path) -> bool:
        """Check if a file or directory exists."""
        return Path(path).exists()

    def is_directory_readable(self, path: str | Path) -> bool:
        """Check if path is a directory the process can read."""
        p = Path(path)
        return p.is_dir() and os.access(p, os.R_OK)

    def read_file(self, path: str | Path, encoding: str = DEFAULT_ENCODING) -> str:
        """Read a text file."""
        logger.debug("storage_read", path=str(path))
        return Path(path).read_text(encoding=encoding)

    def read_bytes(self, path: str | Path) -> bytes:
        """Read a binary file."""
        logger.debug("storage_read_bytes", path=str(path))
        return Path(path).read_bytes()

    def write_file(
        self, path: str | Path, content: str, encoding: str = DEFAULT_ENCODING
    ) -> None:
        """Write a text file atomically, creating parent directories.

        Args:
            path: Destination path.
            content: Text to write.
            encoding: Character encoding.
        """
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=f".{target.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding=encoding) as fp:
                fp.write(content)
            os.replace(tmp_name, target)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        logger.debug("storage_write", path=str(target), size=len(content))

    def create_directory(self, path: str | Path) -> None:
        """Create a directory and its parents if missing."""
        Path(path).mkdir(parents=True, exist_ok=True)
        logger.debug("storage_mkdir", path=str(path))

    def hash_file(self, path: str | Path, sample_bytes: int) -> str:
        """Hash the first `sample_bytes` bytes of a file.

        Args:
            path: File to hash.
            sample_bytes: Number of leading bytes to include.

        Returns:
            Hex digest (sha256).
        """
        with Path(path).open("rb") as fp:
            sample = fp.read(sample_bytes)
        return hashlib.sha256(sample).hexdigest()
