"""Access to the generated static sitemap file on disk.

Reads and writes are blocking; callers run them through
``asyncio.to_thread``.  Writes go to a temporary file in the same directory
and are renamed over the target, so a reader sees either the old or the new
document, never a partial one.
"""

from __future__ import annotations

import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from stat import S_IMODE

from app.core.exceptions import NotFoundError, StorageError

logger = logging.getLogger(__name__)

#: Mode given to a newly created sitemap; an existing file keeps its own.
DEFAULT_FILE_MODE = 0o644


class StaticSitemapFile:
    def __init__(self, path: str | os.PathLike[str]) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def read(self) -> str:
        """Return the file contents.

        Raises:
            NotFoundError: the file does not exist (not yet generated).
            StorageError: the file exists but cannot be read.
        """
        try:
            return self._path.read_text(encoding="utf-8")
        except FileNotFoundError as exc:
            raise NotFoundError(f"Static sitemap not found at {self._path}") from exc
        except (OSError, UnicodeDecodeError) as exc:
            logger.exception("Failed to read static sitemap %s", self._path)
            raise StorageError(f"Cannot read static sitemap: {exc}") from exc

    def write(self, content: str) -> None:
        """Replace the whole file with *content*, keeping its permission bits."""
        tmp_name = None
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                delete=False,
                dir=str(self._path.parent),
                suffix=".tmp",
            ) as handle:
                handle.write(content)
                tmp_name = handle.name
            os.chmod(tmp_name, self._current_mode())
            Path(tmp_name).replace(self._path)
        except OSError as exc:
            logger.exception("Failed to write static sitemap %s", self._path)
            if tmp_name is not None:
                Path(tmp_name).unlink(missing_ok=True)
            raise StorageError(f"Cannot write static sitemap: {exc}") from exc

    def _current_mode(self) -> int:
        try:
            return S_IMODE(self._path.stat().st_mode)
        except FileNotFoundError:
            return DEFAULT_FILE_MODE

    def stat(self) -> tuple[int, datetime] | None:
        """Return ``(size_in_bytes, last_modified)``, or ``None`` if missing."""
        try:
            st = self._path.stat()
        except FileNotFoundError:
            return None
        return st.st_size, datetime.fromtimestamp(st.st_mtime, tz=timezone.utc)
