# modello — lightweight template compiler with an on-disk compile cache
# Copyright (C) 2024-2026 Dr Horst Herb
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU Affero General Public License for more details.
#
# You should have received a copy of the GNU Affero General Public License
# along with this program.  If not, see <https://www.gnu.org/licenses/>.

"""On-disk store for compiled template artifacts.

Artifacts live directly under the cache directory (``<root>/cached`` by
default), one file per source template:

    <md5 of the template's resolved path>.json

The file *name* is stable for a given template path.  Whether the stored
artifact is current is decided by comparing the fingerprint of a fresh
compile with the fingerprint of the file's bytes; on mismatch (or when the
file is missing) the artifact is rewritten.  Writes go to a temporary file
in the same directory and are moved into place with :func:`os.replace`, so
a failed write leaves any previous artifact untouched.

The store never deletes artifacts.  It assumes one process per cache
directory; there is no locking.
"""

from __future__ import annotations

import hashlib
import logging
import os
import tempfile
from pathlib import Path

logger = logging.getLogger(__name__)

ARTIFACT_SUFFIX = ".json"


def _default_file_mode() -> int:
    """Mode a plain ``open(path, "w")`` would give under the current umask."""
    umask = os.umask(0)
    os.umask(umask)
    return 0o666 & ~umask


def fingerprint(data: str | bytes) -> str:
    """Hex MD5 of *data* (text is encoded as UTF-8)."""
    if isinstance(data, str):
        data = data.encode("utf-8")
    return hashlib.md5(data, usedforsecurity=False).hexdigest()


class CompiledCache:
    """Write-through cache of compiled artifacts keyed by template path.

    Parameters
    ----------
    cache_dir:
        Directory holding the artifacts.  Created (with parents) if it does
        not exist.
    """

    def __init__(self, cache_dir: str | Path) -> None:
        self.cache_dir = Path(cache_dir)
        self.cache_dir.mkdir(parents=True, exist_ok=True)

    def artifact_path(self, identity: str | Path) -> Path:
        """Location of the artifact for the template at *identity*."""
        return self.cache_dir / f"{fingerprint(str(identity))}{ARTIFACT_SUFFIX}"

    def is_current(self, path: Path, compiled_text: str) -> bool:
        """True if *path* exists and holds exactly *compiled_text*."""
        if not path.is_file():
            return False
        return fingerprint(path.read_bytes()) == fingerprint(compiled_text)

    def ensure_cached(self, identity: str | Path, compiled_text: str) -> Path:
        """Make sure the artifact for *identity* matches *compiled_text*.

        Returns the artifact path whether or not a write happened.  Write
        errors (permissions, full disk) propagate.
        """
        path = self.artifact_path(identity)
        if self.is_current(path, compiled_text):
            logger.debug("Cache hit for %s (%s)", identity, path.name)
            return path
        self._write(path, compiled_text)
        logger.info("Cached compiled template %s -> %s", identity, path)
        return path

    def _write(self, path: Path, text: str) -> None:
        fd, tmp_name = tempfile.mkstemp(
            dir=self.cache_dir, prefix=f".{path.stem}.", suffix=".tmp",
        )
        tmp = Path(tmp_name)
        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="") as fh:
                fh.write(text)
            os.chmod(tmp, _default_file_mode())
            os.replace(tmp, path)
        except BaseException:
            tmp.unlink(missing_ok=True)
            raise
