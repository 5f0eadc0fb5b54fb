"""Filesystem-backed local artifact cache in the Maven 2 layout."""
from __future__ import annotations

import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import BinaryIO, Callable, Dict, Optional

from thinlauncher import properties as props
from thinlauncher.constants import Constants
from thinlauncher.coordinates import Coordinate

logger = logging.getLogger(__name__)

# Records which remote snapshot build each cached snapshot file came from.
SNAPSHOT_STATUS_FILE = "resolver-status.properties"


class LocalRepository:
    """Local cache rooted at ``base``.

    Writes go to a temporary file in the destination directory and are
    renamed into place, so readers never observe a partial artifact.
    """

    def __init__(self, base: Path) -> None:
        self.base = Path(base)
        self._lock = threading.Lock()

    def path_for(self, coordinate: Coordinate) -> Path:
        return self.base / coordinate.path()

    def find(self, coordinate: Coordinate) -> Optional[Path]:
        """Cached file for the coordinate, or None."""
        path = self.path_for(coordinate)
        return path if path.is_file() else None

    def ensure_directory(self, directory: Path) -> None:
        with self._lock:
            directory.mkdir(parents=True, exist_ok=True)

    def write_atomic(self, target: Path, writer: Callable[[BinaryIO], bool]) -> bool:
        """Populate ``target`` through ``writer`` and rename it into place.

        Args:
            target: Final cache path.
            writer: Writes the content to the open temporary file; returns
                False when there was nothing to write.

        Returns:
            True when ``target`` was replaced.
        """
        self.ensure_directory(target.parent)
        fd, temp_name = tempfile.mkstemp(prefix=f".{target.name}.", suffix=".part", dir=target.parent)
        try:
            with os.fdopen(fd, "wb") as fh:
                written = writer(fh)
            if not written:
                os.unlink(temp_name)
                return False
            os.replace(temp_name, target)
        except BaseException:
            if os.path.exists(temp_name):
                os.unlink(temp_name)
            raise
        logger.debug("Cached %s", target)
        return True

    def write_text(self, target: Path, text: str) -> None:
        data = text.encode("utf-8")

        def _write(fh: BinaryIO) -> bool:
            fh.write(data)
            return True

        self.write_atomic(target, _write)

    def metadata_path(self, directory: str, repository_id: str) -> Path:
        """Per-repository copy of ``maven-metadata.xml`` for a repository-relative directory."""
        stem = Constants.METADATA_FILE[: -len(".xml")]
        return self.base / directory / f"{stem}-{repository_id}.xml"

    def read_metadata(self, directory: str, repository_id: str) -> Optional[str]:
        path = self.metadata_path(directory, repository_id)
        if not path.is_file():
            return None
        return path.read_text(encoding="utf-8")

    def write_metadata(self, directory: str, repository_id: str, text: str) -> None:
        self.write_text(self.metadata_path(directory, repository_id), text)

    def version_directories(self, group: str, name: str):
        """Names of version directories present for ``group:name``."""
        base = self.base / group.replace(".", "/") / name
        if not base.is_dir():
            return []
        return sorted(child.name for child in base.iterdir() if child.is_dir())

    def _status_path(self, coordinate: Coordinate) -> Path:
        return self.base / coordinate.directory() / SNAPSHOT_STATUS_FILE

    def snapshot_build(self, coordinate: Coordinate) -> Optional[str]:
        """Remote build id recorded for a cached snapshot file."""
        path = self._status_path(coordinate)
        with self._lock:
            if not path.is_file():
                return None
            status = props.load(path)
        return status.get(coordinate.file_name())

    def record_snapshot_build(self, coordinate: Coordinate, build: str) -> None:
        path = self._status_path(coordinate)
        with self._lock:
            status: Dict[str, str] = props.load(path) if path.is_file() else {}
            status[coordinate.file_name()] = build
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, temp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(props.dumps(status))
            os.replace(temp_name, path)
