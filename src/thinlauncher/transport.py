"""Repository transport for ``file:`` and ``http(s):`` repositories."""
from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import BinaryIO, Dict, Optional, Tuple
from urllib.parse import urlsplit
from urllib.request import url2pathname

from thinlauncher.common import http_client
from thinlauncher.exceptions import RepositoryUnavailableError
from thinlauncher.models import RepositoryDescriptor

logger = logging.getLogger(__name__)


def _local_path(repository: RepositoryDescriptor, relative_path: str) -> Optional[Path]:
    """Filesystem path for a ``file:`` repository, else None."""
    parts = urlsplit(repository.url)
    if parts.scheme != "file":
        return None
    base = url2pathname(parts.netloc + parts.path if parts.netloc not in ("", "localhost") else parts.path)
    return Path(base) / relative_path


def _proxies(repository: RepositoryDescriptor) -> Optional[Dict[str, str]]:
    if repository.proxy is None:
        return None
    url = repository.proxy.url()
    return {"http": url, "https": url}


def _auth(repository: RepositoryDescriptor) -> Optional[Tuple[str, str]]:
    return repository.credentials.as_auth() if repository.credentials else None


def fetch_text(
    repository: RepositoryDescriptor, relative_path: str, timeout: Optional[float] = None
) -> Optional[str]:
    """Read a text document (POM, metadata) from a repository.

    Returns:
        The content, or None when the repository does not have it.

    Raises:
        RepositoryUnavailableError: If the repository cannot be reached.
    """
    path = _local_path(repository, relative_path)
    if path is not None:
        if not path.is_file():
            return None
        try:
            return path.read_text(encoding="utf-8")
        except OSError as exc:
            raise RepositoryUnavailableError(repository.id, str(path), str(exc)) from exc
    return http_client.get_text(
        repository.artifact_url(relative_path),
        context=repository.id,
        proxies=_proxies(repository),
        auth=_auth(repository),
        timeout=timeout,
    )


def fetch_to(
    repository: RepositoryDescriptor,
    relative_path: str,
    target: BinaryIO,
    timeout: Optional[float] = None,
) -> bool:
    """Copy an artifact from a repository into an open binary file.

    Returns:
        True when the artifact was written, False when the repository does
        not have it.

    Raises:
        RepositoryUnavailableError: If the repository cannot be reached.
    """
    path = _local_path(repository, relative_path)
    if path is not None:
        if not path.is_file():
            return False
        try:
            with open(path, "rb") as source:
                shutil.copyfileobj(source, target)
        except OSError as exc:
            raise RepositoryUnavailableError(repository.id, str(path), str(exc)) from exc
        return True
    return http_client.download(
        repository.artifact_url(relative_path),
        target,
        context=repository.id,
        proxies=_proxies(repository),
        auth=_auth(repository),
        timeout=timeout,
    )
