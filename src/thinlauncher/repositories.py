"""Repository Policy Builder.

Turns the effective configuration, user settings and declared repositories
into the ordered repository list the resolver walks, with mirrors, proxies
and credentials attached per repository.
"""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterable, List, Mapping, Optional

from thinlauncher.archive import strip_file_prefix
from thinlauncher.common.logging_utils import extra_context, is_debug_enabled, safe_url
from thinlauncher.constants import Constants
from thinlauncher.models import RepositoryDescriptor, RepositoryPolicy
from thinlauncher.settings import Settings

logger = logging.getLogger(__name__)

_TRUE_VALUES = ("", "true", "yes", "1", "on")


def _flag(config: Mapping[str, str], key: str) -> bool:
    value = config.get(key)
    return value is not None and value.strip().lower() in _TRUE_VALUES


def local_repository_path(
    config: Mapping[str, str], settings: Settings, home: Optional[Path] = None
) -> Path:
    """Pick the local cache directory.

    ``<thin.root>/repository`` wins when a root is configured; otherwise
    ``localRepository`` from settings; otherwise ``~/.m2/repository``.
    """
    root = (config.get("thin.root") or "").strip()
    if root:
        return Path(os.path.expanduser(strip_file_prefix(root))) / Constants.ROOT_REPOSITORY_DIRECTORY
    if settings.local_repository:
        return Path(os.path.expanduser(settings.local_repository))
    if home is None:
        home = Path(os.path.expanduser("~"))
    return home / Constants.M2_DIRECTORY / Constants.ROOT_REPOSITORY_DIRECTORY


def default_repository(config: Mapping[str, str]) -> RepositoryDescriptor:
    url = (config.get("thin.repo") or "").strip() or Constants.DEFAULT_REPOSITORY_URL
    return RepositoryDescriptor(id=Constants.DEFAULT_REPOSITORY_ID, url=url)


def _ordered(groups: Iterable[Iterable[RepositoryDescriptor]]) -> List[RepositoryDescriptor]:
    """Concatenate repository groups keeping the first declaration of each id."""
    seen = set()
    result: List[RepositoryDescriptor] = []
    for group in groups:
        for repository in group:
            if repository.id in seen:
                continue
            seen.add(repository.id)
            result.append(repository)
    return result


def apply_settings(repository: RepositoryDescriptor, settings: Settings) -> RepositoryDescriptor:
    """Attach mirror, credentials and proxy from user settings."""
    mirror = settings.mirror_for(repository)
    if mirror is not None:
        logger.debug("Repository %s mirrored by %s", repository.id, mirror.id)
        repository = repository.with_(id=mirror.id, url=mirror.url)
    credentials = settings.servers.get(repository.id)
    if credentials is not None:
        repository = repository.with_(credentials=credentials)
    return repository.with_(proxy=settings.proxy_for(repository.url))


def build_repository_policy(
    config: Mapping[str, str],
    settings: Optional[Settings] = None,
    root_repositories: Iterable[RepositoryDescriptor] = (),
    archive_repositories: Iterable[RepositoryDescriptor] = (),
    home: Optional[Path] = None,
) -> RepositoryPolicy:
    """Build the repository policy for one resolver.

    Args:
        config: Effective configuration.
        settings: Parsed user settings; None means no settings file.
        root_repositories: Declarations from the root override directory,
            environment or command line.
        archive_repositories: Declarations embedded in the archive.
        home: User home directory, overridable for tests.

    Returns:
        RepositoryPolicy: ordered repositories, local cache and offline flag.
    """
    settings = settings or Settings()
    declared = _ordered([
        root_repositories,
        settings.active_repositories(),
        archive_repositories,
        [default_repository(config)],
    ])
    # A mirror can fold several declarations into one id.
    repositories = _ordered([[apply_settings(repo, settings) for repo in declared]])
    policy = RepositoryPolicy(
        repositories=tuple(repositories),
        local_repository=local_repository_path(config, settings, home),
        offline=_flag(config, "thin.offline") or settings.offline,
    )
    if is_debug_enabled(logger):
        for repo in policy.repositories:
            logger.debug(
                "Repository in policy",
                extra=extra_context(
                    event="repository_policy",
                    component="repositories",
                    repository=repo.id,
                    target=safe_url(repo.url),
                    proxy=repo.proxy.host if repo.proxy else None,
                    snapshots=repo.snapshots_enabled,
                    releases=repo.releases_enabled,
                ),
            )
    logger.debug(
        "Repository policy: %d repositories, local=%s, offline=%s",
        len(policy.repositories),
        policy.local_repository,
        policy.offline,
    )
    return policy
