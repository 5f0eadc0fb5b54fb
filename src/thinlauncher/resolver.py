"""Dependency resolver.

Computes the transitive closure of a set of declarations (nearest-wins,
breadth first, with root dependency management overriding transitive
versions), then materializes every artifact into the local repository,
consulting the cache first and walking the remote repositories in policy
order. Work inside one BFS level and the final downloads run on a bounded
thread pool; the result order is always the closure order.
"""
from __future__ import annotations

import logging
import threading
import xml.etree.ElementTree as ET
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from thinlauncher import transport, versions
from thinlauncher.archive import CoordinateStore
from thinlauncher.common.logging_utils import Timer, extra_context, is_debug_enabled
from thinlauncher.common.xml_utils import parse_xml, text_of, texts_of
from thinlauncher.config import EffectiveConfiguration
from thinlauncher.constants import Constants
from thinlauncher.coordinates import SNAPSHOT_SUFFIX, ArtifactKey, Coordinate, Dependency, Exclusion
from thinlauncher.exceptions import ConfigurationError, RepositoryUnavailableError, UnresolvedArtifactError
from thinlauncher.local_repository import LocalRepository
from thinlauncher.models import RepositoryDescriptor, RepositoryPolicy, ResolutionResult, ResolvedArtifact
from thinlauncher.pom import DependencyKey, EffectivePom, RawDependency, RawPom, merge_chain, parse_pom
from thinlauncher.repositories import build_repository_policy
from thinlauncher.settings import Settings, find_settings, load_settings

logger = logging.getLogger(__name__)


class ResolverState(Enum):
    """Lifecycle of a resolver handle.

    Args:
        Enum (string): Lifecycle states.
    """

    UNINITIALIZED = "uninitialized"
    INITIALIZED = "initialized"
    CLOSED = "closed"


@dataclass(frozen=True)
class SnapshotBuild:
    """A concrete remote build of a snapshot coordinate."""
    repository: RepositoryDescriptor
    file_version: str
    build: str


def snapshot_build(root: ET.Element, coordinate: Coordinate, repository: RepositoryDescriptor) -> SnapshotBuild:
    """Pick the build of ``coordinate`` described by version-level metadata.

    ``snapshotVersions`` entries matching extension and classifier win, then
    the ``snapshot`` timestamp and build number; a repository without unique
    snapshots serves the plain ``-SNAPSHOT`` file, identified by ``lastUpdated``.
    """
    last_updated = text_of(root, "versioning/lastUpdated")
    for elem in root.findall("versioning/snapshotVersions/snapshotVersion"):
        if text_of(elem, "extension") != coordinate.extension:
            continue
        if text_of(elem, "classifier") != coordinate.classifier:
            continue
        value = text_of(elem, "value")
        if value:
            return SnapshotBuild(repository, value, value)
    timestamp = text_of(root, "versioning/snapshot/timestamp")
    number = text_of(root, "versioning/snapshot/buildNumber")
    if timestamp and number:
        base = coordinate.version[: -len(SNAPSHOT_SUFFIX)]
        value = f"{base}-{timestamp}-{number}"
        return SnapshotBuild(repository, value, value)
    return SnapshotBuild(repository, coordinate.version, f"{coordinate.version}@{last_updated}")


def _read_metadata(text: str, repository: RepositoryDescriptor, directory: str) -> Optional[ET.Element]:
    """Parsed ``maven-metadata.xml``; a malformed document is skipped with a warning."""
    try:
        return parse_xml(text, f"{repository.id}:{directory}/{Constants.METADATA_FILE}")
    except ConfigurationError as exc:
        logger.warning("%s; ignoring metadata from %s", exc, repository.id)
        return None


class _Session:  # pylint: disable=too-many-instance-attributes
    """State for one resolution call: fetched POMs, snapshot metadata, ranges."""

    def __init__(
        self,
        policy: RepositoryPolicy,
        local: LocalRepository,
        executor: ThreadPoolExecutor,
        timeout: float,
    ) -> None:
        self.policy = policy
        self.local = local
        self.executor = executor
        self.timeout = timeout
        self.root_versions: Dict[ArtifactKey, str] = {}
        self._lock = threading.Lock()
        self._poms: Dict[Coordinate, Optional[RawPom]] = {}
        self._snapshot_metadata: Dict[str, Optional[Tuple[RepositoryDescriptor, ET.Element]]] = {}
        self._ranges: Dict[Tuple[str, str, str], str] = {}

    # Artifact retrieval

    def fetch(self, coordinate: Coordinate) -> Path:
        """Local path of ``coordinate``, downloading it when needed.

        Raises:
            UnresolvedArtifactError: If no repository could supply it.
        """
        if coordinate.is_snapshot:
            return self._fetch_snapshot(coordinate)
        cached = self.local.find(coordinate)
        if cached is not None:
            return cached
        if self.policy.offline:
            raise UnresolvedArtifactError(coordinate, "offline and not in the local repository")
        candidates = [repo for repo in self.policy.repositories if repo.accepts(coordinate)]
        return self._download(coordinate, coordinate.version, candidates)

    def _download(
        self, coordinate: Coordinate, file_version: str, repositories: Sequence[RepositoryDescriptor]
    ) -> Path:
        target = self.local.path_for(coordinate)
        relative = f"{coordinate.directory()}/{coordinate.file_name(file_version)}"
        tried: List[str] = []
        for repo in repositories:
            tried.append(repo.id)
            try:
                with Timer() as t:
                    found = self.local.write_atomic(
                        target, lambda fh, repo=repo: transport.fetch_to(repo, relative, fh, self.timeout)
                    )
            except RepositoryUnavailableError as exc:
                logger.warning("%s; trying next repository for %s", exc, coordinate.failure_form())
                continue
            if found:
                logger.info("Downloaded %s from %s", coordinate.failure_form(), repo.id)
                if is_debug_enabled(logger):
                    logger.debug(
                        "Artifact downloaded",
                        extra=extra_context(
                            event="artifact_download",
                            component="resolver",
                            repository=repo.id,
                            target=relative,
                            duration_ms=t.duration_ms(),
                        ),
                    )
                return target
        reason = f"not found in {', '.join(tried)}" if tried else "no repository accepts it"
        raise UnresolvedArtifactError(coordinate, reason)

    def _fetch_snapshot(self, coordinate: Coordinate) -> Path:
        cached = self.local.find(coordinate)
        if self.policy.offline:
            if cached is not None:
                return cached
            raise UnresolvedArtifactError(coordinate, "offline and not in the local repository")
        metadata = self._version_metadata(coordinate)
        if metadata is None:
            if cached is not None:
                return cached
            return self._download(coordinate, coordinate.version, self.policy.snapshot_repositories())
        build = snapshot_build(metadata[1], coordinate, metadata[0])
        if cached is not None and self.local.snapshot_build(coordinate) == build.build:
            return cached
        try:
            path = self._download(coordinate, build.file_version, [build.repository])
        except UnresolvedArtifactError:
            if cached is None:
                raise
            logger.warning("Keeping cached %s; build %s is not available", coordinate.failure_form(), build.file_version)
            return cached
        self.local.record_snapshot_build(coordinate, build.build)
        logger.debug("Snapshot %s is build %s", coordinate.failure_form(), build.file_version)
        return path

    def _version_metadata(self, coordinate: Coordinate) -> Optional[Tuple[RepositoryDescriptor, ET.Element]]:
        """Snapshot metadata from the first snapshot repository that has it, once per call."""
        directory = coordinate.directory()
        with self._lock:
            if directory in self._snapshot_metadata:
                return self._snapshot_metadata[directory]
        found = None
        for repo in self.policy.snapshot_repositories():
            try:
                text = transport.fetch_text(repo, f"{directory}/{Constants.METADATA_FILE}", self.timeout)
            except RepositoryUnavailableError as exc:
                logger.warning("%s; trying next repository", exc)
                continue
            root = _read_metadata(text, repo, directory) if text else None
            if root is not None:
                self.local.write_metadata(directory, repo.id, text)
                found = (repo, root)
                break
        with self._lock:
            self._snapshot_metadata[directory] = found
        return found

    def resolve_version(self, coordinate: Coordinate) -> Coordinate:
        """Replace a version range with the highest available matching version."""
        if not coordinate.is_range:
            return coordinate
        memo_key = (coordinate.group, coordinate.name, coordinate.version)
        with self._lock:
            if memo_key in self._ranges:
                return coordinate.with_version(self._ranges[memo_key])
        directory = f"{coordinate.group.replace('.', '/')}/{coordinate.name}"
        candidates: Set[str] = {
            version
            for version in self.local.version_directories(coordinate.group, coordinate.name)
            if self.local.find(coordinate.with_version(version)) is not None
        }
        for repo in self.policy.repositories:
            text = self.local.read_metadata(directory, repo.id)
            root = _read_metadata(text, repo, directory) if text else None
            if root is None and not self.policy.offline:
                try:
                    text = transport.fetch_text(repo, f"{directory}/{Constants.METADATA_FILE}", self.timeout)
                except RepositoryUnavailableError as exc:
                    logger.warning("%s; trying next repository", exc)
                    continue
                root = _read_metadata(text, repo, directory) if text else None
                if root is not None:
                    self.local.write_metadata(directory, repo.id, text)
            if root is not None:
                candidates.update(texts_of(root, "versioning/versions/version"))
        try:
            selected = versions.select_highest(coordinate.version, candidates)
        except ValueError as exc:
            raise ConfigurationError(str(exc)) from exc
        if selected is None:
            raise UnresolvedArtifactError(coordinate, f"no version matches {coordinate.version}")
        logger.debug("Range %s resolved to %s", coordinate.failure_form(), selected)
        with self._lock:
            self._ranges[memo_key] = selected
        return coordinate.with_version(selected)

    # POM model

    def load_pom(self, coordinate: Coordinate) -> Optional[RawPom]:
        """The raw POM for a coordinate; None (with a warning) when unavailable."""
        pom_coordinate = self.resolve_version(coordinate).pom()
        with self._lock:
            if pom_coordinate in self._poms:
                return self._poms[pom_coordinate]
        try:
            path = self.fetch(pom_coordinate)
        except UnresolvedArtifactError as exc:
            logger.warning("%s; assuming no dependencies", exc)
            raw = None
        else:
            raw = parse_pom(path.read_bytes(), str(path))
        with self._lock:
            self._poms[pom_coordinate] = raw
        return raw

    def effective_pom(self, raw: RawPom, seen: Optional[Set[Coordinate]] = None) -> EffectivePom:
        """Merge ``raw`` with its parents and import its BOMs."""
        chain = [raw]
        current = raw
        while current.parent is not None and len(chain) < Constants.MAX_PARENT_DEPTH:
            parent = self.load_pom(current.parent)
            if parent is None:
                break
            chain.append(parent)
            current = parent
        effective = merge_chain(chain)
        seen = set(seen or ())
        seen.add(effective.coordinate)
        for bom in effective.imports:
            if bom in seen or not bom.version:
                continue
            imported = self.load_pom(bom)
            if imported is None:
                continue
            effective.import_managed(list(self.effective_pom(imported, seen).managed.values()))
        return effective

    def import_boms(self, managed: Dict[DependencyKey, RawDependency], boms: Iterable[Coordinate]) -> None:
        for bom in boms:
            raw = self.load_pom(bom)
            if raw is None:
                raise UnresolvedArtifactError(bom.pom(), "BOM could not be read")
            for entry in self.effective_pom(raw).managed.values():
                managed.setdefault(entry.key, entry)

    # Closure

    def _visit(self, coordinate: Coordinate, expand: bool) -> Tuple[Coordinate, List[Dependency]]:
        coordinate = self.resolve_version(coordinate)
        if not expand:
            return coordinate, []
        raw = self.load_pom(coordinate)
        if raw is None:
            return coordinate, []
        children: List[Dependency] = []
        for child in self.effective_pom(raw).direct_dependencies():
            if not child.on_runtime_classpath:
                continue
            managed_version = self.root_versions.get(child.coordinate.key)
            if managed_version:
                child = Dependency(
                    child.coordinate.with_version(managed_version),
                    child.scope,
                    child.optional,
                    child.exclusions,
                )
            children.append(child)
        return coordinate, children

    def closure(
        self, declarations: Sequence[Dependency], exclusions: Sequence[Exclusion], expand: bool
    ) -> List[Coordinate]:
        """Breadth-first closure; the shallowest, first-declared version of a key wins."""
        selected: Set[ArtifactKey] = set()
        order: List[Coordinate] = []
        level: List[Tuple[Dependency, FrozenSet[Exclusion]]] = [(d, frozenset()) for d in declarations]
        depth = 0
        while level:
            nodes: List[Tuple[Coordinate, FrozenSet[Exclusion]]] = []
            for dependency, inherited in level:
                coordinate = dependency.coordinate
                if coordinate.key in selected:
                    continue
                if any(ex.matches(coordinate) for ex in exclusions) or any(
                    ex.matches(coordinate) for ex in inherited
                ):
                    logger.debug("Excluded %s", coordinate.failure_form())
                    continue
                if not coordinate.version:
                    version = self.root_versions.get(coordinate.key)
                    if not version:
                        raise UnresolvedArtifactError(coordinate, "no version declared or managed")
                    coordinate = coordinate.with_version(version)
                selected.add(coordinate.key)
                nodes.append((coordinate, inherited | dependency.exclusions))
            visited = list(self.executor.map(lambda node: self._visit(node[0], expand), nodes))
            level = []
            for (concrete, children), (_, scope_exclusions) in zip(visited, nodes):
                order.append(concrete)
                level.extend((child, scope_exclusions) for child in children)
            if is_debug_enabled(logger) and nodes:
                logger.debug(
                    "Resolved dependency level",
                    extra=extra_context(
                        event="closure_level",
                        component="resolver",
                        depth=depth,
                        artifacts=len(nodes),
                    ),
                )
            depth += 1
        return order

    def resolve(
        self,
        declarations: Sequence[Dependency],
        managed: Optional[Mapping[DependencyKey, RawDependency]],
        boms: Sequence[Coordinate],
        exclusions: Sequence[Exclusion],
        computed: bool,
    ) -> ResolutionResult:
        root_managed: Dict[DependencyKey, RawDependency] = dict(managed or {})
        self.import_boms(root_managed, boms)
        self.root_versions = {key: entry.version for key, entry in root_managed.items() if entry.version}
        order = self.closure(declarations, exclusions, expand=not computed)
        artifacts = [c for c in order if c.extension != "pom"]
        paths = list(self.executor.map(self.fetch, artifacts))
        return ResolutionResult([ResolvedArtifact(c, p) for c, p in zip(artifacts, paths)])


def _as_configuration(config: Optional[Mapping[str, str]]) -> EffectiveConfiguration:
    if isinstance(config, EffectiveConfiguration):
        return config
    values = dict(Constants.DEFAULTS)
    values.update(config or {})
    return EffectiveConfiguration(values)


class DependencyResolver:
    """An explicit resolver handle.

    Holds the repository policy, local repository and worker pool between
    resolutions. ``close()`` discards them; the next use initializes again,
    re-reading user settings.
    """

    def __init__(
        self,
        config: Optional[Mapping[str, str]] = None,
        *,
        settings: Optional[Settings] = None,
        home: Optional[Path] = None,
        store: Optional[CoordinateStore] = None,
    ) -> None:
        self.config = _as_configuration(config)
        self.home = home
        self.store = store
        self.state = ResolverState.UNINITIALIZED
        self._explicit_settings = settings
        self._settings: Optional[Settings] = None
        self._policy: Optional[RepositoryPolicy] = None
        self._local: Optional[LocalRepository] = None
        self._executor: Optional[ThreadPoolExecutor] = None
        self._timeout = float(Constants.REQUEST_TIMEOUT)
        self._lock = threading.Lock()

    def __enter__(self) -> "DependencyResolver":
        return self.initialize()

    def __exit__(self, *exc_info) -> None:
        self.close()

    def initialize(self) -> "DependencyResolver":
        """Build the repository policy and worker pool unless already done."""
        with self._lock:
            if self.state is ResolverState.INITIALIZED:
                return self
            if self.state is ResolverState.CLOSED:
                self.state = ResolverState.UNINITIALIZED
            settings = self._explicit_settings
            if settings is None:
                settings = load_settings(find_settings(self.home, self.config.get_path("thin.root")))
            root_repositories = self.store.root_repositories() if self.store else []
            archive_repositories = self.store.archive_repositories() if self.store else []
            policy = build_repository_policy(
                self.config, settings, root_repositories, archive_repositories, self.home
            )
            threads = max(1, self.config.get_int("thin.threads", Constants.MAX_WORKERS))
            self._timeout = self.config.get_float("thin.timeout", float(Constants.REQUEST_TIMEOUT))
            self._settings = settings
            self._policy = policy
            self._local = LocalRepository(policy.local_repository)
            self._executor = ThreadPoolExecutor(max_workers=threads, thread_name_prefix="thin-resolver")
            self.state = ResolverState.INITIALIZED
            logger.debug("Resolver initialized with %d worker threads", threads)
        return self

    def close(self) -> None:
        """Discard cached state; the next use re-initializes."""
        with self._lock:
            if self._executor is not None:
                self._executor.shutdown(wait=True)
            self._executor = None
            self._policy = None
            self._local = None
            self._settings = None
            self.state = ResolverState.CLOSED
            logger.debug("Resolver closed")

    @property
    def policy(self) -> RepositoryPolicy:
        self.initialize()
        return self._policy

    @property
    def settings(self) -> Settings:
        self.initialize()
        return self._settings

    def _session(self, policy: Optional[RepositoryPolicy]) -> _Session:
        self.initialize()
        policy = policy or self._policy
        local = self._local
        if local is None or local.base != policy.local_repository:
            local = LocalRepository(policy.local_repository)
        return _Session(policy, local, self._executor, self._timeout)

    def resolve(
        self,
        declarations: Sequence[Dependency],
        policy: Optional[RepositoryPolicy] = None,
        *,
        managed: Optional[Mapping[DependencyKey, RawDependency]] = None,
        boms: Sequence[Coordinate] = (),
        exclusions: Sequence[Exclusion] = (),
        computed: bool = False,
    ) -> ResolutionResult:
        """Resolve declarations to local artifact files.

        Args:
            declarations: Direct dependencies in declaration order.
            policy: Repository policy; defaults to this handle's policy.
            managed: Root dependency management overriding transitive versions.
            boms: Extra BOMs whose dependency management is imported.
            exclusions: Global exclusions applied across the closure.
            computed: Treat ``declarations`` as the complete closure.

        Returns:
            ResolutionResult: artifacts in deterministic closure order.

        Raises:
            UnresolvedArtifactError: If any artifact cannot be obtained.
        """
        session = self._session(policy)
        with Timer() as t:
            result = session.resolve(declarations, managed, boms, exclusions, computed)
        logger.debug("Resolved %d artifacts in %d ms", len(result), t.duration_ms())
        return result

    def effective_pom(self, raw: RawPom, policy: Optional[RepositoryPolicy] = None) -> EffectivePom:
        """Effective model of ``raw`` with parents fetched through the repositories."""
        return self._session(policy).effective_pom(raw)

    def resolve_store(
        self, store: Optional[CoordinateStore] = None, policy: Optional[RepositoryPolicy] = None
    ) -> ResolutionResult:
        """Resolve everything a CoordinateStore declares."""
        store = store or self.store
        if store is None:
            raise ConfigurationError("No coordinate store to resolve")
        session = self._session(policy)
        pom_dependencies: List[Dependency] = []
        managed: Dict[DependencyKey, RawDependency] = {}
        if store.pom is not None and not store.computed:
            effective = session.effective_pom(store.pom)
            pom_dependencies = effective.direct_dependencies()
            managed = dict(effective.managed)
        with Timer() as t:
            result = session.resolve(
                store.declarations(pom_dependencies), managed, store.boms(), store.exclusions(), store.computed
            )
        logger.info("Resolved %d artifacts in %d ms", len(result), t.duration_ms())
        return result


_instance: Optional[DependencyResolver] = None
_instance_lock = threading.Lock()


def new_resolver(config: Optional[Mapping[str, str]] = None, **kwargs) -> DependencyResolver:
    """Create a resolver handle owned by the caller."""
    return DependencyResolver(config, **kwargs)


def instance(config: Optional[Mapping[str, str]] = None, **kwargs) -> DependencyResolver:
    """Process-wide resolver, created and initialized on first use."""
    global _instance  # pylint: disable=global-statement
    with _instance_lock:
        if _instance is None:
            _instance = DependencyResolver(config, **kwargs)
        resolver = _instance
    return resolver.initialize()


def close() -> None:
    """Close and forget the process-wide resolver."""
    global _instance  # pylint: disable=global-statement
    with _instance_lock:
        resolver, _instance = _instance, None
    if resolver is not None:
        resolver.close()
