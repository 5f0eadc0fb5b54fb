"""Data models shared by the policy builder, resolver and classpath assembler."""

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Iterator, List, Optional, Set, Tuple

from thinlauncher.coordinates import Coordinate


@dataclass(frozen=True)
class Credentials:
    """Username/password pair for a repository or proxy."""
    username: str
    password: str = ""

    def as_auth(self) -> Tuple[str, str]:
        return (self.username, self.password)


@dataclass(frozen=True)
class Proxy:
    """An HTTP(S) proxy taken from user settings."""
    id: str
    protocol: str
    host: str
    port: int
    credentials: Optional[Credentials] = None
    non_proxy_hosts: Tuple[str, ...] = ()

    def url(self) -> str:
        auth = ""
        if self.credentials is not None:
            auth = f"{self.credentials.username}:{self.credentials.password}@"
        return f"http://{auth}{self.host}:{self.port}"


@dataclass(frozen=True)
class RepositoryDescriptor:
    """A remote repository with its per-repository policy attached."""
    id: str
    url: str
    releases_enabled: bool = True
    snapshots_enabled: bool = True
    proxy: Optional[Proxy] = None
    credentials: Optional[Credentials] = None

    def with_(self, **changes) -> "RepositoryDescriptor":
        return replace(self, **changes)

    def accepts(self, coordinate: Coordinate) -> bool:
        """Whether this repository's release/snapshot policy allows the coordinate."""
        if coordinate.is_snapshot:
            return self.snapshots_enabled
        return self.releases_enabled

    def artifact_url(self, relative_path: str) -> str:
        return f"{self.url.rstrip('/')}/{relative_path}"


@dataclass(frozen=True)
class RepositoryPolicy:
    """Everything the resolver needs to know about where artifacts live."""
    repositories: Tuple[RepositoryDescriptor, ...]
    local_repository: Path
    offline: bool = False

    def snapshot_repositories(self) -> List[RepositoryDescriptor]:
        return [repo for repo in self.repositories if repo.snapshots_enabled]


@dataclass(frozen=True)
class ResolvedArtifact:
    """One entry of a resolution result."""
    coordinate: Coordinate
    path: Path


@dataclass
class ResolutionResult:
    """Ordered, deduplicated artifacts of a transitive closure."""
    artifacts: List[ResolvedArtifact] = field(default_factory=list)

    def __post_init__(self) -> None:
        seen: Set[Coordinate] = set()
        deduped: List[ResolvedArtifact] = []
        for artifact in self.artifacts:
            if artifact.coordinate not in seen:
                seen.add(artifact.coordinate)
                deduped.append(artifact)
        self.artifacts = deduped

    def coordinates(self) -> List[Coordinate]:
        return [artifact.coordinate for artifact in self.artifacts]

    def paths(self) -> List[Path]:
        return [artifact.path for artifact in self.artifacts]

    def __iter__(self) -> Iterator[ResolvedArtifact]:
        return iter(self.artifacts)

    def __len__(self) -> int:
        return len(self.artifacts)
