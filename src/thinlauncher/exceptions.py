"""Exception hierarchy for the launcher.

Every failure the launcher reports derives from ThinLauncherError so the CLI
can map it to an exit code without inspecting messages.
"""

from __future__ import annotations

from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from thinlauncher.coordinates import Coordinate


class ThinLauncherError(Exception):
    """Base launcher error."""

    def __init__(self, message: str) -> None:
        super().__init__(message)


class ConfigurationError(ThinLauncherError):
    """A properties, settings or POM file is malformed."""

    def __init__(self, message: str, source: Optional[str] = None) -> None:
        if source:
            message = f"{message} ({source})"
        super().__init__(message)
        self.source = source


class UnresolvedArtifactError(ThinLauncherError):
    """A declared coordinate could not be obtained from any repository."""

    def __init__(self, coordinate: "Coordinate", reason: str = "") -> None:
        message = f"Could not resolve artifact {coordinate.failure_form()}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.coordinate = coordinate


class RepositoryUnavailableError(ThinLauncherError):
    """A single repository candidate is unreachable or timed out."""

    def __init__(self, repository_id: str, url: str, reason: str) -> None:
        super().__init__(f"Repository {repository_id} unavailable for {url}: {reason}")
        self.repository_id = repository_id
        self.url = url


class LaunchError(ThinLauncherError):
    """The entry point is missing, not invokable, or failed to start."""
