"""Launcher: resolves an archive and runs its entry point in a fresh JVM.

The application sees exactly ``<archive>`` plus the assembled classpath, via
``java -cp``; nothing from this process leaks into it.
"""
from __future__ import annotations

import logging
import os
import shutil
import subprocess
import sys
from enum import Enum
from pathlib import Path
from typing import List, Optional, Sequence, TextIO

from thinlauncher.archive import CoordinateStore
from thinlauncher.classpath import assemble, classpath_string, format_properties
from thinlauncher.config import LaunchContext
from thinlauncher.constants import ClasspathModes
from thinlauncher.exceptions import LaunchError
from thinlauncher.models import ResolutionResult
from thinlauncher.resolver import DependencyResolver, new_resolver

logger = logging.getLogger(__name__)


class LaunchMode(Enum):
    """What the launcher does once resolution succeeds.

    Args:
        Enum (string): Launcher modes.
    """

    LAUNCH = "launch"
    DRY_RUN = "dryrun"
    CLASSPATH = "classpath"
    PROPERTIES = "properties"


def launch_mode(config) -> LaunchMode:
    """Mode selected by ``thin.classpath`` and ``thin.dryrun``; reports win over dry-run."""
    classpath = config.get("thin.classpath")
    if classpath is not None:
        value = classpath.strip().lower()
        if value == ClasspathModes.PROPERTIES.value:
            return LaunchMode.PROPERTIES
        if value in ("", "true", ClasspathModes.PATH.value):
            return LaunchMode.CLASSPATH
    if config.get_bool("thin.dryrun"):
        return LaunchMode.DRY_RUN
    return LaunchMode.LAUNCH


class Launcher:
    """Runs one archive according to its launch context."""

    def __init__(
        self,
        context: LaunchContext,
        resolver: Optional[DependencyResolver] = None,
        out: Optional[TextIO] = None,
        home: Optional[Path] = None,
    ) -> None:
        self.context = context
        self.config = context.config
        self._resolver = resolver
        self.out = out or sys.stdout
        self.home = home

    def resolve(self, store: CoordinateStore) -> ResolutionResult:
        """Resolve the store; failures propagate untouched."""
        if self._resolver is not None:
            return self._resolver.resolve_store(store)
        with new_resolver(self.config, home=self.home, store=store) as resolver:
            return resolver.resolve_store(store)

    def run(self, args: Sequence[str] = ()) -> int:
        """Resolve, then report or launch.

        Args:
            args: Program arguments forwarded to the application.

        Returns:
            int: 0 for the report and dry-run modes, otherwise the
            application's exit code.

        Raises:
            ConfigurationError: If a configuration source is malformed.
            UnresolvedArtifactError: If resolution fails.
            LaunchError: If the application cannot be started.
        """
        mode = launch_mode(self.config)
        store = CoordinateStore.load(self.context.archive, self.config, self.context.root)
        result = self.resolve(store)

        if mode is LaunchMode.DRY_RUN:
            logger.info("Dry run: %d artifacts resolved, not launching", len(result))
            return 0
        if mode is LaunchMode.CLASSPATH:
            self.out.write(classpath_string(assemble(result)) + "\n")
            return 0
        if mode is LaunchMode.PROPERTIES:
            self.out.write(format_properties(result))
            return 0

        command = self.command(result, self.main_class(store), args)
        return self.execute(command)

    def main_class(self, store: CoordinateStore) -> str:
        """``thin.main``, else the manifest's ``Start-Class``/``Main-Class``."""
        main = (self.config.get("thin.main") or "").strip() or store.main_class
        if not main:
            raise LaunchError(
                f"No main class: set thin.main or add Start-Class to the manifest of {self.context.archive.location}"
            )
        return main

    def java_executable(self) -> str:
        """``thin.java``, else ``$JAVA_HOME/bin/java``, else ``java`` from PATH."""
        configured = (self.config.get("thin.java") or "").strip()
        if configured:
            return configured
        java_home = os.environ.get("JAVA_HOME")
        if java_home:
            for name in ("java", "java.exe"):
                candidate = Path(java_home) / "bin" / name
                if candidate.is_file():
                    return str(candidate)
        found = shutil.which("java")
        if found is None:
            raise LaunchError("No java executable found; set thin.java or JAVA_HOME")
        return found

    def command(self, result: ResolutionResult, main: str, args: Sequence[str]) -> List[str]:
        classpath = classpath_string(assemble(result), head=self.context.archive.location)
        return [self.java_executable(), "-cp", classpath, main, *args]

    def execute(self, command: Sequence[str]) -> int:
        logger.info("Launching %s", command[3] if len(command) > 3 else command[0])
        logger.debug("Command: %s", " ".join(command))
        try:
            completed = subprocess.run(list(command), check=False)  # noqa: S603
        except OSError as exc:
            raise LaunchError(f"Could not start {command[0]}: {exc}") from exc
        except KeyboardInterrupt:
            logger.info("Interrupted by user")
            return 130  # Standard SIGINT exit code
        if completed.returncode != 0:
            logger.debug("Application exited with %d", completed.returncode)
        return completed.returncode
