"""Configuration Layering Engine.

Precedence is declared once, as the order of the ConfigSource list handed to
merge_sources: built-in defaults, the archive (and any ``thin.location``
directories), the root override directory, the environment, and finally the
command line. Each source yields a partial mapping; later sources win.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Iterator, List, Mapping, Optional, Sequence

from thinlauncher.archive import Archive, directory_properties, strip_file_prefix
from thinlauncher.common.logging_utils import extra_context, is_debug_enabled
from thinlauncher.constants import Constants
from thinlauncher.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConfigSource:
    """A named, lazily evaluated partial configuration."""
    name: str
    loader: Callable[[], Mapping[str, str]]

    def load(self) -> Mapping[str, str]:
        try:
            return self.loader() or {}
        except FileNotFoundError:
            return {}


class EffectiveConfiguration(Mapping[str, str]):
    """Merged property set that remembers which source supplied each key."""

    def __init__(self, values: Optional[Dict[str, str]] = None, origins: Optional[Dict[str, str]] = None):
        self._values: Dict[str, str] = dict(values or {})
        self._origins: Dict[str, str] = dict(origins or {})

    def __getitem__(self, key: str) -> str:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"EffectiveConfiguration({self._values!r})"

    def origin(self, key: str) -> Optional[str]:
        """Name of the source that supplied ``key``."""
        return self._origins.get(key)

    def get_bool(self, key: str, default: bool = False) -> bool:
        """Boolean property; a present-but-empty value counts as true (``--thin.dryrun``)."""
        value = self._values.get(key)
        if value is None:
            return default
        return value.strip().lower() in ("", "true", "yes", "1", "on")

    def get_int(self, key: str, default: int) -> int:
        value = self._values.get(key)
        if value is None or not value.strip():
            return default
        try:
            return int(value)
        except ValueError as exc:
            raise ConfigurationError(f"Property {key} must be an integer, got '{value}'") from exc

    def get_float(self, key: str, default: float) -> float:
        value = self._values.get(key)
        if value is None or not value.strip():
            return default
        try:
            return float(value)
        except ValueError as exc:
            raise ConfigurationError(f"Property {key} must be a number, got '{value}'") from exc

    def get_list(self, key: str) -> List[str]:
        """Comma-separated list property, blanks dropped."""
        value = self._values.get(key) or ""
        return [item.strip() for item in value.split(",") if item.strip()]

    def get_path(self, key: str) -> Optional[Path]:
        value = self._values.get(key)
        if not value or not value.strip():
            return None
        return Path(os.path.expanduser(strip_file_prefix(value.strip())))


def merge_sources(sources: Sequence[ConfigSource]) -> EffectiveConfiguration:
    """Merge sources left to right; a later source overrides an earlier one per key."""
    values: Dict[str, str] = {}
    origins: Dict[str, str] = {}
    for source in sources:
        partial = source.load()
        if is_debug_enabled(logger):
            logger.debug(
                "Configuration source loaded",
                extra=extra_context(
                    event="config_source",
                    component="config",
                    source=source.name,
                    keys=len(partial),
                ),
            )
        for key, value in partial.items():
            values[key] = value
            origins[key] = source.name
    return EffectiveConfiguration(values, origins)


def environment_properties(environ: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
    """Map ``THIN_FOO_BAR=x`` environment variables to ``thin.foo.bar=x``."""
    environ = os.environ if environ is None else environ
    result: Dict[str, str] = {}
    for name, value in environ.items():
        if name.startswith(Constants.ENV_PREFIX) and len(name) > len(Constants.ENV_PREFIX):
            suffix = name[len(Constants.ENV_PREFIX):].lower().replace("_", ".")
            result[Constants.PROPERTY_PREFIX + suffix] = value
    return result


@dataclass
class LaunchContext:
    """The effective configuration plus the locations it was derived from."""
    config: EffectiveConfiguration
    archive: Archive
    root: Optional[Path]
    name: str
    profiles: List[str]


def load_configuration(
    command_line: Optional[Mapping[str, str]] = None,
    environ: Optional[Mapping[str, str]] = None,
    defaults: Optional[Mapping[str, str]] = None,
) -> LaunchContext:
    """Build the effective configuration for one launch.

    The archive location, root directory, properties name, profiles and
    extra locations are bootstrapped from the defaults, environment and
    command line before the archive and root sources are read.

    Raises:
        ConfigurationError: If a properties file is malformed.
    """
    command_line = dict(command_line or {})
    env_props = environment_properties(environ)
    base = dict(Constants.DEFAULTS if defaults is None else defaults)

    bootstrap = merge_sources([
        ConfigSource("defaults", lambda: base),
        ConfigSource("environment", lambda: env_props),
        ConfigSource("command-line", lambda: command_line),
    ])
    name = bootstrap.get("thin.name") or Constants.DEFAULT_PROPERTIES_NAME
    profiles = bootstrap.get_list("thin.profile")
    archive = Archive(bootstrap.get_path("thin.archive") or Path.cwd())
    root = bootstrap.get_path("thin.root")
    locations = [Path(strip_file_prefix(loc)) for loc in bootstrap.get_list("thin.location")]

    def archive_source() -> Dict[str, str]:
        merged = archive.properties(name, profiles)
        for location in locations:
            merged.update(directory_properties(location, name, profiles))
        return merged

    def root_source() -> Dict[str, str]:
        if root is None:
            return {}
        return directory_properties(root, name, profiles)

    config = merge_sources([
        ConfigSource("defaults", lambda: base),
        ConfigSource("archive", archive_source),
        ConfigSource("root", root_source),
        ConfigSource("environment", lambda: env_props),
        ConfigSource("command-line", lambda: command_line),
    ])
    logger.debug("Effective configuration has %d properties", len(config))
    return LaunchContext(config=config, archive=archive, root=root, name=name, profiles=profiles)
