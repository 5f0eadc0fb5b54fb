"""POM reader: raw model parsing, parent inheritance and interpolation.

Only the parts of the POM that influence a runtime classpath are modelled:
coordinates, parent, properties, dependencies, dependency management and
repositories. Fetching parents and imported BOMs is the resolver's job; this
module merges whatever chain it is handed.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence, Tuple, Union

from thinlauncher.common.xml_utils import flag_of, parse_xml, text_of
from thinlauncher.constants import Constants, Scopes
from thinlauncher.coordinates import Coordinate, Dependency, Exclusion
from thinlauncher.models import RepositoryDescriptor

logger = logging.getLogger(__name__)

_PLACEHOLDER = re.compile(r"\$\{([^}]+)\}")
_MAX_INTERPOLATION_PASSES = 10

# (group, name, type, classifier) identifies a dependency inside one POM.
DependencyKey = Tuple[str, str, str, str]


@dataclass
class RawDependency:
    """A dependency exactly as written, placeholders included."""
    group: str
    name: str
    version: str = ""
    type: str = ""
    classifier: str = ""
    scope: str = ""
    optional: str = ""
    exclusions: List[Tuple[str, str]] = field(default_factory=list)

    @property
    def key(self) -> DependencyKey:
        return (self.group, self.name, self.type or Constants.DEFAULT_EXTENSION, self.classifier)


@dataclass
class RawPom:
    """One POM document before inheritance."""
    group: str = ""
    name: str = ""
    version: str = ""
    packaging: str = "jar"
    parent: Optional[Coordinate] = None
    properties: Dict[str, str] = field(default_factory=dict)
    dependencies: List[RawDependency] = field(default_factory=list)
    managed: List[RawDependency] = field(default_factory=list)
    repositories: List[RepositoryDescriptor] = field(default_factory=list)


def _parse_dependency(elem) -> Optional[RawDependency]:
    group = text_of(elem, "groupId")
    name = text_of(elem, "artifactId")
    if not group or not name:
        return None
    exclusions = []
    for exclusion in elem.findall("exclusions/exclusion"):
        ex_group = text_of(exclusion, "groupId", "*")
        ex_name = text_of(exclusion, "artifactId", "*")
        exclusions.append((ex_group, ex_name))
    return RawDependency(
        group=group,
        name=name,
        version=text_of(elem, "version"),
        type=text_of(elem, "type"),
        classifier=text_of(elem, "classifier"),
        scope=text_of(elem, "scope"),
        optional=text_of(elem, "optional"),
        exclusions=exclusions,
    )


def parse_repositories(parent_elem) -> List[RepositoryDescriptor]:
    """Parse a ``<repositories>`` container (POM or settings profile).

    A repository without a ``<snapshots>`` (or ``<releases>``) policy element
    is treated as enabled for that kind of artifact.
    """
    repositories: List[RepositoryDescriptor] = []
    if parent_elem is None:
        return repositories
    for repo in parent_elem.findall("repository"):
        repo_id = text_of(repo, "id")
        url = text_of(repo, "url")
        if not repo_id or not url:
            continue
        repositories.append(
            RepositoryDescriptor(
                id=repo_id,
                url=url,
                releases_enabled=flag_of(repo, "releases/enabled", True),
                snapshots_enabled=flag_of(repo, "snapshots/enabled", True),
            )
        )
    return repositories


def parse_pom(text: Union[str, bytes], source: Optional[str] = None) -> RawPom:
    """Parse POM XML into a RawPom.

    Raises:
        ConfigurationError: If the XML is malformed.
    """
    root = parse_xml(text, source)
    pom = RawPom(
        group=text_of(root, "groupId"),
        name=text_of(root, "artifactId"),
        version=text_of(root, "version"),
        packaging=text_of(root, "packaging", "jar"),
    )
    parent = root.find("parent")
    if parent is not None:
        p_group = text_of(parent, "groupId")
        p_name = text_of(parent, "artifactId")
        p_version = text_of(parent, "version")
        if p_group and p_name and p_version:
            pom.parent = Coordinate(p_group, p_name, p_version, extension="pom")
    properties = root.find("properties")
    if properties is not None:
        for prop in properties:
            if isinstance(prop.tag, str):
                pom.properties[prop.tag] = (prop.text or "").strip()
    for elem in root.findall("dependencies/dependency"):
        dependency = _parse_dependency(elem)
        if dependency is not None:
            pom.dependencies.append(dependency)
    for elem in root.findall("dependencyManagement/dependencies/dependency"):
        dependency = _parse_dependency(elem)
        if dependency is not None:
            pom.managed.append(dependency)
    pom.repositories = parse_repositories(root.find("repositories"))
    return pom


def interpolate(value: str, context: Mapping[str, str]) -> str:
    """Replace ``${name}`` placeholders; unknown placeholders are left as-is."""
    for _ in range(_MAX_INTERPOLATION_PASSES):
        if "${" not in value:
            return value
        replaced = _PLACEHOLDER.sub(lambda m: context.get(m.group(1), m.group(0)), value)
        if replaced == value:
            return value
        value = replaced
    return value


@dataclass
class EffectivePom:
    """A POM after parent inheritance and interpolation."""
    coordinate: Coordinate
    dependencies: List[RawDependency]
    managed: Dict[DependencyKey, RawDependency]
    imports: List[Coordinate]

    def import_managed(self, entries: Sequence[RawDependency]) -> None:
        """Add imported management entries; existing entries win."""
        for entry in entries:
            self.managed.setdefault(entry.key, entry)

    def direct_dependencies(self) -> List[Dependency]:
        """Direct dependencies with management applied, in declaration order."""
        return [to_dependency(raw, self.managed) for raw in self.dependencies]


def to_dependency(
    raw: RawDependency, managed: Optional[Mapping[DependencyKey, RawDependency]] = None
) -> Dependency:
    """Convert a raw dependency, filling version/scope from management."""
    entry = (managed or {}).get(raw.key)
    version = raw.version or (entry.version if entry else "")
    scope = raw.scope or (entry.scope if entry else "") or Scopes.COMPILE.value
    exclusions = set(raw.exclusions)
    if entry is not None:
        exclusions.update(entry.exclusions)
    if "${" in raw.group or "${" in raw.name:
        logger.warning("Unresolved placeholder in dependency %s:%s", raw.group, raw.name)
    coordinate = Coordinate(
        raw.group,
        raw.name,
        version,
        extension=raw.type or Constants.DEFAULT_EXTENSION,
        classifier=raw.classifier,
    )
    return Dependency(
        coordinate=coordinate,
        scope=scope,
        optional=raw.optional.lower() == "true",
        exclusions=frozenset(Exclusion(group, name) for group, name in exclusions),
    )


def _interpolated(raw: RawDependency, context: Mapping[str, str]) -> RawDependency:
    return RawDependency(
        group=interpolate(raw.group, context),
        name=interpolate(raw.name, context),
        version=interpolate(raw.version, context),
        type=interpolate(raw.type, context),
        classifier=interpolate(raw.classifier, context),
        scope=interpolate(raw.scope, context),
        optional=interpolate(raw.optional, context),
        exclusions=[(interpolate(g, context), interpolate(n, context)) for g, n in raw.exclusions],
    )


def merge_chain(chain: Sequence[RawPom]) -> EffectivePom:
    """Merge a POM with its ancestors.

    Args:
        chain: The POM first, then its parent, grandparent, and so on.
    """
    child = chain[0]
    parent = child.parent
    group = child.group or (parent.group if parent else "")
    version = child.version or (parent.version if parent else "")

    context: Dict[str, str] = {}
    for pom in reversed(chain):
        context.update(pom.properties)
    context.update({
        "project.groupId": group,
        "pom.groupId": group,
        "groupId": group,
        "project.artifactId": child.name,
        "pom.artifactId": child.name,
        "artifactId": child.name,
        "project.version": version,
        "pom.version": version,
        "version": version,
        "project.packaging": child.packaging,
    })
    if parent is not None:
        context.update({
            "project.parent.groupId": parent.group,
            "project.parent.artifactId": parent.name,
            "project.parent.version": parent.version,
            "parent.version": parent.version,
        })

    dependencies: Dict[DependencyKey, RawDependency] = {}
    managed: Dict[DependencyKey, RawDependency] = {}
    imports: List[Coordinate] = []

    for pom in reversed(chain):
        for raw in pom.dependencies:
            resolved = _interpolated(raw, context)
            dependencies[resolved.key] = resolved
        for raw in pom.managed:
            resolved = _interpolated(raw, context)
            if resolved.scope != Scopes.IMPORT.value:
                managed[resolved.key] = resolved

    for pom in chain:
        for raw in pom.managed:
            if raw.scope == Scopes.IMPORT.value:
                resolved = _interpolated(raw, context)
                imports.append(Coordinate(resolved.group, resolved.name, resolved.version, extension="pom"))

    return EffectivePom(
        coordinate=Coordinate(group, child.name, version, extension="pom"),
        dependencies=list(dependencies.values()),
        managed=managed,
        imports=imports,
    )
