"""Shared fixtures: Maven-layout repositories on disk and thin archives."""

import os
import zipfile
from pathlib import Path
from typing import Dict, Iterable, Optional, Sequence, Union

import pytest

from thinlauncher import properties as props
from thinlauncher.coordinates import Coordinate

DependencySpec = Union[str, Dict[str, str]]


def _dependency_xml(spec: DependencySpec) -> str:
    if isinstance(spec, str):
        spec = {"coords": spec}
    coordinate = Coordinate.parse(spec["coords"])
    lines = [
        "    <dependency>",
        f"      <groupId>{coordinate.group}</groupId>",
        f"      <artifactId>{coordinate.name}</artifactId>",
    ]
    if coordinate.version:
        lines.append(f"      <version>{coordinate.version}</version>")
    if coordinate.extension != "jar":
        lines.append(f"      <type>{coordinate.extension}</type>")
    if coordinate.classifier:
        lines.append(f"      <classifier>{coordinate.classifier}</classifier>")
    for tag in ("scope", "optional"):
        if spec.get(tag):
            lines.append(f"      <{tag}>{spec[tag]}</{tag}>")
    if spec.get("exclusions"):
        lines.append("      <exclusions>")
        for exclusion in spec["exclusions"].split(","):
            group, name = exclusion.split(":")
            lines.append(
                f"        <exclusion><groupId>{group}</groupId><artifactId>{name}</artifactId></exclusion>"
            )
        lines.append("      </exclusions>")
    lines.append("    </dependency>")
    return "\n".join(lines)


def pom_xml(
    coords: str,
    dependencies: Iterable[DependencySpec] = (),
    managed: Iterable[DependencySpec] = (),
    parent: Optional[str] = None,
    properties: Optional[Dict[str, str]] = None,
    packaging: str = "jar",
    repositories: Sequence[Dict[str, str]] = (),
) -> str:
    """Render a small POM with the Maven namespace."""
    coordinate = Coordinate.parse(coords)
    parts = [
        '<project xmlns="http://maven.apache.org/POM/4.0.0">',
        "  <modelVersion>4.0.0</modelVersion>",
    ]
    if parent:
        p = Coordinate.parse(parent)
        parts.append(
            f"  <parent><groupId>{p.group}</groupId><artifactId>{p.name}</artifactId>"
            f"<version>{p.version}</version></parent>"
        )
    parts.append(f"  <groupId>{coordinate.group}</groupId>")
    parts.append(f"  <artifactId>{coordinate.name}</artifactId>")
    if coordinate.version:
        parts.append(f"  <version>{coordinate.version}</version>")
    parts.append(f"  <packaging>{packaging}</packaging>")
    if properties:
        parts.append("  <properties>")
        parts.extend(f"    <{k}>{v}</{k}>" for k, v in properties.items())
        parts.append("  </properties>")
    managed = list(managed)
    if managed:
        parts.append("  <dependencyManagement><dependencies>")
        parts.extend(_dependency_xml(m) for m in managed)
        parts.append("  </dependencies></dependencyManagement>")
    dependencies = list(dependencies)
    if dependencies:
        parts.append("  <dependencies>")
        parts.extend(_dependency_xml(d) for d in dependencies)
        parts.append("  </dependencies>")
    if repositories:
        parts.append("  <repositories>")
        for repo in repositories:
            parts.append(f"    <repository><id>{repo['id']}</id><url>{repo['url']}</url>")
            if "snapshots" in repo:
                parts.append(f"      <snapshots><enabled>{repo['snapshots']}</enabled></snapshots>")
            parts.append("    </repository>")
        parts.append("  </repositories>")
    parts.append("</project>")
    return "\n".join(parts) + "\n"


class RepoBuilder:
    """Writes artifacts into a directory laid out like a Maven repository."""

    def __init__(self, base: Path):
        self.base = base
        self.base.mkdir(parents=True, exist_ok=True)

    @property
    def url(self) -> str:
        return self.base.as_uri()

    def write(self, relative: str, content: Union[str, bytes]) -> Path:
        path = self.base / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, str):
            content = content.encode("utf-8")
        path.write_bytes(content)
        return path

    def add(self, coords: str, dependencies: Iterable[DependencySpec] = (), jar: bool = True, **pom_kwargs) -> Coordinate:
        """Publish a POM (and by default a jar) for ``coords``."""
        coordinate = Coordinate.parse(coords)
        self.write(coordinate.pom().path(), pom_xml(coords, dependencies, **pom_kwargs))
        if jar and coordinate.extension != "pom":
            self.write(coordinate.path(), f"jar:{coordinate.failure_form()}")
        return coordinate

    def add_parent(self, coords: str, **pom_kwargs) -> Coordinate:
        return self.add(coords, jar=False, packaging="pom", **pom_kwargs)

    def add_metadata(self, group: str, name: str, versions: Sequence[str]) -> Path:
        body = "".join(f"<version>{v}</version>" for v in versions)
        return self.write(
            f"{group.replace('.', '/')}/{name}/maven-metadata.xml",
            f"<metadata><groupId>{group}</groupId><artifactId>{name}</artifactId>"
            f"<versioning><versions>{body}</versions></versioning></metadata>",
        )

    def add_snapshot(self, coords: str, timestamp: str, build_number: int, content: str) -> Coordinate:
        """Publish a timestamped snapshot build with its version-level metadata."""
        coordinate = Coordinate.parse(coords)
        file_version = f"{coordinate.version[:-len('-SNAPSHOT')]}-{timestamp}-{build_number}"
        self.write(f"{coordinate.directory()}/{coordinate.pom().file_name(file_version)}", pom_xml(coords))
        self.write(f"{coordinate.directory()}/{coordinate.file_name(file_version)}", content)
        self.write(
            f"{coordinate.directory()}/maven-metadata.xml",
            "<metadata><versioning><snapshot>"
            f"<timestamp>{timestamp}</timestamp><buildNumber>{build_number}</buildNumber>"
            f"</snapshot><lastUpdated>{timestamp.replace('.', '')}</lastUpdated></versioning></metadata>",
        )
        return coordinate


def write_archive(
    location: Path,
    properties: Optional[Dict[str, str]] = None,
    pom: Optional[Union[str, bytes]] = None,
    main_class: Optional[str] = "com.example.App",
    as_zip: bool = False,
    properties_name: str = "thin",
) -> Path:
    """Create an exploded (or zipped) thin archive."""
    entries: Dict[str, Union[str, bytes]] = {}
    if main_class:
        entries["META-INF/MANIFEST.MF"] = f"Manifest-Version: 1.0\nStart-Class: {main_class}\n\n"
    if properties is not None:
        entries[f"META-INF/{properties_name}.properties"] = props.dumps(properties)
    if pom is not None:
        entries["META-INF/maven/com.example/app/pom.xml"] = pom
    if as_zip:
        location.parent.mkdir(parents=True, exist_ok=True)
        with zipfile.ZipFile(location, "w") as zf:
            for name, text in entries.items():
                zf.writestr(name, text)
        return location
    for name, text in entries.items():
        path = location / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(text.encode("utf-8") if isinstance(text, str) else text)
    return location


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path, monkeypatch):
    """Point HOME at a temp dir, drop THIN_* variables and forbid real HTTP."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    for name in list(os.environ):
        if name.startswith("THIN_"):
            monkeypatch.delenv(name, raising=False)

    def _no_network(*args, **kwargs):
        raise AssertionError(f"unexpected network call: {args!r}")

    monkeypatch.setattr("thinlauncher.common.http_client.requests.get", _no_network)
    return home


@pytest.fixture
def home(isolated_environment):
    return isolated_environment


@pytest.fixture
def remote(tmp_path):
    return RepoBuilder(tmp_path / "remote")


@pytest.fixture
def root(tmp_path):
    path = tmp_path / "root"
    path.mkdir()
    return path


@pytest.fixture
def local_repo(root):
    return root / "repository"


@pytest.fixture
def config(remote, root):
    """Resolver configuration: the fake remote as default repository, a temp root."""
    return {"thin.repo": remote.url, "thin.root": str(root), "thin.threads": "4"}
