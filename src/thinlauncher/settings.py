"""Reader for Maven ``settings.xml`` user settings.

Supports the subset of the schema that affects resolution: local repository,
offline flag, proxies, mirrors, server credentials and profiles carrying
repositories.
"""
from __future__ import annotations

import fnmatch
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Union
from urllib.parse import urlsplit

from thinlauncher.common.xml_utils import flag_of, parse_xml, text_of, texts_of
from thinlauncher.constants import Constants
from thinlauncher.models import Credentials, Proxy, RepositoryDescriptor
from thinlauncher.pom import parse_repositories

logger = logging.getLogger(__name__)

_LOCAL_HOSTS = ("localhost", "127.0.0.1", "::1")


@dataclass(frozen=True)
class Mirror:
    """A mirror that replaces every repository matched by ``mirror_of``."""
    id: str
    url: str
    mirror_of: str

    def matches(self, repository: RepositoryDescriptor) -> bool:
        """Apply Maven's ``mirrorOf`` rules (``*``, ``external:*``, lists, ``!id``)."""
        if self.mirror_of == repository.id:
            return True
        matched = False
        for pattern in (p.strip() for p in self.mirror_of.split(",")):
            if not pattern:
                continue
            if pattern.startswith("!"):
                if pattern[1:] == repository.id:
                    return False
            elif pattern == "*":
                matched = True
            elif pattern == "external:*":
                if _is_external(repository.url):
                    matched = True
            elif pattern == repository.id:
                matched = True
        return matched


@dataclass
class Profile:
    """A settings profile; only its repositories matter here."""
    id: str
    active_by_default: bool = False
    repositories: List[RepositoryDescriptor] = field(default_factory=list)


@dataclass
class Settings:
    """Parsed user settings. An empty instance stands for "no settings file"."""
    local_repository: Optional[str] = None
    offline: bool = False
    proxies: List[Proxy] = field(default_factory=list)
    mirrors: List[Mirror] = field(default_factory=list)
    servers: Dict[str, Credentials] = field(default_factory=dict)
    profiles: List[Profile] = field(default_factory=list)
    active_profiles: List[str] = field(default_factory=list)
    source: Optional[Path] = None

    def active_repositories(self) -> List[RepositoryDescriptor]:
        """Repositories of explicitly active or active-by-default profiles."""
        explicit = set(self.active_profiles)
        repositories: List[RepositoryDescriptor] = []
        for profile in self.profiles:
            if profile.id in explicit or profile.active_by_default:
                repositories.extend(profile.repositories)
        return repositories

    def mirror_for(self, repository: RepositoryDescriptor) -> Optional[Mirror]:
        for mirror in self.mirrors:
            if mirror.matches(repository):
                return mirror
        return None

    def proxy_for(self, url: str) -> Optional[Proxy]:
        """First proxy whose protocol matches the URL scheme and whose
        ``nonProxyHosts`` do not exclude the URL host.

        An ``https`` URL with no ``https`` proxy falls back to an ``http`` one.
        """
        parts = urlsplit(url)
        scheme = (parts.scheme or "").lower()
        host = (parts.hostname or "").lower()
        protocols = [scheme, "http"] if scheme == "https" else [scheme]
        for protocol in protocols:
            for proxy in self.proxies:
                if proxy.protocol.lower() != protocol:
                    continue
                if any(fnmatch.fnmatchcase(host, pattern.lower()) for pattern in proxy.non_proxy_hosts):
                    continue
                return proxy
        return None


def _is_external(url: str) -> bool:
    parts = urlsplit(url)
    if parts.scheme == "file":
        return False
    return (parts.hostname or "") not in _LOCAL_HOSTS


def _split_hosts(value: str) -> tuple:
    return tuple(h.strip() for h in value.replace(",", "|").split("|") if h.strip())


def parse_settings(text: Union[str, bytes], source: Optional[str] = None) -> Settings:
    """Parse settings XML.

    Raises:
        ConfigurationError: If the XML is malformed.
    """
    root = parse_xml(text, source)
    settings = Settings(
        local_repository=text_of(root, "localRepository") or None,
        offline=flag_of(root, "offline", False),
    )
    for elem in root.findall("proxies/proxy"):
        if not flag_of(elem, "active", True):
            continue
        host = text_of(elem, "host")
        if not host:
            continue
        username = text_of(elem, "username")
        try:
            port = int(text_of(elem, "port", "8080"))
        except ValueError:
            logger.warning("Ignoring invalid proxy port in %s", source)
            port = 8080
        settings.proxies.append(
            Proxy(
                id=text_of(elem, "id", "default"),
                protocol=text_of(elem, "protocol", "http"),
                host=host,
                port=port,
                credentials=Credentials(username, text_of(elem, "password")) if username else None,
                non_proxy_hosts=_split_hosts(text_of(elem, "nonProxyHosts")),
            )
        )
    for elem in root.findall("mirrors/mirror"):
        mirror_id = text_of(elem, "id")
        url = text_of(elem, "url")
        if mirror_id and url:
            settings.mirrors.append(Mirror(mirror_id, url, text_of(elem, "mirrorOf", "*")))
    for elem in root.findall("servers/server"):
        server_id = text_of(elem, "id")
        username = text_of(elem, "username")
        if server_id and username:
            settings.servers[server_id] = Credentials(username, text_of(elem, "password"))
    for elem in root.findall("profiles/profile"):
        settings.profiles.append(
            Profile(
                id=text_of(elem, "id"),
                active_by_default=flag_of(elem, "activation/activeByDefault", False),
                repositories=parse_repositories(elem.find("repositories")),
            )
        )
    settings.active_profiles = texts_of(root, "activeProfiles/activeProfile")
    return settings


def load_settings(path: Optional[Path]) -> Settings:
    """Load settings from ``path``; a missing file yields empty settings."""
    if path is None or not path.is_file():
        return Settings()
    logger.debug("Reading settings from %s", path)
    settings = parse_settings(path.read_bytes(), str(path))
    settings.source = path
    return settings


def find_settings(home: Optional[Path] = None, root: Optional[Path] = None) -> Optional[Path]:
    """Locate the settings file in effect.

    A root override directory's ``.m2/settings.xml`` (or ``settings.xml``)
    replaces the user-home file.
    """
    candidates: List[Path] = []
    if root is not None:
        candidates.append(root / Constants.M2_DIRECTORY / Constants.SETTINGS_XML_FILE)
        candidates.append(root / Constants.SETTINGS_XML_FILE)
    if home is None:
        home = Path(os.path.expanduser("~"))
    candidates.append(home / Constants.M2_DIRECTORY / Constants.SETTINGS_XML_FILE)
    for candidate in candidates:
        if candidate.is_file():
            return candidate
    return None
