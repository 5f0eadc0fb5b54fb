"""Tests for the repository policy builder."""

from pathlib import Path

from thinlauncher.constants import Constants
from thinlauncher.models import Credentials, RepositoryDescriptor
from thinlauncher.repositories import build_repository_policy
from thinlauncher.settings import Mirror, Settings, parse_settings

PROXY_SETTINGS = """<settings>
  <proxies>
    <proxy><id>p</id><protocol>https</protocol><host>proxy.local</host><port>8080</port></proxy>
  </proxies>
</settings>"""


class TestRepositoryOrder:
    """Merging of declaration sources."""

    def test_vanilla_has_only_default(self, tmp_path):
        """With nothing declared, only the default repository is used, without a proxy."""
        policy = build_repository_policy({}, None, home=tmp_path)
        assert [r.id for r in policy.repositories] == [Constants.DEFAULT_REPOSITORY_ID]
        assert policy.repositories[0].url == Constants.DEFAULT_REPOSITORY_URL
        assert policy.repositories[0].snapshots_enabled is True
        assert all(r.proxy is None for r in policy.repositories)

    def test_thin_repo_overrides_default_url(self, tmp_path):
        """thin.repo changes the default repository URL."""
        policy = build_repository_policy({"thin.repo": "https://repo.example.com"}, home=tmp_path)
        assert policy.repositories[-1].url == "https://repo.example.com"

    def test_order_and_first_id_wins(self, tmp_path):
        """root, settings profiles, archive, default; duplicate ids keep the first."""
        settings = parse_settings(
            "<settings><profiles><profile><id>p</id>"
            "<activation><activeByDefault>true</activeByDefault></activation>"
            "<repositories><repository><id>from-settings</id><url>https://s</url></repository>"
            "<repository><id>shared</id><url>https://settings-shared</url></repository>"
            "</repositories></profile></profiles></settings>"
        )
        policy = build_repository_policy(
            {},
            settings,
            root_repositories=[RepositoryDescriptor("from-root", "https://r")],
            archive_repositories=[
                RepositoryDescriptor("shared", "https://archive-shared"),
                RepositoryDescriptor("from-archive", "https://a"),
            ],
            home=tmp_path,
        )
        assert [r.id for r in policy.repositories] == [
            "from-root", "from-settings", "shared", "from-archive", "central",
        ]
        assert policy.repositories[2].url == "https://settings-shared"


class TestSettingsPolicy:
    """Proxies, mirrors, credentials, offline and local repository."""

    def test_proxy_attaches_per_repository(self, tmp_path):
        """Only repositories whose scheme matches the proxy get it."""
        policy = build_repository_policy(
            {},
            parse_settings(PROXY_SETTINGS),
            archive_repositories=[RepositoryDescriptor("plain", "http://insecure.example.com")],
            home=tmp_path,
        )
        proxies = {r.id: r.proxy for r in policy.repositories}
        assert proxies["central"] is not None
        assert proxies["central"].host == "proxy.local"
        assert proxies["plain"] is None

    def test_http_proxy_serves_https_repositories(self, tmp_path):
        """A proxy without a protocol (http) is used for https repositories too."""
        settings = parse_settings(
            "<settings><proxies><proxy><id>corp</id><active>true</active>"
            "<host>proxy.corp</host><port>3128</port>"
            "<nonProxyHosts>*.internal.example.com</nonProxyHosts></proxy></proxies></settings>"
        )
        policy = build_repository_policy(
            {},
            settings,
            archive_repositories=[RepositoryDescriptor("inside", "https://nexus.internal.example.com/repo")],
            home=tmp_path,
        )
        proxies = {r.id: r.proxy for r in policy.repositories}
        assert proxies["central"] is not None
        assert proxies["central"].host == "proxy.corp"
        assert proxies["central"].port == 3128
        assert proxies["inside"] is None

    def test_https_proxy_preferred_over_http(self, tmp_path):
        """An exact scheme match wins over the http fallback."""
        settings = parse_settings(
            "<settings><proxies>"
            "<proxy><id>plain</id><protocol>http</protocol><host>plain.proxy</host></proxy>"
            "<proxy><id>secure</id><protocol>https</protocol><host>secure.proxy</host></proxy>"
            "</proxies></settings>"
        )
        assert settings.proxy_for("https://repo.example.com/").host == "secure.proxy"
        assert settings.proxy_for("http://repo.example.com/").host == "plain.proxy"

    def test_mirror_rewrites_url_and_id(self, tmp_path):
        """A mirror replaces the matched repository."""
        settings = Settings(mirrors=[Mirror("corp", "https://mirror.example.com", "*")])
        policy = build_repository_policy({}, settings, home=tmp_path)
        assert [(r.id, r.url) for r in policy.repositories] == [("corp", "https://mirror.example.com")]

    def test_credentials_by_id(self, tmp_path):
        """Server credentials attach by repository id."""
        settings = Settings(servers={"central": Credentials("u", "p")})
        policy = build_repository_policy({}, settings, home=tmp_path)
        assert policy.repositories[0].credentials == Credentials("u", "p")

    def test_offline_from_config_or_settings(self, tmp_path):
        """Either thin.offline or settings offline makes the policy offline."""
        assert build_repository_policy({"thin.offline": "true"}, home=tmp_path).offline
        assert build_repository_policy({}, Settings(offline=True), home=tmp_path).offline
        assert not build_repository_policy({"thin.offline": "false"}, home=tmp_path).offline

    def test_local_repository_defaults(self, tmp_path):
        """<root>/repository, else settings localRepository, else ~/.m2/repository."""
        home = tmp_path / "home"
        custom = Settings(local_repository=str(tmp_path / "custom"))
        assert build_repository_policy({}, home=home).local_repository == home / ".m2" / "repository"
        assert build_repository_policy({}, custom, home=home).local_repository == Path(tmp_path / "custom")
        root = tmp_path / "root"
        policy = build_repository_policy({"thin.root": str(root)}, home=home)
        assert policy.local_repository == root / "repository"
        policy = build_repository_policy({"thin.root": str(root)}, custom, home=home)
        assert policy.local_repository == root / "repository"

    def test_snapshot_policy_defaults_to_enabled(self, tmp_path):
        """Repositories without a <snapshots> element accept snapshots."""
        settings = parse_settings(
            "<settings><profiles><profile><id>p</id><repositories>"
            "<repository><id>one</id><url>https://one</url></repository>"
            "<repository><id>two</id><url>https://two</url>"
            "<releases><enabled>true</enabled></releases></repository>"
            "</repositories></profile></profiles>"
            "<activeProfiles><activeProfile>p</activeProfile></activeProfiles></settings>"
        )
        policy = build_repository_policy({}, settings, home=tmp_path)
        assert len(policy.repositories) == 3
        assert all(r.snapshots_enabled for r in policy.repositories)
        assert len(policy.snapshot_repositories()) == 3
