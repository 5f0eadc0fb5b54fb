"""Tests for configuration layering."""

import pytest

from conftest import write_archive
from thinlauncher.config import (
    ConfigSource,
    EffectiveConfiguration,
    environment_properties,
    load_configuration,
    merge_sources,
)
from thinlauncher.exceptions import ConfigurationError


class TestMergeSources:
    """The generic precedence merge."""

    def test_later_sources_win(self):
        """Keys from later sources override earlier ones and remember their origin."""
        config = merge_sources([
            ConfigSource("defaults", lambda: {"a": "1", "b": "1"}),
            ConfigSource("archive", lambda: {"b": "2", "c": "2"}),
            ConfigSource("command-line", lambda: {"c": "3"}),
        ])
        assert dict(config) == {"a": "1", "b": "2", "c": "3"}
        assert config.origin("a") == "defaults"
        assert config.origin("b") == "archive"
        assert config.origin("c") == "command-line"
        assert config.origin("missing") is None

    def test_missing_source_is_skipped(self, tmp_path):
        """A source whose file does not exist contributes nothing."""
        def missing():
            return (tmp_path / "nope.properties").read_text()

        config = merge_sources([ConfigSource("root", missing), ConfigSource("defaults", lambda: {"x": "y"})])
        assert dict(config) == {"x": "y"}


class TestEffectiveConfiguration:
    """Typed accessors."""

    def test_bool_values(self):
        """Bare flags and true-ish strings are true."""
        config = EffectiveConfiguration({"a": "", "b": "true", "c": "false", "d": "TRUE"})
        assert config.get_bool("a") and config.get_bool("b") and config.get_bool("d")
        assert not config.get_bool("c")
        assert config.get_bool("missing", default=True)

    def test_int_values(self):
        """Integers parse; junk is a ConfigurationError."""
        config = EffectiveConfiguration({"n": "4", "bad": "four"})
        assert config.get_int("n", 1) == 4
        assert config.get_int("missing", 7) == 7
        with pytest.raises(ConfigurationError):
            config.get_int("bad", 1)

    def test_list_and_path(self, tmp_path):
        """Comma lists drop blanks; file: prefixes are stripped from paths."""
        config = EffectiveConfiguration({"l": "a, b,,c", "p": f"file:{tmp_path}"})
        assert config.get_list("l") == ["a", "b", "c"]
        assert config.get_path("p") == tmp_path
        assert config.get_path("missing") is None


class TestEnvironmentProperties:
    """THIN_* variable mapping."""

    def test_mapping(self):
        """THIN_FOO_BAR becomes thin.foo.bar; other variables are ignored."""
        props = environment_properties({"THIN_ROOT": "/r", "THIN_OFFLINE": "true", "PATH": "/bin", "THIN_": "x"})
        assert props == {"thin.root": "/r", "thin.offline": "true"}


class TestLoadConfiguration:
    """End-to-end layering over archive, locations, root, environment and command line."""

    def test_precedence(self, tmp_path):
        """defaults < archive < root < environment < command line."""
        archive = write_archive(tmp_path / "app", {"k1": "archive", "k2": "archive", "k3": "archive", "k4": "archive"})
        root = tmp_path / "root"
        root.mkdir()
        (root / "thin.properties").write_text("k2=root\nk3=root\nk4=root\n")
        context = load_configuration(
            {"thin.archive": str(archive), "thin.root": str(root), "k4": "cli"},
            {"THIN_K3": "ignored-not-thin-prefixed", "THIN_SOURCE": "env"},
        )
        config = context.config
        assert config["k1"] == "archive"
        assert config["k2"] == "root"
        assert config["k3"] == "root"
        assert config["k4"] == "cli"
        assert config["thin.source"] == "env"
        assert config.origin("k2") == "root"
        assert config["thin.repo"] == "https://repo.maven.apache.org/maven2"
        assert config.origin("thin.repo") == "defaults"

    def test_environment_overrides_root(self, tmp_path):
        """An environment variable beats the root properties file."""
        root = tmp_path / "root"
        root.mkdir()
        (root / "thin.properties").write_text("thin.offline=false\n")
        context = load_configuration({"thin.root": str(root)}, {"THIN_OFFLINE": "true"})
        assert context.config.get_bool("thin.offline")
        assert context.config.origin("thin.offline") == "environment"

    def test_profile_and_name(self, tmp_path):
        """thin.name and thin.profile pick the properties files."""
        archive = write_archive(tmp_path / "app", {"a": "base"}, properties_name="app")
        (archive / "META-INF" / "app-prod.properties").write_text("a=prod\n")
        context = load_configuration(
            {"thin.archive": str(archive), "thin.name": "app", "thin.profile": "prod"}, {}
        )
        assert context.config["a"] == "prod"
        assert context.profiles == ["prod"]
        assert context.name == "app"

    def test_location_directories_layer_over_archive(self, tmp_path):
        """thin.location directories add to the archive's own properties."""
        archive = write_archive(tmp_path / "app", {"a": "archive", "b": "archive"})
        extra = tmp_path / "extra"
        extra.mkdir()
        (extra / "thin.properties").write_text("b=location\n")
        context = load_configuration({"thin.archive": str(archive), "thin.location": f"file:{extra}"}, {})
        assert context.config["a"] == "archive"
        assert context.config["b"] == "location"
        assert context.config.origin("b") == "archive"

    def test_missing_everything_is_not_an_error(self, tmp_path):
        """No archive metadata and no root still yields the defaults."""
        context = load_configuration({"thin.archive": str(tmp_path / "none")}, {})
        assert context.config["thin.name"] == "thin"
        assert context.root is None

    def test_malformed_source_raises(self, tmp_path):
        """A malformed properties file is a ConfigurationError."""
        root = tmp_path / "root"
        root.mkdir()
        (root / "thin.properties").write_text("bad=\\u00\n")
        with pytest.raises(ConfigurationError):
            load_configuration({"thin.root": str(root)}, {})
