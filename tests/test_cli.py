"""Tests for argument handling and the CLI entry point."""

from unittest.mock import MagicMock, patch

from conftest import write_archive
from thinlauncher import cli
from thinlauncher.args import parse_args, split_thin_arguments
from thinlauncher.constants import ExitCodes
from thinlauncher.coordinates import Coordinate
from thinlauncher.exceptions import ConfigurationError, LaunchError, UnresolvedArtifactError


class TestArguments:
    """Splitting launcher properties from application arguments."""

    def test_split(self):
        """--thin.k=v becomes a property, bare flags become empty values, the rest is forwarded."""
        properties, remaining = split_thin_arguments(
            ["--thin.root=/tmp/r", "--thin.dryrun", "--server.port=80", "app"]
        )
        assert properties == {"thin.root": "/tmp/r", "thin.dryrun": ""}
        assert remaining == ["--server.port=80", "app"]

    def test_double_dash_stops_processing(self):
        """Everything after -- goes to the application untouched."""
        args = parse_args(["--thin.offline", "--", "--thin.root=x", "--debug"])
        assert args.PROPERTIES == {"thin.offline": ""}
        assert args.APP_ARGS == ["--thin.root=x", "--debug"]
        assert args.DEBUG is False

    def test_logging_flags_and_app_args(self):
        """Launcher flags are consumed; unknown options are forwarded in order."""
        args = parse_args(["--loglevel", "warning", "--spring.profiles.active=dev", "run"])
        assert args.LOG_LEVEL == "WARNING"
        assert args.APP_ARGS == ["--spring.profiles.active=dev", "run"]


class TestExitCodes:
    """Error to exit code mapping."""

    def test_mapping(self):
        """Each failure kind has its own exit code."""
        assert cli.exit_code_for(ConfigurationError("bad")) == ExitCodes.CONFIGURATION_ERROR.value
        assert cli.exit_code_for(UnresolvedArtifactError(Coordinate.parse("g:a:1"))) == ExitCodes.RESOLUTION_ERROR.value
        assert cli.exit_code_for(LaunchError("no main")) == ExitCodes.LAUNCH_ERROR.value


class TestMain:
    """End-to-end runs of the entry point."""

    def test_classpath_run(self, tmp_path, remote, root, capsys):
        """A classpath report prints the resolved jar and exits 0."""
        remote.add("g:a:1.0")
        archive = write_archive(tmp_path / "app", {"dependencies.a": "g:a:1.0"})
        code = cli.main([
            f"--thin.archive={archive}",
            f"--thin.root={root}",
            f"--thin.repo={remote.url}",
            "--thin.classpath",
        ])
        assert code == 0
        assert capsys.readouterr().out.strip().endswith("a-1.0.jar")

    def test_unresolved_exit_code(self, tmp_path, root):
        """An offline run with an empty cache exits with the resolution code."""
        archive = write_archive(tmp_path / "app", {"dependencies.a": "g:a:1.0"})
        code = cli.main([f"--thin.archive={archive}", f"--thin.root={root}", "--thin.offline", "--thin.dryrun"])
        assert code == ExitCodes.RESOLUTION_ERROR.value

    def test_malformed_configuration_exit_code(self, tmp_path, root):
        """A malformed root properties file exits with the configuration code."""
        (root / "thin.properties").write_text("bad=\\u00\n")
        code = cli.main([f"--thin.archive={tmp_path / 'none'}", f"--thin.root={root}"])
        assert code == ExitCodes.CONFIGURATION_ERROR.value

    @patch("thinlauncher.launcher.subprocess.run")
    def test_application_exit_code(self, mock_run, tmp_path, remote, root):
        """After a launch the application's exit code is returned."""
        mock_run.return_value = MagicMock(returncode=5)
        remote.add("g:a:1.0")
        archive = write_archive(tmp_path / "app", {"dependencies.a": "g:a:1.0"})
        code = cli.main([
            f"--thin.archive={archive}",
            f"--thin.root={root}",
            f"--thin.repo={remote.url}",
            "--thin.java=java",
            "arg",
        ])
        assert code == 5
        assert mock_run.call_args.args[0][-1] == "arg"
