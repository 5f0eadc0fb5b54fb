"""Command line entry point."""
import logging
import os
import sys
from typing import Optional, Sequence

from thinlauncher.args import parse_args
from thinlauncher.common.logging_utils import configure_logging, extra_context, is_debug_enabled
from thinlauncher.config import load_configuration
from thinlauncher.constants import ExitCodes
from thinlauncher.exceptions import (
    ConfigurationError,
    LaunchError,
    ThinLauncherError,
    UnresolvedArtifactError,
)
from thinlauncher.launcher import Launcher

logger = logging.getLogger(__name__)


def exit_code_for(error: ThinLauncherError) -> int:
    """Map a launcher error to the process exit code."""
    if isinstance(error, ConfigurationError):
        return ExitCodes.CONFIGURATION_ERROR.value
    if isinstance(error, UnresolvedArtifactError):
        return ExitCodes.RESOLUTION_ERROR.value
    if isinstance(error, LaunchError):
        return ExitCodes.LAUNCH_ERROR.value
    return ExitCodes.RESOLUTION_ERROR.value


def _log_level(args, properties) -> Optional[str]:
    if args.DEBUG or "thin.debug" in properties or "thin.trace" in properties:
        return "DEBUG"
    return args.LOG_LEVEL


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the launcher.

    Returns:
        int: The application's exit code after a launch, 0 after a dry run
        or report, otherwise an ExitCodes value.
    """
    args = parse_args(sys.argv[1:] if argv is None else argv)
    configure_logging(_log_level(args, args.PROPERTIES), args.LOG_FILE)
    if is_debug_enabled(logger):
        logger.debug(
            "CLI start",
            extra=extra_context(
                event="function_entry",
                component="cli",
                action="main",
                properties=len(args.PROPERTIES),
                app_args=len(args.APP_ARGS),
            ),
        )
    try:
        context = load_configuration(args.PROPERTIES, os.environ)
        if context.config.get_bool("thin.debug") or context.config.get_bool("thin.trace"):
            logging.getLogger().setLevel(logging.DEBUG)
        return Launcher(context).run(args.APP_ARGS)
    except ThinLauncherError as exc:
        logger.error("%s", exc)
        if is_debug_enabled(logger) and exc.__cause__ is not None:
            logger.debug("Caused by: %r", exc.__cause__)
        return exit_code_for(exc)


if __name__ == "__main__":
    sys.exit(main())
