"""Argument parsing for the thin launcher.

Launcher options are ``--thin.<key>[=<value>]`` tokens plus a few logging
flags; every other token belongs to the application and is forwarded in
order. Everything after ``--`` is forwarded verbatim.
"""

import argparse
from typing import Dict, List, Optional, Sequence, Tuple

from thinlauncher.constants import Constants

_THIN_FLAG = "--" + Constants.PROPERTY_PREFIX


def build_parser() -> argparse.ArgumentParser:
    """Parser for the launcher's own (non-``thin.``) flags."""
    parser = argparse.ArgumentParser(
        prog="thinlauncher",
        description=(
            "Resolve the dependencies of a thin archive and launch it. "
            "Launcher properties are passed as --thin.<key>=<value>, e.g. "
            "--thin.dryrun, --thin.offline, --thin.root=DIR, --thin.archive=PATH, "
            "--thin.repo=URL, --thin.profile=NAME, --thin.classpath[=properties]."
        ),
        add_help=False,
        allow_abbrev=False,
    )
    parser.add_argument("--debug",
                        dest="DEBUG",
                        help="Enable debug logging (same as --thin.debug)",
                        action="store_true")
    parser.add_argument("--loglevel",
                        dest="LOG_LEVEL",
                        help="Set the logging level",
                        action="store",
                        type=str.upper,
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'])
    parser.add_argument("--logfile",
                        dest="LOG_FILE",
                        help="Log output file",
                        action="store",
                        type=str)
    return parser


def split_thin_arguments(argv: Sequence[str]) -> Tuple[Dict[str, str], List[str]]:
    """Separate ``--thin.*`` properties from the remaining arguments.

    ``--thin.key=value`` sets ``thin.key`` to ``value``; a bare ``--thin.key``
    sets it to the empty string, which boolean properties read as true.
    """
    properties: Dict[str, str] = {}
    remaining: List[str] = []
    for index, token in enumerate(argv):
        if token == "--":
            remaining.extend(argv[index:])
            break
        if token.startswith(_THIN_FLAG) and len(token) > len(_THIN_FLAG):
            key, _, value = token[2:].partition("=")
            properties[key] = value
            continue
        remaining.append(token)
    return properties, remaining


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """Parses the arguments passed to the program.

    Returns:
        argparse.Namespace: DEBUG, LOG_LEVEL and LOG_FILE, plus PROPERTIES
        (the ``thin.*`` command-line properties) and APP_ARGS (arguments for
        the application).
    """
    properties, remaining = split_thin_arguments(list(argv or []))
    forwarded: List[str] = []
    if "--" in remaining:
        cut = remaining.index("--")
        remaining, forwarded = remaining[:cut], remaining[cut + 1:]
    args, app_args = build_parser().parse_known_args(remaining)
    args.PROPERTIES = properties
    args.APP_ARGS = app_args + forwarded
    return args
