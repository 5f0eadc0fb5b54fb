"""Reader and writer for Java ``.properties`` files."""
from __future__ import annotations

import re
from typing import Dict, Iterator, List, Mapping, Optional, Tuple

from thinlauncher.exceptions import ConfigurationError

_ESCAPES = {"t": "\t", "n": "\n", "r": "\r", "f": "\f"}
_KEY_SEPARATORS = "=:"
_UNICODE_ESCAPE = re.compile(r"[0-9a-fA-F]{4}")


def _logical_lines(text: str) -> Iterator[str]:
    """Join continuation lines and drop comments and blanks."""
    pending: Optional[str] = None
    for raw in text.splitlines():
        line = raw.lstrip(" \t\f")
        if pending is None:
            if not line or line[0] in "#!":
                continue
        trailing = len(line) - len(line.rstrip("\\"))
        if trailing % 2 == 1:
            pending = (pending or "") + line[:-1]
            continue
        yield (pending or "") + line
        pending = None
    if pending is not None:
        yield pending


def _unescape(text: str, source: Optional[str]) -> str:
    out: List[str] = []
    i = 0
    while i < len(text):
        char = text[i]
        if char != "\\" or i + 1 == len(text):
            out.append(char)
            i += 1
            continue
        nxt = text[i + 1]
        if nxt == "u":
            digits = text[i + 2:i + 6]
            if not _UNICODE_ESCAPE.fullmatch(digits):
                raise ConfigurationError(f"Malformed \\uxxxx escape in '{text}'", source)
            out.append(chr(int(digits, 16)))
            i += 6
            continue
        out.append(_ESCAPES.get(nxt, nxt))
        i += 2
    return "".join(out)


def _split(line: str) -> Tuple[str, str]:
    """Split at the first unescaped separator: whitespace, ``=`` or ``:``."""
    i = 0
    while i < len(line):
        char = line[i]
        if char == "\\":
            i += 2
            continue
        if char in _KEY_SEPARATORS or char in " \t\f":
            break
        i += 1
    key = line[:i]
    rest = line[i:].lstrip(" \t\f")
    if rest[:1] in ("=", ":"):
        rest = rest[1:].lstrip(" \t\f")
    return key, rest


def loads(text: str, source: Optional[str] = None) -> Dict[str, str]:
    """Parse properties text into an insertion-ordered dict.

    Args:
        text: File contents.
        source: Optional name used in error messages.

    Raises:
        ConfigurationError: On malformed escapes.
    """
    result: Dict[str, str] = {}
    for line in _logical_lines(text):
        key, value = _split(line)
        result[_unescape(key, source)] = _unescape(value, source)
    return result


def load(path, source: Optional[str] = None) -> Dict[str, str]:
    """Read a properties file from disk (UTF-8, falling back to Latin-1)."""
    with open(path, "rb") as fh:
        raw = fh.read()
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError:
        text = raw.decode("latin-1")
    return loads(text, source or str(path))


def _escape(text: str, is_key: bool) -> str:
    out: List[str] = []
    for index, char in enumerate(text):
        if char == "\\":
            out.append("\\\\")
        elif char == "\n":
            out.append("\\n")
        elif char == "\r":
            out.append("\\r")
        elif char == "\t":
            out.append("\\t")
        elif char == " " and (is_key or index == 0):
            out.append("\\ ")
        elif is_key and char in "=:#!":
            out.append("\\" + char)
        else:
            out.append(char)
    return "".join(out)


def dumps(properties: Mapping[str, str], comment: Optional[str] = None) -> str:
    """Render properties in insertion order, one ``key=value`` per line."""
    lines: List[str] = []
    if comment:
        lines.extend(f"# {line}" for line in comment.splitlines())
    for key, value in properties.items():
        lines.append(f"{_escape(key, True)}={_escape(value, False)}")
    return "\n".join(lines) + "\n"
