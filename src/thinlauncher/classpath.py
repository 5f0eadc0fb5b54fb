"""Classpath Assembler."""
from __future__ import annotations

import os
from pathlib import Path
from typing import Dict, List, Optional

from thinlauncher import properties as props
from thinlauncher.constants import Constants
from thinlauncher.coordinates import manifest_key
from thinlauncher.models import ResolutionResult


def assemble(result: ResolutionResult) -> List[Path]:
    """Ordered classpath entries, one per resolved artifact."""
    return result.paths()


def classpath_string(entries: List[Path], head: Optional[Path] = None) -> str:
    """Join entries with the platform path separator, ``head`` first."""
    parts = [str(head)] if head is not None else []
    parts.extend(str(entry) for entry in entries)
    return os.pathsep.join(parts)


def manifest(result: ResolutionResult) -> Dict[str, str]:
    """Logical key to manifest-form coordinates, in classpath order.

    Two artifacts reducing to the same key (same name and classifier, say
    from different groups) get ``.1``, ``.2``, ... suffixes; none is dropped.
    """
    entries: Dict[str, str] = {}
    for artifact in result:
        key = manifest_key(artifact.coordinate, entries)
        entries[key] = artifact.coordinate.manifest_form()
    return entries


def format_properties(result: ResolutionResult, comment: Optional[str] = None) -> str:
    """Render the manifest as a ``computed`` properties file."""
    rendered: Dict[str, str] = {
        f"{Constants.DEPENDENCIES_PREFIX}{key}": value for key, value in manifest(result).items()
    }
    rendered[Constants.COMPUTED_KEY] = "true"
    return props.dumps(rendered, comment)
