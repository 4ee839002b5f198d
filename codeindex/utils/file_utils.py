"""File utility functions."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Iterable, List, Optional, Union

from ..config.manager import DEFAULT_EXCLUDE_DIRS
from ..core.models import Entity
from ..exceptions import AmbiguousPathError, DiscoveryError, IndexFileError

logger = logging.getLogger(__name__)


def normalize_extensions(extensions: Iterable[str]) -> List[str]:
    """Lower-case extensions without their leading dot, duplicates removed."""
    out: List[str] = []
    for ext in extensions:
        ext = ext.strip().lstrip(".").lower()
        if ext and ext not in out:
            out.append(ext)
    return out


def find_files_by_extensions(
    root: Union[str, Path],
    extensions: Iterable[str],
    exclude_dirs: Optional[Iterable[str]] = None,
) -> List[Path]:
    """Recursively collect regular files whose extension is in extensions.

    Directories whose name is in exclude_dirs or starts with "." are not
    entered (the root itself is always walked). Symbolic links are not
    followed. Results come back in a stable, sorted walk order.

    Args:
        root: Directory to walk
        extensions: Extensions with or without leading dot
        exclude_dirs: Directory names to skip (defaults to DEFAULT_EXCLUDE_DIRS)

    Returns:
        Matching file paths

    Raises:
        DiscoveryError: If root is not a readable directory
    """
    root = Path(root)
    wanted = set(normalize_extensions(extensions))
    excluded = set(DEFAULT_EXCLUDE_DIRS if exclude_dirs is None else exclude_dirs)

    if not root.is_dir():
        raise DiscoveryError(f"Not a directory: {root}")

    found: List[Path] = []

    def _walk(directory: Path) -> None:
        with os.scandir(directory) as it:
            entries = sorted(it, key=lambda e: e.name)
        for entry in entries:
            if entry.is_dir(follow_symlinks=False):
                if entry.name in excluded or entry.name.startswith("."):
                    logger.debug(f"Skipping directory {entry.path}")
                    continue
                _walk(Path(entry.path))
            elif entry.is_file(follow_symlinks=False):
                ext = os.path.splitext(entry.name)[1].lstrip(".").lower()
                if ext and ext in wanted:
                    found.append(Path(entry.path))

    try:
        _walk(root)
    except OSError as e:
        raise DiscoveryError(f"Failed to walk {root}: {e}") from e

    logger.debug(f"Found {len(found)} files under {root} matching {sorted(wanted)}")
    return found


def find_file_by_suffix(root: Union[str, Path], suffix: Union[str, Path]) -> Optional[Path]:
    """Resolve a partial path to the single file under root that ends with it.

    Returns:
        The matching path, or None when nothing matches

    Raises:
        AmbiguousPathError: If more than one file matches
    """
    root = Path(root)
    parts = Path(suffix).parts
    if not parts:
        return None

    matches: List[Path] = []
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if not d.startswith(".") and d not in DEFAULT_EXCLUDE_DIRS)
        if parts[-1] not in filenames:
            continue
        candidate = Path(dirpath) / parts[-1]
        if candidate.parts[-len(parts):] == parts:
            matches.append(candidate)

    if len(matches) > 1:
        listing = ", ".join(str(m) for m in matches)
        raise AmbiguousPathError(f"Multiple files match '{suffix}': {listing}")
    return matches[0] if matches else None


def ensure_dir(p: Path) -> None:
    """Create directory if it doesn't exist."""
    p.mkdir(parents=True, exist_ok=True)


def write_entities_json(entities: List[Entity], path: Union[str, Path]) -> None:
    """Write entities as a pretty-printed JSON array."""
    path = Path(path)
    try:
        if path.parent != Path(""):
            ensure_dir(path.parent)
        with path.open("w", encoding="utf-8") as f:
            json.dump([e.to_dict() for e in entities], f, indent=2, ensure_ascii=False)
    except (OSError, TypeError, ValueError) as e:
        raise IndexFileError(f"Failed to write index file {path}: {e}") from e
    logger.info(f"Wrote {len(entities)} entities to {path}")


def read_entities_json(path: Union[str, Path]) -> List[Entity]:
    """Read a JSON array of entities written by write_entities_json."""
    path = Path(path)
    try:
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        raise IndexFileError(f"Failed to read index file {path}: {e}") from e
    if not isinstance(data, list):
        raise IndexFileError(f"Index file {path} does not contain a JSON array")
    try:
        return [Entity.from_dict(item) for item in data]
    except (KeyError, TypeError, ValueError) as e:
        raise IndexFileError(f"Malformed entity in {path}: {e}") from e
