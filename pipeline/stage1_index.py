"""Stage 1: Index. Walk one root and collect relative image paths.

Reads:  <root>/**  (symlinks followed)
Writes: nothing
"""
import logging
import os
from pathlib import Path

from settings import Settings

logger = logging.getLogger(__name__)


def relative_image_paths(root: Path, settings: Settings) -> frozenset[Path]:
    """Return every supported image under ``root`` as a root-relative path.

    Unreadable directories and broken links are skipped, never raised.
    Symlinked directories are followed. A link back to one of the
    directories currently being walked is a cycle and is not entered, but
    two links to the same sibling directory both yield their paths.
    """
    found: set[Path] = set()
    _walk(Path(root), Path(), frozenset(), settings.image_extensions, found)
    logger.info("Indexed %s → %d image(s)", root, len(found))
    return frozenset(found)


def _walk(
    directory: Path,
    relative: Path,
    ancestors: frozenset[tuple[int, int]],
    extensions: frozenset[str],
    found: set[Path],
) -> None:
    identity = _dir_identity(directory)
    if identity is None:
        return
    if identity in ancestors:
        logger.debug("Not re-entering %s: symlink cycle", directory)
        return
    ancestors = ancestors | {identity}

    try:
        with os.scandir(directory) as it:
            entries = sorted(it, key=lambda e: e.name)
    except OSError as exc:
        logger.debug("Skipping unreadable directory %s: %s", directory, exc.strerror)
        return

    for entry in entries:
        try:
            is_dir = entry.is_dir()
        except OSError as exc:
            logger.debug("Cannot stat %s: %s", entry.path, exc)
            continue
        if is_dir:
            _walk(Path(entry.path), relative / entry.name, ancestors, extensions, found)
            continue
        if not _has_image_extension(entry.name, extensions):
            continue
        # os.path.isfile swallows OSError: broken links and EACCES read as "not a file"
        if not os.path.isfile(entry.path):
            logger.debug("Skipping unreadable entry: %s", entry.path)
            continue
        found.add(relative / entry.name)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _has_image_extension(name: str, extensions: frozenset[str]) -> bool:
    suffix = Path(name).suffix
    return bool(suffix) and suffix[1:].lower() in extensions


def _dir_identity(directory: Path) -> tuple[int, int] | None:
    try:
        st = os.stat(directory)
    except OSError as exc:
        logger.debug("Cannot stat %s: %s", directory, exc)
        return None
    return st.st_dev, st.st_ino
