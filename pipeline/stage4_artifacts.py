"""Stage 4: Artifacts. Copy sources and diff images into the report root.

Writes: <report_dir>/a/<subpath>      verbatim copy of the A-side image
        <report_dir>/b/<subpath>      verbatim copy of the B-side image
        <report_dir>/diff/<subpath>   diff visualisation
        plus a <stem>.<thumb_suffix> thumbnail next to each of them

Existing files are overwritten one by one; nothing is ever deleted.
"""
import logging
import shutil
from pathlib import Path
from typing import Iterable, Literal

from PIL import Image

from pipeline.errors import ImageDecodeError, ImageEncodeError, ReportIOError
from settings import Settings

logger = logging.getLogger(__name__)


class ArtifactStore:
    def __init__(self, settings: Settings):
        self.settings = settings

    def copy_source(self, source: Path, subpath: Path, side: Literal["a", "b"]) -> Path:
        """Copy ``source`` to ``<side>/<subpath>`` and thumbnail it.

        Returns the path of the copy.
        """
        side_dir = self.settings.a_dir if side == "a" else self.settings.b_dir
        target = side_dir / subpath
        _ensure_parent(target)
        try:
            shutil.copy2(source, target)
        except OSError as exc:
            raise ReportIOError(f"Cannot copy {source} → {target}: {exc}") from exc

        self._thumbnail_from_file(target)
        logger.debug("Copied %s → %s", source, target)
        return target

    def save_diff(self, subpath: Path, image: Image.Image) -> Path:
        """Encode ``image`` as ``diff/<subpath>`` (format from the extension)."""
        target = self.settings.diff_dir / subpath
        _ensure_parent(target)
        _save(image, target)
        self.write_thumbnail(image, self.thumbnail_path(target))
        logger.debug("Saved diff → %s", target)
        return target

    def thumbnail_path(self, path: Path) -> Path:
        """``icons/logo.png`` → ``icons/logo.sm.jpg`` for the default suffix."""
        return path.with_name(f"{path.stem}.{self.settings.thumb_suffix}")

    def thumbnail_clashes(self, paths: Iterable[Path]) -> list[tuple[Path, ...]]:
        """Groups of ``paths`` that differ only by extension and so share one thumbnail."""
        by_thumb: dict[Path, list[Path]] = {}
        for path in paths:
            by_thumb.setdefault(self.thumbnail_path(path), []).append(path)
        return sorted(
            tuple(sorted(group, key=Path.as_posix))
            for group in by_thumb.values()
            if len(group) > 1
        )

    def write_thumbnail(self, image: Image.Image, target: Path) -> Path:
        """Scale to exactly ``thumb_height`` px high, width proportional."""
        height = self.settings.thumb_height
        width = max(1, round(image.width * height / image.height))
        thumb = image.convert("RGB").resize((width, height), Image.Resampling.BILINEAR)
        _ensure_parent(target)
        _save(thumb, target)
        return target

    def _thumbnail_from_file(self, path: Path) -> None:
        try:
            with Image.open(path) as img:
                img.load()
                self.write_thumbnail(img, self.thumbnail_path(path))
        except (OSError, ValueError) as exc:
            raise ImageDecodeError(f"Cannot decode {path}: {exc}") from exc


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _ensure_parent(path: Path) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise ReportIOError(f"Cannot create {path.parent}: {exc}") from exc


def _save(image: Image.Image, target: Path) -> None:
    # Pillow raises ValueError for an unknown extension, OSError for encoder/IO failures
    try:
        image.save(target)
    except ValueError as exc:
        raise ImageEncodeError(f"Cannot encode {target}: {exc}") from exc
    except OSError as exc:
        raise ReportIOError(f"Cannot write {target}: {exc}") from exc
