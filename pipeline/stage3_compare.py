"""Stage 3: Compare. Score one common path with the configured backend.

Two interchangeable backends, chosen once per run by ``settings.backend``:

  hybrid  in-process SSIM + chroma metric, diff rendered as a colour map
  flip    NVIDIA FLIP run as a subprocess; its own diff image is picked up

Reads:  <root_a>/<subpath>, <root_b>/<subpath>
Writes: (flip only) <report_dir>/diff/<parent>/<stem>.png, written by the tool;
        a temporary directory instead when no report is generated
"""
import logging
import re
import subprocess
import tempfile
from pathlib import Path
from typing import Protocol

import numpy as np
from PIL import Image

from models.comparison import ComparisonOutcome
from pipeline.errors import (
    CompareError,
    DiffImageMissingError,
    ExternalToolSpawnError,
    FlipOutputParseError,
    ImageDecodeError,
    ReportIOError,
)
from settings import Settings
from utils.hybrid_metric import rgb_hybrid_compare, to_color_map

logger = logging.getLogger(__name__)

# Grammar of the one line FLIP output we rely on: "Mean: <decimal>"
_FLIP_MEAN_PATTERN = re.compile(r"Mean: (\d*\.?\d+)")


class Comparator(Protocol):
    name: str

    def compare(self, image_a: Path, image_b: Path, subpath: Path) -> ComparisonOutcome:
        ...


def make_comparator(settings: Settings) -> Comparator:
    if settings.backend == "flip":
        return FlipComparator(settings)
    return PixelHybridComparator()


# ---------------------------------------------------------------------------
# In-process backend
# ---------------------------------------------------------------------------

class PixelHybridComparator:
    name = "hybrid"

    def compare(self, image_a: Path, image_b: Path, subpath: Path) -> ComparisonOutcome:
        first = _load_rgb(image_a)
        second = _load_rgb(image_b)

        if first.size != second.size:
            logger.debug(
                "Padding %s: %sx%s vs %sx%s", subpath, *first.size, *second.size
            )
            first, second = pad_to_common_size(first, second)

        try:
            score, deviation = rgb_hybrid_compare(np.asarray(first), np.asarray(second))
        except ValueError as exc:
            raise CompareError(f"{subpath}: {exc}") from exc

        return ComparisonOutcome(score=score, diff_image=to_color_map(deviation))


def pad_to_common_size(first: Image.Image, second: Image.Image) -> tuple[Image.Image, Image.Image]:
    """Paste both images top-left onto black canvases of the larger extent."""
    width = max(first.width, second.width)
    height = max(first.height, second.height)
    return _on_canvas(first, width, height), _on_canvas(second, width, height)


def _on_canvas(img: Image.Image, width: int, height: int) -> Image.Image:
    if img.size == (width, height):
        return img
    canvas = Image.new("RGB", (width, height))
    canvas.paste(img, (0, 0))
    return canvas


def _load_rgb(path: Path) -> Image.Image:
    """Decode to 8-bit RGB, alpha dropped. The returned image is fully loaded."""
    try:
        with Image.open(path) as img:
            return img.convert("RGB")
    except (OSError, ValueError, Image.DecompressionBombError) as exc:
        raise ImageDecodeError(f"Cannot decode {path}: {exc}") from exc


# ---------------------------------------------------------------------------
# External FLIP backend
# ---------------------------------------------------------------------------

class FlipComparator:
    name = "flip"

    def __init__(self, settings: Settings):
        self.settings = settings

    def compare(self, image_a: Path, image_b: Path, subpath: Path) -> ComparisonOutcome:
        if not self.settings.generate_report:
            # Terminal-only runs keep FLIP's output out of the report root
            with tempfile.TemporaryDirectory(prefix="imdirdiff-flip-") as scratch:
                return self._compare_into(Path(scratch), image_a, image_b, subpath)
        return self._compare_into(self.settings.diff_dir / subpath.parent, image_a, image_b, subpath)

    def _compare_into(
        self, output_dir: Path, image_a: Path, image_b: Path, subpath: Path
    ) -> ComparisonOutcome:
        basename = subpath.stem
        diff_path = output_dir / f"{basename}.png"
        try:
            output_dir.mkdir(parents=True, exist_ok=True)
            # A diff image left by an earlier run must never be read back as this one's
            diff_path.unlink(missing_ok=True)
        except OSError as exc:
            raise ReportIOError(f"Cannot prepare {diff_path}: {exc}") from exc

        stdout = self._run_flip(image_a, image_b, output_dir, basename)
        mean = parse_flip_mean(stdout)
        score = flip_score(mean)

        diff_image = _load_flip_diff(diff_path, subpath)
        return ComparisonOutcome(score=score, diff_image=diff_image)

    def _run_flip(self, image_a: Path, image_b: Path, output_dir: Path, basename: str) -> bytes:
        cmd = [
            self.settings.flip_executable,
            "-r", str(image_a),
            "-t", str(image_b),
            "-d", str(output_dir),
            "-b", basename,
        ]
        logger.debug("Running: %s", " ".join(cmd))
        try:
            result = subprocess.run(cmd, capture_output=True, check=False)
        except OSError as exc:
            raise ExternalToolSpawnError(
                f"Error running {self.settings.flip_executable}: {exc}"
            ) from exc

        if result.returncode != 0:
            stderr = result.stderr.decode("utf-8", errors="replace").strip()
            logger.warning(
                "%s exited with status %d: %s",
                self.settings.flip_executable, result.returncode, stderr[:200],
            )
        return result.stdout


def parse_flip_mean(stdout: bytes | str) -> float:
    """Extract the ``Mean: <decimal>`` value from FLIP's standard output.

    Raises FlipOutputParseError when the bytes are not UTF-8, the token is
    absent, or the captured text is not a number.
    """
    if isinstance(stdout, bytes):
        try:
            stdout = stdout.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise FlipOutputParseError("FLIP output is not valid UTF-8") from exc

    match = _FLIP_MEAN_PATTERN.search(stdout)
    if match is None:
        raise FlipOutputParseError("FLIP output has no 'Mean:' value")
    try:
        return float(match.group(1))
    except ValueError as exc:
        raise FlipOutputParseError(f"FLIP mean is not a number: {match.group(1)!r}") from exc


def flip_score(mean: float) -> float:
    """Turn a FLIP mean error into a similarity clamped to [0, 1]."""
    if mean > 1.0:
        logger.warning("FLIP mean %.4f exceeds 1.0; scoring as 0.0", mean)
    return min(1.0, max(0.0, 1.0 - mean))


def _load_flip_diff(diff_path: Path, subpath: Path) -> Image.Image:
    # FLIP always names its output <basename>.png
    if not diff_path.is_file():
        raise DiffImageMissingError(f"FLIP wrote no diff image for {subpath} at {diff_path}")
    try:
        with Image.open(diff_path) as img:
            return img.convert("RGB")
    except OSError as exc:
        raise DiffImageMissingError(f"Cannot read FLIP diff image {diff_path}: {exc}") from exc
