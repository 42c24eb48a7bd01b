from pathlib import Path

import pytest
from PIL import Image

from settings import Settings


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings writing the report into a fresh temp directory."""
    return Settings(report_dir=tmp_path / "out")


@pytest.fixture
def roots(tmp_path: Path) -> tuple[Path, Path]:
    """Two empty input roots:

        tmp/a/   reference tree
        tmp/b/   tree compared against A
    """
    dir_a = tmp_path / "a"
    dir_b = tmp_path / "b"
    dir_a.mkdir()
    dir_b.mkdir()
    return dir_a, dir_b


def make_image(path: Path, size=(16, 12), color=(200, 40, 40), mode="RGB") -> Path:
    """Write a solid-colour image; the format follows the file extension."""
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.new(mode, size, color).save(path)
    return path


def make_pattern(path: Path, size=(32, 24), seed: int = 0) -> Path:
    """Write a deterministic, textured RGB PNG (SSIM needs some structure)."""
    import numpy as np

    rng = np.random.default_rng(seed)
    pixels = rng.integers(0, 256, size=(size[1], size[0], 3), dtype=np.uint8)
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.fromarray(pixels).save(path)
    return path
