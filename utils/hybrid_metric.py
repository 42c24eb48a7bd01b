"""Structure + colour hybrid similarity for two equally sized RGB buffers.

Structure is judged by SSIM on the luma (Y) plane; colour by the absolute
chroma (U, V) deviation. Per pixel the weaker of the two signals wins, and
the score is the mean over all pixels:

    sim(p)  = min(ssim_y(p), 1 - sqrt((du(p)^2 + dv(p)^2) / 2))
    score   = mean(sim)

The deviation buffer keeps the three per-channel errors (1 - ssim_y, du, dv),
each in [0, 1], so it maps directly onto an RGB colour map.
"""
import numpy as np
from PIL import Image
from skimage.metrics import structural_similarity

# ITU-R BT.601 RGB → YUV
_RGB_TO_YUV = np.array([
    [0.299, 0.587, 0.114],
    [-0.14713, -0.28886, 0.436],
    [0.615, -0.51499, -0.10001],
])

# structural_similarity needs an odd window of at least 3 px
_MAX_SSIM_WINDOW = 7
_MIN_SSIM_WINDOW = 3


def rgb_hybrid_compare(first: np.ndarray, second: np.ndarray) -> tuple[float, np.ndarray]:
    """Compare two ``(H, W, 3)`` uint8 arrays.

    Returns ``(score, deviation)`` where ``score`` is in [0, 1] (1 = identical)
    and ``deviation`` is a float ``(H, W, 3)`` array in [0, 1].

    Raises ValueError when the shapes differ or are not RGB.
    """
    if first.shape != second.shape:
        raise ValueError(f"shape mismatch: {first.shape} vs {second.shape}")
    if first.ndim != 3 or first.shape[2] != 3:
        raise ValueError(f"expected an (H, W, 3) RGB buffer, got {first.shape}")

    if np.array_equal(first, second):
        return 1.0, np.zeros(first.shape, dtype=np.float64)

    yuv_a = _to_yuv(first)
    yuv_b = _to_yuv(second)

    structure = _structural_similarity(yuv_a[..., 0], yuv_b[..., 0])
    du = np.clip(np.abs(yuv_a[..., 1] - yuv_b[..., 1]) / 255.0, 0.0, 1.0)
    dv = np.clip(np.abs(yuv_a[..., 2] - yuv_b[..., 2]) / 255.0, 0.0, 1.0)

    colour = 1.0 - np.sqrt((du ** 2 + dv ** 2) / 2.0)
    similarity = np.minimum(structure, colour)
    score = float(np.clip(similarity.mean(), 0.0, 1.0))

    deviation = np.stack([1.0 - structure, du, dv], axis=-1)
    return score, deviation


def to_color_map(deviation: np.ndarray) -> Image.Image:
    """Render a deviation buffer as an RGB image (black = no difference)."""
    pixels = np.round(np.clip(deviation, 0.0, 1.0) * 255.0).astype(np.uint8)
    return Image.fromarray(pixels)


def _to_yuv(rgb: np.ndarray) -> np.ndarray:
    return rgb.astype(np.float64) @ _RGB_TO_YUV.T


def _structural_similarity(y_a: np.ndarray, y_b: np.ndarray) -> np.ndarray:
    """Per-pixel SSIM of two luma planes, clipped to [0, 1]."""
    smallest_side = min(y_a.shape)
    if smallest_side < _MIN_SSIM_WINDOW:
        return 1.0 - np.clip(np.abs(y_a - y_b) / 255.0, 0.0, 1.0)

    win_size = min(_MAX_SSIM_WINDOW, smallest_side)
    if win_size % 2 == 0:
        win_size -= 1

    _, ssim_map = structural_similarity(
        y_a, y_b, win_size=win_size, data_range=255.0, full=True
    )
    return np.clip(ssim_map, 0.0, 1.0)
