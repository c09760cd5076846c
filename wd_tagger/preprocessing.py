"""
Image preprocessing for WD tagger models.

Images are letterboxed onto a white square canvas, resized with a bicubic
kernel and emitted as raw 0-255 BGR float values, which is what the tagger
models were trained on.
"""

import math
from functools import lru_cache
from typing import Tuple
import numpy as np
from PIL import Image


BICUBIC_SUPPORT = 2.0
WHITE = (255, 255, 255)


def bicubic_kernel(t: np.ndarray) -> np.ndarray:
    """Bicubic convolution weights (a = -0.5) for distances ``t``."""
    t = np.abs(np.asarray(t, dtype=np.float64))
    near = ((1.5 * t - 2.5) * t) * t + 1
    far = ((-0.5 * t + 2.5) * t - 4) * t + 2
    return np.where(t < 1, near, np.where(t < BICUBIC_SUPPORT, far, 0.0))


@lru_cache(maxsize=32)
def _contributions(dst_len: int, src_len: int) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Source taps, raw kernel weights and inverse weight totals.

    Returns ``(dst_len, taps)`` index and weight arrays plus a ``(dst_len,)``
    array of ``1 / sum(weights)``. Rows shorter than the widest are padded
    with zero weights pointing at column 0.
    """
    scale = src_len / dst_len
    half_width, arg_scale = BICUBIC_SUPPORT, 1.0
    if scale > 1:
        # Stretch the kernel when downscaling so every source pixel contributes
        half_width *= scale
        arg_scale = 1 / scale

    rows = []
    inv_totals = np.zeros(dst_len, dtype=np.float64)
    for x in range(dst_len):
        center = (x + 0.5) * scale - 0.5
        lo = max(math.floor(center - half_width), 0)
        hi = min(math.ceil(center + half_width), src_len)
        taps = np.arange(lo, max(hi, lo), dtype=np.intp)
        weights = bicubic_kernel((taps - center) * arg_scale)
        keep = weights != 0
        taps, weights = taps[keep], weights[keep]
        if taps.size:
            # Sequential sum, not numpy's pairwise one
            total = np.add.accumulate(weights)[-1]
            if total != 0:
                inv_totals[x] = 1 / total
        rows.append((taps, weights))

    width = max(1, max(len(taps) for taps, _ in rows))
    indices = np.zeros((dst_len, width), dtype=np.intp)
    weights = np.zeros((dst_len, width), dtype=np.float64)
    for x, (taps, w) in enumerate(rows):
        indices[x, :len(taps)] = taps
        weights[x, :len(w)] = w

    for array in (indices, weights, inv_totals):
        array.flags.writeable = False
    return indices, weights, inv_totals


def _ftou(values: np.ndarray) -> np.ndarray:
    """Map [0, 1] floats to 16-bit integers, rounding half-up."""
    wide = np.trunc(0xffff * values + 0.5)
    return np.clip(wide, 0, 0xffff).astype(np.uint32)


def resize_bicubic(pixels: np.ndarray, width: int, height: int) -> np.ndarray:
    """Resize an opaque 8-bit ``(h, w, 3)`` array with the bicubic kernel.

    Works like golang.org/x/image/draw's kernel scaler on an RGBA image:
    channels are widened to 16 bits and summed with raw kernel weights,
    horizontally then vertically in float64. Each horizontal sum is scaled
    by ``inv_total / 0xffff`` and each vertical sum by ``inv_total``; colour
    is clamped to alpha, rounded half-up to 16 bits and narrowed to 8.
    """
    src_h, src_w, channels = pixels.shape
    idx_x, w_x, inv_x = _contributions(width, src_w)
    idx_y, w_y, inv_y = _contributions(height, src_h)

    # Opaque alpha channel rides along so colour can be clamped against it
    rgba = np.concatenate([pixels, np.full((src_h, src_w, 1), 255, dtype=np.uint8)], axis=2)

    horizontal = np.zeros((src_h, width, channels + 1), dtype=np.float64)
    for k in range(idx_x.shape[1]):
        taps = rgba[:, idx_x[:, k], :].astype(np.float64) * 257.0
        horizontal += taps * w_x[None, :, k, None]
    horizontal *= (inv_x / 0xffff)[None, :, None]

    vertical = np.zeros((height, width, channels + 1), dtype=np.float64)
    for k in range(idx_y.shape[1]):
        vertical += horizontal[idx_y[:, k], :, :] * w_y[:, k, None, None]
    vertical *= inv_y[:, None, None]

    alpha = vertical[:, :, channels:]
    colour = np.minimum(vertical[:, :, :channels], alpha)
    return (_ftou(colour) >> 8).astype(np.uint8)


def _flatten_mode(image: Image.Image) -> Image.Image:
    if image.mode in ("RGBA", "LA", "PA") or "transparency" in image.info:
        return image.convert("RGBA")
    if image.mode != "RGB":
        return image.convert("RGB")
    return image


def letterbox(image: Image.Image) -> Image.Image:
    """Center ``image`` on a white square canvas of side ``max(w, h)``.

    The leading edge gets ``(max_dim - dim) // 2`` pixels of padding and the
    trailing edge the remainder. Transparent pixels are composited onto the
    white background.
    """
    image = _flatten_mode(image)
    width, height = image.size
    max_dim = max(width, height, 1)

    canvas = Image.new("RGB", (max_dim, max_dim), WHITE)
    if width and height:
        offset = ((max_dim - width) // 2, (max_dim - height) // 2)
        if image.mode == "RGBA":
            canvas.paste(image, offset, mask=image.getchannel("A"))
        else:
            canvas.paste(image, offset)
    return canvas


def normalize_image(image: Image.Image, size: int) -> np.ndarray:
    """Turn a decoded image into a ``(size, size, 3)`` BGR float32 tensor.

    The result is read-only; its row-major flattening is the model's
    ``size * size * 3`` input layout with values in ``[0, 255]``.
    """
    if size <= 0:
        raise ValueError(f"Target size must be positive, got {size}")

    canvas = np.asarray(letterbox(image), dtype=np.uint8)
    resized = resize_bicubic(canvas, size, size)

    # RGB to BGR
    tensor = np.ascontiguousarray(resized[:, :, ::-1], dtype=np.float32)
    tensor.flags.writeable = False
    return tensor
