"""
Tests for letterboxing, the bicubic resize and BGR tensor layout.
"""

import math
import numpy as np
import pytest
from PIL import Image
from wd_tagger.preprocessing import bicubic_kernel, letterbox, normalize_image, resize_bicubic


def _reference_contribs(dst, src):
    scale = src / dst
    half_width, arg_scale = 2.0, 1.0
    if scale > 1:
        half_width *= scale
        arg_scale = 1 / scale
    rows = []
    for x in range(dst):
        center = (x + 0.5) * scale - 0.5
        lo = max(math.floor(center - half_width), 0)
        hi = min(math.ceil(center + half_width), src)
        contribs, total = [], 0.0
        for k in range(lo, hi):
            t = abs((k - center) * arg_scale)
            if t >= 2:
                continue
            if t < 1:
                w = (1.5 * t - 2.5) * t * t + 1
            else:
                w = ((-0.5 * t + 2.5) * t - 4) * t + 2
            if w == 0:
                continue
            total += w
            contribs.append((k, w))
        inv = 1 / total if total != 0 else 0.0
        rows.append((contribs, inv))
    return rows


def _ftou(f):
    i = int(0xffff * f + 0.5)
    return min(max(i, 0), 0xffff)


def _reference_resize(pixels, width, height):
    """Straight per-pixel loop over RGBA with an opaque alpha channel."""
    src_h, src_w, channels = pixels.shape
    cols = _reference_contribs(width, src_w)
    rows = _reference_contribs(height, src_h)
    tmp = np.zeros((src_h, width, channels + 1))
    for y in range(src_h):
        for x in range(width):
            contribs, inv = cols[x]
            for c in range(channels + 1):
                acc = 0.0
                for k, w in contribs:
                    value = 255 if c == channels else int(pixels[y, k, c])
                    acc += float(value * 0x101) * w
                tmp[y, x, c] = acc * (inv / 0xffff)
    out = np.zeros((height, width, channels), dtype=np.uint8)
    for y in range(height):
        for x in range(width):
            contribs, inv = rows[y]
            sums = []
            for c in range(channels + 1):
                acc = 0.0
                for k, w in contribs:
                    acc += tmp[k, x, c] * w
                sums.append(acc * inv)
            alpha = sums[channels]
            for c in range(channels):
                out[y, x, c] = _ftou(min(sums[c], alpha)) >> 8
    return out


class TestBicubicKernel:
    def test_kernel_values(self):
        assert bicubic_kernel(0.0) == 1.0
        assert bicubic_kernel(1.0) == 0.0
        assert bicubic_kernel(2.0) == 0.0
        assert bicubic_kernel(0.5) == pytest.approx(0.5625)
        assert bicubic_kernel(-0.5) == pytest.approx(0.5625)
        assert bicubic_kernel(1.5) == pytest.approx(-0.0625)
        assert bicubic_kernel(3.0) == 0.0


class TestResize:
    @pytest.mark.parametrize("src_shape, dst", [((13, 13), (5, 5)), ((4, 4), (9, 9)), ((17, 11), (6, 7))])
    def test_matches_reference_loop(self, src_shape, dst):
        rng = np.random.default_rng(42)
        pixels = rng.integers(0, 256, size=(*src_shape, 3), dtype=np.uint8)
        expected = _reference_resize(pixels, *dst)
        assert np.array_equal(resize_bicubic(pixels, *dst), expected)

    @pytest.mark.parametrize("seed", [0, 1, 2])
    @pytest.mark.parametrize("src_shape, dst", [
        ((22, 19), (55, 55)),
        ((4, 16), (17, 17)),
        ((31, 29), (8, 8)),
        ((9, 5), (12, 7)),
    ])
    def test_high_contrast_matches_reference_loop(self, seed, src_shape, dst):
        # Hard black/white edges make the kernel overshoot, exercising the clamps
        rng = np.random.default_rng(seed)
        pixels = rng.choice(np.array([0, 255], dtype=np.uint8), size=(*src_shape, 3))
        expected = _reference_resize(pixels, *dst)
        assert np.array_equal(resize_bicubic(pixels, *dst), expected)

    def test_overshoot_is_clamped(self):
        pixels = np.zeros((1, 6, 3), dtype=np.uint8)
        pixels[:, 3:] = 255
        resized = resize_bicubic(pixels, 24, 1)
        assert (resized[0, :4] == 0).all()
        assert (resized[0, -4:] == 255).all()
        assert np.array_equal(resized, _reference_resize(pixels, 24, 1))

    def test_same_size_is_identity(self):
        rng = np.random.default_rng(7)
        pixels = rng.integers(0, 256, size=(6, 6, 3), dtype=np.uint8)
        assert np.array_equal(resize_bicubic(pixels, 6, 6), pixels)

    def test_solid_color_survives(self):
        pixels = np.full((50, 50, 3), (12, 34, 56), dtype=np.uint8)
        resized = resize_bicubic(pixels, 8, 8)
        assert (resized == np.array([12, 34, 56], dtype=np.uint8)).all()


class TestLetterbox:
    def test_wide_image_padding(self):
        image = Image.new("RGB", (10, 5), (255, 0, 0))
        canvas = np.asarray(letterbox(image))

        assert canvas.shape == (10, 10, 3)
        red_rows = [y for y in range(10) if (canvas[y] == (255, 0, 0)).all()]
        # floor((10 - 5) / 2) above, ceil below
        assert red_rows == [2, 3, 4, 5, 6]
        assert (canvas[:2] == 255).all()
        assert (canvas[7:] == 255).all()

    def test_tall_image_padding(self):
        image = Image.new("RGB", (4, 11), (0, 0, 255))
        canvas = np.asarray(letterbox(image))

        assert canvas.shape == (11, 11, 3)
        blue_cols = [x for x in range(11) if (canvas[:, x] == (0, 0, 255)).all()]
        assert blue_cols == [3, 4, 5, 6]
        assert (canvas[:, :3] == 255).all()
        assert (canvas[:, 7:] == 255).all()

    def test_transparency_composited_on_white(self):
        image = Image.new("RGBA", (4, 4), (0, 0, 0, 0))
        canvas = np.asarray(letterbox(image))
        assert canvas.shape == (4, 4, 3)
        assert (canvas == 255).all()

    def test_grayscale_converted(self):
        image = Image.new("L", (3, 3), 100)
        canvas = np.asarray(letterbox(image))
        assert (canvas == 100).all()


class TestNormalizeImage:
    def test_shape_and_dtype(self):
        tensor = normalize_image(Image.new("RGB", (30, 20), (1, 2, 3)), 16)
        assert tensor.shape == (16, 16, 3)
        assert tensor.dtype == np.float32
        assert tensor.ravel().size == 16 * 16 * 3
        assert not tensor.flags.writeable

    def test_channels_are_bgr(self):
        tensor = normalize_image(Image.new("RGB", (8, 8), (200, 100, 50)), 4)
        assert (tensor[..., 0] == 50).all()
        assert (tensor[..., 1] == 100).all()
        assert (tensor[..., 2] == 200).all()

    def test_values_stay_in_byte_range(self):
        rng = np.random.default_rng(3)
        image = Image.fromarray(rng.integers(0, 256, size=(37, 23, 3), dtype=np.uint8))
        tensor = normalize_image(image, 16)
        assert tensor.min() >= 0
        assert tensor.max() <= 255
        assert np.array_equal(tensor, np.round(tensor))

    def test_idempotent(self):
        rng = np.random.default_rng(11)
        image = Image.fromarray(rng.integers(0, 256, size=(40, 25, 3), dtype=np.uint8))
        first = normalize_image(image, 12)
        second = normalize_image(image, 12)
        assert first.tobytes() == second.tobytes()

    def test_degenerate_images(self):
        single = normalize_image(Image.new("RGB", (1, 1), (9, 8, 7)), 5)
        assert (single == np.array([7, 8, 9], dtype=np.float32)).all()

        empty = normalize_image(Image.new("RGB", (0, 0)), 5)
        assert (empty == 255).all()

    def test_rejects_non_positive_size(self):
        with pytest.raises(ValueError):
            normalize_image(Image.new("RGB", (4, 4)), 0)
