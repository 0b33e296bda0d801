"""
Unit tests for the editor pre-transform (filters and rotation).

Uses small synthetic RGBA images with marker pixels so rotations and filter
values can be checked exactly.
"""

import io

import numpy as np
import pytest
from numpy.typing import NDArray
from PIL import Image

from docscan.adjustments import (
    TransformSpec,
    adjust_brightness,
    adjust_contrast,
    adjust_saturation,
    apply_filters,
    apply_transform,
    edit_image,
    rotate_image,
    rotated_size,
    rotation_matrix,
    saturation_matrix,
)
from docscan.codec import decode_image, to_array
from docscan.errors import DecodeError

RED = (255, 0, 0, 255)
WHITE = (255, 255, 255, 255)


# ============================================================================
# Test Fixtures
# ============================================================================

def _solid(width: int, height: int, rgba: tuple[int, int, int, int]) -> Image.Image:
    return Image.fromarray(np.full((height, width, 4), rgba, dtype=np.uint8))


@pytest.fixture
def marked_image() -> Image.Image:
    """White 200x100 image with a red pixel in the top-left corner."""
    pixels = np.full((100, 200, 4), WHITE, dtype=np.uint8)
    pixels[0, 0] = RED
    return Image.fromarray(pixels)


@pytest.fixture
def textured_image() -> Image.Image:
    """Random 64x48 image, used to check lossless rotations."""
    rng = np.random.default_rng(42)
    pixels = rng.integers(0, 256, size=(48, 64, 4), dtype=np.uint8)
    return Image.fromarray(pixels)


def _rgb(value: tuple[float, float, float]) -> NDArray[np.float32]:
    return np.array([[value]], dtype=np.float32)


# ============================================================================
# TransformSpec Tests
# ============================================================================

def test_transform_spec_defaults_are_identity():
    spec = TransformSpec()
    assert (spec.rotation, spec.brightness, spec.contrast, spec.saturation) == (0, 100, 100, 100)
    assert spec.is_identity


@pytest.mark.parametrize("rotation", [45, -90, 360, 91])
def test_transform_spec_invalid_rotation(rotation: int):
    """Only quarter turns in [0, 270] are accepted."""
    with pytest.raises(ValueError):
        TransformSpec(rotation=rotation)


@pytest.mark.parametrize("field", ["brightness", "contrast", "saturation"])
@pytest.mark.parametrize("value", [-1, 200.5, 500])
def test_transform_spec_percent_out_of_range(field: str, value: float):
    with pytest.raises(ValueError):
        TransformSpec(**{field: value})


@pytest.mark.parametrize("value", [0, 200])
def test_transform_spec_percent_bounds_allowed(value: float):
    spec = TransformSpec(brightness=value, contrast=value, saturation=value)
    assert not spec.is_identity


def test_rotated_cycles_through_quarter_turns():
    """Four clockwise steps return to 0."""
    spec = TransformSpec()
    seen = []
    for _ in range(4):
        spec = spec.rotated()
        seen.append(spec.rotation)
    assert seen == [90, 180, 270, 0]


def test_rotated_keeps_filters():
    spec = TransformSpec(brightness=120, contrast=80, saturation=0).rotated()
    assert (spec.brightness, spec.contrast, spec.saturation) == (120, 80, 0)


# ============================================================================
# Filter Tests
# ============================================================================

def test_adjust_brightness_scales_channels():
    result = adjust_brightness(_rgb((100, 50, 20)), 150)
    assert np.allclose(result, [[[150, 75, 30]]])


def test_adjust_brightness_clamps():
    result = adjust_brightness(_rgb((200, 0, 255)), 200)
    assert np.allclose(result, [[[255, 0, 255]]])


def test_adjust_brightness_zero_is_black():
    assert np.allclose(adjust_brightness(_rgb((12, 34, 56)), 0), 0)


def test_adjust_contrast_zero_is_mid_grey():
    assert np.allclose(adjust_contrast(_rgb((0, 100, 255)), 0), 127.5)


def test_adjust_contrast_half():
    result = adjust_contrast(_rgb((100, 0, 255)), 50)
    assert np.allclose(result, [[[113.75, 63.75, 191.25]]])


def test_adjust_contrast_clamps():
    result = adjust_contrast(_rgb((250, 5, 127.5)), 200)
    assert np.allclose(result, [[[255, 0, 127.5]]])


def test_saturation_matrix_identity_at_100():
    assert np.allclose(saturation_matrix(100), np.eye(3), atol=1e-6)


def test_adjust_saturation_zero_is_greyscale():
    """Pure red collapses to its luminance on every channel."""
    result = adjust_saturation(_rgb((255, 0, 0)), 0)
    assert np.allclose(result, 0.213 * 255, atol=1e-3)


def test_adjust_saturation_keeps_greys():
    """Neutral colours are unaffected by saturation."""
    result = adjust_saturation(_rgb((90, 90, 90)), 180)
    assert np.allclose(result, 90, atol=1e-3)


def test_apply_filters_preserves_alpha():
    image = _solid(4, 4, (100, 100, 100, 128))
    result = to_array(apply_filters(image, TransformSpec(brightness=150)))
    assert np.all(result[:, :, 3] == 128)
    assert np.all(result[:, :, :3] == 150)


def test_apply_filters_brightness_before_contrast():
    """Brightness runs first: 100 -> 200 -> 200/2 + 63.75."""
    image = _solid(2, 2, (100, 100, 100, 255))
    result = to_array(apply_filters(image, TransformSpec(brightness=200, contrast=50)))
    assert np.all(result[:, :, :3] == 164)


def test_apply_filters_contrast_before_saturation():
    """Contrast runs first: (200, 100, 0) -> (255, 72.5, 0) -> luminance 106."""
    image = _solid(2, 2, (200, 100, 0, 255))
    result = to_array(apply_filters(image, TransformSpec(contrast=200, saturation=0)))
    # the other order would give 101 (luminance 114.1, then contrast)
    assert np.all(result[:, :, :3] == 106)


def test_apply_filters_identity_is_unchanged(
textured_image: Image.Image):
    result = apply_filters(textured_image, TransformSpec())
    assert np.array_equal(to_array(result), to_array(textured_image))


def test_apply_filters_does_not_mutate_input(textured_image: Image.Image):
    before = textured_image.tobytes()
    apply_filters(textured_image, TransformSpec(brightness=0))
    assert textured_image.tobytes() == before


# ============================================================================
# Rotation Tests
# ============================================================================

@pytest.mark.parametrize("rotation,expected", [
    (0, (200, 100)),
    (90, (100, 200)),
    (180, (200, 100)),
    (270, (100, 200)),
])
def test_rotated_size(rotation: int, expected: tuple[int, int]):
    assert rotated_size(200, 100, rotation) == expected


def test_rotation_matrix_quarter_turn():
    """Source (x, y) maps to (height - 1 - y, x) for a clockwise quarter turn."""
    matrix = rotation_matrix(200, 100, 90)
    assert np.allclose(matrix, [[0, -1, 99], [1, 0, 0]])


def test_rotation_matrix_zero_is_identity():
    assert np.allclose(rotation_matrix(200, 100, 0), [[1, 0, 0], [0, 1, 0]])


def test_rotate_90_swaps_dimensions(marked_image: Image.Image):
    """200x100 rotated 90 degrees becomes 100x200."""
    assert rotate_image(marked_image, 90).size == (100, 200)


@pytest.mark.parametrize("rotation,marker_xy", [
    (0, (0, 0)),
    (90, (99, 0)),
    (180, (199, 99)),
    (270, (0, 199)),
])
def test_rotation_is_clockwise_about_centre(marked_image: Image.Image, rotation: int,
                                            marker_xy: tuple[int, int]):
    """Top-left marker travels clockwise round the corners."""
    result = rotate_image(marked_image, rotation)
    assert result.getpixel(marker_xy) == RED
    # every other pixel stays white
    pixels = to_array(result)
    assert np.count_nonzero(np.any(pixels != WHITE, axis=2)) == 1


@pytest.mark.parametrize("rotation", [90, 180, 270])
def test_rotation_matches_numpy_rot90(textured_image: Image.Image, rotation: int):
    """Quarter turns are lossless (numpy rot90 with k<0 is clockwise)."""
    expected = np.rot90(to_array(textured_image), k=-(rotation // 90))
    assert np.array_equal(to_array(rotate_image(textured_image, rotation)), expected)


def test_four_quarter_turns_round_trip(textured_image: Image.Image):
    """Rotating 4x90 degrees restores the original image."""
    result = textured_image
    for _ in range(4):
        result = rotate_image(result, 90)
    assert result.size == textured_image.size
    assert np.array_equal(to_array(result), to_array(textured_image))


def test_rotate_image_invalid_angle(marked_image: Image.Image):
    with pytest.raises(ValueError):
        rotate_image(marked_image, 45)


# ============================================================================
# Pipeline Tests
# ============================================================================

def test_apply_transform_rotates_and_filters():
    image = _solid(20, 10, (100, 50, 20, 255))
    result = apply_transform(image, TransformSpec(rotation=270, brightness=150))
    assert result.size == (10, 20)
    assert result.getpixel((5, 5)) == (150, 75, 30, 255)


def test_apply_transform_identity_returns_copy(textured_image: Image.Image):
    result = apply_transform(textured_image, TransformSpec())
    assert result is not textured_image
    assert np.array_equal(to_array(result), to_array(textured_image))


def test_apply_transform_rejects_bad_buffer():
    with pytest.raises(DecodeError):
        apply_transform(b"\x00\x01\x02", TransformSpec(rotation=90))


def test_edit_image_returns_png(marked_image: Image.Image):
    buffer = io.BytesIO()
    marked_image.save(buffer, format="PNG")

    edited = edit_image(buffer.getvalue(), TransformSpec(rotation=90))
    assert edited.startswith(b"\x89PNG")

    decoded = decode_image(edited)
    assert decoded.size == (100, 200)
    assert decoded.getpixel((99, 0)) == RED
