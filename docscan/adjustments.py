"""
Editor pre-transform: rotation and photometric filters.

Reproduces what the image editor does on its canvas before a document is
saved or signed: brightness, contrast and saturation filters (in that order)
followed by a rotation by a multiple of 90 degrees about the image centre.
"""

import logging
import math
from dataclasses import dataclass, replace

import cv2
import numpy as np
from numpy.typing import NDArray
from PIL import Image

from .codec import ImageSource, encode_image, ensure_image, from_array, to_array

logger = logging.getLogger(__name__)

VALID_ROTATIONS = (0, 90, 180, 270)
MIN_PERCENT = 0
MAX_PERCENT = 200

# Rec. 709 luminance weights used by the CSS saturate() filter
_LUMA_R = 0.213
_LUMA_G = 0.715
_LUMA_B = 0.072


@dataclass(frozen=True)
class TransformSpec:
    """
    Editor settings applied to a base image.

    Attributes:
        rotation: Clockwise rotation in degrees (0, 90, 180 or 270)
        brightness: Brightness percentage (0-200, 100 = unchanged)
        contrast: Contrast percentage (0-200, 100 = unchanged)
        saturation: Saturation percentage (0-200, 100 = unchanged)
    """
    rotation: int = 0
    brightness: float = 100
    contrast: float = 100
    saturation: float = 100

    def __post_init__(self) -> None:
        if self.rotation not in VALID_ROTATIONS:
            raise ValueError(
                f"Rotation must be one of {VALID_ROTATIONS}, got {self.rotation}"
            )
        for name in ("brightness", "contrast", "saturation"):
            value = getattr(self, name)
            if not MIN_PERCENT <= value <= MAX_PERCENT:
                raise ValueError(
                    f"{name.capitalize()} must be between {MIN_PERCENT} and "
                    f"{MAX_PERCENT} percent, got {value}"
                )

    def rotated(self) -> "TransformSpec":
        """Return a copy turned a further 90 degrees clockwise."""
        return replace(self, rotation=(self.rotation + 90) % 360)

    @property
    def is_identity(self) -> bool:
        return self == TransformSpec()


# ============================================================================
# Photometric filters
# ============================================================================

def adjust_brightness(rgb: NDArray[np.float32], percent: float) -> NDArray[np.float32]:
    """
    Scale every channel by ``percent / 100``.

    Args:
        rgb: Float RGB values in [0, 255]
        percent: Brightness percentage (100 = unchanged)

    Returns:
        Adjusted values clamped to [0, 255]
    """
    return np.clip(rgb * (percent / 100.0), 0.0, 255.0)


def adjust_contrast(rgb: NDArray[np.float32], percent: float) -> NDArray[np.float32]:
    """
    Stretch or compress values around mid-grey.

    Args:
        rgb: Float RGB values in [0, 255]
        percent: Contrast percentage (100 = unchanged, 0 = flat grey)

    Returns:
        Adjusted values clamped to [0, 255]
    """
    factor = percent / 100.0
    return np.clip((rgb - 127.5) * factor + 127.5, 0.0, 255.0)


def saturation_matrix(percent: float) -> NDArray[np.float32]:
    """3x3 colour matrix for the CSS saturate() filter (rows are output R, G, B)."""
    s = percent / 100.0
    return np.array([
        [_LUMA_R + (1 - _LUMA_R) * s, _LUMA_G - _LUMA_G * s, _LUMA_B - _LUMA_B * s],
        [_LUMA_R - _LUMA_R * s, _LUMA_G + (1 - _LUMA_G) * s, _LUMA_B - _LUMA_B * s],
        [_LUMA_R - _LUMA_R * s, _LUMA_G - _LUMA_G * s, _LUMA_B + (1 - _LUMA_B) * s],
    ], dtype=np.float32)


def adjust_saturation(rgb: NDArray[np.float32], percent: float) -> NDArray[np.float32]:
    """
    Move colours towards (below 100) or away from (above 100) their luminance.

    Args:
        rgb: Float RGB values in [0, 255], shape (height, width, 3)
        percent: Saturation percentage (100 = unchanged, 0 = greyscale)

    Returns:
        Adjusted values clamped to [0, 255]
    """
    matrix = saturation_matrix(percent)
    return np.clip(rgb @ matrix.T, 0.0, 255.0)


def apply_filters(image: Image.Image, spec: TransformSpec) -> Image.Image:
    """
    Apply brightness, contrast and saturation (in that order) to RGB channels.

    Alpha is left untouched. Filters at 100% are skipped since they are
    identities.

    Args:
        image: Source image
        spec: Editor settings

    Returns:
        New filtered RGBA image of the same size
    """
    pixels = to_array(image)
    rgb = pixels[:, :, :3].astype(np.float32)

    if spec.brightness != 100:
        rgb = adjust_brightness(rgb, spec.brightness)
    if spec.contrast != 100:
        rgb = adjust_contrast(rgb, spec.contrast)
    if spec.saturation != 100:
        rgb = adjust_saturation(rgb, spec.saturation)

    pixels[:, :, :3] = np.rint(rgb).astype(np.uint8)
    return from_array(pixels)


# ============================================================================
# Rotation
# ============================================================================

def rotated_size(width: int, height: int, rotation: int) -> tuple[int, int]:
    """Canvas size after rotating a ``width`` x ``height`` image."""
    if rotation % 180 == 0:
        return width, height
    return height, width


def rotation_matrix(width: int, height: int, rotation: int) -> NDArray[np.float64]:
    """
    Build the 2x3 affine matrix for a canvas rotation.

    The transform is composed exactly like the editor's canvas calls:
    translate to the canvas centre, rotate clockwise, then translate back by
    half of the original (pre-rotation) size.

    Args:
        width: Source image width
        height: Source image height
        rotation: Clockwise rotation in degrees (multiple of 90)

    Returns:
        Forward (source -> destination) matrix in OpenCV pixel coordinates
    """
    canvas_w, canvas_h = rotated_size(width, height, rotation)
    theta = rotation * math.pi / 180

    # Rotation is a multiple of 90 degrees so the linear part is integral
    linear = np.rint(np.array([
        [math.cos(theta), -math.sin(theta)],
        [math.sin(theta), math.cos(theta)],
    ]))
    to_centre = np.array([canvas_w / 2, canvas_h / 2])
    from_origin = np.array([-width / 2, -height / 2])
    offset = to_centre + linear @ from_origin

    # Canvas coordinates address pixel corners, OpenCV addresses pixel centres
    half = np.array([0.5, 0.5])
    offset = offset + linear @ half - half

    return np.hstack([linear, offset.reshape(2, 1)])


def rotate_image(image: Image.Image, rotation: int) -> Image.Image:
    """
    Rotate an image clockwise about its own centre.

    Args:
        image: Source image
        rotation: 0, 90, 180 or 270 degrees

    Returns:
        Rotated RGBA image; width and height are swapped for 90 and 270

    Raises:
        ValueError: If rotation is not a multiple of 90 in [0, 270]
    """
    if rotation not in VALID_ROTATIONS:
        raise ValueError(f"Rotation must be one of {VALID_ROTATIONS}, got {rotation}")

    if rotation == 0:
        return image.convert("RGBA")

    pixels = to_array(image)
    height, width = pixels.shape[:2]
    canvas_w, canvas_h = rotated_size(width, height, rotation)

    rotated = cv2.warpAffine(
        pixels,
        rotation_matrix(width, height, rotation),
        (canvas_w, canvas_h),
        flags=cv2.INTER_NEAREST,
        borderMode=cv2.BORDER_CONSTANT,
        borderValue=(0, 0, 0, 0),
    )
    return from_array(rotated)


# ============================================================================
# Pipeline
# ============================================================================

def apply_transform(image: ImageSource, spec: TransformSpec) -> Image.Image:
    """
    Run the full editor pipeline on an image.

    Pipeline steps:
    1. Decode (if given a buffer)
    2. Brightness, contrast, saturation filters
    3. Rotation about the image centre

    Args:
        image: Encoded buffer or decoded image
        spec: Editor settings

    Returns:
        Transformed RGBA image, usable as the base of a signature composite

    Raises:
        DecodeError: If ``image`` is a buffer that cannot be decoded
    """
    img = ensure_image(image)
    logger.debug("Applying %s to %dx%d image", spec, img.width, img.height)

    if spec.is_identity:
        return img

    filtered = apply_filters(img, spec)
    return rotate_image(filtered, spec.rotation)


def edit_image(data: ImageSource, spec: TransformSpec, fmt: str = "png") -> bytes:
    """Decode, transform and re-encode an image (the editor's save action)."""
    return encode_image(apply_transform(data, spec), fmt)
