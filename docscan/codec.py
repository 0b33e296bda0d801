"""
Raster image decoding and encoding.

Everything downstream works on RGBA images: Pillow ``Image.Image`` objects for
drawing and ``uint8`` numpy arrays of shape (height, width, 4) for per-pixel
math.
"""

import io
import logging
import os

import numpy as np
from numpy.typing import NDArray
from PIL import Image, ImageOps, UnidentifiedImageError

from .errors import DecodeError, EncodeError

logger = logging.getLogger(__name__)

# Output format name -> (Pillow format, file extension, save options).
# JPEG quality 90 and WebP quality 100 mirror canvas.toBlob(type, 0.9) and
# canvas.toBlob(type, 1) respectively.
OUTPUT_FORMATS: dict[str, tuple[str, str, dict[str, int]]] = {
    "png": ("PNG", "png", {}),
    "jpeg": ("JPEG", "jpg", {"quality": 90}),
    "webp": ("WEBP", "webp", {"quality": 100}),
}

# Greyscale modes holding more than 8 bits per sample
_WIDE_GREY_MODES = ("I;16", "I;16B", "I;16L", "I;16N", "I")

_FORMAT_ALIASES: dict[str, str] = {
    "png": "png",
    "image/png": "png",
    "jpg": "jpeg",
    "jpeg": "jpeg",
    "image/jpeg": "jpeg",
    "webp": "webp",
    "image/webp": "webp",
}

ImageSource = bytes | Image.Image


def normalize_format(fmt: str) -> str:
    """
    Resolve a user supplied format name or MIME type.

    Args:
        fmt: Format such as "png", "JPG", "jpeg" or "image/webp"

    Returns:
        Canonical format key ("png", "jpeg" or "webp")

    Raises:
        EncodeError: If the format is not supported for output
    """
    key = _FORMAT_ALIASES.get(fmt.strip().lower())
    if key is None:
        raise EncodeError(
            f"Unsupported output format: {fmt!r} "
            f"(expected one of: png, jpg, webp)"
        )
    return key


def file_extension(fmt: str) -> str:
    """File extension (without dot) used when saving ``fmt``."""
    return OUTPUT_FORMATS[normalize_format(fmt)][1]


def _to_rgba(image: Image.Image) -> Image.Image:
    """Convert to RGBA, scaling 16-bit greyscale down instead of clipping it."""
    if image.mode in _WIDE_GREY_MODES:
        samples = np.clip(np.asarray(image, dtype=np.int64), 0, 65535) >> 8
        image = Image.fromarray(samples.astype(np.uint8))
    return image.convert("RGBA")


def decode_image(data: bytes) -> Image.Image:
    """
    Decode an encoded image buffer into an RGBA image.

    The pixel data is fully loaded before returning, so truncated or
    corrupted files fail here rather than at draw time.

    Args:
        data: Encoded image bytes (PNG, JPEG, WebP, ...)

    Returns:
        Decoded image in RGBA mode

    Raises:
        DecodeError: If the buffer is empty, truncated or not an image
    """
    if not data:
        raise DecodeError("Empty image buffer")

    try:
        with Image.open(io.BytesIO(data)) as img:
            img.load()
            # Camera captures come out upright, as browsers display them
            upright = ImageOps.exif_transpose(img)
            rgba = _to_rgba(upright)
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError) as exc:
        raise DecodeError(f"Invalid image format or corrupted data: {exc}") from exc

    logger.debug("Decoded %dx%d image (%d bytes)", rgba.width, rgba.height, len(data))
    return rgba


def load_image(image_path: str) -> Image.Image:
    """
    Load and decode an image from disk.

    Args:
        image_path: Path to the image file

    Returns:
        Decoded image in RGBA mode

    Raises:
        FileNotFoundError: If the image file doesn't exist
        DecodeError: If the file exists but isn't a valid image
    """
    if not os.path.exists(image_path):
        raise FileNotFoundError(f"Image file not found: {image_path}")

    with open(image_path, "rb") as fh:
        data = fh.read()

    try:
        return decode_image(data)
    except DecodeError as exc:
        raise DecodeError(f"{image_path}: {exc}") from exc


def ensure_image(source: ImageSource) -> Image.Image:
    """Return ``source`` as an RGBA image, decoding it first if it is a buffer."""
    if isinstance(source, Image.Image):
        if source.width < 1 or source.height < 1:
            raise DecodeError(f"Image has no pixels: {source.width}x{source.height}")
        # convert() always returns a new image, so callers never share pixels
        return source.convert("RGBA")
    return decode_image(source)


def _flatten(image: Image.Image) -> Image.Image:
    """Drop alpha by compositing over opaque black, as a canvas JPEG export does."""
    background = Image.new("RGBA", image.size, (0, 0, 0, 255))
    return Image.alpha_composite(background, image.convert("RGBA")).convert("RGB")


def encode_image(image: Image.Image, fmt: str = "png") -> bytes:
    """
    Serialize an image to PNG, JPEG or WebP.

    Args:
        image: Image to encode (any mode; converted as needed)
        fmt: Output format ("png" default, "jpg"/"jpeg", "webp")

    Returns:
        Encoded image bytes

    Raises:
        EncodeError: If the format is unsupported or the encoder fails
    """
    key = normalize_format(fmt)
    pil_format, _, options = OUTPUT_FORMATS[key]

    if key == "jpeg":
        prepared = _flatten(image)
    else:
        prepared = image.convert("RGBA")

    buffer = io.BytesIO()
    try:
        prepared.save(buffer, format=pil_format, **options)
    except (OSError, ValueError, KeyError) as exc:
        raise EncodeError(f"Could not encode image as {key}: {exc}") from exc

    encoded = buffer.getvalue()
    logger.debug("Encoded %dx%d image as %s (%d bytes)",
                 image.width, image.height, key, len(encoded))
    return encoded


def to_array(image: Image.Image) -> NDArray[np.uint8]:
    """Copy an image into an RGBA ``uint8`` array of shape (height, width, 4)."""
    return np.array(image.convert("RGBA"), dtype=np.uint8)


def from_array(pixels: NDArray[np.uint8]) -> Image.Image:
    """Wrap an RGBA ``uint8`` array as a Pillow image."""
    if pixels.ndim != 3 or pixels.shape[2] != 4:
        raise ValueError(f"Unsupported image shape: {pixels.shape}")
    return Image.fromarray(np.ascontiguousarray(pixels, dtype=np.uint8))
