"""
Batch conversion and signing.

Inputs are processed one at a time, in order. A failing item is recorded and
the batch moves on; results already produced are kept.
"""

import logging
from dataclasses import dataclass
from pathlib import PurePath
from typing import Iterable

from .codec import decode_image, encode_image, ensure_image, file_extension, normalize_format
from .compositor import compose, format_timestamp, load_annotation_font
from .config import Settings
from .errors import ImagingError

logger = logging.getLogger(__name__)


@dataclass
class BatchResult:
    """Outcome for a single batch input."""
    source_name: str
    output_name: str
    data: bytes | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def output_name(source_name: str, fmt: str, suffix: str = "") -> str:
    """
    Name of the file produced for ``source_name``.

    Args:
        source_name: Original file name, e.g. "scan.photo.jpeg"
        fmt: Output format
        suffix: Appended to the stem, e.g. "-signed"

    Returns:
        Stem up to the first dot, plus suffix and new extension ("scan-signed.png")
    """
    stem = PurePath(source_name).name.split(".")[0] or "image"
    return f"{stem}{suffix}.{file_extension(fmt)}"


def convert_image(data: bytes, fmt: str) -> bytes:
    """Re-encode an image buffer as ``fmt`` (png, jpg or webp)."""
    return encode_image(decode_image(data), fmt)


def convert_batch(items: Iterable[tuple[str, bytes]], fmt: str) -> list[BatchResult]:
    """
    Convert several images to one output format.

    Args:
        items: (name, encoded bytes) pairs, processed in order
        fmt: Output format for every item

    Returns:
        One result per input, in input order

    Raises:
        EncodeError: If ``fmt`` itself is not a supported format
    """
    fmt = normalize_format(fmt)
    results: list[BatchResult] = []

    for name, data in items:
        result = BatchResult(source_name=name, output_name=output_name(name, fmt))
        try:
            result.data = convert_image(data, fmt)
        except ImagingError as e:
            logger.warning("Conversion failed for %s: %s", name, e)
            result.error = str(e)
        results.append(result)

    return results


def sign_batch(items: Iterable[tuple[str, bytes]],
               signature: bytes,
               timestamp: str | None = None,
               fmt: str = "png",
               settings: Settings | None = None) -> list[BatchResult]:
    """
    Sign several documents with the same signature.

    The signature is decoded once up front; every document gets the same
    timestamp.

    Args:
        items: (name, encoded bytes) pairs, processed in order
        signature: Encoded signature image
        timestamp: Pre-formatted timestamp (default: now)
        fmt: Output format for every item
        settings: Label, timestamp format and font overrides

    Returns:
        One result per input, in input order

    Raises:
        DecodeError: If the signature cannot be decoded
        EncodeError: If ``fmt`` itself is not a supported format
    """
    settings = settings or Settings()
    fmt = normalize_format(fmt)
    overlay = ensure_image(signature)
    font = load_annotation_font(path=settings.font_path)
    if timestamp is None:
        timestamp = format_timestamp(fmt=settings.timestamp_format)

    results: list[BatchResult] = []
    for name, data in items:
        result = BatchResult(source_name=name,
                             output_name=output_name(name, fmt, suffix="-signed"))
        try:
            signed = compose(data, overlay, timestamp,
                             label=settings.signature_label, font=font)
            result.data = encode_image(signed, fmt)
        except ImagingError as e:
            logger.warning("Signing failed for %s: %s", name, e)
            result.error = str(e)
        results.append(result)

    logger.info("Signed %d/%d documents",
                sum(1 for r in results if r.ok), len(results))
    return results
