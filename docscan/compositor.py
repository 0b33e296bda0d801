"""
Signature compositing.

Stamps a signature image onto a document image, anchored bottom-right at 30%
of the document width, with a "Signed at: <timestamp>" line drawn just above
it.
"""

import logging
from dataclasses import dataclass
from datetime import datetime

from PIL import Image, ImageDraw, ImageFont

from .codec import ImageSource, encode_image, ensure_image
from .config import DEFAULT_SIGNATURE_LABEL, DEFAULT_TIMESTAMP_FORMAT, Settings

logger = logging.getLogger(__name__)

OVERLAY_SCALE = 0.3
OVERLAY_MARGIN = 20
TEXT_OFFSET = 10
TEXT_FONT_SIZE = 12
TEXT_COLOR = (0x66, 0x66, 0x66, 255)

AnnotationFont = ImageFont.FreeTypeFont | ImageFont.ImageFont


@dataclass(frozen=True)
class OverlayPlacement:
    """
    Where the signature and its timestamp land on the document.

    Coordinates are exact (fractional) canvas positions; ``box`` gives the
    pixel-rounded rectangle actually used for drawing.
    """
    x: float
    y: float
    width: float
    height: float

    @property
    def text_position(self) -> tuple[float, float]:
        """Left end of the text baseline, just above the overlay."""
        return self.x, self.y - TEXT_OFFSET

    @property
    def box(self) -> tuple[int, int, int, int]:
        """(left, top, width, height) rounded to whole pixels."""
        return (
            round(self.x),
            round(self.y),
            max(1, round(self.width)),
            max(1, round(self.height)),
        )


def compute_placement(base_size: tuple[int, int],
                      overlay_size: tuple[int, int]) -> OverlayPlacement:
    """
    Compute the overlay rectangle for a document.

    Args:
        base_size: (width, height) of the document image
        overlay_size: (width, height) of the signature image

    Returns:
        Placement anchored bottom-right with a fixed margin

    Raises:
        ValueError: If either size has a zero or negative side
    """
    base_w, base_h = base_size
    over_w, over_h = overlay_size
    if min(base_w, base_h, over_w, over_h) < 1:
        raise ValueError(f"Image sizes must be at least 1x1: {base_size}, {overlay_size}")

    width = base_w * OVERLAY_SCALE
    height = over_h / over_w * width
    return OverlayPlacement(
        x=base_w - width - OVERLAY_MARGIN,
        y=base_h - height - OVERLAY_MARGIN,
        width=width,
        height=height,
    )


def format_timestamp(moment: datetime | None = None,
                     fmt: str = DEFAULT_TIMESTAMP_FORMAT) -> str:
    """Format ``moment`` (default: now, local time) for the annotation line."""
    return (moment or datetime.now()).strftime(fmt)


def annotation_text(timestamp: str, label: str = DEFAULT_SIGNATURE_LABEL) -> str:
    return f"{label} {timestamp}"


def load_annotation_font(size: int = TEXT_FONT_SIZE,
                         path: str | None = None) -> AnnotationFont:
    """
    Load the font for the timestamp line.

    Args:
        size: Pixel size
        path: TrueType file to use; when None, Arial is tried and Pillow's
            bundled font is the fallback

    Raises:
        OSError: If an explicit ``path`` cannot be loaded
    """
    if path:
        return ImageFont.truetype(path, size)
    try:
        return ImageFont.truetype("arial.ttf", size)
    except OSError:
        return ImageFont.load_default(size=size)


def compose(base: ImageSource,
            overlay: ImageSource,
            timestamp: str,
            *,
            label: str = DEFAULT_SIGNATURE_LABEL,
            font: AnnotationFont | None = None) -> Image.Image:
    """
    Stamp a signature and timestamp onto a document image.

    Drawing order is base, then signature, then text, so the timestamp is
    never hidden by the signature.

    Args:
        base: Document image (encoded bytes or decoded image)
        overlay: Signature image (encoded bytes or decoded image)
        timestamp: Pre-formatted timestamp string
        label: Text placed before the timestamp
        font: Font for the annotation; defaults to ``load_annotation_font()``

    Returns:
        New RGBA image with the same size as ``base``

    Raises:
        DecodeError: If either input cannot be decoded
    """
    # Both inputs are fully decoded before anything is drawn
    canvas = ensure_image(base)
    signature = ensure_image(overlay)

    placement = compute_placement(canvas.size, signature.size)
    left, top, width, height = placement.box
    logger.debug("Placing %dx%d signature at (%d, %d) as %dx%d on %dx%d document",
                 signature.width, signature.height, left, top, width, height,
                 canvas.width, canvas.height)

    signature_layer = Image.new("RGBA", canvas.size, (0, 0, 0, 0))
    # Resample only the part of the box that lands on the canvas
    visible_left, visible_top = max(left, 0), max(top, 0)
    visible_right = min(left + width, canvas.width)
    visible_bottom = min(top + height, canvas.height)
    if visible_right > visible_left and visible_bottom > visible_top:
        scale_x = signature.width / width
        scale_y = signature.height / height
        source_box = (
            (visible_left - left) * scale_x,
            (visible_top - top) * scale_y,
            (visible_right - left) * scale_x,
            (visible_bottom - top) * scale_y,
        )
        visible = signature.resize(
            (visible_right - visible_left, visible_bottom - visible_top),
            Image.LANCZOS,
            box=source_box,
        )
        signature_layer.paste(visible, (visible_left, visible_top))
    canvas = Image.alpha_composite(canvas, signature_layer)

    text_x, text_y = placement.text_position
    text_layer = Image.new("RGBA", canvas.size, (0, 0, 0, 0))
    draw = ImageDraw.Draw(text_layer)
    draw.text(
        (round(text_x), round(text_y)),
        annotation_text(timestamp, label),
        font=font or load_annotation_font(),
        fill=TEXT_COLOR,
        anchor="ls",
    )
    return Image.alpha_composite(canvas, text_layer)


def sign_document(document: ImageSource,
                  signature: ImageSource,
                  timestamp: str | None = None,
                  fmt: str = "png",
                  settings: Settings | None = None) -> bytes:
    """
    Sign a document in one step and return the encoded result.

    Args:
        document: Document image
        signature: Signature image
        timestamp: Pre-formatted timestamp; formatted from the current time
            when omitted
        fmt: Output format ("png", "jpg" or "webp")
        settings: Label, timestamp format and font overrides

    Returns:
        Encoded signed image

    Raises:
        DecodeError: If either input cannot be decoded
        EncodeError: If the result cannot be encoded as ``fmt``
    """
    settings = settings or Settings()
    if timestamp is None:
        timestamp = format_timestamp(fmt=settings.timestamp_format)

    signed = compose(
        document,
        signature,
        timestamp,
        label=settings.signature_label,
        font=load_annotation_font(path=settings.font_path),
    )
    return encode_image(signed, fmt)
