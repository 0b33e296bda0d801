"""
Command-line interface for signing, editing and converting document images.

Subcommands:
- sign:    stamp a signature and timestamp onto one or more documents
- edit:    rotate / adjust brightness, contrast, saturation (optionally sign)
- convert: re-encode images as PNG, JPEG or WebP
"""

import argparse
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from .adjustments import TransformSpec, apply_transform
from .batch import BatchResult, convert_batch, output_name, sign_batch
from .codec import encode_image, file_extension, load_image
from .compositor import compose, format_timestamp, load_annotation_font
from .config import Settings
from .errors import ImagingError

FORMAT_CHOICES = ["png", "jpg", "jpeg", "webp"]


def print_header() -> None:
    """Print CLI header."""
    print("\n" + "=" * 60)
    print("🖋️  Document Signer")
    print("=" * 60 + "\n")


def print_separator() -> None:
    """Print section separator."""
    print("\n" + "-" * 60 + "\n")


def read_inputs(paths: list[str]) -> list[tuple[str, bytes]]:
    """
    Read input files into (name, bytes) pairs.

    Missing files are reported and skipped.
    """
    items: list[tuple[str, bytes]] = []
    for raw in paths:
        path = Path(raw).expanduser()
        if not path.is_file():
            print(f"❌ File not found: {raw}")
            continue
        items.append((path.name, path.read_bytes()))
    return items


def write_results(results: list[BatchResult], output_dir: Path) -> int:
    """
    Write successful batch results and report each item.

    Returns:
        Number of failed items
    """
    output_dir.mkdir(parents=True, exist_ok=True)
    failures = 0
    for result in results:
        if result.ok and result.data is not None:
            target = output_dir / result.output_name
            target.write_bytes(result.data)
            print(f"✅ {result.source_name} → {target}")
        else:
            failures += 1
            print(f"❌ {result.source_name}: {result.error}")
    return failures


def run_sign(args: argparse.Namespace, settings: Settings) -> int:
    """Sign every document with the given signature."""
    items = read_inputs(args.documents)
    missing = len(args.documents) - len(items)

    try:
        signature: bytes = Path(args.signature).expanduser().read_bytes()
    except OSError as e:
        print(f"❌ Could not read signature: {e}")
        return 1

    fmt: str = args.format or settings.output_format
    print(f"📝 Signing {len(items)} document(s) as {fmt.upper()}...")

    try:
        results = sign_batch(items, signature, timestamp=args.timestamp,
                             fmt=fmt, settings=settings)
    except (OSError, ImagingError) as e:
        print(f"❌ Could not prepare signature: {e}")
        return 1

    print_separator()
    failures = write_results(results, Path(args.output_dir))
    print(f"\n{len(results) - failures}/{len(args.documents)} document(s) signed")
    return 0 if failures == 0 and missing == 0 else 1


def run_edit(args: argparse.Namespace, settings: Settings) -> int:
    """Apply editor adjustments to one image and optionally sign it."""
    try:
        spec = TransformSpec(
            rotation=args.rotate,
            brightness=args.brightness,
            contrast=args.contrast,
            saturation=args.saturation,
        )
    except ValueError as e:
        print(f"❌ {e}")
        return 1

    source = Path(args.image).expanduser()
    fmt: str = args.format or settings.output_format
    suffix = "-signed" if args.sign else "-edited"
    target = Path(args.output) if args.output else source.with_name(
        output_name(source.name, fmt, suffix=suffix)
    )

    try:
        edited = apply_transform(load_image(str(source)), spec)
        print(f"✏️  Edited {source.name}: {edited.width}x{edited.height} "
              f"(rotation {spec.rotation}°, brightness {spec.brightness}%, "
              f"contrast {spec.contrast}%, saturation {spec.saturation}%)")

        if args.sign:
            timestamp = args.timestamp or format_timestamp(fmt=settings.timestamp_format)
            edited = compose(
                edited,
                load_image(args.sign),
                timestamp,
                label=settings.signature_label,
                font=load_annotation_font(path=settings.font_path),
            )
            print(f"🖋️  Signature applied ({timestamp})")

        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(encode_image(edited, fmt))
    except (OSError, ImagingError) as e:
        print(f"❌ {e}")
        return 1

    print(f"✅ Saved {target}")
    return 0


def run_convert(args: argparse.Namespace, settings: Settings) -> int:
    """Convert images to another format."""
    items = read_inputs(args.images)
    missing = len(args.images) - len(items)
    print(f"🔄 Converting {len(items)} image(s) to .{file_extension(args.format)}...")

    results = convert_batch(items, args.format)

    print_separator()
    failures = write_results(results, Path(args.output_dir))
    print(f"\n{len(results) - failures}/{len(args.images)} image(s) converted")
    return 0 if failures == 0 and missing == 0 else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="docscan",
        description="Document Signer - sign, edit and convert document images"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    sign = subparsers.add_parser("sign", help="Apply a signature to documents")
    sign.add_argument("documents", nargs="+", help="Document image(s) to sign")
    sign.add_argument("--signature", "-s", required=True, help="Signature image")
    sign.add_argument(
        "--timestamp",
        help="Timestamp text to stamp (default: current local time)"
    )
    sign.add_argument(
        "--format", "-f",
        choices=FORMAT_CHOICES,
        help="Output format (default: DOCSCAN_OUTPUT_FORMAT or png)"
    )
    sign.add_argument("--output-dir", "-o", default=".", help="Output directory (default: .)")

    edit = subparsers.add_parser("edit", help="Rotate and adjust an image")
    edit.add_argument("image", help="Image to edit")
    edit.add_argument(
        "--rotate",
        type=int,
        choices=[0, 90, 180, 270],
        default=0,
        help="Clockwise rotation in degrees (default: 0)"
    )
    edit.add_argument("--brightness", type=float, default=100, help="Brightness %% (0-200, default: 100)")
    edit.add_argument("--contrast", type=float, default=100, help="Contrast %% (0-200, default: 100)")
    edit.add_argument("--saturation", type=float, default=100, help="Saturation %% (0-200, default: 100)")
    edit.add_argument("--sign", metavar="SIGNATURE", help="Sign the edited image with this signature")
    edit.add_argument("--timestamp", help="Timestamp text when signing (default: now)")
    edit.add_argument("--format", "-f", choices=FORMAT_CHOICES, help="Output format")
    edit.add_argument("--output", "-o", help="Output path (default: next to the input)")

    convert = subparsers.add_parser("convert", help="Convert images to another format")
    convert.add_argument("images", nargs="+", help="Image(s) to convert")
    convert.add_argument("--format", "-f", choices=FORMAT_CHOICES, required=True, help="Target format")
    convert.add_argument("--output-dir", "-o", default=".", help="Output directory (default: .)")

    return parser


def main(argv: list[str] | None = None) -> None:
    """Main CLI entry point."""
    # Load environment variables from .env file if it exists
    load_dotenv()

    args = build_parser().parse_args(argv)

    try:
        settings = Settings.from_env()
    except ValueError as e:
        print(f"❌ {e}")
        sys.exit(1)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else settings.log_level,
        format="%(levelname)s %(name)s: %(message)s",
    )

    print_header()

    handlers = {
        "sign": run_sign,
        "edit": run_edit,
        "convert": run_convert,
    }
    sys.exit(handlers[args.command](args, settings))


if __name__ == "__main__":
    main()
