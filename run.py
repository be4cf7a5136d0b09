from __future__ import annotations

import argparse
import logging
import time
from pathlib import Path

from dotenv import load_dotenv
from tqdm import tqdm

from passport_photo.composite import color_to_hex
from passport_photo.config import BACKGROUND_COLORS, DEFAULT_BACKGROUND_COLOR, DEFAULT_VIEWPORT, EXPORT_FORMATS
from passport_photo.errors import PassportPhotoError
from passport_photo.export import export_filename
from passport_photo.io import write_json
from passport_photo.pipeline import process_photo

logger = logging.getLogger("passport_photo.run")


def _iter_images(input_dir: Path):
    exts = {".jpg", ".jpeg", ".png", ".webp"}
    for p in sorted(input_dir.rglob("*")):
        if p.is_file() and p.suffix.lower() in exts:
            yield p


def _parse_viewport(value: str) -> tuple[float, float]:
    try:
        w, h = value.lower().split("x")
        return float(w), float(h)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"Expected WIDTHxHEIGHT, got {value!r}") from e


def _parse_color(value: str) -> str:
    # Allow palette names ("White", "blue") as well as hex codes.
    for name, hex_value in BACKGROUND_COLORS.items():
        if value.lower() == name.lower():
            return hex_value
    try:
        return color_to_hex(value)
    except ValueError as e:
        names = ", ".join(BACKGROUND_COLORS)
        raise argparse.ArgumentTypeError(f"Expected a hex color or one of {names}, got {value!r}") from e


def main() -> int:
    load_dotenv()
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    parser = argparse.ArgumentParser(description="Batch passport photo maker (3.5x4.5 cm @ 300 DPI).")
    parser.add_argument("--input", required=True, type=str, help="Input directory containing photos.")
    parser.add_argument("--output", required=True, type=str, help="Output directory for photos + metadata JSON.")
    parser.add_argument("--format", default="jpg", choices=EXPORT_FORMATS, help="Export format.")
    parser.add_argument(
        "--color",
        default=DEFAULT_BACKGROUND_COLOR,
        type=_parse_color,
        help="Background color (hex or White/Black/Blue); only used with --remove-bg.",
    )
    parser.add_argument("--remove-bg", action="store_true", help="Remove the background via the remote API.")
    parser.add_argument("--zoom", default=1.0, type=float, help="Crop zoom (0.5 - 3.0).")
    parser.add_argument(
        "--viewport",
        default=f"{DEFAULT_VIEWPORT[0]}x{DEFAULT_VIEWPORT[1]}",
        type=_parse_viewport,
        help="Virtual editor viewport used to frame the crop, WIDTHxHEIGHT.",
    )
    args = parser.parse_args()

    input_dir = Path(args.input)
    output_dir = Path(args.output)
    if not input_dir.exists():
        raise FileNotFoundError(f"Input dir not found: {input_dir}")

    images = list(_iter_images(input_dir))
    if not images:
        print(f"No images found under {input_dir}")
        return 0

    stats = {"total": 0, "exported": 0, "failed": 0, "bg_removed": 0, "bg_fallback": 0}

    t0 = time.perf_counter()
    for img_path in tqdm(images, desc="Processing", unit="img"):
        rel = img_path.relative_to(input_dir)
        out_dir = output_dir / rel.parent
        stats["total"] += 1
        try:
            record = process_photo(
                img_path,
                out_dir,
                fmt=args.format,
                color=args.color,
                remove_bg=args.remove_bg,
                zoom=args.zoom,
                viewport=args.viewport,
                filename=f"{img_path.stem}-{export_filename(args.format)}",
            )
        except PassportPhotoError as e:
            logger.error("%s: %s", rel, e)
            stats["failed"] += 1
            continue

        write_json(out_dir / f"{img_path.stem}.json", record.model_dump())
        stats["exported"] += 1
        if record.background_removed:
            stats["bg_removed"] += 1
        elif record.removal_status == "failed":
            stats["bg_fallback"] += 1

    t1 = time.perf_counter()
    print(
        "Done.\n"
        f"- total: {stats['total']}\n"
        f"- exported: {stats['exported']}\n"
        f"- failed: {stats['failed']}\n"
        f"- background removed: {stats['bg_removed']} (fallback to original: {stats['bg_fallback']})\n"
        f"- elapsed_s: {t1 - t0:.2f}\n"
        f"- output: {output_dir.resolve()}"
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
