import argparse
import logging
import os
import sys
from typing import List, Optional

from dotenv import load_dotenv

from ..models.box import Box
from ..pipeline.batch_transformer import OUTPUT_EXT, transform_gallery
from ..services.image_service import ImageService

# Load environment variables first
load_dotenv()

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="raster-edit",
        description="Crop, resize and flip every image in a folder.",
    )
    parser.add_argument("input_dir", help="Folder with source images")
    parser.add_argument("output_dir", help="Folder for transformed images")
    parser.add_argument("--crop", nargs=4, type=int, metavar=("X", "Y", "W", "H"),
                        help="Crop box, clamped to each image")
    parser.add_argument("--resize", nargs=2, type=int, metavar=("W", "H"),
                        help="Bilinear resize to W x H (applied after crop)")
    parser.add_argument("--flip", action="store_true", help="Flip vertically (applied last)")
    parser.add_argument("--recursive", action="store_true", help="Descend into sub-folders")
    parser.add_argument("--ext", default=OUTPUT_EXT, help=f"Output extension (default {OUTPUT_EXT})")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    # --- Centralized Logging Configuration ---
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format='%(asctime)s - %(name)-25s - %(levelname)-8s - %(message)s',
        datefmt='%H:%M:%S'
    )

    if args.resize is not None and min(args.resize) < 0:
        logger.error(f"Invalid resize target {args.resize[0]}x{args.resize[1]}")
        return 2
    if args.crop is not None and min(args.crop) < 0:
        logger.error(f"Invalid crop box {args.crop}")
        return 2

    image_service = ImageService()
    gallery = image_service.stream_gallery(args.input_dir, recursive=args.recursive)

    print(f"\nTransforming images from {args.input_dir} ...")
    transformed = transform_gallery(
        gallery,
        crop_box=Box(*args.crop) if args.crop else None,
        size=tuple(args.resize) if args.resize else None,
        flip=args.flip,
        output_dir=args.output_dir,
        ext=args.ext,
        image_service=image_service,
    )

    saved = 0
    for img in transformed:
        if img.width == 0 or img.height == 0:
            logger.warning(f"Skipping empty result for {img.path.name}")
            continue
        image_service.save(img)
        saved += 1

    print(f"Saved {saved} image(s) to {args.output_dir}")
    return 0 if saved else 1


if __name__ == "__main__":
    sys.exit(main())
