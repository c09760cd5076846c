"""
Command line entry point: tags every image in a directory and writes one
caption file per image.
"""

import sys
import argparse
from pathlib import Path
from typing import List, Optional
from PIL import Image, UnidentifiedImageError
from .tagger import WDTagger
from .config import settings
from .exceptions import ModelLoadError, TaggerError, UnsupportedInputError
from .logging import setup_logging, get_logger
from .models import TagResult


def parse_arguments(argv: Optional[List[str]] = None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="WD Tagger - tag images with WD14-style tagger models"
    )

    parser.add_argument(
        "--input",
        default=settings.input_dir,
        help=f"Directory containing the images to tag (default: {settings.input_dir})"
    )

    parser.add_argument(
        "--batch-size",
        type=int,
        default=settings.batch_size,
        help=f"Number of images per inference call (default: {settings.batch_size})"
    )

    parser.add_argument(
        "--general-threshold",
        type=float,
        default=settings.general_threshold,
        help=f"Threshold for general tags (default: {settings.general_threshold})"
    )

    parser.add_argument(
        "--character-threshold",
        type=float,
        default=settings.character_threshold,
        help=f"Threshold for character tags (default: {settings.character_threshold})"
    )

    parser.add_argument(
        "--general-mcut",
        action="store_true",
        default=settings.general_mcut,
        help="Use MCut instead of the fixed threshold for general tags"
    )

    parser.add_argument(
        "--character-mcut",
        action="store_true",
        default=settings.character_mcut,
        help="Use MCut instead of the fixed threshold for character tags"
    )

    parser.add_argument(
        "--model",
        default=settings.model_repo,
        help=f"Model repository (default: {settings.model_repo})"
    )

    parser.add_argument(
        "--cache-dir",
        default=settings.model_cache_dir,
        help="Directory for downloaded models"
    )

    parser.add_argument(
        "--cpu",
        action="store_true",
        help="Run inference on the CPU even if a GPU is available"
    )

    parser.add_argument(
        "--workers",
        type=int,
        default=settings.preprocess_workers,
        help=f"Worker threads for pre and postprocessing (default: {settings.preprocess_workers})"
    )

    args = parser.parse_args(argv)
    if args.batch_size <= 0:
        parser.error("--batch-size must be positive")
    if args.workers <= 0:
        parser.error("--workers must be positive")
    for name in ("general_threshold", "character_threshold"):
        if not 0.0 <= getattr(args, name) <= 1.0:
            parser.error(f"--{name.replace('_', '-')} must be between 0 and 1")
    return args


def load_image(path: Path) -> Image.Image:
    """Decode an image file fully into memory."""
    try:
        with Image.open(path) as image:
            image.load()
            return image.copy()
    except (UnidentifiedImageError, OSError, Image.DecompressionBombError) as e:
        raise UnsupportedInputError(f"Cannot decode {path.name}: {e}") from e


def write_tags(path: Path, tags: TagResult) -> None:
    """Write one caption file."""
    path.write_text(tags.to_caption(), encoding="utf-8")


def tag_directory(tagger: WDTagger, input_dir: Path, args) -> int:
    """Tag every decodable image in ``input_dir``. Returns the number tagged."""
    logger = get_logger("main")

    images: List[Image.Image] = []
    paths: List[Path] = []
    tagged = 0

    def predict():
        results = tagger.predict(
            images,
            general_threshold=args.general_threshold,
            character_threshold=args.character_threshold,
            general_mcut=args.general_mcut,
            character_mcut=args.character_mcut,
        )
        for path, tags in zip(paths, results):
            write_tags(path.with_name(f"{path.name}.txt"), tags)
        logger.info(f"📊 Batch: {len(results)} images tagged")
        return len(results)

    for path in sorted(input_dir.iterdir()):
        if path.is_dir():
            continue
        try:
            image = load_image(path)
        except UnsupportedInputError as e:
            logger.debug(f"⏭️  Skipping {path.name}: {e}")
            continue

        images.append(image)
        paths.append(path)

        if len(images) >= args.batch_size:
            tagged += predict()
            images, paths = [], []

    if images:
        tagged += predict()
    return tagged


def main(argv: Optional[List[str]] = None):
    """Main entry point."""
    setup_logging()
    logger = get_logger("main")

    args = parse_arguments(argv)
    input_dir = Path(args.input)
    if not input_dir.is_dir():
        logger.error(f"❌ Input directory not found: {input_dir}")
        return 1

    logger.info(f"🚀 Tagging images in {input_dir} with {args.model}")

    try:
        with WDTagger.from_repo(
            args.model,
            cache_dir=args.cache_dir,
            use_gpu=settings.use_gpu and not args.cpu,
            workers=args.workers,
        ) as tagger:
            tagged = tag_directory(tagger, input_dir, args)
            tagger.monitor.log_performance_summary()

        logger.info(f"✅ Tagged {tagged} images")
        return 0

    except ModelLoadError as e:
        logger.error(f"❌ Failed to load model: {str(e)}")
        return 1
    except TaggerError as e:
        logger.error(f"❌ Tagging failed: {str(e)}")
        return 1
    except KeyboardInterrupt:
        logger.info("⏹️  Interrupted by user")
        return 130


if __name__ == "__main__":
    sys.exit(main())
