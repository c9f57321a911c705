import sys
import argparse
import logging

from collections import Counter

from config.config import AppConfig
from config.config import IMAGE_STRATEGIES
from core.exceptions import RemoteWriteError
from core.pipeline import DESTINATIONS
from core.pipeline import ClipPipeline
from utils.logging_setup import configure_runtime_logging


logger = logging.getLogger(__name__)


def parse_args(argv = None) -> argparse.Namespace:
    """Parse CLI arguments for the save command.

    Args:
        argv: Optional argument list, sys.argv is used when omitted.
    """

    parser = argparse.ArgumentParser(
        description = "Clip one web article into Notion or Feishu"
    )
    parser.add_argument("--url", required = True, help = "Article URL (http or https)")
    parser.add_argument(
        "--destination",
        choices = list(DESTINATIONS),
        default = "notion",
        help = "Destination: notion or feishu"
    )
    parser.add_argument(
        "--tag",
        dest = "tags",
        action = "append",
        default = [],
        help = "Tag to attach, repeatable"
    )
    parser.add_argument(
        "--image-strategy",
        choices = list(IMAGE_STRATEGIES),
        default = "",
        help = "Image URL strategy, defaults to IMAGE_STRATEGY env"
    )
    parser.add_argument(
        "--summarize",
        action = argparse.BooleanOptionalAction,
        default = False,
        help = "Generate AI summary and suggest tags when no tag is given"
    )
    parser.add_argument("--dry-run", action = "store_true", help = "Parse only, no destination writes")
    return parser.parse_args(argv)


def main(argv = None) -> int:
    """CLI entrypoint.

    Args:
        argv: Optional argument list.
    """

    args = parse_args(argv)
    config = AppConfig.from_env()
    pipeline = ClipPipeline(config = config, image_strategy = args.image_strategy)

    if args.dry_run:
        article = pipeline.parse(url = args.url)
        counts = Counter(type(block).__name__ for block in article.blocks)
        print(f"title: {article.title}")
        print(f"author: {article.author}")
        print(f"blocks: {len(article.blocks)}")
        for kind, count in sorted(counts.items()):
            print(f"  {kind}: {count}")
        return 0

    try:
        result = pipeline.save(
            url = args.url,
            destination = args.destination,
            tags = args.tags,
            summarize = args.summarize
        )
    except RemoteWriteError as exc:
        logger.error(
            "save failed: cause = %s, created_id = %s, message = %s",
            exc.cause,
            exc.created_id or "",
            exc.message
        )
        return 2

    print(f"saved to {result.destination}: {result.remote_id} ({result.title})")
    if result.summary:
        print(f"summary: {result.summary}")
    return 0


if __name__ == "__main__":
    configure_runtime_logging()

    try:
        exit_code = main()
    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        exit_code = 130
    except Exception as exc:
        logger.exception("Fatal error: %s", str(exc))
        exit_code = 1

    sys.exit(exit_code)
