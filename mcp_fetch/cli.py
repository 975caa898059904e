"""Command-line entry point for the fetch server."""

from __future__ import annotations

import argparse
import logging
import sys
import time
from typing import Callable, Iterable, Sequence

from .config import load_config
from .errors import FetchError
from .fetcher import FetchOptions, fetch_url, paginate_content
from .resources import ResourceStore

logger = logging.getLogger("mcp_fetch.cli")


def _ensure_command_prefix(argv: Sequence[str], commands: Iterable[str]) -> Sequence[str]:
    if not argv:
        return ("serve",)
    first = argv[0]
    if first in commands or first in ("-h", "--help"):
        return argv
    if first.startswith("-"):
        return ("serve", *argv)
    return ("fetch", *argv)


def _bounded_int(low: int, high: int) -> Callable[[str], int]:
    def parse(value: str) -> int:
        try:
            number = int(value)
        except ValueError:
            raise argparse.ArgumentTypeError(f"{value!r} is not an integer")
        if not low <= number <= high:
            raise argparse.ArgumentTypeError(f"{number} is not between {low} and {high}")
        return number

    return parse


def _add_serve_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--ignore-robots-txt",
        action="store_true",
        help="Skip robots.txt checks for every request",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging on stderr",
    )


def _add_fetch_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("url", help="URL to fetch")
    parser.add_argument(
        "--max-length",
        type=_bounded_int(1, 1_000_000),
        default=20_000,
        help="Maximum number of characters of content to print",
    )
    parser.add_argument(
        "--start-index",
        type=_bounded_int(0, sys.maxsize),
        default=0,
        help="Character offset to start printing from",
    )
    parser.add_argument(
        "--raw",
        action="store_true",
        help="Print the raw body instead of simplified markdown",
    )
    parser.add_argument(
        "--images",
        action="store_true",
        help="Fetch, merge and save the page images",
    )
    parser.add_argument(
        "--image-start-index",
        type=_bounded_int(0, sys.maxsize),
        default=0,
        help="Index of the first image to process",
    )
    parser.add_argument(
        "--image-max-count",
        type=_bounded_int(0, 10),
        default=3,
        help="Maximum number of images to merge",
    )
    parser.add_argument(
        "--image-max-width",
        type=_bounded_int(100, 10_000),
        default=1000,
        help="Maximum width of the merged image",
    )
    parser.add_argument(
        "--image-max-height",
        type=_bounded_int(100, 10_000),
        default=4000,
        help="Maximum height of the merged image",
    )
    parser.add_argument(
        "--image-quality",
        type=_bounded_int(1, 100),
        default=80,
        help="JPEG quality of the merged image",
    )
    parser.add_argument(
        "--same-origin-images",
        action="store_true",
        help="Only accept images served from the page's origin",
    )
    parser.add_argument(
        "--no-save",
        action="store_true",
        help="Do not write images to the download directory",
    )
    parser.add_argument(
        "--ignore-robots-txt",
        action="store_true",
        help="Skip the robots.txt check",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Fetch web pages safely and merge their images, standalone or as an MCP server.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve_parser = subparsers.add_parser("serve", help="Run the MCP server over stdio")
    _add_serve_arguments(serve_parser)

    fetch_parser = subparsers.add_parser("fetch", help="Fetch a single URL and print it")
    _add_fetch_arguments(fetch_parser)

    argv = list(sys.argv[1:] if argv is None else argv)
    argv = list(_ensure_command_prefix(argv, subparsers.choices.keys()))
    return parser.parse_args(argv)


def _run_fetch(args: argparse.Namespace) -> int:
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        force=True,
    )
    config = load_config()
    options = FetchOptions(
        max_length=args.max_length,
        start_index=args.start_index,
        raw=args.raw,
        enable_fetch_images=args.images,
        image_start_index=args.image_start_index,
        image_max_count=args.image_max_count,
        image_max_width=args.image_max_width,
        image_max_height=args.image_max_height,
        image_quality=args.image_quality,
        allow_cross_origin_images=not args.same_origin_images,
        save_images=not args.no_save,
        ignore_robots_txt=args.ignore_robots_txt,
    )
    store = ResourceStore(config.output_root)

    start = time.perf_counter()
    try:
        result = fetch_url(args.url, options, config, store=store)
    except FetchError as exc:
        sys.stderr.write(f"Error [{exc.reason}]: {exc}\n")
        return 1
    logger.debug("Fetched %s in %.2fs", result.final_url, time.perf_counter() - start)

    title = f": {result.title}" if result.title else ""
    sys.stdout.write(f"Contents of {args.url}{title}:\n{paginate_content(result, options)}\n")
    for path in result.individual_paths:
        sys.stdout.write(f"Saved image: {path}\n")
    for image in result.images:
        if image.file_path:
            sys.stdout.write(f"Merged image saved to: {image.file_path}\n")
    sys.stdout.flush()
    return 0


def main(argv: Sequence[str] | None = None) -> None:
    args = parse_args(argv)
    if args.command == "serve":
        from .mcp_server import run

        run(ignore_robots_txt=args.ignore_robots_txt, verbose=args.verbose)
        return
    sys.exit(_run_fetch(args))


if __name__ == "__main__":
    main()
