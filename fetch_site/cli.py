"""Command-line entry point for fetch-site."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
import time
from pathlib import Path
from typing import Iterable, Sequence, TextIO

from .config import DEFAULT_OUTPUT_DIR, MirrorConfig
from .crawler import run_mirror
from .errors import InvalidUrlError
from .ledger import MetadataLedger, load_ledger
from .utils import normalize_url

logger = logging.getLogger("fetch_site.cli")

COMMANDS = ("mirror", "metadata")
METADATA_ALIASES = ("--metadata", "-m")


def _ensure_command_prefix(argv: Sequence[str], commands: Iterable[str]) -> Sequence[str]:
    if not argv:
        return argv
    first = argv[0]
    if first.lower() in METADATA_ALIASES:
        return ("metadata", *argv[1:])
    if first in commands or first.startswith("-"):
        return argv
    return ("mirror", *argv)


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("urls", nargs="+", help="One or more page URLs")
    parser.add_argument(
        "--output",
        default=DEFAULT_OUTPUT_DIR,
        type=Path,
        help="Directory holding mirrored pages, resources and meta.json",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fetch-site",
        description="Mirror web pages and their images, stylesheets and scripts for offline use.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    mirror_parser = subparsers.add_parser(
        "mirror", help="Fetch pages and download their resources"
    )
    _add_common_arguments(mirror_parser)
    mirror_parser.add_argument(
        "--timeout",
        type=float,
        default=30.0,
        help="Seconds to wait for each HTTP request",
    )
    mirror_parser.add_argument(
        "--concurrency",
        type=int,
        default=8,
        help="Maximum number of resources downloaded at once",
    )

    metadata_parser = subparsers.add_parser(
        "metadata", help="Show stored statistics without fetching"
    )
    _add_common_arguments(metadata_parser)
    return parser


def parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = build_parser()
    return parser.parse_args(list(_ensure_command_prefix(argv, COMMANDS)))


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        force=True,
    )


def _open_ledger(config: MirrorConfig) -> MetadataLedger:
    config.output_root.mkdir(parents=True, exist_ok=True)
    return load_ledger(config.metadata_path)


def show_metadata(
    urls: Sequence[str],
    ledger: MetadataLedger,
    stream: TextIO = sys.stdout,
) -> None:
    for raw_url in urls:
        try:
            url = normalize_url(raw_url)
        except InvalidUrlError as exc:
            logger.error("%s", exc.message)
            continue
        entry = ledger.lookup(url)
        if entry is None:
            logger.error("Metadata for %s not found.", url)
            continue
        stream.write(
            f"Metadata for {url}\n"
            f"  Number of links: {entry.num_links}\n"
            f"  Number of images: {entry.num_images}\n"
            f"  Number of fetches: {entry.num_fetches}\n"
            f"  Last fetch: {entry.to_dict()['last_fetch']}\n"
        )
    stream.flush()


def _run_mirror(args: argparse.Namespace) -> None:
    config = MirrorConfig(
        output_root=Path(args.output).resolve(),
        timeout=args.timeout,
        max_concurrency=args.concurrency,
    )
    ledger = _open_ledger(config)

    overall_start = time.perf_counter()
    results = asyncio.run(run_mirror(args.urls, config, ledger))
    total_elapsed = time.perf_counter() - overall_start

    successes = len(results)
    total_urls = len(args.urls)
    logger.info(
        "Finished in %.2fs (%d/%d succeeded, %d failed)",
        total_elapsed,
        successes,
        total_urls,
        total_urls - successes,
    )
    for result in results:
        logger.debug(
            "%s -> %s | resources: %d saved, %d failed | %.2fs",
            result.url,
            result.page_path,
            result.resources_saved,
            result.resources_failed,
            result.total_seconds,
        )


def _run_metadata(args: argparse.Namespace) -> None:
    config = MirrorConfig(output_root=Path(args.output).resolve())
    ledger = _open_ledger(config)
    show_metadata(args.urls, ledger)


def main(argv: Sequence[str] | None = None) -> None:
    argv = list(sys.argv[1:] if argv is None else argv)
    if not argv:
        build_parser().print_usage()
        return
    args = parse_args(argv)
    _configure_logging(args.verbose)
    if args.command == "mirror":
        _run_mirror(args)
    else:
        _run_metadata(args)


if __name__ == "__main__":
    main()
