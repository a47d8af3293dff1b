"""Command-line entrypoint.

Responsibilities (and nothing more):
- Parse arguments and fold them into Settings
- Configure structlog
- Create AppState via the lifespan context manager
- Run the scrape and write the rendered documents
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Any, TextIO

import structlog

from gopkgdocs import __version__
from gopkgdocs.cache import DocumentStore, open_store
from gopkgdocs.config import Settings
from gopkgdocs.fetcher import FakeFetcher, Fetcher, build_http_client
from gopkgdocs.render import package_to_markdown, package_to_raw
from gopkgdocs.scraper import Scraper
from gopkgdocs.state import AppState

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Sequence

    from gopkgdocs.scraper import ScrapeResult

log = structlog.get_logger()


# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------


def setup_logging(settings: Settings) -> None:
    """Configure structlog. Called once at startup before any log statements."""
    log_level = logging.getLevelNamesMapping()[settings.logging.level]

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if settings.logging.format == "json":
        processors = [*shared_processors, structlog.processors.JSONRenderer()]
    else:
        processors = [*shared_processors, structlog.dev.ConsoleRenderer()]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        # stdout is reserved for the rendered Markdown
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(settings: Settings) -> AsyncGenerator[AppState, None]:
    """Create and tear down the HTTP client and document store for one run."""
    http_client = None
    if settings.scraper.test_mode:
        fetcher: Fetcher | FakeFetcher = FakeFetcher(settings.scraper.base_url)
        # Test mode never touches persistent state.
        cache = DocumentStore(None)
    else:
        http_client = build_http_client(settings.scraper)
        fetcher = Fetcher(http_client, settings.scraper)
        cache = await open_store(settings.cache.db_path)

    scraper = Scraper(fetcher, settings.scraper, cache=cache)
    state = AppState(
        settings=settings,
        fetcher=fetcher,
        cache=cache,
        scraper=scraper,
        http_client=http_client,
    )
    log.info(
        "run_starting",
        version=__version__,
        test_mode=settings.scraper.test_mode,
        cache_enabled=cache.enabled,
    )
    try:
        yield state
    finally:
        if http_client is not None:
            await http_client.aclose()
        await cache.close()
        log.info("run_stopping")


# ---------------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------------


def _write(path: Path, content: str) -> bool:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    except OSError:
        log.error("output_write_failed", path=str(path), exc_info=True)
        return False
    log.debug("output_written", path=str(path))
    return True


def write_outputs(result: ScrapeResult, settings: Settings, stdout: TextIO) -> None:
    """Emit every successfully scraped package.

    Without an output directory the Markdown goes to ``stdout``; otherwise a
    ``<import path>.md`` and ``<import path>_raw.txt`` pair is written per
    package.
    """
    directory = settings.output.directory
    if not directory:
        for package in result.packages:
            stdout.write(package_to_markdown(package))
        return

    out_dir = Path(directory).expanduser()
    for package, raw_html in zip(result.packages, result.raw_html, strict=True):
        _write(out_dir / f"{package.import_path}.md", package_to_markdown(package))
        _write(
            out_dir / f"{package.import_path}_raw.txt",
            package_to_raw(package, raw_html, settings.scraper.base_url),
        )


def report_failures(result: ScrapeResult, stderr: TextIO) -> None:
    if not result.failures:
        return
    stderr.write(f"{len(result.failures)} package(s) failed:\n")
    for failure in result.failures:
        stderr.write(f"  {failure.import_path}: [{failure.error.code}] {failure.error.message}\n")


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


async def run_scrape(
    settings: Settings,
    import_paths: Sequence[str],
    *,
    verbose: bool = False,
    stdout: TextIO = sys.stdout,
    stderr: TextIO = sys.stderr,
) -> int:
    """Scrape ``import_paths`` and write the results. Returns the exit code."""
    async with lifespan(settings) as state:
        result = await state.scraper.scrape_packages(import_paths)

        write_outputs(result, settings, stdout)
        report_failures(result, stderr)

        if verbose:
            stats = result.stats
            log.info(
                "scrape_stats",
                packages_scraped=stats.packages_scraped,
                requests_made=stats.requests_made,
                cache_hits=stats.cache_hits,
                errors=stats.errors,
            )

    if result.all_failed:
        log.error("all_scrapes_failed", packages=len(import_paths))
        return 1
    return 0


def _common_options(*, suppress_defaults: bool) -> argparse.ArgumentParser:
    """Flags accepted both before and after the subcommand.

    The subcommand copy suppresses its defaults so that flags given before
    the subcommand are not reset by it.
    """

    def default(value: Any) -> Any:
        return argparse.SUPPRESS if suppress_defaults else value

    p = argparse.ArgumentParser(add_help=False)
    p.add_argument(
        "-v", "--verbose", action="store_true", default=default(False), help="enable debug logging"
    )
    p.add_argument(
        "-o",
        "--output",
        type=Path,
        default=default(None),
        help="output directory (default: Markdown to stdout)",
    )
    p.add_argument(
        "--test-mode",
        action="store_true",
        default=default(False),
        help="serve a canned page instead of fetching from pkg.go.dev",
    )
    p.add_argument(
        "--no-cache",
        action="store_true",
        default=default(False),
        help="disable the document store",
    )
    return p


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gopkgdocs",
        description="Scrape Go package documentation from pkg.go.dev into Markdown.",
        parents=[_common_options(suppress_defaults=False)],
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    sub = parser.add_subparsers(dest="cmd", required=True)
    scrape_p = sub.add_parser(
        "scrape",
        help="scrape one or more packages",
        parents=[_common_options(suppress_defaults=True)],
    )
    scrape_p.add_argument("packages", nargs="+", metavar="IMPORT_PATH")
    return parser


def settings_from_args(args: argparse.Namespace) -> Settings:
    overrides: dict[str, Any] = {}
    if args.verbose:
        overrides["logging"] = {"level": "DEBUG"}
    if args.output is not None:
        overrides["output"] = {"directory": str(args.output)}
    if args.test_mode:
        overrides["scraper"] = {"test_mode": True}
    if args.no_cache:
        overrides["cache"] = {"db_path": ""}
    return Settings(**overrides)


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = settings_from_args(args)
    setup_logging(settings)

    if args.cmd == "scrape":
        return asyncio.run(run_scrape(settings, args.packages, verbose=args.verbose))
    return 2


if __name__ == "__main__":
    sys.exit(main())
