"""Scrape orchestrator.

Turns a list of import paths into ``Package`` records: read-through document
store lookup, then a gated fetch + extract, then a best-effort write-back.
One failing package never aborts the batch; failures are collected on the
returned ``ScrapeResult`` alongside the successes.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import structlog

from gopkgdocs.errors import ErrorCode, GoPkgDocsError
from gopkgdocs.extractor import extract_package
from gopkgdocs.fetcher import package_url
from gopkgdocs.models import Document

if TYPE_CHECKING:
    from collections.abc import Sequence

    from gopkgdocs.config import ScraperSettings
    from gopkgdocs.models import Package
    from gopkgdocs.protocols import CacheProtocol, FetcherProtocol

log = structlog.get_logger()


@dataclass
class ScrapeStats:
    """Counters for one scraper's lifetime. Observability only."""

    packages_scraped: int = 0
    requests_made: int = 0
    errors: int = 0
    cache_hits: int = 0
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))


@dataclass(frozen=True)
class ScrapeFailure:
    import_path: str
    error: GoPkgDocsError


@dataclass
class ScrapeResult:
    """Outcome of a batch scrape.

    ``packages`` and ``raw_html`` are parallel lists. In parallel mode both
    are in completion order; in sequential mode they follow input order.
    """

    packages: list[Package] = field(default_factory=list)
    raw_html: list[str] = field(default_factory=list)
    failures: list[ScrapeFailure] = field(default_factory=list)
    stats: ScrapeStats = field(default_factory=ScrapeStats)

    @property
    def first_error(self) -> GoPkgDocsError | None:
        return self.failures[0].error if self.failures else None

    @property
    def all_failed(self) -> bool:
        return not self.packages and bool(self.failures)


class Scraper:
    """Fetches and extracts pkg.go.dev pages with bounded concurrency."""

    def __init__(
        self,
        fetcher: FetcherProtocol,
        settings: ScraperSettings,
        cache: CacheProtocol | None = None,
    ) -> None:
        self._fetcher = fetcher
        self._settings = settings
        self._cache = cache
        self._gate = asyncio.Semaphore(max(settings.max_concurrency, 1))
        self._stats = ScrapeStats()

    @property
    def sequential(self) -> bool:
        return self._settings.sequential or self._settings.test_mode

    @property
    def stats(self) -> ScrapeStats:
        """Snapshot of the current counters."""
        return replace(self._stats)

    def reset_stats(self) -> None:
        self._stats = ScrapeStats()

    # ------------------------------------------------------------------
    # Single package
    # ------------------------------------------------------------------

    async def scrape_package_with_raw(self, import_path: str) -> tuple[Package, str]:
        """Fetch and extract one package page, bypassing the document store.

        Returns the record and the raw page markup.
        """
        import_path = import_path.strip()
        if not import_path:
            raise GoPkgDocsError(
                code=ErrorCode.INVALID_INPUT,
                message="Import path cannot be empty",
                suggestion="Pass an import path such as github.com/spf13/cobra.",
                recoverable=False,
            )

        url = package_url(import_path, self._settings.base_url)
        self._stats.requests_made += 1
        soup = await self._fetcher.fetch_document(url)
        package, raw_html = extract_package(soup, self._settings.base_url, import_path)

        # The requested path is authoritative; the page may show a shorter form.
        package.import_path = import_path
        package.scraped_at = datetime.now(UTC)

        self._stats.packages_scraped += 1
        return package, raw_html

    async def scrape_package(self, import_path: str) -> Package:
        package, _ = await self.scrape_package_with_raw(import_path)
        return package

    # ------------------------------------------------------------------
    # Batch
    # ------------------------------------------------------------------

    async def scrape_packages(
        self,
        import_paths: Sequence[str],
        *,
        cancel: asyncio.Event | None = None,
        deadline_seconds: float | None = None,
    ) -> ScrapeResult:
        """Scrape every import path, tolerating per-package failures.

        Raises GoPkgDocsError(EMPTY_INPUT) for an empty list. Setting
        ``cancel`` (or passing ``deadline_seconds``) stops packages that have
        not started yet; fetches already in flight run to completion.
        """
        if not import_paths:
            raise GoPkgDocsError(
                code=ErrorCode.EMPTY_INPUT,
                message="No import paths provided",
                suggestion="Pass at least one import path.",
                recoverable=False,
            )

        if cancel is None:
            cancel = asyncio.Event()
        deadline = None
        if deadline_seconds is not None:
            deadline = asyncio.get_running_loop().call_later(deadline_seconds, cancel.set)

        result = ScrapeResult()
        log.info(
            "batch_started",
            packages=len(import_paths),
            sequential=self.sequential,
            max_concurrency=self._settings.max_concurrency,
        )
        try:
            if self.sequential:
                for import_path in import_paths:
                    await self._run_one(import_path, cancel, result, gated=False)
            else:
                await asyncio.gather(
                    *(self._run_one(path, cancel, result, gated=True) for path in import_paths)
                )
        finally:
            if deadline is not None:
                deadline.cancel()

        result.stats = self.stats
        for failure in result.failures:
            log.warning(
                "scrape_failed",
                import_path=failure.import_path,
                code=failure.error.code,
                message=failure.error.message,
            )
        log.info(
            "batch_complete",
            succeeded=len(result.packages),
            failed=len(result.failures),
        )
        return result

    async def _run_one(
        self,
        import_path: str,
        cancel: asyncio.Event,
        result: ScrapeResult,
        *,
        gated: bool,
    ) -> None:
        try:
            package, raw_html = await self._scrape_through_cache(import_path, cancel, gated=gated)
        except GoPkgDocsError as exc:
            self._stats.errors += 1
            result.failures.append(ScrapeFailure(import_path=import_path, error=exc))
            return
        result.packages.append(package)
        result.raw_html.append(raw_html)

    async def _scrape_through_cache(
        self,
        import_path: str,
        cancel: asyncio.Event,
        *,
        gated: bool,
    ) -> tuple[Package, str]:
        pkg_log = log.bind(import_path=import_path)
        if cancel.is_set():
            raise _cancelled(import_path)

        import_path = import_path.strip()
        if not import_path:
            raise GoPkgDocsError(
                code=ErrorCode.INVALID_INPUT,
                message="Import path cannot be empty",
                suggestion="Remove blank entries from the import path list.",
                recoverable=False,
            )

        cached = await self._cache_lookup(import_path)
        if cached is not None:
            self._stats.cache_hits += 1
            pkg_log.info("cache_hit")
            return cached.package, cached.raw_html

        if gated:
            if not await self._acquire(cancel):
                raise _cancelled(import_path)
            try:
                package, raw_html = await self.scrape_package_with_raw(import_path)
            finally:
                self._gate.release()
        else:
            package, raw_html = await self.scrape_package_with_raw(import_path)

        pkg_log.info(
            "scrape_complete",
            name=package.name,
            functions=len(package.functions),
            types=len(package.types),
        )
        await self._cache_store(
            Document(id=package.import_path or import_path, package=package, raw_html=raw_html)
        )
        return package, raw_html

    async def _acquire(self, cancel: asyncio.Event) -> bool:
        """Wait for a concurrency slot. Returns False if cancelled first."""
        if cancel.is_set():
            return False
        acquire = asyncio.ensure_future(self._gate.acquire())
        cancelled = asyncio.ensure_future(cancel.wait())
        done, _ = await asyncio.wait({acquire, cancelled}, return_when=asyncio.FIRST_COMPLETED)

        if acquire in done:
            cancelled.cancel()
            if cancel.is_set():
                self._gate.release()
                return False
            return True

        acquire.cancel()
        try:
            await acquire
        except asyncio.CancelledError:
            return False
        # Slot granted while we were cancelling the wait.
        self._gate.release()
        return False

    # ------------------------------------------------------------------
    # Document store
    # ------------------------------------------------------------------

    async def _cache_lookup(self, import_path: str) -> Document | None:
        cache = self._cache
        if cache is None or not cache.enabled:
            return None
        try:
            return await cache.get_by_id(import_path)
        except GoPkgDocsError as exc:
            log.warning("cache_lookup_failed", import_path=import_path, message=exc.message)
            return None

    async def _cache_store(self, document: Document) -> None:
        cache = self._cache
        if cache is None or not cache.enabled:
            return
        try:
            await cache.upsert(document)
        except GoPkgDocsError as exc:
            log.warning("cache_upsert_failed", import_path=document.id, message=exc.message)
            return
        log.debug("cache_upserted", import_path=document.id)


def _cancelled(import_path: str) -> GoPkgDocsError:
    return GoPkgDocsError(
        code=ErrorCode.CANCELLED,
        message=f"Scrape of {import_path} cancelled before it started",
        suggestion="Re-run the batch with a longer deadline.",
        recoverable=True,
    )
