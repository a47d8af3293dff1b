"""HTTP page fetcher for pkg.go.dev.

All network I/O goes through a single Fetcher instance shared by every scrape
in a batch. The Fetcher receives an httpx.AsyncClient via constructor
injection; the caller owns the client lifecycle. Requests are limited per
domain (parallelism and a minimum delay between request starts) and only
allowlisted domains are reachable, including across redirects.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING
from urllib.parse import urljoin, urlparse

import httpx
import structlog
from bs4 import BeautifulSoup

from gopkgdocs.config import DEFAULT_BASE_URL
from gopkgdocs.errors import ErrorCode, GoPkgDocsError

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from gopkgdocs.config import ScraperSettings

log = structlog.get_logger()


def build_http_client(settings: ScraperSettings) -> httpx.AsyncClient:
    """Create the shared httpx client. Called once per run."""
    return httpx.AsyncClient(
        follow_redirects=False,
        timeout=httpx.Timeout(settings.timeout_seconds),
        headers={"User-Agent": settings.user_agent},
        limits=httpx.Limits(
            max_connections=max(settings.max_concurrency, 1) * 2,
            max_keepalive_connections=max(settings.max_concurrency, 1),
        ),
    )


def package_url(import_path: str, base_url: str = DEFAULT_BASE_URL) -> str:
    """``'github.com/spf13/cobra'`` → ``'https://pkg.go.dev/github.com/spf13/cobra'``."""
    return f"{base_url.rstrip('/')}/{import_path.strip()}"


def validate_url(url: str, base_url: str = DEFAULT_BASE_URL) -> None:
    """Raise INVALID_INPUT unless ``url`` points into the documentation site."""
    prefix = base_url.rstrip("/") + "/"
    if not url.startswith(prefix):
        raise GoPkgDocsError(
            code=ErrorCode.INVALID_INPUT,
            message=f"URL must start with {prefix}: {url}",
            suggestion="Pass a pkg.go.dev package URL or a bare import path.",
            recoverable=False,
        )


def extract_import_path(url: str, base_url: str = DEFAULT_BASE_URL) -> str:
    """Return the import path of a package URL.

    ``'https://pkg.go.dev/github.com/spf13/cobra/'`` → ``'github.com/spf13/cobra'``
    """
    validate_url(url, base_url)
    import_path = url.removeprefix(base_url.rstrip("/") + "/").rstrip("/")
    if not import_path:
        raise GoPkgDocsError(
            code=ErrorCode.INVALID_INPUT,
            message=f"No import path found in URL: {url}",
            suggestion="Pass a pkg.go.dev package URL such as https://pkg.go.dev/fmt.",
            recoverable=False,
        )
    return import_path


def is_url_allowed(url: str, allowed_domains: frozenset[str]) -> bool:
    """Check whether a URL's host is one of the allowed domains (or a subdomain)."""
    hostname = (urlparse(url).hostname or "").rstrip(".").lower()
    if not hostname:
        return False
    return any(hostname == d or hostname.endswith("." + d) for d in allowed_domains)


class DomainLimiter:
    """Per-domain parallelism gate with a minimum delay between request starts.

    The start-time reservation happens before the first await, so concurrent
    callers on the same event loop always get distinct slots.
    """

    def __init__(self, parallelism: int, delay_seconds: float) -> None:
        self._parallelism = max(parallelism, 1)
        self._delay = max(delay_seconds, 0.0)
        self._gates: dict[str, asyncio.Semaphore] = {}
        self._next_start: dict[str, float] = {}

    @asynccontextmanager
    async def slot(self, domain: str) -> AsyncIterator[None]:
        gate = self._gates.setdefault(domain, asyncio.Semaphore(self._parallelism))
        async with gate:
            now = asyncio.get_running_loop().time()
            start_at = max(now, self._next_start.get(domain, now))
            self._next_start[domain] = start_at + self._delay
            if start_at > now:
                await asyncio.sleep(start_at - now)
            yield


class Fetcher:
    """Rate-limited documentation page fetcher with allowlisted redirects."""

    def __init__(self, client: httpx.AsyncClient, settings: ScraperSettings) -> None:
        self._client = client
        self._allowed_domains = frozenset(d.lower() for d in settings.allowed_domains)
        self._limiter = DomainLimiter(settings.max_concurrency, settings.delay_seconds)

    async def fetch(self, url: str, max_redirects: int = 3) -> str:
        """Fetch a URL and return the response text.

        Raises GoPkgDocsError(FETCH_FAILED) on disallowed hosts, network
        errors, timeouts, redirect loops and non-2xx responses.
        """
        current_url = url

        try:
            for hop in range(max_redirects + 1):
                if not is_url_allowed(current_url, self._allowed_domains):
                    log.warning("fetch_blocked", url=current_url, reason="not_in_allowlist")
                    raise GoPkgDocsError(
                        code=ErrorCode.FETCH_FAILED,
                        message=f"URL not in allowed domains: {current_url}",
                        suggestion="Only pkg.go.dev pages can be scraped.",
                        recoverable=False,
                    )

                domain = urlparse(current_url).hostname or ""
                async with self._limiter.slot(domain):
                    log.debug("fetch_started", url=current_url, hop=hop)
                    response = await self._client.get(current_url)

                if response.is_redirect and "location" in response.headers:
                    if hop == max_redirects:
                        raise GoPkgDocsError(
                            code=ErrorCode.FETCH_FAILED,
                            message=f"Too many redirects fetching {url}",
                            suggestion="The package page has an unusually long redirect chain.",
                            recoverable=False,
                        )
                    current_url = urljoin(current_url, response.headers["location"])
                    continue

                if not response.is_success:
                    raise GoPkgDocsError(
                        code=ErrorCode.FETCH_FAILED,
                        message=f"HTTP {response.status_code} fetching {url}",
                        suggestion=(
                            "Check the import path."
                            if response.status_code == 404
                            else "pkg.go.dev may be temporarily unavailable."
                        ),
                        recoverable=response.status_code != 404,
                    )

                log.info(
                    "fetch_complete",
                    url=url,
                    status_code=response.status_code,
                    content_length=len(response.text),
                )
                return response.text

        except GoPkgDocsError:
            raise
        except httpx.InvalidURL as exc:
            # Not an HTTPError subclass; raised for control characters in the path
            raise GoPkgDocsError(
                code=ErrorCode.FETCH_FAILED,
                message=f"Invalid URL {url!r}: {exc}",
                suggestion="Check the import path for stray characters.",
                recoverable=False,
            ) from exc
        except httpx.HTTPError as exc:
            raise GoPkgDocsError(
                code=ErrorCode.FETCH_FAILED,
                message=f"Network error fetching {url}: {exc!r}",
                suggestion="pkg.go.dev may be temporarily unavailable.",
                recoverable=True,
            ) from exc

        # Unreachable but satisfies the type checker
        raise GoPkgDocsError(code=ErrorCode.FETCH_FAILED, message="Redirect loop")

    async def fetch_document(self, url: str) -> BeautifulSoup:
        html = await self.fetch(url)
        return BeautifulSoup(html, "html.parser")


_FAKE_PAGE = """<!DOCTYPE html>
<html>
<head><title>{name} package - {import_path} - Go Packages</title></head>
<body>
<h1 class="UnitHeader-titleHeading">{name}</h1>
<div class="UnitHeader-breadcrumbCurrent">{import_path}</div>
<a aria-label="Version: v0.0.0-test" href="?tab=versions">Version: v0.0.0-test</a>
<section class="Documentation-overview"><p>Package {name} is a canned page served in test mode.</p></section>
<section class="Documentation-functions">
<div class="Documentation-function">
<h4 id="Execute">func Execute</h4>
<div class="Documentation-declaration"><pre>func Execute() error</pre></div>
<p>Execute runs the root command.</p>
</div>
</section>
</body>
</html>
"""


class FakeFetcher:
    """Offline fetcher that serves the same minimal package page for any URL.

    Used by test mode so the whole pipeline, extractor included, runs without
    network access.
    """

    def __init__(self, base_url: str = DEFAULT_BASE_URL) -> None:
        self._base_url = base_url

    async def fetch(self, url: str) -> str:
        import_path = extract_import_path(url, self._base_url)
        name = import_path.rsplit("/", 1)[-1]
        log.debug("fake_fetch", url=url)
        return _FAKE_PAGE.format(name=name, import_path=import_path)

    async def fetch_document(self, url: str) -> BeautifulSoup:
        return BeautifulSoup(await self.fetch(url), "html.parser")
