"""Unit tests for gopkgdocs.fetcher."""

from __future__ import annotations

import asyncio

import httpx
import pytest
import respx
from bs4 import BeautifulSoup

from gopkgdocs.config import ScraperSettings
from gopkgdocs.errors import ErrorCode, GoPkgDocsError
from gopkgdocs.fetcher import (
    DomainLimiter,
    FakeFetcher,
    Fetcher,
    build_http_client,
    extract_import_path,
    is_url_allowed,
    package_url,
    validate_url,
)

SETTINGS = ScraperSettings(delay_seconds=0.0)
COBRA_URL = "https://pkg.go.dev/github.com/spf13/cobra"

# ---------------------------------------------------------------------------
# URL helpers
# ---------------------------------------------------------------------------


class TestPackageUrl:
    def test_default_base(self) -> None:
        assert package_url("github.com/spf13/cobra") == COBRA_URL

    def test_trailing_slash_on_base(self) -> None:
        assert package_url("fmt", "https://mirror.test/") == "https://mirror.test/fmt"

    def test_path_is_stripped(self) -> None:
        assert package_url("  fmt ") == "https://pkg.go.dev/fmt"


class TestExtractImportPath:
    def test_package_url(self) -> None:
        assert extract_import_path(COBRA_URL) == "github.com/spf13/cobra"

    def test_trailing_slash(self) -> None:
        assert extract_import_path(COBRA_URL + "/") == "github.com/spf13/cobra"

    def test_foreign_url_rejected(self) -> None:
        with pytest.raises(GoPkgDocsError) as exc_info:
            extract_import_path("https://example.com/fmt")
        assert exc_info.value.code == ErrorCode.INVALID_INPUT

    def test_bare_site_rejected(self) -> None:
        with pytest.raises(GoPkgDocsError) as exc_info:
            extract_import_path("https://pkg.go.dev/")
        assert exc_info.value.code == ErrorCode.INVALID_INPUT


class TestValidateUrl:
    def test_valid(self) -> None:
        validate_url(COBRA_URL)

    def test_prefix_lookalike_rejected(self) -> None:
        with pytest.raises(GoPkgDocsError):
            validate_url("https://pkg.go.dev.evil.test/fmt")


class TestIsUrlAllowed:
    def test_allowed_domain(self) -> None:
        assert is_url_allowed(COBRA_URL, frozenset({"pkg.go.dev"}))

    def test_subdomain_allowed(self) -> None:
        assert is_url_allowed("https://beta.pkg.go.dev/fmt", frozenset({"pkg.go.dev"}))

    def test_case_and_trailing_dot(self) -> None:
        assert is_url_allowed("https://PKG.GO.DEV./fmt", frozenset({"pkg.go.dev"}))

    def test_disallowed_domain(self) -> None:
        assert not is_url_allowed("https://evil.com/fmt", frozenset({"pkg.go.dev"}))

    def test_suffix_lookalike(self) -> None:
        assert not is_url_allowed("https://notpkg.go.dev/fmt", frozenset({"pkg.go.dev"}))

    def test_empty_allowlist(self) -> None:
        assert not is_url_allowed(COBRA_URL, frozenset())


# ---------------------------------------------------------------------------
# build_http_client
# ---------------------------------------------------------------------------


class TestBuildHttpClient:
    async def test_client_configuration(self) -> None:
        client = build_http_client(ScraperSettings(user_agent="test-agent/2"))
        try:
            assert isinstance(client, httpx.AsyncClient)
            # Redirects are followed manually so every hop is allowlist-checked
            assert client.follow_redirects is False
            assert client.headers["User-Agent"] == "test-agent/2"
        finally:
            await client.aclose()


# ---------------------------------------------------------------------------
# DomainLimiter
# ---------------------------------------------------------------------------


class TestDomainLimiter:
    async def test_parallelism_bound(self) -> None:
        limiter = DomainLimiter(parallelism=2, delay_seconds=0.0)
        active = 0
        peak = 0

        async def worker() -> None:
            nonlocal active, peak
            async with limiter.slot("pkg.go.dev"):
                active += 1
                peak = max(peak, active)
                await asyncio.sleep(0.01)
                active -= 1

        await asyncio.gather(*(worker() for _ in range(6)))
        assert peak == 2

    async def test_delay_spaces_request_starts(self) -> None:
        limiter = DomainLimiter(parallelism=4, delay_seconds=0.05)
        loop = asyncio.get_running_loop()
        starts: list[float] = []

        async def worker() -> None:
            async with limiter.slot("pkg.go.dev"):
                starts.append(loop.time())

        await asyncio.gather(*(worker() for _ in range(3)))
        starts.sort()
        assert starts[2] - starts[0] >= 0.09

    async def test_domains_are_independent(self) -> None:
        limiter = DomainLimiter(parallelism=1, delay_seconds=10.0)
        async with limiter.slot("a.test"):
            pass
        # A different domain does not wait on a.test's delay.
        await asyncio.wait_for(_enter(limiter, "b.test"), timeout=1.0)


async def _enter(limiter: DomainLimiter, domain: str) -> None:
    async with limiter.slot(domain):
        pass


# ---------------------------------------------------------------------------
# Fetcher
# ---------------------------------------------------------------------------


class TestFetcher:
    async def test_successful_fetch(self) -> None:
        with respx.mock:
            respx.get(COBRA_URL).mock(return_value=httpx.Response(200, text="<html>ok</html>"))
            async with httpx.AsyncClient() as client:
                fetcher = Fetcher(client, SETTINGS)
                result = await fetcher.fetch(COBRA_URL)
                assert result == "<html>ok</html>"

    async def test_fetch_document_parses(self) -> None:
        with respx.mock:
            respx.get(COBRA_URL).mock(
                return_value=httpx.Response(200, text="<html><title>t</title></html>")
            )
            async with httpx.AsyncClient() as client:
                fetcher = Fetcher(client, SETTINGS)
                soup = await fetcher.fetch_document(COBRA_URL)
                assert isinstance(soup, BeautifulSoup)
                assert soup.title is not None
                assert soup.title.get_text() == "t"

    async def test_404_not_recoverable(self) -> None:
        with respx.mock:
            respx.get(COBRA_URL).mock(return_value=httpx.Response(404))
            async with httpx.AsyncClient() as client:
                fetcher = Fetcher(client, SETTINGS)
                with pytest.raises(GoPkgDocsError) as exc_info:
                    await fetcher.fetch(COBRA_URL)
                assert exc_info.value.code == ErrorCode.FETCH_FAILED
                assert exc_info.value.recoverable is False

    async def test_500_recoverable(self) -> None:
        with respx.mock:
            respx.get(COBRA_URL).mock(return_value=httpx.Response(500))
            async with httpx.AsyncClient() as client:
                fetcher = Fetcher(client, SETTINGS)
                with pytest.raises(GoPkgDocsError) as exc_info:
                    await fetcher.fetch(COBRA_URL)
                assert exc_info.value.code == ErrorCode.FETCH_FAILED
                assert exc_info.value.recoverable is True

    async def test_network_error_wrapped(self) -> None:
        with respx.mock:
            respx.get(COBRA_URL).mock(side_effect=httpx.ConnectError("Connection refused"))
            async with httpx.AsyncClient() as client:
                fetcher = Fetcher(client, SETTINGS)
                with pytest.raises(GoPkgDocsError) as exc_info:
                    await fetcher.fetch(COBRA_URL)
                assert exc_info.value.code == ErrorCode.FETCH_FAILED
                assert exc_info.value.recoverable is True
                assert isinstance(exc_info.value.__cause__, httpx.ConnectError)

    async def test_control_character_in_path_wrapped(self) -> None:
        async with httpx.AsyncClient() as client:
            fetcher = Fetcher(client, SETTINGS)
            with pytest.raises(GoPkgDocsError) as exc_info:
                await fetcher.fetch("https://pkg.go.dev/bad\x01path")
            assert exc_info.value.code == ErrorCode.FETCH_FAILED
            assert exc_info.value.recoverable is False
            assert isinstance(exc_info.value.__cause__, httpx.InvalidURL)

    async def test_relative_redirect_followed(self) -> None:
        with respx.mock:
            respx.get("https://pkg.go.dev/old").mock(
                return_value=httpx.Response(301, headers={"location": "/new"})
            )
            respx.get("https://pkg.go.dev/new").mock(
                return_value=httpx.Response(200, text="moved")
            )
            async with httpx.AsyncClient() as client:
                fetcher = Fetcher(client, SETTINGS)
                assert await fetcher.fetch("https://pkg.go.dev/old") == "moved"

    async def test_redirect_to_disallowed_domain(self) -> None:
        with respx.mock:
            respx.get(COBRA_URL).mock(
                return_value=httpx.Response(302, headers={"location": "https://evil.com/steal"})
            )
            async with httpx.AsyncClient() as client:
                fetcher = Fetcher(client, SETTINGS)
                with pytest.raises(GoPkgDocsError) as exc_info:
                    await fetcher.fetch(COBRA_URL)
                assert exc_info.value.code == ErrorCode.FETCH_FAILED
                assert "not in allowed domains" in exc_info.value.message

    async def test_too_many_redirects(self) -> None:
        with respx.mock:
            # 4 redirects (max is 3)
            for i in range(4):
                respx.get(f"https://pkg.go.dev/r{i}").mock(
                    return_value=httpx.Response(
                        301, headers={"location": f"https://pkg.go.dev/r{i + 1}"}
                    )
                )
            respx.get("https://pkg.go.dev/r4").mock(return_value=httpx.Response(200, text="end"))
            async with httpx.AsyncClient() as client:
                fetcher = Fetcher(client, SETTINGS)
                with pytest.raises(GoPkgDocsError) as exc_info:
                    await fetcher.fetch("https://pkg.go.dev/r0")
                assert exc_info.value.code == ErrorCode.FETCH_FAILED
                assert "Too many redirects" in exc_info.value.message

    async def test_url_not_in_allowlist(self) -> None:
        async with httpx.AsyncClient() as client:
            fetcher = Fetcher(client, SETTINGS)
            with pytest.raises(GoPkgDocsError) as exc_info:
                await fetcher.fetch("https://example.org/fmt")
            assert exc_info.value.code == ErrorCode.FETCH_FAILED


# ---------------------------------------------------------------------------
# FakeFetcher
# ---------------------------------------------------------------------------


class TestFakeFetcher:
    async def test_serves_named_page(self) -> None:
        soup = await FakeFetcher().fetch_document(COBRA_URL)
        heading = soup.select_one("h1.UnitHeader-titleHeading")
        assert heading is not None
        assert heading.get_text() == "cobra"
        assert "github.com/spf13/cobra" in soup.get_text()

    async def test_rejects_foreign_url(self) -> None:
        with pytest.raises(GoPkgDocsError) as exc_info:
            await FakeFetcher().fetch("https://example.com/fmt")
        assert exc_info.value.code == ErrorCode.INVALID_INPUT
