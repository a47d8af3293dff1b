"""Raw-capture document: a short header followed by the page markup as scraped."""

from __future__ import annotations

from typing import TYPE_CHECKING

from gopkgdocs.config import DEFAULT_BASE_URL
from gopkgdocs.fetcher import package_url
from gopkgdocs.render.markdown import format_timestamp

if TYPE_CHECKING:
    from gopkgdocs.models import Package


def package_to_raw(pkg: Package, raw_html: str, base_url: str = DEFAULT_BASE_URL) -> str:
    out = [
        "=== RAW WEB SCRAPE DATA ===\n",
        f"Package: {pkg.name}\n",
        f"Import Path: {pkg.import_path}\n",
        f"Scraped At: {format_timestamp(pkg.scraped_at)}\n",
        f"Source URL: {package_url(pkg.import_path, base_url)}\n",
        "================================\n\n",
    ]
    if raw_html:
        out.append("=== RAW HTML CONTENT ===\n")
        out.append(raw_html)
        out.append("\n=========================\n")
    else:
        out.append("=== NO RAW CONTENT AVAILABLE ===\n")
        out.append("Raw HTML content was not captured during scraping.\n")
        out.append("===================================\n")
    return "".join(out)
