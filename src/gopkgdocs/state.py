"""Application state container.

AppState is created once per run (inside the CLI lifespan context manager)
and handed to the command handlers. The lifespan owns the HTTP client and
the document store connection.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import httpx

    from gopkgdocs.cache import DocumentStore
    from gopkgdocs.config import Settings
    from gopkgdocs.protocols import FetcherProtocol
    from gopkgdocs.scraper import Scraper


@dataclass
class AppState:
    """Holds all shared runtime state for one CLI invocation."""

    settings: Settings
    fetcher: FetcherProtocol
    cache: DocumentStore
    scraper: Scraper
    # None in test mode, where no network client is opened
    http_client: httpx.AsyncClient | None = None
