"""Protocol interfaces for swappable components.

The scraper references these protocols, not the concrete implementations.
This allows:
- Tests to use lightweight in-memory fakes
- Test mode to serve canned pages without touching the network
- Other document stores to be swapped in without changing scraper code
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from bs4 import BeautifulSoup

    from gopkgdocs.models import Document


class CacheProtocol(Protocol):
    """Interface for the package document store."""

    @property
    def enabled(self) -> bool: ...

    async def get_by_id(self, doc_id: str) -> Document | None: ...

    async def upsert(self, document: Document) -> None: ...


class FetcherProtocol(Protocol):
    """Interface for the page fetcher."""

    async def fetch_document(self, url: str) -> BeautifulSoup: ...
