from __future__ import annotations

from pydantic import BaseModel

from gopkgdocs.models.package import Package


class Document(BaseModel):
    """Unit of persistence in the document store."""

    id: str  # Import path, e.g. "github.com/spf13/cobra" (primary key)
    package: Package
    raw_html: str = ""  # Raw page markup captured at scrape time
