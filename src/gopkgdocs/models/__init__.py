from __future__ import annotations

from gopkgdocs.models.cache import Document
from gopkgdocs.models.package import (
    Constant,
    Example,
    Function,
    Package,
    Type,
    Variable,
)

__all__ = [
    # package record
    "Package",
    "Function",
    "Type",
    "Variable",
    "Constant",
    "Example",
    # cache
    "Document",
]
