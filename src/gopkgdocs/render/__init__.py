from __future__ import annotations

from gopkgdocs.render.markdown import package_to_markdown
from gopkgdocs.render.raw import package_to_raw

__all__ = ["package_to_markdown", "package_to_raw"]
