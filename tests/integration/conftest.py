"""Integration test fixtures.

CLI tests run ``python -m gopkgdocs.cli`` in a subprocess so structlog's
global configuration never leaks into other tests.
"""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest

if TYPE_CHECKING:
    from pathlib import Path


@pytest.fixture()
def subprocess_env(tmp_path: Path) -> dict[str, str]:
    """Baseline env for CLI subprocess tests.

    Points the document store into an isolated tmp directory and forces
    machine-readable logs, overriding any local gopkgdocs.yaml.
    """
    env = os.environ.copy()
    env["GOPKGDOCS__CACHE__DB_PATH"] = str(tmp_path / "packages.db")
    env["GOPKGDOCS__LOGGING__FORMAT"] = "json"
    env["GOPKGDOCS__SCRAPER__DELAY_SECONDS"] = "0"
    return env
