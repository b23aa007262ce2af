from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Iterator, List

import pytest

from tests._fixtures.docs_builder import DocsBuilder
from tests._fixtures.fake_toolchain import FAKE_TOOLCHAIN


@pytest.fixture
def docs_builder(tmp_path: Path) -> DocsBuilder:
    """Provide a reusable docs builder rooted at the pytest tmp_path."""
    return DocsBuilder(tmp_path)


@pytest.fixture
def fake_toolchain() -> List[str]:
    """Command line of the stand-in compiler."""
    return [sys.executable, str(FAKE_TOOLCHAIN), "{file}"]


@pytest.fixture(autouse=True)
def _propagate_docverify_logs() -> Iterator[None]:
    """Let caplog see docverify records even after the CLI configured logging."""
    logger = logging.getLogger("docverify")
    previous = logger.propagate
    logger.propagate = True
    yield
    logger.propagate = previous
