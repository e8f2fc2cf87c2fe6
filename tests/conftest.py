"""
Shared test fixtures and configuration.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from pathlib import Path
from unittest.mock import patch

import pytest

from dotpkg.core import context


@pytest.fixture(autouse=True)
def _fresh_host_context() -> Iterator[None]:
    """Each test starts without a memoized host context."""
    context.reset_context()
    yield
    context.reset_context()


@pytest.fixture
def not_root() -> Iterator[None]:
    """Pretend to run unprivileged so sudo prefixes are applied."""
    with patch("dotpkg.adapters.shell.command.os.geteuid", return_value=1000):
        yield


@pytest.fixture
def fake_which() -> Callable[..., object]:
    """Build a ``shutil.which`` patch that only knows the given binaries."""

    def make(*binaries: str):
        paths = {b: f"/usr/bin/{b}" for b in binaries}
        return patch("shutil.which", side_effect=lambda name: paths.get(name))

    return make


@pytest.fixture
def fake_root(tmp_path: Path) -> Callable[[dict[str, str]], Path]:
    """Write marker files under a temporary filesystem root."""

    def make(files: dict[str, str]) -> Path:
        for rel, content in files.items():
            path = tmp_path / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content)
        return tmp_path

    return make
