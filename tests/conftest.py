"""Shared test fixtures and marker registration."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from remote_tree._driver import Driver
from remote_tree.backends._memory import MemoryBackend

if TYPE_CHECKING:
    from collections.abc import Iterator


def pytest_configure(config: object) -> None:
    """Register custom markers."""
    if isinstance(config, pytest.Config):
        config.addinivalue_line("markers", "integration: requires external services")


@pytest.fixture
def backend() -> MemoryBackend:
    return MemoryBackend()


@pytest.fixture
def driver(backend: MemoryBackend) -> Iterator[Driver]:
    """Driver rooted at a fresh test directory, as a shared drive would be used."""
    setup = Driver(backend)
    setup.make_directory("TestRoot")
    with Driver(backend, root_path="TestRoot") as d:
        yield d
