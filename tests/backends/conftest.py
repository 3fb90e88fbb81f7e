"""Backend test fixtures -- parameterized for conformance testing."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from remote_tree.backends._memory import MemoryBackend

if TYPE_CHECKING:
    from collections.abc import Iterator

    from remote_tree._backend import Backend


def _gdrive_available() -> bool:
    try:
        import googleapiclient  # noqa: F401
        import httplib2  # noqa: F401

        return True
    except ImportError:
        return False


_gdrive_param = pytest.param(
    "gdrive",
    marks=pytest.mark.skipif(not _gdrive_available(), reason="google-api-python-client not installed"),
)


@pytest.fixture(params=["memory", _gdrive_param])
def backend(request: pytest.FixtureRequest) -> Iterator[Backend]:
    """Parameterized backend fixture. Add new backends here."""
    if request.param == "memory":
        yield MemoryBackend()
    elif request.param == "gdrive":
        from remote_tree.backends._gdrive import GoogleDriveBackend
        from tests.backends.drive_fake import FakeDrive

        # A page size of 2 makes every multi-entry listing paginate.
        b = GoogleDriveBackend(service=FakeDrive(), retry_wait=0, page_size=2)
        yield b
        b.close()
    else:
        pytest.skip(f"Unknown backend: {request.param}")
