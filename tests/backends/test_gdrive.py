"""Google Drive backend tests.

Requires: google-api-python-client (test dependency). Requests are served
by mocks or by the in-process fake in ``drive_fake``; no network access.
"""

from __future__ import annotations

import io
import logging
import threading
from typing import Any
from unittest.mock import MagicMock, patch

import pytest

pytest.importorskip("googleapiclient", reason="google-api-python-client not installed")

from remote_tree._errors import BackingStoreFailure, NotFound  # noqa: E402
from remote_tree._node import ALL_FIELDS, ID_FIELDS, INFO_FIELDS, NodeKind, Patch  # noqa: E402
from remote_tree.backends._gdrive import (  # noqa: E402
    FILE_MIME_TYPE,
    FOLDER_MIME_TYPE,
    GoogleDriveBackend,
)
from tests.backends.drive_fake import FakeDrive, http_error  # noqa: E402

INFO_SELECTOR = "createdTime,id,mimeType,modifiedTime,name,size"


@pytest.fixture()
def service() -> MagicMock:
    return MagicMock()


@pytest.fixture()
def gdrive(service: MagicMock) -> GoogleDriveBackend:
    return GoogleDriveBackend(service=service, retries=3, retry_wait=0)


def _files(service: MagicMock) -> MagicMock:
    files: MagicMock = service.files.return_value
    return files


# region: construction


class TestGoogleDriveConstruction:
    def test_name(self, gdrive: GoogleDriveBackend) -> None:
        assert gdrive.name == "gdrive"

    def test_repr(self) -> None:
        assert repr(GoogleDriveBackend()) == "GoogleDriveBackend(connected=False)"
        assert repr(GoogleDriveBackend(service=MagicMock())) == "GoogleDriveBackend(connected=True)"

    def test_retries_must_be_positive(self) -> None:
        with pytest.raises(ValueError, match="retries"):
            GoogleDriveBackend(retries=0)

    def test_service_is_built_lazily_from_token_file(self) -> None:
        backend = GoogleDriveBackend(token_file="token.json")
        creds = MagicMock()
        with (
            patch("google.oauth2.credentials.Credentials.from_authorized_user_file", return_value=creds) as load,
            patch("googleapiclient.discovery.build") as build,
        ):
            load.assert_not_called()
            build.return_value.files.return_value.get.return_value.execute.return_value = {"id": "0Aroot"}
            assert backend.root(ID_FIELDS).id == "0Aroot"
        load.assert_called_once_with("token.json", ["https://www.googleapis.com/auth/drive"])
        build.assert_called_once_with("drive", "v3", credentials=creds, cache_discovery=False)

    def test_application_default_credentials(self) -> None:
        backend = GoogleDriveBackend()
        creds = MagicMock()
        with (
            patch("google.auth.default", return_value=(creds, "project")) as default,
            patch("googleapiclient.discovery.build") as build,
        ):
            assert backend._service is build.return_value
        default.assert_called_once_with(scopes=["https://www.googleapis.com/auth/drive"])
        build.assert_called_once_with("drive", "v3", credentials=creds, cache_discovery=False)

    def test_explicit_credentials(self) -> None:
        creds = MagicMock()
        backend = GoogleDriveBackend(credentials=creds)
        with patch("googleapiclient.discovery.build") as build:
            _ = backend._service
        build.assert_called_once_with("drive", "v3", credentials=creds, cache_discovery=False)

    def test_close_releases_service(self, gdrive: GoogleDriveBackend, service: MagicMock) -> None:
        service.close.side_effect = RuntimeError("already closed")
        gdrive.close()
        service.close.assert_called_once_with()
        assert repr(gdrive) == "GoogleDriveBackend(connected=False)"
        gdrive.close()


# endregion

# region: request shapes


class TestGoogleDriveRequests:
    def test_get(self, gdrive: GoogleDriveBackend, service: MagicMock) -> None:
        _files(service).get.return_value.execute.return_value = {
            "id": "f1",
            "name": "report.pdf",
            "mimeType": "application/pdf",
            "size": "2048",
            "createdTime": "2024-01-02T03:04:05.000Z",
            "modifiedTime": "2024-01-03T03:04:05.000Z",
            "parents": ["p1", "p2"],
            "md5Checksum": "abc",
            "trashed": False,
        }
        entry = gdrive.get("f1", ALL_FIELDS)
        _files(service).get.assert_called_once_with(
            fileId="f1",
            fields="createdTime,id,md5Checksum,mimeType,modifiedTime,name,parents,size,trashed",
        )
        assert entry.kind is NodeKind.FILE
        assert entry.size == 2048
        assert entry.parents == ("p1", "p2")
        assert entry.checksum == "abc"
        assert entry.created_time == "2024-01-02T03:04:05.000Z"

    def test_folder_mime_type(self, gdrive: GoogleDriveBackend, service: MagicMock) -> None:
        _files(service).get.return_value.execute.return_value = {"id": "d1", "mimeType": FOLDER_MIME_TYPE}
        assert gdrive.get("d1", INFO_FIELDS).kind is NodeKind.DIRECTORY

    def test_root_uses_alias(self, gdrive: GoogleDriveBackend, service: MagicMock) -> None:
        _files(service).get.return_value.execute.return_value = {"id": "0Aroot"}
        assert gdrive.root(ID_FIELDS).id == "0Aroot"
        _files(service).get.assert_called_once_with(fileId="root", fields="id")

    def test_lookup_query(self, gdrive: GoogleDriveBackend, service: MagicMock) -> None:
        _files(service).list.return_value.execute.return_value = {"files": [{"id": "a"}]}
        entries = gdrive.lookup("p1", "it's", INFO_FIELDS)
        assert [e.id for e in entries] == ["a"]
        _files(service).list.assert_called_once_with(
            q="'p1' in parents and name = 'it\\'s' and trashed = false",
            fields=f"nextPageToken,files({INFO_SELECTOR})",
            pageSize=1000,
            pageToken=None,
            spaces="drive",
        )

    def test_list_children_query(self, gdrive: GoogleDriveBackend, service: MagicMock) -> None:
        _files(service).list.return_value.execute.return_value = {"files": []}
        assert gdrive.list_children("p1", ID_FIELDS) == []
        assert _files(service).list.call_args.kwargs["q"] == "'p1' in parents and trashed = false"

    def test_list_trashed_query(self, gdrive: GoogleDriveBackend, service: MagicMock) -> None:
        _files(service).list.return_value.execute.return_value = {"files": []}
        gdrive.list_trashed(ID_FIELDS)
        assert _files(service).list.call_args.kwargs["q"] == "trashed = true"
        assert _files(service).list.call_args.kwargs["fields"] == "nextPageToken,files(id,explicitlyTrashed)"

    def test_list_trashed_keeps_explicit_only(self, gdrive: GoogleDriveBackend, service: MagicMock) -> None:
        _files(service).list.return_value.execute.return_value = {
            "files": [
                {"id": "folder", "explicitlyTrashed": True},
                {"id": "inside-folder", "explicitlyTrashed": False},
                {"id": "file", "explicitlyTrashed": True},
            ]
        }
        assert [e.id for e in gdrive.list_trashed(ID_FIELDS)] == ["folder", "file"]

    def test_pagination(self, gdrive: GoogleDriveBackend, service: MagicMock) -> None:
        _files(service).list.return_value.execute.side_effect = [
            {"files": [{"id": "a"}, {"id": "b"}], "nextPageToken": "tok"},
            {"files": [{"id": "c"}]},
        ]
        entries = gdrive.list_children("p1", ID_FIELDS)
        assert [e.id for e in entries] == ["a", "b", "c"]
        tokens = [c.kwargs["pageToken"] for c in _files(service).list.call_args_list]
        assert tokens == [None, "tok"]

    def test_create_directory(self, gdrive: GoogleDriveBackend, service: MagicMock) -> None:
        _files(service).create.return_value.execute.return_value = {"id": "d1", "mimeType": FOLDER_MIME_TYPE}
        gdrive.create("p1", "docs", NodeKind.DIRECTORY, ID_FIELDS)
        _files(service).create.assert_called_once_with(
            body={"name": "docs", "mimeType": FOLDER_MIME_TYPE, "parents": ["p1"]}, fields="id"
        )

    def test_upload(self, gdrive: GoogleDriveBackend, service: MagicMock) -> None:
        _files(service).create.return_value.execute.return_value = {"id": "f1"}
        gdrive.upload("p1", "a.txt", io.BytesIO(b"data"), ID_FIELDS)
        kwargs = _files(service).create.call_args.kwargs
        assert kwargs["body"] == {"name": "a.txt", "mimeType": FILE_MIME_TYPE, "parents": ["p1"]}
        assert kwargs["media_body"].size() == 4
        assert kwargs["media_body"].resumable()

    def test_update_moves_in_one_call(self, gdrive: GoogleDriveBackend, service: MagicMock) -> None:
        _files(service).update.return_value.execute.return_value = {"id": "f1"}
        patch_ = Patch(name="b.txt", add_parents=("new",), remove_parents=("old1", "old2"))
        gdrive.update("f1", patch_, ID_FIELDS)
        _files(service).update.assert_called_once_with(
            fileId="f1",
            body={"name": "b.txt"},
            fields="id",
            addParents="new",
            removeParents="old1,old2",
        )

    def test_update_trashed(self, gdrive: GoogleDriveBackend, service: MagicMock) -> None:
        _files(service).update.return_value.execute.return_value = {"id": "f1"}
        gdrive.update("f1", Patch(trashed=True), ID_FIELDS)
        _files(service).update.assert_called_once_with(fileId="f1", body={"trashed": True}, fields="id")

    def test_delete(self, gdrive: GoogleDriveBackend, service: MagicMock) -> None:
        gdrive.delete("f1")
        _files(service).delete.assert_called_once_with(fileId="f1")


# endregion

# region: errors and retries


class TestGoogleDriveErrors:
    def test_not_found(self, gdrive: GoogleDriveBackend, service: MagicMock) -> None:
        _files(service).get.return_value.execute.side_effect = http_error(404, "File not found")
        with pytest.raises(NotFound) as exc_info:
            gdrive.get("missing", ID_FIELDS)
        assert exc_info.value.path == "missing"
        assert exc_info.value.backend == "gdrive"
        assert _files(service).get.return_value.execute.call_count == 1

    def test_forbidden_is_not_retried(self, gdrive: GoogleDriveBackend, service: MagicMock) -> None:
        _files(service).delete.return_value.execute.side_effect = http_error(403, "insufficientPermissions")
        with pytest.raises(BackingStoreFailure) as exc_info:
            gdrive.delete("f1")
        assert exc_info.value.status == 403
        assert "status=403" in str(exc_info.value)
        assert _files(service).delete.return_value.execute.call_count == 1

    def test_transient_error_is_retried(
        self, gdrive: GoogleDriveBackend, service: MagicMock, caplog: pytest.LogCaptureFixture
    ) -> None:
        _files(service).get.return_value.execute.side_effect = [http_error(503, "backendError"), {"id": "f1"}]
        with caplog.at_level(logging.WARNING, logger="remote_tree.backends._gdrive"):
            assert gdrive.get("f1", ID_FIELDS).id == "f1"
        assert _files(service).get.return_value.execute.call_count == 2
        assert any("Retrying" in r.getMessage() for r in caplog.records)

    def test_rate_limit_exhausts_retries(self, service: MagicMock) -> None:
        backend = GoogleDriveBackend(service=service, retries=2, retry_wait=0)
        _files(service).get.return_value.execute.side_effect = http_error(429, "rateLimitExceeded")
        with pytest.raises(BackingStoreFailure) as exc_info:
            backend.get("f1", ID_FIELDS)
        assert exc_info.value.status == 429
        assert _files(service).get.return_value.execute.call_count == 2

    def test_connection_error_is_retried(self, gdrive: GoogleDriveBackend, service: MagicMock) -> None:
        _files(service).list.return_value.execute.side_effect = [ConnectionResetError("reset"), {"files": []}]
        assert gdrive.list_trashed(ID_FIELDS) == []

    def test_os_error_is_wrapped(self, gdrive: GoogleDriveBackend, service: MagicMock) -> None:
        _files(service).get.return_value.execute.side_effect = PermissionError("denied")
        with pytest.raises(BackingStoreFailure, match="denied"):
            gdrive.get("f1", ID_FIELDS)


# endregion

# region: media against the fake


class _Unseekable(io.RawIOBase):
    def __init__(self, data: bytes) -> None:
        super().__init__()
        self._inner = io.BytesIO(data)

    def readable(self) -> bool:
        return True

    def readinto(self, buffer: Any) -> int:
        data = self._inner.read(len(buffer))
        buffer[: len(data)] = data
        return len(data)


class TestGoogleDriveMedia:
    def test_seekable_stream_is_used_as_is(self) -> None:
        stream = io.BytesIO(b"x")
        assert GoogleDriveBackend._seekable(stream) is stream

    def test_unseekable_stream_is_spooled(self) -> None:
        spooled = GoogleDriveBackend._seekable(_Unseekable(b"abc"))  # type: ignore[arg-type]
        assert spooled.seekable()
        assert spooled.read() == b"abc"

    def test_round_trip_through_fake(self) -> None:
        drive = FakeDrive()
        backend = GoogleDriveBackend(service=drive, retry_wait=0)
        root_id = backend.root(ID_FIELDS).id
        entry = backend.upload(root_id, "a.bin", _Unseekable(b"payload"), INFO_FIELDS)  # type: ignore[arg-type]
        assert backend.download(entry.id).read() == b"payload"
        backend.close()
        assert drive.closed

    def test_large_download_through_fake(self) -> None:
        drive = FakeDrive()
        backend = GoogleDriveBackend(service=drive, retry_wait=0)
        root_id = backend.root(ID_FIELDS).id
        payload = bytes(range(256)) * 20_000
        entry = backend.upload(root_id, "big.bin", io.BytesIO(payload), INFO_FIELDS)
        stream = backend.download(entry.id)
        try:
            assert stream.read() == payload
        finally:
            stream.close()


# endregion

# region: streamed downloads


class _ScriptedDownload:
    """Replaces ``MediaIoBaseDownload``: each ``next_chunk`` runs the next step.

    A step writes its bytes to the target and returns ``done``, or raises.
    """

    def __init__(self, steps: list[Any]) -> None:
        self._steps = iter(steps)
        self.calls = 0

    def __call__(self, fd: Any, request: Any, chunksize: int) -> _ScriptedDownload:
        self._fd = fd
        return self

    def next_chunk(self) -> tuple[None, bool]:
        self.calls += 1
        data, done = next(self._steps)()
        self._fd.write(data)
        return None, done


def _chunk(data: bytes, done: bool = False) -> Any:
    return lambda: (data, done)


def _fail(exc: BaseException) -> Any:
    def step() -> Any:
        raise exc

    return step


def _join_download_thread(id: str) -> None:
    for thread in threading.enumerate():
        if thread.name == f"remote-tree-download:{id}":
            thread.join(timeout=5)
            assert not thread.is_alive()


class TestGoogleDriveDownload:
    def test_first_read_does_not_wait_for_whole_object(self, gdrive: GoogleDriveBackend) -> None:
        release = threading.Event()

        def tail() -> tuple[bytes, bool]:
            assert release.wait(5)
            return b"tail", True

        with patch("googleapiclient.http.MediaIoBaseDownload", _ScriptedDownload([_chunk(b"head"), tail])):
            stream = gdrive.download("f1")
            assert stream.read(4) == b"head"
            release.set()
            assert stream.read() == b"tail"
        stream.close()

    def test_missing_fails_before_returning(self, gdrive: GoogleDriveBackend) -> None:
        script = _ScriptedDownload([_fail(http_error(404, "File not found"))])
        with patch("googleapiclient.http.MediaIoBaseDownload", script), pytest.raises(NotFound):
            gdrive.download("missing")

    def test_error_mid_transfer_reaches_reader(self, gdrive: GoogleDriveBackend) -> None:
        script = _ScriptedDownload([_chunk(b"head"), _fail(http_error(403, "downloadQuotaExceeded"))])
        with patch("googleapiclient.http.MediaIoBaseDownload", script):
            stream = gdrive.download("f1")
            assert stream.read(4) == b"head"
            with pytest.raises(BackingStoreFailure) as exc_info:
                stream.read()
        assert exc_info.value.status == 403
        stream.close()

    def test_transient_error_mid_transfer_is_retried(self, gdrive: GoogleDriveBackend) -> None:
        script = _ScriptedDownload([_chunk(b"head"), _fail(http_error(503, "backendError")), _chunk(b"tail", True)])
        with patch("googleapiclient.http.MediaIoBaseDownload", script):
            stream = gdrive.download("f1")
            assert stream.read() == b"headtail"
        stream.close()
        assert script.calls == 3

    def test_closing_stream_stops_transfer(self, gdrive: GoogleDriveBackend) -> None:
        release = threading.Event()

        def more() -> tuple[bytes, bool]:
            assert release.wait(5)
            return b"more", False

        script = _ScriptedDownload([_chunk(b"head"), more, _chunk(b"never", True)])
        with patch("googleapiclient.http.MediaIoBaseDownload", script):
            stream = gdrive.download("f1")
            assert stream.read(4) == b"head"
            stream.close()
            release.set()
            _join_download_thread("f1")
        assert script.calls == 2


# endregion
