"""Google Drive v3 backend using google-api-python-client."""

from __future__ import annotations

import contextlib
import io
import logging
import shutil
import tempfile
import threading
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, BinaryIO, Callable, TypeVar

from remote_tree._backend import Backend
from remote_tree._errors import BackingStoreFailure, NotFound, RemoteTreeError
from remote_tree._node import Entry, Field, NodeKind
from remote_tree._pipe import Pipe, PipeReader

if TYPE_CHECKING:
    from collections.abc import Iterator

    from remote_tree._node import Fields, Patch

T = TypeVar("T")

log = logging.getLogger(__name__)

FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"
FILE_MIME_TYPE = "application/octet-stream"
SCOPES = ("https://www.googleapis.com/auth/drive",)

_FIELD_NAMES: dict[Field, str] = {
    Field.ID: "id",
    Field.NAME: "name",
    Field.KIND: "mimeType",
    Field.SIZE: "size",
    Field.CREATED_TIME: "createdTime",
    Field.MODIFIED_TIME: "modifiedTime",
    Field.PARENTS: "parents",
    Field.CHECKSUM: "md5Checksum",
    Field.TRASHED: "trashed",
}

# Status codes worth another attempt: rate limiting and server-side hiccups.
_TRANSIENT_STATUS = frozenset({429, 500, 502, 503, 504})

# Media transfers use Drive's recommended multiple of 256 KiB.
_CHUNK_SIZE = 10 * 256 * 1024
_SPOOL_SIZE = 8 * 1024 * 1024


def _status(exc: BaseException) -> int | None:
    resp = getattr(exc, "resp", None)
    status = getattr(resp, "status", None)
    return int(status) if status is not None else None


def _is_transient(exc: BaseException) -> bool:
    from googleapiclient.errors import HttpError

    if isinstance(exc, HttpError):
        return _status(exc) in _TRANSIENT_STATUS
    return isinstance(exc, (ConnectionError, TimeoutError))


def _quote(value: str) -> str:
    """Escape a literal for use inside a single-quoted Drive query string."""
    return value.replace("\\", "\\\\").replace("'", "\\'")


def _field_selector(fields: Fields) -> str:
    return ",".join(sorted(_FIELD_NAMES[f] for f in fields | {Field.ID}))


class GoogleDriveBackend(Backend):
    """Backend over the Google Drive v3 ``files`` API.

    Authentication is not handled here beyond picking up credentials: pass
    a ready ``service`` resource, ``credentials``, or an authorized-user
    ``token_file``; otherwise Application Default Credentials are used.

    :param service: Pre-built ``drive`` v3 resource (skips building one).
    :param credentials: ``google.auth`` credentials used to build the service.
    :param token_file: Path to an authorized-user JSON token file.
    :param retries: Attempts per API call on transient errors.
    :param retry_wait: Base delay in seconds for exponential back-off.
    :param page_size: Page size for list queries.
    """

    def __init__(
        self,
        *,
        service: Any = None,
        credentials: Any = None,
        token_file: str | None = None,
        retries: int = 3,
        retry_wait: float = 1.0,
        page_size: int = 1000,
    ) -> None:
        if retries < 1:
            raise ValueError("retries must be at least 1")
        self._service_instance = service
        self._credentials = credentials
        self._token_file = token_file
        self._retries = retries
        self._retry_wait = retry_wait
        self._page_size = page_size

    @property
    def name(self) -> str:
        return "gdrive"

    def __repr__(self) -> str:
        return f"GoogleDriveBackend(connected={self._service_instance is not None})"

    # region: lazy service

    @property
    def _service(self) -> Any:
        if self._service_instance is None:
            self._service_instance = self._build_service()
        return self._service_instance

    def _build_service(self) -> Any:
        import googleapiclient.discovery  # type: ignore[import-untyped]

        credentials = self._credentials
        if credentials is None and self._token_file:
            from google.oauth2.credentials import Credentials

            credentials = Credentials.from_authorized_user_file(self._token_file, list(SCOPES))
        elif credentials is None:
            import google.auth

            credentials, _ = google.auth.default(scopes=list(SCOPES))
        service = googleapiclient.discovery.build("drive", "v3", credentials=credentials, cache_discovery=False)
        log.info("Google Drive service established.")
        return service

    def close(self) -> None:
        if self._service_instance is not None:
            with contextlib.suppress(Exception):
                self._service_instance.close()
            self._service_instance = None

    # endregion

    # region: error mapping and retry

    @contextmanager
    def _errors(self, ref: str = "") -> Iterator[None]:
        """Map googleapiclient/transport exceptions to remote_tree errors."""
        from googleapiclient.errors import HttpError

        try:
            yield
        except RemoteTreeError:
            raise
        except HttpError as exc:
            status = _status(exc)
            if status == 404:
                raise NotFound(f"File not found: {ref}", path=ref, backend=self.name) from None
            raise BackingStoreFailure(str(exc), path=ref, backend=self.name, status=status) from exc
        except OSError as exc:
            raise BackingStoreFailure(str(exc), path=ref, backend=self.name) from exc

    def _call(self, func: Callable[[], T], ref: str = "") -> T:
        """Run one API call, retrying transient failures."""
        from tenacity import before_sleep_log, retry, retry_if_exception, stop_after_attempt, wait_exponential

        @retry(
            retry=retry_if_exception(_is_transient),
            stop=stop_after_attempt(self._retries),
            wait=wait_exponential(multiplier=self._retry_wait, min=self._retry_wait, max=10 * self._retry_wait),
            before_sleep=before_sleep_log(log, logging.WARNING),  # type: ignore[arg-type,unused-ignore]
            reraise=True,
        )
        def _do() -> T:
            return func()

        with self._errors(ref):
            return _do()

    # endregion

    # region: helpers

    def _entry(self, item: dict[str, Any]) -> Entry:
        kind = None
        if "mimeType" in item:
            kind = NodeKind.DIRECTORY if item["mimeType"] == FOLDER_MIME_TYPE else NodeKind.FILE
        return Entry(
            id=item["id"],
            name=item.get("name", ""),
            kind=kind,
            size=int(item.get("size", 0)),
            created_time=item.get("createdTime"),
            modified_time=item.get("modifiedTime"),
            parents=tuple(item.get("parents", ())),
            checksum=item.get("md5Checksum"),
            trashed=bool(item.get("trashed", False)),
        )

    def _items(self, query: str, selector: str) -> list[dict[str, Any]]:
        items: list[dict[str, Any]] = []
        token = None
        while True:
            request = self._service.files().list(
                q=query,
                fields=f"nextPageToken,files({selector})",
                pageSize=self._page_size,
                pageToken=token,
                spaces="drive",
            )
            response = self._call(request.execute)
            items.extend(response.get("files", []))
            token = response.get("nextPageToken")
            if not token:
                return items

    def _list(self, query: str, fields: Fields) -> list[Entry]:
        return [self._entry(item) for item in self._items(query, _field_selector(fields))]

    @staticmethod
    def _seekable(content: BinaryIO) -> BinaryIO:
        """Resumable uploads need the total size up front; spool streams that cannot seek."""
        seekable = getattr(content, "seekable", None)
        if seekable is not None and seekable():
            return content
        spool = tempfile.SpooledTemporaryFile(max_size=_SPOOL_SIZE)  # noqa: SIM115
        shutil.copyfileobj(content, spool, _CHUNK_SIZE)
        spool.seek(0)
        return spool  # type: ignore[return-value]

    def _media(self, content: BinaryIO) -> Any:
        from googleapiclient.http import MediaIoBaseUpload

        return MediaIoBaseUpload(self._seekable(content), mimetype=FILE_MIME_TYPE, chunksize=_CHUNK_SIZE, resumable=True)

    # endregion

    # region: queries

    def root(self, fields: Fields) -> Entry:
        return self.get("root", fields)

    def get(self, id: str, fields: Fields) -> Entry:
        request = self._service.files().get(fileId=id, fields=_field_selector(fields))
        return self._entry(self._call(request.execute, id))

    def lookup(self, parent_id: str, name: str, fields: Fields) -> list[Entry]:
        query = f"'{_quote(parent_id)}' in parents and name = '{_quote(name)}' and trashed = false"
        log.debug("query: %s", query)
        return self._list(query, fields)

    def list_children(self, parent_id: str, fields: Fields) -> list[Entry]:
        return self._list(f"'{_quote(parent_id)}' in parents and trashed = false", fields)

    def list_trashed(self, fields: Fields) -> list[Entry]:
        # Drive also reports the contents of a trashed folder as trashed; keep explicit ones only.
        items = self._items("trashed = true", f"{_field_selector(fields)},explicitlyTrashed")
        return [self._entry(item) for item in items if item.get("explicitlyTrashed")]

    # endregion

    # region: mutations

    def create(self, parent_id: str, name: str, kind: NodeKind, fields: Fields) -> Entry:
        body = {
            "name": name,
            "mimeType": FOLDER_MIME_TYPE if kind is NodeKind.DIRECTORY else FILE_MIME_TYPE,
            "parents": [parent_id],
        }
        request = self._service.files().create(body=body, fields=_field_selector(fields))
        return self._entry(self._call(request.execute, name))

    def upload(self, parent_id: str, name: str, content: BinaryIO, fields: Fields) -> Entry:
        body = {"name": name, "mimeType": FILE_MIME_TYPE, "parents": [parent_id]}
        with self._errors(name):
            media = self._media(content)
        request = self._service.files().create(body=body, media_body=media, fields=_field_selector(fields))
        return self._entry(self._call(request.execute, name))

    def replace_content(self, id: str, content: BinaryIO, fields: Fields) -> Entry:
        with self._errors(id):
            media = self._media(content)
        request = self._service.files().update(fileId=id, media_body=media, fields=_field_selector(fields))
        return self._entry(self._call(request.execute, id))

    def update(self, id: str, patch: Patch, fields: Fields) -> Entry:
        body: dict[str, Any] = {}
        if patch.name is not None:
            body["name"] = patch.name
        if patch.trashed is not None:
            body["trashed"] = patch.trashed
        params: dict[str, Any] = {}
        if patch.add_parents:
            params["addParents"] = ",".join(patch.add_parents)
        if patch.remove_parents:
            params["removeParents"] = ",".join(patch.remove_parents)
        request = self._service.files().update(fileId=id, body=body, fields=_field_selector(fields), **params)
        return self._entry(self._call(request.execute, id))

    def delete(self, id: str) -> None:
        request = self._service.files().delete(fileId=id)
        self._call(request.execute, id)

    def download(self, id: str) -> BinaryIO:
        """Stream the content of ``id``; chunks after the first arrive on a background thread.

        The first chunk is fetched before returning, so a missing id or a
        folder fails here. Later failures are raised by the stream's
        ``read``. Closing the stream early stops the transfer.
        """
        from googleapiclient.http import MediaIoBaseDownload

        buffer = io.BytesIO()
        downloader = MediaIoBaseDownload(buffer, self._service.files().get_media(fileId=id), chunksize=_CHUNK_SIZE)

        def next_chunk() -> tuple[bytes, bool]:
            _, done = self._call(downloader.next_chunk, id)
            data = buffer.getvalue()
            buffer.seek(0)
            buffer.truncate()
            return data, done

        # Room for two chunks, so the first one never blocks before a reader exists.
        pipe = Pipe(2 * _CHUNK_SIZE)
        data, done = next_chunk()
        pipe.write(data)
        if done:
            pipe.close_writer()
        else:
            threading.Thread(
                target=self._pump,
                args=(next_chunk, pipe, id),
                name=f"remote-tree-download:{id}",
                daemon=True,
            ).start()
        return PipeReader(pipe)  # type: ignore[return-value]

    @staticmethod
    def _pump(next_chunk: Callable[[], tuple[bytes, bool]], pipe: Pipe, id: str) -> None:
        error: BaseException | None = None
        try:
            done = False
            while not done:
                data, done = next_chunk()
                pipe.write(data)
        except BrokenPipeError:
            log.debug("download of %s abandoned by reader", id)
        except Exception as exc:
            log.debug("download of %s failed: %s", id, exc)
            error = exc
        finally:
            pipe.close_writer(error)

    # endregion
