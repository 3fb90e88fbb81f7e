"""Error handling — NotFound, NotADirectory, AmbiguousEntry and friends.

Demonstrates the error hierarchy and the structured ``path`` and
``backend`` attributes every error carries.
"""

from __future__ import annotations

from remote_tree import (
    AmbiguousEntry,
    CallbackFailure,
    Driver,
    InvalidArgument,
    NotADirectory,
    NotFound,
    RemoteTreeError,
)
from remote_tree.backends import MemoryBackend

if __name__ == "__main__":
    drive = Driver(MemoryBackend())
    drive.put("Folder1/File1", b"data")

    # --- NotFound names the first missing prefix ---
    try:
        drive.stat("Folder1/Folder2/File2")
    except NotFound as exc:
        print(f"NotFound: {exc}")
        print(f"  path={exc.path}, backend={exc.backend}")

    # --- NotADirectory when a file sits in the way ---
    try:
        drive.make_directory("Folder1/File1/Sub")
    except NotADirectory as exc:
        print(f"\nNotADirectory: {exc}")

    # --- AmbiguousEntry: the store allows same-name siblings ---
    drive.put("Folder1/Twin", b"one")
    drive.put("Folder1/Twin", b"two")
    try:
        drive.get_bytes("Folder1/Twin")
    except AmbiguousEntry as exc:
        print(f"\nAmbiguousEntry: {exc}")

    # --- InvalidArgument: the root cannot be moved ---
    try:
        drive.move("", "Elsewhere")
    except InvalidArgument as exc:
        print(f"\nInvalidArgument: {exc}")

    # --- CallbackFailure wraps errors raised by a visitor ---
    def picky(node: object) -> None:
        raise RuntimeError("did not like it")

    try:
        drive.list_directory("Folder1", picky)
    except CallbackFailure as exc:
        print(f"\nCallbackFailure: {exc}")
        print(f"  original: {exc.error!r}")

    # --- Catch any remote-tree error with the base class ---
    for path in ["missing.txt", "Folder1/File1/below-a-file"]:
        try:
            drive.get_bytes(path)
        except RemoteTreeError as exc:
            print(f"\nRemoteTreeError ({type(exc).__name__}): {exc}")

    print("\nDone!")
