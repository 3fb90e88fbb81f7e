"""Streaming I/O — open() handles for chunked reads and writes.

Demonstrates lazily started transfers: nothing is downloaded or uploaded
until the first read or write, and a write handle reports upload errors
when it is closed.
"""

from __future__ import annotations

import io

from remote_tree import Driver, OpenMode
from remote_tree.backends import MemoryBackend

if __name__ == "__main__":
    with Driver(MemoryBackend()) as drive:
        # --- Put from a BytesIO stream ---
        data = b"line1\nline2\nline3\nline4\nline5\n"
        drive.put("streamed.txt", io.BytesIO(data))
        print("Wrote file from BytesIO stream.")

        # --- Write in chunks through a handle ---
        with drive.open("Reports/large.bin", OpenMode.WRITE | OpenMode.CREATE, buffer_size=4096) as handle:
            for _ in range(10):
                handle.write(b"X" * 1000)
        print(f"Uploaded {drive.stat('Reports/large.bin').size} bytes in chunks.")

        # --- Read in chunks ---
        total = 0
        chunk_count = 0
        with drive.open("Reports/large.bin") as handle:
            while chunk := handle.read(4096):
                total += len(chunk)
                chunk_count += 1
        print(f"Read large.bin in {chunk_count} chunk(s), {total} bytes total.")

        # --- Replace the content of an existing file ---
        with drive.open("streamed.txt", OpenMode.WRITE) as handle:
            handle.write(b"rewritten")
        print(f"Rewritten: {drive.get_bytes('streamed.txt').decode()}")

    print("\nDone!")
