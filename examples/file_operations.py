"""File operations — the full Driver API demonstrated.

Covers: put, get, stat, list, make_directory, get_hash, rename, move,
trash, list_trash, restore, delete and delete_directory, using the
in-memory backend.
"""

from __future__ import annotations

from remote_tree import Driver, HashMethod
from remote_tree.backends import MemoryBackend

if __name__ == "__main__":
    backend = MemoryBackend()
    Driver(backend).make_directory("Workspace")

    with Driver(backend, root_path="Workspace") as drive:
        # --- Put ---
        drive.put("docs/readme.txt", b"First file")
        drive.put("docs/changelog.txt", b"v0.1.0 - initial release")
        drive.put("data/report.csv", b"col1,col2\n1,2\n3,4")
        drive.put("tmp/scratch.txt", b"temporary data")
        drive.make_directory("archive/2024")
        print("Created 4 files.\n")

        # --- List a directory ---
        print("Entries in docs/:")
        for node in drive.iter_directory("docs"):
            print(f"  {node.name} ({node.size} bytes)")

        # --- Visitor-style listing ---
        print("\nDirectories at the root:")
        drive.list_directory("", lambda node: print(f"  {node.path}/") if node.is_dir else None)

        # --- Read ---
        print(f"\nreport.csv content:\n{drive.get_bytes('data/report.csv').decode()}")

        # --- Metadata and hashes ---
        node = drive.stat("docs/readme.txt")
        print(f"readme.txt - size: {node.size}, modified: {node.modified_at}")
        _, digest = drive.get_hash("docs/readme.txt", HashMethod.MD5)
        print(f"readme.txt - md5: {digest.hex()}")

        # --- Rename within a directory ---
        drive.rename("docs/readme.txt", "README.txt")
        print(f"\nRenamed readme.txt -> README.txt (old exists: {drive.exists('docs/readme.txt')})")

        # --- Move, creating the destination directory ---
        drive.move("docs/changelog.txt", "archive/2024/changelog.txt")
        print(f"Moved changelog.txt -> archive/2024/ (original exists: {drive.exists('docs/changelog.txt')})")

        # --- Trash and restore ---
        drive.trash("data/report.csv")
        print(f"\nTrashed report.csv (exists: {drive.exists('data/report.csv')})")
        print("Trash:", [n.path for n in drive.iter_trash()])
        drive.restore("data/report.csv")
        print(f"Restored report.csv (exists: {drive.exists('data/report.csv')})")

        # --- Delete ---
        drive.delete("tmp/scratch.txt")
        print(f"\nDeleted scratch.txt (exists: {drive.exists('tmp/scratch.txt')})")

        # --- delete_directory ---
        drive.delete_directory("tmp")
        print(f"Deleted tmp/ (exists: {drive.exists('tmp')})")

    print("\nDone!")
