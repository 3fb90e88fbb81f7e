"""Quickstart — put, get and list files through a driver.

Demonstrates:
- Configuring a Registry with an in-memory backend
- Creating nested directories implicitly with put()
- Reading content and metadata back
"""

from __future__ import annotations

from remote_tree import BackendConfig, DriverProfile, Registry, RegistryConfig

if __name__ == "__main__":
    config = RegistryConfig(
        backends={"mem": BackendConfig(type="memory")},
        drivers={"drive": DriverProfile(backend="mem")},
    )

    with Registry(config) as registry:
        drive = registry.get_driver("drive")

        # Missing directories on the way are created
        drive.put("Pictures/Holidays/beach.txt", b"Hello, world!")
        print(f"File exists: {drive.exists('Pictures/Holidays/beach.txt')}")

        # Read it back
        print(f"Content: {drive.get_bytes('Pictures/Holidays/beach.txt')}")

        # Check metadata
        node = drive.stat("Pictures/Holidays/beach.txt")
        print(f"Path: {node.path}")
        print(f"Size: {node.size} bytes")
        print(f"Modified: {node.modified_at}")

        # List a directory
        for child in drive.iter_directory("Pictures"):
            print(f"  {child.path} ({child.kind.value if child.kind else '?'})")

    print("Done!")
