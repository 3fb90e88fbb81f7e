"""Configuration — config-as-code, from_dict(), rooted drivers and backend configs.

Demonstrates different ways to create and use RegistryConfig, including
configuration for the Google Drive backend.
"""

from __future__ import annotations

from remote_tree import BackendConfig, DriverProfile, Registry, RegistryConfig

if __name__ == "__main__":
    # --- Option 1: Config-as-code with Python objects ---
    config = RegistryConfig(
        backends={"mem": BackendConfig(type="memory", options={"root_name": "Shared"})},
        drivers={
            "everything": DriverProfile(backend="mem"),
            "reports": DriverProfile(backend="mem", root_path="Reports"),
        },
    )

    with Registry(config) as registry:
        everything = registry.get_driver("everything")
        everything.put("Uploads/photo.jpg", b"\xff\xd8\xff\xe0fake-jpeg-data")
        everything.put("Reports/q4.csv", b"revenue,profit\n100,20\n")

        # Drivers on the same backend share it; this one is rooted at "Reports"
        reports = registry.get_driver("reports")
        print("Reports:", [n.path for n in reports.iter_directory("")])
        print("Everything:", [n.path for n in everything.iter_directory("")])

    # --- Option 2: from_dict() — e.g. loaded from TOML or JSON ---
    raw: dict[str, object] = {
        "backends": {"mem": {"type": "memory"}},
        "drivers": {"data": {"backend": "mem"}},
    }
    config = RegistryConfig.from_dict(raw)
    with Registry(config) as registry:
        registry.get_driver("data").put("hello.txt", b"from a dict config")
        print(f"\nfrom_dict driver: {registry.get_driver('data').get_bytes('hello.txt')!r}")

    # --- Google Drive backend config ---
    # Config-only: building the driver would contact Google.
    gdrive_config = RegistryConfig(
        backends={
            "drive": BackendConfig(
                type="gdrive",
                options={"token_file": "token.json", "retries": 5, "page_size": 500},
            ),
        },
        drivers={
            "team": DriverProfile(backend="drive", root_path="Team/Projects"),
            "archive": DriverProfile(backend="drive", root_path="Archive"),
        },
    )
    print(f"\nGoogle Drive config: {len(gdrive_config.drivers)} drivers on {len(gdrive_config.backends)} backend(s)")

    # --- Config validation: referencing unknown backend raises ValueError ---
    try:
        RegistryConfig(drivers={"orphan": DriverProfile(backend="nonexistent")}).validate()
    except ValueError as exc:
        print(f"\nValidation error: {exc}")

    print("\nDone!")
