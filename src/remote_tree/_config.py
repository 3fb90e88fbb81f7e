"""Configuration model — immutable data containers describing backends and drivers."""

from __future__ import annotations

import dataclasses
from typing import Any

from remote_tree._path import TreePath


def _mapping(data: object, what: str) -> dict[str, Any]:
    if not isinstance(data, dict):
        raise TypeError(f"Expected {what} to be a dict, got {type(data).__name__}")
    return {str(k): v for k, v in data.items()}


@dataclasses.dataclass(frozen=True)
class BackendConfig:
    """Describes a backend instance shared by every driver that names it.

    :param type: Backend type identifier (e.g. ``"memory"``, ``"gdrive"``).
    :param options: Keyword arguments passed to the backend class.
    """

    type: str
    options: dict[str, object] = dataclasses.field(default_factory=dict)

    @classmethod
    def from_dict(cls, name: str, data: object) -> BackendConfig:
        raw = _mapping(data, f"backend config for '{name}'")
        if "type" not in raw:
            raise ValueError(f"Backend config for '{name}' is missing 'type'")
        return cls(type=str(raw["type"]), options=_mapping(raw.get("options", {}), f"options of backend '{name}'"))


@dataclasses.dataclass(frozen=True)
class DriverProfile:
    """Describes a named driver: which backend it talks to and where its root is.

    ``root_path`` is normalized on construction, so ``"/Shared//Reports/"``
    is stored as ``"Shared/Reports"``.

    :param backend: Name of the backend config to use.
    :param root_path: Directory, relative to the store's native root, used as the driver's root.
    :raises InvalidArgument: If ``root_path`` contains a null byte.
    """

    backend: str
    root_path: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "root_path", str(TreePath(self.root_path)))

    @classmethod
    def from_dict(cls, name: str, data: object) -> DriverProfile:
        # A bare string is shorthand for a profile rooted at the native root.
        if isinstance(data, str):
            return cls(backend=data)
        raw = _mapping(data, f"driver profile for '{name}'")
        if "backend" not in raw:
            raise ValueError(f"Driver profile '{name}' is missing 'backend'")
        return cls(backend=str(raw["backend"]), root_path=str(raw.get("root_path", "")))


@dataclasses.dataclass(frozen=True)
class RegistryConfig:
    """Top-level configuration container.

    :param backends: Mapping of backend names to their configs.
    :param drivers: Mapping of driver names to their profiles.
    """

    backends: dict[str, BackendConfig] = dataclasses.field(default_factory=dict)
    drivers: dict[str, DriverProfile] = dataclasses.field(default_factory=dict)

    def validate(self) -> None:
        """Check that every driver profile names a configured backend.

        :raises ValueError: If a driver references a non-existent backend.
        """
        for driver_name, profile in self.drivers.items():
            if profile.backend not in self.backends:
                raise ValueError(
                    f"Driver '{driver_name}' references unknown backend '{profile.backend}'. "
                    f"Available backends: {sorted(self.backends)}"
                )

    def drivers_of(self, backend: str) -> list[str]:
        """Names of the driver profiles sharing ``backend``, sorted."""
        return sorted(name for name, profile in self.drivers.items() if profile.backend == backend)

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> RegistryConfig:
        """Construct from a plain dict (e.g. parsed TOML/JSON).

        Example::

            RegistryConfig.from_dict({
                "backends": {"drive": {"type": "gdrive", "options": {"token_file": "token.json"}}},
                "drivers": {"reports": {"backend": "drive", "root_path": "Shared/Reports"}, "all": "drive"},
            })

        :raises TypeError: If a section or an entry has the wrong shape.
        :raises ValueError: If an entry lacks its required key.
        """
        backends = _mapping(data.get("backends", {}), "'backends'")
        drivers = _mapping(data.get("drivers", {}), "'drivers'")
        return cls(
            backends={name: BackendConfig.from_dict(name, cfg) for name, cfg in backends.items()},
            drivers={name: DriverProfile.from_dict(name, prof) for name, prof in drivers.items()},
        )
