"""Registry — named drivers over shared, lazily created backends."""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

from remote_tree._config import RegistryConfig
from remote_tree._driver import Driver

if TYPE_CHECKING:
    from types import TracebackType

    from remote_tree._backend import Backend

log = logging.getLogger(__name__)

# Maps backend type strings to backend classes.
_BACKEND_FACTORIES: dict[str, type[Backend]] = {}


def register_backend(type_name: str, cls: type[Backend]) -> None:
    """Make ``cls`` available as backend type ``type_name`` in configs.

    A registration made before the first :class:`Registry` is built takes
    precedence over the built-in backend of the same name.
    """
    _BACKEND_FACTORIES[type_name] = cls


def _register_builtin_backends() -> None:
    from remote_tree.backends._gdrive import GoogleDriveBackend
    from remote_tree.backends._memory import MemoryBackend

    _BACKEND_FACTORIES.setdefault("memory", MemoryBackend)
    _BACKEND_FACTORIES.setdefault("gdrive", GoogleDriveBackend)


class Registry:
    """Hands out one live :class:`Driver` per profile.

    A driver is built on first request and cached, so its root is resolved
    once and later :meth:`Driver.set_root` calls stick. Drivers naming the
    same backend share one backend instance. The registry owns those
    backends: closing a driver it handed out leaves the backend open, and
    :meth:`close` tears everything down.

    :param config: Optional configuration. Validates immediately.
    :raises ValueError: If a driver profile names an unknown backend.
    """

    def __init__(self, config: RegistryConfig | None = None) -> None:
        _register_builtin_backends()
        self._config = config or RegistryConfig()
        self._config.validate()
        self._lock = threading.Lock()
        self._backends: dict[str, Backend] = {}
        self._drivers: dict[str, Driver] = {}

    def __repr__(self) -> str:
        return f"Registry(drivers={sorted(self._config.drivers)!r})"

    def get_driver(self, name: str) -> Driver:
        """Return the driver for profile ``name``, rooted at the profile's ``root_path``.

        :raises KeyError: If no driver profile with this name exists.
        :raises NotFound: If the profile's ``root_path`` does not exist.
        :raises NotADirectory: If the profile's ``root_path`` is a file.
        """
        profile = self._config.drivers.get(name)
        if profile is None:
            raise KeyError(f"Unknown driver '{name}'. Available drivers: {sorted(self._config.drivers)}")

        with self._lock:
            driver = self._drivers.get(name)
            if driver is None:
                backend = self._get_backend(profile.backend)
                driver = Driver(backend=backend, root_path=profile.root_path, owns_backend=False)
                self._drivers[name] = driver
                log.debug("driver %r ready on backend %r", name, profile.backend)
            return driver

    def _get_backend(self, name: str) -> Backend:
        backend = self._backends.get(name)
        if backend is not None:
            return backend

        cfg = self._config.backends[name]
        factory = _BACKEND_FACTORIES.get(cfg.type)
        if factory is None:
            raise ValueError(f"Unknown backend type '{cfg.type}'. Registered types: {sorted(_BACKEND_FACTORIES)}")
        try:
            backend = factory(**cfg.options)
        except TypeError as exc:
            raise ValueError(
                f"Invalid options for backend '{name}' (type={cfg.type!r}, "
                f"drivers={self._config.drivers_of(name)!r}): {exc}. "
                f"Provided options: {sorted(cfg.options)}"
            ) from exc
        self._backends[name] = backend
        return backend

    def close(self) -> None:
        """Forget every driver and close every backend created so far."""
        with self._lock:
            self._drivers.clear()
            backends, self._backends = self._backends, {}
        for backend in backends.values():
            backend.close()

    def __enter__(self) -> Registry:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()
