"""Tests for the registry: backend lifecycle and named drivers."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from remote_tree._config import BackendConfig, DriverProfile, RegistryConfig
from remote_tree._driver import Driver
from remote_tree._errors import NotFound
from remote_tree._registry import _BACKEND_FACTORIES, Registry, register_backend
from remote_tree.backends._gdrive import GoogleDriveBackend
from remote_tree.backends._memory import MemoryBackend


def _make_config() -> RegistryConfig:
    return RegistryConfig(
        backends={"mem": BackendConfig(type="memory", options={"root_name": "Shared"})},
        drivers={
            "native": DriverProfile(backend="mem"),
            "reports": DriverProfile(backend="mem", root_path="Reports"),
        },
    )


class TestConstruction:
    def test_validates_on_construction(self) -> None:
        bad = RegistryConfig(drivers={"main": DriverProfile(backend="nonexistent")})
        with pytest.raises(ValueError, match="nonexistent"):
            Registry(bad)

    def test_default_config(self) -> None:
        assert repr(Registry()) == "Registry(drivers=[])"

    def test_repr(self) -> None:
        assert repr(Registry(_make_config())) == "Registry(drivers=['native', 'reports'])"

    def test_builtin_backends_registered(self) -> None:
        Registry()
        assert _BACKEND_FACTORIES["memory"] is MemoryBackend
        assert _BACKEND_FACTORIES["gdrive"] is GoogleDriveBackend


class TestGetDriver:
    def test_returns_driver(self) -> None:
        reg = Registry(_make_config())
        driver = reg.get_driver("native")
        assert isinstance(driver, Driver)
        assert driver.root.entry.name == "Shared"

    def test_root_path(self) -> None:
        reg = Registry(_make_config())
        reg.get_driver("native").put("Reports/q1.csv", b"a,b")
        reports = reg.get_driver("reports")
        assert reports.get_bytes("q1.csv") == b"a,b"

    def test_missing_root_path(self) -> None:
        reg = Registry(_make_config())
        with pytest.raises(NotFound):
            reg.get_driver("reports")

    def test_unknown_driver(self) -> None:
        reg = Registry(_make_config())
        with pytest.raises(KeyError, match="unknown_driver"):
            reg.get_driver("unknown_driver")

    def test_lazy_instantiation(self) -> None:
        reg = Registry(_make_config())
        assert len(reg._backends) == 0
        reg.get_driver("native")
        assert len(reg._backends) == 1

    def test_backend_shared_across_drivers(self) -> None:
        reg = Registry(_make_config())
        first = reg.get_driver("native")
        first.make_directory("Reports")
        second = reg.get_driver("reports")
        assert first.backend is second.backend

    def test_unknown_backend_type(self) -> None:
        config = RegistryConfig(
            backends={"x": BackendConfig(type="ftp")},
            drivers={"main": DriverProfile(backend="x")},
        )
        with pytest.raises(ValueError, match="Unknown backend type 'ftp'"):
            Registry(config).get_driver("main")

    def test_invalid_backend_options(self) -> None:
        config = RegistryConfig(
            backends={"mem": BackendConfig(type="memory", options={"bucket": "nope"})},
            drivers={"main": DriverProfile(backend="mem")},
        )
        with pytest.raises(ValueError, match=r"Invalid options for backend 'mem' \(type='memory', drivers=\['main'\]\)"):
            Registry(config).get_driver("main")

    def test_gdrive_options_are_passed(self) -> None:
        config = RegistryConfig(
            backends={"drive": BackendConfig(type="gdrive", options={"token_file": "token.json", "retries": 5})},
            drivers={"main": DriverProfile(backend="drive")},
        )
        reg = Registry(config)
        with patch.object(GoogleDriveBackend, "root", return_value=MemoryBackend().root(frozenset())):
            driver = reg.get_driver("main")
        assert isinstance(driver.backend, GoogleDriveBackend)
        assert driver.backend._token_file == "token.json"
        assert driver.backend._retries == 5


class TestDriverCache:
    def test_same_driver_per_profile(self) -> None:
        reg = Registry(_make_config())
        assert reg.get_driver("native") is reg.get_driver("native")

    def test_root_resolved_once(self) -> None:
        reg = Registry(_make_config())
        reg.get_driver("native").make_directory("Reports")
        reports = reg.get_driver("reports")
        with patch.object(reports.backend, "root", wraps=reports.backend.root) as root:
            again = reg.get_driver("reports")
        assert again is reports
        root.assert_not_called()

    def test_set_root_sticks(self) -> None:
        reg = Registry(_make_config())
        native = reg.get_driver("native")
        native.put("Reports/q1.csv", b"a,b")
        native.set_root("Reports")
        assert reg.get_driver("native").get_bytes("q1.csv") == b"a,b"

    def test_failed_root_is_not_cached(self) -> None:
        reg = Registry(_make_config())
        with pytest.raises(NotFound):
            reg.get_driver("reports")
        reg.get_driver("native").make_directory("Reports")
        assert reg.get_driver("reports").root.entry.name == "Reports"

    def test_closing_driver_keeps_shared_backend(self) -> None:
        reg = Registry(_make_config())
        native = reg.get_driver("native")
        native.make_directory("Reports")
        with patch.object(native.backend, "close") as close:
            with reg.get_driver("reports"):
                pass
            close.assert_not_called()
        assert reg.get_driver("native").exists("Reports")


class TestLifecycle:
    def test_close_clears_backends(self) -> None:
        reg = Registry(_make_config())
        backend = reg.get_driver("native").backend
        with patch.object(backend, "close") as close:
            reg.close()
        close.assert_called_once_with()
        assert len(reg._backends) == 0

    def test_close_forgets_drivers(self) -> None:
        reg = Registry(_make_config())
        first = reg.get_driver("native")
        reg.close()
        second = reg.get_driver("native")
        assert second is not first
        assert second.backend is not first.backend

    def test_context_manager(self) -> None:
        with Registry(_make_config()) as reg:
            reg.get_driver("native")
        assert len(reg._backends) == 0


class TestRegisterBackend:
    def test_custom_backend(self) -> None:
        class TaggedBackend(MemoryBackend):
            pass

        register_backend("tagged", TaggedBackend)
        try:
            config = RegistryConfig(
                backends={"t": BackendConfig(type="tagged")},
                drivers={"main": DriverProfile(backend="t")},
            )
            assert isinstance(Registry(config).get_driver("main").backend, TaggedBackend)
        finally:
            _BACKEND_FACTORIES.pop("tagged", None)

    def test_builtins_do_not_override_registration(self) -> None:
        class OtherMemory(MemoryBackend):
            pass

        original = _BACKEND_FACTORIES.get("memory", MemoryBackend)
        register_backend("memory", OtherMemory)
        try:
            Registry()
            assert _BACKEND_FACTORIES["memory"] is OtherMemory
        finally:
            _BACKEND_FACTORIES["memory"] = original
