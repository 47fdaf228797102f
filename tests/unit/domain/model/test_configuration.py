"""Tests for domain/model/configuration.py."""

import os
import sys
from pathlib import Path

import pytest

from spanloc.domain.exceptions import InvalidConfigError
from spanloc.domain.model.configuration import (
    EngineConfig,
    absolute_path,
    normalize_library_name,
)


class TestEngineConfig:
    """Tests for EngineConfig validation and defaults."""

    def test_defaults(self) -> None:
        config = EngineConfig(root=Path("/app/root"))

        assert config.cache_size == 1000
        assert config.max_caller_depth == 75
        assert config.caller_skip == 0
        assert config.vendor_paths is None
        assert config.ignored_libraries == frozenset()
        assert config.runtime_version == f"{sys.version_info.major}.{sys.version_info.minor}"

    def test_relative_root_raises(self) -> None:
        with pytest.raises(InvalidConfigError, match="root"):
            EngineConfig(root=Path("app/root"))

    def test_none_root_raises(self) -> None:
        with pytest.raises(TypeError, match="root"):
            EngineConfig(root=None)  # type: ignore[arg-type]

    @pytest.mark.parametrize(
        ("field", "value"),
        [("cache_size", 0), ("max_caller_depth", 0), ("caller_skip", -1)],
    )
    def test_out_of_range_raises(self, field: str, value: int) -> None:
        with pytest.raises(InvalidConfigError, match=field):
            EngineConfig(root=Path("/app/root"), **{field: value})

    def test_empty_runtime_version_raises(self) -> None:
        with pytest.raises(InvalidConfigError, match="runtime_version"):
            EngineConfig(root=Path("/app/root"), runtime_version="")

    def test_ignored_libraries_normalized(self) -> None:
        config = EngineConfig(root=Path("/app/root"), ignored_libraries=frozenset({"Active-Job"}))

        assert config.ignored_libraries == frozenset({"active_job"})
        assert config.is_ignored("active.job")
        assert not config.is_ignored("activerecord")

    def test_frozen(self) -> None:
        config = EngineConfig(root=Path("/app/root"))
        with pytest.raises(AttributeError):
            config.cache_size = 5  # type: ignore[misc]


class TestFromMapping:
    """Tests for EngineConfig.from_mapping."""

    def test_minimal(self) -> None:
        config = EngineConfig.from_mapping({"root": "/app/root"})
        assert config.root == Path("/app/root")
        assert config.cache_size == 1000

    def test_missing_root_raises(self) -> None:
        with pytest.raises(InvalidConfigError, match="root"):
            EngineConfig.from_mapping({})

    def test_cache_size_string(self) -> None:
        config = EngineConfig.from_mapping(
            {"root": "/app/root", "source_location_cache_size": "50"}
        )
        assert config.cache_size == 50

    def test_cache_size_not_integer_raises(self) -> None:
        with pytest.raises(InvalidConfigError, match="source_location_cache_size"):
            EngineConfig.from_mapping({"root": "/app/root", "source_location_cache_size": "lots"})

    def test_ignored_comma_string(self) -> None:
        config = EngineConfig.from_mapping(
            {"root": "/app/root", "source_location_ignored_libraries": "rich, SQLAlchemy,,"}
        )
        assert config.ignored_libraries == frozenset({"rich", "sqlalchemy"})

    def test_ignored_gems_alias(self) -> None:
        config = EngineConfig.from_mapping(
            {"root": "/app/root", "source_location_ignored_gems": ["activejob"]}
        )
        assert config.ignored_libraries == frozenset({"activejob"})

    def test_ignored_libraries_wins_over_alias(self) -> None:
        config = EngineConfig.from_mapping(
            {
                "root": "/app/root",
                "source_location_ignored_libraries": ["rich"],
                "source_location_ignored_gems": ["activejob"],
            }
        )
        assert config.ignored_libraries == frozenset({"rich"})

    def test_ignored_wrong_type_raises(self) -> None:
        with pytest.raises(InvalidConfigError):
            EngineConfig.from_mapping({"root": "/app/root", "source_location_ignored_gems": 3})

    def test_vendor_paths_pathsep(self) -> None:
        raw = os.pathsep.join(["/app/root/vendor", "/app/root/.venv"])
        config = EngineConfig.from_mapping({"root": "/app/root", "vendor_paths": raw})

        assert config.vendor_paths == (
            Path("/app/root/vendor"),
            Path("/app/root/.venv"),
        )

    def test_runtime_version_and_depth(self) -> None:
        config = EngineConfig.from_mapping(
            {"root": "/app/root", "runtime_version": "3.11", "max_caller_depth": 10}
        )
        assert config.runtime_version == "3.11"
        assert config.max_caller_depth == 10

    def test_symlinked_root_kept_as_given(self, tmp_path: Path) -> None:
        """Frame filenames are not resolved, so neither is the root."""
        release = tmp_path / "releases" / "42"
        release.mkdir(parents=True)
        current = tmp_path / "current"
        current.symlink_to(release, target_is_directory=True)

        config = EngineConfig.from_mapping({"root": str(current), "vendor_paths": [str(current)]})

        assert config.root == current
        assert config.vendor_paths == (current,)


class TestNormalizeLibraryName:
    """Tests for normalize_library_name."""

    @pytest.mark.parametrize(
        ("name", "expected"),
        [("rich", "rich"), ("Flask-Login", "flask_login"), ("zope.interface", "zope_interface")],
    )
    def test_normalize(self, name: str, expected: str) -> None:
        assert normalize_library_name(name) == expected


class TestAbsolutePath:
    """Tests for absolute_path."""

    def test_relative_joined_to_cwd(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.chdir(tmp_path)
        assert absolute_path("app") == Path(os.getcwd()) / "app"

    def test_dot_segments_collapsed(self) -> None:
        assert absolute_path("/app/releases/../current/./lib") == Path("/app/current/lib")

    def test_home_expanded(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("HOME", "/home/deploy")
        assert absolute_path("~/app") == Path("/home/deploy/app")
