"""Tests for infrastructure/project_paths.py."""

import os
import sysconfig
from pathlib import Path

from spanloc.domain.model.configuration import EngineConfig
from spanloc.infrastructure.project_paths import (
    ProjectPaths,
    detect_stdlib_paths,
    detect_vendor_paths,
)
from tests.factories import make_paths


class TestIsProjectPath:
    """Tests for ProjectPaths.is_project_path."""

    def test_under_root(self) -> None:
        assert make_paths().is_project_path("/app/root/app/models/user.rb")

    def test_outside_root(self) -> None:
        assert not make_paths().is_project_path("/gems/activejob-7.0/lib/job.rb")

    def test_sibling_prefix_not_under_root(self) -> None:
        assert not make_paths().is_project_path("/app/root2/main.py")

    def test_none_and_empty(self) -> None:
        paths = make_paths()
        assert not paths.is_project_path(None)
        assert not paths.is_project_path("")

    def test_vendor_under_root_excluded(self) -> None:
        paths = make_paths(excluded=("/app/root/.venv",))

        assert not paths.is_project_path("/app/root/.venv/lib/site-packages/rich/console.py")
        assert paths.is_project_path("/app/root/app/main.py")

    def test_runtime_marker_excluded(self) -> None:
        paths = make_paths(runtime_marker="/lib/python3.12/")
        assert not paths.is_project_path("/app/root/.pyenv/lib/python3.12/json/decoder.py")

    def test_filesystem_root(self) -> None:
        paths = make_paths(root="/")
        assert paths.is_project_path("/srv/app/main.py")


class TestRelative:
    """Tests for ProjectPaths.relative."""

    def test_relative_posix(self) -> None:
        assert make_paths().relative("/app/root/app/models/user.rb") == "app/models/user.rb"


class TestFromConfig:
    """Tests for ProjectPaths.from_config."""

    def test_explicit_vendor_paths(self) -> None:
        config = EngineConfig(root=Path("/app/root"), vendor_paths=(Path("/app/root/vendor"),))
        paths = ProjectPaths.from_config(config)

        assert paths.root == "/app/root"
        assert not paths.is_project_path("/app/root/vendor/bundle/x.py")
        assert paths.is_project_path("/app/root/app/x.py")

    def test_runtime_marker_from_version(self) -> None:
        config = EngineConfig(root=Path("/app/root"), vendor_paths=(), runtime_version="3.11")
        paths = ProjectPaths.from_config(config)

        assert paths.runtime_marker == f"{os.sep}lib{os.sep}python3.11{os.sep}"

    def test_stdlib_excluded_under_filesystem_root(self) -> None:
        config = EngineConfig(root=Path("/"), vendor_paths=())
        paths = ProjectPaths.from_config(config)

        assert not paths.is_project_path(os.__file__)

    def test_detected_vendor_paths_excluded(self) -> None:
        config = EngineConfig(root=Path("/"))
        paths = ProjectPaths.from_config(config)
        purelib = sysconfig.get_path("purelib")

        assert not paths.is_project_path(os.path.join(purelib, "rich", "console.py"))


class TestDetection:
    """Tests for interpreter directory detection."""

    def test_vendor_includes_purelib(self) -> None:
        assert Path(sysconfig.get_path("purelib")) in detect_vendor_paths()

    def test_stdlib_includes_stdlib(self) -> None:
        assert Path(sysconfig.get_path("stdlib")) in detect_stdlib_paths()
