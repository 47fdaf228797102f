"""Tests for application/dispatcher.py.

Tests:
- Precedence of each entry point, with warnings for ambiguous input
- Named-method hints consumed from metadata
- Stack-walk fallbacks and their idempotence
- Preprocess rewrite to canonical source_location
- Failures absorbed, metadata returned
"""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

import pytest

from spanloc.application.caller_walker import CallStackWalker
from spanloc.application.dispatcher import ResolutionDispatcher
from spanloc.domain.model.frame import Frame
from spanloc.domain.model.source_location import LibraryLocation, ProjectLocation
from spanloc.infrastructure.symbol_index import type_name
from tests.factories import DEFAULT_ROOT, make_index, make_locator, make_paths

HERE = os.path.abspath(__file__)
TESTS_ROOT = os.path.dirname(HERE)


class Mailer:
    def perform(self) -> None: ...


MAILER = type_name(Mailer)
PERFORM_SITE = (Mailer.perform.__code__.co_filename, Mailer.perform.__code__.co_firstlineno)
HINT = ("instance_method", MAILER, "perform")


def make_dispatcher(root: str = DEFAULT_ROOT) -> ResolutionDispatcher:
    """Dispatcher with Mailer indexed and default libraries."""
    index = make_index(
        {
            "activejob": ("/gems/activejob-7.0/lib",),
            "vendored": (f"{DEFAULT_ROOT}/vendor/vendored",),
        }
    )
    paths = make_paths(root)
    return ResolutionDispatcher(
        index,
        paths,
        CallStackWalker(index, paths),
        make_locator(Mailer),
    )


class TestProcessTraceMeta:
    """Tests for process_trace_meta."""

    def test_existing_location_untouched(self) -> None:
        meta: dict[str, object] = {"source_location": "app/x.py:1"}
        make_dispatcher(TESTS_ROOT).process_trace_meta(meta)
        assert meta == {"source_location": "app/x.py:1"}

    def test_existing_file_untouched(self) -> None:
        meta: dict[str, object] = {"source_file": "/app/root/x.py", "source_line": 3}
        make_dispatcher(TESTS_ROOT).process_trace_meta(meta)
        assert meta == {"source_file": "/app/root/x.py", "source_line": 3}

    def test_walks_to_caller(self) -> None:
        meta: dict[str, object] = {}

        make_dispatcher(TESTS_ROOT).process_trace_meta(meta)
        line = sys._getframe().f_lineno - 1

        assert meta == {"source_file": HERE, "source_line": line}

    def test_idempotent(self) -> None:
        dispatcher = make_dispatcher(TESTS_ROOT)
        meta: dict[str, object] = {}

        dispatcher.process_trace_meta(meta)
        first = dict(meta)
        dispatcher.process_trace_meta(meta)

        assert meta == first

    def test_no_attributable_frame(self) -> None:
        meta: dict[str, object] = {}
        make_dispatcher().process_trace_meta(meta)
        assert meta == {}

    def test_dangling_line_warns(self, caplog: pytest.LogCaptureFixture) -> None:
        meta: dict[str, object] = {"source_line": 7}

        with caplog.at_level(logging.WARNING, logger="spanloc"):
            make_dispatcher().process_trace_meta(meta)

        assert "Ignoring source_line without source_file" in caplog.text


class TestProcessInstrumentOptions:
    """Tests for process_instrument_options."""

    def test_canonical_location(self) -> None:
        meta: dict[str, object] = {}
        result = make_dispatcher().process_instrument_options(
            {"source_location": "app/jobs.py:3"}, meta
        )

        assert result is meta
        assert meta == {"source_location": "app/jobs.py:3"}

    def test_canonical_beats_file_with_warning(self, caplog: pytest.LogCaptureFixture) -> None:
        meta: dict[str, object] = {}

        with caplog.at_level(logging.WARNING, logger="spanloc"):
            make_dispatcher().process_instrument_options(
                {"source_location": "app/jobs.py:3", "source_file": "/app/root/b.py"}, meta
            )

        assert meta == {"source_location": "app/jobs.py:3"}
        assert "Found both source_location and source_file or source_line" in caplog.text

    def test_method_hint_resolved(self) -> None:
        meta: dict[str, object] = {"source_location_hint": HINT}

        make_dispatcher().process_instrument_options(
            {"source_location_hint": HINT, "source_file": "/app/root/b.py", "source_line": 2},
            meta,
        )

        assert meta == {"source_file": PERFORM_SITE[0], "source_line": PERFORM_SITE[1]}

    def test_method_hint_unresolved_is_consumed(self) -> None:
        hint = ("instance_method", MAILER, "missing")
        meta: dict[str, object] = {"source_location_hint": hint}

        make_dispatcher().process_instrument_options({"meta": {"source_location_hint": hint}}, meta)

        assert meta == {}

    def test_malformed_hint_falls_through(self, caplog: pytest.LogCaptureFixture) -> None:
        meta: dict[str, object] = {"source_location_hint": "perform"}

        with caplog.at_level(logging.WARNING, logger="spanloc"):
            make_dispatcher().process_instrument_options(
                {"source_location_hint": "perform", "source_file": "/app/root/b.py"}, meta
            )

        assert meta == {"source_file": "/app/root/b.py", "source_line": None}
        assert "malformed source_location_hint" in caplog.text

    def test_nested_meta_fallback(self) -> None:
        meta: dict[str, object] = {}

        make_dispatcher().process_instrument_options(
            {"meta": {"source_file": "/app/root/b.py", "source_line": 4}}, meta
        )

        assert meta == {"source_file": "/app/root/b.py", "source_line": 4}

    def test_top_level_beats_nested(self) -> None:
        meta: dict[str, object] = {}

        make_dispatcher().process_instrument_options(
            {"source_file": "/app/root/a.py", "meta": {"source_file": "/app/root/b.py"}}, meta
        )

        assert meta["source_file"] == "/app/root/a.py"

    def test_instrument_site_marker_in_project(self) -> None:
        meta: dict[str, object] = {}

        make_dispatcher().process_instrument_options(
            {"sk_instrument_location": ("/app/root/app/jobs.py", 9)}, meta
        )

        assert meta == {"source_file": "/app/root/app/jobs.py", "source_line": 9}

    def test_instrument_site_marker_frame(self) -> None:
        meta: dict[str, object] = {}
        marker = Frame(file="/app/root/app/jobs.py", line=9)

        make_dispatcher().process_instrument_options({"sk_instrument_location": marker}, meta)

        assert meta == {"source_file": "/app/root/app/jobs.py", "source_line": 9}

    def test_marker_outside_project_walks(self) -> None:
        meta: dict[str, object] = {}
        opts = {"sk_instrument_location": ("/gems/activejob-7.0/lib/job.rb", 9)}

        make_dispatcher(TESTS_ROOT).process_instrument_options(opts, meta)
        line = sys._getframe().f_lineno - 1

        assert meta == {"source_file": HERE, "source_line": line}

    def test_walk_cached_by_options(self) -> None:
        dispatcher = make_dispatcher(TESTS_ROOT)
        opts = {"name": "render", "tags": ["a", "b"]}

        for _ in range(2):
            dispatcher.process_instrument_options(opts, {})

        assert dispatcher._walker.cache.hits == 1

    def test_dangling_line_warns_and_walks(self, caplog: pytest.LogCaptureFixture) -> None:
        meta: dict[str, object] = {}

        with caplog.at_level(logging.WARNING, logger="spanloc"):
            make_dispatcher().process_instrument_options({"source_line": 5}, meta)

        assert "Ignoring source_line without source_file" in caplog.text
        assert meta == {}

    def test_failure_returns_meta(self, caplog: pytest.LogCaptureFixture) -> None:
        """Invalid options never raise into the instrumented code."""
        meta: dict[str, object] = {"keep": True}

        with caplog.at_level(logging.WARNING, logger="spanloc"):
            result = make_dispatcher().process_instrument_options(
                None,  # type: ignore[arg-type]
                meta,
            )

        assert result is meta
        assert meta == {"keep": True}
        assert "attribution failed" in caplog.text


class TestProcessNormalizerMeta:
    """Tests for process_normalizer_meta."""

    def test_method_hint_first(self) -> None:
        meta: dict[str, object] = {}

        make_dispatcher().process_normalizer_meta(
            {}, meta, source_location_hint=HINT, source_location="app/x.py:1"
        )

        assert meta == {"source_file": PERFORM_SITE[0], "source_line": PERFORM_SITE[1]}

    def test_unresolved_hint_falls_through(self) -> None:
        meta: dict[str, object] = {}

        make_dispatcher().process_normalizer_meta(
            {},
            meta,
            source_location_hint=("instance_method", MAILER, "missing"),
            source_location="app/x.py:1",
        )

        assert meta == {"source_location": "app/x.py:1"}

    def test_existing_canonical_kept(self) -> None:
        meta: dict[str, object] = {"source_location": "app/x.py:1"}

        make_dispatcher(TESTS_ROOT).process_normalizer_meta(
            {"sk_source_location": ("/app/root/a.py", 2)}, meta
        )

        assert meta == {"source_location": "app/x.py:1"}

    def test_both_warns(self, caplog: pytest.LogCaptureFixture) -> None:
        meta: dict[str, object] = {}

        with caplog.at_level(logging.WARNING, logger="spanloc"):
            make_dispatcher().process_normalizer_meta(
                {}, meta, source_location="app/x.py:1", source_line=4
            )

        assert "in normalizer" in caplog.text
        assert meta == {"source_location": "app/x.py:1"}

    def test_explicit_file_and_line(self) -> None:
        meta: dict[str, object] = {}

        make_dispatcher().process_normalizer_meta(
            {}, meta, source_file="/app/root/a.py", source_line=8
        )

        assert meta == {"source_file": "/app/root/a.py", "source_line": 8}

    def test_payload_location(self) -> None:
        meta: dict[str, object] = {}

        make_dispatcher().process_normalizer_meta(
            {"sk_source_location": ("/app/root/a.py", 2)}, meta
        )

        assert meta == {"source_file": "/app/root/a.py", "source_line": 2}

    def test_walk_with_cache_key(self) -> None:
        dispatcher = make_dispatcher(TESTS_ROOT)
        results = []

        for _ in range(2):
            meta: dict[str, object] = {}
            dispatcher.process_normalizer_meta(object(), meta, cache_key=("sql", "select"))
            results.append(meta)

        assert results[0] == results[1]
        assert results[0]["source_file"] == HERE
        assert dispatcher._walker.cache.misses == 1
        assert dispatcher._walker.cache.hits == 1

    def test_unhashable_cache_key_not_cached(self) -> None:
        dispatcher = make_dispatcher(TESTS_ROOT)

        dispatcher.process_normalizer_meta({}, {}, cache_key=["unhashable"])

        assert len(dispatcher._walker.cache) == 0


class TestTracePreprocessMeta:
    """Tests for trace_preprocess_meta."""

    def test_project_file(self) -> None:
        meta: dict[str, object] = {"source_file": "/app/root/app/models/user.rb", "source_line": 10}

        make_dispatcher().trace_preprocess_meta(meta)

        assert meta == {"source_location": "app/models/user.rb:10"}

    def test_project_file_without_line(self) -> None:
        meta: dict[str, object] = {"source_file": "/app/root/app/models/user.rb"}
        make_dispatcher().trace_preprocess_meta(meta)
        assert meta == {"source_location": "app/models/user.rb"}

    def test_library_file(self) -> None:
        meta: dict[str, object] = {
            "source_file": "/gems/activejob-7.0/lib/active_job/base.rb",
            "source_line": 10,
        }

        make_dispatcher().trace_preprocess_meta(meta)

        assert meta == {"source_location": "activejob"}

    def test_outside_both_removed(self) -> None:
        meta: dict[str, object] = {"source_file": "/usr/lib/tool.py", "source_line": 1}
        make_dispatcher().trace_preprocess_meta(meta)
        assert meta == {}

    def test_location_wins_with_warning(self, caplog: pytest.LogCaptureFixture) -> None:
        meta: dict[str, object] = {
            "source_location": "app/x.py:1",
            "source_file": "/app/root/y.py",
        }

        with caplog.at_level(logging.WARNING, logger="spanloc"):
            make_dispatcher().trace_preprocess_meta(meta)

        assert meta == {"source_location": "app/x.py:1"}
        assert "Found both" in caplog.text

    def test_non_string_location_dropped(self, caplog: pytest.LogCaptureFixture) -> None:
        meta: dict[str, object] = {"source_location": 42}

        with caplog.at_level(logging.WARNING, logger="spanloc"):
            make_dispatcher().trace_preprocess_meta(meta)

        assert meta == {}
        assert "non-string value for source_location" in caplog.text

    def test_dangling_line(self, caplog: pytest.LogCaptureFixture) -> None:
        meta: dict[str, object] = {"source_line": 3, "other": "kept"}

        with caplog.at_level(logging.WARNING, logger="spanloc"):
            make_dispatcher().trace_preprocess_meta(meta)

        assert meta == {"other": "kept"}
        assert "source_line=3" in caplog.text


class TestSanitize:
    """Tests for sanitize_source_location and resolve_source_location."""

    def test_project_path(self) -> None:
        result = make_dispatcher().sanitize_source_location("/app/root/app/models/user.rb", 10)
        assert result == "app/models/user.rb:10"

    def test_library_drops_line(self) -> None:
        result = make_dispatcher().sanitize_source_location("/gems/activejob-7.0/lib/job.rb", 10)
        assert result == "activejob"

    def test_outside(self) -> None:
        assert make_dispatcher().sanitize_source_location("/usr/lib/tool.py", 10) is None

    def test_library_vendored_in_root(self) -> None:
        """Library classification comes before the root check."""
        result = make_dispatcher().resolve_source_location("/app/root/vendor/vendored/x.py", 3)
        assert result == LibraryLocation("vendored")

    def test_path_like(self) -> None:
        result = make_dispatcher().resolve_source_location(Path("/app/root/a.py"), 3)
        assert result == ProjectLocation("a.py", 3)

    @pytest.mark.parametrize("line", [None, 0, -1, True, "3"])
    def test_invalid_line_dropped(self, line: object) -> None:
        result = make_dispatcher().resolve_source_location("/app/root/a.py", line)
        assert result == ProjectLocation("a.py")

    @pytest.mark.parametrize("path", [None, "", 42])
    def test_invalid_path(self, path: object) -> None:
        assert make_dispatcher().resolve_source_location(path) is None
