#!/usr/bin/env python3
"""Benchmark script for spanloc performance testing.

Outputs results in JSON format compatible with github-action-benchmark.
"""

from __future__ import annotations

import argparse
import json
import time
from pathlib import Path


def benchmark_import_time() -> float:
    """Measure import time of spanloc package."""
    start = time.perf_counter()
    import spanloc  # noqa: F401

    return time.perf_counter() - start


def benchmark_index_build() -> float:
    """Measure library index construction from installed distributions."""
    from spanloc.infrastructure.library_index import LibraryPathIndex

    start = time.perf_counter()
    LibraryPathIndex.from_installed()
    return time.perf_counter() - start


def benchmark_sanitize() -> float:
    """Measure sanitize over project, library and foreign paths."""
    from spanloc.application.engine import SourceLocationEngine
    from spanloc.domain.model.configuration import EngineConfig

    engine = SourceLocationEngine.from_config(
        EngineConfig(root=Path("/srv/app"), vendor_paths=()),
        libraries=[("activejob", ["/gems/activejob-7.0/lib"])],
    )
    paths = (
        "/srv/app/app/models/user.py",
        "/gems/activejob-7.0/lib/active_job/base.rb",
        "/usr/lib/tool.py",
    )

    start = time.perf_counter()
    for i in range(10000):
        engine.sanitize_source_location(paths[i % 3], i + 1)
    return time.perf_counter() - start


def benchmark_trace_meta(cached: bool) -> float:
    """Measure stack-walk fallback, with or without a call-site cache key."""
    from spanloc.application.engine import SourceLocationEngine
    from spanloc.domain.model.configuration import EngineConfig

    engine = SourceLocationEngine.from_config(
        EngineConfig(root=Path(__file__).resolve().parent, vendor_paths=()),
        libraries=[],
    )
    opts = {"name": "render"} if cached else {"name": ["unhashable"], "tags": {}}

    start = time.perf_counter()
    for _ in range(10000):
        engine.process_instrument_options(opts, {})
    return time.perf_counter() - start


def benchmark_locate() -> float:
    """Measure cached method lookups."""
    import json.decoder  # noqa: F401

    from spanloc.application.engine import SourceLocationEngine
    from spanloc.domain.model.configuration import EngineConfig

    engine = SourceLocationEngine.from_config(
        EngineConfig(root=Path("/srv/app"), vendor_paths=()),
        libraries=[],
        scan_modules=["json.decoder"],
    )

    start = time.perf_counter()
    for _ in range(10000):
        engine.locate("json.decoder.JSONDecoder", "decode")
    return time.perf_counter() - start


def main() -> None:
    """Run benchmarks and output results."""
    parser = argparse.ArgumentParser(description="Run spanloc benchmarks")
    parser.add_argument(
        "--output",
        type=Path,
        default=Path("benchmark-results.json"),
        help="Output file for benchmark results",
    )
    args = parser.parse_args()

    benchmarks = [
        ("Import Time", benchmark_import_time),
        ("Library Index Build", benchmark_index_build),
        ("Sanitize (10k iterations)", benchmark_sanitize),
        ("Stack Walk Cached (10k iterations)", lambda: benchmark_trace_meta(cached=True)),
        ("Stack Walk Uncached (10k iterations)", lambda: benchmark_trace_meta(cached=False)),
        ("Method Locate (10k iterations)", benchmark_locate),
    ]

    results = [
        {"name": name, "unit": "seconds", "value": run()} for name, run in benchmarks
    ]

    # Write results
    args.output.write_text(json.dumps(results, indent=2))
    print(f"Benchmark results written to {args.output}")
    for r in results:
        print(f"  {r['name']}: {r['value']:.4f} {r['unit']}")


if __name__ == "__main__":
    main()
