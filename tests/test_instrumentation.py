import pytest

from apparent.core.instrumentation import PerformanceProfiler, PipelineInstrumentation


def test_stage_counts_per_body():
    counters = PipelineInstrumentation()
    counters.record_stage("raw_computed", "Mars")
    counters.record_stage("raw_computed", "Mars")
    counters.record_stage("raw_computed", "Venus")
    counters.record_stage("frame_converted", "Mars")
    assert counters.count("raw_computed") == 3
    assert counters.count("raw_computed", "Mars") == 2
    assert counters.count("light_time_applied", "Mars") == 0
    assert counters.total() == 4


def test_cache_accounting_and_reset():
    counters = PipelineInstrumentation()
    counters.record_cache("Sun", hit=False)
    counters.record_cache("Sun", hit=True)
    counters.record_stage("raw_computed", "Sun")
    snapshot = counters.snapshot()
    assert snapshot == {
        "stages": {"raw_computed": 1},
        "cache_hits": {"Sun": 1},
        "cache_misses": {"Sun": 1},
    }
    counters.reset()
    assert counters.total() == 0
    assert counters.snapshot()["cache_hits"] == {}


def test_profiler_returns_result_and_records_timing():
    profiler = PerformanceProfiler()
    assert profiler.summary() == {"count": 0, "mean_ms": 0.0, "max_ms": 0.0}
    assert profiler.profile_function("sum", sum, [1, 2, 3]) == 6
    summary = profiler.summary()
    assert summary["count"] == 1
    assert summary["max_ms"] >= summary["mean_ms"] >= 0.0
    assert profiler.records[0].label == "sum"
    assert profiler.records[0].memory_usage_mb >= 0.0


def test_profiler_records_failures_and_propagates():
    profiler = PerformanceProfiler()

    def boom():
        raise ValueError("bad input")

    with pytest.raises(ValueError):
        profiler.profile_function("boom", boom)
    assert len(profiler.records) == 1


def test_profiler_keeps_a_bounded_history():
    profiler = PerformanceProfiler(max_records=2)
    for label in ("a", "b", "c"):
        profiler.profile_function(label, lambda: None)
    assert [r.label for r in profiler.records] == ["b", "c"]


def test_stop_without_start():
    assert PerformanceProfiler().stop_profiling() == (0.0, 0.0)
