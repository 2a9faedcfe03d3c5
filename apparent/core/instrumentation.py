# apparent/core/instrumentation.py
# -----------------------------------------------------------------------------
# Stage counters and performance profiling for the position pipeline
#
# Features:
#   • Per-stage and per-body execution counters (cache behavior is observable)
#   • Cache hit/miss accounting
#   • Optional wall-clock and RSS profiling via psutil
# -----------------------------------------------------------------------------

from __future__ import annotations

import logging
import time
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

import psutil

log = logging.getLogger(__name__)

__all__ = ["PipelineInstrumentation", "PerformanceProfiler", "EvaluationTiming"]


class PipelineInstrumentation:
    """Counts stage executions per stage and per (stage, body)."""

    def __init__(self):
        self.stage_counts: Counter = Counter()
        self.body_stage_counts: Counter = Counter()
        self.cache_hits: Counter = Counter()
        self.cache_misses: Counter = Counter()

    def record_stage(self, stage: str, body: str) -> None:
        self.stage_counts[stage] += 1
        self.body_stage_counts[(stage, body)] += 1

    def record_cache(self, body: str, hit: bool) -> None:
        if hit:
            self.cache_hits[body] += 1
        else:
            self.cache_misses[body] += 1

    def count(self, stage: str, body: Optional[str] = None) -> int:
        if body is None:
            return self.stage_counts[stage]
        return self.body_stage_counts[(stage, body)]

    def total(self) -> int:
        return sum(self.stage_counts.values())

    def reset(self) -> None:
        self.stage_counts.clear()
        self.body_stage_counts.clear()
        self.cache_hits.clear()
        self.cache_misses.clear()

    def snapshot(self) -> Dict[str, Any]:
        return {
            "stages": dict(self.stage_counts),
            "cache_hits": dict(self.cache_hits),
            "cache_misses": dict(self.cache_misses),
        }


@dataclass
class EvaluationTiming:
    """Timing of one profiled evaluation."""
    label: str
    execution_time_ms: float
    memory_usage_mb: float


@dataclass
class PerformanceProfiler:
    """Wall-clock and resident-memory profiling of pipeline evaluations"""

    max_records: int = 1000
    records: List[EvaluationTiming] = field(default_factory=list)
    start_time: Optional[float] = None
    start_memory: Optional[float] = None

    def start_profiling(self) -> None:
        self.start_time = time.perf_counter()
        self.start_memory = psutil.Process().memory_info().rss / 1024 / 1024  # MB

    def stop_profiling(self) -> Tuple[float, float]:
        """Stop profiling and return (execution_time_ms, memory_usage_mb)"""
        if self.start_time is None:
            return 0.0, 0.0

        execution_time = (time.perf_counter() - self.start_time) * 1000.0
        current_memory = psutil.Process().memory_info().rss / 1024 / 1024
        memory_usage = current_memory - (self.start_memory or 0)
        self.start_time = None
        return execution_time, max(0.0, memory_usage)

    def profile_function(self, label: str, func: Callable[..., Any], *args, **kwargs) -> Any:
        """Run func, record its timing under label, and return its result."""
        self.start_profiling()
        try:
            return func(*args, **kwargs)
        finally:
            time_ms, memory_mb = self.stop_profiling()
            if len(self.records) >= self.max_records:
                del self.records[0]
            self.records.append(EvaluationTiming(label, time_ms, memory_mb))
            log.debug("%s: %.3f ms, %+.2f MB", label, time_ms, memory_mb)

    def summary(self) -> Dict[str, float]:
        if not self.records:
            return {"count": 0, "mean_ms": 0.0, "max_ms": 0.0}
        times = [r.execution_time_ms for r in self.records]
        return {
            "count": len(times),
            "mean_ms": sum(times) / len(times),
            "max_ms": max(times),
        }
