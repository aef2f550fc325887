from __future__ import annotations

from collections import Counter
from typing import Dict

from prometheus_client import Counter as PromCounter

# Named counters (custom)
_NAMED = Counter()

MODEL_LOADS_TOTAL = PromCounter(
    "cengine_model_loads_total",
    "Model loads by runtime type and outcome",
    ["runtime", "outcome"],
)

MODEL_CACHE_HITS_TOTAL = PromCounter(
    "cengine_model_cache_hits_total",
    "Model lookups served from the engine cache",
)

COMPUTE_TOTAL = PromCounter(
    "cengine_compute_total",
    "Compute invocations by runtime type and outcome",
    ["runtime", "outcome"],
)


def reset_metrics() -> None:
    """
    Test helper: clears the named counters to avoid cross-test leakage.
    Prometheus counters are process-wide and monotonic; they are left alone.
    """
    _NAMED.clear()


def inc_named(name: str, value: int = 1) -> None:
    if not name:
        return
    _NAMED[name] += int(value)


def record_load(runtime: str, outcome: str) -> None:
    inc_named(f"model_loads_{outcome}")
    MODEL_LOADS_TOTAL.labels(runtime=runtime or "unknown", outcome=outcome).inc()


def record_cache_hit() -> None:
    inc_named("model_cache_hits")
    MODEL_CACHE_HITS_TOTAL.inc()


def record_compute(runtime: str, outcome: str) -> None:
    inc_named(f"compute_{outcome}")
    COMPUTE_TOTAL.labels(runtime=runtime or "unknown", outcome=outcome).inc()


def snapshot_named() -> Dict[str, int]:
    return dict(_NAMED)
