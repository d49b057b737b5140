"""Benchmark: Authorization check latency — per-check p50/p99.

Measures the per-call latency of AuthorizationEvaluator.has_permission()
against the built-in CRM roles with a few thousand assigned users.
"""
from __future__ import annotations

import json
import random
import sys
import time
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from access_governance.governor import AccessGovernor

_WARMUP: int = 1_000
_ITERATIONS: int = 50_000
_USER_COUNT: int = 5_000


def _make_governor() -> AccessGovernor:
    """Build a governor with users spread across every built-in role."""
    governor = AccessGovernor()
    role_ids = [role.id for role in governor.roles.list_roles()]
    for user_id in range(_USER_COUNT):
        governor.assign_role(user_id, role_ids[user_id % len(role_ids)])
    return governor


def bench_check_latency() -> dict[str, object]:
    """Benchmark has_permission() per-call latency.

    Returns
    -------
    dict with keys: operation, iterations, total_seconds, ops_per_second,
    avg_latency_ms, p50_latency_ms, p99_latency_ms.
    """
    governor = _make_governor()
    rng = random.Random(7)
    resources = governor.catalog.list_resources()
    requests = []
    for _ in range(_ITERATIONS):
        resource = rng.choice(resources)
        action = rng.choice(governor.catalog.actions_for(resource))
        requests.append((rng.randrange(_USER_COUNT + 100), resource, action))

    for user_id, resource, action in requests[:_WARMUP]:
        governor.has_permission(user_id, resource, action)

    latencies_ms: list[float] = []
    for user_id, resource, action in requests:
        t0 = time.perf_counter()
        governor.has_permission(user_id, resource, action)
        latencies_ms.append((time.perf_counter() - t0) * 1000)

    sorted_lats = sorted(latencies_ms)
    n = len(sorted_lats)
    total = sum(latencies_ms) / 1000

    result: dict[str, object] = {
        "operation": "authorization_check_latency",
        "iterations": _ITERATIONS,
        "total_seconds": round(total, 4),
        "ops_per_second": round(_ITERATIONS / total, 1),
        "avg_latency_ms": round(sum(latencies_ms) / n, 4),
        "p50_latency_ms": round(sorted_lats[n // 2], 4),
        "p99_latency_ms": round(sorted_lats[min(int(n * 0.99), n - 1)], 4),
    }
    print(
        f"[bench_check_latency] {result['operation']}: "
        f"p99={result['p99_latency_ms']:.4f}ms  "
        f"mean={result['avg_latency_ms']:.4f}ms"
    )
    return result


def run_benchmark() -> dict[str, object]:
    """Entry point returning the benchmark result dict."""
    return bench_check_latency()


if __name__ == "__main__":
    result = run_benchmark()
    results_dir = Path(__file__).parent / "results"
    results_dir.mkdir(exist_ok=True)
    output_path = results_dir / "check_latency_baseline.json"
    with open(output_path, "w", encoding="utf-8") as fh:
        json.dump(result, fh, indent=2)
    print(f"Results saved to {output_path}")
