"""Benchmark: Audit query throughput — filtered queries per second.

Fills an in-memory audit log with synthetic events and measures how many
filtered, paginated AuditLog.query() calls complete per second.
"""
from __future__ import annotations

import json
import random
import sys
import time
from datetime import datetime, timedelta, timezone
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from access_governance.audit.events import AuditAction, Severity
from access_governance.audit.log import AuditLog
from access_governance.permissions.catalog import PermissionCatalog

_EVENT_COUNT: int = 10_000
_ITERATIONS: int = 250

_ACTORS = ["John Doe", "Jane Smith", "Bob Johnson", "Alice Brown", "Charlie Wilson"]


def _make_log() -> AuditLog:
    """Build a log holding _EVENT_COUNT events, one second apart."""
    start = datetime(2024, 1, 1, tzinfo=timezone.utc)
    ticks = iter(start + timedelta(seconds=i) for i in range(_EVENT_COUNT))
    catalog = PermissionCatalog.default()
    log = AuditLog(catalog=catalog, clock=lambda: next(ticks))
    rng = random.Random(7)
    resources = catalog.list_resources()
    for _ in range(_EVENT_COUNT):
        actor = rng.choice(_ACTORS)
        action = rng.choice(list(AuditAction))
        resource = rng.choice(resources)
        log.append(
            {
                "actor": actor,
                "action": action,
                "resource": resource,
                "resource_id": rng.randint(1, 1000),
                "description": f"{actor} performed {action.value.lower()} on {resource}",
                "ip_address": f"10.0.{rng.randint(0, 254)}.{rng.randint(1, 254)}",
                "user_agent": "bench",
                "severity": rng.choice(list(Severity)),
                "success": rng.random() > 0.1,
            }
        )
    return log


def bench_query_throughput() -> dict[str, object]:
    """Benchmark AuditLog.query() throughput over a mixed set of filters.

    Returns
    -------
    dict with keys: operation, iterations, events, total_seconds,
    ops_per_second, avg_latency_ms.
    """
    log = _make_log()
    filters: list[dict[str, object]] = [
        {"severity": "CRITICAL"},
        {"actor": "Jane Smith", "action": "UPDATE"},
        {"resource": "DEAL", "success": False, "page": 2},
        {"from": "2024-01-01T01:00:00Z", "to": "2024-01-01T02:00:00Z"},
        {"search": "delete", "severity": "HIGH"},
    ]

    start = time.perf_counter()
    for i in range(_ITERATIONS):
        log.query(filters[i % len(filters)])
    total = time.perf_counter() - start

    result: dict[str, object] = {
        "operation": "audit_query_throughput",
        "iterations": _ITERATIONS,
        "events": _EVENT_COUNT,
        "total_seconds": round(total, 4),
        "ops_per_second": round(_ITERATIONS / total, 1),
        "avg_latency_ms": round(total / _ITERATIONS * 1000, 4),
    }
    print(
        f"[bench_query_throughput] {result['operation']}: "
        f"{result['ops_per_second']:,.0f} ops/sec  "
        f"avg {result['avg_latency_ms']:.4f} ms"
    )
    return result


def run_benchmark() -> dict[str, object]:
    """Entry point returning the benchmark result dict."""
    return bench_query_throughput()


if __name__ == "__main__":
    result = run_benchmark()
    results_dir = Path(__file__).parent / "results"
    results_dir.mkdir(exist_ok=True)
    output_path = results_dir / "query_throughput_baseline.json"
    with open(output_path, "w", encoding="utf-8") as fh:
        json.dump(result, fh, indent=2)
    print(f"Results saved to {output_path}")
