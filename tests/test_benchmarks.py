"""Structural tests for access-governance benchmarks.

Verifies that each benchmark function is callable and returns a dict
with the expected required keys.
"""
from __future__ import annotations

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / "benchmarks"))

_REQUIRED_KEYS = {"operation", "ops_per_second", "avg_latency_ms"}


@pytest.fixture(scope="module")
def check_result() -> dict[str, object]:
    from bench_check_latency import run_benchmark

    return run_benchmark()


@pytest.fixture(scope="module")
def query_result() -> dict[str, object]:
    from bench_query_throughput import run_benchmark

    return run_benchmark()


def test_bench_check_latency_returns_expected_keys(check_result: dict[str, object]) -> None:
    """bench_check_latency returns a dict with required keys."""
    for key in _REQUIRED_KEYS:
        assert key in check_result, f"Missing key: {key!r}"


def test_bench_check_latency_p99_not_below_p50(check_result: dict[str, object]) -> None:
    """p99 latency must be at least the median."""
    assert float(check_result["p99_latency_ms"]) >= float(check_result["p50_latency_ms"])  # type: ignore[arg-type]


def test_bench_query_throughput_returns_expected_keys(query_result: dict[str, object]) -> None:
    """bench_query_throughput returns a dict with required keys."""
    for key in _REQUIRED_KEYS:
        assert key in query_result, f"Missing key: {key!r}"


def test_bench_query_throughput_ops_per_second_positive(query_result: dict[str, object]) -> None:
    """ops_per_second must be a positive float."""
    assert float(query_result["ops_per_second"]) > 0.0  # type: ignore[arg-type]
