"""Tests for AuditLog append, query, pagination, and summaries."""
from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
from typing import Callable

import pytest

from access_governance.audit.events import AuditEvent, Severity
from access_governance.audit.exporter import AuditExporter
from access_governance.audit.log import AuditLog
from access_governance.audit.query import AuditFilter
from access_governance.audit.store import InMemoryAuditStore
from access_governance.errors import AuditStoreError, UnknownEventError, ValidationError

Payload = Callable[..., dict[str, object]]

T0 = datetime(2024, 3, 1, 9, 0, 0, tzinfo=timezone.utc)


class _FailingStore(InMemoryAuditStore):
    def add(self, event: AuditEvent) -> None:
        raise AuditStoreError("disk full")


# ---------------------------------------------------------------------------
# append
# ---------------------------------------------------------------------------


class TestAppend:
    def test_ids_strictly_increasing(self, audit_log: AuditLog, payload: Payload) -> None:
        ids = [audit_log.append(payload()).id for _ in range(5)]
        assert ids == [1, 2, 3, 4, 5]

    def test_query_includes_appended_event(self, audit_log: AuditLog, payload: Payload) -> None:
        before = audit_log.query({}).total_count
        event = audit_log.append(payload())
        page = audit_log.query({})
        assert page.total_count == before + 1
        assert event in page.events

    def test_store_failure_propagates(self, catalog, payload: Payload) -> None:
        log = AuditLog(_FailingStore(), catalog=catalog)
        with pytest.raises(AuditStoreError, match="disk full"):
            log.append(payload())
        assert log.count() == 0

    def test_concurrent_appends_get_unique_ids(self, payload: Payload) -> None:
        log = AuditLog()
        with ThreadPoolExecutor(max_workers=8) as pool:
            events = list(pool.map(lambda _: log.append(payload()), range(200)))
        assert sorted(e.id for e in events) == list(range(1, 201))
        assert log.count() == 200

    def test_get(self, audit_log: AuditLog, payload: Payload) -> None:
        event = audit_log.append(payload())
        assert audit_log.get(event.id) == event

    def test_get_unknown(self, audit_log: AuditLog) -> None:
        with pytest.raises(UnknownEventError):
            audit_log.get(12)

    def test_invalid_page_size(self) -> None:
        with pytest.raises(ValueError):
            AuditLog(page_size=0)


# ---------------------------------------------------------------------------
# Ordering
# ---------------------------------------------------------------------------


class TestOrdering:
    def test_newest_first_regardless_of_insertion_order(
        self, audit_log: AuditLog, clock, payload: Payload
    ) -> None:
        clock.pin(T0 + timedelta(hours=2), T0, T0 + timedelta(hours=1))
        for _ in range(3):
            audit_log.append(payload())
        events = audit_log.query({}).events
        assert [e.id for e in events] == [1, 3, 2]

    def test_ties_broken_by_id_descending(self, audit_log: AuditLog, clock, payload: Payload) -> None:
        clock.pin(T0, T0, T0, T0 - timedelta(seconds=1))
        for _ in range(4):
            audit_log.append(payload())
        assert [e.id for e in audit_log.query({}).events] == [3, 2, 1, 4]

    def test_filtered_results_keep_order(self, audit_log: AuditLog, clock, payload: Payload) -> None:
        clock.pin(T0 + timedelta(minutes=5), T0, T0 + timedelta(minutes=9))
        audit_log.append(payload(severity="HIGH"))
        audit_log.append(payload(severity="HIGH"))
        audit_log.append(payload(severity="LOW"))
        assert [e.id for e in audit_log.query({"severity": "HIGH"}).events] == [1, 2]


# ---------------------------------------------------------------------------
# Pagination
# ---------------------------------------------------------------------------


class TestPagination:
    @pytest.fixture()
    def filled(self, audit_log: AuditLog, payload: Payload) -> AuditLog:
        for _ in range(25):
            audit_log.append(payload())
        return audit_log

    def test_pages_of_ten(self, filled: AuditLog) -> None:
        sizes = [len(filled.query({"page": n, "pageSize": 10}).events) for n in (1, 2, 3)]
        assert sizes == [10, 10, 5]

    def test_page_past_end_is_empty(self, filled: AuditLog) -> None:
        page = filled.query({"page": 4, "page_size": 10})
        assert page.events == ()
        assert page.total_count == 25

    def test_page_zero_is_empty(self, filled: AuditLog) -> None:
        assert filled.query({"page": 0}).events == ()

    def test_pages_do_not_overlap(self, filled: AuditLog) -> None:
        seen = [e.id for n in (1, 2, 3) for e in filled.query({"page": n}).events]
        assert seen == list(range(25, 0, -1))

    def test_default_page_size(self, filled: AuditLog) -> None:
        page = filled.query()
        assert page.page_size == 10
        assert page.total_pages == 3
        assert page.has_next is True
        assert filled.query({"page": 3}).has_next is False

    def test_to_dict_shape(self, filled: AuditLog) -> None:
        data = filled.query({"page_size": 2}).to_dict()
        assert data["totalCount"] == 25
        assert len(data["events"]) == 2
        assert data["events"][0]["id"] == 25


# ---------------------------------------------------------------------------
# Filtering
# ---------------------------------------------------------------------------


class TestFiltering:
    def test_severity_filter_returns_only_match(self, audit_log: AuditLog, payload: Payload) -> None:
        audit_log.append(payload(severity="LOW"))
        high = audit_log.append(payload(severity="HIGH"))
        audit_log.append(payload(severity="CRITICAL"))
        page = audit_log.query({"severity": "HIGH"})
        assert page.total_count == 1
        assert page.events == (high,)

    def test_all_sentinel_means_unconstrained(self, audit_log: AuditLog, payload: Payload) -> None:
        audit_log.append(payload())
        audit_log.append(payload(action="LOGIN", resource="USER"))
        page = audit_log.query({"action": "all", "severity": "all", "actor": "all"})
        assert page.total_count == 2

    def test_actor_filter_is_exact(self, audit_log: AuditLog, payload: Payload) -> None:
        audit_log.append(payload(actor="Jane Smith"))
        audit_log.append(payload(actor="Jane Smithers"))
        assert audit_log.query({"actor": "Jane Smith"}).total_count == 1

    def test_search_matches_description_and_actor(self, audit_log: AuditLog, payload: Payload) -> None:
        audit_log.append(payload(actor="Bob Johnson", description="Exported quarterly report"))
        audit_log.append(payload(actor="Alice Brown", description="Viewed lead #12"))
        assert audit_log.query({"search": "QUARTERLY"}).total_count == 1
        assert audit_log.query({"search": "alice"}).total_count == 1
        assert audit_log.query({"search": "   "}).total_count == 2

    def test_success_filter(self, audit_log: AuditLog, payload: Payload) -> None:
        audit_log.append(payload(success=True))
        failed = audit_log.append(payload(success=False))
        assert audit_log.query({"success": "false"}).events == (failed,)
        assert audit_log.query({"success": False}).events == (failed,)

    def test_filters_combine_with_and(self, audit_log: AuditLog, payload: Payload) -> None:
        audit_log.append(payload(actor="Jane Smith", severity="HIGH"))
        audit_log.append(payload(actor="Jane Smith", severity="LOW"))
        audit_log.append(payload(actor="John Doe", severity="HIGH"))
        page = audit_log.query({"actor": "Jane Smith", "severity": "HIGH"})
        assert page.total_count == 1

    def test_no_match_is_empty_not_error(self, audit_log: AuditLog, payload: Payload) -> None:
        audit_log.append(payload())
        page = audit_log.query({"actor": "Nobody"})
        assert page.total_count == 0
        assert page.events == ()

    @pytest.mark.parametrize(
        "flt",
        [
            {"action": "PURGE"},
            {"severity": "URGENT"},
            {"resource": "SPACESHIP"},
            {"colour": "red"},
            {"from": "not-a-date"},
            {"page_size": 0},
        ],
    )
    def test_malformed_filter_raises(self, audit_log: AuditLog, flt: dict[str, object]) -> None:
        with pytest.raises(ValidationError):
            audit_log.query(flt)

    def test_indexed_select_matches_full_scan(
        self, audit_log: AuditLog, make_events: Callable[..., list[AuditEvent]]
    ) -> None:
        make_events(count=300, seed=11)
        everything = list(audit_log.iter_events())
        filters = [
            {"actor": "Jane Smith"},
            {"action": "DELETE", "severity": "HIGH"},
            {"resource": "DEAL", "success": True},
            {"actor": "Bob Johnson", "resource": "LEAD", "action": "VIEW"},
            {"search": "update", "severity": "LOW"},
            {"from": "2024-01-01T00:01:00Z", "to": "2024-01-01T00:03:00Z", "actor": "John Doe"},
        ]
        for raw in filters:
            flt = AuditFilter.model_validate(raw)
            expected = [e.id for e in everything if flt.matches(e)]
            assert [e.id for e in audit_log.iter_events(flt)] == expected, raw

    def test_iter_events_validates_eagerly(self, audit_log: AuditLog) -> None:
        with pytest.raises(ValidationError):
            audit_log.iter_events({"severity": "URGENT"})


# ---------------------------------------------------------------------------
# Date range
# ---------------------------------------------------------------------------


class TestDateRange:
    @pytest.fixture()
    def hourly(self, audit_log: AuditLog, clock, payload: Payload) -> AuditLog:
        clock.pin(*(T0 + timedelta(hours=h) for h in range(5)))
        for _ in range(5):
            audit_log.append(payload())
        return audit_log

    def test_bounds_are_inclusive(self, hourly: AuditLog) -> None:
        page = hourly.query({"from": T0 + timedelta(hours=1), "to": T0 + timedelta(hours=3)})
        assert [e.id for e in page.events] == [4, 3, 2]

    def test_open_ended_range(self, hourly: AuditLog) -> None:
        assert hourly.query({"from": T0 + timedelta(hours=4)}).total_count == 1
        assert hourly.query({"to": T0}).total_count == 1

    def test_naive_bounds_are_utc(self, hourly: AuditLog) -> None:
        page = hourly.query({"from": "2024-03-01T10:00:00", "to": "2024-03-01T10:00:00"})
        assert [e.id for e in page.events] == [2]

    def test_range_with_no_events(self, hourly: AuditLog) -> None:
        page = hourly.query({"from": T0 + timedelta(days=1), "to": T0 + timedelta(days=2)})
        assert page.total_count == 0

    def test_inverted_range_is_empty(self, hourly: AuditLog) -> None:
        page = hourly.query({"from": T0 + timedelta(hours=3), "to": T0})
        assert page.total_count == 0


# ---------------------------------------------------------------------------
# Export parity and summaries
# ---------------------------------------------------------------------------


class TestExportParity:
    def test_export_matches_query_order(
        self, audit_log: AuditLog, make_events: Callable[..., list[AuditEvent]]
    ) -> None:
        make_events(count=40)
        for flt in ({}, {"severity": "HIGH"}, {"resource": "DEAL", "success": True}):
            total = audit_log.query(flt).total_count
            expected = audit_log.query({**flt, "page_size": max(total, 1)}).events
            body = b"".join(audit_log.export(flt)).decode("utf-8")
            lines = body.splitlines()
            exporter = AuditExporter(audit_log)
            assert lines[1:] == [exporter.format_row(e) for e in expected]


class TestSummary:
    def test_counts(self, audit_log: AuditLog, payload: Payload) -> None:
        audit_log.append(payload(actor="John Doe", severity="HIGH", success=False))
        audit_log.append(payload(actor="Jane Smith", action="LOGIN", resource="USER"))
        audit_log.append(payload(actor="Jane Smith"))
        summary = audit_log.summary()
        assert summary.total_count == 3
        assert summary.failure_count == 1
        assert summary.by_action == {"UPDATE": 2, "LOGIN": 1}
        assert summary.by_severity[Severity.HIGH.value] == 1
        assert summary.actors == ("Jane Smith", "John Doe")

    def test_counts_agree_with_queries(
        self, audit_log: AuditLog, make_events: Callable[..., list[AuditEvent]]
    ) -> None:
        make_events(count=80, seed=3)
        summary = audit_log.summary()
        for severity, count in summary.by_severity.items():
            assert audit_log.query({"severity": severity}).total_count == count
        for resource, count in summary.by_resource.items():
            assert audit_log.query({"resource": resource}).total_count == count
        assert audit_log.query({"success": False}).total_count == summary.failure_count

    def test_filtered_summary(self, audit_log: AuditLog, payload: Payload) -> None:
        audit_log.append(payload(severity="HIGH"))
        audit_log.append(payload(severity="LOW"))
        assert audit_log.summary({"severity": "LOW"}).total_count == 1

    def test_actors(self, audit_log: AuditLog, payload: Payload) -> None:
        audit_log.append(payload(actor="Charlie Wilson"))
        audit_log.append(payload(actor="Alice Brown"))
        audit_log.append(payload(actor="Alice Brown"))
        assert audit_log.actors() == ["Alice Brown", "Charlie Wilson"]
