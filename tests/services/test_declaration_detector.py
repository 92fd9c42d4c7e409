"""
Tests for DeclarationDetector -- late weight-ticket detection.

The deterministic clock sits at 2025-12-04, so the cutoff period is
November 2025 and every line weighed before 2025-11-01 is late.
"""

from decimal import Decimal

import pytest

from declaration_kernel.domain.period import Period
from declaration_kernel.domain.types import DeclarationStatus, DeclarationType
from declaration_kernel.selectors.declaration_selector import DeclarationSelector
from declaration_kernel.services.declaration_detector import DeclarationDetector

from tests.factories import STREAM_A, STREAM_B, utc


@pytest.fixture
def detector(session, deterministic_clock, id_generator):
    return DeclarationDetector(
        session, clock=deterministic_clock, id_generator=id_generator,
    )


def _waiting(session, number=STREAM_A, period="102025"):
    return [
        d for d in DeclarationSelector(session).find_by_key(number, period)
        if d.status == DeclarationStatus.WAITING_APPROVAL
    ]


class TestFirstDetection:
    def test_creates_first_receival_for_never_declared_stream(
        self, session, detector, seed_line,
    ):
        seed_line(STREAM_A, utc(2025, 10, 2), "100.5")
        seed_line(STREAM_A, utc(2025, 10, 28), "200")

        summary = detector.detect_and_create_for_late_weight_tickets()

        assert summary.cutoff == Period(2025, 11)
        assert summary.created == ("000000000001",)
        [declaration] = _waiting(session)
        assert declaration.declaration_id == "000000000001"
        assert declaration.declaration_type == DeclarationType.FIRST_RECEIVAL
        assert declaration.total_weight == Decimal("300.5")
        assert declaration.total_shipments == 2
        assert declaration.transporters == ()

    def test_cutoff_month_is_not_late(self, session, detector, seed_line):
        seed_line(STREAM_A, utc(2025, 11, 1))
        seed_line(STREAM_A, utc(2025, 11, 30))

        summary = detector.detect_and_create_for_late_weight_tickets()

        assert summary.lines_scanned == 0
        assert DeclarationSelector(session).list_declarations() == []

    def test_one_declaration_per_stream_and_period(self, session, detector, seed_line):
        seed_line(STREAM_A, utc(2025, 9, 15))
        seed_line(STREAM_A, utc(2025, 10, 15))
        seed_line(STREAM_B, utc(2025, 10, 15))

        summary = detector.detect_and_create_for_late_weight_tickets()

        assert len(summary.created) == 3
        keys = sorted(d.key for d in DeclarationSelector(session).list_declarations())
        assert keys == [(STREAM_A, "092025"), (STREAM_A, "102025"), (STREAM_B, "102025")]

    def test_stream_with_completed_history_becomes_monthly_receival(
        self, session, detector, seed_line, seed_declaration,
    ):
        seed_declaration("900000000001", period="092025", status=DeclarationStatus.COMPLETED)
        seed_line(STREAM_A, utc(2025, 9, 10))
        seed_line(STREAM_A, utc(2025, 10, 10))

        summary = detector.detect_and_create_for_late_weight_tickets()

        assert len(summary.created) == 1
        [declaration] = _waiting(session)
        assert declaration.declaration_type == DeclarationType.MONTHLY_RECEIVAL
        # The completed September key is left alone.
        assert _waiting(session, period="092025") == []


class TestRerun:
    def test_rerun_without_new_activity_changes_nothing(self, session, detector, seed_line):
        seed_line(STREAM_A, utc(2025, 10, 2), "100")
        first = detector.detect_and_create_for_late_weight_tickets()

        second = detector.detect_and_create_for_late_weight_tickets()

        assert second.created == ()
        assert second.superseded == ()
        assert second.unchanged == first.created
        [declaration] = _waiting(session)
        assert declaration.declaration_id == first.created[0]
        assert declaration.total_weight == Decimal("100")

    def test_new_activity_replaces_waiting_declaration(self, session, detector, seed_line):
        seed_line(STREAM_A, utc(2025, 10, 2), "100")
        first = detector.detect_and_create_for_late_weight_tickets()
        seed_line(STREAM_A, utc(2025, 10, 20), "40")

        second = detector.detect_and_create_for_late_weight_tickets()

        assert second.superseded == first.created
        assert second.created != first.created
        [declaration] = _waiting(session)
        assert declaration.declaration_id == second.created[0]
        assert declaration.total_weight == Decimal("140")
        assert declaration.total_shipments == 2
        assert DeclarationSelector(session).get(first.created[0]) is None

    @pytest.mark.parametrize(
        "status", [DeclarationStatus.PENDING, DeclarationStatus.FAILED],
    )
    def test_submitted_or_failed_key_is_skipped(
        self, session, detector, seed_line, seed_declaration, status,
    ):
        seed_declaration("900000000001", status=status, total_weight="100", total_shipments=1)
        seed_line(STREAM_A, utc(2025, 10, 2), "100")
        seed_line(STREAM_A, utc(2025, 10, 3), "75")

        summary = detector.detect_and_create_for_late_weight_tickets()

        assert summary.created == ()
        assert summary.skipped_keys == ((STREAM_A, "102025"),)
        [existing] = DeclarationSelector(session).find_by_key(STREAM_A, "102025")
        assert existing.status == status
        assert existing.total_weight == Decimal("100")

    def test_completed_key_is_never_redeclared(
        self, session, detector, seed_line, seed_declaration,
    ):
        seed_declaration("900000000001", status=DeclarationStatus.COMPLETED)
        seed_line(STREAM_A, utc(2025, 10, 2), "5000")

        summary = detector.detect_and_create_for_late_weight_tickets()

        assert summary.created == ()
        assert summary.skipped_keys == ()
        assert _waiting(session) == []


class TestUndeclaredLateKeys:
    def test_lists_keys_without_completed_declaration(
        self, detector, seed_line, seed_declaration,
    ):
        seed_declaration("900000000001", period="092025", status=DeclarationStatus.COMPLETED)
        seed_line(STREAM_A, utc(2025, 9, 2))
        seed_line(STREAM_A, utc(2025, 10, 2))
        seed_line(STREAM_B, utc(2025, 8, 2))

        assert detector.undeclared_late_keys() == [
            (STREAM_A, "102025"),
            (STREAM_B, "082025"),
        ]

    def test_empty_when_nothing_is_late(self, detector, seed_line):
        seed_line(STREAM_A, utc(2025, 11, 15))
        assert detector.undeclared_late_keys() == []


def test_cutoff_follows_clock(detector, deterministic_clock):
    deterministic_clock.set_time(utc(2025, 12, 20))
    assert detector.cutoff() == Period(2025, 12)


def test_creation_is_logged(detector, seed_line, captured_logs):
    seed_line(STREAM_A, utc(2025, 10, 2))
    detector.detect_and_create_for_late_weight_tickets()
    created = [r for r in captured_logs() if r["message"] == "late_declaration_created"]
    assert len(created) == 1
    assert created[0]["declaration_id"] == "000000000001"
    assert created[0]["waste_stream_number"] == STREAM_A


def test_completion_summary_is_logged(detector, seed_line, captured_logs):
    seed_line(STREAM_A, utc(2025, 10, 2))
    detector.detect_and_create_for_late_weight_tickets()
    [summary] = [r for r in captured_logs() if r["message"] == "late_detection_completed"]
    assert summary["created_count"] == 1
    assert summary["superseded"] == 0
    assert summary["cutoff"] == "112025"
