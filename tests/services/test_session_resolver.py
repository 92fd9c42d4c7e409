"""
Tests for SessionResultResolver.

Covers the retry marker, every terminal failure shape, mixed per-item
outcomes and the guarantee that settled sessions are never revisited.
"""

from uuid import uuid4

import pytest

from declaration_kernel.domain.types import (
    DeclarationStatus,
    ResolutionOutcome,
    SessionStatus,
)
from declaration_kernel.exceptions import RegistryTransportError, SessionNotFoundError
from declaration_kernel.registry.types import (
    NOT_PROCESSED_CODE,
    CollectionKind,
    ItemCollection,
    RegistryError,
    RegistryItemResult,
    ResponseDetails,
    RetrievalResponse,
    StatusBlock,
)
from declaration_kernel.selectors.declaration_selector import DeclarationSelector
from declaration_kernel.services.session_resolver import (
    DETAILS_NULL,
    NO_MELDINGEN,
    NO_STATUS,
    SessionResultResolver,
)

from tests.factories import (
    STREAM_B,
    STREAM_C,
    accepted,
    rejected,
    request_error_response,
    status_response,
)


@pytest.fixture
def resolver(session, fake_registry, deterministic_clock):
    return SessionResultResolver(session, fake_registry, clock=deterministic_clock)


@pytest.fixture
def pending_pair(seed_declaration, seed_session):
    """Two PENDING declarations submitted in one session."""
    seed_declaration("000000000001", status=DeclarationStatus.PENDING)
    seed_declaration("000000000002", number=STREAM_B, status=DeclarationStatus.PENDING)
    return seed_session(["000000000001", "000000000002"])


def _declaration(session, declaration_id):
    session.expire_all()
    return DeclarationSelector(session).get(declaration_id)


def _session(session, session_id):
    session.expire_all()
    return DeclarationSelector(session).get_session(session_id)


class TestRetry:
    def test_not_processed_yet_writes_nothing(
        self, session, resolver, fake_registry, pending_pair,
    ):
        fake_registry.responses[pending_pair.session_id] = request_error_response(
            (NOT_PROCESSED_CODE, "Nog niet alle meldingen verwerkt"),
        )

        resolution = resolver.process_session(pending_pair)

        assert resolution.outcome == ResolutionOutcome.RETRY
        reloaded = _session(session, pending_pair.session_id)
        assert reloaded.status == SessionStatus.PENDING
        assert reloaded.processed_at is None
        assert _declaration(session, "000000000001").status == DeclarationStatus.PENDING


class TestAllAccepted:
    def test_completes_session_and_declarations(
        self, session, resolver, fake_registry, pending_pair, deterministic_clock,
    ):
        first, second = accepted("000000000001"), accepted("000000000002")
        fake_registry.responses[pending_pair.session_id] = status_response(first, second)

        resolution = resolver.process_session(pending_pair.session_id)

        assert resolution.outcome == ResolutionOutcome.SUCCEEDED
        assert set(resolution.completed_declarations) == {"000000000001", "000000000002"}
        one = _declaration(session, "000000000001")
        assert one.status == DeclarationStatus.COMPLETED
        assert one.amice_uuid == first.amice_uuid
        assert _declaration(session, "000000000002").amice_uuid == second.amice_uuid
        reloaded = _session(session, pending_pair.session_id)
        assert reloaded.status == SessionStatus.COMPLETED
        assert reloaded.errors is None
        assert reloaded.processed_at == deterministic_clock.now()

    def test_monthly_collection_is_read_too(
        self, session, resolver, fake_registry, pending_pair,
    ):
        fake_registry.responses[pending_pair.session_id] = RetrievalResponse(
            details=ResponseDetails(
                status=StatusBlock(
                    collections=(
                        ItemCollection(CollectionKind.FIRST_RECEIVAL, (accepted("000000000001"),)),
                        ItemCollection(CollectionKind.MONTHLY_RECEIVAL, (accepted("000000000002"),)),
                    )
                )
            )
        )

        resolution = resolver.process_session(pending_pair)

        assert resolution.outcome == ResolutionOutcome.SUCCEEDED
        assert _declaration(session, "000000000002").status == DeclarationStatus.COMPLETED


class TestMixedOutcome:
    def test_partial_failure_keeps_successes(
        self, session, resolver, fake_registry, pending_pair,
    ):
        fake_registry.responses[pending_pair.session_id] = status_response(
            accepted("000000000001"),
            rejected("000000000002", ("E42", "Verwerkingsmethode ongeldig")),
        )

        resolution = resolver.process_session(pending_pair)

        assert resolution.outcome == ResolutionOutcome.FAILED
        assert resolution.is_partial_failure
        assert resolution.failed_declarations == ("000000000002",)
        assert _declaration(session, "000000000001").status == DeclarationStatus.COMPLETED
        failed = _declaration(session, "000000000002")
        assert failed.status == DeclarationStatus.FAILED
        assert failed.errors == ("E42: Verwerkingsmethode ongeldig",)
        reloaded = _session(session, pending_pair.session_id)
        assert reloaded.status == SessionStatus.FAILED
        assert "E42: Verwerkingsmethode ongeldig" in reloaded.errors

    def test_partial_failure_is_logged_with_both_sides(
        self, resolver, fake_registry, pending_pair, captured_logs,
    ):
        fake_registry.responses[pending_pair.session_id] = status_response(
            accepted("000000000001"),
            rejected("000000000002", ("E42", "Verwerkingsmethode ongeldig")),
        )

        resolver.process_session(pending_pair)

        [record] = [r for r in captured_logs() if r["message"] == "session_partially_failed"]
        assert record["level"] == "WARNING"
        assert record["exc_code"] == "SESSION_PARTIAL_FAILURE"
        assert record["exc_completed"] == ["000000000001"]
        assert record["exc_failed"] == ["000000000002"]

    def test_all_rejected_is_not_a_partial_failure(
        self, resolver, fake_registry, pending_pair, captured_logs,
    ):
        fake_registry.responses[pending_pair.session_id] = status_response(
            rejected("000000000001", ("E1", "Fout")),
            rejected("000000000002", ("E2", "Fout")),
        )

        resolution = resolver.process_session(pending_pair)

        assert not resolution.is_partial_failure
        assert all(r["message"] != "session_partially_failed" for r in captured_logs())

    def test_accepted_item_with_errors_fails(
        self, session, resolver, fake_registry, seed_declaration, seed_session,
    ):
        seed_declaration("000000000001", status=DeclarationStatus.PENDING)
        declaration_session = seed_session(["000000000001"])
        item = RegistryItemResult(
            declarer_reference="000000000001",
            accepted=True,
            errors=(RegistryError("W1", "Waarschuwing"),),
        )
        fake_registry.responses[declaration_session.session_id] = status_response(item)

        resolver.process_session(declaration_session)

        assert _declaration(session, "000000000001").status == DeclarationStatus.FAILED


class TestTerminalFailures:
    def test_details_null(self, session, resolver, fake_registry, pending_pair):
        fake_registry.responses[pending_pair.session_id] = RetrievalResponse(details=None)

        resolution = resolver.process_session(pending_pair)

        assert resolution.errors == (DETAILS_NULL,)
        assert _session(session, pending_pair.session_id).status == SessionStatus.FAILED
        assert _declaration(session, "000000000001").status == DeclarationStatus.PENDING

    def test_request_errors(self, session, resolver, fake_registry, pending_pair):
        fake_registry.responses[pending_pair.session_id] = request_error_response(
            ("AUTH01", "Certificaat verlopen"),
        )

        resolution = resolver.process_session(pending_pair)

        assert resolution.outcome == ResolutionOutcome.FAILED
        assert _session(session, pending_pair.session_id).errors == (
            "AUTH01: Certificaat verlopen",
        )

    def test_request_errors_are_logged_as_rejection(
        self, resolver, fake_registry, pending_pair, captured_logs,
    ):
        fake_registry.responses[pending_pair.session_id] = request_error_response(
            ("AUTH01", "Certificaat verlopen"),
        )

        resolver.process_session(pending_pair)

        [record] = [r for r in captured_logs() if r["message"] == "session_request_rejected"]
        assert record["exc_code"] == "REGISTRY_REQUEST_ERROR"
        assert record["exc_errors"] == ["AUTH01: Certificaat verlopen"]
        assert record["session_id"] == str(pending_pair.session_id)

    def test_no_status_block(self, session, resolver, fake_registry, pending_pair):
        fake_registry.responses[pending_pair.session_id] = RetrievalResponse(
            details=ResponseDetails(),
        )
        assert resolver.process_session(pending_pair).errors == (NO_STATUS,)

    def test_no_populated_collection(self, session, resolver, fake_registry, pending_pair):
        fake_registry.responses[pending_pair.session_id] = RetrievalResponse(
            details=ResponseDetails(
                status=StatusBlock(
                    collections=(ItemCollection(CollectionKind.DISCHARGE, ()),),
                )
            )
        )
        assert resolver.process_session(pending_pair).errors == (NO_MELDINGEN,)

    def test_transport_exception_fails_session_only(
        self, session, resolver, fake_registry, pending_pair,
    ):
        fake_registry.responses[pending_pair.session_id] = RegistryTransportError(
            "retrieve", "timeout after 30s",
        )

        resolution = resolver.process_session(pending_pair)

        assert resolution.errors == ("Exception: Registry retrieve failed: timeout after 30s",)
        assert _session(session, pending_pair.session_id).status == SessionStatus.FAILED
        for declaration_id in ("000000000001", "000000000002"):
            assert _declaration(session, declaration_id).status == DeclarationStatus.PENDING


class TestMatching:
    def test_unmatched_reference_is_a_session_error(
        self, session, resolver, fake_registry, pending_pair,
    ):
        fake_registry.responses[pending_pair.session_id] = status_response(
            accepted("000000000001"),
            accepted("000000000002"),
            accepted("999999999999"),
        )

        resolution = resolver.process_session(pending_pair)

        assert resolution.outcome == ResolutionOutcome.FAILED
        assert "Declaration 999999999999 not found" in resolution.errors
        assert _declaration(session, "000000000001").status == DeclarationStatus.COMPLETED

    def test_missing_declaration_stays_pending(
        self, session, resolver, fake_registry, pending_pair,
    ):
        fake_registry.responses[pending_pair.session_id] = status_response(
            accepted("000000000001"),
        )

        resolution = resolver.process_session(pending_pair)

        assert "Declaration 000000000002 missing from response" in resolution.errors
        assert _declaration(session, "000000000002").status == DeclarationStatus.PENDING
        assert _session(session, pending_pair.session_id).status == SessionStatus.FAILED

    def test_settled_failed_declaration_fails_session(
        self, session, resolver, fake_registry, seed_declaration, seed_session,
    ):
        seed_declaration("000000000001", status=DeclarationStatus.FAILED, errors=("eerder",))
        seed_declaration("000000000002", number=STREAM_C, status=DeclarationStatus.PENDING)
        declaration_session = seed_session(["000000000001", "000000000002"])
        fake_registry.responses[declaration_session.session_id] = status_response(
            accepted("000000000001"), accepted("000000000002"),
        )

        resolution = resolver.process_session(declaration_session)

        assert resolution.outcome == ResolutionOutcome.FAILED
        assert resolution.failed_declarations == ("000000000001",)
        assert resolution.errors == ("eerder",)
        untouched = _declaration(session, "000000000001")
        assert untouched.status == DeclarationStatus.FAILED
        assert untouched.errors == ("eerder",)
        assert _declaration(session, "000000000002").status == DeclarationStatus.COMPLETED
        assert _session(session, declaration_session.session_id).status == SessionStatus.FAILED

    def test_settled_completed_declaration_keeps_session_completed(
        self, session, resolver, fake_registry, seed_declaration, seed_session,
    ):
        seed_declaration("000000000001", status=DeclarationStatus.COMPLETED)
        seed_declaration("000000000002", number=STREAM_C, status=DeclarationStatus.PENDING)
        declaration_session = seed_session(["000000000001", "000000000002"])
        fake_registry.responses[declaration_session.session_id] = status_response(
            accepted("000000000002"),
        )

        resolution = resolver.process_session(declaration_session)

        assert resolution.outcome == ResolutionOutcome.SUCCEEDED
        assert resolution.completed_declarations == ("000000000002",)
        assert _session(session, declaration_session.session_id).status == SessionStatus.COMPLETED


class TestSettledSessions:
    @pytest.mark.parametrize(
        "status, outcome",
        [
            (SessionStatus.COMPLETED, ResolutionOutcome.SUCCEEDED),
            (SessionStatus.FAILED, ResolutionOutcome.FAILED),
        ],
    )
    def test_never_revisited(
        self, resolver, fake_registry, seed_declaration, seed_session, status, outcome,
    ):
        seed_declaration("000000000001", status=DeclarationStatus.PENDING)
        declaration_session = seed_session(["000000000001"], status=status)

        resolution = resolver.process_session(declaration_session)

        assert resolution.outcome == outcome
        assert fake_registry.retrieve_calls == []

    def test_unknown_session(self, resolver):
        with pytest.raises(SessionNotFoundError):
            resolver.process_session(uuid4())


class TestProcessPendingSessions:
    def test_resolves_every_pending_session(
        self, session, resolver, fake_registry, seed_declaration, seed_session,
    ):
        seed_declaration("000000000001", status=DeclarationStatus.PENDING)
        seed_declaration("000000000002", number=STREAM_B, status=DeclarationStatus.PENDING)
        retry = seed_session(["000000000001"])
        done = seed_session(["000000000002"])
        fake_registry.responses[retry.session_id] = request_error_response(
            (NOT_PROCESSED_CODE, "Nog niet verwerkt"),
        )
        fake_registry.responses[done.session_id] = status_response(accepted("000000000002"))

        resolutions = resolver.process_pending_sessions()

        outcomes = {r.session_id: r.outcome for r in resolutions}
        assert outcomes == {
            retry.session_id: ResolutionOutcome.RETRY,
            done.session_id: ResolutionOutcome.SUCCEEDED,
        }
        pending = DeclarationSelector(session).pending_sessions()
        assert [s.session_id for s in pending] == [retry.session_id]
