from __future__ import annotations

import threading

import pytest
from sqlalchemy import func, select

from campus_access.models.enums import (
    CredentialStatus,
    Direction,
    ExtractionConfidence,
    IdentityKind,
    RecordedVia,
    ResolutionStrategy,
)
from campus_access.models.tables import identities
from campus_access.services import build_services
from campus_access.utils.exceptions import (
    CredentialExpiredError,
    CredentialRevokedError,
    UnresolvableCredentialError,
)
from campus_access.utils.locks import IdentityLockRegistry
from campus_access.utils.lookups import RecordLookup


def _identity_count(db) -> int:
    with db.get_connection() as conn:
        return conn.execute(select(func.count()).select_from(identities)).scalar_one()


def test_member_token_resolves_exactly(services, make_identity) -> None:
    member = make_identity("1014983221", credential_token="MEMBER-1741611600000-1014983221")

    resolved = services.resolver.resolve("MEMBER-1741611600000-1014983221")

    assert resolved.identity.id == member.id
    assert resolved.strategy == ResolutionStrategy.MEMBER_TOKEN
    assert resolved.confidence == ExtractionConfidence.HIGH
    assert not resolved.auto_provisioned


def test_stale_member_token_falls_back_to_embedded_document(services, make_identity) -> None:
    member = make_identity("1014983221", credential_token="MEMBER-1741700000000-1014983221")

    resolved = services.resolver.resolve("MEMBER-1741611600000-1014983221-k3j9x0a")

    assert resolved.identity.id == member.id
    assert resolved.strategy == ResolutionStrategy.DOCUMENT_NUMBER


def test_document_number_with_punctuation(services, make_identity) -> None:
    member = make_identity("1014983221")

    resolved = services.resolver.resolve("1.014.983.221")

    assert resolved.identity.id == member.id
    assert resolved.strategy == ResolutionStrategy.DOCUMENT_NUMBER
    assert resolved.confidence == ExtractionConfidence.HIGH


def test_document_found_inside_card_text(services, make_identity) -> None:
    member = make_identity("52444111")

    # the trailing short number keeps the whole-input lookup from matching
    resolved = services.resolver.resolve("Ana Rojas 52444111 ficha 2567")

    assert resolved.identity.id == member.id
    assert resolved.strategy == ResolutionStrategy.EXTRACTED_DOCUMENT
    assert resolved.confidence == ExtractionConfidence.MEDIUM
    assert not resolved.auto_provisioned


def test_auto_provisions_from_card_text(services, db) -> None:
    resolved = services.resolver.resolve("JUAN PEREZ 1014983221 APRENDIZ RH=O+")

    identity = resolved.identity
    assert resolved.auto_provisioned
    assert resolved.strategy == ResolutionStrategy.AUTO_PROVISIONED
    assert identity.document_number == "1014983221"
    assert identity.kind == IdentityKind.ENROLLED_MEMBER
    assert identity.lifecycle_state == "ACTIVE"
    assert (identity.given_names, identity.family_names) == ("JUAN", "PEREZ")
    assert identity.role == "STUDENT"
    assert identity.blood_type == "O+"
    assert identity.credential_token.startswith("MEMBER-")
    assert identity.credential_token.endswith("-1014983221")
    with db.get_connection() as conn:
        assert RecordLookup.identity_by_document(conn, "1014983221").id == identity.id


def test_auto_provision_without_name_uses_placeholder(services) -> None:
    resolved = services.resolver.resolve("ficha 2567890123")

    assert resolved.auto_provisioned
    assert resolved.identity.given_names == "UNIDENTIFIED"
    assert resolved.confidence == ExtractionConfidence.LOW


def test_resolution_is_idempotent(services, db) -> None:
    first = services.resolver.resolve("JUAN PEREZ 1014983221 APRENDIZ RH=O+")
    second = services.resolver.resolve("1014983221")
    third = services.resolver.resolve("1-014-983-221")

    assert first.auto_provisioned
    assert not second.auto_provisioned and not third.auto_provisioned
    assert first.identity.id == second.identity.id == third.identity.id
    assert _identity_count(db) == 1


def test_concurrent_auto_provisioning_creates_one_identity(db, clock, settings) -> None:
    resolvers = [
        build_services(db, clock=clock, settings=settings, locks=IdentityLockRegistry()).resolver
        for _ in range(6)
    ]
    barrier = threading.Barrier(len(resolvers))
    results, errors = [], []

    def _scan(resolver) -> None:
        barrier.wait()
        try:
            results.append(resolver.resolve("MARIA LOPEZ 1098765432"))
        except Exception as exc:  # collected for the assertion below
            errors.append(exc)

    threads = [threading.Thread(target=_scan, args=(r,)) for r in resolvers]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert len({r.identity.id for r in results}) == 1
    assert _identity_count(db) == 1


def test_auto_provision_disabled(db, clock, settings) -> None:
    settings.AUTO_PROVISION_ENABLED = False
    resolver = build_services(db, clock=clock, settings=settings, locks=IdentityLockRegistry()).resolver

    with pytest.raises(UnresolvableCredentialError):
        resolver.resolve("JUAN PEREZ 1014983221")
    assert _identity_count(db) == 0


@pytest.mark.parametrize("raw", ["", "   ", "hello world", "room 1234567"])
def test_unresolvable_input(services, raw: str) -> None:
    with pytest.raises(UnresolvableCredentialError):
        services.resolver.resolve(raw)


def test_unknown_visitor_token_never_provisions(services, db) -> None:
    with pytest.raises(UnresolvableCredentialError):
        services.resolver.resolve("VISITOR_52444111_1741611600000")
    assert _identity_count(db) == 0


def test_active_visitor_token(services, make_identity) -> None:
    visitor = make_identity("52444111", kind="VISITOR", role=None)
    grant = services.issuer.issue_visitor_token(visitor, 60)

    resolved = services.resolver.resolve(grant.token)

    assert resolved.identity.id == visitor.id
    assert resolved.strategy == ResolutionStrategy.VISITOR_TOKEN
    assert resolved.credential.id == grant.credential_id


def test_time_expired_visitor_token_is_expired_lazily(services, make_identity, clock, db) -> None:
    visitor = make_identity("52444111", kind="VISITOR", role=None)
    grant = services.issuer.issue_visitor_token(visitor, 30)
    clock.advance(minutes=31)

    with pytest.raises(CredentialExpiredError) as excinfo:
        services.resolver.resolve(grant.token)

    assert excinfo.value.code == "CREDENTIAL_EXPIRED"
    with db.get_connection() as conn:
        stored = RecordLookup.credential_by_id(conn, grant.credential_id)
    assert stored.status == CredentialStatus.EXPIRED

    # already EXPIRED in storage on the next scan
    with pytest.raises(CredentialExpiredError):
        services.resolver.resolve(grant.token)


def test_lazy_expiry_closes_open_visit(services, make_identity, clock, db) -> None:
    visitor = make_identity("52444111", kind="VISITOR", role=None)
    grant = services.issuer.issue_visitor_token(visitor, 30)
    clock.advance(minutes=5)
    services.recorder.record_scan(visitor.id)
    clock.advance(minutes=60)

    with pytest.raises(CredentialExpiredError):
        services.resolver.resolve(grant.token)

    with db.get_connection() as conn:
        latest = RecordLookup.latest_event(conn, visitor.id)
    assert latest.direction == Direction.EXIT
    assert latest.recorded_via == RecordedVia.EXPIRY
    assert latest.occurred_at == grant.expires_at


def test_revoked_visitor_token(services, make_identity) -> None:
    visitor = make_identity("52444111", kind="VISITOR", role=None)
    grant = services.issuer.issue_visitor_token(visitor, 60)
    services.expirer.revoke(grant.credential_id)

    with pytest.raises(CredentialRevokedError):
        services.resolver.resolve(grant.token)


@pytest.mark.parametrize(
    "raw",
    [
        "MEMBER-1741611600000-5",
        "MEMBER-1741611600000-1234567",
        "MEMBER-1741611600000-123456789012345678901234567",
    ],
)
def test_unknown_member_token_with_bad_document_never_provisions(services, db, raw: str) -> None:
    with pytest.raises(UnresolvableCredentialError):
        services.resolver.resolve(raw)
    assert _identity_count(db) == 0


def test_unknown_member_token_with_valid_document_still_provisions(services, db) -> None:
    resolved = services.resolver.resolve("MEMBER-1741611600000-1014983221")

    assert resolved.auto_provisioned
    assert resolved.identity.document_number == "1014983221"
    assert _identity_count(db) == 1


def test_lazy_expiry_under_contention_still_reports_expired(db, clock, settings, make_identity) -> None:
    locks = IdentityLockRegistry()
    settings.IDENTITY_LOCK_TIMEOUT_SECONDS = 0.05
    services = build_services(db, clock=clock, settings=settings, locks=locks)
    visitor = make_identity("52444111", kind="VISITOR", role=None)
    grant = services.issuer.issue_visitor_token(visitor, 30)
    clock.advance(minutes=31)

    with locks.hold(visitor.id, timeout=1.0):
        with pytest.raises(CredentialExpiredError) as excinfo:
            services.resolver.resolve(grant.token)

    assert excinfo.value.details["closing_exit_recorded"] is False
    with db.get_connection() as conn:
        stored = RecordLookup.credential_by_id(conn, grant.credential_id)
    assert stored.status == CredentialStatus.ACTIVE

    report = services.expirer.sweep()
    assert report.expired == 1
    with db.get_connection() as conn:
        stored = RecordLookup.credential_by_id(conn, grant.credential_id)
    assert stored.status == CredentialStatus.EXPIRED
