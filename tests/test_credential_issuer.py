from __future__ import annotations

import re
from datetime import timedelta

import pytest

from campus_access.models.enums import CredentialStatus
from campus_access.services.credential_issuer import member_token, visitor_token
from campus_access.utils.clock import epoch_millis
from campus_access.utils.exceptions import InvalidRequestError
from campus_access.utils.lookups import RecordLookup


def test_token_formats_are_bit_exact() -> None:
    assert member_token("1014983221", 1741611600000) == "MEMBER-1741611600000-1014983221"
    assert member_token("1014983221", 1741611600000, "a1b2c3d") == "MEMBER-1741611600000-1014983221-a1b2c3d"
    assert visitor_token("52444111", 1741611600000) == "VISITOR_52444111_1741611600000"


def test_issue_member_token_persists_on_identity(services, make_identity, clock, db) -> None:
    member = make_identity("1014983221")

    token = services.issuer.issue_member_token(member)

    assert token == f"MEMBER-{epoch_millis(clock.now())}-1014983221"
    with db.get_connection() as conn:
        assert RecordLookup.identity_by_token(conn, token).id == member.id


def test_member_token_collision_retries_with_suffix(services, make_identity, clock) -> None:
    millis = epoch_millis(clock.now())
    # someone already holds the token the first attempt would produce
    make_identity("80111222", credential_token=f"MEMBER-{millis}-52444111")
    member = make_identity("52444111")

    token = services.issuer.issue_member_token(member)

    assert re.fullmatch(rf"MEMBER-{millis}-52444111-[0-9a-z]{{7}}", token)


def test_member_token_rejects_visitor(services, make_identity) -> None:
    visitor = make_identity("52444111", kind="VISITOR", role=None)

    with pytest.raises(InvalidRequestError):
        services.issuer.issue_member_token(visitor)


def test_issue_visitor_token_sets_expiry(services, make_identity, clock, db) -> None:
    visitor = make_identity("52444111", kind="VISITOR", role=None)

    grant = services.issuer.issue_visitor_token(visitor, 90, issued_by="guard-1")

    assert grant.token == f"VISITOR_52444111_{epoch_millis(clock.now())}"
    assert grant.issued_at == clock.now()
    assert grant.expires_at == grant.issued_at + timedelta(minutes=90)
    with db.get_connection() as conn:
        stored = RecordLookup.credential_by_id(conn, grant.credential_id)
    assert stored.status == CredentialStatus.ACTIVE
    assert stored.issued_by == "guard-1"
    assert not services.expirer.is_expired(stored, clock.now())


@pytest.mark.parametrize("validity", [0, -5, True, 1.5])
def test_issue_visitor_token_rejects_bad_validity(services, make_identity, validity) -> None:
    visitor = make_identity("52444111", kind="VISITOR", role=None)

    with pytest.raises(InvalidRequestError):
        services.issuer.issue_visitor_token(visitor, validity)


def test_issue_visitor_token_rejects_member(services, make_identity) -> None:
    member = make_identity("1014983221")

    with pytest.raises(InvalidRequestError):
        services.issuer.issue_visitor_token(member, 30)


def test_same_millisecond_visitor_tokens_do_not_collide(services, make_identity, clock) -> None:
    visitor = make_identity("52444111", kind="VISITOR", role=None)
    millis = epoch_millis(clock.now())

    first = services.issuer.issue_visitor_token(visitor, 30)
    second = services.issuer.issue_visitor_token(visitor, 30)

    assert first.token == f"VISITOR_52444111_{millis}"
    assert second.token == f"VISITOR_52444111_{millis + 1}"
    assert first.credential_id != second.credential_id
