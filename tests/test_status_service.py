from __future__ import annotations

from datetime import date, datetime, timedelta

import pytest

from campus_access.models.enums import Direction, Occupancy
from campus_access.services import build_services
from campus_access.utils.exceptions import IdentityNotFoundError
from campus_access.utils.locks import IdentityLockRegistry


def test_no_events_is_outside(services, make_identity) -> None:
    member = make_identity("1014983221")

    assert services.status.current_direction(member.id) == Occupancy.OUTSIDE
    assert services.status.history(member.id) == []


def test_unknown_identity(services) -> None:
    with pytest.raises(IdentityNotFoundError):
        services.status.current_direction(12345)
    with pytest.raises(IdentityNotFoundError):
        services.status.history(12345)


def test_occupancy_by_category(services, make_identity) -> None:
    student = make_identity("10000001")
    instructor = make_identity("10000002", role="INSTRUCTOR")
    staff = make_identity("10000003", role="ADMINISTRATIVE")
    visitor = make_identity("10000004", kind="VISITOR", role=None)
    left = make_identity("10000005")

    for identity in (student, instructor, staff, visitor, left):
        services.recorder.record_scan(identity.id)
    services.recorder.record_scan(left.id)

    counts = services.status.occupancy_counts()

    assert counts.by_category == {"STUDENT": 1, "INSTRUCTOR": 1, "ADMINISTRATIVE": 1, "VISITOR": 1}
    assert counts.total == 4


def test_occupancy_is_zero_filled(services) -> None:
    counts = services.status.occupancy_counts()

    assert counts.by_category == {"STUDENT": 0, "INSTRUCTOR": 0, "ADMINISTRATIVE": 0, "VISITOR": 0}
    assert counts.total == 0


def test_suspended_occupant_is_not_counted(services, make_identity) -> None:
    member = make_identity("1014983221")
    services.recorder.record_scan(member.id)

    services.identities.update_lifecycle(member.id, "SUSPENDED")

    assert services.status.current_direction(member.id) == Occupancy.INSIDE
    assert services.status.occupancy_counts().total == 0


def test_occupancy_as_of_past_instant(services, make_identity, clock) -> None:
    member = make_identity("1014983221")
    entered = clock.now()
    services.recorder.record_scan(member.id)
    clock.advance(hours=1)
    services.recorder.record_scan(member.id)

    assert services.status.occupancy_counts(as_of=entered + timedelta(minutes=30)).total == 1
    assert services.status.occupancy_counts(as_of=entered - timedelta(minutes=1)).total == 0
    assert services.status.occupancy_counts().total == 0


def test_daily_count_splits_directions(services, make_identity, clock) -> None:
    a = make_identity("10000001")
    b = make_identity("10000002")
    services.recorder.record_scan(a.id)
    services.recorder.record_scan(b.id)
    clock.advance(hours=2)
    services.recorder.record_scan(a.id)
    clock.advance(days=1)
    services.recorder.record_scan(b.id)

    today = services.status.daily_event_count()
    yesterday = services.status.daily_event_count(date(2025, 3, 10))

    assert (today.day, today.entries, today.exits, today.total) == (date(2025, 3, 11), 0, 1, 1)
    assert (yesterday.entries, yesterday.exits, yesterday.total) == (2, 1, 3)


def test_daily_window_follows_site_offset(db, clock, settings, make_identity) -> None:
    settings.SITE_UTC_OFFSET_MINUTES = -300
    services = build_services(db, clock=clock, settings=settings, locks=IdentityLockRegistry())
    member = make_identity("1014983221")

    # 03:00 UTC on the 11th is still the 10th at UTC-5
    clock.set(datetime(2025, 3, 11, 3, 0, 0))
    services.recorder.record_scan(member.id)

    count = services.status.daily_event_count()

    assert count.day == date(2025, 3, 10)
    assert count.window_start == datetime(2025, 3, 10, 5, 0, 0)
    assert count.window_end == datetime(2025, 3, 11, 5, 0, 0)
    assert count.entries == 1


def test_history_is_newest_first_and_limited(services, make_identity, clock) -> None:
    member = make_identity("1014983221")
    for _ in range(5):
        services.recorder.record_scan(member.id)
        clock.advance(minutes=1)

    history = services.status.history(member.id, limit=3)

    assert len(history) == 3
    assert history[0].direction == Direction.ENTRY
    assert history[0].occurred_at > history[1].occurred_at > history[2].occurred_at
