from __future__ import annotations

import gc

import pytest
from sqlalchemy.exc import OperationalError

from campus_access.utils.exceptions import ConcurrentConflictError, LockContentionError
from campus_access.utils.locks import IdentityLockRegistry, run_with_identity_lock


def _db_error(message: str) -> OperationalError:
    return OperationalError("UPDATE identities", {}, Exception(message))


def test_registry_forgets_released_locks() -> None:
    locks = IdentityLockRegistry()

    for identity_id in range(100):
        with locks.hold(identity_id, timeout=1.0):
            assert len(locks) >= 1
    gc.collect()

    assert len(locks) == 0


def test_held_lock_is_not_reentrant() -> None:
    locks = IdentityLockRegistry()

    with locks.hold(7, timeout=1.0):
        with pytest.raises(LockContentionError):
            with locks.hold(7, timeout=0.01):
                pass
        # other identities are independent
        with locks.hold(8, timeout=0.01):
            pass


def test_database_lock_conflict_is_retried_then_surfaced() -> None:
    calls = []

    def _work():
        calls.append(1)
        raise _db_error("database is locked")

    with pytest.raises(ConcurrentConflictError) as excinfo:
        run_with_identity_lock(IdentityLockRegistry(), 42, _work, timeout=1.0)

    assert len(calls) == 2
    assert excinfo.value.identity_id == 42


def test_database_lock_conflict_recovers_on_retry() -> None:
    calls = []

    def _work():
        calls.append(1)
        if len(calls) == 1:
            raise _db_error("database is locked")
        return "recorded"

    assert run_with_identity_lock(IdentityLockRegistry(), 42, _work, timeout=1.0) == "recorded"
    assert len(calls) == 2


def test_other_database_errors_are_not_retried() -> None:
    calls = []

    def _work():
        calls.append(1)
        raise _db_error("no such table: identities")

    with pytest.raises(OperationalError):
        run_with_identity_lock(IdentityLockRegistry(), 42, _work, timeout=1.0)

    assert len(calls) == 1
