from __future__ import annotations

from campus_access.workers.expiry_worker import ExpiryWorker


def test_worker_disabled_without_interval(services, settings) -> None:
    settings.EXPIRY_SWEEP_INTERVAL_SECONDS = 0
    worker = ExpiryWorker(services.expirer, settings=settings)

    assert worker.start() is False
    assert not worker.running


def test_run_once_sweeps(services, make_identity, settings, clock) -> None:
    visitor = make_identity("52444111", kind="VISITOR", role=None)
    services.issuer.issue_visitor_token(visitor, 5)
    clock.advance(minutes=6)

    report = ExpiryWorker(services.expirer, settings=settings).run_once()

    assert report.expired == 1


def test_worker_starts_and_stops(services, settings) -> None:
    settings.EXPIRY_SWEEP_INTERVAL_SECONDS = 60
    worker = ExpiryWorker(services.expirer, settings=settings)

    assert worker.start() is True
    assert worker.running
    assert worker.start() is False

    worker.stop()
    assert not worker.running
