from __future__ import annotations

from datetime import datetime
from pathlib import Path

import pytest
from sqlalchemy import insert

from campus_access.config import Config
from campus_access.database import DatabaseManager
from campus_access.models.records import Identity
from campus_access.models.tables import identities
from campus_access.services import AccessServices, build_services
from campus_access.utils.clock import FixedClock
from campus_access.utils.locks import IdentityLockRegistry


START = datetime(2025, 3, 10, 13, 0, 0)


def _build_settings(**overrides: object) -> Config:
    settings = Config()
    settings.DB_CREATE_SCHEMA = False
    settings.API_DEBUG = False
    settings.ALLOWED_LIFECYCLE_STATES = ("ACTIVE", "IN_TRAINING", "AWAITING_CERTIFICATION", "CERTIFIED")
    settings.DEFAULT_LOCATION_LABEL = "Main Entrance"
    settings.IDENTITY_LOCK_TIMEOUT_SECONDS = 2.0
    settings.AUTO_PROVISION_ENABLED = True
    settings.AUTO_PROVISION_PLACEHOLDER_NAME = "UNIDENTIFIED"
    settings.TOKEN_MAX_ATTEMPTS = 5
    settings.MEMBER_TOKEN_SUFFIX_LENGTH = 7
    settings.EXPIRY_SWEEP_INTERVAL_SECONDS = 0
    settings.EXPIRY_WARNING_MINUTES = 15
    settings.SITE_UTC_OFFSET_MINUTES = 0
    for key, value in overrides.items():
        setattr(settings, key, value)
    return settings


@pytest.fixture
def settings() -> Config:
    return _build_settings()


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(START)


@pytest.fixture
def db(tmp_path: Path):
    manager = DatabaseManager(f"sqlite:///{(tmp_path / 'campus_access.db').as_posix()}")
    manager.create_schema()
    yield manager
    manager.dispose()


@pytest.fixture
def services(db, clock, settings) -> AccessServices:
    return build_services(db, clock=clock, settings=settings, locks=IdentityLockRegistry())


@pytest.fixture
def make_identity(db, clock):
    """Insert an identity row directly, bypassing the admin service."""

    def _make(
        document_number: str,
        *,
        kind: str = "ENROLLED_MEMBER",
        given_names: str = "Ana",
        family_names: str | None = "Rojas",
        role: str | None = None,
        lifecycle_state: str = "ACTIVE",
        credential_token: str | None = None,
    ) -> Identity:
        if kind == "ENROLLED_MEMBER" and role is None:
            role = "STUDENT"
        values = dict(
            kind=kind,
            given_names=given_names,
            family_names=family_names,
            document_number=document_number,
            document_type="CC",
            role=role,
            program=None,
            blood_type=None,
            lifecycle_state=lifecycle_state,
            credential_token=credential_token,
            created_at=clock.now(),
        )
        with db.get_connection() as conn:
            identity_id = conn.execute(insert(identities).values(**values)).inserted_primary_key[0]
        return Identity.from_row({"id": identity_id, **values})

    return _make
