# =======================================================================================
# campus_access/utils/lookups.py - Shared Record Lookups
# =======================================================================================
from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.engine import Connection

from ..models.records import AccessEvent, Identity, VisitorCredential
from ..models.tables import access_events, identities, visitor_credentials


class RecordLookup:
    """Single-row reads shared by the services."""

    @staticmethod
    def identity_by_id(conn: Connection, identity_id: int, for_update: bool = False) -> Optional[Identity]:
        query = select(identities).where(identities.c.id == identity_id)
        if for_update:
            # rendered as FOR UPDATE on MySQL/Postgres, ignored by SQLite
            query = query.with_for_update()
        row = conn.execute(query).mappings().first()
        return Identity.from_row(row) if row else None

    @staticmethod
    def identity_by_token(conn: Connection, token: str) -> Optional[Identity]:
        row = conn.execute(
            select(identities).where(identities.c.credential_token == token)
        ).mappings().first()
        return Identity.from_row(row) if row else None

    @staticmethod
    def identity_by_document(conn: Connection, document_number: str) -> Optional[Identity]:
        row = conn.execute(
            select(identities).where(identities.c.document_number == document_number)
        ).mappings().first()
        return Identity.from_row(row) if row else None

    @staticmethod
    def latest_event(
        conn: Connection, identity_id: int, as_of: Optional[datetime] = None
    ) -> Optional[AccessEvent]:
        """Most recent event by occurred_at; ties go to the later insert."""
        query = select(access_events).where(access_events.c.identity_id == identity_id)
        if as_of is not None:
            query = query.where(access_events.c.occurred_at <= as_of)
        query = query.order_by(access_events.c.occurred_at.desc(), access_events.c.id.desc()).limit(1)
        row = conn.execute(query).mappings().first()
        return AccessEvent.from_row(row) if row else None

    @staticmethod
    def credential_by_token(conn: Connection, token: str) -> Optional[VisitorCredential]:
        row = conn.execute(
            select(visitor_credentials).where(visitor_credentials.c.token == token)
        ).mappings().first()
        return VisitorCredential.from_row(row) if row else None

    @staticmethod
    def credential_by_id(conn: Connection, credential_id: int) -> Optional[VisitorCredential]:
        row = conn.execute(
            select(visitor_credentials).where(visitor_credentials.c.id == credential_id)
        ).mappings().first()
        return VisitorCredential.from_row(row) if row else None
