# =======================================================================================
# campus_access/models/tables.py - Table Definitions
# =======================================================================================
from sqlalchemy import (
    Column, DateTime, ForeignKey, Index, Integer, MetaData, String, Table,
)
from sqlalchemy.dialects import mysql

metadata = MetaData()

# MySQL DATETIME drops fractions unless fsp is given; ordering of close scans needs them
Timestamp = DateTime().with_variant(mysql.DATETIME(fsp=6), "mysql")

identities = Table(
    "identities",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("kind", String(20), nullable=False),
    Column("given_names", String(100), nullable=False),
    Column("family_names", String(100), nullable=True),
    Column("document_number", String(20), nullable=False, unique=True),
    Column("document_type", String(12), nullable=False, default="CC"),
    Column("role", String(20), nullable=True),
    Column("program", String(200), nullable=True),
    Column("blood_type", String(3), nullable=True),
    Column("lifecycle_state", String(30), nullable=False),
    Column("credential_token", String(120), nullable=True, unique=True),
    Column("created_at", Timestamp, nullable=False),
)

access_events = Table(
    "access_events",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("identity_id", Integer, ForeignKey("identities.id"), nullable=False),
    Column("direction", String(5), nullable=False),
    Column("occurred_at", Timestamp, nullable=False),
    Column("recorded_via", String(10), nullable=False),
    Column("location_label", String(100), nullable=True),
    Index("ix_access_events_identity_time", "identity_id", "occurred_at", "id"),
    Index("ix_access_events_occurred_at", "occurred_at"),
)

visitor_credentials = Table(
    "visitor_credentials",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("identity_id", Integer, ForeignKey("identities.id"), nullable=False),
    Column("token", String(120), nullable=False, unique=True),
    Column("issued_at", Timestamp, nullable=False),
    Column("expires_at", Timestamp, nullable=False),
    Column("status", String(10), nullable=False),
    Column("issued_by", String(100), nullable=True),
    Column("expiry_warned_at", Timestamp, nullable=True),
    Column("closed_at", Timestamp, nullable=True),
    Index("ix_visitor_credentials_status_expiry", "status", "expires_at"),
)
