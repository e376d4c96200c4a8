# =======================================================================================
# campus_access/models/records.py - Domain Records
# =======================================================================================
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping, Optional

from .enums import (
    Category, CredentialStatus, Direction, IdentityKind, RecordedVia,
)


@dataclass(frozen=True)
class Identity:
    id: int
    kind: IdentityKind
    given_names: str
    family_names: Optional[str]
    document_number: str
    document_type: str
    role: Optional[str]
    program: Optional[str]
    blood_type: Optional[str]
    lifecycle_state: str
    credential_token: Optional[str]
    created_at: datetime

    @property
    def display_name(self) -> str:
        return " ".join(part for part in (self.given_names, self.family_names) if part)

    @property
    def category(self) -> Category:
        if self.kind == IdentityKind.VISITOR:
            return Category.VISITOR
        return Category(self.role or Category.STUDENT.value)

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Identity":
        return cls(
            id=row["id"],
            kind=IdentityKind(row["kind"]),
            given_names=row["given_names"],
            family_names=row["family_names"],
            document_number=row["document_number"],
            document_type=row["document_type"],
            role=row["role"],
            program=row["program"],
            blood_type=row["blood_type"],
            lifecycle_state=row["lifecycle_state"],
            credential_token=row["credential_token"],
            created_at=row["created_at"],
        )


@dataclass(frozen=True)
class AccessEvent:
    id: int
    identity_id: int
    direction: Direction
    occurred_at: datetime
    recorded_via: RecordedVia
    location_label: Optional[str]

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "AccessEvent":
        return cls(
            id=row["id"],
            identity_id=row["identity_id"],
            direction=Direction(row["direction"]),
            occurred_at=row["occurred_at"],
            recorded_via=RecordedVia(row["recorded_via"]),
            location_label=row["location_label"],
        )


@dataclass(frozen=True)
class VisitorCredential:
    id: int
    identity_id: int
    token: str
    issued_at: datetime
    expires_at: datetime
    status: CredentialStatus
    issued_by: Optional[str]
    expiry_warned_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "VisitorCredential":
        return cls(
            id=row["id"],
            identity_id=row["identity_id"],
            token=row["token"],
            issued_at=row["issued_at"],
            expires_at=row["expires_at"],
            status=CredentialStatus(row["status"]),
            issued_by=row["issued_by"],
            expiry_warned_at=row["expiry_warned_at"],
            closed_at=row["closed_at"],
        )
