# =======================================================================================
# campus_access/models/schemas.py - Pydantic Models
# =======================================================================================
from datetime import date, datetime
from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, Field
from .enums import DirectionType, OccupancyType, ScanStatusType
from .records import AccessEvent, Identity, VisitorCredential

# ========== Scan ==========
class ScanRequest(BaseModel):
    """Raw QR payload as read by the guard's scanner."""
    raw: str = Field(..., min_length=1, max_length=500, description="Scanned text")
    location_label: Optional[str] = Field(None, max_length=100, description="Gate or door name")
    direction_hint: Optional[str] = Field(None, description="What the client expects; never trusted")
    recorded_via: Literal["scan", "manual"] = "scan"

class ResolveRequest(BaseModel):
    raw: str = Field(..., min_length=1, max_length=500)

class RecordAccessRequest(BaseModel):
    identity_id: int
    location_label: Optional[str] = Field(None, max_length=100)
    direction_hint: Optional[str] = None
    recorded_via: Literal["scan", "manual"] = "manual"

class IdentityOut(BaseModel):
    id: int
    kind: str
    display_name: str
    given_names: str
    family_names: Optional[str] = None
    document_number: str
    document_type: str
    category: str
    program: Optional[str] = None
    blood_type: Optional[str] = None
    lifecycle_state: str
    credential_token: Optional[str] = None
    created_at: datetime

    @classmethod
    def from_record(cls, identity: Identity) -> "IdentityOut":
        return cls(
            id=identity.id,
            kind=identity.kind.value,
            display_name=identity.display_name,
            given_names=identity.given_names,
            family_names=identity.family_names,
            document_number=identity.document_number,
            document_type=identity.document_type,
            category=identity.category.value,
            program=identity.program,
            blood_type=identity.blood_type,
            lifecycle_state=identity.lifecycle_state,
            credential_token=identity.credential_token,
            created_at=identity.created_at,
        )

class AccessEventOut(BaseModel):
    id: int
    identity_id: int
    direction: DirectionType
    occurred_at: datetime
    recorded_via: str
    location_label: Optional[str] = None

    @classmethod
    def from_record(cls, event: AccessEvent) -> "AccessEventOut":
        return cls(
            id=event.id,
            identity_id=event.identity_id,
            direction=event.direction.value,
            occurred_at=event.occurred_at,
            recorded_via=event.recorded_via.value,
            location_label=event.location_label,
        )

class ResolveResponse(BaseModel):
    identity: IdentityOut
    auto_provisioned: bool
    strategy: str
    confidence: str
    credential_id: Optional[int] = None

class ScanResponse(BaseModel):
    """CONFIRMED only once the event is committed; clients stay PENDING until then."""
    status: ScanStatusType
    message: str
    direction: DirectionType
    event: AccessEventOut
    identity: IdentityOut
    auto_provisioned: bool = False
    hint_discarded: bool = False

class ErrorResponse(BaseModel):
    error: bool = True
    status: ScanStatusType = "FAILED"
    code: str
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)

# ========== Credentials ==========
class MemberTokenResponse(BaseModel):
    identity_id: int
    token: str

class IssueVisitorCredentialRequest(BaseModel):
    validity_minutes: int = Field(..., description="Minutes the credential stays valid")
    issued_by: Optional[str] = Field(None, max_length=100)

class VisitorTokenResponse(BaseModel):
    credential_id: int
    identity_id: int
    token: str
    issued_at: datetime
    expires_at: datetime

class VisitorCredentialOut(BaseModel):
    id: int
    identity_id: int
    token: str
    issued_at: datetime
    expires_at: datetime
    status: str
    issued_by: Optional[str] = None
    expiry_warned_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None

    @classmethod
    def from_record(cls, credential: VisitorCredential) -> "VisitorCredentialOut":
        return cls(
            id=credential.id,
            identity_id=credential.identity_id,
            token=credential.token,
            issued_at=credential.issued_at,
            expires_at=credential.expires_at,
            status=credential.status.value,
            issued_by=credential.issued_by,
            expiry_warned_at=credential.expiry_warned_at,
            closed_at=credential.closed_at,
        )

class ActiveVisitorOut(BaseModel):
    credential: VisitorCredentialOut
    display_name: str
    document_number: str

class ActiveVisitorsResponse(BaseModel):
    visitors: List[ActiveVisitorOut]

class VisitorCredentialsResponse(BaseModel):
    identity_id: int
    credentials: List[VisitorCredentialOut]

class ExpiryWarningsRequest(BaseModel):
    within_minutes: Optional[int] = Field(None, ge=0)

class ExpiryWarningsResponse(BaseModel):
    credentials: List[VisitorCredentialOut]

class SweepResponse(BaseModel):
    swept_at: datetime
    checked: int
    expired: int
    closing_exits: int
    conflicts: List[int]

# ========== Status ==========
class DirectionResponse(BaseModel):
    identity_id: int
    state: OccupancyType

class HistoryResponse(BaseModel):
    identity_id: int
    events: List[AccessEventOut]

class OccupancyResponse(BaseModel):
    as_of: datetime
    total: int
    by_category: Dict[str, int]

class DailyCountResponse(BaseModel):
    day: date
    window_start: datetime
    window_end: datetime
    entries: int
    exits: int
    total: int

# ========== Identity admin ==========
class CreateIdentityRequest(BaseModel):
    kind: Literal["ENROLLED_MEMBER", "VISITOR"] = "ENROLLED_MEMBER"
    given_names: str = Field(..., min_length=1, max_length=100)
    family_names: Optional[str] = Field(None, max_length=100)
    document_number: str = Field(..., min_length=1, max_length=40)
    document_type: Literal["CC", "TI", "CE", "PASSPORT"] = "CC"
    role: Optional[Literal["STUDENT", "INSTRUCTOR", "ADMINISTRATIVE"]] = None
    program: Optional[str] = Field(None, max_length=200)
    blood_type: Optional[str] = Field(None, max_length=3)
    lifecycle_state: str = "ACTIVE"

class LifecycleUpdateRequest(BaseModel):
    lifecycle_state: str

class IdentitySearchResponse(BaseModel):
    success: bool
    data: List[IdentityOut]

# ========== Health ==========
class HealthResponse(BaseModel):
    status: str                 # "ok" | "error"
    dataAvailable: bool
    message: Optional[str] = None
