# =======================================================================================
# campus_access/models/enums.py - Enums and Constants
# =======================================================================================
from enum import Enum
from typing import Literal

# Type aliases for API payloads
DirectionType = Literal["ENTRY", "EXIT"]
OccupancyType = Literal["INSIDE", "OUTSIDE"]
ScanStatusType = Literal["CONFIRMED", "FAILED"]


class IdentityKind(str, Enum):
    ENROLLED_MEMBER = "ENROLLED_MEMBER"
    VISITOR = "VISITOR"


class MemberRole(str, Enum):
    """Member subtype; also the occupancy category for members."""
    STUDENT = "STUDENT"
    INSTRUCTOR = "INSTRUCTOR"
    ADMINISTRATIVE = "ADMINISTRATIVE"


class Category(str, Enum):
    """Occupancy reporting buckets."""
    STUDENT = "STUDENT"
    INSTRUCTOR = "INSTRUCTOR"
    ADMINISTRATIVE = "ADMINISTRATIVE"
    VISITOR = "VISITOR"


class DocumentType(str, Enum):
    CC = "CC"
    TI = "TI"
    CE = "CE"
    PASSPORT = "PASSPORT"


class LifecycleState(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    SUSPENDED = "SUSPENDED"
    IN_TRAINING = "IN_TRAINING"
    AWAITING_CERTIFICATION = "AWAITING_CERTIFICATION"
    CERTIFIED = "CERTIFIED"
    WITHDRAWN = "WITHDRAWN"


class Direction(str, Enum):
    ENTRY = "ENTRY"
    EXIT = "EXIT"


class Occupancy(str, Enum):
    OUTSIDE = "OUTSIDE"
    INSIDE = "INSIDE"


class RecordedVia(str, Enum):
    SCAN = "scan"
    MANUAL = "manual"
    EXPIRY = "expiry"  # closing EXIT written by the visitor expirer


class CredentialStatus(str, Enum):
    ACTIVE = "ACTIVE"
    EXPIRED = "EXPIRED"
    REVOKED = "REVOKED"


class ResolutionStrategy(str, Enum):
    MEMBER_TOKEN = "MEMBER_TOKEN"
    VISITOR_TOKEN = "VISITOR_TOKEN"
    DOCUMENT_NUMBER = "DOCUMENT_NUMBER"
    EXTRACTED_DOCUMENT = "EXTRACTED_DOCUMENT"
    AUTO_PROVISIONED = "AUTO_PROVISIONED"


class ExtractionConfidence(str, Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"
    NONE = "NONE"
