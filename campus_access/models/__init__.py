# =======================================================================================
# campus_access/models/__init__.py - Models Package
# =======================================================================================
from .enums import *
from .records import AccessEvent, Identity, VisitorCredential

__all__ = [
    "IdentityKind", "MemberRole", "Category", "DocumentType", "LifecycleState",
    "Direction", "Occupancy", "RecordedVia", "CredentialStatus",
    "ResolutionStrategy", "ExtractionConfidence",
    "AccessEvent", "Identity", "VisitorCredential",
]
