# =======================================================================================
# campus_access/utils/exceptions.py - Custom Exceptions
# =======================================================================================
from typing import Any, Dict, Optional


class CampusAccessError(Exception):
    """Base exception for the campus access system."""
    code = "CAMPUS_ACCESS_ERROR"
    status_code = 500

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details: Dict[str, Any] = details


class UnresolvableCredentialError(CampusAccessError):
    """Raised when no identity can be determined from a scanned payload."""
    code = "UNRESOLVABLE"
    status_code = 404


class CredentialExpiredError(CampusAccessError):
    code = "CREDENTIAL_EXPIRED"
    status_code = 410


class CredentialRevokedError(CampusAccessError):
    code = "CREDENTIAL_REVOKED"
    status_code = 410


class AccessDeniedError(CampusAccessError):
    """Raised when the identity's lifecycle state forbids entry."""
    code = "ACCESS_DENIED"
    status_code = 403

    def __init__(self, identity_id: int, reason: str):
        super().__init__(f"Access denied - {reason}", identity_id=identity_id, reason=reason)
        self.identity_id = identity_id
        self.reason = reason


class ConcurrentConflictError(CampusAccessError):
    """Raised when another scan of the same identity kept the lock."""
    code = "CONCURRENT_CONFLICT"
    status_code = 409

    def __init__(self, identity_id: int):
        super().__init__(
            f"Concurrent scan in progress for identity {identity_id}", identity_id=identity_id
        )
        self.identity_id = identity_id


class IdentityNotFoundError(CampusAccessError):
    code = "IDENTITY_NOT_FOUND"
    status_code = 404

    def __init__(self, identity_id: Optional[int] = None, message: Optional[str] = None):
        super().__init__(message or f"Identity {identity_id} not found", identity_id=identity_id)
        self.identity_id = identity_id


class InvalidRequestError(CampusAccessError):
    code = "INVALID_REQUEST"
    status_code = 400


class CredentialStateError(CampusAccessError):
    """Raised when a visitor credential is missing or no longer ACTIVE."""
    code = "CREDENTIAL_NOT_ACTIVE"
    status_code = 409


class TokenGenerationError(CampusAccessError):
    code = "TOKEN_GENERATION_FAILED"
    status_code = 500


class StorageUnavailableError(CampusAccessError):
    """Infrastructure failure talking to the database."""
    code = "STORAGE_UNAVAILABLE"
    status_code = 503


class LockContentionError(CampusAccessError):
    """Internal: per-identity lock not acquired in time. Retried before surfacing."""
    code = "LOCK_CONTENTION"
    status_code = 409
