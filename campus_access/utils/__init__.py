# =======================================================================================
# campus_access/utils/__init__.py - Utils Package
# =======================================================================================
from .exceptions import *
from .text_extraction import ExtractedCredential, extract_credential_text, normalize_document_number

__all__ = [
    "CampusAccessError", "UnresolvableCredentialError", "CredentialExpiredError",
    "CredentialRevokedError", "AccessDeniedError", "ConcurrentConflictError",
    "IdentityNotFoundError", "InvalidRequestError", "CredentialStateError",
    "TokenGenerationError", "StorageUnavailableError",
    "ExtractedCredential", "extract_credential_text", "normalize_document_number",
]
