# =======================================================================================
# campus_access/services/credential_resolver.py - Scanned Payload Resolution
# =======================================================================================
import re
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import insert
from sqlalchemy.exc import IntegrityError

from ..config import Config, config
from ..database import DatabaseManager
from ..logging_config import get_logger
from ..models.enums import (
    CredentialStatus, DocumentType, ExtractionConfidence, IdentityKind,
    LifecycleState, MemberRole, ResolutionStrategy,
)
from ..models.records import Identity, VisitorCredential
from ..models.tables import identities
from ..utils.clock import SystemClock
from ..utils.exceptions import (
    ConcurrentConflictError, CredentialExpiredError, CredentialRevokedError,
    TokenGenerationError, UnresolvableCredentialError,
)
from ..utils.lookups import RecordLookup
from ..utils.text_extraction import (
    DIGIT_RUN, ONLY_NUMBER, ExtractedCredential, extract_credential_text, normalize_document_number,
)
from .credential_issuer import CredentialIssuer
from .visitor_expirer import VisitorExpirer

logger = get_logger(__name__)

MEMBER_TOKEN_PATTERN = re.compile(r"^MEMBER-([0-9]+)-([0-9]+)(?:-([0-9a-z]+))?$")
VISITOR_TOKEN_PATTERN = re.compile(r"^VISITOR_([0-9]+)_([0-9]+)$")


@dataclass(frozen=True)
class ResolvedIdentity:
    identity: Identity
    auto_provisioned: bool
    strategy: ResolutionStrategy
    confidence: ExtractionConfidence
    credential: Optional[VisitorCredential] = None


class CredentialResolver:
    """
    Maps a raw scanned string to an Identity.

    Strategies run in order and the first hit wins: member token, visitor
    token, whole input as a document number, first 8-15 digit run as a
    document number, and finally auto-provisioning a member for that run.
    """

    def __init__(
        self,
        db: DatabaseManager,
        issuer: CredentialIssuer,
        expirer: VisitorExpirer,
        clock=None,
        settings: Config = config,
    ):
        self.db = db
        self.issuer = issuer
        self.expirer = expirer
        self.clock = clock or SystemClock()
        self.settings = settings

    def resolve(self, raw: str) -> ResolvedIdentity:
        text = (raw or "").strip()
        if not text:
            raise UnresolvableCredentialError("Empty scan")

        member = MEMBER_TOKEN_PATTERN.match(text)
        if member:
            with self.db.get_connection() as conn:
                identity = RecordLookup.identity_by_token(conn, text)
            if identity is not None:
                return self._resolved(identity, ResolutionStrategy.MEMBER_TOKEN, ExtractionConfidence.HIGH)
            # reissued or never stored; the card still carries the document number
            embedded_number = member.group(2)
            if not DIGIT_RUN.fullmatch(embedded_number):
                raise UnresolvableCredentialError(
                    "Unknown member token without a usable document number"
                )
            logger.info("Unknown member token, falling back to its document number")
            embedded = ExtractedCredential(
                document_number=embedded_number,
                given_names=None,
                family_names=None,
                role_hint=None,
                blood_type=None,
                confidence=ExtractionConfidence.LOW,
            )
            return self._resolve_document(embedded, ResolutionStrategy.DOCUMENT_NUMBER)

        if VISITOR_TOKEN_PATTERN.match(text):
            return self._resolve_visitor_token(text)

        extraction = extract_credential_text(text)

        whole = normalize_document_number(text)
        if whole:
            with self.db.get_connection() as conn:
                identity = RecordLookup.identity_by_document(conn, whole)
            if identity is not None:
                confidence = (
                    ExtractionConfidence.HIGH if ONLY_NUMBER.match(text) else ExtractionConfidence.LOW
                )
                return self._resolved(identity, ResolutionStrategy.DOCUMENT_NUMBER, confidence)

        if extraction.document_number is None:
            raise UnresolvableCredentialError("No document number found in scan")

        return self._resolve_document(
            extraction, ResolutionStrategy.EXTRACTED_DOCUMENT, skip_lookup=extraction.document_number == whole
        )

    # ------------------------------------------------------------------
    # Strategies
    # ------------------------------------------------------------------
    def _resolved(
        self,
        identity: Identity,
        strategy: ResolutionStrategy,
        confidence: ExtractionConfidence,
        credential: Optional[VisitorCredential] = None,
    ) -> ResolvedIdentity:
        logger.debug(
            "Resolved via %s", strategy.value,
            extra={"identity_id": identity.id, "confidence": confidence.value},
        )
        return ResolvedIdentity(identity, False, strategy, confidence, credential)

    def _resolve_visitor_token(self, token: str) -> ResolvedIdentity:
        with self.db.get_connection() as conn:
            credential = RecordLookup.credential_by_token(conn, token)
            identity = (
                RecordLookup.identity_by_id(conn, credential.identity_id) if credential else None
            )

        if credential is None or identity is None:
            raise UnresolvableCredentialError("Unknown visitor credential")

        if credential.status == CredentialStatus.REVOKED:
            raise CredentialRevokedError(
                "Visitor credential revoked", credential_id=credential.id, identity_id=identity.id
            )
        if credential.status == CredentialStatus.EXPIRED:
            raise CredentialExpiredError(
                "Visitor credential expired", credential_id=credential.id, identity_id=identity.id
            )

        now = self.clock.now()
        if self.expirer.is_expired(credential, now):
            try:
                outcome = self.expirer.expire(credential, now)
                closed = outcome.closing_event is not None
            except ConcurrentConflictError:
                # a scan holds the visitor; the next sweep flips status and closes the visit
                logger.warning(
                    "Lazy expiry deferred to the sweep", extra={"credential_id": credential.id}
                )
                closed = False
            raise CredentialExpiredError(
                "Visitor credential expired",
                credential_id=credential.id,
                identity_id=identity.id,
                closing_exit_recorded=closed,
            )

        return self._resolved(
            identity, ResolutionStrategy.VISITOR_TOKEN, ExtractionConfidence.HIGH, credential
        )

    def _resolve_document(
        self,
        extraction: ExtractedCredential,
        strategy: ResolutionStrategy,
        skip_lookup: bool = False,
    ) -> ResolvedIdentity:
        if not skip_lookup:
            with self.db.get_connection() as conn:
                identity = RecordLookup.identity_by_document(conn, extraction.document_number)
            if identity is not None:
                return self._resolved(identity, strategy, extraction.confidence)
        return self._auto_provision(extraction)

    def _auto_provision(self, extraction: ExtractedCredential) -> ResolvedIdentity:
        """
        Create a member for an unknown document number.

        Insert first and let the unique document_number constraint arbitrate
        concurrent scans: the loser re-selects and returns the winner's row.
        """
        document_number = extraction.document_number
        if not self.settings.AUTO_PROVISION_ENABLED:
            raise UnresolvableCredentialError(
                "No identity for scanned document", document_number=document_number
            )

        given_names = extraction.given_names or self.settings.AUTO_PROVISION_PLACEHOLDER_NAME
        role = (extraction.role_hint or MemberRole.STUDENT).value

        for attempt in range(self.settings.TOKEN_MAX_ATTEMPTS):
            token = self.issuer.new_member_token(document_number, with_suffix=attempt > 0)
            created_at = self.clock.now()
            values = dict(
                kind=IdentityKind.ENROLLED_MEMBER.value,
                given_names=given_names,
                family_names=extraction.family_names,
                document_number=document_number,
                document_type=DocumentType.CC.value,
                role=role,
                program=None,
                blood_type=extraction.blood_type,
                lifecycle_state=LifecycleState.ACTIVE.value,
                credential_token=token,
                created_at=created_at,
            )
            try:
                with self.db.get_connection() as conn:
                    result = conn.execute(insert(identities).values(**values))
                    identity_id = result.inserted_primary_key[0]
            except IntegrityError:
                with self.db.get_connection() as conn:
                    existing = RecordLookup.identity_by_document(conn, document_number)
                if existing is not None:
                    logger.info(
                        "Concurrent provisioning for the same document, using existing identity",
                        extra={"identity_id": existing.id},
                    )
                    return self._resolved(
                        existing, ResolutionStrategy.EXTRACTED_DOCUMENT, extraction.confidence
                    )
                logger.warning("Member token collision while provisioning (attempt %d)", attempt + 1)
                continue

            identity = Identity.from_row({"id": identity_id, **values})
            logger.warning(
                "Auto-provisioned identity from scan text",
                extra={"identity_id": identity_id, "confidence": extraction.confidence.value},
            )
            return ResolvedIdentity(
                identity, True, ResolutionStrategy.AUTO_PROVISIONED, extraction.confidence
            )

        raise TokenGenerationError(
            "Could not generate a unique member token", document_number=document_number
        )
