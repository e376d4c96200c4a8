# =======================================================================================
# campus_access/services/credential_issuer.py - Credential Issuance
# =======================================================================================
import secrets
import string
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import insert, update
from sqlalchemy.exc import IntegrityError

from ..config import Config, config
from ..database import DatabaseManager
from ..logging_config import get_logger
from ..models.enums import CredentialStatus, IdentityKind
from ..models.records import Identity
from ..models.tables import identities, visitor_credentials
from ..utils.clock import SystemClock, epoch_millis
from ..utils.exceptions import IdentityNotFoundError, InvalidRequestError, TokenGenerationError

logger = get_logger(__name__)

SUFFIX_ALPHABET = string.ascii_lowercase + string.digits


def member_token(document_number: str, millis: int, suffix: Optional[str] = None) -> str:
    """MEMBER-<epochMillis>-<documentNumber>[-<randomSuffix>]; printed cards depend on it."""
    token = f"MEMBER-{millis}-{document_number}"
    return f"{token}-{suffix}" if suffix else token


def visitor_token(document_number: str, millis: int) -> str:
    """VISITOR_<documentNumber>_<epochMillis>"""
    return f"VISITOR_{document_number}_{millis}"


@dataclass(frozen=True)
class VisitorTokenGrant:
    credential_id: int
    identity_id: int
    token: str
    issued_at: datetime
    expires_at: datetime


class CredentialIssuer:
    """Mints member tokens and time-boxed visitor credentials."""

    def __init__(self, db: DatabaseManager, clock=None, settings: Config = config):
        self.db = db
        self.clock = clock or SystemClock()
        self.settings = settings

    def _random_suffix(self) -> str:
        return "".join(
            secrets.choice(SUFFIX_ALPHABET) for _ in range(self.settings.MEMBER_TOKEN_SUFFIX_LENGTH)
        )

    def new_member_token(self, document_number: str, with_suffix: bool = False) -> str:
        millis = epoch_millis(self.clock.now())
        return member_token(document_number, millis, self._random_suffix() if with_suffix else None)

    def issue_member_token(self, identity: Identity) -> str:
        """Assign a fresh member token to the identity; collisions regenerate with a suffix."""
        if identity.kind != IdentityKind.ENROLLED_MEMBER:
            raise InvalidRequestError(
                "Member tokens are only issued to enrolled members", identity_id=identity.id
            )

        for attempt in range(self.settings.TOKEN_MAX_ATTEMPTS):
            token = self.new_member_token(identity.document_number, with_suffix=attempt > 0)
            try:
                with self.db.get_connection() as conn:
                    result = conn.execute(
                        update(identities)
                        .where(identities.c.id == identity.id)
                        .values(credential_token=token)
                    )
                    if result.rowcount == 0:
                        raise IdentityNotFoundError(identity.id)
            except IntegrityError:
                logger.warning(
                    "Member token collision, regenerating (attempt %d)", attempt + 1,
                    extra={"identity_id": identity.id},
                )
                continue

            logger.info("Member token issued", extra={"identity_id": identity.id})
            return token

        raise TokenGenerationError(
            "Could not generate a unique member token", identity_id=identity.id
        )

    def issue_visitor_token(
        self, identity: Identity, validity_minutes: int, issued_by: Optional[str] = None
    ) -> VisitorTokenGrant:
        """Persist an ACTIVE visitor credential valid for `validity_minutes`."""
        if isinstance(validity_minutes, bool) or not isinstance(validity_minutes, int) or validity_minutes <= 0:
            raise InvalidRequestError(
                "validity_minutes must be a positive integer", validity_minutes=validity_minutes
            )
        if identity.kind != IdentityKind.VISITOR:
            raise InvalidRequestError(
                "Visitor credentials are only issued to visitors", identity_id=identity.id
            )
        if identity.lifecycle_state not in self.settings.ALLOWED_LIFECYCLE_STATES:
            raise InvalidRequestError(
                f"Visitor is {identity.lifecycle_state}", identity_id=identity.id
            )

        issued_at = self.clock.now()
        expires_at = issued_at + timedelta(minutes=validity_minutes)
        base_millis = epoch_millis(issued_at)

        for attempt in range(self.settings.TOKEN_MAX_ATTEMPTS):
            # the format has no room for a suffix, so a collision moves to the next millisecond
            token = visitor_token(identity.document_number, base_millis + attempt)
            try:
                with self.db.get_connection() as conn:
                    result = conn.execute(
                        insert(visitor_credentials).values(
                            identity_id=identity.id,
                            token=token,
                            issued_at=issued_at,
                            expires_at=expires_at,
                            status=CredentialStatus.ACTIVE.value,
                            issued_by=issued_by,
                        )
                    )
                    credential_id = result.inserted_primary_key[0]
            except IntegrityError:
                logger.warning(
                    "Visitor token collision, retrying (attempt %d)", attempt + 1,
                    extra={"identity_id": identity.id},
                )
                continue

            logger.info(
                "Visitor credential issued",
                extra={
                    "identity_id": identity.id,
                    "credential_id": credential_id,
                    "expires_at": expires_at.isoformat(),
                },
            )
            return VisitorTokenGrant(
                credential_id=credential_id,
                identity_id=identity.id,
                token=token,
                issued_at=issued_at,
                expires_at=expires_at,
            )

        raise TokenGenerationError(
            "Could not generate a unique visitor token", identity_id=identity.id
        )
