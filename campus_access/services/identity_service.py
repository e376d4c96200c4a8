# =======================================================================================
# campus_access/services/identity_service.py - Identity Administration
# =======================================================================================
from typing import List

from sqlalchemy import insert, or_, select, update
from sqlalchemy.exc import IntegrityError

from ..config import Config, config
from ..database import DatabaseManager
from ..logging_config import get_logger
from ..models.enums import IdentityKind, LifecycleState, MemberRole
from ..models.records import Identity
from ..models.schemas import CreateIdentityRequest
from ..models.tables import identities
from ..utils.clock import SystemClock
from ..utils.exceptions import IdentityNotFoundError, InvalidRequestError, TokenGenerationError
from ..utils.lookups import RecordLookup
from ..utils.text_extraction import normalize_document_number
from .credential_issuer import CredentialIssuer

logger = get_logger(__name__)


class IdentityService:
    """Enrollment-side operations the gate core depends on."""

    def __init__(self, db: DatabaseManager, issuer: CredentialIssuer, clock=None, settings: Config = config):
        self.db = db
        self.issuer = issuer
        self.clock = clock or SystemClock()
        self.settings = settings

    @staticmethod
    def _validate_lifecycle(state: str) -> str:
        state = (state or "").strip().upper()
        if state not in LifecycleState.__members__:
            raise InvalidRequestError(f"Unknown lifecycle state {state!r}", lifecycle_state=state)
        return state

    def get(self, identity_id: int) -> Identity:
        with self.db.get_connection() as conn:
            identity = RecordLookup.identity_by_id(conn, identity_id)
        if identity is None:
            raise IdentityNotFoundError(identity_id)
        return identity

    def create_identity(self, request: CreateIdentityRequest) -> Identity:
        """
        Register a member or visitor. Members get a member token in the same
        insert; visitors get time-boxed credentials later.
        """
        document_number = normalize_document_number(request.document_number)
        if not 5 <= len(document_number) <= 20:
            raise InvalidRequestError("Document number must have 5 to 20 digits")

        kind = IdentityKind(request.kind)
        role = None
        if kind == IdentityKind.ENROLLED_MEMBER:
            role = request.role or MemberRole.STUDENT.value

        values = dict(
            kind=kind.value,
            given_names=request.given_names.strip(),
            family_names=(request.family_names or "").strip() or None,
            document_number=document_number,
            document_type=request.document_type,
            role=role,
            program=request.program if kind == IdentityKind.ENROLLED_MEMBER else None,
            blood_type=(request.blood_type or "").strip().upper() or None,
            lifecycle_state=self._validate_lifecycle(request.lifecycle_state),
            credential_token=None,
            created_at=self.clock.now(),
        )

        for attempt in range(self.settings.TOKEN_MAX_ATTEMPTS):
            if kind == IdentityKind.ENROLLED_MEMBER:
                values["credential_token"] = self.issuer.new_member_token(
                    document_number, with_suffix=attempt > 0
                )
            try:
                with self.db.get_connection() as conn:
                    result = conn.execute(insert(identities).values(**values))
                    identity_id = result.inserted_primary_key[0]
            except IntegrityError:
                with self.db.get_connection() as conn:
                    existing = RecordLookup.identity_by_document(conn, document_number)
                if existing is not None:
                    raise InvalidRequestError(
                        "Document number already registered", identity_id=existing.id
                    )
                continue

            logger.info("Identity created", extra={"identity_id": identity_id, "kind": kind.value})
            return Identity.from_row({"id": identity_id, **values})

        raise TokenGenerationError("Could not generate a unique member token")

    def search(self, query: str, limit: int = 10) -> List[Identity]:
        """Exact document number or token first, then a prefix match on the document."""
        query = (query or "").strip()
        if not query:
            return []

        digits = normalize_document_number(query)
        with self.db.get_connection() as conn:
            rows = conn.execute(
                select(identities)
                .where(or_(identities.c.document_number == digits, identities.c.credential_token == query))
                .order_by(identities.c.id.desc())
                .limit(limit)
            ).mappings().all()

            if not rows and digits:
                rows = conn.execute(
                    select(identities)
                    .where(identities.c.document_number.like(f"{digits}%"))
                    .order_by(identities.c.id.desc())
                    .limit(limit)
                ).mappings().all()

        return [Identity.from_row(row) for row in rows]

    def update_lifecycle(self, identity_id: int, lifecycle_state: str) -> Identity:
        """
        Change the lifecycle state. Access history is left alone: a member
        suspended while inside keeps the ENTRY but stops counting as an occupant.
        """
        state = self._validate_lifecycle(lifecycle_state)
        with self.db.get_connection() as conn:
            result = conn.execute(
                update(identities).where(identities.c.id == identity_id).values(lifecycle_state=state)
            )
            if result.rowcount == 0:
                raise IdentityNotFoundError(identity_id)
            identity = RecordLookup.identity_by_id(conn, identity_id)

        logger.info("Lifecycle state set to %s", state, extra={"identity_id": identity_id})
        return identity
