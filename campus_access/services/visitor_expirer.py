# =======================================================================================
# campus_access/services/visitor_expirer.py - Visitor Credential Expiry
# =======================================================================================
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from sqlalchemy import and_, insert, select, update

from ..config import Config, config
from ..database import DatabaseManager
from ..logging_config import get_logger
from ..models.enums import CredentialStatus, Direction, RecordedVia
from ..models.records import AccessEvent, Identity, VisitorCredential
from ..models.tables import access_events, identities, visitor_credentials
from ..utils.clock import SystemClock
from ..utils.exceptions import ConcurrentConflictError, CredentialStateError, IdentityNotFoundError
from ..utils.locks import IdentityLockRegistry, identity_locks, run_with_identity_lock
from ..utils.lookups import RecordLookup

logger = get_logger(__name__)


@dataclass(frozen=True)
class ExpiryOutcome:
    credential_id: int
    identity_id: int
    expired: bool
    closing_event: Optional[AccessEvent] = None


@dataclass
class SweepReport:
    swept_at: datetime
    checked: int = 0
    expired: int = 0
    closing_exits: int = 0
    conflicts: List[int] = field(default_factory=list)


@dataclass(frozen=True)
class ActiveVisitor:
    credential: VisitorCredential
    identity: Identity


class VisitorExpirer:
    """Moves visitor credentials out of ACTIVE and keeps occupancy honest."""

    def __init__(
        self,
        db: DatabaseManager,
        clock=None,
        settings: Config = config,
        locks: IdentityLockRegistry = identity_locks,
    ):
        self.db = db
        self.clock = clock or SystemClock()
        self.settings = settings
        self.locks = locks

    @staticmethod
    def is_expired(credential: VisitorCredential, now: datetime) -> bool:
        return now >= credential.expires_at

    # ------------------------------------------------------------------
    # Expiration
    # ------------------------------------------------------------------
    def expire(self, credential: VisitorCredential, now: Optional[datetime] = None) -> ExpiryOutcome:
        """
        Mark an ACTIVE credential EXPIRED and, if the visitor is still inside,
        append a closing EXIT at the expiry time. A credential already moved
        out of ACTIVE by someone else is left untouched (expired=False).
        """
        now = now or self.clock.now()
        return run_with_identity_lock(
            self.locks,
            credential.identity_id,
            lambda: self._expire_once(credential, now),
            timeout=self.settings.IDENTITY_LOCK_TIMEOUT_SECONDS,
        )

    def _expire_once(self, credential: VisitorCredential, now: datetime) -> ExpiryOutcome:
        with self.db.get_connection() as conn:
            # same row lock the recorder takes, so a scan in another process cannot interleave
            RecordLookup.identity_by_id(conn, credential.identity_id, for_update=True)
            result = conn.execute(
                update(visitor_credentials)
                .where(
                    and_(
                        visitor_credentials.c.id == credential.id,
                        visitor_credentials.c.status == CredentialStatus.ACTIVE.value,
                    )
                )
                .values(status=CredentialStatus.EXPIRED.value, closed_at=now)
            )
            if result.rowcount == 0:
                return ExpiryOutcome(credential.id, credential.identity_id, expired=False)

            closing = None
            latest = RecordLookup.latest_event(conn, credential.identity_id)
            if latest is not None and latest.direction == Direction.ENTRY:
                # never place the exit before the entry it closes
                occurred_at = max(credential.expires_at, latest.occurred_at)
                inserted = conn.execute(
                    insert(access_events).values(
                        identity_id=credential.identity_id,
                        direction=Direction.EXIT.value,
                        occurred_at=occurred_at,
                        recorded_via=RecordedVia.EXPIRY.value,
                        location_label=latest.location_label,
                    )
                )
                closing = AccessEvent(
                    id=inserted.inserted_primary_key[0],
                    identity_id=credential.identity_id,
                    direction=Direction.EXIT,
                    occurred_at=occurred_at,
                    recorded_via=RecordedVia.EXPIRY,
                    location_label=latest.location_label,
                )

        logger.info(
            "Visitor credential expired%s", " with closing exit" if closing else "",
            extra={"credential_id": credential.id, "identity_id": credential.identity_id},
        )
        return ExpiryOutcome(credential.id, credential.identity_id, expired=True, closing_event=closing)

    def sweep(self) -> SweepReport:
        """Expire every ACTIVE credential whose time is up. Meant for a scheduler."""
        now = self.clock.now()
        with self.db.get_connection() as conn:
            rows = conn.execute(
                select(visitor_credentials)
                .where(
                    and_(
                        visitor_credentials.c.status == CredentialStatus.ACTIVE.value,
                        visitor_credentials.c.expires_at <= now,
                    )
                )
                .order_by(visitor_credentials.c.expires_at, visitor_credentials.c.id)
            ).mappings().all()

        report = SweepReport(swept_at=now)
        for row in rows:
            credential = VisitorCredential.from_row(row)
            report.checked += 1
            try:
                outcome = self.expire(credential, now)
            except ConcurrentConflictError:
                # a scan holds the identity; the next sweep picks it up
                report.conflicts.append(credential.id)
                continue
            if outcome.expired:
                report.expired += 1
            if outcome.closing_event is not None:
                report.closing_exits += 1

        logger.info(
            "Expiry sweep done: %d checked, %d expired, %d closing exits, %d conflicts",
            report.checked, report.expired, report.closing_exits, len(report.conflicts),
        )
        return report

    # ------------------------------------------------------------------
    # Administrative transitions
    # ------------------------------------------------------------------
    def revoke(self, credential_id: int) -> VisitorCredential:
        now = self.clock.now()
        with self.db.get_connection() as conn:
            result = conn.execute(
                update(visitor_credentials)
                .where(
                    and_(
                        visitor_credentials.c.id == credential_id,
                        visitor_credentials.c.status == CredentialStatus.ACTIVE.value,
                    )
                )
                .values(status=CredentialStatus.REVOKED.value, closed_at=now)
            )
            credential = RecordLookup.credential_by_id(conn, credential_id)

        if result.rowcount == 0:
            if credential is None:
                raise CredentialStateError(
                    f"Visitor credential {credential_id} not found", credential_id=credential_id
                )
            raise CredentialStateError(
                f"Visitor credential {credential_id} is {credential.status.value}",
                credential_id=credential_id,
            )

        logger.info("Visitor credential revoked", extra={"credential_id": credential_id})
        return credential

    def claim_expiry_warnings(self, within_minutes: Optional[int] = None) -> List[VisitorCredential]:
        """
        Return ACTIVE credentials expiring inside the window that have not been
        warned about yet, flagging each one so no other instance warns again.
        """
        now = self.clock.now()
        window = within_minutes if within_minutes is not None else self.settings.EXPIRY_WARNING_MINUTES
        horizon = now + timedelta(minutes=window)

        claimed: List[VisitorCredential] = []
        with self.db.get_connection() as conn:
            rows = conn.execute(
                select(visitor_credentials)
                .where(
                    and_(
                        visitor_credentials.c.status == CredentialStatus.ACTIVE.value,
                        visitor_credentials.c.expires_at > now,
                        visitor_credentials.c.expires_at <= horizon,
                        visitor_credentials.c.expiry_warned_at.is_(None),
                    )
                )
                .order_by(visitor_credentials.c.expires_at)
            ).mappings().all()

            for row in rows:
                result = conn.execute(
                    update(visitor_credentials)
                    .where(
                        and_(
                            visitor_credentials.c.id == row["id"],
                            visitor_credentials.c.expiry_warned_at.is_(None),
                        )
                    )
                    .values(expiry_warned_at=now)
                )
                if result.rowcount == 1:
                    claimed.append(VisitorCredential.from_row({**row, "expiry_warned_at": now}))

        return claimed

    # ------------------------------------------------------------------
    # Listings
    # ------------------------------------------------------------------
    def list_active(self) -> List[ActiveVisitor]:
        """ACTIVE credentials not yet past expiry, soonest to expire first."""
        now = self.clock.now()
        with self.db.get_connection() as conn:
            rows = conn.execute(
                select(visitor_credentials)
                .where(
                    and_(
                        visitor_credentials.c.status == CredentialStatus.ACTIVE.value,
                        visitor_credentials.c.expires_at > now,
                    )
                )
                .order_by(visitor_credentials.c.expires_at, visitor_credentials.c.id)
            ).mappings().all()
            credentials = [VisitorCredential.from_row(row) for row in rows]

            owners: Dict[int, Identity] = {}
            identity_ids = {c.identity_id for c in credentials}
            if identity_ids:
                for row in conn.execute(
                    select(identities).where(identities.c.id.in_(sorted(identity_ids)))
                ).mappings():
                    owners[row["id"]] = Identity.from_row(row)

        return [ActiveVisitor(credential=c, identity=owners[c.identity_id]) for c in credentials]

    def credentials_for(self, identity_id: int) -> List[VisitorCredential]:
        """Every credential issued to the visitor, newest first."""
        with self.db.get_connection() as conn:
            if RecordLookup.identity_by_id(conn, identity_id) is None:
                raise IdentityNotFoundError(identity_id)
            rows = conn.execute(
                select(visitor_credentials)
                .where(visitor_credentials.c.identity_id == identity_id)
                .order_by(visitor_credentials.c.issued_at.desc(), visitor_credentials.c.id.desc())
            ).mappings().all()
        return [VisitorCredential.from_row(row) for row in rows]
