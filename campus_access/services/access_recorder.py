# =======================================================================================
# campus_access/services/access_recorder.py - Entry/Exit State Machine
# =======================================================================================
from dataclasses import dataclass
from typing import Optional, Union

from sqlalchemy import insert

from ..config import Config, config
from ..database import DatabaseManager
from ..logging_config import get_logger
from ..models.enums import Direction, Occupancy, RecordedVia
from ..models.records import AccessEvent, Identity
from ..models.tables import access_events
from ..utils.clock import SystemClock
from ..utils.exceptions import AccessDeniedError, IdentityNotFoundError, InvalidRequestError
from ..utils.locks import IdentityLockRegistry, identity_locks, run_with_identity_lock
from ..utils.lookups import RecordLookup

logger = get_logger(__name__)


# ---------------------------------------------------------------------------
# The per-identity two-state machine. Every caller that needs to know which
# way a person is going, or whether they are inside, asks these two functions.
#
#   OUTSIDE --ENTRY--> INSIDE --EXIT--> OUTSIDE
# ---------------------------------------------------------------------------
def next_direction(last: Optional[Direction]) -> Direction:
    """Direction of the next event given the latest recorded one."""
    if last == Direction.ENTRY:
        return Direction.EXIT
    return Direction.ENTRY


def occupancy_after(last: Optional[Direction]) -> Occupancy:
    if last == Direction.ENTRY:
        return Occupancy.INSIDE
    return Occupancy.OUTSIDE


@dataclass(frozen=True)
class RecordedScan:
    event: AccessEvent
    direction: Direction
    identity: Identity
    hint_discarded: bool = False


class AccessRecorder:
    """Decides ENTRY vs EXIT for an identity and appends exactly one event."""

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

    def is_access_allowed(self, identity: Identity) -> bool:
        return identity.lifecycle_state in self.settings.ALLOWED_LIFECYCLE_STATES

    def record_scan(
        self,
        identity_id: int,
        location_label: Optional[str] = None,
        direction_hint: Optional[Union[str, Direction]] = None,
        recorded_via: Union[str, RecordedVia] = RecordedVia.SCAN,
    ) -> RecordedScan:
        """
        Record the next access event for an identity.

        The direction is always derived from the identity's latest event.
        `direction_hint` is what the client believed; it is logged when it
        disagrees and otherwise ignored. Raises AccessDeniedError when the
        lifecycle state forbids access (no event is written) and
        ConcurrentConflictError when the identity stays locked after a retry.
        """
        via = RecordedVia(recorded_via)
        if via == RecordedVia.EXPIRY:
            raise InvalidRequestError("Expiry exits are written by the visitor expirer only")

        label = location_label or self.settings.DEFAULT_LOCATION_LABEL
        return run_with_identity_lock(
            self.locks,
            identity_id,
            lambda: self._record_once(identity_id, label, direction_hint, via),
            timeout=self.settings.IDENTITY_LOCK_TIMEOUT_SECONDS,
        )

    def _record_once(
        self,
        identity_id: int,
        location_label: str,
        direction_hint: Optional[Union[str, Direction]],
        recorded_via: RecordedVia,
    ) -> RecordedScan:
        with self.db.get_connection() as conn:
            identity = RecordLookup.identity_by_id(conn, identity_id, for_update=True)
            if identity is None:
                raise IdentityNotFoundError(identity_id)

            if not self.is_access_allowed(identity):
                logger.info(
                    "Access denied - %s", identity.lifecycle_state,
                    extra={"identity_id": identity_id},
                )
                raise AccessDeniedError(identity_id, identity.lifecycle_state)

            latest = RecordLookup.latest_event(conn, identity_id)
            direction = next_direction(latest.direction if latest else None)
            occurred_at = self.clock.now()

            result = conn.execute(
                insert(access_events).values(
                    identity_id=identity_id,
                    direction=direction.value,
                    occurred_at=occurred_at,
                    recorded_via=recorded_via.value,
                    location_label=location_label,
                )
            )
            event = AccessEvent(
                id=result.inserted_primary_key[0],
                identity_id=identity_id,
                direction=direction,
                occurred_at=occurred_at,
                recorded_via=recorded_via,
                location_label=location_label,
            )

        hint = str(getattr(direction_hint, "value", direction_hint) or "").upper()
        hint_discarded = hint not in ("", "AUTO", direction.value)
        if hint_discarded:
            logger.warning(
                "Client direction hint %s discarded, recorded %s", hint, direction.value,
                extra={"identity_id": identity_id},
            )

        logger.info(
            "Access %s recorded", direction.value,
            extra={"identity_id": identity_id, "event_id": event.id, "via": recorded_via.value},
        )
        return RecordedScan(event=event, direction=direction, identity=identity, hint_discarded=hint_discarded)
