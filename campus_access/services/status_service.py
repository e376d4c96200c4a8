# =======================================================================================
# campus_access/services/status_service.py - Occupancy and Event Queries
# =======================================================================================
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Dict, List, Optional, Tuple

from sqlalchemy import and_, func, select
from sqlalchemy.engine import Connection

from ..config import Config, config
from ..database import DatabaseManager
from ..models.enums import Category, Direction, IdentityKind, Occupancy
from ..models.records import AccessEvent
from ..models.tables import access_events, identities
from ..utils.clock import SystemClock
from ..utils.exceptions import IdentityNotFoundError
from ..utils.lookups import RecordLookup
from .access_recorder import occupancy_after


@dataclass(frozen=True)
class OccupancyCounts:
    as_of: datetime
    by_category: Dict[str, int]
    total: int


@dataclass(frozen=True)
class DailyEventCount:
    day: date
    window_start: datetime
    window_end: datetime
    entries: int
    exits: int

    @property
    def total(self) -> int:
        return self.entries + self.exits


class StatusService:
    """Read-only views derived from the persisted access events."""

    def __init__(self, db: DatabaseManager, clock=None, settings: Config = config):
        self.db = db
        self.clock = clock or SystemClock()
        self.settings = settings

    def _require_identity(self, conn: Connection, identity_id: int) -> None:
        if RecordLookup.identity_by_id(conn, identity_id) is None:
            raise IdentityNotFoundError(identity_id)

    def current_direction(self, identity_id: int) -> Occupancy:
        """INSIDE when the latest event is an ENTRY, OUTSIDE otherwise (or with no events)."""
        with self.db.get_connection() as conn:
            self._require_identity(conn, identity_id)
            latest = RecordLookup.latest_event(conn, identity_id)
        return occupancy_after(latest.direction if latest else None)

    def occupancy_counts(self, as_of: Optional[datetime] = None) -> OccupancyCounts:
        """
        Identities inside per category. An identity counts only when its latest
        event at `as_of` is an ENTRY and its lifecycle state still allows access,
        so a suspended member left "inside" by history is not an occupant.
        """
        as_of = as_of or self.clock.now()
        latest = access_events.alias("latest")
        latest_id = (
            select(latest.c.id)
            .where(and_(latest.c.identity_id == identities.c.id, latest.c.occurred_at <= as_of))
            .order_by(latest.c.occurred_at.desc(), latest.c.id.desc())
            .limit(1)
            .correlate(identities)
            .scalar_subquery()
        )
        query = (
            select(identities.c.kind, identities.c.role, func.count().label("inside"))
            .select_from(identities.join(access_events, access_events.c.identity_id == identities.c.id))
            .where(
                and_(
                    access_events.c.id == latest_id,
                    access_events.c.direction == Direction.ENTRY.value,
                    identities.c.lifecycle_state.in_(self.settings.ALLOWED_LIFECYCLE_STATES),
                )
            )
            .group_by(identities.c.kind, identities.c.role)
        )

        counts = {category.value: 0 for category in Category}
        with self.db.get_connection() as conn:
            for row in conn.execute(query).mappings():
                if row["kind"] == IdentityKind.VISITOR.value:
                    category = Category.VISITOR.value
                else:
                    category = row["role"] or Category.STUDENT.value
                counts[category] = counts.get(category, 0) + int(row["inside"])

        return OccupancyCounts(as_of=as_of, by_category=counts, total=sum(counts.values()))

    def day_window(self, day: Optional[date] = None) -> Tuple[date, datetime, datetime]:
        """Site-local calendar day expressed as a [start, end) range in stored UTC."""
        offset = timedelta(minutes=self.settings.SITE_UTC_OFFSET_MINUTES)
        if day is None:
            day = (self.clock.now() + offset).date()
        start = datetime.combine(day, time.min) - offset
        return day, start, start + timedelta(days=1)

    def daily_event_count(self, day: Optional[date] = None) -> DailyEventCount:
        day, start, end = self.day_window(day)
        with self.db.get_connection() as conn:
            rows = conn.execute(
                select(access_events.c.direction, func.count().label("n"))
                .where(and_(access_events.c.occurred_at >= start, access_events.c.occurred_at < end))
                .group_by(access_events.c.direction)
            ).mappings().all()

        by_direction = {row["direction"]: int(row["n"]) for row in rows}
        return DailyEventCount(
            day=day,
            window_start=start,
            window_end=end,
            entries=by_direction.get(Direction.ENTRY.value, 0),
            exits=by_direction.get(Direction.EXIT.value, 0),
        )

    def history(self, identity_id: int, limit: int = 50) -> List[AccessEvent]:
        with self.db.get_connection() as conn:
            self._require_identity(conn, identity_id)
            rows = conn.execute(
                select(access_events)
                .where(access_events.c.identity_id == identity_id)
                .order_by(access_events.c.occurred_at.desc(), access_events.c.id.desc())
                .limit(limit)
            ).mappings().all()
        return [AccessEvent.from_row(row) for row in rows]
