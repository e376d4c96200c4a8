# =======================================================================================
# campus_access/services/__init__.py - Services Package
# =======================================================================================
from dataclasses import dataclass

from ..config import Config, config
from ..database import DatabaseManager
from ..utils.clock import SystemClock
from ..utils.locks import IdentityLockRegistry, identity_locks
from .access_control import AccessControlService, ScanOutcome
from .access_recorder import AccessRecorder, RecordedScan
from .credential_issuer import CredentialIssuer, VisitorTokenGrant
from .credential_resolver import CredentialResolver, ResolvedIdentity
from .identity_service import IdentityService
from .status_service import DailyEventCount, OccupancyCounts, StatusService
from .visitor_expirer import ActiveVisitor, ExpiryOutcome, SweepReport, VisitorExpirer


@dataclass
class AccessServices:
    """Every service wired to one database, clock and lock registry."""
    issuer: CredentialIssuer
    expirer: VisitorExpirer
    resolver: CredentialResolver
    recorder: AccessRecorder
    status: StatusService
    identities: IdentityService
    access_control: AccessControlService


def build_services(
    db: DatabaseManager,
    clock=None,
    settings: Config = config,
    locks: IdentityLockRegistry = identity_locks,
) -> AccessServices:
    clock = clock or SystemClock()
    issuer = CredentialIssuer(db, clock=clock, settings=settings)
    expirer = VisitorExpirer(db, clock=clock, settings=settings, locks=locks)
    resolver = CredentialResolver(db, issuer, expirer, clock=clock, settings=settings)
    recorder = AccessRecorder(db, clock=clock, settings=settings, locks=locks)
    return AccessServices(
        issuer=issuer,
        expirer=expirer,
        resolver=resolver,
        recorder=recorder,
        status=StatusService(db, clock=clock, settings=settings),
        identities=IdentityService(db, issuer, clock=clock, settings=settings),
        access_control=AccessControlService(resolver, recorder),
    )


__all__ = [
    "AccessServices", "build_services",
    "AccessControlService", "ScanOutcome",
    "AccessRecorder", "RecordedScan",
    "CredentialIssuer", "VisitorTokenGrant",
    "CredentialResolver", "ResolvedIdentity",
    "IdentityService",
    "StatusService", "OccupancyCounts", "DailyEventCount",
    "VisitorExpirer", "ExpiryOutcome", "SweepReport", "ActiveVisitor",
]
