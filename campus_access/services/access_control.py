# =======================================================================================
# campus_access/services/access_control.py - Scan Pipeline
# =======================================================================================
from dataclasses import dataclass
from typing import Optional, Union

from ..logging_config import get_logger
from ..models.enums import Direction, RecordedVia
from .access_recorder import AccessRecorder, RecordedScan
from .credential_resolver import CredentialResolver, ResolvedIdentity

logger = get_logger(__name__)


@dataclass(frozen=True)
class ScanOutcome:
    resolved: ResolvedIdentity
    recorded: RecordedScan

    @property
    def message(self) -> str:
        verb = "Entry" if self.recorded.direction == Direction.ENTRY else "Exit"
        return f"{verb} recorded for {self.recorded.identity.display_name}"


class AccessControlService:
    """Guard-side pipeline: resolve the scanned payload, then record the event."""

    def __init__(self, resolver: CredentialResolver, recorder: AccessRecorder):
        self.resolver = resolver
        self.recorder = recorder

    def process_scan(
        self,
        raw: str,
        location_label: Optional[str] = None,
        direction_hint: Optional[str] = None,
        recorded_via: Union[str, RecordedVia] = RecordedVia.SCAN,
    ) -> ScanOutcome:
        """
        Resolve then record. Resolution failures and denials propagate as
        CampusAccessError subclasses; nothing is written in either case, except
        the identity row itself when auto-provisioning created it.
        """
        resolved = self.resolver.resolve(raw)
        recorded = self.recorder.record_scan(
            resolved.identity.id,
            location_label=location_label,
            direction_hint=direction_hint,
            recorded_via=recorded_via,
        )
        logger.info(
            "Scan %s via %s", recorded.direction.value, resolved.strategy.value,
            extra={"identity_id": resolved.identity.id, "auto_provisioned": resolved.auto_provisioned},
        )
        return ScanOutcome(resolved=resolved, recorded=recorded)
