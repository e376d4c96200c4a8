# =======================================================================================
# campus_access/api/routes/scan.py - Scan Endpoints
# =======================================================================================
from fastapi import APIRouter, Depends
from ...models.schemas import (
    AccessEventOut,
    IdentityOut,
    RecordAccessRequest,
    ResolveRequest,
    ResolveResponse,
    ScanRequest,
    ScanResponse,
)
from ...services import AccessServices
from ..dependencies import get_services

router = APIRouter()


@router.post("/scan", response_model=ScanResponse)
def handle_scan(request: ScanRequest, services: AccessServices = Depends(get_services)):
    """Resolve the scanned payload and record the next event for it."""
    outcome = services.access_control.process_scan(
        request.raw,
        location_label=request.location_label,
        direction_hint=request.direction_hint,
        recorded_via=request.recorded_via,
    )
    recorded = outcome.recorded
    return ScanResponse(
        status="CONFIRMED",
        message=outcome.message,
        direction=recorded.direction.value,
        event=AccessEventOut.from_record(recorded.event),
        identity=IdentityOut.from_record(recorded.identity),
        auto_provisioned=outcome.resolved.auto_provisioned,
        hint_discarded=recorded.hint_discarded,
    )


@router.post("/credentials/resolve", response_model=ResolveResponse)
def resolve_credential(request: ResolveRequest, services: AccessServices = Depends(get_services)):
    """Resolve without recording. May still auto-provision."""
    resolved = services.resolver.resolve(request.raw)
    return ResolveResponse(
        identity=IdentityOut.from_record(resolved.identity),
        auto_provisioned=resolved.auto_provisioned,
        strategy=resolved.strategy.value,
        confidence=resolved.confidence.value,
        credential_id=resolved.credential.id if resolved.credential else None,
    )


@router.post("/access-events", response_model=ScanResponse)
def record_access_event(request: RecordAccessRequest, services: AccessServices = Depends(get_services)):
    recorded = services.recorder.record_scan(
        request.identity_id,
        location_label=request.location_label,
        direction_hint=request.direction_hint,
        recorded_via=request.recorded_via,
    )
    return ScanResponse(
        status="CONFIRMED",
        message=f"{recorded.direction.value} recorded",
        direction=recorded.direction.value,
        event=AccessEventOut.from_record(recorded.event),
        identity=IdentityOut.from_record(recorded.identity),
        hint_discarded=recorded.hint_discarded,
    )
