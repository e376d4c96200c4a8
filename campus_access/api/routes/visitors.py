# =======================================================================================
# campus_access/api/routes/visitors.py - Visitor Credential Lifecycle Endpoints
# =======================================================================================
from typing import Optional
from fastapi import APIRouter, Depends
from ...models.schemas import (
    ActiveVisitorOut,
    ActiveVisitorsResponse,
    ExpiryWarningsRequest,
    ExpiryWarningsResponse,
    SweepResponse,
    VisitorCredentialOut,
    VisitorCredentialsResponse,
)
from ...services import AccessServices
from ..dependencies import get_services

router = APIRouter()


@router.post("/visitor-credentials/{credential_id}/revoke", response_model=VisitorCredentialOut)
def revoke_credential(credential_id: int, services: AccessServices = Depends(get_services)):
    credential = services.expirer.revoke(credential_id)
    return VisitorCredentialOut.from_record(credential)


@router.post("/visitor-credentials/sweep", response_model=SweepResponse)
def sweep_expired(services: AccessServices = Depends(get_services)):
    """Expire overdue credentials now. Safe to call from cron."""
    report = services.expirer.sweep()
    return SweepResponse(
        swept_at=report.swept_at,
        checked=report.checked,
        expired=report.expired,
        closing_exits=report.closing_exits,
        conflicts=report.conflicts,
    )


@router.post("/visitor-credentials/expiry-warnings", response_model=ExpiryWarningsResponse)
def claim_expiry_warnings(
    request: Optional[ExpiryWarningsRequest] = None,
    services: AccessServices = Depends(get_services),
):
    within = request.within_minutes if request else None
    credentials = services.expirer.claim_expiry_warnings(within)
    return ExpiryWarningsResponse(
        credentials=[VisitorCredentialOut.from_record(c) for c in credentials]
    )


@router.get("/visitor-credentials/active", response_model=ActiveVisitorsResponse)
def list_active_credentials(services: AccessServices = Depends(get_services)):
    """Visitors holding a credential that is still valid, soonest to expire first."""
    active = services.expirer.list_active()
    return ActiveVisitorsResponse(
        visitors=[
            ActiveVisitorOut(
                credential=VisitorCredentialOut.from_record(entry.credential),
                display_name=entry.identity.display_name,
                document_number=entry.identity.document_number,
            )
            for entry in active
        ]
    )


@router.get("/identities/{identity_id}/visitor-credentials", response_model=VisitorCredentialsResponse)
def list_identity_credentials(identity_id: int, services: AccessServices = Depends(get_services)):
    credentials = services.expirer.credentials_for(identity_id)
    return VisitorCredentialsResponse(
        identity_id=identity_id,
        credentials=[VisitorCredentialOut.from_record(c) for c in credentials],
    )
