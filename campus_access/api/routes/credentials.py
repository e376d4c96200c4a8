# =======================================================================================
# campus_access/api/routes/credentials.py - Credential Issuing Endpoints
# =======================================================================================
from fastapi import APIRouter, Depends
from ...models.schemas import (
    IssueVisitorCredentialRequest,
    MemberTokenResponse,
    VisitorTokenResponse,
)
from ...services import AccessServices
from ..dependencies import get_services

router = APIRouter()


@router.post("/identities/{identity_id}/member-token", response_model=MemberTokenResponse)
def issue_member_token(identity_id: int, services: AccessServices = Depends(get_services)):
    """Replace the member's printed token (lost or reissued card)."""
    identity = services.identities.get(identity_id)
    token = services.issuer.issue_member_token(identity)
    return MemberTokenResponse(identity_id=identity_id, token=token)


@router.post("/identities/{identity_id}/visitor-credentials", response_model=VisitorTokenResponse)
def issue_visitor_credential(
    identity_id: int,
    request: IssueVisitorCredentialRequest,
    services: AccessServices = Depends(get_services),
):
    identity = services.identities.get(identity_id)
    grant = services.issuer.issue_visitor_token(
        identity, request.validity_minutes, issued_by=request.issued_by
    )
    return VisitorTokenResponse(
        credential_id=grant.credential_id,
        identity_id=grant.identity_id,
        token=grant.token,
        issued_at=grant.issued_at,
        expires_at=grant.expires_at,
    )
