# =======================================================================================
# campus_access/api/routes/identities.py - Identity Management Endpoints
# =======================================================================================
from fastapi import APIRouter, Depends, Query, status
from ...models.schemas import (
    CreateIdentityRequest,
    IdentityOut,
    IdentitySearchResponse,
    LifecycleUpdateRequest,
)
from ...services import AccessServices
from ..dependencies import get_services

router = APIRouter()


@router.post("/identities", response_model=IdentityOut, status_code=status.HTTP_201_CREATED)
def create_identity(request: CreateIdentityRequest, services: AccessServices = Depends(get_services)):
    identity = services.identities.create_identity(request)
    return IdentityOut.from_record(identity)


# ---- search endpoint used by the guard's lookup box ----

@router.get("/identities/search", response_model=IdentitySearchResponse)
def search_identities(
    query: str = Query(..., description="Document number or credential token"),
    services: AccessServices = Depends(get_services),
):
    found = services.identities.search(query)
    return IdentitySearchResponse(
        success=True,
        data=[IdentityOut.from_record(i) for i in found],
    )


@router.patch("/identities/{identity_id}/lifecycle", response_model=IdentityOut)
def update_lifecycle(
    identity_id: int,
    request: LifecycleUpdateRequest,
    services: AccessServices = Depends(get_services),
):
    identity = services.identities.update_lifecycle(identity_id, request.lifecycle_state)
    return IdentityOut.from_record(identity)
