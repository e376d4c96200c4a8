# =======================================================================================
# campus_access/api/dependencies.py - FastAPI Dependencies
# =======================================================================================
from fastapi import Request
from ..services import AccessServices

def get_services(request: Request) -> AccessServices:
    """Service container built once in create_app()."""
    return request.app.state.services
