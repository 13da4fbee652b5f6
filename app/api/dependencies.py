"""
FastAPI dependencies.

Builds the explicit per-request values (service, acting patient, requester
location) that route handlers pass into the core.
"""

import logging
from typing import Optional

from fastapi import Depends, Header, HTTPException, Query, Request, status

from app.config import settings
from app.core.geo import Location, acquire_location, get_geolocation_client
from app.core.service import ConsultationService, RequestContext
from app.infra.database import async_session_factory

logger = logging.getLogger(__name__)

_service: Optional[ConsultationService] = None


def get_service() -> ConsultationService:
    """Get singleton ConsultationService."""
    global _service
    if _service is None:
        _service = ConsultationService(async_session_factory)
    return _service


def require_patient_id(
    x_patient_id: Optional[str] = Header(
        default=None,
        alias="X-Patient-ID",
        description="Authenticated patient identifier",
    ),
) -> str:
    """Acting patient, set by the authentication layer in front of this API."""
    if not x_patient_id or not x_patient_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-Patient-ID header is required",
        )
    return x_patient_id.strip()


async def get_requester_location(
    request: Request,
    lat: Optional[float] = Query(default=None, ge=-90, le=90, description="Patient latitude"),
    lng: Optional[float] = Query(default=None, ge=-180, le=180, description="Patient longitude"),
) -> Optional[Location]:
    """
    Requester location for this request.

    Explicit coordinates win. Otherwise the IP geolocation service is asked,
    bounded by location_timeout_seconds; any failure means "unknown".
    """
    if lat is not None and lng is not None:
        return Location.parse(lat, lng)

    client = get_geolocation_client()
    if not client.enabled or request.client is None:
        return None

    ip_address = request.client.host
    return await acquire_location(
        lambda: client.lookup(ip_address),
        timeout=settings.location_timeout_seconds,
    )


async def get_request_context(
    x_patient_id: Optional[str] = Header(default=None, alias="X-Patient-ID"),
    location: Optional[Location] = Depends(get_requester_location),
) -> RequestContext:
    """Optional patient plus location, for endpoints that work anonymously."""
    patient_id = x_patient_id.strip() if x_patient_id and x_patient_id.strip() else None
    return RequestContext(patient_id=patient_id, location=location)
