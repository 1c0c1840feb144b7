from typing import Optional

from fastapi import APIRouter, Depends, Query

from lankatours.auth import current_identity
from lankatours.models import (
    AvailabilityUpdateRequest,
    Guide,
    GuideFilters,
    GuideListing,
    GuideRegisterRequest,
    Identity,
)
from lankatours.routers.errors import raise_http_error
from lankatours.services.errors import MarketplaceError
from lankatours.services.marketplace import marketplace

router = APIRouter(prefix="/guides", tags=["guides"])


@router.post("/register", response_model=Guide, status_code=201)
def register_guide(request: GuideRegisterRequest, identity: Identity = Depends(current_identity)):
    try:
        return marketplace.catalog.register_guide(identity, request)
    except MarketplaceError as exc:
        raise_http_error(exc)


@router.get("", response_model=GuideListing)
def list_guides(
    location: Optional[str] = Query(default=None),
    min_experience: Optional[int] = Query(default=None, alias="minExperience"),
    max_rate: Optional[float] = Query(default=None, alias="maxRate"),
    language: Optional[str] = Query(default=None),
    specialty: Optional[str] = Query(default=None),
):
    filters = GuideFilters(
        location=location,
        min_experience=min_experience,
        max_rate=max_rate,
        language=language,
        specialty=specialty,
    )
    return marketplace.catalog.list_guides(filters)


@router.get("/me", response_model=Guide)
def my_guide(identity: Identity = Depends(current_identity)):
    try:
        return marketplace.catalog.get_my_guide(identity)
    except MarketplaceError as exc:
        raise_http_error(exc)


@router.get("/{guide_id}", response_model=Guide)
def get_guide(guide_id: str):
    try:
        return marketplace.catalog.get_guide(guide_id)
    except MarketplaceError as exc:
        raise_http_error(exc)


@router.post("/{guide_id}/availability", response_model=Guide)
def set_guide_availability(
    guide_id: str,
    request: AvailabilityUpdateRequest,
    identity: Identity = Depends(current_identity),
):
    try:
        return marketplace.catalog.set_availability("guide", guide_id, identity, request.is_available)
    except MarketplaceError as exc:
        raise_http_error(exc)
