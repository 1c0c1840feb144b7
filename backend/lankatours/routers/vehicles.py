from typing import Optional

from fastapi import APIRouter, Depends, Query

from lankatours.auth import current_identity
from lankatours.models import (
    AvailabilityUpdateRequest,
    Identity,
    Vehicle,
    VehicleFilters,
    VehicleListing,
    VehicleRegisterRequest,
)
from lankatours.routers.errors import raise_http_error
from lankatours.services.errors import MarketplaceError
from lankatours.services.marketplace import marketplace

router = APIRouter(prefix="/vehicles", tags=["vehicles"])


@router.post("/register", response_model=Vehicle, status_code=201)
def register_vehicle(request: VehicleRegisterRequest, identity: Identity = Depends(current_identity)):
    try:
        return marketplace.catalog.register_vehicle(identity, request)
    except MarketplaceError as exc:
        raise_http_error(exc)


@router.get("", response_model=VehicleListing)
def list_vehicles(
    vehicle_type: Optional[str] = Query(default=None, alias="vehicleType"),
    location: Optional[str] = Query(default=None),
    min_capacity: Optional[int] = Query(default=None, alias="minCapacity"),
    max_rate: Optional[float] = Query(default=None, alias="maxRate"),
    amenity: Optional[str] = Query(default=None),
):
    filters = VehicleFilters(
        vehicle_type=vehicle_type,
        location=location,
        min_capacity=min_capacity,
        max_rate=max_rate,
        amenity=amenity,
    )
    return marketplace.catalog.list_vehicles(filters)


@router.get("/me", response_model=Vehicle)
def my_vehicle(identity: Identity = Depends(current_identity)):
    try:
        return marketplace.catalog.get_my_vehicle(identity)
    except MarketplaceError as exc:
        raise_http_error(exc)


@router.get("/{vehicle_id}", response_model=Vehicle)
def get_vehicle(vehicle_id: str):
    try:
        return marketplace.catalog.get_vehicle(vehicle_id)
    except MarketplaceError as exc:
        raise_http_error(exc)


@router.post("/{vehicle_id}/availability", response_model=Vehicle)
def set_vehicle_availability(
    vehicle_id: str,
    request: AvailabilityUpdateRequest,
    identity: Identity = Depends(current_identity),
):
    try:
        return marketplace.catalog.set_availability("vehicle", vehicle_id, identity, request.is_available)
    except MarketplaceError as exc:
        raise_http_error(exc)
