from typing import Optional

from fastapi import APIRouter, Depends, Query

from lankatours.auth import current_identity
from lankatours.models import (
    Booking,
    BookingActionRequest,
    BookingCompletion,
    BookingCreateRequest,
    BookingStatusChange,
    BookingStatusUpdateRequest,
    Identity,
)
from lankatours.routers.errors import raise_http_error
from lankatours.services.errors import MarketplaceError
from lankatours.services.marketplace import marketplace

router = APIRouter(prefix="/bookings", tags=["bookings"])


@router.post("", response_model=Booking, status_code=201)
def create_booking(request: BookingCreateRequest, identity: Identity = Depends(current_identity)):
    try:
        return marketplace.bookings.create(identity, request)
    except MarketplaceError as exc:
        raise_http_error(exc)


@router.get("", response_model=list[Booking])
def list_bookings(
    role: Optional[str] = Query(default=None),
    identity: Identity = Depends(current_identity),
):
    try:
        return marketplace.bookings.list_for_user(identity, role=role)
    except MarketplaceError as exc:
        raise_http_error(exc)


@router.get("/{booking_id}", response_model=Booking)
def get_booking(booking_id: str, identity: Identity = Depends(current_identity)):
    try:
        return marketplace.bookings.get(booking_id, identity)
    except MarketplaceError as exc:
        raise_http_error(exc)


@router.get("/{booking_id}/history", response_model=list[BookingStatusChange])
def booking_history(booking_id: str, identity: Identity = Depends(current_identity)):
    try:
        return marketplace.bookings.history(booking_id, identity)
    except MarketplaceError as exc:
        raise_http_error(exc)


@router.post("/{booking_id}/status", response_model=Booking)
def update_booking_status(
    booking_id: str,
    request: BookingStatusUpdateRequest,
    identity: Identity = Depends(current_identity),
):
    try:
        return marketplace.bookings.transition(booking_id, request.status, identity, note=request.note)
    except MarketplaceError as exc:
        raise_http_error(exc)


@router.post("/{booking_id}/cancel", response_model=Booking)
def cancel_booking(
    booking_id: str,
    request: Optional[BookingActionRequest] = None,
    identity: Identity = Depends(current_identity),
):
    note = request.note if request else ""
    try:
        return marketplace.bookings.cancel(booking_id, identity, note=note)
    except MarketplaceError as exc:
        raise_http_error(exc)


@router.post("/{booking_id}/complete", response_model=BookingCompletion)
def complete_booking(
    booking_id: str,
    request: Optional[BookingActionRequest] = None,
    identity: Identity = Depends(current_identity),
):
    note = request.note if request else ""
    try:
        return marketplace.bookings.complete(booking_id, identity, note=note)
    except MarketplaceError as exc:
        raise_http_error(exc)
