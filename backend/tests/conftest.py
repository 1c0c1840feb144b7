import os
import sys
import tempfile
from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

# The app module builds its store from the environment at import time.
os.environ.setdefault("LANKATOURS_DB_PATH", os.path.join(tempfile.mkdtemp(prefix="lankatours-"), "test.sqlite3"))

sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from lankatours.models import (
    BookingCreateRequest,
    GuideRegisterRequest,
    Identity,
    RegisterRequest,
    VehicleRegisterRequest,
)
from lankatours.services.marketplace import Marketplace

FIXED_NOW = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def market(tmp_path):
    return Marketplace.from_path(str(tmp_path / "market.sqlite3"), clock=lambda: FIXED_NOW)


def make_user(market: Marketplace, name: str = "Tourist") -> Identity:
    user = market.accounts.register(
        RegisterRequest(name=name, email=f"{name.lower()}_{uuid4().hex[:6]}@example.com", password="secret123")
    )
    return market.accounts.identity(user.id)


def guide_request(**overrides) -> GuideRegisterRequest:
    fields = {
        "guide_id": f"SLTDA-{uuid4().hex[:8]}",
        "experience": 6,
        "languages": ["English", "Sinhala"],
        "specialties": ["cultural"],
        "bio": "Licensed guide for the hill country.",
        "hourly_rate": 40,
        "daily_rate": 250,
        "locations": ["Kandy"],
    }
    fields.update(overrides)
    return GuideRegisterRequest(**fields)


def vehicle_request(**overrides) -> VehicleRegisterRequest:
    fields = {
        "vehicle_type": "van",
        "vehicle_model": "Toyota KDH",
        "vehicle_year": 2019,
        "license_plate": f"wp-{uuid4().hex[:6]}",
        "capacity": 9,
        "amenities": ["ac", "wifi"],
        "hourly_rate": 30,
        "daily_rate": 180,
        "driver_name": "Nimal",
        "driver_phone": "+94771234567",
        "locations": ["Colombo", "Galle"],
    }
    fields.update(overrides)
    return VehicleRegisterRequest(**fields)


def booking_request(service_type: str, service_id: str, **overrides) -> BookingCreateRequest:
    fields = {
        "service_type": service_type,
        "service_id": service_id,
        "start_at": FIXED_NOW + timedelta(days=3),
        "end_at": FIXED_NOW + timedelta(days=4),
        "party_size": 2,
        "contact_name": "Asha Perera",
        "contact_email": "asha@example.com",
        "contact_phone": "+94770000000",
        "total_price": 250,
    }
    fields.update(overrides)
    return BookingCreateRequest(**fields)


@pytest.fixture
def tourist(market):
    return make_user(market, "Tourist")


@pytest.fixture
def guide_owner(market):
    return make_user(market, "Guide")


@pytest.fixture
def guide(market, guide_owner):
    return market.catalog.register_guide(guide_owner, guide_request())


@pytest.fixture
def completed_booking(market, tourist, guide_owner, guide):
    booking = market.bookings.create(tourist, booking_request("guide", guide.id))
    market.bookings.transition(booking.id, "confirmed", guide_owner)
    return market.bookings.complete(booking.id, guide_owner).booking
