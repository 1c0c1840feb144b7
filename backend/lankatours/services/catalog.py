import logging
from typing import Iterable, List, Optional, Union
from uuid import uuid4

from lankatours.models import (
    Guide,
    GuideFilters,
    GuideListing,
    GuideRegisterRequest,
    Identity,
    Vehicle,
    VehicleFilters,
    VehicleListing,
    VehicleRegisterRequest,
)
from lankatours.services.clock import Clock, utc_now
from lankatours.services.database import Database, Repository, Session
from lankatours.services.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

TARGET_TYPES = {"guide", "vehicle"}
VEHICLE_TYPES = {"car", "van", "tuktuk", "bus", "suv"}
VEHICLE_AMENITIES = {"ac", "wifi", "charging-ports", "english-speaking-driver", "child-seats", "cooler"}
MIN_VEHICLE_YEAR = 1990
MAX_BIO_LENGTH = 500

ServiceTarget = Union[Guide, Vehicle]


def target_repository(session: Session, target_type: str) -> Repository:
    if target_type == "guide":
        return session.guides
    if target_type == "vehicle":
        return session.vehicles
    raise ValidationError("Invalid target type. Allowed: guide, vehicle")


def load_target(session: Session, target_type: str, target_id: str) -> ServiceTarget:
    target = target_repository(session, target_type).get(target_id)
    if not target:
        raise NotFoundError(f"{target_type.title()} not found")
    return target


def owned_target(session: Session, owner_user_id: str) -> Optional[ServiceTarget]:
    return session.guides.first(owner_user_id=owner_user_id) or session.vehicles.first(owner_user_id=owner_user_id)


def filter_guides(guides: Iterable[Guide], filters: GuideFilters) -> List[Guide]:
    result: List[Guide] = []
    for guide in guides:
        if filters.location and filters.location not in guide.locations:
            continue
        if filters.min_experience is not None and guide.experience < filters.min_experience:
            continue
        if filters.max_rate is not None and guide.hourly_rate > filters.max_rate:
            continue
        if filters.language and filters.language not in guide.languages:
            continue
        if filters.specialty and filters.specialty not in guide.specialties:
            continue
        result.append(guide)
    return result


def filter_vehicles(vehicles: Iterable[Vehicle], filters: VehicleFilters) -> List[Vehicle]:
    result: List[Vehicle] = []
    for vehicle in vehicles:
        if filters.vehicle_type and vehicle.vehicle_type != filters.vehicle_type:
            continue
        if filters.location and filters.location not in vehicle.locations:
            continue
        if filters.min_capacity is not None and vehicle.capacity < filters.min_capacity:
            continue
        if filters.max_rate is not None and vehicle.hourly_rate > filters.max_rate:
            continue
        if filters.amenity and filters.amenity not in vehicle.amenities:
            continue
        result.append(vehicle)
    return result


def collect_facet(items: Iterable[ServiceTarget], field: str) -> List[str]:
    """Distinct, sorted values of a list (or scalar) field across all items."""
    values: set[str] = set()
    for item in items:
        value = getattr(item, field)
        if isinstance(value, str):
            values.add(value)
        else:
            values.update(value)
    return sorted(values)


def _clean_list(values: Iterable[str]) -> List[str]:
    cleaned: List[str] = []
    for value in values:
        item = value.strip()
        if item and item not in cleaned:
            cleaned.append(item)
    return cleaned


class CatalogService:
    def __init__(self, database: Database, *, clock: Clock = utc_now) -> None:
        self.database = database
        self.clock = clock

    def _claim_provider_role(self, session: Session, owner: Identity, role: str) -> None:
        if owner.is_admin:
            raise AuthorizationError("Administrators cannot register service profiles")
        if owned_target(session, owner.user_id):
            raise ConflictError("You already have a service profile")
        user = session.users.get(owner.user_id)
        if not user:
            raise NotFoundError("User not found")
        session.users.save(user.model_copy(update={"role": role}))

    def register_guide(self, owner: Identity, request: GuideRegisterRequest) -> Guide:
        guide_id = request.guide_id.strip()
        languages = _clean_list(request.languages)
        if not guide_id:
            raise ValidationError("Please add your government issued guide ID")
        if request.experience < 0:
            raise ValidationError("Experience cannot be negative")
        if not languages:
            raise ValidationError("At least one language is required")
        if request.hourly_rate < 0 or request.daily_rate < 0:
            raise ValidationError("Rates cannot be negative")
        if len(request.bio) > MAX_BIO_LENGTH:
            raise ValidationError(f"Bio cannot exceed {MAX_BIO_LENGTH} characters")

        guide = Guide(
            id=f"gd_{uuid4().hex[:10]}",
            owner_user_id=owner.user_id,
            guide_id=guide_id,
            experience=request.experience,
            languages=languages,
            specialties=_clean_list(request.specialties),
            bio=request.bio.strip(),
            hourly_rate=request.hourly_rate,
            daily_rate=request.daily_rate,
            locations=_clean_list(request.locations),
            photo=request.photo,
            created_at=self.clock(),
        )
        with self.database.session() as session:
            if session.guides.first(guide_id=guide_id):
                raise ConflictError("Guide ID already registered")
            self._claim_provider_role(session, owner, "guide")
            session.guides.insert(guide)
        logger.info("Registered guide %s for user %s", guide.id, owner.user_id)
        return guide

    def register_vehicle(self, owner: Identity, request: VehicleRegisterRequest) -> Vehicle:
        plate = request.license_plate.strip().upper()
        amenities = _clean_list(request.amenities)
        max_year = self.clock().year + 1
        if request.vehicle_type not in VEHICLE_TYPES:
            raise ValidationError("Invalid vehicle type. Allowed: " + ", ".join(sorted(VEHICLE_TYPES)))
        if not request.vehicle_model.strip():
            raise ValidationError("Please add vehicle model")
        if not MIN_VEHICLE_YEAR <= request.vehicle_year <= max_year:
            raise ValidationError(f"Vehicle year must be between {MIN_VEHICLE_YEAR} and {max_year}")
        if not plate:
            raise ValidationError("Please add license plate number")
        if request.capacity < 1:
            raise ValidationError("Capacity must be at least 1")
        unknown = [item for item in amenities if item not in VEHICLE_AMENITIES]
        if unknown:
            raise ValidationError("Unknown amenities: " + ", ".join(unknown))
        if request.hourly_rate < 0 or request.daily_rate < 0:
            raise ValidationError("Rates cannot be negative")
        if not request.driver_name.strip() or not request.driver_phone.strip():
            raise ValidationError("Driver name and phone are required")

        vehicle = Vehicle(
            id=f"veh_{uuid4().hex[:10]}",
            owner_user_id=owner.user_id,
            vehicle_type=request.vehicle_type,
            vehicle_model=request.vehicle_model.strip(),
            vehicle_year=request.vehicle_year,
            license_plate=plate,
            capacity=request.capacity,
            amenities=amenities,
            photos=_clean_list(request.photos),
            hourly_rate=request.hourly_rate,
            daily_rate=request.daily_rate,
            driver_name=request.driver_name.strip(),
            driver_phone=request.driver_phone.strip(),
            locations=_clean_list(request.locations),
            created_at=self.clock(),
        )
        with self.database.session() as session:
            if session.vehicles.first(license_plate=plate):
                raise ConflictError("Vehicle with this license plate already registered")
            self._claim_provider_role(session, owner, "vehicle-owner")
            session.vehicles.insert(vehicle)
        logger.info("Registered vehicle %s for user %s", vehicle.id, owner.user_id)
        return vehicle

    def get_guide(self, guide_id: str) -> Guide:
        with self.database.session() as session:
            return load_target(session, "guide", guide_id)

    def get_vehicle(self, vehicle_id: str) -> Vehicle:
        with self.database.session() as session:
            return load_target(session, "vehicle", vehicle_id)

    def get_my_guide(self, owner: Identity) -> Guide:
        with self.database.session() as session:
            guide = session.guides.first(owner_user_id=owner.user_id)
        if not guide:
            raise NotFoundError("No guide profile found")
        return guide

    def get_my_vehicle(self, owner: Identity) -> Vehicle:
        with self.database.session() as session:
            vehicle = session.vehicles.first(owner_user_id=owner.user_id)
        if not vehicle:
            raise NotFoundError("No vehicle profile found")
        return vehicle

    def set_availability(
        self,
        target_type: str,
        target_id: str,
        actor: Identity,
        is_available: bool,
    ) -> ServiceTarget:
        with self.database.session() as session:
            target = load_target(session, target_type, target_id)
            if not actor.is_admin and target.owner_user_id != actor.user_id:
                raise AuthorizationError("Only the owner can change availability")
            updated = target.model_copy(update={"is_available": is_available})
            target_repository(session, target_type).save(updated)
        logger.info("%s %s availability set to %s", target_type, target_id, is_available)
        return updated

    def list_guides(self, filters: Optional[GuideFilters] = None) -> GuideListing:
        with self.database.session() as session:
            guides = session.guides.find(is_available=True)
        items = filter_guides(guides, filters or GuideFilters())
        return GuideListing(
            items=items,
            count=len(items),
            facets={
                "locations": collect_facet(guides, "locations"),
                "languages": collect_facet(guides, "languages"),
                "specialties": collect_facet(guides, "specialties"),
            },
        )

    def list_vehicles(self, filters: Optional[VehicleFilters] = None) -> VehicleListing:
        with self.database.session() as session:
            vehicles = session.vehicles.find(is_available=True)
        items = filter_vehicles(vehicles, filters or VehicleFilters())
        return VehicleListing(
            items=items,
            count=len(items),
            facets={
                "locations": collect_facet(vehicles, "locations"),
                "vehicle_types": collect_facet(vehicles, "vehicle_type"),
                "amenities": collect_facet(vehicles, "amenities"),
            },
        )
