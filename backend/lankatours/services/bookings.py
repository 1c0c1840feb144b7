import logging
from datetime import timedelta
from typing import Dict, List, Optional, Set, Tuple
from uuid import uuid4

from lankatours import settings
from lankatours.models import (
    Booking,
    BookingCompletion,
    BookingCreateRequest,
    BookingStatusChange,
    Identity,
    ReviewEligibility,
)
from lankatours.services.catalog import TARGET_TYPES, load_target
from lankatours.services.clock import Clock, as_utc, utc_now
from lankatours.services.database import Database, Session
from lankatours.services.errors import (
    AlreadyCompletedError,
    AuthorizationError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)

BOOKING_TRANSITIONS: Dict[str, Set[str]] = {
    "pending": {"confirmed", "cancelled"},
    "confirmed": {"completed", "cancelled"},
    "completed": set(),
    "cancelled": set(),
}

BOOKING_TERMINAL_STATUSES = {"completed", "cancelled"}
PROVIDER_ONLY_STATUSES = {"confirmed", "completed"}
MAX_NOTES_LENGTH = 500


def assert_transition(current: str, target: str) -> None:
    if current == "completed" and target == "completed":
        raise AlreadyCompletedError("Booking is already completed")
    if current in BOOKING_TERMINAL_STATUSES:
        raise InvalidTransitionError(f"Booking is already {current}")
    if target not in BOOKING_TRANSITIONS.get(current, set()):
        raise InvalidTransitionError(f"Invalid status transition: {current} -> {target}")


class BookingLifecycleManager:
    def __init__(
        self,
        database: Database,
        *,
        clock: Clock = utc_now,
        eligibility_days: int = settings.ELIGIBILITY_DAYS,
        max_party_size: int = settings.MAX_PARTY_SIZE,
    ) -> None:
        self.database = database
        self.clock = clock
        self.eligibility_days = eligibility_days
        self.max_party_size = max_party_size

    def _validate_request(self, request: BookingCreateRequest) -> None:
        start_at = as_utc(request.start_at)
        end_at = as_utc(request.end_at)
        if request.service_type not in TARGET_TYPES:
            raise ValidationError("Invalid service type. Allowed: guide, vehicle")
        if end_at < start_at:
            raise ValidationError("End date cannot be before start date")
        if start_at < self.clock():
            raise ValidationError("Booking date cannot be in the past")
        if not 1 <= request.party_size <= self.max_party_size:
            raise ValidationError(f"Party size must be between 1 and {self.max_party_size}")
        for field, value in (
            ("contact_name", request.contact_name),
            ("contact_email", request.contact_email),
            ("contact_phone", request.contact_phone),
        ):
            if not value.strip():
                raise ValidationError(f"{field} is required")
        if len(request.notes) > MAX_NOTES_LENGTH:
            raise ValidationError(f"Notes cannot exceed {MAX_NOTES_LENGTH} characters")
        if request.total_price < 0:
            raise ValidationError("Total cannot be negative")

    def _record_change(
        self,
        session: Session,
        booking_id: str,
        actor_user_id: str,
        from_status: str,
        to_status: str,
        note: str,
    ) -> None:
        session.booking_history.insert(
            BookingStatusChange(
                id=f"bsh_{uuid4().hex[:10]}",
                booking_id=booking_id,
                actor_user_id=actor_user_id,
                from_status=from_status,
                to_status=to_status,
                note=note,
                created_at=self.clock(),
            )
        )

    def _load_visible(self, session: Session, booking_id: str, actor: Identity) -> Booking:
        booking = session.bookings.get(booking_id)
        if not booking:
            raise NotFoundError("Booking not found")
        if not actor.is_admin and actor.user_id not in {booking.tourist_id, booking.provider_user_id}:
            raise AuthorizationError("Not authorized to view this booking")
        return booking

    def create(self, tourist: Identity, request: BookingCreateRequest) -> Booking:
        self._validate_request(request)
        now = self.clock()
        with self.database.session() as session:
            target = load_target(session, request.service_type, request.service_id)
            if not target.is_available:
                raise ValidationError(f"{request.service_type.title()} is not available for booking")
            if target.owner_user_id == tourist.user_id:
                raise ValidationError("You cannot book your own service")

            booking = Booking(
                id=f"bk_{uuid4().hex[:10]}",
                tourist_id=tourist.user_id,
                service_type=request.service_type,
                service_id=request.service_id,
                provider_user_id=target.owner_user_id,
                start_at=as_utc(request.start_at),
                end_at=as_utc(request.end_at),
                party_size=request.party_size,
                contact_name=request.contact_name.strip(),
                contact_email=request.contact_email.strip().lower(),
                contact_phone=request.contact_phone.strip(),
                pickup_location=request.pickup_location.strip(),
                notes=request.notes.strip(),
                total_price=request.total_price,
                status="pending",
                created_at=now,
                updated_at=now,
            )
            session.bookings.insert(booking)
            self._record_change(session, booking.id, tourist.user_id, "none", booking.status, "booking requested")
        logger.info("Booking %s created by %s for %s %s", booking.id, tourist.user_id, booking.service_type, booking.service_id)
        return booking

    def get(self, booking_id: str, actor: Identity) -> Booking:
        with self.database.session() as session:
            return self._load_visible(session, booking_id, actor)

    def history(self, booking_id: str, actor: Identity) -> List[BookingStatusChange]:
        with self.database.session() as session:
            self._load_visible(session, booking_id, actor)
            return session.booking_history.find(booking_id=booking_id)

    def list_for_user(self, actor: Identity, role: Optional[str] = None) -> List[Booking]:
        allowed_roles = {None, "all", "tourist", "provider"}
        normalized_role = role.strip().lower() if role else None
        if normalized_role not in allowed_roles:
            raise ValidationError("Invalid role value. Allowed: all, tourist, provider")

        with self.database.session() as session:
            bookings: Dict[str, Booking] = {}
            if normalized_role in {None, "all", "tourist"}:
                for booking in session.bookings.find(tourist_id=actor.user_id):
                    bookings[booking.id] = booking
            if normalized_role in {None, "all", "provider"}:
                for booking in session.bookings.find(provider_user_id=actor.user_id):
                    bookings[booking.id] = booking
        return sorted(bookings.values(), key=lambda b: b.created_at, reverse=True)

    def _assert_participant(self, booking: Booking, new_status: str, actor: Identity) -> None:
        # Outsiders are rejected before any status check.
        if actor.is_admin or actor.user_id in {booking.tourist_id, booking.provider_user_id}:
            return
        logger.warning("User %s denied %s on booking %s", actor.user_id, new_status, booking.id)
        raise AuthorizationError("Not authorized to update this booking")

    def _authorize(self, booking: Booking, new_status: str, actor: Identity) -> None:
        if actor.is_admin:
            return
        if new_status in PROVIDER_ONLY_STATUSES and actor.user_id != booking.provider_user_id:
            logger.warning("User %s denied %s on booking %s", actor.user_id, new_status, booking.id)
            raise AuthorizationError("Only the service provider can apply this status")

    def _apply_transition(
        self,
        session: Session,
        booking_id: str,
        new_status: str,
        actor: Identity,
        note: str,
    ) -> Tuple[Booking, Optional[ReviewEligibility]]:
        booking = session.bookings.get(booking_id)
        if not booking:
            raise NotFoundError("Booking not found")
        self._assert_participant(booking, new_status, actor)
        assert_transition(booking.status, new_status)
        self._authorize(booking, new_status, actor)

        now = self.clock()
        changes = {"status": new_status, "updated_at": now}
        grant: Optional[ReviewEligibility] = None
        if new_status == "completed":
            changes["completed_at"] = now
            grant = ReviewEligibility(
                id=f"elg_{uuid4().hex[:10]}",
                booking_id=booking.id,
                tourist_id=booking.tourist_id,
                target_type=booking.service_type,
                target_id=booking.service_id,
                expires_at=now + timedelta(days=self.eligibility_days),
                created_at=now,
            )
            session.eligibility.insert(grant)

        updated = booking.model_copy(update=changes)
        session.bookings.save(updated)
        self._record_change(session, booking.id, actor.user_id, booking.status, new_status, note)
        return updated, grant

    def transition(self, booking_id: str, new_status: str, actor: Identity, note: str = "") -> Booking:
        with self.database.session() as session:
            booking, _ = self._apply_transition(session, booking_id, new_status, actor, note)
        logger.info("Booking %s moved to %s by %s", booking_id, new_status, actor.user_id)
        return booking

    def cancel(self, booking_id: str, actor: Identity, note: str = "") -> Booking:
        return self.transition(booking_id, "cancelled", actor, note=note)

    def complete(self, booking_id: str, actor: Identity, note: str = "") -> BookingCompletion:
        with self.database.session() as session:
            booking, grant = self._apply_transition(session, booking_id, "completed", actor, note)
        logger.info("Booking %s completed; review eligibility %s expires %s", booking_id, grant.id, grant.expires_at)
        return BookingCompletion(booking=booking, review_eligibility=grant)
