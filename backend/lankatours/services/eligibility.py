from lankatours.models import Booking, EligibilityCheck
from lankatours.services.database import Database, Session
from lankatours.services.errors import NotFoundError

ELIGIBLE = "eligible for review"
NOT_OWNER = "not the booking owner"
NOT_COMPLETED = "booking not completed"
ALREADY_REVIEWED = "already reviewed"


class ReviewEligibilityChecker:
    """Decides whether a booking may receive its one review.

    Authority is the booking itself: it must belong to the requester, be
    completed and have no review yet. The time-boxed grant issued on
    completion is only echoed back as ``expires_at``.
    """

    def __init__(self, database: Database) -> None:
        self.database = database

    def check(self, booking_id: str, requesting_user_id: str) -> EligibilityCheck:
        with self.database.session() as session:
            booking = session.bookings.get(booking_id)
            if not booking:
                raise NotFoundError("Booking not found")
            return self.evaluate(session, booking, requesting_user_id)

    def evaluate(self, session: Session, booking: Booking, requesting_user_id: str) -> EligibilityCheck:
        if booking.tourist_id != requesting_user_id:
            reason = NOT_OWNER
        elif booking.status != "completed":
            reason = NOT_COMPLETED
        elif session.reviews.first(booking_id=booking.id):
            reason = ALREADY_REVIEWED
        else:
            reason = ELIGIBLE

        grant = session.eligibility.first(booking_id=booking.id)
        return EligibilityCheck(
            eligible=reason == ELIGIBLE,
            reason=reason,
            booking_id=booking.id,
            target_type=booking.service_type,
            target_id=booking.service_id,
            expires_at=grant.expires_at if grant else None,
        )
