from concurrent.futures import ThreadPoolExecutor

import pytest

from conftest import booking_request, make_user, vehicle_request
from lankatours.models import Identity, ReviewCreateRequest, ReviewUpdateRequest
from lankatours.services.eligibility import ALREADY_REVIEWED, ELIGIBLE, NOT_COMPLETED, NOT_OWNER
from lankatours.services.errors import (
    AuthorizationError,
    DuplicateReviewError,
    MismatchError,
    NotFoundError,
    ValidationError,
)
from lankatours.services.ratings import RatingAggregator
from lankatours.services.reviews import ReviewManager, ReviewPolicy


def _review(booking, **overrides) -> ReviewCreateRequest:
    fields = {
        "booking_id": booking.id,
        "target_type": booking.service_type,
        "target_id": booking.service_id,
        "rating": 4,
        "comment": "Knew every temple in Kandy by heart.",
        "strengths": ["knowledge", "Punctuality"],
    }
    fields.update(overrides)
    return ReviewCreateRequest(**fields)


def test_eligibility_reasons(market, tourist, guide, guide_owner, completed_booking):
    pending = market.bookings.create(tourist, booking_request("guide", guide.id))
    assert market.eligibility.check(pending.id, tourist.user_id).reason == NOT_COMPLETED
    assert market.eligibility.check(completed_booking.id, guide_owner.user_id).reason == NOT_OWNER

    check = market.eligibility.check(completed_booking.id, tourist.user_id)
    assert check.eligible is True
    assert check.reason == ELIGIBLE
    assert check.target_id == guide.id
    assert check.expires_at is not None

    market.reviews.create_review(tourist, _review(completed_booking))
    check = market.eligibility.check(completed_booking.id, tourist.user_id)
    assert check.eligible is False
    assert check.reason == ALREADY_REVIEWED

    with pytest.raises(NotFoundError):
        market.eligibility.check("bk_missing", tourist.user_id)


def test_create_review_marks_booking_and_grant(market, tourist, guide, guide_owner, completed_booking):
    review = market.reviews.create_review(tourist, _review(completed_booking, title="  "))
    assert review.title == "Review for guide"
    assert review.strengths == ["knowledge", "punctuality"]
    assert review.target_owner_id == guide_owner.user_id
    assert review.service_date == completed_booking.start_at

    assert market.bookings.get(completed_booking.id, tourist).reviewed is True
    with market.database.session() as session:
        grant = session.eligibility.first(booking_id=completed_booking.id)
    assert grant.review_submitted is True

    refreshed = market.catalog.get_guide(guide.id)
    assert refreshed.rating == 4.0
    assert refreshed.total_reviews == 1


def test_second_review_is_rejected(market, tourist, completed_booking):
    market.reviews.create_review(tourist, _review(completed_booking))
    with pytest.raises(DuplicateReviewError):
        market.reviews.create_review(tourist, _review(completed_booking, rating=1))
    assert len(market.reviews.list_for_author(tourist.user_id)) == 1


def test_review_rejected_for_pending_booking_or_other_user(market, tourist, guide, guide_owner):
    pending = market.bookings.create(tourist, booking_request("guide", guide.id))
    with pytest.raises(ValidationError):
        market.reviews.create_review(tourist, _review(pending))
    with pytest.raises(AuthorizationError):
        market.reviews.create_review(guide_owner, _review(pending))
    with pytest.raises(NotFoundError):
        market.reviews.create_review(tourist, _review(pending, booking_id="bk_missing"))


def test_review_target_must_match_booking(market, tourist, completed_booking):
    driver = make_user(market, "Driver")
    vehicle = market.catalog.register_vehicle(driver, vehicle_request())

    with pytest.raises(MismatchError):
        market.reviews.create_review(
            tourist,
            _review(completed_booking, target_type="vehicle", target_id=vehicle.id, strengths=[]),
        )
    assert market.catalog.get_vehicle(vehicle.id).total_reviews == 0
    assert market.bookings.get(completed_booking.id, tourist).reviewed is False


def test_review_input_policy(market, tourist, completed_booking):
    with pytest.raises(ValidationError):
        market.reviews.create_review(tourist, _review(completed_booking, rating=6))
    with pytest.raises(ValidationError):
        market.reviews.create_review(tourist, _review(completed_booking, comment="great"))
    with pytest.raises(ValidationError):
        market.reviews.create_review(tourist, _review(completed_booking, comment="x" * 501))
    with pytest.raises(ValidationError):
        market.reviews.create_review(tourist, _review(completed_booking, strengths=["driving-skills"]))
    with pytest.raises(ValidationError):
        market.reviews.create_review(tourist, _review(completed_booking, target_type="boat"))


def test_zero_minimum_makes_comment_optional(market, tourist, completed_booking):
    manager = ReviewManager(market.database, policy=ReviewPolicy(min_comment_length=0), clock=market.clock)
    review = manager.create_review(tourist, _review(completed_booking, comment=""))
    assert review.comment == ""


def test_update_review_by_author_and_reply_by_owner(market, tourist, guide, guide_owner, completed_booking):
    review = market.reviews.create_review(tourist, _review(completed_booking))

    updated = market.reviews.update_review(review.id, tourist, ReviewUpdateRequest(rating=5))
    assert updated.rating == 5
    assert market.catalog.get_guide(guide.id).rating == 5.0

    with pytest.raises(AuthorizationError):
        market.reviews.update_review(review.id, guide_owner, ReviewUpdateRequest(rating=1))
    with pytest.raises(AuthorizationError):
        market.reviews.update_review(review.id, tourist, ReviewUpdateRequest(reply="Thanks!"))

    replied = market.reviews.update_review(review.id, guide_owner, ReviewUpdateRequest(reply="Thank you!"))
    assert replied.reply == "Thank you!"
    assert replied.replied_at is not None

    with pytest.raises(ValidationError):
        market.reviews.update_review(review.id, tourist, ReviewUpdateRequest())
    with pytest.raises(NotFoundError):
        market.reviews.update_review("rv_missing", tourist, ReviewUpdateRequest(rating=3))


def test_hiding_review_removes_it_from_aggregate(market, tourist, guide, completed_booking):
    review = market.reviews.create_review(tourist, _review(completed_booking))
    market.reviews.update_review(review.id, tourist, ReviewUpdateRequest(is_public=False))

    refreshed = market.catalog.get_guide(guide.id)
    assert refreshed.rating == 0.0
    assert refreshed.total_reviews == 0
    assert market.reviews.list_for_target("guide", guide.id).pagination.total == 0


def test_delete_review_resets_aggregate_and_eligibility(market, tourist, guide, guide_owner, completed_booking):
    review = market.reviews.create_review(tourist, _review(completed_booking))
    with pytest.raises(AuthorizationError):
        market.reviews.delete_review(review.id, guide_owner)

    market.reviews.delete_review(review.id, tourist)
    refreshed = market.catalog.get_guide(guide.id)
    assert refreshed.rating == 0.0
    assert refreshed.total_reviews == 0
    assert market.bookings.get(completed_booking.id, tourist).reviewed is False
    assert market.eligibility.check(completed_booking.id, tourist.user_id).eligible is True

    again = market.reviews.create_review(tourist, _review(completed_booking, rating=2))
    admin = Identity(user_id="usr_admin", role="admin")
    market.reviews.delete_review(again.id, admin)
    with pytest.raises(NotFoundError):
        market.reviews.delete_review(again.id, admin)


def test_listing_reviews_by_author_and_service_owner(market, tourist, guide_owner, completed_booking):
    review = market.reviews.create_review(tourist, _review(completed_booking))
    assert [r.id for r in market.reviews.list_for_author(tourist.user_id)] == [review.id]
    assert [r.id for r in market.reviews.list_for_service_owner(guide_owner.user_id)] == [review.id]
    assert market.reviews.list_for_service_owner(tourist.user_id) == []


class _BrokenAggregator(RatingAggregator):
    def recompute_within(self, session, target_type, target_id):
        raise NotFoundError(f"{target_type.title()} not found")


def test_failed_recompute_rolls_back_review(market, tourist, guide, completed_booking):
    manager = ReviewManager(market.database, aggregator=_BrokenAggregator(market.database), clock=market.clock)
    with pytest.raises(NotFoundError):
        manager.create_review(tourist, _review(completed_booking))
    assert market.reviews.list_for_author(tourist.user_id) == []
    assert market.bookings.get(completed_booking.id, tourist).reviewed is False


def test_concurrent_reviews_of_one_booking_leave_one_review(market, tourist, guide, completed_booking):
    def attempt(rating):
        try:
            return market.reviews.create_review(tourist, _review(completed_booking, rating=rating))
        except DuplicateReviewError:
            return None

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(attempt, [1, 2, 3, 4, 5, 5, 4, 3]))

    created = [review for review in results if review is not None]
    assert len(created) == 1
    assert len(market.reviews.list_for_author(tourist.user_id)) == 1
    refreshed = market.catalog.get_guide(guide.id)
    assert refreshed.total_reviews == 1
    assert refreshed.rating == float(created[0].rating)
