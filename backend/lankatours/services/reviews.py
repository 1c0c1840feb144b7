import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from uuid import uuid4

from lankatours import settings
from lankatours.models import (
    Identity,
    Pagination,
    Review,
    ReviewCreateRequest,
    ReviewPage,
    ReviewUpdateRequest,
)
from lankatours.services.catalog import TARGET_TYPES, load_target
from lankatours.services.clock import Clock, utc_now
from lankatours.services.database import Database
from lankatours.services.eligibility import (
    ALREADY_REVIEWED,
    NOT_COMPLETED,
    NOT_OWNER,
    ReviewEligibilityChecker,
)
from lankatours.services.errors import (
    AuthorizationError,
    ConflictError,
    DuplicateReviewError,
    MismatchError,
    NotFoundError,
    ValidationError,
)
from lankatours.services.ratings import RatingAggregator

logger = logging.getLogger(__name__)

STRENGTH_TAGS = {
    "guide": {"knowledge", "communication", "punctuality", "friendliness", "professionalism"},
    "vehicle": {"vehicle-condition", "driving-skills", "punctuality", "professionalism"},
}

AUTHOR_FIELDS = {"rating", "title", "comment", "would_recommend", "strengths", "is_public"}
AGGREGATE_FIELDS = {"rating", "is_public"}
MAX_PAGE_SIZE = 50


@dataclass
class ReviewPolicy:
    """Comment bounds apply to the trimmed text; a zero minimum makes the comment optional."""

    min_comment_length: int = settings.REVIEW_MIN_COMMENT_LENGTH
    max_comment_length: int = settings.REVIEW_MAX_COMMENT_LENGTH
    max_title_length: int = 100

    def clean_rating(self, rating: Any) -> int:
        if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
            raise ValidationError("Rating must be a whole number between 1 and 5")
        return rating

    def clean_comment(self, comment: str) -> str:
        text = comment.strip()
        if self.min_comment_length > 0:
            if not text:
                raise ValidationError("Review comment is required")
            if len(text) < self.min_comment_length:
                raise ValidationError(f"Review comment must be at least {self.min_comment_length} characters")
        if len(text) > self.max_comment_length:
            raise ValidationError(f"Review comment cannot exceed {self.max_comment_length} characters")
        return text

    def clean_title(self, title: Optional[str], target_type: str) -> str:
        text = (title or "").strip() or f"Review for {target_type}"
        if len(text) > self.max_title_length:
            raise ValidationError(f"Title cannot exceed {self.max_title_length} characters")
        return text

    def clean_strengths(self, strengths: List[str], target_type: str) -> List[str]:
        allowed = STRENGTH_TAGS[target_type]
        cleaned: List[str] = []
        for tag in strengths:
            value = tag.strip().lower()
            if value not in allowed:
                raise ValidationError(f"Unknown strength for {target_type}: {tag}")
            if value not in cleaned:
                cleaned.append(value)
        return cleaned


class ReviewManager:
    def __init__(
        self,
        database: Database,
        *,
        aggregator: Optional[RatingAggregator] = None,
        eligibility: Optional[ReviewEligibilityChecker] = None,
        policy: Optional[ReviewPolicy] = None,
        clock: Clock = utc_now,
    ) -> None:
        self.database = database
        self.aggregator = aggregator or RatingAggregator(database)
        self.eligibility = eligibility or ReviewEligibilityChecker(database)
        self.policy = policy or ReviewPolicy()
        self.clock = clock

    def create_review(self, author: Identity, request: ReviewCreateRequest) -> Review:
        if request.target_type not in TARGET_TYPES:
            raise ValidationError("Invalid target type. Allowed: guide, vehicle")
        rating = self.policy.clean_rating(request.rating)
        comment = self.policy.clean_comment(request.comment)
        title = self.policy.clean_title(request.title, request.target_type)
        strengths = self.policy.clean_strengths(request.strengths, request.target_type)

        with self.database.session() as session:
            booking = session.bookings.get(request.booking_id)
            if not booking:
                raise NotFoundError("Booking not found")

            # Re-evaluated here, inside the write transaction, rather than trusting an earlier check.
            check = self.eligibility.evaluate(session, booking, author.user_id)
            if check.reason == NOT_OWNER:
                raise AuthorizationError("Not authorized to review this booking")
            if check.reason == NOT_COMPLETED:
                raise ValidationError("Can only review completed bookings")
            if check.reason == ALREADY_REVIEWED:
                logger.warning("Duplicate review attempt on booking %s by %s", booking.id, author.user_id)
                raise DuplicateReviewError("You have already reviewed this booking")

            if request.target_type != booking.service_type or request.target_id != booking.service_id:
                raise MismatchError(f"{request.target_type.title()} not part of this booking")
            target = load_target(session, request.target_type, request.target_id)

            now = self.clock()
            review = Review(
                id=f"rv_{uuid4().hex[:10]}",
                booking_id=booking.id,
                author_id=author.user_id,
                target_type=request.target_type,
                target_id=request.target_id,
                target_owner_id=target.owner_user_id,
                rating=rating,
                title=title,
                comment=comment,
                would_recommend=request.would_recommend,
                strengths=strengths,
                service_date=booking.start_at,
                created_at=now,
                updated_at=now,
            )
            try:
                session.reviews.insert(review)
            except ConflictError as exc:
                raise DuplicateReviewError("You have already reviewed this booking") from exc

            session.bookings.save(booking.model_copy(update={"reviewed": True, "updated_at": now}))
            grant = session.eligibility.first(booking_id=booking.id)
            if grant:
                session.eligibility.save(grant.model_copy(update={"review_submitted": True}))
            self.aggregator.recompute_within(session, review.target_type, review.target_id)

        logger.info("Review %s created for %s %s", review.id, review.target_type, review.target_id)
        return review

    def update_review(self, review_id: str, actor: Identity, patch: ReviewUpdateRequest) -> Review:
        fields: Dict[str, Any] = {
            key: value for key, value in patch.model_dump(exclude_unset=True).items() if value is not None
        }
        if not fields:
            raise ValidationError("No changes supplied")

        with self.database.session() as session:
            review = session.reviews.get(review_id)
            if not review:
                raise NotFoundError("Review not found")

            if AUTHOR_FIELDS & fields.keys() and actor.user_id != review.author_id:
                logger.warning("User %s denied update of review %s", actor.user_id, review_id)
                raise AuthorizationError("Not authorized to update this review")
            if "reply" in fields and actor.user_id != review.target_owner_id:
                logger.warning("User %s denied reply on review %s", actor.user_id, review_id)
                raise AuthorizationError("Only the service owner can reply to this review")

            now = self.clock()
            changes: Dict[str, Any] = {"updated_at": now}
            if "rating" in fields:
                changes["rating"] = self.policy.clean_rating(fields["rating"])
            if "comment" in fields:
                changes["comment"] = self.policy.clean_comment(fields["comment"])
            if "title" in fields:
                changes["title"] = self.policy.clean_title(fields["title"], review.target_type)
            if "strengths" in fields:
                changes["strengths"] = self.policy.clean_strengths(fields["strengths"], review.target_type)
            if "would_recommend" in fields:
                changes["would_recommend"] = fields["would_recommend"]
            if "is_public" in fields:
                changes["is_public"] = fields["is_public"]
            if "reply" in fields:
                reply = fields["reply"].strip()
                changes["reply"] = reply or None
                changes["replied_at"] = now if reply else None

            updated = review.model_copy(update=changes)
            session.reviews.save(updated)
            if AGGREGATE_FIELDS & fields.keys():
                self.aggregator.recompute_within(session, updated.target_type, updated.target_id)

        logger.info("Review %s updated by %s (%s)", review_id, actor.user_id, ", ".join(sorted(fields)))
        return updated

    def delete_review(self, review_id: str, actor: Identity) -> None:
        with self.database.session() as session:
            review = session.reviews.get(review_id)
            if not review:
                raise NotFoundError("Review not found")
            if actor.user_id != review.author_id and not actor.is_admin:
                logger.warning("User %s denied delete of review %s", actor.user_id, review_id)
                raise AuthorizationError("Not authorized to delete this review")

            session.reviews.delete(review_id)
            booking = session.bookings.get(review.booking_id)
            if booking:
                session.bookings.save(booking.model_copy(update={"reviewed": False, "updated_at": self.clock()}))
            grant = session.eligibility.first(booking_id=review.booking_id)
            if grant:
                session.eligibility.save(grant.model_copy(update={"review_submitted": False}))
            self.aggregator.recompute_within(session, review.target_type, review.target_id)

        logger.info("Review %s deleted by %s", review_id, actor.user_id)

    def list_for_target(self, target_type: str, target_id: str, page: int = 1, page_size: int = 10) -> ReviewPage:
        """Public reviews for a target, newest first, with statistics over every public review."""
        if target_type not in TARGET_TYPES:
            raise ValidationError("Invalid target type. Allowed: guide, vehicle")
        if page < 1:
            raise ValidationError("page must be at least 1")
        if not 1 <= page_size <= MAX_PAGE_SIZE:
            raise ValidationError(f"page_size must be between 1 and {MAX_PAGE_SIZE}")

        with self.database.session() as session:
            reviews = session.reviews.find(target_type=target_type, target_id=target_id, is_public=True)
            statistics = self.aggregator.statistics_within(session, target_type, target_id)

        reviews.reverse()
        total = len(reviews)
        start = (page - 1) * page_size
        return ReviewPage(
            reviews=reviews[start:start + page_size],
            pagination=Pagination(page=page, limit=page_size, total=total, pages=math.ceil(total / page_size)),
            statistics=statistics,
        )

    def list_for_author(self, author_id: str) -> List[Review]:
        with self.database.session() as session:
            reviews = session.reviews.find(author_id=author_id)
        reviews.reverse()
        return reviews

    def list_for_service_owner(self, owner_id: str) -> List[Review]:
        with self.database.session() as session:
            reviews = session.reviews.find(target_owner_id=owner_id)
        reviews.reverse()
        return reviews
