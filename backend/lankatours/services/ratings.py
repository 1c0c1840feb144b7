import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Sequence

from lankatours.models import RatingSummary, Review, ReviewStatistics
from lankatours.services.catalog import load_target, target_repository
from lankatours.services.database import Database, Session

logger = logging.getLogger(__name__)


def average_rating(total: int, count: int) -> float:
    """Mean rating rounded half-up to one decimal; 0 for no reviews."""
    if count == 0:
        return 0.0
    mean = Decimal(total) / Decimal(count)
    return float(mean.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def summarize(reviews: Sequence[Review]) -> ReviewStatistics:
    count = len(reviews)
    if count == 0:
        return ReviewStatistics()
    ratings = [review.rating for review in reviews]
    recommended = sum(1 for review in reviews if review.would_recommend)
    rate = (Decimal(recommended) * 100 / Decimal(count)).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return ReviewStatistics(
        average_rating=average_rating(sum(ratings), count),
        total_reviews=count,
        rating_distribution={str(star): ratings.count(star) for star in range(5, 0, -1)},
        recommendation_rate=int(rate),
    )


class RatingAggregator:
    """Sole writer of a guide's or vehicle's ``rating`` and ``total_reviews``."""

    def __init__(self, database: Database) -> None:
        self.database = database

    def recompute(self, target_type: str, target_id: str) -> RatingSummary:
        with self.database.session() as session:
            return self.recompute_within(session, target_type, target_id)

    def recompute_within(self, session: Session, target_type: str, target_id: str) -> RatingSummary:
        # Runs inside the caller's transaction so the aggregate commits with the review write.
        target = load_target(session, target_type, target_id)
        reviews = session.reviews.find(target_type=target_type, target_id=target_id, is_public=True)
        summary = RatingSummary(
            average=average_rating(sum(review.rating for review in reviews), len(reviews)),
            count=len(reviews),
        )
        target_repository(session, target_type).save(
            target.model_copy(update={"rating": summary.average, "total_reviews": summary.count})
        )
        logger.info(
            "Recomputed rating for %s %s: average=%s count=%s",
            target_type,
            target_id,
            summary.average,
            summary.count,
        )
        return summary

    def statistics_within(self, session: Session, target_type: str, target_id: str) -> ReviewStatistics:
        reviews = session.reviews.find(target_type=target_type, target_id=target_id, is_public=True)
        return summarize(reviews)
