from dataclasses import dataclass, field

from lankatours import settings
from lankatours.services.accounts import AccountService
from lankatours.services.bookings import BookingLifecycleManager
from lankatours.services.catalog import CatalogService
from lankatours.services.clock import Clock, utc_now
from lankatours.services.database import Database
from lankatours.services.eligibility import ReviewEligibilityChecker
from lankatours.services.ratings import RatingAggregator
from lankatours.services.reviews import ReviewManager


@dataclass
class Marketplace:
    database: Database
    clock: Clock = field(default=utc_now)

    def __post_init__(self) -> None:
        self.accounts = AccountService(self.database, clock=self.clock)
        self.catalog = CatalogService(self.database, clock=self.clock)
        self.bookings = BookingLifecycleManager(self.database, clock=self.clock)
        self.ratings = RatingAggregator(self.database)
        self.eligibility = ReviewEligibilityChecker(self.database)
        self.reviews = ReviewManager(
            self.database,
            aggregator=self.ratings,
            eligibility=self.eligibility,
            clock=self.clock,
        )

    @classmethod
    def from_path(cls, db_path: str, clock: Clock = utc_now) -> "Marketplace":
        return cls(database=Database(db_path=db_path), clock=clock)


marketplace = Marketplace.from_path(settings.DB_PATH)
