class MarketplaceError(ValueError):
    """Base class for user-visible marketplace errors."""


class ValidationError(MarketplaceError):
    pass


class NotFoundError(MarketplaceError):
    pass


class AuthorizationError(MarketplaceError):
    pass


class ConflictError(MarketplaceError):
    pass


class InvalidTransitionError(MarketplaceError):
    pass


class AlreadyCompletedError(InvalidTransitionError):
    pass


class DuplicateReviewError(MarketplaceError):
    pass


class MismatchError(MarketplaceError):
    """The review target is not the guide or vehicle of the booking."""
