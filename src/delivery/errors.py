"""Error taxonomy for the Delivery domain.

Every error carries a ``messages`` dict keyed by the offending field, the way
Protean's own exceptions do, so callers can surface them uniformly.

    Validation    bad or missing input, surfaced immediately
    Not found     order, vendor block, leg, product or address absent
    Conflict      the target is already in the requested state or was taken
    Unavailable   no driver could be found (a normal business outcome)
    External      a collaborator call failed
"""

from protean.exceptions import ObjectNotFoundError, ProteanException, ValidationError


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------
class InvalidStatusError(ValidationError):
    """The requested status is not one of the known values."""


class InvalidTransitionError(ValidationError):
    """The requested status cannot follow the current one."""


class EmptyCartError(ValidationError):
    """The customer has no cart or the cart has no items."""


class NoMatchingItemsError(ValidationError):
    """No cart item matches the requested order type."""


class PaymentMethodNotAllowedError(ValidationError):
    """Cash on delivery was requested for a product that does not allow it."""


class InsufficientStockError(ValidationError):
    """A requested quantity exceeds the product's stock."""


# ---------------------------------------------------------------------------
# Not found
# ---------------------------------------------------------------------------
class ProductNotFoundError(ObjectNotFoundError):
    pass


class NoDefaultAddressError(ObjectNotFoundError):
    pass


class VendorBlockNotFoundError(ObjectNotFoundError):
    pass


class LegNotFoundError(ObjectNotFoundError):
    pass


class ReturnRequestNotFoundError(ObjectNotFoundError):
    pass


class CommissionNotFoundError(ObjectNotFoundError):
    pass


class LedgerEntryNotFoundError(ObjectNotFoundError):
    pass


# ---------------------------------------------------------------------------
# Conflict
# ---------------------------------------------------------------------------
class ConflictError(ProteanException):
    """The operation clashes with the current state; re-fetch and retry."""


class AlreadyInStateError(ConflictError):
    pass


class DriverUnavailableError(ConflictError):
    """The driver was claimed by another assignment first."""


class ReturnNotAllowedError(ConflictError):
    pass


class InvalidReturnStateError(ConflictError):
    pass


# ---------------------------------------------------------------------------
# Unavailable / external
# ---------------------------------------------------------------------------
class ResourceUnavailableError(ProteanException):
    """A required resource could not be found right now."""


class NoDriverAvailableError(ResourceUnavailableError):
    pass


class ExternalServiceError(ProteanException):
    """A collaborator (catalogue, cart, notifier, ...) failed."""
