"""Unified error codes and custom exceptions.

Every failure leaves persisted state untouched; the code tells the caller
which kind of failure it was.

Error code ranges:
  1xxx: Authorization (identity missing, actor not allowed)
  2xxx: Validation (rejected before any read of mutable state)
  3xxx: Not found
  4xxx: State conflict (caller may re-read and retry)
  5xxx: Invariant violation (programming defect, logged loudly)
  9xxx: System
"""


class AppError(Exception):
    """Base application error."""

    retryable: bool = False

    def __init__(
        self,
        code: int,
        message: str,
        http_status: int = 500,
    ) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status
        super().__init__(message)


class AuthorizationError(AppError):
    pass


class ValidationError(AppError):
    pass


class NotFoundError(AppError):
    pass


class StateConflictError(AppError):
    retryable = True


class InvariantViolationError(AppError):
    pass


# --- 1xxx: Authorization ---

class AuthenticationRequiredError(AuthorizationError):
    def __init__(self) -> None:
        super().__init__(1001, "Missing or invalid identity", 401)


class NotOrderParticipantError(AuthorizationError):
    def __init__(self, order_id: str) -> None:
        super().__init__(1002, f"Actor is not a party to order {order_id}", 403)


class TransitionNotPermittedError(AuthorizationError):
    def __init__(self, role: str, target: str) -> None:
        super().__init__(1003, f"Role {role} may not move an order to {target}", 403)


class SelfDealingError(AuthorizationError):
    def __init__(self, listing_id: str) -> None:
        super().__init__(1004, f"Cannot transact on your own listing {listing_id}", 403)


class NotListingOwnerError(AuthorizationError):
    def __init__(self, listing_id: str) -> None:
        super().__init__(1005, f"Actor does not own listing {listing_id}", 403)


class NotAcceptedPurchaserError(AuthorizationError):
    def __init__(self, listing_id: str) -> None:
        super().__init__(1006, f"Actor is not the accepted purchaser of {listing_id}", 403)


class ForbiddenError(AuthorizationError):
    def __init__(self, detail: str = "Forbidden") -> None:
        super().__init__(1007, detail, 403)


# --- 2xxx: Validation ---

class MissingFieldError(ValidationError):
    def __init__(self, field: str) -> None:
        super().__init__(2001, f"Missing required field: {field}", 422)
        self.field = field


class FeeMismatchError(ValidationError):
    def __init__(self, field: str, supplied: int, expected: int) -> None:
        super().__init__(
            2002,
            f"Fee mismatch on {field}: supplied {supplied} cents, expected {expected} cents",
            422,
        )


class QuantityExceedsAvailabilityError(ValidationError):
    def __init__(self, requested: int, available: int) -> None:
        super().__init__(
            2003,
            f"Requested quantity {requested} exceeds availability {available}",
            422,
        )


class InvalidShippingAddressError(ValidationError):
    def __init__(self, detail: str) -> None:
        super().__init__(2004, f"Invalid shipping address: {detail}", 422)


class InvalidFieldError(ValidationError):
    def __init__(self, detail: str) -> None:
        super().__init__(2005, detail, 422)


# --- 3xxx: Not found ---

class ListingNotFoundError(NotFoundError):
    def __init__(self, listing_id: str) -> None:
        super().__init__(3001, f"Listing not found: {listing_id}", 404)


class OrderNotFoundError(NotFoundError):
    def __init__(self, order_id: str) -> None:
        super().__init__(3002, f"Order not found: {order_id}", 404)


class UserNotFoundError(NotFoundError):
    def __init__(self, user_id: str) -> None:
        super().__init__(3003, f"User not found: {user_id}", 404)


# --- 4xxx: State conflict ---

class InvalidTransitionError(StateConflictError):
    def __init__(self, current: str, target: str) -> None:
        super().__init__(4001, f"Invalid transition: {current} -> {target}", 409)
        self.current = current
        self.target = target


class ListingNotAvailableError(StateConflictError):
    def __init__(self, listing_id: str, status: str) -> None:
        super().__init__(4002, f"Listing {listing_id} is not available (status={status})", 409)


class ListingAlreadyClaimedError(StateConflictError):
    def __init__(self, listing_id: str) -> None:
        super().__init__(4003, f"Listing {listing_id} was already accepted", 409)


class ConcurrentModificationError(StateConflictError):
    def __init__(self, entity: str) -> None:
        super().__init__(4004, f"Concurrent modification of {entity}; re-read and retry", 409)


# --- 5xxx: Invariant violation ---

class SettlementAlreadyCompletedError(InvariantViolationError):
    def __init__(self, order_id: str) -> None:
        super().__init__(5001, f"Order {order_id} has already been settled", 500)


class InventoryInvariantError(InvariantViolationError):
    def __init__(self, detail: str) -> None:
        super().__init__(5002, f"Inventory invariant violated: {detail}", 500)


# --- 9xxx: System ---

class InternalError(AppError):
    def __init__(self, detail: str = "Internal server error") -> None:
        super().__init__(9002, detail, 500)
