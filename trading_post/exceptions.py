"""
Typed Exception Hierarchy for the Trading Post kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

The boundary layer (an HTTP API, a CLI, a message consumer) must map every
failure of the transaction core to its own protocol.  It can only do that
reliably if failures are caught by TYPE and carry structured DATA, never by
parsing message strings.

Every exception in this module therefore has:
  1. A class of its own (catch by type, not message)
  2. A static ``code`` class attribute (machine-readable, API-safe)
  3. Structured attributes (good name, quantities, transaction id, ...)

Example:
    try:
        engine.create_transaction(request)
    except InsufficientStockError as e:
        return {"error": e.code, "good": e.good_name,
                "available": e.available, "requested": e.requested}

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    TradingPostError (base)
    |
    +-- InvalidRequestError
    |
    +-- PartyError
    |   +-- PartyNotFoundError
    |   +-- DuplicatePartyError
    |
    +-- GoodError
    |   +-- GoodNotFoundError
    |   +-- DuplicateGoodError
    |   +-- InvalidGoodError
    |   +-- InsufficientStockError
    |
    +-- TransactionError
    |   +-- TransactionNotFoundError
    |
    +-- StorageFailureError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                   | When Raised
-------------|------------------------|------------------------------------------
Request      | INVALID_REQUEST        | Malformed / missing fields (not retried)
-------------|------------------------|------------------------------------------
Party        | PARTY_NOT_FOUND        | No hunter / merchant with that name
             | DUPLICATE_PARTY        | Name already taken for that party kind
-------------|------------------------|------------------------------------------
Good         | GOOD_NOT_FOUND         | Unknown good name or id
             | DUPLICATE_GOOD         | Good name already in the catalog
             | INVALID_GOOD           | Catalog attributes violate the schema
             | INSUFFICIENT_STOCK     | Adjustment would drive stock negative
-------------|------------------------|------------------------------------------
Transaction  | TRANSACTION_NOT_FOUND  | Update / delete of unknown transaction
-------------|------------------------|------------------------------------------
Storage      | STORAGE_FAILURE        | Transient DB failure; whole op retryable

===============================================================================
HANDLING PATTERNS
===============================================================================

Caller errors (INVALID_REQUEST, *_NOT_FOUND, DUPLICATE_*, INSUFFICIENT_STOCK)
must not be retried: the same input fails the same way.

StorageFailureError is transient.  Because every engine operation is a single
atomic unit of work, the WHOLE operation is safe to retry; it is never retried
partially.
"""


class TradingPostError(Exception):
    """
    Base exception for all trading post errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "TRADING_POST_ERROR"


# Request validation


class InvalidRequestError(TradingPostError):
    """Request is malformed or missing required fields."""

    code: str = "INVALID_REQUEST"

    def __init__(self, message: str, field_errors: list[dict] | None = None):
        self.field_errors = field_errors or []
        super().__init__(message)


# Party-related exceptions


class PartyError(TradingPostError):
    """Base exception for party-related errors."""

    code: str = "PARTY_ERROR"


class PartyNotFoundError(PartyError):
    """No party of the requested kind has the given name (or id)."""

    code: str = "PARTY_NOT_FOUND"

    def __init__(self, party_kind: str, name: str):
        self.party_kind = party_kind
        self.name = name
        super().__init__(f"{party_kind.capitalize()} not found: {name}")


class DuplicatePartyError(PartyError):
    """A party of the same kind already uses this name."""

    code: str = "DUPLICATE_PARTY"

    def __init__(self, party_kind: str, name: str):
        self.party_kind = party_kind
        self.name = name
        super().__init__(f"{party_kind.capitalize()} already exists: {name}")


# Good-related exceptions


class GoodError(TradingPostError):
    """Base exception for good / stock errors."""

    code: str = "GOOD_ERROR"


class GoodNotFoundError(GoodError):
    """Good with the given name or id does not exist."""

    code: str = "GOOD_NOT_FOUND"

    def __init__(self, good_ref: str):
        self.good_ref = good_ref
        super().__init__(f"Good not found: {good_ref}")


class DuplicateGoodError(GoodError):
    """Good names are unique in the catalog."""

    code: str = "DUPLICATE_GOOD"

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Good already exists: {name}")


class InsufficientStockError(GoodError):
    """
    Applying a stock adjustment would make stock negative.

    Raised on purchases that exceed stock, and on reversals of sales whose
    goods have since left the post (a genuine data inconsistency).  Stock is
    never clamped to zero instead.
    """

    code: str = "INSUFFICIENT_STOCK"

    def __init__(self, good_name: str, available: int, requested: int):
        self.good_name = good_name
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient stock for {good_name}: "
            f"available={available}, requested={requested}"
        )


class InvalidGoodError(GoodError):
    """Catalog attributes violate the good schema."""

    code: str = "INVALID_GOOD"

    def __init__(self, name: str, reason: str):
        self.name = name
        self.reason = reason
        super().__init__(f"Invalid good {name!r}: {reason}")


# Transaction-related exceptions


class TransactionError(TradingPostError):
    """Base exception for transaction ledger errors."""

    code: str = "TRANSACTION_ERROR"


class TransactionNotFoundError(TransactionError):
    """Transaction with the given id does not exist."""

    code: str = "TRANSACTION_NOT_FOUND"

    def __init__(self, transaction_id: str):
        self.transaction_id = transaction_id
        super().__init__(f"Transaction not found: {transaction_id}")


# Storage


class StorageFailureError(TradingPostError):
    """
    The backing store failed to complete a unit of work.

    Timeouts, lost connections, lock conflicts and optimistic version
    conflicts all surface as this error after the unit of work has been
    rolled back.
    """

    code: str = "STORAGE_FAILURE"

    def __init__(self, operation: str, reason: str):
        self.operation = operation
        self.reason = reason
        super().__init__(f"Storage failure during {operation}: {reason}")
