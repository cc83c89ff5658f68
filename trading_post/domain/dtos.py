"""
DTOs -- typed requests into the transaction core and results out of it.

Responsibility:
    Defines the validated request types the core accepts
    (TransactionRequest, UpdateTransactionRequest, TransactionQuery) and the
    immutable result types it returns (GoodInfo, PartyRef, TransactionInfo,
    DeletionConfirmation).  ``from_payload`` constructors are the boundary
    where untyped request bodies become typed requests; the core never
    inspects untyped maps.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  No ORM imports:
    services convert ORM rows into these DTOs before returning.

Invariants enforced:
    - A transaction request has a known type, a non-empty person name and at
      least one line; every line has a non-empty good name and an integer
      quantity > 0.
    - Every sale line already meets the catalog rules for a new good (name
      length and any supplied attributes), so a sale never fails mid-way on
      the good it would create.
    - Requests never carry a total amount, transaction type change or party
      change for an existing transaction.

Failure modes:
    - InvalidRequestError with ``field_errors`` for every violated rule.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from trading_post.domain.clock import ensure_utc
from trading_post.domain.values import (
    MIN_GOOD_DESCRIPTION_LENGTH,
    MIN_GOOD_NAME_LENGTH,
    GoodCategory,
    PartyKind,
    TransactionType,
    to_decimal,
)
from trading_post.exceptions import InvalidRequestError


# =============================================================================
# Requests
# =============================================================================


@dataclass(frozen=True)
class NewGoodDefaults:
    """Attributes a merchant may supply for a good the post does not stock yet."""

    description: str | None = None
    category: GoodCategory | None = None
    material: str | None = None
    value: Decimal | None = None
    weight: Decimal | None = None


@dataclass(frozen=True)
class LineItemRequest:
    good_name: str
    quantity: int
    defaults: NewGoodDefaults | None = None


@dataclass(frozen=True)
class TransactionRequest:
    """Intent to create a transaction."""

    transaction_type: TransactionType
    person_name: str
    items: tuple[LineItemRequest, ...]
    occurred_at: datetime | None = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> TransactionRequest:
        """Build and validate a request from a decoded request body.

        Accepts snake_case keys and the camelCase keys used by the HTTP
        front end (``transactionType``, ``personName``, ``goodName``).
        """
        if not isinstance(payload, Mapping):
            raise InvalidRequestError(
                "Request body must be an object",
                [{"field": "", "error": "not an object"}],
            )
        data = _normalize_keys(payload, _TRANSACTION_ALIASES)
        errors: list[dict] = []

        raw_type = data.get("transaction_type")
        transaction_type = _parse_transaction_type(raw_type, errors)

        person_name = data.get("person_name")
        if not isinstance(person_name, str):
            errors.append({"field": "person_name", "error": "required string"})
            person_name = ""

        items = _parse_items(data.get("items"), errors)
        occurred_at = _parse_datetime(data.get("occurred_at"), "occurred_at", errors)

        if errors:
            raise InvalidRequestError("Invalid transaction request", errors)

        return validate_transaction_request(
            cls(
                transaction_type=transaction_type,
                person_name=person_name,
                items=items,
                occurred_at=occurred_at,
            )
        )


@dataclass(frozen=True)
class UpdateTransactionRequest:
    """Amendment of an existing transaction.

    Has no fields for the transaction type, the party or the total: those
    are always the original values (type, party) or recomputed (total).
    """

    items: tuple[LineItemRequest, ...] | None = None
    occurred_at: datetime | None = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> UpdateTransactionRequest:
        """Build an update request from a decoded body.

        Keys naming immutable or derived fields (type, person, total) are
        dropped: the stored values always win.  Any other unknown key is a
        caller error.
        """
        if not isinstance(payload, Mapping):
            raise InvalidRequestError(
                "Request body must be an object",
                [{"field": "", "error": "not an object"}],
            )
        data = _normalize_keys(payload, _TRANSACTION_ALIASES)
        errors: list[dict] = []

        for key in data:
            if key not in _UPDATE_FIELDS and key not in _FORCED_ON_UPDATE:
                errors.append({"field": key, "error": "unknown field"})

        items = None
        if data.get("items") is not None:
            items = _parse_items(data["items"], errors)
        occurred_at = _parse_datetime(data.get("occurred_at"), "occurred_at", errors)

        if errors:
            raise InvalidRequestError("Invalid transaction update", errors)

        request = cls(items=items, occurred_at=occurred_at)
        if request.items is not None:
            _raise_on_item_errors(request.items)
        return request


@dataclass(frozen=True)
class TransactionQuery:
    """Read-only ledger filter; every criterion is optional.

    ``start`` and ``end`` are inclusive.  A ``date`` bound covers the whole
    day (UTC); a ``datetime`` bound is exact.
    """

    person_name: str | None = None
    start: date | datetime | None = None
    end: date | datetime | None = None
    transaction_type: TransactionType | None = None

    def __post_init__(self) -> None:
        if isinstance(self.transaction_type, str) and not isinstance(
            self.transaction_type, TransactionType
        ):
            if self.transaction_type == "all":
                object.__setattr__(self, "transaction_type", None)
            else:
                try:
                    object.__setattr__(
                        self, "transaction_type", TransactionType(self.transaction_type)
                    )
                except ValueError as e:
                    raise InvalidRequestError(
                        "Invalid transaction type filter",
                        [{"field": "transaction_type", "error": str(e)}],
                    ) from e


# =============================================================================
# Results
# =============================================================================


@dataclass(frozen=True)
class GoodInfo:
    """Immutable view of a catalog good."""

    id: UUID
    name: str
    description: str
    category: GoodCategory
    material: str
    value: Decimal
    stock: int
    weight: Decimal
    version: int


@dataclass(frozen=True)
class PartyRef:
    """Counterparty snapshot recorded on a transaction."""

    id: UUID
    kind: PartyKind
    name: str


@dataclass(frozen=True)
class LineItemInfo:
    good_id: UUID
    good_name: str
    quantity: int
    unit_price: Decimal
    line_seq: int

    @property
    def amount(self) -> Decimal:
        return self.unit_price * self.quantity


@dataclass(frozen=True)
class TransactionInfo:
    """Immutable view of a ledger transaction with its ordered lines."""

    id: UUID
    transaction_type: TransactionType
    party: PartyRef
    items: tuple[LineItemInfo, ...]
    total_amount: Decimal
    occurred_at: datetime

    @property
    def person_name(self) -> str:
        return self.party.name

    @property
    def computed_total(self) -> Decimal:
        return sum((item.amount for item in self.items), Decimal("0"))


@dataclass(frozen=True)
class DeletionConfirmation:
    transaction_id: UUID
    transaction_type: TransactionType
    reverted_items: tuple[LineItemInfo, ...]
    skipped_goods: tuple[str, ...] = field(default_factory=tuple)


# =============================================================================
# Validation
# =============================================================================


_TRANSACTION_ALIASES = {
    "transactionType": "transaction_type",
    "personName": "person_name",
    "occurredAt": "occurred_at",
}

_ITEM_ALIASES = {
    "goodName": "good_name",
}

_UPDATE_FIELDS = frozenset({"items", "occurred_at"})

# Merged-in values for these are discarded in favor of the stored ones.
_FORCED_ON_UPDATE = frozenset(
    {"transaction_type", "person_name", "personId", "personType", "totalAmount", "total_amount"}
)


def validate_transaction_request(request: TransactionRequest) -> TransactionRequest:
    """Validate a create request and return it normalized.

    Normalization coerces a string type into TransactionType and strips
    surrounding whitespace from names.

    Raises:
        InvalidRequestError: With one field error per violated rule.
    """
    errors: list[dict] = []
    transaction_type = _parse_transaction_type(request.transaction_type, errors)

    person_name = request.person_name.strip() if isinstance(request.person_name, str) else ""
    if not person_name:
        errors.append({"field": "person_name", "error": "must be non-empty"})

    items = tuple(request.items) if request.items is not None else ()
    item_errors = validate_items(items)
    errors.extend(item_errors)
    if not item_errors:
        errors.extend(validate_new_goods(transaction_type, items))

    if errors:
        raise InvalidRequestError("Invalid transaction request", errors)

    return replace(
        request,
        transaction_type=transaction_type,
        person_name=person_name,
        items=tuple(_normalize_item(item) for item in items),
        occurred_at=ensure_utc(request.occurred_at) if request.occurred_at else None,
    )


def validate_items(items: Iterable[LineItemRequest]) -> list[dict]:
    """Return field errors for a line item list (empty list when valid)."""
    items = list(items)
    errors: list[dict] = []
    if not items:
        errors.append({"field": "items", "error": "at least one item is required"})
    for idx, item in enumerate(items):
        if not isinstance(item, LineItemRequest):
            errors.append({"field": f"items[{idx}]", "error": "not a line item"})
            continue
        if not isinstance(item.good_name, str) or not item.good_name.strip():
            errors.append({"field": f"items[{idx}].good_name", "error": "must be non-empty"})
        quantity = item.quantity
        if isinstance(quantity, bool) or not isinstance(quantity, int):
            errors.append({"field": f"items[{idx}].quantity", "error": "must be an integer"})
        elif quantity <= 0:
            errors.append({"field": f"items[{idx}].quantity", "error": "must be greater than 0"})
    return errors


def normalize_items(items: Iterable[LineItemRequest]) -> tuple[LineItemRequest, ...]:
    """Validate and normalize a replacement item list."""
    items = tuple(items)
    _raise_on_item_errors(items)
    return tuple(_normalize_item(item) for item in items)


def validate_new_goods(
    transaction_type: TransactionType,
    items: Iterable[LineItemRequest],
) -> list[dict]:
    """Field errors for goods a sale may have to create.

    Any sale line can name a good the post does not stock yet, so the
    catalog rules for a new good apply to every sale line up front: the name
    and whatever attributes the merchant supplied.  Purchases only look
    goods up and need none of this.
    """
    if transaction_type is not TransactionType.SALE:
        return []
    errors: list[dict] = []
    for idx, item in enumerate(items):
        prefix = f"items[{idx}]"
        if len(item.good_name.strip()) < MIN_GOOD_NAME_LENGTH:
            errors.append(
                {
                    "field": f"{prefix}.good_name",
                    "error": f"must have at least {MIN_GOOD_NAME_LENGTH} characters",
                }
            )
        if item.defaults is not None:
            errors.extend(_defaults_errors(item.defaults, prefix))
    return errors


def check_items_for(
    transaction_type: TransactionType,
    items: Iterable[LineItemRequest],
) -> None:
    """Raise InvalidRequestError if ``items`` cannot be applied as ``transaction_type``."""
    errors = validate_new_goods(transaction_type, items)
    if errors:
        raise InvalidRequestError("Invalid transaction items", errors)


def _defaults_errors(defaults: NewGoodDefaults, prefix: str) -> list[dict]:
    errors: list[dict] = []
    description = defaults.description
    if description is not None and (
        not isinstance(description, str)
        or len(description.strip()) < MIN_GOOD_DESCRIPTION_LENGTH
    ):
        errors.append(
            {
                "field": f"{prefix}.description",
                "error": f"must have at least {MIN_GOOD_DESCRIPTION_LENGTH} characters",
            }
        )
    if defaults.category is not None:
        try:
            GoodCategory(defaults.category)
        except ValueError:
            errors.append({"field": f"{prefix}.category", "error": "unknown category"})
    if defaults.material is not None and (
        not isinstance(defaults.material, str) or (defaults.material and not defaults.material.strip())
    ):
        errors.append({"field": f"{prefix}.material", "error": "must be a non-blank string"})
    for key in ("value", "weight"):
        raw = getattr(defaults, key)
        if raw is None:
            continue
        try:
            number = to_decimal(raw, key)
        except ValueError as e:
            errors.append({"field": f"{prefix}.{key}", "error": str(e)})
            continue
        if number < 0:
            errors.append({"field": f"{prefix}.{key}", "error": "cannot be negative"})
    return errors


def _raise_on_item_errors(items: tuple[LineItemRequest, ...]) -> None:
    errors = validate_items(items)
    if errors:
        raise InvalidRequestError("Invalid transaction items", errors)


def _normalize_item(item: LineItemRequest) -> LineItemRequest:
    return replace(item, good_name=item.good_name.strip())


def _normalize_keys(payload: Mapping[str, Any], aliases: Mapping[str, str]) -> dict[str, Any]:
    return {aliases.get(key, key): value for key, value in payload.items()}


def _parse_transaction_type(raw: Any, errors: list[dict]) -> TransactionType:
    try:
        return TransactionType(raw)
    except ValueError:
        errors.append(
            {"field": "transaction_type", "error": "must be 'purchase' or 'sale'"}
        )
        return TransactionType.PURCHASE


def _parse_items(raw: Any, errors: list[dict]) -> tuple[LineItemRequest, ...]:
    if not isinstance(raw, (list, tuple)):
        errors.append({"field": "items", "error": "required list"})
        return ()
    if not raw:
        errors.append({"field": "items", "error": "at least one item is required"})
        return ()

    parsed: list[LineItemRequest] = []
    for idx, entry in enumerate(raw):
        if not isinstance(entry, Mapping):
            errors.append({"field": f"items[{idx}]", "error": "must be an object"})
            continue
        data = _normalize_keys(entry, _ITEM_ALIASES)
        good_name = data.get("good_name")
        quantity = data.get("quantity")
        if not isinstance(good_name, str) or not good_name.strip():
            errors.append({"field": f"items[{idx}].good_name", "error": "required string"})
            continue
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            errors.append(
                {"field": f"items[{idx}].quantity", "error": "must be an integer greater than 0"}
            )
            continue
        defaults = _parse_defaults(data, f"items[{idx}]", errors)
        parsed.append(LineItemRequest(good_name=good_name, quantity=quantity, defaults=defaults))
    return tuple(parsed)


def _parse_defaults(data: Mapping[str, Any], prefix: str, errors: list[dict]) -> NewGoodDefaults | None:
    keys = ("description", "category", "material", "value", "weight")
    if not any(data.get(key) is not None for key in keys):
        return None

    category = None
    if data.get("category") is not None:
        try:
            category = GoodCategory(data["category"])
        except ValueError:
            errors.append({"field": f"{prefix}.category", "error": "unknown category"})

    value = weight = None
    for key in ("value", "weight"):
        raw = data.get(key)
        if raw is None:
            continue
        if isinstance(raw, float):
            # JSON numbers arrive as floats; use their shortest repr.
            raw = str(raw)
        try:
            number = to_decimal(raw, key)
        except ValueError as e:
            errors.append({"field": f"{prefix}.{key}", "error": str(e)})
            continue
        if number < 0:
            errors.append({"field": f"{prefix}.{key}", "error": "cannot be negative"})
            continue
        if key == "value":
            value = number
        else:
            weight = number

    return NewGoodDefaults(
        description=data.get("description"),
        category=category,
        material=data.get("material"),
        value=value,
        weight=weight,
    )


def _parse_datetime(raw: Any, name: str, errors: list[dict]) -> datetime | None:
    if raw is None:
        return None
    if isinstance(raw, datetime):
        return ensure_utc(raw)
    if isinstance(raw, str):
        try:
            return ensure_utc(datetime.fromisoformat(raw))
        except ValueError:
            pass
    errors.append({"field": name, "error": "must be an ISO-8601 datetime"})
    return None
