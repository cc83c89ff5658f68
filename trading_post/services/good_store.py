"""
GoodStore -- identity, stock count and unit value of every good.

Responsibility:
    Owns every write to the ``goods`` table: the stock adjustments the
    transaction engine drives, goods created on the sale path, and explicit
    catalog management (create, update, delete).

Architecture position:
    Kernel > Services -- imperative shell, flush-only (see BaseService).

Invariants enforced:
    - stock >= 0 at every observable instant.  ``adjust_stock`` is a single
      conditional UPDATE (``... WHERE id = :id AND stock + :delta >= 0``);
      the database applies the check and the write atomically, so it is the
      linearization point for concurrent adjustments of the same good.
    - Every write bumps ``version``.
    - Catalog validation: name >= 2 characters, description >= 5
      characters, value/weight/stock never negative.

Failure modes:
    - GoodNotFoundError: no good with the given name or id.
    - InsufficientStockError: an adjustment would make stock negative.
    - DuplicateGoodError: a catalog create/rename collides with an existing
      name.
    - InvalidGoodError: catalog attributes fail validation.
    - StorageFailureError: an optimistic version check failed.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select, update

from trading_post.domain.dtos import GoodInfo, NewGoodDefaults
from trading_post.domain.pricing import NewGoodPolicy
from trading_post.domain.values import (
    MIN_GOOD_DESCRIPTION_LENGTH,
    MIN_GOOD_NAME_LENGTH,
    GoodCategory,
    to_decimal,
)
from trading_post.exceptions import (
    DuplicateGoodError,
    GoodNotFoundError,
    InsufficientStockError,
    InvalidGoodError,
    StorageFailureError,
)
from trading_post.logging_config import get_logger
from trading_post.models.good import Good
from trading_post.selectors.good_selector import good_to_info
from trading_post.services.base import BaseService

logger = get_logger("services.good_store")

_EDITABLE_FIELDS = frozenset(
    {"name", "description", "category", "material", "value", "weight", "stock"}
)


class GoodStore(BaseService[Good]):
    """
    Write-side access to goods.

    Contract:
        All public methods return GoodInfo DTOs.  Lookups by name are exact
        and case-sensitive.
    """

    def __init__(self, session, new_goods: NewGoodPolicy | None = None):
        super().__init__(session)
        self._new_goods = new_goods or NewGoodPolicy()

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    def _select_by_name(self, name: str, lock: bool = False) -> Good | None:
        stmt = select(Good).where(Good.name == name)
        if lock and self.supports_row_locks:
            stmt = stmt.with_for_update()
        return self.session.execute(
            stmt, execution_options={"populate_existing": lock}
        ).scalar_one_or_none()

    def _get_by_id(self, good_id: UUID) -> Good:
        good = self.session.get(Good, good_id)
        if good is None:
            raise GoodNotFoundError(str(good_id))
        return good

    def find_by_name(self, name: str) -> GoodInfo:
        """
        Raises:
            GoodNotFoundError: If no good has this name.
        """
        good = self._select_by_name(name)
        if good is None:
            raise GoodNotFoundError(name)
        return good_to_info(good)

    def find_by_id(self, good_id: UUID) -> GoodInfo:
        """
        Raises:
            GoodNotFoundError: If no good has this id.
        """
        return good_to_info(self._get_by_id(good_id))

    def lock_by_name(self, name: str) -> GoodInfo | None:
        """
        Load a good by name holding its row lock until the unit of work ends.

        On PostgreSQL this is SELECT ... FOR UPDATE.  SQLite has no row
        locks; there the BEGIN IMMEDIATE issued when the unit of work opened
        already holds the database write lock.

        Returns:
            GoodInfo, or None if no good has this name.
        """
        good = self._select_by_name(name, lock=True)
        return good_to_info(good) if good is not None else None

    # -------------------------------------------------------------------------
    # Stock
    # -------------------------------------------------------------------------

    def adjust_stock(self, good_id: UUID, delta: int) -> GoodInfo:
        """
        Apply ``stock += delta`` as one conditional UPDATE.

        Args:
            good_id: Good to adjust.
            delta: Signed change; negative removes stock.

        Returns:
            GoodInfo with the post-adjustment stock and version.

        Raises:
            GoodNotFoundError: If the good does not exist.
            InsufficientStockError: If stock + delta would be negative.
        """
        stmt = (
            update(Good)
            .where(Good.id == good_id, Good.stock + delta >= 0)
            .values(stock=Good.stock + delta, version=Good.version + 1)
            .execution_options(synchronize_session=False)
        )
        result = self.session.execute(stmt)

        # Refresh the identity map from the row the UPDATE just wrote.
        good = self.session.get(Good, good_id, populate_existing=True)
        if good is None:
            raise GoodNotFoundError(str(good_id))

        if result.rowcount == 0:
            logger.info(
                "stock_adjustment_rejected",
                extra={
                    "good_name": good.name,
                    "available": good.stock,
                    "delta": delta,
                },
            )
            raise InsufficientStockError(good.name, int(good.stock), abs(delta))

        logger.info(
            "stock_adjusted",
            extra={
                "good_name": good.name,
                "delta": delta,
                "stock": good.stock,
                "version": good.version,
            },
        )
        return good_to_info(good)

    # -------------------------------------------------------------------------
    # Creation
    # -------------------------------------------------------------------------

    def create_if_missing(
        self,
        name: str,
        defaults: NewGoodDefaults | None,
        supplier_name: str,
    ) -> tuple[GoodInfo, bool]:
        """
        Return the good named ``name``, creating it with stock 0 if absent.

        Sale path only.  Attributes the merchant did not supply fall back to
        the configured NewGoodPolicy.  A concurrent creator of the same name
        makes this flush fail with IntegrityError, which the engine surfaces
        as StorageFailureError and retries; the retry then finds the good.

        Returns:
            (GoodInfo, created) -- created is True if the row was inserted.
        """
        existing = self._select_by_name(name, lock=True)
        if existing is not None:
            return good_to_info(existing), False

        defaults = defaults or NewGoodDefaults()
        policy = self._new_goods
        good = self._build(
            name=name,
            description=defaults.description or policy.description_for(supplier_name),
            category=defaults.category or policy.category,
            material=defaults.material or policy.material,
            value=defaults.value if defaults.value is not None else policy.value,
            weight=defaults.weight if defaults.weight is not None else policy.weight,
            stock=0,
        )
        self.session.add(good)
        self.session.flush()

        logger.info(
            "good_created_on_sale",
            extra={"good_name": name, "supplier": supplier_name, "good_id": str(good.id)},
        )
        return good_to_info(good), True

    def create_good(
        self,
        name: str,
        description: str,
        value: Decimal | int | str,
        category: GoodCategory | str = GoodCategory.OTHER,
        material: str = "Common",
        weight: Decimal | int | str = Decimal("1"),
        stock: int = 0,
    ) -> GoodInfo:
        """
        Add a good to the catalog.

        Raises:
            DuplicateGoodError: If the name is taken.
            InvalidGoodError: If an attribute fails validation.
        """
        name = name.strip() if isinstance(name, str) else name
        if self._select_by_name(name) is not None:
            raise DuplicateGoodError(name)

        good = self._build(
            name=name,
            description=description,
            category=category,
            material=material,
            value=value,
            weight=weight,
            stock=stock,
        )
        self.session.add(good)
        self.session.flush()

        logger.info("good_created", extra={"good_name": name, "good_id": str(good.id)})
        return good_to_info(good)

    def _build(self, **fields) -> Good:
        values = _validated(fields.get("name"), fields)
        return Good(**values)

    # -------------------------------------------------------------------------
    # Catalog edits
    # -------------------------------------------------------------------------

    def update_good(
        self,
        good_id: UUID,
        expected_version: int | None = None,
        **fields,
    ) -> GoodInfo:
        """
        Edit catalog attributes of a good.

        Args:
            good_id: Good to edit.
            expected_version: If given, the edit only applies when the
                stored version still matches (optimistic check).
            **fields: Any of name, description, category, material, value,
                weight, stock.

        Raises:
            GoodNotFoundError: If the good does not exist.
            DuplicateGoodError: If renamed onto an existing name.
            InvalidGoodError: On unknown fields or invalid values.
            StorageFailureError: If expected_version is stale.
        """
        good = self._get_by_id(good_id)

        unknown = set(fields) - _EDITABLE_FIELDS
        if unknown:
            raise InvalidGoodError(good.name, f"unknown fields: {sorted(unknown)}")

        if expected_version is not None and expected_version != good.version:
            raise StorageFailureError(
                "update_good",
                f"version conflict on {good.name}: expected {expected_version}, "
                f"found {good.version}",
            )

        new_name = fields.get("name")
        if isinstance(new_name, str):
            fields["name"] = new_name = new_name.strip()
        if new_name is not None and new_name != good.name:
            if self._select_by_name(new_name) is not None:
                raise DuplicateGoodError(new_name)

        current = {key: getattr(good, key) for key in _EDITABLE_FIELDS}
        current.update(fields)
        values = _validated(current["name"], current)
        for key in fields:
            setattr(good, key, values[key])

        self.session.flush()
        logger.info(
            "good_updated",
            extra={"good_name": good.name, "fields": sorted(fields), "version": good.version},
        )
        return good_to_info(good)

    def delete_good(self, good_id: UUID) -> GoodInfo:
        """
        Remove a good from the catalog.

        Line items that reference it keep their name snapshot; reverting
        them later skips the missing good.

        Returns:
            GoodInfo snapshot of the deleted good.
        """
        good = self._get_by_id(good_id)
        snapshot = good_to_info(good)
        self.session.delete(good)
        self.session.flush()
        logger.info("good_deleted", extra={"good_name": snapshot.name, "good_id": str(good_id)})
        return snapshot


def _validated(name, fields: dict) -> dict:
    """Validate and coerce catalog attributes; raise InvalidGoodError."""
    label = name if isinstance(name, str) else repr(name)

    if not isinstance(name, str) or len(name.strip()) < MIN_GOOD_NAME_LENGTH:
        raise InvalidGoodError(
            label, f"name must have at least {MIN_GOOD_NAME_LENGTH} characters"
        )

    description = fields.get("description")
    if not isinstance(description, str) or len(description.strip()) < MIN_GOOD_DESCRIPTION_LENGTH:
        raise InvalidGoodError(
            label, f"description must have at least {MIN_GOOD_DESCRIPTION_LENGTH} characters"
        )

    try:
        category = GoodCategory(fields.get("category"))
    except ValueError:
        raise InvalidGoodError(label, f"unknown category {fields.get('category')!r}") from None

    material = fields.get("material")
    if not isinstance(material, str) or not material.strip():
        raise InvalidGoodError(label, "material must be non-empty")

    try:
        value = to_decimal(fields.get("value"), "value")
        weight = to_decimal(fields.get("weight"), "weight")
    except ValueError as e:
        raise InvalidGoodError(label, str(e)) from e
    if value < 0:
        raise InvalidGoodError(label, "value cannot be negative")
    if weight < 0:
        raise InvalidGoodError(label, "weight cannot be negative")

    stock = fields.get("stock", 0)
    if isinstance(stock, bool) or not isinstance(stock, int) or stock < 0:
        raise InvalidGoodError(label, "stock must be a non-negative integer")

    return {
        "name": name,
        "description": description.strip(),
        "category": category.value,
        "material": material.strip(),
        "value": value,
        "weight": weight,
        "stock": stock,
    }
