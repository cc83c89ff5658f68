"""
Values -- closed vocabularies and money helpers for the trading post.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  Imported by models,
    services and selectors alike.

Invariants enforced:
    - Categories, party kinds and transaction types are closed enums; the
      string values are what gets persisted.
    - Money is Decimal only.  ``round_money`` is the single rounding
      function for unit prices.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from enum import Enum

# Catalog rules for a good, checked on request validation and on insert.
MIN_GOOD_NAME_LENGTH = 2
MIN_GOOD_DESCRIPTION_LENGTH = 5


class GoodCategory(str, Enum):
    """Catalog category of a good."""

    WEAPON = "Weapon"
    ARMOR = "Armor"
    POTION = "Potion"
    INGREDIENT = "Ingredient"
    TOOL = "Tool"
    FOOD = "Food"
    VALUABLE = "Valuable"
    OTHER = "Other"


class PartyKind(str, Enum):
    """Tag of the Hunter | Merchant counterparty union."""

    HUNTER = "hunter"
    MERCHANT = "merchant"


class HunterRace(str, Enum):
    HUMAN = "Human"
    ELF = "Elf"
    DWARF = "Dwarf"
    ORC = "Orc"
    GOBLIN = "Goblin"
    VAMPIRE = "Vampire"
    WEREWOLF = "Werewolf"
    DEMON = "Demon"
    UNDEAD = "Undead"


class MerchantSpecialty(str, Enum):
    BLACKSMITH = "Blacksmith"
    ALCHEMIST = "Alchemist"
    ARMORER = "Armorer"
    HERBALIST = "Herbalist"
    GENERAL_GOODS = "General Goods"
    WEAPONS = "Weapons"
    OTHER = "Other"


class TransactionType(str, Enum):
    """Direction of a transaction, seen from the post.

    PURCHASE: a hunter buys goods from the post -- stock decreases.
    SALE: a merchant sells goods to the post -- stock increases.
    """

    PURCHASE = "purchase"
    SALE = "sale"

    @property
    def party_kind(self) -> PartyKind:
        """The counterparty kind this direction is traded with."""
        if self is TransactionType.PURCHASE:
            return PartyKind.HUNTER
        return PartyKind.MERCHANT

    @property
    def stock_sign(self) -> int:
        """Sign applied to a line quantity to get its stock delta."""
        return -1 if self is TransactionType.PURCHASE else 1

    def stock_delta(self, quantity: int) -> int:
        return self.stock_sign * quantity

    def reversal_delta(self, quantity: int) -> int:
        """Delta that undoes a line of this direction."""
        return -self.stock_delta(quantity)


def round_money(value: Decimal, decimal_places: int = 2) -> Decimal:
    """Quantize a monetary value with ROUND_HALF_UP."""
    quantum = Decimal(1).scaleb(-decimal_places)
    return value.quantize(quantum, rounding=ROUND_HALF_UP)


def to_decimal(value: object, field: str) -> Decimal:
    """Convert an int/str/Decimal to Decimal, rejecting floats and garbage.

    Raises:
        ValueError: If the value is a float, bool, or not numeric.
    """
    if isinstance(value, bool) or isinstance(value, float):
        raise ValueError(f"{field} must be a Decimal, int or numeric string")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, str)):
        try:
            result = Decimal(str(value).strip())
        except ArithmeticError as e:
            raise ValueError(f"{field} is not numeric: {value!r}") from e
    else:
        raise ValueError(f"{field} must be a Decimal, int or numeric string")
    if not result.is_finite():
        raise ValueError(f"{field} must be finite")
    return result
