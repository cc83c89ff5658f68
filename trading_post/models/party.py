"""
Module: trading_post.models.party
Responsibility: ORM persistence for the counterparties the post trades with:
    hunters (who buy from the post) and merchants (who sell to it).
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/values.py only.

Invariants enforced:
    - (party_kind, name) is unique; a hunter and a merchant may share a name.
    - race is only meaningful for hunters, specialty only for merchants.

Failure modes:
    - IntegrityError on a duplicate (party_kind, name).
"""

from sqlalchemy import Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from trading_post.db.base import TrackedBase
from trading_post.domain.values import HunterRace, MerchantSpecialty, PartyKind


class Party(TrackedBase):
    """
    A hunter or a merchant.

    Contract:
        The transaction engine only ever reads parties.  Transactions keep
        the party's id, kind and name as a snapshot, so editing or deleting
        a party leaves recorded transactions untouched.
    """

    __tablename__ = "parties"

    __table_args__ = (
        UniqueConstraint("party_kind", "name", name="uq_party_kind_name"),
        Index("idx_party_kind", "party_kind"),
    )

    party_kind: Mapped[PartyKind] = mapped_column(
        String(10),
        nullable=False,
    )

    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    # Hunters only
    race: Mapped[HunterRace | None] = mapped_column(
        String(20),
        nullable=True,
    )

    # Merchants only
    specialty: Mapped[MerchantSpecialty | None] = mapped_column(
        String(30),
        nullable=True,
    )

    location: Mapped[str | None] = mapped_column(
        String(200),
        nullable=True,
    )

    @property
    def is_hunter(self) -> bool:
        return self.party_kind == PartyKind.HUNTER

    @property
    def is_merchant(self) -> bool:
        return self.party_kind == PartyKind.MERCHANT

    def __repr__(self) -> str:
        return f"<Party {self.party_kind}: {self.name}>"
