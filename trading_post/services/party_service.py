"""
Service layer for hunters and merchants.

PartyService manages the counterparties; PartyResolver is the read-only
lookup the transaction engine uses to classify a transaction's party.

Returns PartyInfo / PartyRef DTOs instead of ORM entities.
"""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import select

from trading_post.domain.dtos import PartyRef
from trading_post.domain.values import (
    HunterRace,
    MerchantSpecialty,
    PartyKind,
    TransactionType,
)
from trading_post.exceptions import (
    DuplicatePartyError,
    InvalidRequestError,
    PartyNotFoundError,
)
from trading_post.logging_config import get_logger
from trading_post.models.party import Party
from trading_post.services.base import BaseService

logger = get_logger("services.party")


@dataclass(frozen=True)
class PartyInfo:
    """Immutable DTO for party data."""

    id: UUID
    kind: PartyKind
    name: str
    race: HunterRace | None
    specialty: MerchantSpecialty | None
    location: str | None

    @property
    def ref(self) -> PartyRef:
        return PartyRef(id=self.id, kind=self.kind, name=self.name)


def _to_dto(party: Party) -> PartyInfo:
    return PartyInfo(
        id=party.id,
        kind=PartyKind(party.party_kind),
        name=party.name,
        race=HunterRace(party.race) if party.race else None,
        specialty=MerchantSpecialty(party.specialty) if party.specialty else None,
        location=party.location,
    )


class PartyResolver(BaseService[Party]):
    """
    Classifies a transaction's counterparty.

    Contract:
        Pure lookup -- never creates or edits parties.  A purchase is made
        by a hunter, a sale by a merchant; the name must match exactly.
    """

    def lookup(self, kind: PartyKind, name: str) -> PartyRef:
        """
        Raises:
            PartyNotFoundError: If no party of ``kind`` has this name.
        """
        stmt = select(Party).where(
            Party.party_kind == PartyKind(kind).value,
            Party.name == name,
        )
        party = self.session.execute(stmt).scalar_one_or_none()
        if party is None:
            raise PartyNotFoundError(PartyKind(kind).value, name)
        return PartyRef(id=party.id, kind=PartyKind(party.party_kind), name=party.name)

    def resolve(self, transaction_type: TransactionType, person_name: str) -> PartyRef:
        return self.lookup(transaction_type.party_kind, person_name)


class PartyService(BaseService[Party]):
    """
    Service for managing hunters and merchants.

    Not used by the transaction engine.  Deleting a party leaves its
    transactions in place: they carry the party's name as a snapshot.
    """

    def _get_by_id(self, party_id: UUID) -> Party:
        party = self.session.get(Party, party_id)
        if party is None:
            raise PartyNotFoundError("party", str(party_id))
        return party

    def _select(self, kind: PartyKind, name: str) -> Party | None:
        stmt = select(Party).where(Party.party_kind == kind.value, Party.name == name)
        return self.session.execute(stmt).scalar_one_or_none()

    def get_by_id(self, party_id: UUID) -> PartyInfo:
        """
        Raises:
            PartyNotFoundError: If the party doesn't exist.
        """
        return _to_dto(self._get_by_id(party_id))

    def find_by_name(self, kind: PartyKind, name: str) -> PartyInfo | None:
        party = self._select(PartyKind(kind), name)
        return _to_dto(party) if party else None

    def list_by_kind(self, kind: PartyKind) -> list[PartyInfo]:
        stmt = (
            select(Party)
            .where(Party.party_kind == PartyKind(kind).value)
            .order_by(Party.name)
        )
        return [_to_dto(p) for p in self.session.execute(stmt).scalars()]

    def create_hunter(
        self,
        name: str,
        race: HunterRace | str = HunterRace.HUMAN,
        location: str | None = None,
    ) -> PartyInfo:
        """
        Register a hunter.

        Raises:
            DuplicatePartyError: If a hunter with this name exists.
            InvalidRequestError: On a short name/location or unknown race.
        """
        return self._create(
            PartyKind.HUNTER,
            name,
            location,
            race=_coerce(HunterRace, race, "race"),
        )

    def create_merchant(
        self,
        name: str,
        specialty: MerchantSpecialty | str = MerchantSpecialty.GENERAL_GOODS,
        location: str | None = None,
    ) -> PartyInfo:
        """
        Register a merchant.

        Raises:
            DuplicatePartyError: If a merchant with this name exists.
            InvalidRequestError: On a short name/location or unknown specialty.
        """
        return self._create(
            PartyKind.MERCHANT,
            name,
            location,
            specialty=_coerce(MerchantSpecialty, specialty, "specialty"),
        )

    def _create(self, kind: PartyKind, name: str, location: str | None, **extra) -> PartyInfo:
        name = _checked_name(name)
        location = _checked_location(location)
        if self._select(kind, name) is not None:
            raise DuplicatePartyError(kind.value, name)

        values = {key: member.value for key, member in extra.items()}
        party = Party(party_kind=kind.value, name=name, location=location, **values)
        self.session.add(party)
        self.session.flush()

        logger.info(
            "party_created",
            extra={"party_kind": kind.value, "party_name": name, "party_id": str(party.id)},
        )
        return _to_dto(party)

    def update_party(
        self,
        party_id: UUID,
        name: str | None = None,
        location: str | None = None,
        race: HunterRace | str | None = None,
        specialty: MerchantSpecialty | str | None = None,
    ) -> PartyInfo:
        """
        Update party details.

        Note: the kind (hunter/merchant) cannot be changed.  Race only
        applies to hunters and specialty only to merchants.

        Raises:
            PartyNotFoundError: If the party doesn't exist.
            DuplicatePartyError: If renamed onto an existing party of the
                same kind.
            InvalidRequestError: On invalid values.
        """
        party = self._get_by_id(party_id)
        kind = PartyKind(party.party_kind)

        if name is not None:
            name = _checked_name(name)
            if name != party.name and self._select(kind, name) is not None:
                raise DuplicatePartyError(kind.value, name)
            party.name = name
        if location is not None:
            party.location = _checked_location(location)
        if race is not None:
            if kind is not PartyKind.HUNTER:
                raise InvalidRequestError(
                    "Only hunters have a race", [{"field": "race", "error": "not a hunter"}]
                )
            party.race = _coerce(HunterRace, race, "race").value
        if specialty is not None:
            if kind is not PartyKind.MERCHANT:
                raise InvalidRequestError(
                    "Only merchants have a specialty",
                    [{"field": "specialty", "error": "not a merchant"}],
                )
            party.specialty = _coerce(MerchantSpecialty, specialty, "specialty").value

        self.session.flush()
        return _to_dto(party)

    def delete_party(self, party_id: UUID) -> PartyInfo:
        """
        Remove a party.  Its transactions keep their snapshot.

        Returns:
            PartyInfo snapshot of the deleted party.
        """
        party = self._get_by_id(party_id)
        snapshot = _to_dto(party)
        self.session.delete(party)
        self.session.flush()
        logger.info(
            "party_deleted",
            extra={"party_kind": snapshot.kind.value, "party_name": snapshot.name},
        )
        return snapshot


def _checked_name(name: str) -> str:
    if not isinstance(name, str) or len(name.strip()) < 1:
        raise InvalidRequestError("Invalid party", [{"field": "name", "error": "must be non-empty"}])
    return name.strip()


def _checked_location(location: str | None) -> str | None:
    if location is None:
        return None
    if not isinstance(location, str) or len(location.strip()) < 2:
        raise InvalidRequestError(
            "Invalid party",
            [{"field": "location", "error": "must have at least 2 characters"}],
        )
    return location.strip()


def _coerce(enum_cls, value, field: str):
    try:
        return enum_cls(value)
    except ValueError:
        raise InvalidRequestError(
            "Invalid party", [{"field": field, "error": f"unknown {field} {value!r}"}]
        ) from None
