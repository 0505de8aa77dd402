"""
Persistence for deck card memberships.

`MembershipStore` is the interface the reconciler depends on.
`SqlMembershipStore` implements it with bulk statements built by
`magidekt.db.sql` and executed on an async SQLAlchemy session.
"""

from collections.abc import Iterator, Mapping, Sequence
from typing import Any, NamedTuple, Protocol, TypeVar

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from magidekt.db.sql import EmptyBatchError, bind_positional, build_insert_placeholders
from magidekt.models.db import DeckCardDB, DeckDB
from magidekt.models.membership import Candidate, Membership

# PostgreSQL caps one statement at 32767 bind parameters and every card
# row binds three; leave room for the deck id
MAX_ROWS_PER_STATEMENT = 10_000


T = TypeVar("T")


class MembershipRow(NamedTuple):
    """One row of a bulk membership insert, in column order."""

    deck_id: int
    card_id: str
    quantity: int


class MembershipStore(Protocol):
    """Storage operations needed to reconcile a deck's cards."""

    async def collection_exists(self, deck_id: int) -> bool: ...

    async def existing_member_ids(self, deck_id: int) -> list[str]: ...

    async def insert_memberships(self, rows: Sequence[MembershipRow]) -> list[Membership]: ...

    async def update_quantities(
        self, deck_id: int, updates: Sequence[Candidate]
    ) -> list[Membership]: ...

    async def delete_memberships(self, deck_id: int, card_ids: Sequence[str]) -> int: ...

    async def list_memberships(self, deck_id: int) -> list[Membership]: ...


def _to_membership(row: Mapping[str, Any]) -> Membership:
    # Some drivers hand numeric columns back as text
    return Membership(card_id=str(row["card_id"]), quantity=int(row["quantity"]))


def _in_input_order(rows: list[Membership], card_ids: Sequence[str]) -> list[Membership]:
    """RETURNING order is not guaranteed; report rows in the order they were sent."""
    position = {card_id: idx for idx, card_id in reversed(list(enumerate(card_ids)))}
    return sorted(rows, key=lambda m: position.get(m.card_id, len(position)))


def _chunks(items: Sequence[T], size: int) -> Iterator[Sequence[T]]:
    for start in range(0, len(items), size):
        yield items[start : start + size]


class SqlMembershipStore:
    """
    MembershipStore backed by the `deck_cards` table.

    Large batches are written in several statements of at most
    `rows_per_statement` cards each, all inside the session's transaction.
    """

    def __init__(
        self, session: AsyncSession, rows_per_statement: int = MAX_ROWS_PER_STATEMENT
    ) -> None:
        self.session = session
        self.rows_per_statement = rows_per_statement

    @property
    def dialect_name(self) -> str:
        return self.session.get_bind().dialect.name

    async def collection_exists(self, deck_id: int) -> bool:
        """
        Check that a deck exists, locking its row for the rest of the transaction.

        The lock serializes concurrent reconciliations of the same deck on
        PostgreSQL. SQLite ignores FOR UPDATE.
        """
        result = await self.session.execute(
            select(DeckDB.id).where(DeckDB.id == deck_id).with_for_update()
        )
        return result.scalar_one_or_none() is not None

    async def existing_member_ids(self, deck_id: int) -> list[str]:
        """Get the card ids currently in a deck."""
        result = await self.session.execute(
            select(DeckCardDB.card_id).where(DeckCardDB.deck_id == deck_id)
        )
        return list(result.scalars().all())

    async def insert_memberships(self, rows: Sequence[MembershipRow]) -> list[Membership]:
        """
        Insert card rows, one statement per `rows_per_statement` rows.

        Rows that collide with an existing (deck_id, card_id) are skipped
        and left out of the result.

        Raises:
            EmptyBatchError: If rows is empty
        """
        if not rows:
            raise EmptyBatchError()

        inserted: list[Membership] = []
        for chunk in _chunks(rows, self.rows_per_statement):
            placeholders = build_insert_placeholders([row._asdict() for row in chunk])
            sql = (
                "INSERT INTO deck_cards (deck_id, card_id, quantity) "
                f"VALUES {placeholders} "
                "ON CONFLICT (deck_id, card_id) DO NOTHING "
                "RETURNING card_id, quantity"
            )
            values = [value for row in chunk for value in row]

            result = await self.session.execute(bind_positional(sql, values, self.dialect_name))
            inserted.extend(_to_membership(r) for r in result.mappings().all())
        return _in_input_order(inserted, [row.card_id for row in rows])

    async def update_quantities(
        self, deck_id: int, updates: Sequence[Candidate]
    ) -> list[Membership]:
        """
        Set new quantities for cards already in a deck.

        Each card gets its own CASE arm; matched rows that are not listed
        keep their quantity.
        """
        updated: list[Membership] = []
        for chunk in _chunks(updates, self.rows_per_statement):
            updated.extend(await self._update_chunk(deck_id, chunk))
        return _in_input_order(updated, [c.card_id for c in updates])

    async def _update_chunk(
        self, deck_id: int, updates: Sequence[Candidate]
    ) -> list[Membership]:
        count = len(updates)
        cases = "\n".join(
            f"WHEN card_id = ${2 * idx + 1} THEN ${2 * idx + 2}" for idx in range(count)
        )
        id_placeholders = ", ".join(f"${2 * count + idx + 1}" for idx in range(count))
        sql = (
            "UPDATE deck_cards\n"
            "SET quantity = CASE\n"
            f"{cases}\n"
            "ELSE quantity\n"
            "END\n"
            f"WHERE card_id IN ({id_placeholders})\n"
            f"AND deck_id = ${3 * count + 1}\n"
            "RETURNING card_id, quantity"
        )
        values: list[Any] = [v for c in updates for v in (c.card_id, c.quantity)]
        values.extend(c.card_id for c in updates)
        values.append(deck_id)

        result = await self.session.execute(bind_positional(sql, values, self.dialect_name))
        return [_to_membership(r) for r in result.mappings().all()]

    async def delete_memberships(self, deck_id: int, card_ids: Sequence[str]) -> int:
        """
        Delete cards from a deck.

        Ids that are not in the deck are ignored.

        Returns:
            Number of rows deleted.
        """
        deleted = 0
        for chunk in _chunks(card_ids, self.rows_per_statement):
            id_placeholders = ", ".join(f"${idx + 1}" for idx in range(len(chunk)))
            sql = (
                "DELETE FROM deck_cards "
                f"WHERE card_id IN ({id_placeholders}) "
                f"AND deck_id = ${len(chunk) + 1} "
                "RETURNING card_id"
            )
            result = await self.session.execute(
                bind_positional(sql, [*chunk, deck_id], self.dialect_name)
            )
            deleted += len(result.all())
        return deleted

    async def list_memberships(self, deck_id: int) -> list[Membership]:
        """Get all cards in a deck, ordered by card id."""
        result = await self.session.execute(
            select(DeckCardDB.card_id, DeckCardDB.quantity)
            .where(DeckCardDB.deck_id == deck_id)
            .order_by(DeckCardDB.card_id)
        )
        return [_to_membership(row) for row in result.mappings().all()]
