"""Tests for the SQL-backed membership store."""

import pytest
from sqlalchemy import event, select
from sqlalchemy.ext.asyncio import AsyncSession

from magidekt.db.membership_store import MembershipRow, SqlMembershipStore
from magidekt.db.operations import create_deck
from magidekt.db.sql import EmptyBatchError
from magidekt.models.db import DeckCardDB, UserDB
from magidekt.models.membership import Candidate, Membership
from tests.fakes import BOLT, GOBLIN_GUIDE, MOUNTAIN, SWIFTSPEAR, UNKNOWN_CARD, card_id


class TestCollectionExists:
    async def test_existing_deck(self, session: AsyncSession, deck_id: int) -> None:
        """An existing deck is found."""
        assert await SqlMembershipStore(session).collection_exists(deck_id) is True

    async def test_missing_deck(self, session: AsyncSession) -> None:
        """A missing deck is not found."""
        assert await SqlMembershipStore(session).collection_exists(9999) is False


class TestInsertMemberships:
    async def test_inserts_and_returns_rows(self, session: AsyncSession, deck_id: int) -> None:
        """Rows come back from the store in the order they were sent."""
        store = SqlMembershipStore(session)

        inserted = await store.insert_memberships(
            [
                MembershipRow(deck_id, MOUNTAIN, 20),
                MembershipRow(deck_id, BOLT, 4),
            ]
        )
        await session.commit()

        assert inserted == [Membership(MOUNTAIN, 20), Membership(BOLT, 4)]
        assert sorted(await store.existing_member_ids(deck_id)) == sorted([MOUNTAIN, BOLT])

    async def test_quantities_are_ints(self, session: AsyncSession, deck_id: int) -> None:
        """Quantities are normalized to int."""
        store = SqlMembershipStore(session)

        inserted = await store.insert_memberships([MembershipRow(deck_id, BOLT, 4)])

        assert isinstance(inserted[0].quantity, int)

    async def test_skips_conflicting_rows(self, session: AsyncSession, deck_id: int) -> None:
        """A row that already exists is skipped and left out of the result."""
        store = SqlMembershipStore(session)
        await store.insert_memberships([MembershipRow(deck_id, BOLT, 4)])

        inserted = await store.insert_memberships(
            [MembershipRow(deck_id, BOLT, 1), MembershipRow(deck_id, SWIFTSPEAR, 2)]
        )

        assert inserted == [Membership(SWIFTSPEAR, 2)]
        assert await store.list_memberships(deck_id) == sorted(
            [Membership(BOLT, 4), Membership(SWIFTSPEAR, 2)], key=lambda m: m.card_id
        )


class TestUpdateQuantities:
    async def test_updates_listed_cards_only(self, session: AsyncSession, deck_id: int) -> None:
        """Only cards with a CASE arm change; others keep their quantity."""
        store = SqlMembershipStore(session)
        await store.insert_memberships(
            [
                MembershipRow(deck_id, BOLT, 4),
                MembershipRow(deck_id, MOUNTAIN, 20),
                MembershipRow(deck_id, SWIFTSPEAR, 4),
            ]
        )

        updated = await store.update_quantities(
            deck_id, [Candidate(MOUNTAIN, 18), Candidate(BOLT, 3)]
        )

        assert updated == [Membership(MOUNTAIN, 18), Membership(BOLT, 3)]
        quantities = {m.card_id: m.quantity for m in await store.list_memberships(deck_id)}
        assert quantities == {BOLT: 3, MOUNTAIN: 18, SWIFTSPEAR: 4}

    async def test_scoped_to_deck(
        self, session: AsyncSession, deck_id: int, user: UserDB
    ) -> None:
        """The same card in another deck is not touched."""
        other = await create_deck(session, owner=user.username, name="Other", format_name="modern")
        store = SqlMembershipStore(session)
        await store.insert_memberships(
            [MembershipRow(deck_id, BOLT, 4), MembershipRow(other.id, BOLT, 2)]
        )

        await store.update_quantities(deck_id, [Candidate(BOLT, 1)])

        assert await store.list_memberships(other.id) == [Membership(BOLT, 2)]

    async def test_missing_card_not_returned(self, session: AsyncSession, deck_id: int) -> None:
        """A card that is not in the deck matches nothing."""
        store = SqlMembershipStore(session)

        updated = await store.update_quantities(deck_id, [Candidate(UNKNOWN_CARD, 2)])

        assert updated == []

    async def test_empty_updates(self, session: AsyncSession, deck_id: int) -> None:
        """No updates means no statement."""
        assert await SqlMembershipStore(session).update_quantities(deck_id, []) == []


class TestDeleteMemberships:
    async def test_deletes_listed_cards(self, session: AsyncSession, deck_id: int) -> None:
        """Listed cards are removed; others stay."""
        store = SqlMembershipStore(session)
        await store.insert_memberships(
            [MembershipRow(deck_id, BOLT, 4), MembershipRow(deck_id, GOBLIN_GUIDE, 4)]
        )

        deleted = await store.delete_memberships(deck_id, [BOLT])

        assert deleted == 1
        assert await store.list_memberships(deck_id) == [Membership(GOBLIN_GUIDE, 4)]

    async def test_unknown_ids_are_ignored(self, session: AsyncSession, deck_id: int) -> None:
        """Deleting cards that are not in the deck is a no-op."""
        store = SqlMembershipStore(session)
        await store.insert_memberships([MembershipRow(deck_id, BOLT, 4)])

        deleted = await store.delete_memberships(deck_id, [UNKNOWN_CARD])

        assert deleted == 0
        assert await store.list_memberships(deck_id) == [Membership(BOLT, 4)]

    async def test_empty_ids(self, session: AsyncSession, deck_id: int) -> None:
        """An empty id list deletes nothing."""
        assert await SqlMembershipStore(session).delete_memberships(deck_id, []) == 0


class TestListMemberships:
    async def test_ordered_by_card_id(self, session: AsyncSession, deck_id: int) -> None:
        """Cards are listed by card id."""
        store = SqlMembershipStore(session)
        await store.insert_memberships(
            [MembershipRow(deck_id, MOUNTAIN, 20), MembershipRow(deck_id, BOLT, 4)]
        )

        listed = await store.list_memberships(deck_id)

        assert [m.card_id for m in listed] == sorted([MOUNTAIN, BOLT])

    async def test_rows_visible_to_orm(self, session: AsyncSession, deck_id: int) -> None:
        """Rows written with bulk SQL are ordinary deck_cards rows."""
        store = SqlMembershipStore(session)
        await store.insert_memberships([MembershipRow(deck_id, BOLT, 4)])
        await session.commit()

        result = await session.execute(select(DeckCardDB).where(DeckCardDB.deck_id == deck_id))
        row = result.scalar_one()

        assert row.card_id == BOLT
        assert row.quantity == 4


@pytest.fixture
def statements(async_engine) -> list[str]:
    """Every SQL statement sent to the database during the test."""
    seen: list[str] = []

    def record(conn, cursor, statement, parameters, context, executemany):
        seen.append(statement)

    event.listen(async_engine.sync_engine, "before_cursor_execute", record)
    yield seen
    event.remove(async_engine.sync_engine, "before_cursor_execute", record)


def _count(statements: list[str], prefix: str) -> int:
    return sum(1 for s in statements if s.lstrip().startswith(prefix))


class TestChunkedStatements:
    async def test_insert_split_across_statements(
        self, session: AsyncSession, deck_id: int, statements: list[str]
    ) -> None:
        """Rows beyond the per-statement limit go into further statements."""
        store = SqlMembershipStore(session, rows_per_statement=2)
        rows = [MembershipRow(deck_id, card_id(n), n + 1) for n in range(5)]

        inserted = await store.insert_memberships(rows)

        assert _count(statements, "INSERT INTO deck_cards") == 3
        assert inserted == [Membership(r.card_id, r.quantity) for r in rows]

    async def test_insert_conflicts_skipped_in_any_chunk(
        self, session: AsyncSession, deck_id: int
    ) -> None:
        store = SqlMembershipStore(session, rows_per_statement=2)
        await store.insert_memberships([MembershipRow(deck_id, card_id(3), 9)])

        inserted = await store.insert_memberships(
            [MembershipRow(deck_id, card_id(n), 1) for n in range(5)]
        )

        assert [m.card_id for m in inserted] == [card_id(n) for n in (0, 1, 2, 4)]

    async def test_update_split_across_statements(
        self, session: AsyncSession, deck_id: int, statements: list[str]
    ) -> None:
        """Each update statement stays within the limit; all rows change."""
        store = SqlMembershipStore(session, rows_per_statement=2)
        await store.insert_memberships([MembershipRow(deck_id, card_id(n), 1) for n in range(5)])
        statements.clear()

        updated = await store.update_quantities(
            deck_id, [Candidate(card_id(n), 10 + n) for n in range(5)]
        )

        assert _count(statements, "UPDATE deck_cards") == 3
        assert updated == [Membership(card_id(n), 10 + n) for n in range(5)]
        assert all(m.quantity >= 10 for m in await store.list_memberships(deck_id))

    async def test_delete_split_across_statements(
        self, session: AsyncSession, deck_id: int, statements: list[str]
    ) -> None:
        store = SqlMembershipStore(session, rows_per_statement=2)
        await store.insert_memberships([MembershipRow(deck_id, card_id(n), 1) for n in range(5)])
        statements.clear()

        deleted = await store.delete_memberships(deck_id, [card_id(n) for n in range(5)])

        assert _count(statements, "DELETE FROM deck_cards") == 3
        assert deleted == 5
        assert await store.list_memberships(deck_id) == []

    async def test_default_limit_fits_postgres_parameter_cap(self, session: AsyncSession) -> None:
        """The largest update binds three values per card plus the deck id."""
        store = SqlMembershipStore(session)

        assert 3 * store.rows_per_statement + 1 <= 32767

    async def test_empty_insert_fails(self, session: AsyncSession) -> None:
        with pytest.raises(EmptyBatchError):
            await SqlMembershipStore(session).insert_memberships([])
