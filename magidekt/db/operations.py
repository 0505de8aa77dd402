"""
Deck CRUD operations.

Provides async functions for creating, reading, updating, and deleting
decks. Card membership changes go through the MembershipReconciler.
"""

from collections.abc import Mapping
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from magidekt.db.sql import bind_positional, build_assignment_clause
from magidekt.models.db import DeckCardDB, DeckDB, UserDB
from magidekt.models.deck import Deck, DeckSummary
from magidekt.models.failure import UserNotFoundError
from magidekt.models.membership import Membership

# Deck field name -> column name, where they differ
DECK_COLUMNS = {
    "name": "deck_name",
}

# Fields stored as JSONB
DECK_JSON_FIELDS = frozenset({"tags"})

_DECK_RETURNING = "id, deck_name, description, format, color_identity, tags, deck_owner"


async def create_deck(
    session: AsyncSession,
    owner: str,
    name: str,
    format_name: str,
    description: str = "",
    color_identity: str = "",
    tags: list[str] | None = None,
) -> DeckDB:
    """
    Create a new, empty deck.

    Raises:
        UserNotFoundError: If owner does not exist
    """
    if await session.get(UserDB, owner) is None:
        raise UserNotFoundError(owner)

    deck = DeckDB(
        deck_name=name,
        description=description,
        format=format_name,
        color_identity=color_identity,
        tags=list(tags or []),
        deck_owner=owner,
        cards=[],
    )
    session.add(deck)
    await session.flush()
    return deck


async def get_deck(
    session: AsyncSession, deck_id: int, owner: str | None = None
) -> DeckDB | None:
    """
    Get a deck with its cards.

    When owner is given, only returns the deck if it belongs to that user.
    Returns None if no such deck exists.
    """
    stmt = (
        select(DeckDB)
        .where(DeckDB.id == deck_id)
        .options(selectinload(DeckDB.cards))
        .execution_options(populate_existing=True)
    )
    if owner is not None:
        stmt = stmt.where(DeckDB.deck_owner == owner)

    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def list_user_decks(session: AsyncSession, username: str) -> list[DeckSummary]:
    """Get all decks owned by a user, ordered by name, with distinct card counts."""
    result = await session.execute(
        select(
            DeckDB.id,
            DeckDB.deck_name,
            DeckDB.description,
            DeckDB.format,
            DeckDB.color_identity,
            DeckDB.tags,
            UserDB.display_name,
            func.count(DeckCardDB.card_id).label("card_count"),
        )
        .join(UserDB, DeckDB.deck_owner == UserDB.username)
        .outerjoin(DeckCardDB, DeckCardDB.deck_id == DeckDB.id)
        .where(DeckDB.deck_owner == username)
        .group_by(DeckDB.id, UserDB.display_name)
        .order_by(DeckDB.deck_name)
    )
    return [
        DeckSummary(
            id=row.id,
            name=row.deck_name,
            description=row.description,
            format=row.format,
            color_identity=row.color_identity,
            tags=list(row.tags or []),
            display_name=row.display_name,
            card_count=int(row.card_count),
        )
        for row in result.all()
    ]


async def update_deck(
    session: AsyncSession,
    deck_id: int,
    fields: Mapping[str, Any],
    owner: str | None = None,
) -> Deck | None:
    """
    Partially update a deck's details.

    Only the given fields change. Field names are Deck attribute names
    (name, description, format, color_identity, tags).

    Returns:
        The updated deck without its cards, or None if not found.

    Raises:
        EmptyFieldSetError: If fields is empty
    """
    clause, values = build_assignment_clause(fields, DECK_COLUMNS, DECK_JSON_FIELDS)

    sql = f"UPDATE decks SET {clause} WHERE id = ${len(values) + 1}"
    values = [*values, deck_id]
    if owner is not None:
        sql += f" AND deck_owner = ${len(values) + 1}"
        values.append(owner)
    sql += f" RETURNING {_DECK_RETURNING}"

    dialect_name = session.get_bind().dialect.name
    table = DeckDB.__table__
    stmt = bind_positional(sql, values, dialect_name).columns(
        table.c.id,
        table.c.deck_name,
        table.c.description,
        table.c.format,
        table.c.color_identity,
        table.c.tags,
        table.c.deck_owner,
    )
    row = (await session.execute(stmt)).mappings().one_or_none()
    if row is None:
        return None

    return Deck(
        id=row["id"],
        name=row["deck_name"],
        description=row["description"],
        format=row["format"],
        color_identity=row["color_identity"],
        owner=row["deck_owner"],
        tags=list(row["tags"] or []),
    )


async def delete_deck(session: AsyncSession, deck_id: int, owner: str | None = None) -> bool:
    """
    Delete a deck and all of its cards.

    Returns True if deleted, False if not found.
    """
    deck = await get_deck(session, deck_id, owner)
    if not deck:
        return False

    await session.delete(deck)
    await session.flush()
    return True


def deck_to_model(deck: DeckDB) -> Deck:
    """Convert a database deck to a domain model."""
    cards = sorted(
        (Membership(card_id=c.card_id, quantity=int(c.quantity)) for c in deck.cards),
        key=lambda m: m.card_id,
    )
    return Deck(
        id=deck.id,
        name=deck.deck_name,
        description=deck.description,
        format=deck.format,
        color_identity=deck.color_identity,
        owner=deck.deck_owner,
        tags=list(deck.tags or []),
        cards=cards,
    )
