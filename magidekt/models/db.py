"""
SQLAlchemy ORM models for persistent storage.

Models mirror the dataclass models but add database persistence.
Card rows only hold Scryfall identifiers; card details are never stored.
"""

from typing import Any

from sqlalchemy import JSON, ForeignKey, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

# JSONB on PostgreSQL, plain JSON (stored as text) elsewhere
JSONType = JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class UserDB(Base):
    """
    A registered user.

    Accounts are managed elsewhere; this table is only read to check that a
    deck owner exists.
    """

    __tablename__ = "users"

    username: Mapped[str] = mapped_column(String(30), primary_key=True)
    display_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    decks: Mapped[list["DeckDB"]] = relationship(
        back_populates="owner", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<UserDB(username={self.username})>"


class DeckDB(Base):
    """
    A user's deck.

    Owns its card rows: deleting a deck deletes its cards.
    """

    __tablename__ = "decks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    deck_name: Mapped[str] = mapped_column(String(255))
    description: Mapped[str] = mapped_column(Text, default="")
    format: Mapped[str] = mapped_column(String(50), index=True)
    color_identity: Mapped[str] = mapped_column(String(10), default="")
    tags: Mapped[list[Any]] = mapped_column(JSONType, default=list)
    deck_owner: Mapped[str] = mapped_column(
        String(30), ForeignKey("users.username", ondelete="CASCADE"), index=True
    )

    owner: Mapped["UserDB"] = relationship(back_populates="decks")
    cards: Mapped[list["DeckCardDB"]] = relationship(
        back_populates="deck", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<DeckDB(id={self.id}, name={self.deck_name}, owner={self.deck_owner})>"


class DeckCardDB(Base):
    """
    A card in a deck.

    Keyed by (deck_id, card_id) so a card appears at most once per deck.
    card_id is a Scryfall UUID with no local foreign key.
    """

    __tablename__ = "deck_cards"

    deck_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("decks.id", ondelete="CASCADE"), primary_key=True
    )
    card_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    quantity: Mapped[int] = mapped_column(Integer, default=1)

    deck: Mapped["DeckDB"] = relationship(back_populates="cards")

    def __repr__(self) -> str:
        return f"<DeckCardDB(deck={self.deck_id}, card={self.card_id}, qty={self.quantity})>"
