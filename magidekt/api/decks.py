"""
Deck API endpoints.

All routes live under /users/{username}/decks. Authentication and
ownership checks happen upstream; these handlers trust the path.

Card routes return rejected cards as part of a successful response:
a rejected card is information for the client, not an error.
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.ext.asyncio import AsyncSession

from magidekt.config import DECK_FORMATS
from magidekt.db import (
    SqlMembershipStore,
    create_deck,
    deck_to_model,
    delete_deck,
    get_deck,
    list_user_decks,
    update_deck,
)
from magidekt.db.database import get_session
from magidekt.models.deck import Deck
from magidekt.models.failure import CollectionNotFoundError
from magidekt.models.membership import Candidate, Membership
from magidekt.services.card_oracle import CardOracle, get_card_oracle
from magidekt.services.membership_reconciler import MembershipReconciler

router = APIRouter(prefix="/users/{username}/decks", tags=["decks"])


def _check_format(value: str | None) -> str | None:
    if value is not None and value not in DECK_FORMATS:
        raise ValueError(f"format must be one of: {', '.join(DECK_FORMATS)}")
    return value


class DeckCreateRequest(BaseModel):
    """Request model for creating a deck."""

    name: str = Field(..., min_length=1, max_length=255, examples=["Mono Red Burn"])
    format: str = Field(..., description="Deck format", examples=["modern"])
    description: str = ""
    color_identity: str = Field(default="", max_length=10, examples=["R"])
    tags: list[str] = Field(default_factory=list, examples=[["burn", "budget"]])

    @field_validator("format")
    @classmethod
    def validate_format(cls, value: str | None) -> str | None:
        return _check_format(value)


class DeckUpdateRequest(BaseModel):
    """Request model for a partial deck update. Only provided fields change."""

    name: str | None = Field(default=None, min_length=1, max_length=255)
    format: str | None = None
    description: str | None = None
    color_identity: str | None = Field(default=None, max_length=10)
    tags: list[str] | None = None

    @field_validator("format")
    @classmethod
    def validate_format(cls, value: str | None) -> str | None:
        return _check_format(value)


class CardEntry(BaseModel):
    """A card id with a quantity."""

    card_id: str
    quantity: int


class CardRequestEntry(BaseModel):
    """A card to add or update."""

    card_id: UUID = Field(..., description="Scryfall card id")
    quantity: int = Field(..., ge=1)


class CardsRequest(BaseModel):
    """Request model for adding or updating cards."""

    cards: list[CardRequestEntry] = Field(..., min_length=1)

    def to_candidates(self) -> list[Candidate]:
        return [Candidate(card_id=str(c.card_id), quantity=c.quantity) for c in self.cards]


class RemoveCardsRequest(BaseModel):
    """Request model for removing cards."""

    card_ids: list[UUID] = Field(..., min_length=1)


class DeckResponse(BaseModel):
    """Response model for a deck."""

    id: int
    name: str
    description: str
    format: str
    color_identity: str
    tags: list[str] = Field(default_factory=list)
    owner: str
    cards: list[CardEntry] = Field(default_factory=list)
    total_cards: int = 0


class DeckSummaryResponse(BaseModel):
    """Response model for a deck in a listing."""

    id: int
    name: str
    description: str
    format: str
    color_identity: str
    tags: list[str] = Field(default_factory=list)
    display_name: str | None = None
    card_count: int = 0


class DeleteDeckResponse(BaseModel):
    deleted: int


class CardListResponse(BaseModel):
    cards: list[CardEntry] = Field(default_factory=list)


class AddCardsResponse(BaseModel):
    rejected: list[CardEntry] = Field(default_factory=list)
    added: list[CardEntry] = Field(default_factory=list)


class UpdateCardsResponse(BaseModel):
    rejected: list[CardEntry] = Field(default_factory=list)
    updated: list[CardEntry] = Field(default_factory=list)


class RemoveCardsResponse(BaseModel):
    deleted: list[str] = Field(default_factory=list)


def _entries(items: list[Candidate] | list[Membership]) -> list[CardEntry]:
    return [CardEntry(card_id=item.card_id, quantity=item.quantity) for item in items]


def deck_response(deck: Deck) -> DeckResponse:
    return DeckResponse(
        id=deck.id,
        name=deck.name,
        description=deck.description,
        format=deck.format,
        color_identity=deck.color_identity,
        tags=deck.tags,
        owner=deck.owner,
        cards=_entries(deck.cards),
        total_cards=deck.total_cards(),
    )


def get_reconciler(
    session: Annotated[AsyncSession, Depends(get_session)],
    oracle: Annotated[CardOracle, Depends(get_card_oracle)],
) -> MembershipReconciler:
    """Dependency that provides a reconciler bound to the request's session."""
    return MembershipReconciler(SqlMembershipStore(session), oracle)


@router.post("", response_model=DeckResponse, status_code=status.HTTP_201_CREATED)
async def create_user_deck(
    username: str,
    request: DeckCreateRequest,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> DeckResponse:
    """Create a new, empty deck owned by username."""
    db_deck = await create_deck(
        session,
        owner=username,
        name=request.name,
        format_name=request.format,
        description=request.description,
        color_identity=request.color_identity,
        tags=request.tags,
    )
    return deck_response(deck_to_model(db_deck))


@router.get("", response_model=list[DeckSummaryResponse])
async def list_decks(
    username: str,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> list[DeckSummaryResponse]:
    """List username's decks with their distinct card counts."""
    summaries = await list_user_decks(session, username)
    return [
        DeckSummaryResponse(
            id=s.id,
            name=s.name,
            description=s.description,
            format=s.format,
            color_identity=s.color_identity,
            tags=s.tags,
            display_name=s.display_name,
            card_count=s.card_count,
        )
        for s in summaries
    ]


@router.get("/{deck_id}", response_model=DeckResponse)
async def get_user_deck(
    username: str,
    deck_id: int,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> DeckResponse:
    """Get one of username's decks with its cards."""
    db_deck = await get_deck(session, deck_id, owner=username)
    if db_deck is None:
        raise CollectionNotFoundError(deck_id, owner=username)
    return deck_response(deck_to_model(db_deck))


@router.patch("/{deck_id}", response_model=DeckResponse)
async def update_user_deck(
    username: str,
    deck_id: int,
    request: DeckUpdateRequest,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> DeckResponse:
    """
    Update a deck's details.

    This is a partial update: only fields present in the body change.
    An empty body is rejected with 400.
    """
    fields = request.model_dump(exclude_unset=True, exclude_none=True)
    if await update_deck(session, deck_id, fields, owner=username) is None:
        raise CollectionNotFoundError(deck_id, owner=username)

    # Reload so the response includes the deck's cards
    db_deck = await get_deck(session, deck_id)
    if db_deck is None:
        raise CollectionNotFoundError(deck_id)
    return deck_response(deck_to_model(db_deck))


@router.delete("/{deck_id}", response_model=DeleteDeckResponse)
async def delete_user_deck(
    username: str,
    deck_id: int,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> DeleteDeckResponse:
    """Delete a deck and all of its cards."""
    if not await delete_deck(session, deck_id, owner=username):
        raise CollectionNotFoundError(deck_id, owner=username)
    return DeleteDeckResponse(deleted=deck_id)


@router.post(
    "/{deck_id}/cards",
    response_model=AddCardsResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_deck_cards(
    deck_id: int,
    request: CardsRequest,
    reconciler: Annotated[MembershipReconciler, Depends(get_reconciler)],
) -> AddCardsResponse:
    """
    Add cards to a deck.

    Cards already in the deck and cards Scryfall does not know are
    returned in `rejected`; the rest are added.
    """
    result = await reconciler.add(deck_id, request.to_candidates())
    return AddCardsResponse(rejected=_entries(result.rejected), added=_entries(result.added))


@router.get("/{deck_id}/cards", response_model=CardListResponse)
async def list_deck_cards(
    deck_id: int,
    reconciler: Annotated[MembershipReconciler, Depends(get_reconciler)],
) -> CardListResponse:
    """List the cards in a deck."""
    return CardListResponse(cards=_entries(await reconciler.get(deck_id)))


@router.patch("/{deck_id}/cards", response_model=UpdateCardsResponse)
async def update_deck_cards(
    deck_id: int,
    request: CardsRequest,
    reconciler: Annotated[MembershipReconciler, Depends(get_reconciler)],
) -> UpdateCardsResponse:
    """
    Change card quantities in a deck.

    Cards that are not in the deck are returned in `rejected`.
    """
    result = await reconciler.update(deck_id, request.to_candidates())
    return UpdateCardsResponse(rejected=_entries(result.rejected), updated=_entries(result.updated))


@router.delete("/{deck_id}/cards", response_model=RemoveCardsResponse)
async def remove_deck_cards(
    deck_id: int,
    request: RemoveCardsRequest,
    reconciler: Annotated[MembershipReconciler, Depends(get_reconciler)],
) -> RemoveCardsResponse:
    """
    Remove cards from a deck.

    Ids that are not in the deck are ignored; the response echoes the
    requested ids.
    """
    card_ids = [str(card_id) for card_id in request.card_ids]
    await reconciler.remove(deck_id, card_ids)
    return RemoveCardsResponse(deleted=card_ids)
