"""
Deck discovery endpoints.

Routes under /decks are not scoped to a user: any deck can be looked up
by id, cards included. Listing every deck is not offered.
"""

from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from magidekt.api.decks import DeckResponse, deck_response
from magidekt.config import DECK_FORMATS
from magidekt.db import deck_to_model, get_deck
from magidekt.db.database import get_session
from magidekt.models.failure import CollectionNotFoundError

router = APIRouter(prefix="/decks", tags=["decks"])


class FormatsResponse(BaseModel):
    formats: list[str]


@router.get("/formats", response_model=FormatsResponse)
async def get_deck_formats() -> FormatsResponse:
    """List the formats a deck can be tagged with."""
    return FormatsResponse(formats=list(DECK_FORMATS))


@router.get("/{deck_id}", response_model=DeckResponse)
async def get_any_deck(
    deck_id: int,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> DeckResponse:
    """Get any deck by id, with its cards, whoever owns it."""
    db_deck = await get_deck(session, deck_id)
    if db_deck is None:
        raise CollectionNotFoundError(deck_id)
    return deck_response(deck_to_model(db_deck))
