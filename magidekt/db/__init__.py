from magidekt.db.database import get_session, init_db
from magidekt.db.membership_store import MembershipRow, MembershipStore, SqlMembershipStore
from magidekt.db.operations import (
    create_deck,
    deck_to_model,
    delete_deck,
    get_deck,
    list_user_decks,
    update_deck,
)

__all__ = [
    "MembershipRow",
    "MembershipStore",
    "SqlMembershipStore",
    "create_deck",
    "deck_to_model",
    "delete_deck",
    "get_deck",
    "get_session",
    "init_db",
    "list_user_decks",
    "update_deck",
]
