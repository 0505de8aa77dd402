"""
Applying card batches to a deck.

A client sends a batch of (card_id, quantity) pairs. The reconciler works out
which of them can be applied and applies only those, in as few statements
as possible. Cards that cannot be applied come back as `rejected`; a
rejection is a normal result, never an exception.

RULES:
- add: cards already in the deck are rejected without asking the oracle.
  New cards are validated against the oracle; unknown ones are rejected.
  Everything else goes in with one multi-row insert.
- update: only cards already in the deck can change quantity. No oracle
  call, because membership proves the id was validated when it was added.
- remove: lenient. Ids that are not in the deck are silently ignored.
- A card id repeated within one batch is applied once; repeats are rejected.

Every operation first checks the deck exists (CollectionNotFoundError) and
runs inside the caller's transaction. Results report what the store
returned, not what was requested.
"""

import logging
from collections.abc import Sequence

from magidekt.config import settings
from magidekt.db.membership_store import MembershipRow, MembershipStore
from magidekt.models.failure import CollectionNotFoundError
from magidekt.models.membership import AddResult, Candidate, Membership, UpdateResult
from magidekt.services.card_oracle import (
    MAX_IDENTIFIERS_PER_REQUEST,
    CardOracle,
    validate_batch,
)

logger = logging.getLogger(__name__)


def _split_by_membership(
    candidates: Sequence[Candidate], members: set[str]
) -> tuple[list[Candidate], list[Candidate]]:
    """
    Split candidates into (in_deck, not_in_deck).

    A repeat of a card id seen earlier in the batch counts as in_deck.
    """
    seen = set(members)
    in_deck: list[Candidate] = []
    not_in_deck: list[Candidate] = []
    for candidate in candidates:
        if candidate.card_id in seen:
            in_deck.append(candidate)
        else:
            not_in_deck.append(candidate)
            seen.add(candidate.card_id)
    return in_deck, not_in_deck


def _missing_from(applied: Sequence[Membership], requested: Sequence[Candidate]) -> list[Candidate]:
    """Requested candidates the store did not report back."""
    applied_ids = {m.card_id for m in applied}
    return [c for c in requested if c.card_id not in applied_ids]


class MembershipReconciler:
    """Adds, updates, removes and lists the cards of a deck."""

    def __init__(
        self,
        store: MembershipStore,
        oracle: CardOracle,
        batch_size: int | None = None,
    ) -> None:
        self.store = store
        self.oracle = oracle
        # Larger chunks would be refused by Scryfall
        self.batch_size = min(
            batch_size or settings.oracle_batch_size, MAX_IDENTIFIERS_PER_REQUEST
        )

    async def _ensure_deck(self, deck_id: int) -> None:
        if not await self.store.collection_exists(deck_id):
            raise CollectionNotFoundError(deck_id)

    async def add(self, deck_id: int, candidates: Sequence[Candidate]) -> AddResult:
        """
        Add new cards to a deck.

        Args:
            deck_id: Target deck
            candidates: Cards and quantities to add

        Returns:
            AddResult where rejected lists cards already in the deck first,
            then cards the oracle did not recognize.

        Raises:
            CollectionNotFoundError: If the deck does not exist
            OracleUnavailableError: If validation fails; nothing is inserted
        """
        await self._ensure_deck(deck_id)
        members = set(await self.store.existing_member_ids(deck_id))

        already_present, to_validate = _split_by_membership(candidates, members)
        validation = await validate_batch(self.oracle, to_validate, self.batch_size)

        result = AddResult(rejected=[*already_present, *validation.not_found])
        if validation.found:
            rows = [MembershipRow(deck_id, c.card_id, c.quantity) for c in validation.found]
            result.added = await self.store.insert_memberships(rows)
            # Inserted concurrently by another transaction
            result.rejected.extend(_missing_from(result.added, validation.found))

        logger.info(
            "Deck %s add: %d requested, %d added, %d rejected",
            deck_id,
            len(candidates),
            len(result.added),
            len(result.rejected),
        )
        return result

    async def update(self, deck_id: int, candidates: Sequence[Candidate]) -> UpdateResult:
        """
        Change the quantity of cards already in a deck.

        Args:
            deck_id: Target deck
            candidates: Cards and their new quantities

        Returns:
            UpdateResult where rejected lists cards that are not in the deck.

        Raises:
            CollectionNotFoundError: If the deck does not exist
        """
        await self._ensure_deck(deck_id)
        members = set(await self.store.existing_member_ids(deck_id))

        to_update = [c for c in candidates if c.card_id in members]
        repeats, to_update = _split_by_membership(to_update, set())
        result = UpdateResult(rejected=[c for c in candidates if c.card_id not in members])
        result.rejected.extend(repeats)

        if to_update:
            result.updated = await self.store.update_quantities(deck_id, to_update)
            # Removed concurrently by another transaction
            result.rejected.extend(_missing_from(result.updated, to_update))

        logger.info(
            "Deck %s update: %d requested, %d updated, %d rejected",
            deck_id,
            len(candidates),
            len(result.updated),
            len(result.rejected),
        )
        return result

    async def remove(self, deck_id: int, card_ids: Sequence[str]) -> None:
        """
        Remove cards from a deck.

        Card ids that are not in the deck are ignored rather than rejected,
        so a client can clear a list of cards without checking it first.

        Raises:
            CollectionNotFoundError: If the deck does not exist
        """
        await self._ensure_deck(deck_id)
        deleted = await self.store.delete_memberships(deck_id, card_ids)
        logger.info("Deck %s remove: %d requested, %d deleted", deck_id, len(card_ids), deleted)

    async def get(self, deck_id: int) -> list[Membership]:
        """
        List the cards in a deck.

        Raises:
            CollectionNotFoundError: If the deck does not exist
        """
        await self._ensure_deck(deck_id)
        return await self.store.list_memberships(deck_id)
