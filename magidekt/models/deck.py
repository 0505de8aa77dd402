from dataclasses import dataclass, field

from magidekt.models.membership import Membership


@dataclass
class Deck:
    """
    A user's deck.

    Attributes:
        id: Database identifier
        name: Display name
        description: Free-form description
        format: Format tag (one of config.DECK_FORMATS)
        color_identity: Color identity string (e.g., "WUB")
        owner: Username of the owner
        tags: Free-form tags
        cards: Member cards, present when the deck was loaded with its cards
    """

    id: int
    name: str
    description: str
    format: str
    color_identity: str
    owner: str
    tags: list[str] = field(default_factory=list)
    cards: list[Membership] = field(default_factory=list)

    def total_cards(self) -> int:
        """Total number of card copies in the deck."""
        return sum(card.quantity for card in self.cards)

    def unique_cards(self) -> int:
        """Number of distinct cards in the deck."""
        return len(self.cards)


@dataclass
class DeckSummary:
    """A deck in a user's deck listing."""

    id: int
    name: str
    description: str
    format: str
    color_identity: str
    tags: list[str]
    display_name: str | None
    card_count: int  # distinct cards
