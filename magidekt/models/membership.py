from dataclasses import dataclass, field


@dataclass(frozen=True)
class Candidate:
    """
    A card a client asked to add to or update in a deck.

    Lives only for the duration of one reconciliation call.

    Attributes:
        card_id: Scryfall card UUID
        quantity: Requested number of copies
    """

    card_id: str
    quantity: int


@dataclass(frozen=True)
class Membership:
    """A persisted card-in-deck row, as returned by the store."""

    card_id: str
    quantity: int


@dataclass
class AddResult:
    """Outcome of adding cards to a deck."""

    rejected: list[Candidate] = field(default_factory=list)
    added: list[Membership] = field(default_factory=list)


@dataclass
class UpdateResult:
    """Outcome of updating card quantities in a deck."""

    rejected: list[Candidate] = field(default_factory=list)
    updated: list[Membership] = field(default_factory=list)
