from magidekt.models.deck import Deck, DeckSummary
from magidekt.models.failure import (
    ApiResponse,
    CollectionNotFoundError,
    FailureDetail,
    FailureKind,
    KnownError,
    OutcomeType,
    UserNotFoundError,
)
from magidekt.models.membership import AddResult, Candidate, Membership, UpdateResult

__all__ = [
    "AddResult",
    "ApiResponse",
    "Candidate",
    "CollectionNotFoundError",
    "Deck",
    "DeckSummary",
    "FailureDetail",
    "FailureKind",
    "KnownError",
    "Membership",
    "OutcomeType",
    "UpdateResult",
    "UserNotFoundError",
]
