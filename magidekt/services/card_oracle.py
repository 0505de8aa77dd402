"""
Card identity validation against Scryfall.

Scryfall is the system of record for which card UUIDs exist. Decks never
store card details, so a card id is accepted into a deck only after
Scryfall has recognized it.

`validate_batch` splits candidates into transport-sized chunks, asks the
oracle about each chunk in turn, and then splits the original candidate list
into found / not found so that requested quantities survive the round trip.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Protocol

import httpx

from magidekt.config import settings
from magidekt.models.failure import FailureKind, KnownError
from magidekt.models.membership import Candidate

logger = logging.getLogger(__name__)

# Maximum identifiers per Scryfall /cards/collection request
MAX_IDENTIFIERS_PER_REQUEST = 75


class OracleUnavailableError(KnownError):
    """
    Raised when the card oracle cannot be reached or answers with an error.

    Not retried. The enclosing deck operation fails as a whole.
    """

    def __init__(self, detail: str | None = None):
        super().__init__(
            kind=FailureKind.SERVICE_UNAVAILABLE,
            message="Card validation service is unavailable.",
            detail=detail,
            suggestion="Please try again later.",
            status_code=503,
        )


@dataclass
class OracleLookup:
    """The oracle's answer for one chunk of card ids."""

    recognized: list[str] = field(default_factory=list)
    unrecognized: list[str] = field(default_factory=list)


@dataclass
class ValidationResult:
    """Candidates split by whether the oracle recognized their card id."""

    found: list[Candidate] = field(default_factory=list)
    not_found: list[Candidate] = field(default_factory=list)


class CardOracle(Protocol):
    """Anything that can tell which card ids exist."""

    async def lookup_batch(self, card_ids: Sequence[str]) -> OracleLookup: ...


class ScryfallOracle:
    """
    CardOracle backed by the Scryfall collection endpoint.

    POST /cards/collection takes up to 75 identifiers and answers with the
    matching cards in `data` and the unmatched identifiers in `not_found`.
    """

    def __init__(self, base_url: str | None = None, timeout: float | None = None) -> None:
        """
        Initialize the Scryfall client.

        Args:
            base_url: Scryfall API base URL. Defaults to settings.scryfall_url.
            timeout: Request timeout in seconds. Defaults to settings.scryfall_timeout.
        """
        self.base_url = base_url or settings.scryfall_url
        self.timeout = timeout if timeout is not None else settings.scryfall_timeout

    async def lookup_batch(self, card_ids: Sequence[str]) -> OracleLookup:
        """
        Look up one chunk of card ids.

        Args:
            card_ids: At most 75 Scryfall card UUIDs

        Returns:
            OracleLookup with recognized and unrecognized ids

        Raises:
            ValueError: If more than 75 ids are given
            OracleUnavailableError: If the request fails
        """
        if len(card_ids) > MAX_IDENTIFIERS_PER_REQUEST:
            raise ValueError(
                f"Scryfall accepts at most {MAX_IDENTIFIERS_PER_REQUEST} identifiers "
                f"per request, got {len(card_ids)}"
            )

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    f"{self.base_url}/cards/collection",
                    json={"identifiers": [{"id": card_id} for card_id in card_ids]},
                )
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as e:
            raise OracleUnavailableError(f"Scryfall returned HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise OracleUnavailableError(f"Scryfall request failed: {e}") from e
        except ValueError as e:
            raise OracleUnavailableError("Scryfall returned a body that is not JSON") from e

        return OracleLookup(
            recognized=[card["id"] for card in data.get("data", []) if "id" in card],
            unrecognized=[entry["id"] for entry in data.get("not_found", []) if "id" in entry],
        )


async def validate_batch(
    oracle: CardOracle,
    candidates: Sequence[Candidate],
    batch_size: int = MAX_IDENTIFIERS_PER_REQUEST,
) -> ValidationResult:
    """
    Split candidates by whether the oracle recognizes their card id.

    Chunks are sent one after another; a failing chunk aborts the rest.

    Args:
        oracle: Card oracle to consult
        candidates: Cards to validate
        batch_size: Maximum ids per oracle call

    Returns:
        ValidationResult preserving input order and quantities
    """
    recognized: set[str] = set()
    chunk_count = 0
    for start in range(0, len(candidates), batch_size):
        chunk = candidates[start : start + batch_size]
        try:
            lookup = await oracle.lookup_batch([c.card_id for c in chunk])
        except OracleUnavailableError:
            logger.warning(
                "Card oracle failed on chunk %d (%d ids); aborting validation",
                chunk_count + 1,
                len(chunk),
            )
            raise
        recognized.update(lookup.recognized)
        chunk_count += 1

    logger.debug("Validated %d card ids in %d chunks", len(candidates), chunk_count)

    result = ValidationResult()
    for candidate in candidates:
        if candidate.card_id in recognized:
            result.found.append(candidate)
        else:
            result.not_found.append(candidate)
    return result


# Default oracle instance
_oracle: ScryfallOracle | None = None


def get_card_oracle() -> CardOracle:
    """
    Get the default card oracle instance.

    Returns:
        Singleton ScryfallOracle
    """
    global _oracle
    if _oracle is None:
        _oracle = ScryfallOracle()
    return _oracle
