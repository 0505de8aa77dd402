"""
Failure classification and the API failure envelope.

Every error the deck layer raises on purpose is a `KnownError`: the system
knows exactly what went wrong and which HTTP status describes it. The
exception handler registered in `magidekt.main` renders these through
`ApiResponse.known_failure`. Successful responses are plain response
models; only failures are wrapped.

Rejected cards are NOT failures. A reconciliation that rejects part of its
input returns the rejected cards as data.
"""

from enum import Enum

from pydantic import BaseModel, Field


class FailureKind(str, Enum):
    """Classification of failure types."""

    # Input validation failures
    INVALID_INPUT = "invalid_input"

    # Resource failures
    NOT_FOUND = "not_found"

    # Service failures
    SERVICE_UNAVAILABLE = "service_unavailable"


class OutcomeType(str, Enum):
    """High-level outcome classification."""

    KNOWN_FAILURE = "known_failure"


class FailureDetail(BaseModel):
    """Detailed information about a failure."""

    kind: FailureKind = Field(
        ...,
        description="Classification of the failure",
    )
    message: str = Field(
        ...,
        description="User-appropriate explanation of what went wrong",
    )
    detail: str | None = Field(
        default=None,
        description="Additional technical detail (optional)",
    )
    suggestion: str | None = Field(
        default=None,
        description="Suggested action for the user",
    )


class ApiResponse(BaseModel):
    """Response envelope used for failures raised out of the deck layer."""

    outcome: OutcomeType = Field(
        ...,
        description="High-level classification of the result",
    )
    failure: FailureDetail = Field(
        ...,
        description="Failure details",
    )

    @classmethod
    def known_failure(
        cls,
        kind: FailureKind,
        message: str,
        detail: str | None = None,
        suggestion: str | None = None,
    ) -> "ApiResponse":
        """
        Create a known failure response.

        Use when the system knows exactly why the operation failed.
        Example: Deck not found, empty update body.
        """
        return cls(
            outcome=OutcomeType.KNOWN_FAILURE,
            failure=FailureDetail(
                kind=kind,
                message=message,
                detail=detail,
                suggestion=suggestion,
            ),
        )


class KnownError(Exception):
    """
    Base class for exceptions that represent known, explainable failures.

    Subclass this for errors where the system knows exactly what went wrong.
    """

    def __init__(
        self,
        kind: FailureKind,
        message: str,
        detail: str | None = None,
        suggestion: str | None = None,
        status_code: int = 400,
    ):
        self.kind = kind
        self.message = message
        self.detail = detail
        self.suggestion = suggestion
        self.status_code = status_code
        super().__init__(message)

    def to_response(self) -> ApiResponse:
        """Convert to an ApiResponse."""
        return ApiResponse.known_failure(
            kind=self.kind,
            message=self.message,
            detail=self.detail,
            suggestion=self.suggestion,
        )


class CollectionNotFoundError(KnownError):
    """Raised by every membership operation when the target deck does not exist."""

    def __init__(self, deck_id: int, owner: str | None = None):
        self.deck_id = deck_id
        self.owner = owner
        message = (
            f"No deck {deck_id} found with owner: {owner}"
            if owner
            else f"No deck found with id: {deck_id}"
        )
        super().__init__(
            kind=FailureKind.NOT_FOUND,
            message=message,
            status_code=404,
        )


class UserNotFoundError(KnownError):
    """Raised when a deck is created for a user that does not exist."""

    def __init__(self, username: str):
        self.username = username
        super().__init__(
            kind=FailureKind.NOT_FOUND,
            message=f"No user: {username}",
            status_code=404,
        )
