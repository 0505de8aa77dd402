from magidekt.services.card_oracle import (
    CardOracle,
    OracleLookup,
    OracleUnavailableError,
    ScryfallOracle,
    ValidationResult,
    get_card_oracle,
    validate_batch,
)
from magidekt.services.membership_reconciler import MembershipReconciler

__all__ = [
    "CardOracle",
    "MembershipReconciler",
    "OracleLookup",
    "OracleUnavailableError",
    "ScryfallOracle",
    "ValidationResult",
    "get_card_oracle",
    "validate_batch",
]
