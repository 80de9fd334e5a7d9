"""Error kinds and domain exceptions shared across the assistant."""

from enum import Enum


class ErrorKind(str, Enum):
    """Why a turn or a single invocation did not go through."""

    PROVIDER_UNAVAILABLE = "provider_unavailable"
    MALFORMED_TOOL_CALL = "malformed_tool_call"
    UNKNOWN_OPERATION = "unknown_operation"
    UNKNOWN_PRODUCT = "unknown_product"
    LOW_CONFIDENCE = "low_confidence"
    INVALID_PHASE_TRANSITION = "invalid_phase_transition"
    CONFIGURATION_MISSING = "configuration_missing"
    INVALID_ARGUMENTS = "invalid_arguments"
    LEDGER_REJECTED = "ledger_rejected"
    INVALID_INPUT = "invalid_input"


class ProviderUnavailable(Exception):
    """The model provider could not produce a response.

    ``transient`` marks failures worth retrying (timeouts, rate limits,
    5xx, dropped connections). Auth and request errors are not.
    """

    def __init__(self, message: str, *, transient: bool = True) -> None:
        super().__init__(message)
        self.transient = transient


class PersonaNotFoundError(KeyError):
    """No persona directory exists for the requested key."""


class LedgerError(Exception):
    """The transaction ledger refused an operation."""
