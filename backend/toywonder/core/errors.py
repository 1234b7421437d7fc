"""
Error types raised by the AI response broker.

Only ValidationError and TerminalError ever leave the broker. ProviderFailure
is raised by clients and parsers and absorbed at the strategy boundary;
ChainExhausted is converted into either a heuristic answer or a TerminalError.
"""
from enum import Enum
from typing import List, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from toywonder.services.strategies import ProviderResult


class ErrorKind(str, Enum):
    CAPABILITY_UNSUPPORTED = "capability_unsupported"
    GENERIC_FAILURE = "generic_failure"


class ToyWonderError(Exception):
    """Base class for broker errors."""


class ValidationError(ToyWonderError):
    """Bad or missing input, rejected before any strategy runs."""

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field
        self.message = message


class ProviderFailure(ToyWonderError):
    """A single strategy's transport, auth, capability or parse error."""

    def __init__(self, reason: str, unsupported: bool = False):
        super().__init__(reason)
        self.reason = reason
        self.unsupported = unsupported


class ChainExhausted(ToyWonderError):
    """Every configured strategy for a request kind failed."""

    def __init__(self, kind: str, failures: Optional[List["ProviderResult"]] = None):
        self.kind = kind
        self.failures = list(failures or [])
        reasons = "; ".join(f"{f.strategy}: {f.reason}" for f in self.failures) or "no strategies"
        super().__init__(f"All strategies failed for {kind} ({reasons})")

    @property
    def any_unsupported(self) -> bool:
        return any(f.unsupported for f in self.failures)


class TerminalError(ToyWonderError):
    """A user-facing failure with no further fallback."""

    def __init__(self, message: str, error_kind: ErrorKind):
        super().__init__(message)
        self.message = message
        self.error_kind = error_kind

    @property
    def remediation(self) -> str:
        """What the caller should suggest to the user."""
        if self.error_kind == ErrorKind.CAPABILITY_UNSUPPORTED:
            return "reconfigure"
        return "retry"
