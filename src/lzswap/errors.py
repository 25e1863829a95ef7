"""Error taxonomy for the quote/approve/execute pipeline.

Collaborator failures (HTTP, web3, wallet) are mapped into these kinds at
each component boundary.
"""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Kinds of terminal pipeline errors."""
    INCOMPLETE = "incomplete"                  # Missing input, no call made
    UPSTREAM_FAILURE = "upstream_failure"      # Quote backend failed or timed out
    NO_ROUTE = "no_route"                      # No viable path for this input
    NO_EXECUTABLE_PLAN = "no_executable_plan"  # Quote without submittable payload
    APPROVAL_FAILED = "approval_failed"        # Approval rejected or reverted
    STALE_PLAN = "stale_plan"                  # Plan no longer matches request/wallet
    TRADE_FAILED = "trade_failed"              # Swap reverted or was rejected


class LzswapError(Exception):
    """Base exception for pipeline errors."""

    kind: Optional[ErrorKind] = None

    def __init__(self, message: str = "", reason: Optional[str] = None):
        super().__init__(message)
        self.reason = reason or message


class ConfigurationError(LzswapError):
    """Raised at startup when required configuration is missing."""
    pass


class WalletError(LzswapError):
    """Raised by wallet providers when a call, signature or broadcast fails."""
    pass


class ApprovalFailed(LzswapError):
    """Raised when a token approval is rejected, fails to submit or reverts."""
    kind = ErrorKind.APPROVAL_FAILED


class StalePlan(LzswapError):
    """Raised when an execution plan no longer matches the session."""
    kind = ErrorKind.STALE_PLAN


class TradeFailed(LzswapError):
    """Raised when a swap cannot proceed past submission."""
    kind = ErrorKind.TRADE_FAILED
