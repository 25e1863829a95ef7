"""Abstract quote gateway interface and the pipeline's data model."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import ROUND_DOWN, Decimal, localcontext
from typing import Optional

from lzswap.errors import ErrorKind
from lzswap.tokens import TokenRef, format_units, is_raw_amount

logger = logging.getLogger(__name__)

# Human-readable quotes carry this many decimal places
QUOTE_PLACES = 4


@dataclass(frozen=True)
class SwapRequest:
    """An exact-input swap the user is asking a price for.

    Immutable; a new request supersedes any in-flight one.
    """

    token_in: Optional[TokenRef]
    token_out: Optional[TokenRef]
    amount_in: str  # raw integer string, smallest unit of token_in
    wallet_address: Optional[str]

    @property
    def is_complete(self) -> bool:
        """Check that every field needed for a quote is present."""
        if self.token_in is None or self.token_out is None:
            return False
        if not self.wallet_address:
            return False
        return is_raw_amount(self.amount_in) and int(self.amount_in) > 0

    @property
    def missing_fields(self) -> list[str]:
        missing = []
        if self.token_in is None:
            missing.append("tokenIn")
        if self.token_out is None:
            missing.append("tokenOut")
        if not is_raw_amount(self.amount_in) or int(self.amount_in or "0") == 0:
            missing.append("amountIn")
        if not self.wallet_address:
            missing.append("walletAddress")
        return missing

    def matches(self, other: Optional["SwapRequest"]) -> bool:
        """Check if another request asks for the same trade from the same wallet."""
        if other is None:
            return False
        return (
            self.token_in == other.token_in
            and self.token_out == other.token_out
            and self.amount_in == other.amount_in
            and (self.wallet_address or "").lower() == (other.wallet_address or "").lower()
        )

    def __str__(self) -> str:
        tin = self.token_in.symbol if self.token_in else "?"
        tout = self.token_out.symbol if self.token_out else "?"
        return f"{self.amount_in or '0'} {tin} -> {tout}"


@dataclass(frozen=True)
class ExecutionPlan:
    """Submittable payload produced by a routing backend.

    Only the trade executor reads ``to``/``calldata``/``value``.
    ``request`` and ``chain_id`` record what the plan was fetched for.
    """

    to: str
    calldata: bytes
    value: str  # raw integer string of native asset to send
    request: Optional[SwapRequest] = None
    chain_id: Optional[int] = None

    @property
    def wallet_address(self) -> Optional[str]:
        return self.request.wallet_address if self.request else None

    def to_dict(self) -> dict:
        """Convert to a transaction-shaped dictionary."""
        return {
            "to": self.to,
            "calldata": "0x" + self.calldata.hex(),
            "value": self.value,
        }


@dataclass(frozen=True)
class QuoteResult:
    """Outcome of a quote attempt.

    ``quote`` is the human-readable output amount with four decimals.
    ``NO_EXECUTABLE_PLAN`` is the one error that still carries a quote.
    """

    quote: Optional[str] = None
    execution_plan: Optional[ExecutionPlan] = None
    error: Optional[ErrorKind] = None
    raw_amount_out: Optional[str] = None
    route_details: dict = field(default_factory=dict, compare=False)

    @property
    def success(self) -> bool:
        return self.error is None and self.quote is not None

    @property
    def is_executable(self) -> bool:
        return self.success and self.execution_plan is not None

    @classmethod
    def ok(
        cls,
        quote: str,
        execution_plan: Optional[ExecutionPlan],
        raw_amount_out: Optional[str] = None,
        route_details: Optional[dict] = None,
    ) -> "QuoteResult":
        """Build a successful result; a missing plan degrades to NO_EXECUTABLE_PLAN."""
        return cls(
            quote=quote,
            execution_plan=execution_plan,
            error=None if execution_plan is not None else ErrorKind.NO_EXECUTABLE_PLAN,
            raw_amount_out=raw_amount_out,
            route_details=route_details or {},
        )

    @classmethod
    def failure(cls, error: ErrorKind) -> "QuoteResult":
        return cls(quote=None, execution_plan=None, error=error)


def format_quote(raw_amount_out, decimals: int) -> str:
    """Format a raw output amount as a four-decimal string (ROUND_HALF_UP).

    >>> format_quote("2000000000", 6)
    '2000.0000'
    """
    return format_units(raw_amount_out, decimals, places=QUOTE_PLACES)


def apply_slippage(raw_amount_out: int, slippage_percent: Decimal) -> int:
    """Minimum acceptable output for a given slippage tolerance, floored."""
    if raw_amount_out <= 0:
        return 0
    with localcontext() as ctx:
        ctx.prec = 100
        keep = (Decimal(100) - Decimal(str(slippage_percent))) / Decimal(100)
        return int((Decimal(raw_amount_out) * keep).to_integral_value(rounding=ROUND_DOWN))


class QuoteGateway(ABC):
    """Abstract base class for quote backends.

    A deployment picks one implementation; the pipeline only sees this
    interface.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Backend name identifier."""
        pass

    @abstractmethod
    async def get_quote(self, request: SwapRequest) -> QuoteResult:
        """
        Get a quote and execution plan for an exact-input swap.

        Args:
            request: A complete swap request

        Returns:
            QuoteResult; backend failures are reported in ``error``,
            never raised
        """
        pass

    async def aclose(self) -> None:
        """Release backend resources."""
        return None
