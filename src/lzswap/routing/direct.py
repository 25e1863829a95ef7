"""Direct routing strategy.

Searches exact-input paths across a router's liquidity graph: the direct
pair, then one and two hops through well-connected intermediary tokens.
The path with the largest output wins.
"""

import asyncio
import itertools
import logging
import time
from decimal import Decimal
from typing import Optional

from lzswap.config import get_settings
from lzswap.errors import ErrorKind
from lzswap.routing.base import (
    ExecutionPlan,
    QuoteGateway,
    QuoteResult,
    SwapRequest,
    apply_slippage,
    format_quote,
)
from lzswap.routing.uniswap_v2 import UniswapV2Router
from lzswap.tokens import TokenRef, tokens_for_chain

logger = logging.getLogger(__name__)

# Fixed defaults for the direct strategy
DEFAULT_SLIPPAGE_PERCENT = Decimal("0.50")
DEFAULT_DEADLINE_SECONDS = 1800

# Symbols tried as intermediate hops
INTERMEDIARY_SYMBOLS = ("WETH", "USDC", "USDT", "DAI")


class DirectRoutingGateway(QuoteGateway):
    """Quote gateway that computes routes against a router contract.

    Native input/output is routed through the wrapped native token.
    """

    def __init__(
        self,
        router: Optional[UniswapV2Router] = None,
        weth_address: Optional[str] = None,
        intermediaries: Optional[list[str]] = None,
        slippage_tolerance_percent: Optional[Decimal] = None,
        deadline_seconds: Optional[int] = None,
        max_hops: int = 3,
    ):
        """Initialize direct gateway.

        Args:
            router: Router client (defaults to the configured V2 router)
            weth_address: Wrapped native token address
            intermediaries: Token addresses tried as intermediate hops
            slippage_tolerance_percent: Slippage in percent (0.5 = 0.50%)
            deadline_seconds: Deadline offset from now
            max_hops: Maximum number of pairs in a path
        """
        settings = get_settings()
        self.router = router or UniswapV2Router()
        self.weth_address = weth_address or settings.weth_address
        if intermediaries is None:
            intermediaries = [
                t.address for t in tokens_for_chain(settings.chain_id)
                if t.symbol in INTERMEDIARY_SYMBOLS
            ]
        self.intermediaries = intermediaries
        self.slippage_tolerance_percent = (
            Decimal(str(slippage_tolerance_percent))
            if slippage_tolerance_percent is not None
            else DEFAULT_SLIPPAGE_PERCENT
        )
        self.deadline_seconds = deadline_seconds if deadline_seconds is not None else DEFAULT_DEADLINE_SECONDS
        self.max_hops = max_hops

    @property
    def name(self) -> str:
        return "direct"

    def _route_address(self, token: TokenRef) -> str:
        return self.weth_address if token.is_native else token.address

    def candidate_paths(self, token_in: TokenRef, token_out: TokenRef) -> list[list[str]]:
        """Enumerate paths from token_in to token_out up to ``max_hops`` pairs."""
        start = self._route_address(token_in)
        end = self._route_address(token_out)
        if start.lower() == end.lower():
            return []

        hubs = []
        for address in self.intermediaries:
            lowered = address.lower()
            if lowered in (start.lower(), end.lower()) or lowered in [h.lower() for h in hubs]:
                continue
            hubs.append(address)

        paths = [[start, end]]
        for hop_count in range(1, self.max_hops):
            for middle in itertools.permutations(hubs, hop_count):
                paths.append([start, *middle, end])
        return paths

    async def _best_path(self, amount_in: int, paths: list[list[str]]) -> Optional[tuple[list[str], list[int]]]:
        results = await asyncio.gather(
            *(self.router.get_amounts_out(amount_in, path) for path in paths)
        )
        best = None
        for path, amounts in zip(paths, results):
            if not amounts or amounts[-1] <= 0:
                continue
            if best is None or amounts[-1] > best[1][-1]:
                best = (path, amounts)
        return best

    async def get_quote(self, request: SwapRequest) -> QuoteResult:
        """Find the best path and build its swap calldata."""
        if not request.is_complete:
            return QuoteResult.failure(ErrorKind.INCOMPLETE)

        amount_in = int(request.amount_in)
        paths = self.candidate_paths(request.token_in, request.token_out)
        if not paths:
            logger.info(f"No route for {request}: same underlying token")
            return QuoteResult.failure(ErrorKind.NO_ROUTE)

        try:
            best = await self._best_path(amount_in, paths)
        except Exception as e:
            logger.error(f"Direct routing failed for {request}: {type(e).__name__}: {e}")
            return QuoteResult.failure(ErrorKind.UPSTREAM_FAILURE)

        if best is None:
            logger.info(f"No route found for {request} across {len(paths)} candidate path(s)")
            return QuoteResult.failure(ErrorKind.NO_ROUTE)

        path, amounts = best
        raw_out = amounts[-1]
        quote = format_quote(raw_out, request.token_out.decimals)
        details = {"path": path, "amounts": [str(a) for a in amounts], "hops": len(path) - 1}
        logger.info(
            f"Direct route: {request} = {quote} {request.token_out.symbol} via {len(path) - 1} hop(s)"
        )

        plan = self._build_plan(request, path, amount_in, raw_out)
        return QuoteResult.ok(
            quote=quote,
            execution_plan=plan,
            raw_amount_out=str(raw_out),
            route_details=details,
        )

    def _build_plan(
        self,
        request: SwapRequest,
        path: list[str],
        amount_in: int,
        raw_out: int,
    ) -> Optional[ExecutionPlan]:
        native_in = request.token_in.is_native
        native_out = request.token_out.is_native
        try:
            calldata = self.router.encode_swap(
                amount_in=amount_in,
                amount_out_min=apply_slippage(raw_out, self.slippage_tolerance_percent),
                path=path,
                recipient=request.wallet_address,
                deadline=int(time.time()) + self.deadline_seconds,
                native_in=native_in,
                native_out=native_out,
            )
        except ValueError as e:
            logger.warning(f"Route for {request} has no executable payload: {e}")
            return None

        return ExecutionPlan(
            to=self.router.address,
            calldata=calldata,
            value=str(amount_in) if native_in else "0",
            request=request,
            chain_id=request.token_in.chain_id,
        )
