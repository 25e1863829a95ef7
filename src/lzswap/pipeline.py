"""Swap pipeline coordinator.

Flow:
1. Input change -> QuoteRequester (debounce) -> QuoteGateway
2. Quote delivered -> plan stored on the session
3. User confirms -> wallet lock -> AllowanceManager (non-native input only)
4. Approval confirmed -> TradeExecutor -> session balance refresh

One status signal reports progress and every terminal error. Nothing is
retried automatically; a new attempt is always a new user action.
"""

import logging
from dataclasses import replace
from enum import Enum
from typing import Callable, Optional

from lzswap.approvals import AllowanceManager
from lzswap.config import get_settings
from lzswap.errors import ApprovalFailed, ErrorKind, StalePlan
from lzswap.executor import TradeExecutor, TradeOutcome, TradeStatus
from lzswap.requester import QuoteRequester
from lzswap.routing.base import QuoteGateway, QuoteResult, SwapRequest
from lzswap.session import SessionState
from lzswap.tokens import TokenRef
from lzswap.utils.locks import LockTimeoutError, wallet_lock
from lzswap.wallet.base import WalletProvider

logger = logging.getLogger(__name__)


class PipelineStatus(str, Enum):
    """User-visible pipeline states."""
    IDLE = "idle"
    QUOTING = "quoting"
    QUOTED = "quoted"
    APPROVING = "approving"
    SWAPPING = "swapping"
    CONFIRMED = "confirmed"
    ERROR = "error"


StatusCallback = Callable[[PipelineStatus, Optional[ErrorKind], Optional[str]], None]


class SwapPipeline:
    """Connects quoting, approval and execution for one wallet session."""

    def __init__(
        self,
        gateway: QuoteGateway,
        wallet: WalletProvider,
        session: Optional[SessionState] = None,
        debounce_ms: Optional[int] = None,
        quote_timeout: Optional[float] = None,
        on_status: Optional[StatusCallback] = None,
        on_quote: Optional[Callable[[QuoteResult], None]] = None,
        on_loading: Optional[Callable[[bool], None]] = None,
    ):
        settings = get_settings()
        self.gateway = gateway
        self.wallet = wallet
        self.session = session or SessionState(wallet)
        self.requester = QuoteRequester(
            gateway,
            debounce_ms=debounce_ms,
            timeout=quote_timeout,
            on_result=self._on_quote,
            on_loading=on_loading,
        )
        self.approvals = AllowanceManager(wallet)
        self.executor = TradeExecutor(self.session)
        self.lock_timeout = settings.wallet_lock_timeout_seconds

        self.on_status = on_status
        self.on_quote = on_quote

        self.request: Optional[SwapRequest] = None
        self.quote: Optional[QuoteResult] = None
        self.status = PipelineStatus.IDLE
        self.error: Optional[ErrorKind] = None
        self.reason: Optional[str] = None

        self._remove_invalidation = self.session.on_invalidate(self._on_invalidated)

    @property
    def loading(self) -> bool:
        return self.requester.loading

    def _set_status(
        self,
        status: PipelineStatus,
        error: Optional[ErrorKind] = None,
        reason: Optional[str] = None,
    ) -> None:
        self.status = status
        self.error = error
        self.reason = reason
        if error is not None:
            logger.info(f"Pipeline {status.value}: {error.value}{f' ({reason})' if reason else ''}")
        if self.on_status:
            self.on_status(status, error, reason)

    # ======================
    # Quoting
    # ======================

    async def connect(self) -> str:
        """Connect the wallet session."""
        return await self.session.connect()

    def set_input(
        self,
        token_in: Optional[TokenRef],
        token_out: Optional[TokenRef],
        amount_in: str,
    ) -> SwapRequest:
        """Build a request for the connected wallet and submit it."""
        request = SwapRequest(
            token_in=token_in,
            token_out=token_out,
            amount_in=amount_in,
            wallet_address=self.session.address,
        )
        self.update(request)
        return request

    def update(self, request: SwapRequest) -> None:
        """Submit a new request; any change invalidates the stored plan at once."""
        if not request.matches(self.request):
            self.session.clear_plan()
            self.quote = None
        self.request = request

        if request.is_complete:
            self._set_status(PipelineStatus.QUOTING)
        self.requester.submit(request)

    def _on_quote(self, request: SwapRequest, result: QuoteResult) -> None:
        if request is not self.request:
            return

        self.quote = result
        self.session.store_plan(result.execution_plan)

        if result.quote is not None:
            # NO_EXECUTABLE_PLAN still shows its quote
            self._set_status(PipelineStatus.QUOTED, result.error)
        else:
            self._set_status(PipelineStatus.ERROR, result.error)

        if self.on_quote:
            self.on_quote(result)

    def _on_invalidated(self, reason: str) -> None:
        self.quote = None
        if self.request is None:
            self._set_status(PipelineStatus.IDLE)
            return
        # Disconnected sessions re-submit without a wallet and resolve INCOMPLETE
        logger.info(f"Re-quoting after {reason}")
        self.update(replace(self.request, wallet_address=self.session.address))

    # ======================
    # Swapping
    # ======================

    async def swap(self) -> TradeOutcome:
        """Approve (if needed) and execute the plan behind the displayed quote.

        Approval and swap run as one critical section on the wallet lock.
        """
        request = self.request
        plan = self.session.current_plan
        if request is None or not request.is_complete or not self.session.is_connected:
            return self._refuse(ErrorKind.INCOMPLETE, "connect a wallet and enter a complete swap")
        if plan is None:
            if self.quote is not None and self.quote.error is not None:
                # The quote for this exact input is not executable
                return self._refuse(self.quote.error, f"no executable quote ({self.quote.error.value})")
            return self._refuse(ErrorKind.STALE_PLAN, "no quote for the current input yet")

        address = self.session.address
        try:
            async with wallet_lock(address, timeout=self.lock_timeout, operation="approve+swap"):
                self.executor.check_plan(plan)

                if not request.token_in.is_native:
                    self._set_status(PipelineStatus.APPROVING)
                await self.approvals.ensure_allowance(
                    request.token_in, address, plan.to, request.amount_in
                )

                self._set_status(PipelineStatus.SWAPPING)
                outcome = await self.executor.execute(plan, self.wallet)

        except ApprovalFailed as e:
            self._set_status(PipelineStatus.ERROR, ErrorKind.APPROVAL_FAILED, e.reason)
            return TradeOutcome(status=TradeStatus.FAILED, reason=e.reason)
        except StalePlan as e:
            self._set_status(PipelineStatus.ERROR, ErrorKind.STALE_PLAN, e.reason)
            return TradeOutcome(status=TradeStatus.FAILED, reason=e.reason)
        except LockTimeoutError as e:
            self._set_status(PipelineStatus.ERROR, ErrorKind.TRADE_FAILED, str(e))
            return TradeOutcome(status=TradeStatus.FAILED, reason=str(e))

        if outcome.confirmed:
            self._set_status(PipelineStatus.CONFIRMED)
        else:
            self._set_status(PipelineStatus.ERROR, ErrorKind.TRADE_FAILED, outcome.reason)
        return outcome

    def _refuse(self, error: ErrorKind, reason: str) -> TradeOutcome:
        self._set_status(PipelineStatus.ERROR, error, reason)
        return TradeOutcome(status=TradeStatus.FAILED, reason=reason)

    async def aclose(self) -> None:
        """Cancel pending quotes and release the session and gateway."""
        await self.requester.aclose()
        self._remove_invalidation()
        self.session.close()
        await self.gateway.aclose()
