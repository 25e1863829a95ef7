"""Trade execution.

Submits the transaction described by an ExecutionPlan, waits for one
confirmation and reconciles the result with the session. A broadcast
transaction is never cancelled; the executor waits it out and reports.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from lzswap.config import get_settings
from lzswap.errors import StalePlan, TradeFailed, WalletError
from lzswap.routing.base import ExecutionPlan
from lzswap.session import SessionState
from lzswap.wallet.base import WalletProvider

logger = logging.getLogger(__name__)


class TradeStatus(str, Enum):
    """Trade lifecycle states."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"


@dataclass
class TradeOutcome:
    """Result of a trade execution."""
    status: TradeStatus
    tx_hash: Optional[str] = None
    block_number: Optional[int] = None
    reason: Optional[str] = None

    @property
    def confirmed(self) -> bool:
        return self.status == TradeStatus.CONFIRMED


class TradeExecutor:
    """Executes swap plans against the connected wallet."""

    def __init__(self, session: SessionState, confirmation_timeout: Optional[float] = None):
        self.session = session
        self.confirmation_timeout = (
            confirmation_timeout
            if confirmation_timeout is not None
            else get_settings().confirmation_timeout_seconds
        )

    def check_plan(self, plan: ExecutionPlan) -> None:
        """Verify a plan still matches the displayed quote, wallet and chain.

        Raises:
            StalePlan: If anything changed since the plan was fetched
        """
        session = self.session
        if not session.is_connected:
            raise StalePlan("Wallet is not connected")
        if plan is not session.current_plan:
            raise StalePlan("Plan does not belong to the displayed quote")
        if not plan.wallet_address or plan.wallet_address.lower() != (session.address or "").lower():
            raise StalePlan(f"Plan was fetched for {plan.wallet_address}, connected wallet is {session.address}")
        if plan.chain_id is not None and plan.chain_id != session.chain_id:
            raise StalePlan(f"Plan was fetched for chain {plan.chain_id}, active chain is {session.chain_id}")

    async def execute(self, plan: ExecutionPlan, wallet: WalletProvider) -> TradeOutcome:
        """Submit a plan and wait for one confirmation.

        Returns:
            CONFIRMED with block number, or FAILED with the reason

        Raises:
            StalePlan: Before any wallet call, if the plan is out of date
        """
        self.check_plan(plan)

        tx = {
            "from": self.session.address,
            "to": plan.to,
            "data": "0x" + plan.calldata.hex(),
            "value": int(plan.value),
        }

        try:
            tx_hash = await wallet.send_transaction(tx)
        except WalletError as e:
            logger.warning(f"Swap submission failed: {e}")
            return TradeOutcome(status=TradeStatus.FAILED, reason=e.reason)

        logger.info(f"Swap submitted: {tx_hash}")

        try:
            block_number = await self._confirm(wallet, tx_hash)
        except TradeFailed as e:
            logger.warning(f"Swap {tx_hash} failed: {e.reason}")
            return TradeOutcome(status=TradeStatus.FAILED, tx_hash=tx_hash, reason=e.reason)

        logger.info(f"Swap {tx_hash} confirmed in block {block_number}")
        self.session.clear_plan()

        request = plan.request
        if request is not None:
            await self.session.refresh_balances([request.token_in, request.token_out])

        return TradeOutcome(status=TradeStatus.CONFIRMED, tx_hash=tx_hash, block_number=block_number)

    async def _confirm(self, wallet: WalletProvider, tx_hash: str) -> int:
        try:
            receipt = await wallet.wait_for_receipt(
                tx_hash, confirmations=1, timeout=self.confirmation_timeout
            )
        except WalletError as e:
            raise TradeFailed(f"Swap {tx_hash} was not confirmed", reason=e.reason) from e
        except Exception as e:
            # Already broadcast, so the outcome keeps the hash
            logger.error(f"Confirmation of swap {tx_hash} failed: {type(e).__name__}: {e}")
            raise TradeFailed(f"Swap {tx_hash} was not confirmed", reason=f"{type(e).__name__}: {e}") from e

        if not receipt.succeeded:
            raise TradeFailed(
                f"Swap {tx_hash} reverted",
                reason=receipt.revert_reason or "transaction reverted",
            )
        return receipt.block_number
