"""ERC-20 allowance checks and approvals.

Approvals are for exactly the amount a trade needs, never unlimited.
The allowance is read fresh each time; on-chain state can change
between trades.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from eth_abi import encode
from eth_utils import function_signature_to_4byte_selector

from lzswap.config import get_settings
from lzswap.errors import ApprovalFailed, WalletError
from lzswap.tokens import TokenRef
from lzswap.wallet.base import WalletProvider

logger = logging.getLogger(__name__)

ERC20_APPROVE_SELECTOR = function_signature_to_4byte_selector("approve(address,uint256)")


@dataclass(frozen=True)
class AllowanceState:
    """Allowance snapshot; valid only for the trade it was read for."""
    owner: str
    spender: str
    token: str
    amount: str  # raw integer string

    def covers(self, required_raw: int) -> bool:
        return int(self.amount) >= required_raw


def encode_approve(spender: str, amount: int) -> bytes:
    """Encode ``approve(spender, amount)`` calldata."""
    return ERC20_APPROVE_SELECTOR + encode(["address", "uint256"], [spender, amount])


class AllowanceManager:
    """Makes sure a spender may pull the input token before a trade."""

    def __init__(self, wallet: WalletProvider, confirmation_timeout: Optional[float] = None):
        self.wallet = wallet
        self.confirmation_timeout = (
            confirmation_timeout
            if confirmation_timeout is not None
            else get_settings().confirmation_timeout_seconds
        )

    async def read_allowance(self, token: TokenRef, owner: str, spender: str) -> AllowanceState:
        """Read the current allowance from chain.

        Raises:
            ApprovalFailed: If the allowance cannot be read
        """
        try:
            amount = await self.wallet.get_allowance(token.address, owner, spender)
        except WalletError as e:
            raise ApprovalFailed(f"Could not read {token.symbol} allowance: {e}", reason=e.reason) from e
        return AllowanceState(owner=owner, spender=spender, token=token.address, amount=str(amount))

    async def ensure_allowance(
        self,
        token: TokenRef,
        owner: str,
        spender: str,
        required_raw,
    ) -> None:
        """Approve ``spender`` for ``required_raw`` of ``token`` if needed.

        Returns once the allowance covers the amount; blocks on one
        confirmation when an approval has to be sent.

        Raises:
            ApprovalFailed: If the approval is rejected, fails or reverts
        """
        if token.is_native:
            logger.debug(f"{token.symbol} is native, no approval needed")
            return

        required = int(required_raw)
        state = await self.read_allowance(token, owner, spender)
        if state.covers(required):
            logger.debug(f"{token.symbol} allowance {state.amount} covers {required}")
            return

        logger.info(
            f"Approving {required} {token.symbol} for {spender} "
            f"(current allowance {state.amount})"
        )
        tx = {
            "from": owner,
            "to": token.address,
            "data": "0x" + encode_approve(spender, required).hex(),
            "value": 0,
        }

        try:
            tx_hash = await self.wallet.send_transaction(tx)
        except WalletError as e:
            logger.warning(f"Approval for {token.symbol} rejected or failed: {e}")
            raise ApprovalFailed(f"Approval for {token.symbol} was not submitted: {e}", reason=e.reason) from e

        try:
            receipt = await self.wallet.wait_for_receipt(
                tx_hash, confirmations=1, timeout=self.confirmation_timeout
            )
        except WalletError as e:
            logger.warning(f"Approval {tx_hash} was not confirmed: {e}")
            raise ApprovalFailed(f"Approval {tx_hash} was not confirmed: {e}", reason=e.reason) from e
        except Exception as e:
            logger.error(f"Confirmation of approval {tx_hash} failed: {type(e).__name__}: {e}")
            raise ApprovalFailed(
                f"Approval {tx_hash} was not confirmed: {e}", reason=f"{type(e).__name__}: {e}"
            ) from e

        if not receipt.succeeded:
            reason = receipt.revert_reason or "approval reverted"
            logger.warning(f"Approval {tx_hash} reverted in block {receipt.block_number}: {reason}")
            raise ApprovalFailed(f"Approval {tx_hash} reverted", reason=reason)

        logger.info(f"Approval {tx_hash} confirmed in block {receipt.block_number}")
