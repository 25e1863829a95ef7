"""Pytest configuration and fixtures."""

import asyncio
import os
from typing import Callable, Optional

import pytest
from eth_abi import decode

# Set test environment
os.environ["ENVIRONMENT"] = "test"
os.environ["DEBUG"] = "true"
os.environ["SERVER_URL"] = "http://quote.test"
os.environ["CHAIN_ID"] = "1"

from lzswap.approvals import ERC20_APPROVE_SELECTOR
from lzswap.config import get_settings
from lzswap.errors import WalletError
from lzswap.routing.base import ExecutionPlan, QuoteGateway, QuoteResult, SwapRequest
from lzswap.tokens import TokenRef, find_token
from lzswap.utils.locks import clear_wallet_locks
from lzswap.wallet.base import TxReceipt, WalletProvider

WALLET = "0x1111111111111111111111111111111111111111"
OTHER_WALLET = "0x4444444444444444444444444444444444444444"
ROUTER = "0x2222222222222222222222222222222222222222"

ONE_ETH = "1000000000000000000"


@pytest.fixture(autouse=True)
def fresh_settings():
    """Re-read settings and drop wallet locks for every test."""
    get_settings.cache_clear()
    clear_wallet_locks()
    yield
    get_settings.cache_clear()


class FakeWallet(WalletProvider):
    """In-memory wallet that records every call in order.

    Approvals update the allowance table once their receipt is read, the
    way a real chain would after the approval is mined.
    """

    def __init__(self, accounts: Optional[list[str]] = None, chain_id: int = 1):
        super().__init__()
        self.accounts = list(accounts if accounts is not None else [WALLET])
        self.chain_id = chain_id
        self.balances: dict[str, int] = {}
        self.allowances: dict[tuple[str, str, str], int] = {}
        self.calls: list[tuple[str, str]] = []
        self.sent: list[dict] = []
        self.revert_to: set[str] = set()
        self.reject_sends = False
        self._pending: dict[str, dict] = {}

    async def request_accounts(self) -> list[str]:
        self.calls.append(("request_accounts", ""))
        return list(self.accounts)

    async def get_chain_id(self) -> int:
        return self.chain_id

    async def get_balance(self, token: TokenRef, owner: str) -> int:
        self.calls.append(("balance", token.symbol))
        return self.balances.get(token.address.lower(), 0)

    async def get_allowance(self, token_address: str, owner: str, spender: str) -> int:
        self.calls.append(("allowance", token_address.lower()))
        return self.allowances.get((token_address.lower(), owner.lower(), spender.lower()), 0)

    async def call(self, tx: dict) -> bytes:
        return b""

    async def send_transaction(self, tx: dict) -> str:
        kind = "approve" if self._is_approve(tx) else "swap"
        self.calls.append((f"send_{kind}", tx["to"].lower()))
        if self.reject_sends:
            raise WalletError("User rejected the request")
        self.sent.append(tx)
        tx_hash = f"0x{len(self.sent):064x}"
        self._pending[tx_hash] = tx
        return tx_hash

    async def wait_for_receipt(self, tx_hash, confirmations=1, timeout=None) -> TxReceipt:
        self.calls.append(("wait", tx_hash))
        tx = self._pending.pop(tx_hash)
        if tx["to"].lower() in self.revert_to:
            return TxReceipt(tx_hash=tx_hash, block_number=100, status=0, revert_reason="execution reverted")

        if self._is_approve(tx):
            spender, amount = decode(["address", "uint256"], bytes.fromhex(tx["data"][10:]))
            key = (tx["to"].lower(), tx["from"].lower(), spender.lower())
            self.allowances[key] = amount
        return TxReceipt(tx_hash=tx_hash, block_number=100 + len(self.sent), status=1)

    @staticmethod
    def _is_approve(tx: dict) -> bool:
        return tx.get("data", "").startswith("0x" + ERC20_APPROVE_SELECTOR.hex())

    def set_allowance(self, token: TokenRef, owner: str, spender: str, amount: int) -> None:
        self.allowances[(token.address.lower(), owner.lower(), spender.lower())] = amount


class StaticGateway(QuoteGateway):
    """Quote gateway answering from a callable, with an optional delay."""

    def __init__(
        self,
        answer: Optional[Callable[[SwapRequest], QuoteResult]] = None,
        delay: float = 0.0,
        error: Optional[Exception] = None,
    ):
        self.answer = answer or plan_for
        self.delay = delay
        self.error = error
        self.calls: list[SwapRequest] = []
        self.closed = False

    @property
    def name(self) -> str:
        return "static"

    async def get_quote(self, request: SwapRequest) -> QuoteResult:
        self.calls.append(request)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.answer(request)

    async def aclose(self) -> None:
        self.closed = True


def plan_for(request: SwapRequest, quote: str = "2000.0000") -> QuoteResult:
    """Successful quote whose plan targets ROUTER."""
    plan = ExecutionPlan(
        to=ROUTER,
        calldata=bytes.fromhex("38ed1739"),
        value=request.amount_in if request.token_in.is_native else "0",
        request=request,
        chain_id=request.token_in.chain_id,
    )
    return QuoteResult.ok(quote=quote, execution_plan=plan, raw_amount_out="2000000000")


@pytest.fixture
def eth() -> TokenRef:
    return find_token(1, "ETH")


@pytest.fixture
def weth() -> TokenRef:
    return find_token(1, "WETH")


@pytest.fixture
def usdc() -> TokenRef:
    return find_token(1, "USDC")


@pytest.fixture
def dai() -> TokenRef:
    return find_token(1, "DAI")


@pytest.fixture
def wallet() -> FakeWallet:
    return FakeWallet()


@pytest.fixture
def gateway() -> StaticGateway:
    return StaticGateway()
