"""Wallet provider interface consumed by the pipeline.

The pipeline never implements wallet functionality itself; it reads
accounts, balances and allowances, simulates calls, and asks the provider
to sign and broadcast transactions.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

from lzswap.tokens import TokenRef

logger = logging.getLogger(__name__)


class WalletEvent(str, Enum):
    """Events a wallet provider can emit."""
    ACCOUNTS_CHANGED = "accountsChanged"  # payload: list[str] (empty = removed)
    CHAIN_CHANGED = "chainChanged"        # payload: int chain ID
    DISCONNECT = "disconnect"             # payload: None


@dataclass(frozen=True)
class TxReceipt:
    """Mined transaction receipt.

    Attributes:
        tx_hash: Transaction hash (0x-prefixed hex)
        block_number: Block the transaction was included in
        status: 1 on success, 0 when reverted
        revert_reason: Decoded revert reason, when the provider can tell
    """
    tx_hash: str
    block_number: int
    status: int
    revert_reason: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status == 1


Listener = Callable[[Any], None]


class WalletProvider(ABC):
    """Abstract wallet/provider handle.

    Implementations raise ``WalletError`` for rejected, failed or
    unreachable operations.
    """

    def __init__(self):
        self._listeners: dict[WalletEvent, list[Listener]] = {}

    @abstractmethod
    async def request_accounts(self) -> list[str]:
        """Ask the wallet to connect and return its accounts."""
        pass

    @abstractmethod
    async def get_chain_id(self) -> int:
        """Get the active chain ID."""
        pass

    @abstractmethod
    async def get_balance(self, token: TokenRef, owner: str) -> int:
        """Get a raw token balance (native balance for native tokens)."""
        pass

    @abstractmethod
    async def get_allowance(self, token_address: str, owner: str, spender: str) -> int:
        """Get the raw ERC-20 allowance granted by owner to spender."""
        pass

    @abstractmethod
    async def call(self, tx: dict) -> bytes:
        """Simulate a transaction without broadcasting it."""
        pass

    @abstractmethod
    async def send_transaction(self, tx: dict) -> str:
        """Sign and broadcast a transaction.

        Args:
            tx: Transaction fields (from, to, data, value)

        Returns:
            Transaction hash
        """
        pass

    @abstractmethod
    async def wait_for_receipt(
        self,
        tx_hash: str,
        confirmations: int = 1,
        timeout: Optional[float] = None,
    ) -> TxReceipt:
        """Wait until a transaction has the given number of confirmations."""
        pass

    def subscribe(self, event: WalletEvent, callback: Listener) -> Callable[[], None]:
        """Register a listener.

        Returns:
            Function that unregisters the listener (safe to call twice)
        """
        listeners = self._listeners.setdefault(event, [])
        listeners.append(callback)

        def unsubscribe() -> None:
            if callback in listeners:
                listeners.remove(callback)

        return unsubscribe

    def listener_count(self, event: Optional[WalletEvent] = None) -> int:
        if event is not None:
            return len(self._listeners.get(event, []))
        return sum(len(v) for v in self._listeners.values())

    def emit(self, event: WalletEvent, payload: Any = None) -> None:
        """Deliver an event to every registered listener."""
        logger.debug(f"Wallet event {event.value}: {payload!r}")
        for callback in list(self._listeners.get(event, [])):
            callback(payload)
