"""Wallet session state.

The only component that keeps state between pipeline calls: connection
status, active account and chain, cached balances, and the execution plan
backing the quote currently on screen.

Connection state machine:
    DISCONNECTED -> CONNECTING -> CONNECTED
    CONNECTED -> DISCONNECTED  (disconnect or account removal)

Example:
    async with SessionState(wallet) as session:
        await session.connect()
        ...
    # wallet listeners are unregistered here
"""

import logging
from enum import Enum
from typing import Callable, Iterable, Optional

from lzswap.errors import WalletError
from lzswap.routing.base import ExecutionPlan
from lzswap.tokens import TokenRef
from lzswap.wallet.base import WalletEvent, WalletProvider

logger = logging.getLogger(__name__)


class ConnectionStatus(str, Enum):
    """Wallet connection states."""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


InvalidationListener = Callable[[str], None]


def _parse_chain_id(value) -> int:
    if isinstance(value, str):
        return int(value, 0)
    return int(value)


class SessionState:
    """Tracks the connected wallet and everything derived from it."""

    def __init__(self, wallet: WalletProvider):
        self.wallet = wallet
        self.status = ConnectionStatus.DISCONNECTED
        self.address: Optional[str] = None
        self.chain_id: Optional[int] = None
        self.balances: dict[TokenRef, int] = {}
        self.current_plan: Optional[ExecutionPlan] = None
        self._unsubscribers: list[Callable[[], None]] = []
        self._invalidation_listeners: list[InvalidationListener] = []

    @property
    def is_connected(self) -> bool:
        return self.status == ConnectionStatus.CONNECTED

    async def __aenter__(self) -> "SessionState":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    # ======================
    # Connection
    # ======================

    async def connect(self) -> str:
        """Connect the wallet and subscribe to its events.

        Returns:
            Active account address

        Raises:
            WalletError: If the wallet exposes no account
        """
        if self.is_connected:
            return self.address

        self.status = ConnectionStatus.CONNECTING
        try:
            accounts = await self.wallet.request_accounts()
            if not accounts:
                raise WalletError("Wallet returned no accounts")
            chain_id = await self.wallet.get_chain_id()
        except WalletError:
            self.status = ConnectionStatus.DISCONNECTED
            raise

        self.address = accounts[0]
        self.chain_id = chain_id
        self._unsubscribers = [
            self.wallet.subscribe(WalletEvent.ACCOUNTS_CHANGED, self._on_accounts_changed),
            self.wallet.subscribe(WalletEvent.CHAIN_CHANGED, self._on_chain_changed),
            self.wallet.subscribe(WalletEvent.DISCONNECT, self._on_disconnect),
        ]
        self.status = ConnectionStatus.CONNECTED
        logger.info(f"Wallet connected: {self.address} on chain {self.chain_id}")
        return self.address

    def close(self) -> None:
        """Unregister wallet listeners and forget all session state."""
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []

        was_connected = self.is_connected
        self.status = ConnectionStatus.DISCONNECTED
        self.address = None
        self.chain_id = None
        self.balances.clear()
        self.current_plan = None
        if was_connected:
            logger.info("Wallet disconnected")
            self._notify("disconnected")

    # ======================
    # Wallet events
    # ======================

    def _on_accounts_changed(self, accounts) -> None:
        if not accounts:
            self.close()
            return
        if self.address and accounts[0].lower() == self.address.lower():
            return
        logger.info(f"Account changed: {self.address} -> {accounts[0]}")
        self.address = accounts[0]
        self.invalidate("account changed")

    def _on_chain_changed(self, chain_id) -> None:
        new_chain = _parse_chain_id(chain_id)
        if new_chain == self.chain_id:
            return
        logger.info(f"Chain changed: {self.chain_id} -> {new_chain}")
        self.chain_id = new_chain
        self.invalidate("chain changed")

    def _on_disconnect(self, _payload) -> None:
        self.close()

    # ======================
    # Invalidation
    # ======================

    def on_invalidate(self, listener: InvalidationListener) -> Callable[[], None]:
        """Register a listener for balance/plan invalidation (forces re-quote)."""
        self._invalidation_listeners.append(listener)

        def remove() -> None:
            if listener in self._invalidation_listeners:
                self._invalidation_listeners.remove(listener)

        return remove

    def _notify(self, reason: str) -> None:
        for listener in list(self._invalidation_listeners):
            listener(reason)

    def invalidate(self, reason: str) -> None:
        """Drop cached balances and the stored plan."""
        self.balances.clear()
        self.current_plan = None
        logger.debug(f"Session invalidated: {reason}")
        self._notify(reason)

    # ======================
    # Plans
    # ======================

    def store_plan(self, plan: Optional[ExecutionPlan]) -> None:
        """Remember the plan behind the quote currently displayed."""
        self.current_plan = plan

    def clear_plan(self) -> None:
        self.current_plan = None

    # ======================
    # Balances
    # ======================

    async def refresh_balances(self, tokens: Iterable[TokenRef]) -> dict[TokenRef, int]:
        """Read fresh balances for the given tokens.

        Returns:
            Mapping of token to raw balance for the refreshed tokens
        """
        if not self.is_connected:
            return {}

        refreshed = {}
        for token in dict.fromkeys(tokens):
            try:
                balance = await self.wallet.get_balance(token, self.address)
            except WalletError as e:
                logger.warning(f"Balance refresh for {token.symbol} failed: {e}")
                self.balances.pop(token, None)
                continue
            self.balances[token] = balance
            refreshed[token] = balance
        return refreshed

    def balance_of(self, token: TokenRef) -> Optional[int]:
        return self.balances.get(token)
