"""Per-wallet submission locks.

Only one approval or swap may be outstanding per wallet at a time;
concurrent submissions would race for the same nonce.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

logger = logging.getLogger(__name__)

# Global lock registry: lowercased wallet address -> asyncio.Lock
_wallet_locks: dict[str, asyncio.Lock] = {}


class LockTimeoutError(Exception):
    """Raised when a lock cannot be acquired within the timeout period."""

    pass


def get_wallet_lock(address: str) -> asyncio.Lock:
    """Get or create the lock for a wallet address.

    Args:
        address: Wallet address (case-insensitive)

    Returns:
        asyncio.Lock for the wallet
    """
    key = address.lower()
    if key not in _wallet_locks:
        _wallet_locks[key] = asyncio.Lock()
    return _wallet_locks[key]


@asynccontextmanager
async def wallet_lock(
    address: str,
    timeout: Optional[float] = 30.0,
    operation: str = "submission",
):
    """Hold a wallet's submission lock for the duration of the block.

    Args:
        address: Wallet address
        timeout: Maximum time to wait for the lock (None = wait forever)
        operation: Description for logging

    Example:
        async with wallet_lock(address, operation="approve+swap"):
            await approvals.ensure_allowance(...)
            await executor.execute(...)
    """
    lock = get_wallet_lock(address)

    try:
        if timeout:
            await asyncio.wait_for(lock.acquire(), timeout=timeout)
        else:
            await lock.acquire()
    except asyncio.TimeoutError:
        logger.warning(f"Lock timeout for wallet {address} after {timeout}s: {operation}")
        raise LockTimeoutError(
            f"Could not acquire lock for wallet {address} within {timeout}s"
        )

    logger.debug(f"Lock acquired for wallet {address}: {operation}")
    try:
        yield
    finally:
        lock.release()
        logger.debug(f"Lock released for wallet {address}: {operation}")


def clear_wallet_locks() -> None:
    """Clear all wallet locks (useful for testing)."""
    _wallet_locks.clear()
