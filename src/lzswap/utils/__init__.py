"""Utility modules for lzswap."""

from lzswap.utils.locks import LockTimeoutError, get_wallet_lock, wallet_lock

__all__ = ["LockTimeoutError", "get_wallet_lock", "wallet_lock"]
