"""Wallet provider collaborators."""

from lzswap.wallet.base import TxReceipt, WalletEvent, WalletProvider
from lzswap.wallet.web3_wallet import Web3Wallet

__all__ = ["TxReceipt", "WalletEvent", "WalletProvider", "Web3Wallet"]
