"""web3.py wallet provider with a local signing key.

Signs with eth-account and broadcasts raw transactions over JSON-RPC.
Account and chain switches are explicit calls that emit the matching
wallet events.
"""

import asyncio
import logging
from typing import Optional

from eth_account import Account
from web3 import Web3
from web3.exceptions import ContractLogicError, TransactionNotFound

from lzswap.errors import WalletError
from lzswap.tokens import TokenRef
from lzswap.wallet.base import TxReceipt, WalletEvent, WalletProvider

logger = logging.getLogger(__name__)

ERC20_ABI = [
    {
        "inputs": [{"name": "owner", "type": "address"}],
        "name": "balanceOf",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [{"name": "owner", "type": "address"}, {"name": "spender", "type": "address"}],
        "name": "allowance",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
]


class Web3Wallet(WalletProvider):
    """Wallet provider backed by a JSON-RPC node and a local key."""

    def __init__(
        self,
        rpc_url: str,
        private_key: Optional[str] = None,
        web3: Optional[Web3] = None,
        poll_interval: float = 2.0,
    ):
        super().__init__()
        self.rpc_url = rpc_url
        self.poll_interval = poll_interval
        self._web3 = web3
        self._account = Account.from_key(private_key) if private_key else None

    @property
    def web3(self) -> Web3:
        """Lazy load web3 instance."""
        if self._web3 is None:
            self._web3 = Web3(Web3.HTTPProvider(self.rpc_url))
        return self._web3

    @property
    def address(self) -> Optional[str]:
        return self._account.address if self._account else None

    def _require_account(self):
        if self._account is None:
            raise WalletError("No account connected")
        return self._account

    async def request_accounts(self) -> list[str]:
        return [self._account.address] if self._account else []

    async def get_chain_id(self) -> int:
        try:
            return await asyncio.to_thread(lambda: self.web3.eth.chain_id)
        except Exception as e:
            raise WalletError(f"Chain ID query failed: {e}") from e

    async def get_balance(self, token: TokenRef, owner: str) -> int:
        try:
            owner = Web3.to_checksum_address(owner)
            if token.is_native:
                return await asyncio.to_thread(self.web3.eth.get_balance, owner)
            contract = self.web3.eth.contract(address=Web3.to_checksum_address(token.address), abi=ERC20_ABI)
            return await asyncio.to_thread(contract.functions.balanceOf(owner).call)
        except Exception as e:
            raise WalletError(f"Balance query for {token.symbol} failed: {e}") from e

    async def get_allowance(self, token_address: str, owner: str, spender: str) -> int:
        try:
            contract = self.web3.eth.contract(address=Web3.to_checksum_address(token_address), abi=ERC20_ABI)
            call = contract.functions.allowance(
                Web3.to_checksum_address(owner), Web3.to_checksum_address(spender)
            ).call
            return await asyncio.to_thread(call)
        except Exception as e:
            raise WalletError(f"Allowance query failed: {e}") from e

    async def call(self, tx: dict) -> bytes:
        try:
            return bytes(await asyncio.to_thread(self.web3.eth.call, tx))
        except ContractLogicError as e:
            raise WalletError(f"Simulation reverted: {e}", reason=str(e)) from e
        except Exception as e:
            raise WalletError(f"Simulation failed: {e}") from e

    def _fill_transaction(self, tx: dict) -> dict:
        account = self._require_account()
        params = dict(tx)
        params.setdefault("from", account.address)
        if Web3.to_checksum_address(params["from"]) != account.address:
            raise WalletError(f"Transaction sender {params['from']} is not the connected account")
        params["to"] = Web3.to_checksum_address(params["to"])
        if "nonce" not in params:
            params["nonce"] = self.web3.eth.get_transaction_count(account.address, "pending")
        if "chainId" not in params:
            params["chainId"] = self.web3.eth.chain_id
        if "gas" not in params:
            params["gas"] = self.web3.eth.estimate_gas(params)
        if "gasPrice" not in params and "maxFeePerGas" not in params:
            params["gasPrice"] = self.web3.eth.gas_price
        return params

    def _sign_and_send(self, tx: dict) -> str:
        account = self._require_account()
        params = self._fill_transaction(tx)
        signed = account.sign_transaction(params)
        # eth-account renamed rawTransaction to raw_transaction
        raw_tx = getattr(signed, "raw_transaction", None) or signed.rawTransaction
        tx_hash = self.web3.eth.send_raw_transaction(raw_tx)
        return Web3.to_hex(tx_hash)

    async def send_transaction(self, tx: dict) -> str:
        try:
            tx_hash = await asyncio.to_thread(self._sign_and_send, tx)
        except WalletError:
            raise
        except ContractLogicError as e:
            raise WalletError(f"Transaction would revert: {e}", reason=str(e)) from e
        except Exception as e:
            raise WalletError(f"Transaction submission failed: {e}") from e
        logger.info(f"Broadcast transaction {tx_hash}")
        return tx_hash

    def _revert_reason(self, tx_hash: str, block_number: int) -> Optional[str]:
        """Replay a reverted transaction to recover its revert reason."""
        try:
            tx = self.web3.eth.get_transaction(tx_hash)
            self.web3.eth.call(
                {"from": tx["from"], "to": tx["to"], "data": tx["input"], "value": tx["value"]},
                block_number,
            )
        except ContractLogicError as e:
            return str(e)
        except Exception as e:
            logger.debug(f"Could not replay {tx_hash}: {e}")
        return None

    async def wait_for_receipt(
        self,
        tx_hash: str,
        confirmations: int = 1,
        timeout: Optional[float] = None,
    ) -> TxReceipt:
        """Poll until the transaction has ``confirmations`` blocks on top.

        Raises:
            WalletError: If the wait exceeds ``timeout`` or the node fails
        """
        loop = asyncio.get_running_loop()
        start_time = loop.time()

        while True:
            if timeout is not None and loop.time() - start_time > timeout:
                raise WalletError(f"Transaction {tx_hash} not confirmed after {timeout}s")

            current_block = None
            try:
                receipt = await asyncio.to_thread(self.web3.eth.get_transaction_receipt, tx_hash)
                current_block = await asyncio.to_thread(lambda: self.web3.eth.block_number)
            except TransactionNotFound:
                receipt = None
            except Exception as e:
                raise WalletError(f"Receipt query for {tx_hash} failed: {e}") from e

            if receipt is not None:
                tx_block = receipt["blockNumber"]
                if current_block - tx_block + 1 >= confirmations:
                    reason = None
                    if receipt["status"] == 0:
                        reason = await asyncio.to_thread(self._revert_reason, tx_hash, tx_block)
                    return TxReceipt(
                        tx_hash=tx_hash,
                        block_number=tx_block,
                        status=int(receipt["status"]),
                        revert_reason=reason,
                    )

            await asyncio.sleep(self.poll_interval)

    def switch_account(self, private_key: Optional[str]) -> None:
        """Change (or remove) the signing account and notify listeners."""
        self._account = Account.from_key(private_key) if private_key else None
        self.emit(WalletEvent.ACCOUNTS_CHANGED, [self._account.address] if self._account else [])

    def switch_chain(self, rpc_url: str, chain_id: int) -> None:
        """Point at another chain's node and notify listeners."""
        self.rpc_url = rpc_url
        self._web3 = None
        self.emit(WalletEvent.CHAIN_CHANGED, chain_id)

    def disconnect(self) -> None:
        self._account = None
        self.emit(WalletEvent.DISCONNECT)
