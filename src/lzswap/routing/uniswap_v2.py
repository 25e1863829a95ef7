"""Uniswap V2-style router contract client.

Wraps the read-only ``getAmountsOut`` call and encodes the exact-input swap
functions. Works against any Router02 fork (SushiSwap, PancakeSwap, ...).
"""

import asyncio
import logging
from typing import Optional

from eth_abi import encode
from eth_utils import function_signature_to_4byte_selector
from web3 import Web3
from web3.exceptions import ContractLogicError

from lzswap.config import get_settings

logger = logging.getLogger(__name__)

ROUTER_ABI = [
    {
        "inputs": [
            {"name": "amountIn", "type": "uint256"},
            {"name": "path", "type": "address[]"},
        ],
        "name": "getAmountsOut",
        "outputs": [{"name": "amounts", "type": "uint256[]"}],
        "stateMutability": "view",
        "type": "function",
    },
]

# Exact-input swap signatures by (native in, native out)
SWAP_SIGNATURES = {
    (True, False): (
        "swapExactETHForTokens(uint256,address[],address,uint256)",
        ["uint256", "address[]", "address", "uint256"],
    ),
    (False, True): (
        "swapExactTokensForETH(uint256,uint256,address[],address,uint256)",
        ["uint256", "uint256", "address[]", "address", "uint256"],
    ),
    (False, False): (
        "swapExactTokensForTokens(uint256,uint256,address[],address,uint256)",
        ["uint256", "uint256", "address[]", "address", "uint256"],
    ),
}


class UniswapV2Router:
    """Router02 contract client."""

    def __init__(
        self,
        address: Optional[str] = None,
        rpc_url: Optional[str] = None,
        web3: Optional[Web3] = None,
    ):
        settings = get_settings()
        self.address = Web3.to_checksum_address(address or settings.v2_router_address)
        self.rpc_url = rpc_url or settings.rpc_url
        self._web3 = web3
        self._contract = None

    @property
    def web3(self) -> Web3:
        """Lazy load web3 instance."""
        if self._web3 is None:
            self._web3 = Web3(Web3.HTTPProvider(self.rpc_url))
        return self._web3

    @property
    def contract(self):
        if self._contract is None:
            self._contract = self.web3.eth.contract(address=self.address, abi=ROUTER_ABI)
        return self._contract

    async def get_amounts_out(self, amount_in: int, path: list[str]) -> Optional[list[int]]:
        """Quote an exact-input amount along a path.

        Returns:
            Amounts for each hop, or None when a pair along the path is
            missing or lacks liquidity
        """
        checksummed = [Web3.to_checksum_address(a) for a in path]
        call = self.contract.functions.getAmountsOut(amount_in, checksummed).call
        try:
            amounts = await asyncio.to_thread(call)
        except ContractLogicError as e:
            logger.debug(f"No liquidity along {path}: {e}")
            return None
        return [int(a) for a in amounts]

    @staticmethod
    def encode_swap(
        amount_in: int,
        amount_out_min: int,
        path: list[str],
        recipient: str,
        deadline: int,
        native_in: bool = False,
        native_out: bool = False,
    ) -> bytes:
        """Encode calldata for the matching exact-input swap function.

        Raises:
            ValueError: For native-to-native swaps or unencodable arguments
        """
        if native_in and native_out:
            raise ValueError("native-to-native swap has no router function")

        signature, types = SWAP_SIGNATURES[(native_in, native_out)]
        checksummed = [Web3.to_checksum_address(a) for a in path]
        to = Web3.to_checksum_address(recipient)
        if native_in:
            args = [amount_out_min, checksummed, to, deadline]
        else:
            args = [amount_in, amount_out_min, checksummed, to, deadline]

        try:
            return function_signature_to_4byte_selector(signature) + encode(types, args)
        except Exception as e:
            raise ValueError(f"Cannot encode {signature}: {e}") from e
