"""Token metadata and unit conversion.

Amounts inside the pipeline are raw integer strings in a token's smallest
unit. ``format_units`` and ``parse_units`` are the only places where raw
amounts meet human-readable decimals.
"""

import logging
from dataclasses import dataclass
from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal, InvalidOperation, localcontext
from typing import Optional, Union

logger = logging.getLogger(__name__)

# Sentinel address for the chain's native asset (same as the quote service uses)
NATIVE_ADDRESS = "0xEeeeeEeeeEeEeeEeEeEeeEEEeeeeEeeeeeeeEEeE"

# Reserved native symbols per chain ID
NATIVE_SYMBOLS = {
    1: "ETH",
    10: "ETH",
    8453: "ETH",
    42161: "ETH",
    137: "MATIC",
}

IPFS_GATEWAY = "https://ipfs.io/ipfs/"

_TW_ASSETS = "https://raw.githubusercontent.com/trustwallet/assets/master/blockchains"


@dataclass(frozen=True, eq=False)
class TokenRef:
    """Reference to a token on a specific chain.

    Two references are equal when they point at the same contract on the
    same chain, regardless of address casing or display metadata.
    """

    chain_id: int
    address: str
    decimals: int
    symbol: str
    name: str = ""
    logo_uri: str = ""

    def __post_init__(self):
        if not 0 <= self.decimals <= 255:
            raise ValueError(f"decimals must fit in uint8, got {self.decimals}")
        if not self.address:
            raise ValueError("token address is required")

    @property
    def key(self) -> tuple[int, str]:
        return (self.chain_id, self.address.lower())

    @property
    def is_native(self) -> bool:
        """Check if this is the chain's native asset (needs no approval)."""
        if self.address.lower() == NATIVE_ADDRESS.lower():
            return True
        return NATIVE_SYMBOLS.get(self.chain_id) == self.symbol.upper()

    @property
    def logo_url(self) -> str:
        """Logo URI with ipfs:// rewritten to an HTTP gateway."""
        if self.logo_uri.startswith("ipfs://"):
            return IPFS_GATEWAY + self.logo_uri[len("ipfs://"):]
        return self.logo_uri

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TokenRef):
            return NotImplemented
        return self.key == other.key

    def __hash__(self) -> int:
        return hash(self.key)

    def __repr__(self) -> str:
        return f"TokenRef({self.symbol} @ {self.chain_id}:{self.address})"

    @classmethod
    def from_dict(cls, data: dict) -> "TokenRef":
        """Build from a token-list record (camelCase keys)."""
        return cls(
            chain_id=int(data["chainId"]),
            address=data["address"],
            decimals=int(data["decimals"]),
            symbol=data.get("symbol", ""),
            name=data.get("name", ""),
            logo_uri=data.get("logoURI", ""),
        )

    def to_dict(self) -> dict:
        """Convert to a token-list record."""
        return {
            "chainId": self.chain_id,
            "address": self.address,
            "name": self.name,
            "symbol": self.symbol,
            "decimals": self.decimals,
            "logoURI": self.logo_uri,
        }


def _tw_logo(network: str, address: str) -> str:
    return f"{_TW_ASSETS}/{network}/assets/{address}/logo.png"


# Static token list (chainId, address, name, symbol, decimals, logoURI)
TOKEN_LIST: list[dict] = [
    # Ethereum Mainnet
    {"chainId": 1, "address": NATIVE_ADDRESS, "name": "Ether", "symbol": "ETH", "decimals": 18,
     "logoURI": f"{_TW_ASSETS}/ethereum/info/logo.png"},
    {"chainId": 1, "address": "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2", "name": "Wrapped Ether",
     "symbol": "WETH", "decimals": 18,
     "logoURI": _tw_logo("ethereum", "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2")},
    {"chainId": 1, "address": "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48", "name": "USD Coin",
     "symbol": "USDC", "decimals": 6,
     "logoURI": _tw_logo("ethereum", "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48")},
    {"chainId": 1, "address": "0xdAC17F958D2ee523a2206206994597C13D831ec7", "name": "Tether USD",
     "symbol": "USDT", "decimals": 6,
     "logoURI": _tw_logo("ethereum", "0xdAC17F958D2ee523a2206206994597C13D831ec7")},
    {"chainId": 1, "address": "0x6B175474E89094C44Da98b954EedeAC495271d0F", "name": "Dai Stablecoin",
     "symbol": "DAI", "decimals": 18,
     "logoURI": _tw_logo("ethereum", "0x6B175474E89094C44Da98b954EedeAC495271d0F")},
    {"chainId": 1, "address": "0x2260FAC5E5542a773Aa44fBCfeDf7C193bc2C599", "name": "Wrapped BTC",
     "symbol": "WBTC", "decimals": 8,
     "logoURI": _tw_logo("ethereum", "0x2260FAC5E5542a773Aa44fBCfeDf7C193bc2C599")},
    {"chainId": 1, "address": "0x1f9840a85d5aF5bf1D1762F925BDADdC4201F984", "name": "Uniswap",
     "symbol": "UNI", "decimals": 18,
     "logoURI": "ipfs://QmXttGpZrECX5qCyXbBQiqgQNytVGeZW5Anewvh2jc4psg"},
    {"chainId": 1, "address": "0x514910771AF9Ca656af840dff83E8264EcF986CA", "name": "ChainLink Token",
     "symbol": "LINK", "decimals": 18,
     "logoURI": _tw_logo("ethereum", "0x514910771AF9Ca656af840dff83E8264EcF986CA")},
    # Arbitrum One
    {"chainId": 42161, "address": NATIVE_ADDRESS, "name": "Ether", "symbol": "ETH", "decimals": 18,
     "logoURI": f"{_TW_ASSETS}/arbitrum/info/logo.png"},
    {"chainId": 42161, "address": "0x82aF49447D8a07e3bd95BD0d56f35241523fBab1", "name": "Wrapped Ether",
     "symbol": "WETH", "decimals": 18,
     "logoURI": _tw_logo("arbitrum", "0x82aF49447D8a07e3bd95BD0d56f35241523fBab1")},
    {"chainId": 42161, "address": "0xaf88d065e77c8cC2239327C5EDb3A432268e5831", "name": "USD Coin",
     "symbol": "USDC", "decimals": 6,
     "logoURI": _tw_logo("arbitrum", "0xaf88d065e77c8cC2239327C5EDb3A432268e5831")},
    {"chainId": 42161, "address": "0xFd086bC7CD5C481DCC9C85ebE478A1C0b69FCbb9", "name": "Tether USD",
     "symbol": "USDT", "decimals": 6,
     "logoURI": _tw_logo("arbitrum", "0xFd086bC7CD5C481DCC9C85ebE478A1C0b69FCbb9")},
    {"chainId": 42161, "address": "0xDA10009cBd5D07dd0CeCc66161FC93D7c9000da1", "name": "Dai Stablecoin",
     "symbol": "DAI", "decimals": 18,
     "logoURI": _tw_logo("arbitrum", "0xDA10009cBd5D07dd0CeCc66161FC93D7c9000da1")},
]


def tokens_for_chain(chain_id: int, token_list: Optional[list[dict]] = None) -> list[TokenRef]:
    """Get the tokens listed for a chain."""
    records = TOKEN_LIST if token_list is None else token_list
    return [TokenRef.from_dict(r) for r in records if int(r["chainId"]) == chain_id]


def find_token(chain_id: int, symbol_or_address: str) -> Optional[TokenRef]:
    """Look up a listed token by symbol or address (case-insensitive)."""
    needle = symbol_or_address.lower()
    for token in tokens_for_chain(chain_id):
        if token.symbol.lower() == needle or token.address.lower() == needle:
            return token
    logger.debug(f"Token not found on chain {chain_id}: {symbol_or_address}")
    return None


def is_raw_amount(value: Optional[str]) -> bool:
    """Check that a value is a non-negative raw integer string."""
    return isinstance(value, str) and value.isascii() and value.isdigit()


def format_units(raw: Union[str, int], decimals: int, places: Optional[int] = None) -> str:
    """Convert a raw integer amount to a decimal string.

    With ``places`` the result is fixed to that many digits, rounded
    half-up; otherwise it is the exact value with trailing zeros removed.
    """
    with localcontext() as ctx:
        ctx.prec = 100
        value = Decimal(int(raw)).scaleb(-decimals)
        if places is not None:
            return str(value.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP))
        text = format(value.normalize(), "f")
        return text


def parse_units(amount: Union[str, Decimal], decimals: int) -> str:
    """Convert a human-readable amount to a raw integer string.

    Digits beyond the token's precision are truncated.
    """
    try:
        with localcontext() as ctx:
            ctx.prec = 100
            value = Decimal(str(amount).strip())
            if value < 0:
                raise ValueError(f"Amount must not be negative: {amount}")
            raw = value.scaleb(decimals).quantize(Decimal(1), rounding=ROUND_DOWN)
    except InvalidOperation:
        raise ValueError(f"Invalid amount: {amount!r}")
    return str(int(raw))
