"""Quote and route acquisition.

Gateways:
- Remote: HTTP quoting service (``GET /quote``)
- Direct: path search against a Uniswap V2-style router contract
"""

from lzswap.routing.base import (
    ExecutionPlan,
    QuoteGateway,
    QuoteResult,
    SwapRequest,
    format_quote,
)
from lzswap.routing.direct import DirectRoutingGateway
from lzswap.routing.factory import create_direct_gateway, create_gateway, create_remote_gateway
from lzswap.routing.remote import RemoteQuoteGateway

__all__ = [
    # Data model
    "SwapRequest",
    "ExecutionPlan",
    "QuoteResult",
    "format_quote",
    # Gateways
    "QuoteGateway",
    "RemoteQuoteGateway",
    "DirectRoutingGateway",
    # Factory functions
    "create_gateway",
    "create_remote_gateway",
    "create_direct_gateway",
]
