"""Factory for creating the deployment's quote gateway.

The backend is chosen once from QUOTE_BACKEND, never per call.
"""

import logging
from decimal import Decimal
from typing import Optional

from lzswap.config import get_settings
from lzswap.errors import ConfigurationError
from lzswap.routing.base import QuoteGateway

logger = logging.getLogger(__name__)

BACKENDS = ("remote", "direct")


def create_remote_gateway(server_url: Optional[str] = None) -> QuoteGateway:
    """Create remote quoting-service gateway.

    Raises:
        ConfigurationError: If no server URL is configured
    """
    from lzswap.routing.remote import RemoteQuoteGateway

    settings = get_settings()
    return RemoteQuoteGateway(
        server_url=server_url,
        slippage_tolerance_percent=settings.slippage_tolerance_percent,
        deadline_seconds=settings.deadline_seconds,
        algorithm=settings.routing_algorithm,
        router_address=settings.swap_router_address,
        timeout=settings.quote_timeout_seconds,
    )


def create_direct_gateway(rpc_url: Optional[str] = None) -> QuoteGateway:
    """Create direct routing gateway against the configured V2 router."""
    from lzswap.routing.direct import DirectRoutingGateway
    from lzswap.routing.uniswap_v2 import UniswapV2Router

    settings = get_settings()
    router = UniswapV2Router(address=settings.v2_router_address, rpc_url=rpc_url or settings.rpc_url)
    return DirectRoutingGateway(
        router=router,
        weth_address=settings.weth_address,
        slippage_tolerance_percent=Decimal(str(settings.slippage_tolerance_percent)),
        deadline_seconds=settings.route_deadline_seconds,
    )


def create_gateway(backend: Optional[str] = None) -> QuoteGateway:
    """Create the quote gateway for this deployment.

    Args:
        backend: 'remote' or 'direct' (uses QUOTE_BACKEND if not provided)

    Raises:
        ConfigurationError: For an unknown backend or missing configuration
    """
    settings = get_settings()
    backend = (backend or settings.quote_backend).lower()

    if backend == "remote":
        gateway = create_remote_gateway()
    elif backend == "direct":
        gateway = create_direct_gateway()
    else:
        raise ConfigurationError(f"Unknown quote backend '{backend}', expected one of {BACKENDS}")

    logger.info(f"Using {gateway.name} quote gateway")
    return gateway
