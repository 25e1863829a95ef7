"""Swap quote endpoint.

Forwards browser quote requests to the remote quoting service and returns
a human-readable quote plus the execution plan for client-side signing.
"""

import json
import logging
from typing import Optional

from fastapi import APIRouter, Request, Response
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from lzswap.api.contracts import SwapQuoteRequest, SwapQuoteResponse
from lzswap.errors import ConfigurationError, ErrorKind
from lzswap.routing.base import QuoteGateway, SwapRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["swap"])

REQUIRED_FIELDS = ("tokenIn", "tokenOut", "amountIn", "walletAddress")


def _error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


def get_gateway(request: Request) -> Optional[QuoteGateway]:
    """Get the app's remote gateway, creating it on first use.

    Returns None when the quoting service is not configured.
    """
    state = request.app.state
    if getattr(state, "gateway", None) is None:
        from lzswap.routing.factory import create_remote_gateway

        try:
            state.gateway = create_remote_gateway()
        except ConfigurationError as e:
            logger.error(f"Quote gateway unavailable: {e}")
            return None
    return state.gateway


@router.options("/swap", status_code=204)
async def swap_preflight() -> Response:
    """CORS preflight."""
    return Response(status_code=204)


@router.post("/swap", response_model=SwapQuoteResponse)
async def get_swap_quote(request: Request):
    """Get a quote for an exact-input swap.

    Responses:
    - 200: ``{quote, route}``
    - 400: missing or invalid parameters
    - 404: no route for this pair and amount
    - 500: quoting service not configured
    - 502: upstream quote provider failed
    """
    gateway = get_gateway(request)
    if gateway is None:
        return _error("SERVER_URL environment variable is missing", 500)

    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return _error("Request body must be JSON", 400)

    if not isinstance(body, dict) or any(not body.get(f) for f in REQUIRED_FIELDS):
        return _error("Missing required parameters", 400)

    try:
        payload = SwapQuoteRequest.model_validate(body)
    except ValidationError as e:
        logger.debug(f"Invalid swap request: {e}")
        first = e.errors()[0]
        field = ".".join(str(part) for part in first.get("loc", ()))
        return _error(f"Invalid parameter {field}: {first.get('msg')}", 400)

    swap_request = SwapRequest(
        token_in=payload.token_in.to_token(),
        token_out=payload.token_out.to_token(),
        amount_in=payload.amount_in,
        wallet_address=payload.wallet_address,
    )
    logger.info(f"Swap quote request: {swap_request} for {payload.wallet_address}")

    result = await gateway.get_quote(swap_request)

    if result.error == ErrorKind.UPSTREAM_FAILURE:
        return _error("Failed to fetch from /quote", 502)
    if result.error == ErrorKind.NO_ROUTE:
        return _error("No route found for this token pair and amount", 404)
    if result.quote is None:
        return _error(f"Quote failed: {result.error.value if result.error else 'unknown'}", 502)

    plan = result.execution_plan
    response = SwapQuoteResponse(
        quote=result.quote,
        route=plan.to_dict() if plan else None,
        route_details=result.route_details or None,
    )
    return JSONResponse(response.model_dump(by_alias=True))
