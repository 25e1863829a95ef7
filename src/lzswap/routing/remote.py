"""Remote quoting-service strategy.

Forwards exact-input quote requests to an HTTP quote service exposing
``GET /quote`` (Uniswap routing-API style) and normalizes the answer.
"""

import logging
from decimal import Decimal
from typing import Optional

import httpx

from lzswap.config import get_settings
from lzswap.errors import ConfigurationError, ErrorKind
from lzswap.routing.base import ExecutionPlan, QuoteGateway, QuoteResult, SwapRequest, format_quote
from lzswap.tokens import is_raw_amount

logger = logging.getLogger(__name__)


def _parse_raw(value) -> int:
    """Parse a non-negative decimal or 0x-prefixed hex quantity."""
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        raise ValueError(f"Quantity must be an integer or string, got {value!r}")
    if isinstance(value, str):
        text = value.strip()
        value = int(text, 16) if text.lower().startswith("0x") else int(text)
    if value < 0:
        raise ValueError(f"Quantity must not be negative, got {value}")
    return value


class RemoteQuoteGateway(QuoteGateway):
    """Quote gateway backed by a remote quoting service.

    A missing base URL is a startup error, not a per-request failure.
    """

    def __init__(
        self,
        server_url: Optional[str] = None,
        slippage_tolerance_percent: Optional[float] = None,
        deadline_seconds: Optional[int] = None,
        algorithm: Optional[str] = None,
        router_address: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize remote gateway.

        Args:
            server_url: Quote service base URL (falls back to SERVER_URL)
            slippage_tolerance_percent: Slippage passed to the service
            deadline_seconds: Deadline passed to the service
            algorithm: Routing algorithm hint
            router_address: Default ``to`` when the route omits it
            timeout: Seconds before a quote call counts as failed
            transport: Optional httpx transport (tests)
        """
        settings = get_settings()
        self.server_url = (server_url or settings.server_url or "").rstrip("/")
        if not self.server_url:
            raise ConfigurationError("SERVER_URL environment variable is missing")

        self.slippage_tolerance_percent = (
            slippage_tolerance_percent
            if slippage_tolerance_percent is not None
            else settings.slippage_tolerance_percent
        )
        self.deadline_seconds = deadline_seconds if deadline_seconds is not None else settings.deadline_seconds
        self.algorithm = algorithm or settings.routing_algorithm
        self.router_address = router_address or settings.swap_router_address
        self.timeout = timeout if timeout is not None else settings.quote_timeout_seconds
        self._transport = transport
        self._http_client: Optional[httpx.AsyncClient] = None

    @property
    def name(self) -> str:
        return "remote"

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                base_url=self.server_url,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._http_client

    def build_params(self, request: SwapRequest) -> dict:
        """Build the ``/quote`` query parameters for a request."""
        return {
            "tokenInAddress": request.token_in.address,
            "tokenInChainId": str(request.token_in.chain_id),
            "tokenOutAddress": request.token_out.address,
            "tokenOutChainId": str(request.token_out.chain_id),
            "amount": request.amount_in,
            "type": "exactIn",
            "deadline": str(self.deadline_seconds),
            "slippageTolerance": str(Decimal(str(self.slippage_tolerance_percent)).normalize()),
            "algorithm": self.algorithm,
            "recipient": request.wallet_address,
        }

    async def fetch(self, request: SwapRequest) -> dict:
        """Call the upstream ``/quote`` endpoint and return its JSON body.

        Raises:
            httpx.HTTPError: On transport failure, timeout or non-2xx status
            ValueError: If the body is not JSON
        """
        client = self._get_client()
        response = await client.get("/quote", params=self.build_params(request))
        if response.is_error:
            logger.warning(f"Upstream /quote failed: {response.status_code} - {response.text[:200]}")
        response.raise_for_status()
        return response.json()

    async def get_quote(self, request: SwapRequest) -> QuoteResult:
        """Get a quote from the remote service."""
        if not request.is_complete:
            return QuoteResult.failure(ErrorKind.INCOMPLETE)

        try:
            data = await self.fetch(request)
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Remote quote error for {request}: {type(e).__name__}: {e}")
            return QuoteResult.failure(ErrorKind.UPSTREAM_FAILURE)

        return self.normalize(request, data)

    def normalize(self, request: SwapRequest, data: dict) -> QuoteResult:
        """Map an upstream response body onto a QuoteResult."""
        raw_quote = data.get("quote") if isinstance(data, dict) else None
        if raw_quote is None:
            if isinstance(data, dict) and data.get("errorCode") == "NO_ROUTE":
                return QuoteResult.failure(ErrorKind.NO_ROUTE)
            logger.error(f"Upstream /quote response has no quote field: {data!r:.200}")
            return QuoteResult.failure(ErrorKind.UPSTREAM_FAILURE)

        raw_quote = str(raw_quote)
        if not is_raw_amount(raw_quote):
            logger.error(f"Upstream quote is not a raw integer amount: {raw_quote!r}")
            return QuoteResult.failure(ErrorKind.UPSTREAM_FAILURE)

        quote = format_quote(raw_quote, request.token_out.decimals)
        route = data.get("route")
        plan = self._build_plan(request, data)

        logger.info(
            f"Remote quote: {request} = {quote} {request.token_out.symbol}"
            f"{'' if plan else ' (no executable plan)'}"
        )
        return QuoteResult.ok(
            quote=quote,
            execution_plan=plan,
            raw_amount_out=raw_quote,
            route_details={"route": route},
        )

    def _build_plan(self, request: SwapRequest, data: dict) -> Optional[ExecutionPlan]:
        """Extract method parameters from the upstream body, if any."""
        route = data.get("route")
        params = data.get("methodParameters")
        if params is None and isinstance(route, dict):
            params = route.get("methodParameters")
        if not isinstance(params, dict) or not params.get("calldata"):
            return None

        try:
            calldata = bytes.fromhex(str(params["calldata"]).removeprefix("0x"))
            value = str(_parse_raw(params.get("value", "0")))
        except (TypeError, ValueError) as e:
            logger.warning(f"Malformed method parameters in upstream route: {e}")
            return None

        return ExecutionPlan(
            to=params.get("to") or self.router_address,
            calldata=calldata,
            value=value,
            request=request,
            chain_id=request.token_in.chain_id,
        )

    async def aclose(self) -> None:
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None
