"""Debounced quote requester.

Every submitted SwapRequest gets a monotonically increasing supersession
token. A request is only sent to the gateway after a quiet window with no
newer submission, and only the completion carrying the latest token is
delivered.

Example:
    requester = QuoteRequester(gateway, on_result=show_quote)
    requester.submit(SwapRequest(eth, usdc, "1000000000000000000", wallet))
    requester.submit(SwapRequest(eth, usdc, "2000000000000000000", wallet))
    # only the second request reaches the gateway
"""

import asyncio
import logging
from typing import Callable, Optional

from lzswap.config import get_settings
from lzswap.errors import ErrorKind
from lzswap.routing.base import QuoteGateway, QuoteResult, SwapRequest

logger = logging.getLogger(__name__)

ResultCallback = Callable[[SwapRequest, QuoteResult], None]
LoadingCallback = Callable[[bool], None]


class QuoteRequester:
    """Rate-limited front door to a quote gateway."""

    def __init__(
        self,
        gateway: QuoteGateway,
        debounce_ms: Optional[int] = None,
        timeout: Optional[float] = None,
        on_result: Optional[ResultCallback] = None,
        on_loading: Optional[LoadingCallback] = None,
    ):
        """Initialize the requester.

        Args:
            gateway: Quote backend
            debounce_ms: Quiet window before a request is sent
            timeout: Seconds before a quote call resolves as UPSTREAM_FAILURE
            on_result: Called with every delivered (request, result)
            on_loading: Called whenever the loading signal changes
        """
        settings = get_settings()
        self.gateway = gateway
        self.debounce_seconds = (debounce_ms if debounce_ms is not None else settings.quote_debounce_ms) / 1000
        self.timeout = timeout if timeout is not None else settings.quote_timeout_seconds
        self.on_result = on_result
        self.on_loading = on_loading

        self.last_request: Optional[SwapRequest] = None
        self.last_result: Optional[QuoteResult] = None

        self._token = 0
        self._loading = False
        self._debounce_task: Optional[asyncio.Task] = None
        self._tasks: set[asyncio.Task] = set()

    @property
    def loading(self) -> bool:
        """True while the latest request's quote call is in flight."""
        return self._loading

    @property
    def latest_token(self) -> int:
        return self._token

    def _set_loading(self, value: bool) -> None:
        if self._loading == value:
            return
        self._loading = value
        if self.on_loading:
            self.on_loading(value)

    def _emit(self, request: SwapRequest, result: QuoteResult) -> None:
        self.last_request = request
        self.last_result = result
        if self.on_result:
            self.on_result(request, result)

    def submit(self, request: SwapRequest) -> int:
        """Submit a new request, superseding any earlier one.

        Incomplete requests resolve immediately with INCOMPLETE and never
        reach the gateway.

        Returns:
            Supersession token assigned to this request
        """
        self._token += 1
        token = self._token

        if self._debounce_task is not None and not self._debounce_task.done():
            self._debounce_task.cancel()
            logger.debug(f"Discarded unsettled quote request before token {token}")
        self._debounce_task = None
        self._set_loading(False)

        if not request.is_complete:
            logger.debug(f"Incomplete swap request (missing {', '.join(request.missing_fields)})")
            self._emit(request, QuoteResult.failure(ErrorKind.INCOMPLETE))
            return token

        task = asyncio.get_running_loop().create_task(self._settle(token, request))
        self._debounce_task = task
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return token

    async def _settle(self, token: int, request: SwapRequest) -> None:
        await asyncio.sleep(self.debounce_seconds)
        if token != self._token:
            return

        # Settled: from here on the call is only discarded, never cancelled
        if self._debounce_task is asyncio.current_task():
            self._debounce_task = None
        self._set_loading(True)
        logger.debug(f"Quote request settled (token {token}): {request}")

        try:
            result = await asyncio.wait_for(self.gateway.get_quote(request), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Quote timed out after {self.timeout}s: {request}")
            result = QuoteResult.failure(ErrorKind.UPSTREAM_FAILURE)
        except Exception as e:
            logger.error(f"Quote gateway {self.gateway.name} raised {type(e).__name__}: {e}")
            result = QuoteResult.failure(ErrorKind.UPSTREAM_FAILURE)

        if token != self._token:
            logger.debug(f"Dropped superseded quote result (token {token}, latest {self._token})")
            return

        self._set_loading(False)
        self._emit(request, result)

    async def wait_idle(self) -> None:
        """Wait until every pending and in-flight request has finished."""
        while True:
            pending = [task for task in self._tasks if not task.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    async def aclose(self) -> None:
        """Cancel all pending and in-flight requests."""
        self._token += 1
        for task in list(self._tasks):
            task.cancel()
        await asyncio.gather(*list(self._tasks), return_exceptions=True)
        self._debounce_task = None
        self._set_loading(False)
