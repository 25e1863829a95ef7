"""Tests for the debounced quote requester."""

import asyncio

import httpx
import pytest

from lzswap.errors import ErrorKind
from lzswap.requester import QuoteRequester
from lzswap.routing.base import SwapRequest
from lzswap.routing.remote import RemoteQuoteGateway

from conftest import ONE_ETH, WALLET, StaticGateway


class Recorder:
    """Collects requester callbacks."""

    def __init__(self):
        self.results = []
        self.loading = []

    def on_result(self, request, result):
        self.results.append((request, result))

    def on_loading(self, value):
        self.loading.append(value)


def make_requester(gateway, debounce_ms=20, timeout=1.0):
    recorder = Recorder()
    requester = QuoteRequester(
        gateway,
        debounce_ms=debounce_ms,
        timeout=timeout,
        on_result=recorder.on_result,
        on_loading=recorder.on_loading,
    )
    return requester, recorder


class TestDebounce:
    """Tests for debouncing and last-writer-wins delivery."""

    @pytest.mark.asyncio
    async def test_only_settled_request_is_sent(self, gateway, eth, usdc):
        """Test rapid edits produce a single gateway call for the last one."""
        requester, recorder = make_requester(gateway)

        requests = [SwapRequest(eth, usdc, str(n) + "00000000000000000", WALLET) for n in (1, 12, 123)]
        tokens = [requester.submit(r) for r in requests]
        await requester.wait_idle()

        assert tokens == [1, 2, 3]
        assert gateway.calls == [requests[-1]]
        assert len(recorder.results) == 1
        assert recorder.results[0][0] is requests[-1]
        assert recorder.results[0][1].quote == "2000.0000"

    @pytest.mark.asyncio
    async def test_superseded_in_flight_result_is_dropped(self, eth, usdc):
        """Test a slow earlier response never overwrites a newer one."""
        gateway = StaticGateway(delay=0.1)
        requester, recorder = make_requester(gateway, debounce_ms=10)

        first = SwapRequest(eth, usdc, ONE_ETH, WALLET)
        second = SwapRequest(eth, usdc, "2" + ONE_ETH[1:], WALLET)

        requester.submit(first)
        await asyncio.sleep(0.05)  # first call is now in flight
        assert requester.loading
        assert gateway.calls == [first]

        requester.submit(second)
        await requester.wait_idle()

        assert gateway.calls == [first, second]
        assert [r for r, _ in recorder.results] == [second]
        assert requester.last_request is second
        assert not requester.loading

    @pytest.mark.asyncio
    async def test_loading_tracks_latest_call(self, gateway, eth, usdc):
        requester, recorder = make_requester(gateway)

        requester.submit(SwapRequest(eth, usdc, ONE_ETH, WALLET))
        assert not requester.loading  # still debouncing
        await requester.wait_idle()

        assert recorder.loading == [True, False]
        assert not requester.loading


class TestIncompleteRequests:
    """Tests for requests missing inputs."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", ["", "0", "1.5"])
    async def test_incomplete_resolves_synchronously(self, gateway, eth, usdc, amount):
        requester, recorder = make_requester(gateway)

        requester.submit(SwapRequest(eth, usdc, amount, WALLET))

        # Delivered before any await
        assert len(recorder.results) == 1
        assert recorder.results[0][1].error == ErrorKind.INCOMPLETE
        await requester.wait_idle()
        assert gateway.calls == []

    @pytest.mark.asyncio
    async def test_missing_wallet_or_token(self, gateway, eth):
        requester, recorder = make_requester(gateway)

        requester.submit(SwapRequest(eth, None, ONE_ETH, WALLET))
        requester.submit(SwapRequest(eth, eth, ONE_ETH, None))
        await requester.wait_idle()

        assert [r.error for _, r in recorder.results] == [ErrorKind.INCOMPLETE, ErrorKind.INCOMPLETE]
        assert gateway.calls == []

    @pytest.mark.asyncio
    async def test_incomplete_cancels_pending_request(self, gateway, eth, usdc):
        """Test clearing the amount discards a request still in its debounce window."""
        requester, recorder = make_requester(gateway)

        requester.submit(SwapRequest(eth, usdc, ONE_ETH, WALLET))
        requester.submit(SwapRequest(eth, usdc, "", WALLET))
        await requester.wait_idle()

        assert gateway.calls == []
        assert [r.error for _, r in recorder.results] == [ErrorKind.INCOMPLETE]


class TestFailures:
    """Tests for upstream failures surfacing through the requester."""

    @pytest.mark.asyncio
    async def test_upstream_503(self, eth, usdc):
        """Test a 503 resolves to UPSTREAM_FAILURE and clears loading."""
        gateway = RemoteQuoteGateway(
            server_url="http://quote.test",
            transport=httpx.MockTransport(lambda request: httpx.Response(503)),
        )
        requester, recorder = make_requester(gateway)

        requester.submit(SwapRequest(eth, usdc, ONE_ETH, WALLET))
        await requester.wait_idle()
        await gateway.aclose()

        assert recorder.results[0][1].error == ErrorKind.UPSTREAM_FAILURE
        assert recorder.loading == [True, False]

    @pytest.mark.asyncio
    async def test_timeout(self, eth, usdc):
        gateway = StaticGateway(delay=1.0)
        requester, recorder = make_requester(gateway, timeout=0.05)

        requester.submit(SwapRequest(eth, usdc, ONE_ETH, WALLET))
        await requester.wait_idle()

        assert recorder.results[0][1].error == ErrorKind.UPSTREAM_FAILURE
        assert not requester.loading

    @pytest.mark.asyncio
    async def test_gateway_exception(self, eth, usdc):
        gateway = StaticGateway(error=RuntimeError("boom"))
        requester, recorder = make_requester(gateway)

        requester.submit(SwapRequest(eth, usdc, ONE_ETH, WALLET))
        await requester.wait_idle()

        assert recorder.results[0][1].error == ErrorKind.UPSTREAM_FAILURE

    @pytest.mark.asyncio
    async def test_aclose_cancels_everything(self, eth, usdc):
        gateway = StaticGateway(delay=1.0)
        requester, recorder = make_requester(gateway, debounce_ms=0)

        requester.submit(SwapRequest(eth, usdc, ONE_ETH, WALLET))
        await asyncio.sleep(0.01)
        await requester.aclose()

        assert recorder.results == []
        assert not requester.loading
