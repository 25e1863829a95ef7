"""Tests for the web3.py wallet provider (node calls mocked)."""

from unittest.mock import MagicMock, PropertyMock

import pytest
from eth_account import Account
from web3.exceptions import ContractLogicError, TransactionNotFound

from lzswap.errors import ErrorKind, WalletError
from lzswap.executor import TradeStatus
from lzswap.pipeline import PipelineStatus, SwapPipeline
from lzswap.wallet.base import WalletEvent
from lzswap.wallet.web3_wallet import Web3Wallet

from conftest import ONE_ETH, ROUTER, StaticGateway

PRIVATE_KEY = "0x" + "11" * 32


@pytest.fixture
def web3():
    web3 = MagicMock()
    web3.eth.chain_id = 1
    web3.eth.block_number = 10
    web3.eth.gas_price = 10**9
    web3.eth.get_transaction_count.return_value = 0
    web3.eth.estimate_gas.return_value = 21000
    web3.eth.send_raw_transaction.return_value = b"\x12" * 32
    return web3


@pytest.fixture
def account():
    return Account.from_key(PRIVATE_KEY)


@pytest.fixture
def web3_wallet(web3):
    return Web3Wallet("http://rpc.test", private_key=PRIVATE_KEY, web3=web3, poll_interval=0.01)


class TestAccounts:
    """Tests for account and chain queries."""

    @pytest.mark.asyncio
    async def test_request_accounts(self, web3_wallet, account):
        assert await web3_wallet.request_accounts() == [account.address]
        assert await web3_wallet.get_chain_id() == 1

    @pytest.mark.asyncio
    async def test_no_key_means_no_accounts(self, web3):
        wallet = Web3Wallet("http://rpc.test", web3=web3)

        assert await wallet.request_accounts() == []

    def test_switch_account_emits_event(self, web3_wallet):
        events = []
        web3_wallet.subscribe(WalletEvent.ACCOUNTS_CHANGED, events.append)

        web3_wallet.switch_account(None)

        assert events == [[]]
        assert web3_wallet.address is None

    def test_unsubscribe_is_idempotent(self, web3_wallet):
        unsubscribe = web3_wallet.subscribe(WalletEvent.CHAIN_CHANGED, lambda payload: None)

        unsubscribe()
        unsubscribe()

        assert web3_wallet.listener_count() == 0


class TestTransactions:
    """Tests for signing, broadcast and confirmation."""

    @pytest.mark.asyncio
    async def test_send_transaction(self, web3_wallet, web3, account):
        tx_hash = await web3_wallet.send_transaction({
            "from": account.address,
            "to": ROUTER,
            "data": "0x38ed1739",
            "value": 0,
        })

        assert tx_hash == "0x" + "12" * 32
        web3.eth.send_raw_transaction.assert_called_once()

    @pytest.mark.asyncio
    async def test_broadcast_failure_is_wallet_error(self, web3_wallet, web3, account):
        web3.eth.send_raw_transaction.side_effect = ValueError("insufficient funds for gas")

        with pytest.raises(WalletError, match="insufficient funds"):
            await web3_wallet.send_transaction({"from": account.address, "to": ROUTER, "data": "0x", "value": 0})

    @pytest.mark.asyncio
    async def test_foreign_sender_is_rejected(self, web3_wallet, web3):
        with pytest.raises(WalletError):
            await web3_wallet.send_transaction({"from": ROUTER, "to": ROUTER, "data": "0x", "value": 0})

        web3.eth.send_raw_transaction.assert_not_called()

    @pytest.mark.asyncio
    async def test_wait_for_receipt(self, web3_wallet, web3):
        web3.eth.get_transaction_receipt.return_value = {"blockNumber": 10, "status": 1}

        receipt = await web3_wallet.wait_for_receipt("0xabc", confirmations=1)

        assert receipt.succeeded
        assert receipt.block_number == 10

    @pytest.mark.asyncio
    async def test_reverted_receipt_carries_reason(self, web3_wallet, web3):
        web3.eth.get_transaction_receipt.return_value = {"blockNumber": 10, "status": 0}
        web3.eth.get_transaction.return_value = {"from": ROUTER, "to": ROUTER, "input": "0x", "value": 0}
        web3.eth.call.side_effect = ContractLogicError("execution reverted: STF")

        receipt = await web3_wallet.wait_for_receipt("0xabc")

        assert not receipt.succeeded
        assert "STF" in receipt.revert_reason

    @pytest.mark.asyncio
    async def test_confirmation_timeout(self, web3_wallet, web3):
        web3.eth.get_transaction_receipt.side_effect = TransactionNotFound("not yet")

        with pytest.raises(WalletError, match="not confirmed"):
            await web3_wallet.wait_for_receipt("0xabc", timeout=0.05)


class TestNodeErrors:
    """Tests for node failures surfacing as WalletError."""

    @pytest.mark.asyncio
    async def test_block_number_failure_is_wallet_error(self, web3_wallet, web3):
        web3.eth.get_transaction_receipt.return_value = {"blockNumber": 10, "status": 1}
        type(web3.eth).block_number = PropertyMock(side_effect=ConnectionError("node connection reset"))

        with pytest.raises(WalletError, match="node connection reset"):
            await web3_wallet.wait_for_receipt("0xabc")

    @pytest.mark.asyncio
    async def test_bad_address_is_wallet_error(self, web3_wallet, usdc):
        with pytest.raises(WalletError):
            await web3_wallet.get_allowance(usdc.address, "not-an-address", ROUTER)

        with pytest.raises(WalletError):
            await web3_wallet.get_balance(usdc, "not-an-address")

    @pytest.mark.asyncio
    async def test_pipeline_reports_failed_trade_when_node_drops(self, web3_wallet, web3, eth, usdc):
        """Test a node failure after broadcast ends the swap as TRADE_FAILED with its hash."""
        web3.eth.get_transaction_receipt.return_value = {"blockNumber": 10, "status": 1}
        type(web3.eth).block_number = PropertyMock(side_effect=ConnectionError("node connection reset"))
        pipeline = SwapPipeline(StaticGateway(), web3_wallet, debounce_ms=0)
        await pipeline.connect()
        pipeline.set_input(eth, usdc, ONE_ETH)
        await pipeline.requester.wait_idle()

        outcome = await pipeline.swap()

        assert outcome.status == TradeStatus.FAILED
        assert outcome.tx_hash == "0x" + "12" * 32
        assert pipeline.status == PipelineStatus.ERROR
        assert pipeline.error == ErrorKind.TRADE_FAILED
        await pipeline.aclose()
