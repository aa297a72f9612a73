from unittest.mock import MagicMock

import pytest
from hexbytes import HexBytes
from web3.exceptions import TimeExhausted

from core.domain.enums.tx_enums import GasStrategy
from core.domain.schemas.onchain_types import PendingTransaction
from core.services.exceptions import (
    ConfigurationError,
    TransactionRevertedError,
    TransactionTimeoutError,
)
from core.services.tx_service import TxService

PRIVATE_KEY = "0x" + "11" * 32
TX_HASH = HexBytes(b"\x12" * 32)


@pytest.fixture
def w3():
    w3 = MagicMock()
    w3.eth.get_transaction_count.return_value = 7
    w3.eth.gas_price = 5_000_000_000
    w3.eth.estimate_gas.return_value = 100_000
    w3.eth.account.sign_transaction.return_value = MagicMock(raw_transaction=b"raw")
    w3.eth.send_raw_transaction.return_value = TX_HASH
    w3.eth.block_number = 10
    return w3


@pytest.fixture
def fn():
    fn = MagicMock()
    fn.build_transaction.side_effect = lambda base: {**base, "to": "0x" + "22" * 20, "data": "0x"}
    return fn


def test_requires_private_key(w3):
    with pytest.raises(ConfigurationError):
        TxService(w3, "")


def test_submit_with_fixed_gas_limit(w3, fn):
    svc = TxService(w3, PRIVATE_KEY)

    pending = svc.submit(fn, description="farm.withdraw", value=3, gas_limit=250_000)

    assert pending.tx_hash == "0x" + "12" * 32
    assert pending.description == "farm.withdraw"
    assert pending.confirmations == 1

    sent = w3.eth.account.sign_transaction.call_args[0][0]
    assert sent["from"] == svc.sender_address()
    assert sent["nonce"] == 7
    assert sent["value"] == 3
    assert sent["gas"] == 250_000
    assert sent["gasPrice"] == 5_000_000_000
    w3.eth.estimate_gas.assert_not_called()
    w3.eth.send_raw_transaction.assert_called_once_with(b"raw")


def test_submit_estimates_gas_with_buffer(w3, fn):
    svc = TxService(w3, PRIVATE_KEY)
    svc.submit(fn, description="x", gas_strategy=GasStrategy.BUFFERED)
    sent = w3.eth.account.sign_transaction.call_args[0][0]
    assert sent["gas"] == 135_000


def test_estimate_failure_falls_back(w3, fn):
    w3.eth.estimate_gas.side_effect = ValueError("execution reverted")
    svc = TxService(w3, PRIVATE_KEY)
    svc.submit(fn, description="x", gas_strategy=GasStrategy.DEFAULT)
    sent = w3.eth.account.sign_transaction.call_args[0][0]
    assert sent["gas"] == 300_000


def test_wait_success(w3):
    w3.eth.wait_for_transaction_receipt.return_value = {"status": 1, "blockNumber": 10}
    svc = TxService(w3, PRIVATE_KEY)

    rcpt = svc.wait(PendingTransaction(tx_hash="0xabc", description="x"))

    assert rcpt["status"] == 1


def test_wait_revert(w3):
    w3.eth.wait_for_transaction_receipt.return_value = {
        "status": 0,
        "blockNumber": 10,
        "transactionHash": HexBytes(b"\x01" * 32),
    }
    svc = TxService(w3, PRIVATE_KEY)

    with pytest.raises(TransactionRevertedError) as ei:
        svc.wait(PendingTransaction(tx_hash="0xabc", description="farm.deposit"))

    assert ei.value.tx_hash == "0xabc"
    assert ei.value.description == "farm.deposit"
    assert ei.value.kind == "transaction_reverted"
    assert ei.value.receipt["status"] == 0
    assert ei.value.receipt["transactionHash"] == "0x" + "01" * 32


def test_wait_receipt_timeout(w3):
    w3.eth.wait_for_transaction_receipt.side_effect = TimeExhausted("slow")
    svc = TxService(w3, PRIVATE_KEY, timeout_sec=5)

    with pytest.raises(TransactionTimeoutError) as ei:
        svc.wait(PendingTransaction(tx_hash="0xabc", description="x"))

    assert ei.value.tx_hash == "0xabc"
    assert ei.value.timeout_sec == 5


def test_wait_confirmation_depth_reached(w3):
    w3.eth.wait_for_transaction_receipt.return_value = {"status": 1, "blockNumber": 8}
    w3.eth.block_number = 10
    svc = TxService(w3, PRIVATE_KEY, confirmations=3)

    svc.wait(PendingTransaction(tx_hash="0xabc", description="x", confirmations=3))


def test_wait_confirmation_depth_timeout(w3):
    w3.eth.wait_for_transaction_receipt.return_value = {"status": 1, "blockNumber": 10}
    w3.eth.block_number = 10
    svc = TxService(w3, PRIVATE_KEY, timeout_sec=0)

    with pytest.raises(TransactionTimeoutError):
        svc.wait(PendingTransaction(tx_hash="0xabc", description="x", confirmations=5))

