from unittest.mock import MagicMock, patch

import pytest

from core.services.event_watcher import LogSubscription, SubscriptionCancelled

ME = "0x1234567890123456789012345678901234567890"


def _w3(block=100):
    w3 = MagicMock()
    w3.eth.block_number = block
    return w3


def _log(to, value, tx="0xaa"):
    return {"args": {"from": "0x" + "00" * 20, "to": to, "value": value}, "transactionHash": tx}


def test_start_registers_from_current_block():
    event = MagicMock()
    event.get_logs.return_value = []
    sub = LogSubscription(_w3(block=123), event, argument_filters={"to": ME})

    with sub:
        assert sub.active
        sub.poll()

    event.get_logs.assert_called_once_with(argument_filters={"to": ME}, from_block=123)
    assert not sub.active


def test_wait_returns_first_matching_log():
    event = MagicMock()
    wanted = _log(ME, 42, tx="0xbb")
    event.get_logs.side_effect = [[], [_log(ME, 1, tx="0xaa"), wanted]]

    with patch("core.services.event_watcher.time.sleep") as sleep:
        with LogSubscription(_w3(), event, poll_interval_sec=0.5) as sub:
            got = sub.wait(30, predicate=lambda lg: lg["transactionHash"] == "0xbb")

    assert got is wanted
    sleep.assert_called_once_with(0.5)


def test_wait_times_out_after_one_poll():
    event = MagicMock()
    event.get_logs.return_value = []

    with LogSubscription(_w3(), event) as sub:
        with pytest.raises(TimeoutError):
            sub.wait(0)

    assert event.get_logs.call_count == 1
    assert not sub.active


def test_cancelled_on_error_inside_block():
    event = MagicMock()
    sub = LogSubscription(_w3(), event)

    with pytest.raises(RuntimeError, match="boom"):
        with sub:
            raise RuntimeError("boom")

    assert not sub.active
    with pytest.raises(SubscriptionCancelled):
        sub.poll()
