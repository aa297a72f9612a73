# core/services/event_watcher.py
"""
One-shot wait for a contract event.

Usage:

    with LogSubscription(w3, pair.contract.events.Transfer(), argument_filters={"to": me}) as sub:
        ...submit the transaction that should emit the event...
        log = sub.wait(timeout_sec=20)

Interest is registered on `start()` (the current block becomes the lower
bound of the log query), so an event emitted by a transaction submitted
after that point is always seen. The subscription is cancelled when the
`with` block exits, whatever the outcome.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, List, Optional

from web3 import Web3

logger = logging.getLogger(__name__)


class SubscriptionCancelled(RuntimeError):
    pass


class LogSubscription:
    def __init__(
        self,
        w3: Web3,
        event: Any,
        *,
        argument_filters: Optional[Dict[str, Any]] = None,
        poll_interval_sec: float = 1.0,
    ):
        self.w3 = w3
        self.event = event
        self.argument_filters = dict(argument_filters or {})
        self.poll_interval_sec = float(poll_interval_sec)
        self.from_block: Optional[int] = None
        self.started_at: Optional[float] = None
        self.active = False

    def __enter__(self) -> "LogSubscription":
        return self.start()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.cancel()

    def start(self) -> "LogSubscription":
        self.from_block = int(self.w3.eth.block_number)
        self.started_at = time.monotonic()
        self.active = True
        return self

    def cancel(self) -> None:
        self.active = False

    def poll(self) -> List[Any]:
        if not self.active:
            raise SubscriptionCancelled("subscription is not active")
        return list(
            self.event.get_logs(
                argument_filters=self.argument_filters,
                from_block=self.from_block,
            )
        )

    def wait(
        self,
        timeout_sec: float,
        predicate: Optional[Callable[[Any], bool]] = None,
    ) -> Any:
        """
        Block until a log matching `predicate` shows up, or raise TimeoutError
        once `timeout_sec` has elapsed since `start()`. At least one poll is
        always made, even if the deadline has already passed.
        """
        if self.started_at is None:
            self.start()
        deadline = float(self.started_at) + float(timeout_sec)

        while True:
            for log in self.poll():
                if predicate is None or predicate(log):
                    return log
            if time.monotonic() >= deadline:
                raise TimeoutError(f"no matching event within {timeout_sec}s")
            time.sleep(self.poll_interval_sec)
