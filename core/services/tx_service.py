from __future__ import annotations

import logging
import time
from typing import Optional

from eth_account import Account
from web3 import Web3
from web3.contract.contract import ContractFunction
from web3.exceptions import TimeExhausted

from core.domain.enums.tx_enums import GasStrategy
from core.domain.schemas.onchain_types import PendingTransaction
from core.services.exceptions import (
    ConfigurationError,
    TransactionRevertedError,
    TransactionTimeoutError,
)
from core.services.utils import to_json_safe

logger = logging.getLogger(__name__)


class TxService:
    """
    Transaction sender and waiter for the compounding run.

    Responsibilities:
    - Build, sign and broadcast contract calls from the configured wallet.
    - Apply a fixed gas ceiling, or node estimation padded by a strategy.
    - Wait for a receipt and the requested confirmation depth.
    - Turn status==0 into TransactionRevertedError and slow confirmations
      into TransactionTimeoutError. Nothing is retried.
    """

    def __init__(
        self,
        w3: Web3,
        private_key: str,
        *,
        confirmations: int = 1,
        timeout_sec: float = 120,
        poll_interval_sec: float = 1.0,
    ):
        if not private_key:
            raise ConfigurationError("PRIVATE_KEY is not configured")
        self.w3 = w3
        self.pk = private_key
        self.account = Account.from_key(private_key)
        self.confirmations = max(1, int(confirmations))
        self.timeout_sec = float(timeout_sec)
        self.poll_interval_sec = float(poll_interval_sec)

    def sender_address(self) -> str:
        return self.account.address

    # ---------- internal helpers ----------

    def _next_nonce(self) -> int:
        return self.w3.eth.get_transaction_count(self.account.address, "pending")

    def _estimate_with_strategy(self, tx: dict, strategy: GasStrategy) -> int:
        """
        Calls estimateGas(tx) and applies a safety buffer depending on strategy.
        Falls back to a static 300k if node estimation fails.
        """
        try:
            base_estimate = int(self.w3.eth.estimate_gas(tx))
        except Exception as exc:
            logger.warning("estimate_gas failed (%s), falling back to 300000", exc)
            base_estimate = 300_000

        if strategy == GasStrategy.DEFAULT:
            return base_estimate
        if strategy == GasStrategy.BUFFERED:
            return int(base_estimate * 1.25) + 10_000
        return base_estimate

    def _finalize_fee_fields(self, tx: dict) -> dict:
        """
        If the caller didn't specify EIP-1559 style fields, fallback to legacy gasPrice.
        BSC/Fantom style chains accept legacy gasPrice.
        """
        if "maxFeePerGas" in tx or "maxPriorityFeePerGas" in tx:
            return tx
        if "gasPrice" not in tx:
            tx["gasPrice"] = self.w3.eth.gas_price
        return tx

    def _build_tx_dict(self, fn: ContractFunction, value_wei: int) -> dict:
        """
        Builds the bare transaction dict with from/nonce/value but no gas limit yet.
        """
        base_tx = {
            "from": self.account.address,
            "nonce": self._next_nonce(),
            "value": int(value_wei or 0),
        }
        return fn.build_transaction(base_tx)

    def _sign_and_send(self, tx: dict) -> str:
        signed = self.w3.eth.account.sign_transaction(tx, self.pk)
        txh = self.w3.eth.send_raw_transaction(signed.raw_transaction)
        return Web3.to_hex(txh)

    def _wait_depth(self, pending: PendingTransaction, mined_block: int, deadline: float) -> None:
        target = int(mined_block) + pending.confirmations - 1
        while int(self.w3.eth.block_number) < target:
            if time.monotonic() >= deadline:
                raise TransactionTimeoutError(
                    tx_hash=pending.tx_hash,
                    description=pending.description,
                    timeout_sec=self.timeout_sec,
                )
            time.sleep(self.poll_interval_sec)

    # ---------- public API ----------

    def submit(
        self,
        fn: ContractFunction,
        *,
        description: str,
        value: int = 0,
        gas_limit: Optional[int] = None,
        gas_strategy: GasStrategy = GasStrategy.BUFFERED,
        confirmations: Optional[int] = None,
    ) -> PendingTransaction:
        """
        Broadcasts a state-changing transaction and returns immediately.

        Args:
            fn: Already-parameterized ContractFunction from web3.py
            description: Human label of the step, kept for logs and errors
            value: native value (wei) to send along with the call
            gas_limit: Fixed gas ceiling; when None the node estimate is padded by gas_strategy
            confirmations: Depth required by wait(); defaults to the service setting
        """
        tx = self._build_tx_dict(fn, value_wei=value)

        if gas_limit is not None:
            tx["gas"] = int(gas_limit)
        else:
            tx["gas"] = self._estimate_with_strategy(tx, gas_strategy)

        tx = self._finalize_fee_fields(tx)
        tx_hash = self._sign_and_send(tx)

        logger.info("> Waiting tx %s action = %s", tx_hash, description)
        return PendingTransaction(
            tx_hash=tx_hash,
            description=description,
            confirmations=int(confirmations or self.confirmations),
        )

    def wait(self, pending: PendingTransaction) -> dict:
        """
        Block until `pending` is mined with status 1 and buried under the
        requested confirmation depth.

        Raises:
            TransactionRevertedError: mined with status==0.
            TransactionTimeoutError: not mined / not deep enough before timeout_sec.
        """
        deadline = time.monotonic() + self.timeout_sec
        try:
            rcpt = self.w3.eth.wait_for_transaction_receipt(
                pending.tx_hash,
                timeout=self.timeout_sec,
                poll_latency=self.poll_interval_sec,
            )
        except TimeExhausted as exc:
            raise TransactionTimeoutError(
                tx_hash=pending.tx_hash,
                description=pending.description,
                timeout_sec=self.timeout_sec,
            ) from exc

        rcpt = dict(rcpt)
        if int(rcpt.get("status", 0)) == 0:
            raise TransactionRevertedError(
                tx_hash=pending.tx_hash,
                description=pending.description,
                receipt=to_json_safe(rcpt),
            )

        if pending.confirmations > 1:
            self._wait_depth(pending, int(rcpt.get("blockNumber", 0)), deadline)

        return rcpt

