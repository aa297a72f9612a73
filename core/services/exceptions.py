from __future__ import annotations

from typing import Any, Dict, Optional


class AutoCompoundError(Exception):
    """
    Base class for every failure that aborts a compounding run.

    `kind` is a stable tag used by the run history and the HTTP layer.
    """

    kind = "auto_compound_error"


class ConfigurationError(AutoCompoundError):
    """Wrong chain id, missing network/DEX/pool entry, unreadable config file."""

    kind = "configuration"


class AbiUnavailableError(AutoCompoundError):
    """
    No cached or remotely retrievable ABI for a contract address
    (e.g. unverified source), or the ABI lacks a required function.
    """

    kind = "abi_unavailable"

    def __init__(self, address: str, msg: str):
        self.address = address
        super().__init__(f"ABI unavailable for {address}: {msg}")


class PairNotFoundError(AutoCompoundError):
    kind = "pair_not_found"

    def __init__(self, token_a: str, token_b: str, msg: str = "factory returned the zero address"):
        self.token_a = token_a
        self.token_b = token_b
        super().__init__(f"Pair not found for ({token_a}, {token_b}): {msg}")


class SwapFailedError(AutoCompoundError):
    """
    Raised when the native balance decreased across the swap step.
    Funds stay in the reward token, no further step is attempted.
    """

    kind = "swap_failed"

    def __init__(self, before_native: int, after_native: int, tx_hash: Optional[str] = None):
        self.before_native = int(before_native)
        self.after_native = int(after_native)
        self.tx_hash = tx_hash
        super().__init__(
            f"Swap failed: native balance went from {before_native} to {after_native} (tx={tx_hash})"
        )


class TransactionRevertedError(AutoCompoundError):
    """
    Fired AFTER mined, status==0 (revert/out-of-gas/require fail).
    """

    kind = "transaction_reverted"

    def __init__(
        self,
        *,
        tx_hash: str,
        description: str,
        receipt: Optional[Dict[str, Any]] = None,
        msg: str = "Transaction reverted (status=0). Possibly out-of-gas or require() failed",
    ):
        self.tx_hash = tx_hash
        self.description = description
        self.receipt = receipt
        super().__init__(f"{msg} [{description}] tx={tx_hash}")


class TransactionTimeoutError(AutoCompoundError):
    """
    The receipt (or the requested confirmation depth) was not reached in time.
    The transaction may still be mined later.
    """

    kind = "transaction_timeout"

    def __init__(self, *, tx_hash: str, description: str, timeout_sec: float):
        self.tx_hash = tx_hash
        self.description = description
        self.timeout_sec = timeout_sec
        super().__init__(f"Timed out after {timeout_sec}s waiting for [{description}] tx={tx_hash}")


class LiquidityConfirmationTimeoutError(AutoCompoundError):
    """
    The LP mint notification was not observed before the timeout.

    This is NOT a proof that the liquidity add failed: the add transaction
    may have been mined. An operator has to reconcile the LP balance manually.
    """

    kind = "liquidity_confirmation_timeout"

    def __init__(self, *, tx_hash: Optional[str], timeout_sec: float):
        self.tx_hash = tx_hash
        self.timeout_sec = timeout_sec
        super().__init__(
            f"No LP mint notification within {timeout_sec}s for addLiquidity tx={tx_hash}; "
            "the transaction may have succeeded, reconcile manually"
        )
