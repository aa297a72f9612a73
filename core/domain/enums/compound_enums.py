from __future__ import annotations

from enum import StrEnum


class CompoundStep(StrEnum):
    """
    Steps of one compounding run, in execution order.
    """

    INIT = "init"
    HARVEST = "harvest"
    APPROVE = "approve"
    SWAP = "swap"
    SKIP_CHECK = "skip_check"
    ADD_LIQUIDITY = "add_liquidity"
    STAKE_APPROVE = "stake_approve"
    STAKE = "stake"


class RunStatus(StrEnum):
    """
    Terminal status of a run.

    - COMPLETED: every applicable step confirmed (with or without compounding).
    - ABORTED: stopped at the first failure; on-chain state left as-is.
    """

    RUNNING = "running"
    COMPLETED = "completed"
    ABORTED = "aborted"
