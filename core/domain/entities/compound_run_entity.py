from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from core.domain.entities.base_entity import MongoEntity
from core.domain.enums.compound_enums import CompoundStep, RunStatus
from core.domain.schemas.compound_config import RuntimeParameters
from core.domain.schemas.onchain_types import BalanceSnapshot


class StepRecord(BaseModel):
    """
    One submitted transaction of a run. Kept so an operator can reconcile a
    half-compounded position after a crash or a timeout.
    """

    step: CompoundStep
    description: str
    tx_hash: Optional[str] = None
    ts_iso: str = Field(default_factory=MongoEntity.now_iso)

    model_config = ConfigDict(use_enum_values=True)


class CompoundRunEntity(MongoEntity):
    """
    Mongo document (collection: compound_runs), also the value returned by a run.
    One record per invocation of the compounding cycle for a pool.

    Amounts are raw integers (18 decimals). Values that do not fit in int64
    are stored as strings by the repository and coerced back on read.
    """

    pool: str
    network: str
    dex: str = ""
    wallet: str = ""

    status: RunStatus = RunStatus.RUNNING
    current_step: CompoundStep = CompoundStep.INIT
    compounded: bool = False

    params: Optional[RuntimeParameters] = None

    claimed_tokens: int = 0
    tokens_swapped: int = 0
    amount_out_min: int = 0
    native_received: int = 0
    token_liquidity: int = 0
    native_liquidity: int = 0
    lp_minted: int = 0

    initial_balances: Optional[BalanceSnapshot] = None
    final_balances: Optional[BalanceSnapshot] = None

    steps: List[StepRecord] = Field(default_factory=list)

    error_kind: Optional[str] = None
    error: Optional[str] = None
    error_tx_hash: Optional[str] = None

    model_config = ConfigDict(extra="allow", use_enum_values=True)

    def record_tx(self, step: CompoundStep, description: str, tx_hash: Optional[str]) -> None:
        self.steps.append(StepRecord(step=step, description=description, tx_hash=tx_hash))
