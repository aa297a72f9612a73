from typing import List, Optional

from pydantic import BaseModel, Field

from core.domain.entities.compound_run_entity import CompoundRunEntity


class StepOut(BaseModel):
    step: str
    description: str
    tx_hash: Optional[str] = None
    ts_iso: str


class CompoundRunOut(BaseModel):
    id: Optional[str] = None
    pool: str
    network: str
    dex: str
    wallet: str
    status: str
    current_step: str
    compounded: bool

    # raw 18-decimal integers, as strings so JS clients keep precision
    claimed_tokens: str
    tokens_swapped: str
    amount_out_min: str
    native_received: str
    token_liquidity: str
    native_liquidity: str
    lp_minted: str

    steps: List[StepOut] = Field(default_factory=list)
    error_kind: Optional[str] = None
    error: Optional[str] = None
    created_at_iso: Optional[str] = None

    @classmethod
    def from_entity(cls, run: CompoundRunEntity) -> "CompoundRunOut":
        return cls(
            id=run.id,
            pool=run.pool,
            network=run.network,
            dex=run.dex,
            wallet=run.wallet,
            status=str(run.status),
            current_step=str(run.current_step),
            compounded=run.compounded,
            claimed_tokens=str(run.claimed_tokens),
            tokens_swapped=str(run.tokens_swapped),
            amount_out_min=str(run.amount_out_min),
            native_received=str(run.native_received),
            token_liquidity=str(run.token_liquidity),
            native_liquidity=str(run.native_liquidity),
            lp_minted=str(run.lp_minted),
            steps=[
                StepOut(step=str(s.step), description=s.description, tx_hash=s.tx_hash, ts_iso=s.ts_iso)
                for s in run.steps
            ],
            error_kind=run.error_kind,
            error=run.error,
            created_at_iso=run.created_at_iso,
        )


class CompoundRunListOut(BaseModel):
    pool: str
    runs: List[CompoundRunOut]
