from __future__ import annotations

from decimal import Decimal
from typing import Any, List

from pydantic import BaseModel, ConfigDict, Field


class Erc20Meta(BaseModel):
    address: str
    symbol: str
    decimals: int


class ContractHandle(BaseModel):
    """
    Address + ABI pair returned by the contract gateway.
    """

    address: str
    abi: List[Any]

    model_config = ConfigDict(frozen=True)


class BalanceSnapshot(BaseModel):
    """
    Point-in-time read of the wallet's native and reward-token balances (raw).
    Only used for differencing, never persisted.
    """

    native: int
    token: int

    model_config = ConfigDict(frozen=True)


class ReserveSnapshot(BaseModel):
    """
    Pair reserves ordered by the caller's token order, NOT the pair's
    internal token0/token1 order: `reserve_a` always belongs to token_a.
    """

    token_a: str
    token_b: str
    reserve_a: int
    reserve_b: int

    model_config = ConfigDict(frozen=True)


class PendingTransaction(BaseModel):
    """
    A broadcast transaction that has not been confirmed yet.
    Consumed by TxService.wait(), never retried automatically.
    """

    tx_hash: str
    description: str
    confirmations: int = Field(1, ge=1)

    model_config = ConfigDict(frozen=True)


class LiquidityAdded(BaseModel):
    """
    Outcome of an add-liquidity call: the LP amount read from the mint
    notification and the transaction that produced it.
    """

    lp_amount: int
    tx: PendingTransaction


class PoolInfoOut(BaseModel):
    pair: str
    lp_symbol: str
    token_a: Erc20Meta
    token_b: Erc20Meta
    reserve_a: Decimal
    reserve_b: Decimal
    price_a_in_b: Decimal
