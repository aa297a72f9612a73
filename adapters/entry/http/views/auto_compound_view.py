from typing import Callable, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from adapters.entry.http.dtos.auto_compound_dtos import (
    CompoundRunListOut,
    CompoundRunOut,
)
from adapters.external.database.compound_run_repository_mongodb import CompoundRunRepositoryMongoDB
from adapters.external.database.mongo_client import is_mongo_configured
from core.domain.repositories.compound_run_repository_interface import CompoundRunRepository
from core.domain.schemas.onchain_types import PoolInfoOut
from core.services.exceptions import (
    AutoCompoundError,
    ConfigurationError,
    LiquidityConfirmationTimeoutError,
    TransactionRevertedError,
)
from core.use_cases.auto_compound_usecase import AutoCompoundUseCase

router = APIRouter(prefix="/auto-compound", tags=["auto-compound"])


def get_use_case_factory() -> Callable[..., AutoCompoundUseCase]:
    return AutoCompoundUseCase.from_settings


def get_run_repository() -> Optional[CompoundRunRepository]:
    if not is_mongo_configured():
        return None
    return CompoundRunRepositoryMongoDB()


def _to_http(exc: AutoCompoundError, action: str) -> HTTPException:
    if isinstance(exc, ConfigurationError):
        return HTTPException(status_code=400, detail=str(exc))
    if isinstance(exc, LiquidityConfirmationTimeoutError):
        return HTTPException(
            status_code=504,
            detail={
                "error": exc.kind,
                "tx": exc.tx_hash,
                "detail": str(exc),
                "hint": "The liquidity add may have been mined. Check the LP balance and reconcile manually.",
            },
        )
    if isinstance(exc, TransactionRevertedError):
        return HTTPException(
            status_code=500,
            detail={
                "error": "reverted_on_chain",
                "tx": exc.tx_hash,
                "step": exc.description,
                "receipt": exc.receipt,
                "hint": "Possibly require() failed or out-of-gas.",
            },
        )
    return HTTPException(
        status_code=500,
        detail={
            "error": exc.kind,
            "tx": getattr(exc, "tx_hash", None),
            "detail": f"Failed to {action}: {exc}",
        },
    )


@router.post(
    "/{pool}/run",
    response_model=CompoundRunOut,
    summary="Run one harvest -> swap -> add liquidity -> stake cycle for a configured pool",
)
def run_compound(
    pool: str,
    factory: Callable[..., AutoCompoundUseCase] = Depends(get_use_case_factory),
):
    try:
        use_case = factory(pool_name=pool)
        run = use_case.run()
    except AutoCompoundError as exc:
        raise _to_http(exc, "compound") from exc
    return CompoundRunOut.from_entity(run)


@router.get(
    "/{pool}/runs",
    response_model=CompoundRunListOut,
    summary="Most recent compounding runs of a pool (requires MONGO_URI)",
)
def list_runs(
    pool: str,
    limit: int = Query(20, ge=1, le=500),
    repo: Optional[CompoundRunRepository] = Depends(get_run_repository),
):
    if repo is None:
        raise HTTPException(status_code=503, detail="Run history is disabled (MONGO_URI not set)")
    runs = repo.list_recent(pool=pool, limit=limit)
    return CompoundRunListOut(pool=pool, runs=[CompoundRunOut.from_entity(r) for r in runs])


@router.get(
    "/{pool}/pool-info",
    response_model=PoolInfoOut,
    summary="Reserves and spot price of the pool's token/wrapped-native pair",
)
def pool_info(
    pool: str,
    factory: Callable[..., AutoCompoundUseCase] = Depends(get_use_case_factory),
):
    try:
        return factory(pool_name=pool).pool_info()
    except AutoCompoundError as exc:
        raise _to_http(exc, "read pool info") from exc
