from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from web3 import Web3

from adapters.chain.abi_gateway import AbiGateway
from adapters.chain.erc20 import Erc20Adapter
from adapters.chain.farm import FarmAdapter
from adapters.chain.uniswap_v2 import PairV2Adapter, RouterV2Adapter
from adapters.external.database.compound_run_repository_mongodb import CompoundRunRepositoryMongoDB
from adapters.external.database.mongo_client import is_mongo_configured
from config import get_settings
from core.domain.entities.compound_run_entity import CompoundRunEntity
from core.domain.enums.compound_enums import CompoundStep, RunStatus
from core.domain.repositories.compound_run_repository_interface import CompoundRunRepository
from core.domain.schemas.compound_config import CompoundConfigFile, CompoundContext
from core.domain.schemas.onchain_types import BalanceSnapshot, PendingTransaction, PoolInfoOut
from core.services.amm_client import AmmClient
from core.services.amount_math import EPSILON, apply_bps, format_units, min_output_raw
from core.services.exceptions import SwapFailedError
from core.services.tx_service import TxService
from core.services.web3_cache import assert_chain_id, get_web3

logger = logging.getLogger(__name__)

GAS_LIMIT_FARM = 250_000


@dataclass
class AutoCompoundUseCase:
    """
    One harvest -> swap -> add liquidity -> stake cycle for a single pool.

    Steps run strictly in order and each one waits for the previous
    transaction to be confirmed before reading balances:

        INIT           check chain id, resolve token/farm/router/pair
        HARVEST        farm.withdraw(pid, 0), claimed = balance delta
        APPROVE        router allowance = whole post-claim token balance
        SWAP           sell balance * swap_fraction for native, bounded by spot price and slippage
        SKIP_CHECK     token balance <= EPSILON -> done, nothing left to compound
        ADD_LIQUIDITY  addLiquidityETH, LP amount from the mint event
        STAKE_APPROVE  farm allowance = minted LP
        STAKE          farm.deposit(pid, lp)

    Any failure aborts the run where it stands. Nothing is retried or rolled
    back; the submitted transactions are kept in the run record.
    """

    ctx: CompoundContext
    w3: Web3
    tx: TxService
    gateway: AbiGateway
    run_repo: Optional[CompoundRunRepository] = None
    lp_mint_timeout_sec: float = 20
    poll_interval_sec: float = 1.0

    token: Optional[Erc20Adapter] = field(default=None, init=False)
    farm: Optional[FarmAdapter] = field(default=None, init=False)
    amm: Optional[AmmClient] = field(default=None, init=False)
    pair: Optional[PairV2Adapter] = field(default=None, init=False)
    weth: str = field(default="", init=False)
    lp_symbol: str = field(default="", init=False)

    @classmethod
    def from_settings(
        cls,
        *,
        pool_name: Optional[str] = None,
        pool_index: Optional[int] = None,
        config_path: Optional[str] = None,
    ) -> "AutoCompoundUseCase":
        s = get_settings()
        cfg = CompoundConfigFile.load(config_path or s.AUTO_COMPOUND_CONFIG)
        ctx = CompoundContext.build(
            cfg,
            pool_name=pool_name,
            pool_index=pool_index,
            scan_api_keys=s.SCAN_API_KEYS,
        )

        w3 = get_web3(ctx.network.url)
        tx = TxService(
            w3,
            s.PRIVATE_KEY,
            confirmations=s.TX_CONFIRMATIONS,
            timeout_sec=s.TX_TIMEOUT_SEC,
        )
        gateway = AbiGateway(
            cache_dir=Path(s.ABI_CACHE_DIR),
            scan_api=ctx.network.scan_api,
            api_key=ctx.scan_api_key,
            network_name=ctx.network.name,
            deployments_dir=Path(s.LOCALHOST_DEPLOYMENTS_DIR),
        )

        run_repo: Optional[CompoundRunRepository] = None
        if is_mongo_configured():
            run_repo = CompoundRunRepositoryMongoDB()
            run_repo.ensure_indexes()

        return cls(
            ctx=ctx,
            w3=w3,
            tx=tx,
            gateway=gateway,
            run_repo=run_repo,
            lp_mint_timeout_sec=s.LP_MINT_TIMEOUT_SEC,
        )

    # ---------- helpers ----------

    @property
    def wallet(self) -> str:
        return self.tx.sender_address()

    def _snapshot(self) -> BalanceSnapshot:
        return BalanceSnapshot(
            native=int(self.w3.eth.get_balance(self.wallet)),
            token=self.token.balance_of(self.wallet),
        )

    def _log_balance(self, snap: BalanceSnapshot) -> None:
        logger.info("Wallet %s has:", self.wallet)
        logger.info("    %s %s", format_units(snap.native), self.ctx.network.symbol)
        logger.info("    %s %s", format_units(snap.token), self.token.symbol())

    def _save(self, run: CompoundRunEntity) -> None:
        if self.run_repo is None:
            return
        if run.id:
            self.run_repo.update(run)
        else:
            self.run_repo.insert(run)

    def _submit_and_wait(self, run: CompoundRunEntity, step: CompoundStep, pending: PendingTransaction) -> dict:
        run.record_tx(step, pending.description, pending.tx_hash)
        self._save(run)
        return self.tx.wait(pending)

    def _enter(self, run: CompoundRunEntity, step: CompoundStep) -> None:
        run.current_step = step
        logger.info("[%s] %s", self.ctx.pool.name, step.value)

    # ---------- steps ----------

    def _init(self, run: CompoundRunEntity) -> PoolInfoOut:
        self._enter(run, CompoundStep.INIT)
        pool = self.ctx.pool

        logger.info("Connecting to network: %s", pool.network)
        assert_chain_id(self.w3, self.ctx.network.chain_id)

        self.token = Erc20Adapter.from_handle(self.w3, self.gateway.resolve(pool.token))
        self.farm = FarmAdapter(self.w3, self.gateway.resolve(pool.farm))

        router = RouterV2Adapter(self.w3, self.ctx.dex.router)
        self.amm = AmmClient(
            self.w3,
            router,
            self.tx,
            lp_mint_timeout_sec=self.lp_mint_timeout_sec,
            poll_interval_sec=self.poll_interval_sec,
        )
        self.weth = self.amm.resolve_base_asset()
        self.pair = self.amm.get_pair(self.token.address, self.weth)

        logger.info("W%s: %s", self.ctx.network.symbol, self.weth)
        info = self.amm.pool_info(self.token.address, self.weth)
        self.lp_symbol = info.lp_symbol
        logger.info(
            "swap fraction=%d bps, liquidity ether fraction=%d bps, slippage=%s",
            self.ctx.params.swap_fraction_bps,
            self.ctx.params.liquidity_ether_fraction_bps,
            self.ctx.params.slippage_tolerance,
        )
        return info

    def _harvest(self, run: CompoundRunEntity) -> BalanceSnapshot:
        self._enter(run, CompoundStep.HARVEST)
        pre = self._snapshot()
        run.initial_balances = pre
        self._log_balance(pre)

        logger.info("Harvesting rewards")
        pending = self.tx.submit(
            self.farm.fn_harvest(self.ctx.pool.pid),
            description="farm.withdraw",
            gas_limit=GAS_LIMIT_FARM,
        )
        self._submit_and_wait(run, CompoundStep.HARVEST, pending)

        post = self._snapshot()
        claimed = post.token - pre.token
        run.claimed_tokens = claimed
        if claimed < 0:
            logger.warning(
                "Reward token balance decreased across harvest (%s %s); continuing with the absolute balance",
                format_units(claimed),
                self.token.symbol(),
            )
        else:
            logger.info("Received %s %s", format_units(claimed), self.token.symbol())
        self._log_balance(post)
        return post

    def _approve_router(self, run: CompoundRunEntity, post_claim: BalanceSnapshot) -> None:
        self._enter(run, CompoundStep.APPROVE)
        # the router pulls tokens twice: in the swap and in addLiquidityETH
        pending = self.tx.submit(
            self.token.fn_approve(self.amm.router.address, post_claim.token),
            description=f"{self.token.symbol()}.approve",
        )
        self._submit_and_wait(run, CompoundStep.APPROVE, pending)

    def _swap(self, run: CompoundRunEntity, post_claim: BalanceSnapshot) -> BalanceSnapshot:
        self._enter(run, CompoundStep.SWAP)
        params = self.ctx.params

        tokens_to_swap = apply_bps(post_claim.token, params.swap_fraction_bps)
        price = self.amm.spot_price(self.token.address, self.weth)
        amount_out_min = min_output_raw(tokens_to_swap, price, params.slippage_tolerance)
        run.tokens_swapped = tokens_to_swap
        run.amount_out_min = amount_out_min

        logger.info("%s price: %s %s", self.token.symbol(), price, self.ctx.network.symbol)
        logger.info(
            "Swapping %s %s for at least %s %s",
            format_units(tokens_to_swap),
            self.token.symbol(),
            format_units(amount_out_min),
            self.ctx.network.symbol,
        )

        pending = self.amm.sell(
            self.token.address,
            tokens_to_swap,
            amount_out_min,
            supports_fee_on_transfer=self.ctx.pool.has_fees,
        )
        self._submit_and_wait(run, CompoundStep.SWAP, pending)

        post_swap = self._snapshot()
        if post_swap.native < post_claim.native:
            raise SwapFailedError(post_claim.native, post_swap.native, tx_hash=pending.tx_hash)

        run.native_received = post_swap.native - post_claim.native
        logger.info("Received %s %s", format_units(run.native_received), self.ctx.network.symbol)
        self._log_balance(post_swap)
        return post_swap

    def _add_liquidity(self, run: CompoundRunEntity, post_swap: BalanceSnapshot) -> int:
        self._enter(run, CompoundStep.ADD_LIQUIDITY)
        eth_amount = apply_bps(run.native_received, self.ctx.params.liquidity_ether_fraction_bps)
        token_amount = post_swap.token - EPSILON
        run.native_liquidity = eth_amount
        run.token_liquidity = token_amount

        added = self.amm.add_liquidity(
            self.token.address,
            token_amount,
            eth_amount,
            self.ctx.params.slippage_tolerance,
        )
        run.record_tx(CompoundStep.ADD_LIQUIDITY, added.tx.description, added.tx.tx_hash)
        run.lp_minted = added.lp_amount
        logger.info("Received %s %s", format_units(added.lp_amount), self.lp_symbol)
        self._save(run)
        return added.lp_amount

    def _stake(self, run: CompoundRunEntity, lp_amount: int) -> None:
        self._enter(run, CompoundStep.STAKE_APPROVE)
        logger.info("Staking %s LP", format_units(lp_amount))
        pending = self.tx.submit(
            self.pair.fn_approve(self.farm.address, lp_amount),
            description="LPToken.approve",
        )
        self._submit_and_wait(run, CompoundStep.STAKE_APPROVE, pending)

        self._enter(run, CompoundStep.STAKE)
        pending = self.tx.submit(
            self.farm.fn_deposit(self.ctx.pool.pid, lp_amount),
            description="farm.deposit",
            gas_limit=GAS_LIMIT_FARM,
        )
        self._submit_and_wait(run, CompoundStep.STAKE, pending)

    def _complete(self, run: CompoundRunEntity, *, compounded: bool) -> CompoundRunEntity:
        run.final_balances = self._snapshot()
        run.compounded = compounded
        run.status = RunStatus.COMPLETED
        self._log_balance(run.final_balances)
        self._save(run)
        return run

    def _abort(self, run: CompoundRunEntity, exc: Exception) -> None:
        run.status = RunStatus.ABORTED
        run.error_kind = getattr(exc, "kind", "unexpected")
        run.error = str(exc)
        run.error_tx_hash = getattr(exc, "tx_hash", None)
        logger.error(
            "[%s] run aborted at %s (%s): %s",
            self.ctx.pool.name,
            run.current_step,
            run.error_kind,
            exc,
        )
        self._save(run)

    # ---------- public API ----------

    def run(self) -> CompoundRunEntity:
        """
        Execute the whole cycle once.

        Returns the run record with status COMPLETED (compounded or not).

        Raises:
            AutoCompoundError subclasses (and RPC errors) unchanged, after the
            run record has been marked ABORTED.
        """
        pool = self.ctx.pool
        logger.info("Pool: %s", pool.name)

        run = CompoundRunEntity(
            pool=pool.name,
            network=pool.network,
            dex=pool.dex,
            wallet=self.wallet,
            params=self.ctx.params,
        )
        self._save(run)

        try:
            self._init(run)
            post_claim = self._harvest(run)
            self._approve_router(run, post_claim)
            post_swap = self._swap(run, post_claim)

            self._enter(run, CompoundStep.SKIP_CHECK)
            if post_swap.token <= EPSILON:
                logger.info("Nothing left to compound")
                return self._complete(run, compounded=False)

            lp_amount = self._add_liquidity(run, post_swap)
            self._stake(run, lp_amount)
            return self._complete(run, compounded=True)
        except Exception as exc:
            self._abort(run, exc)
            raise

    def pool_info(self) -> PoolInfoOut:
        """Reserves and price of the pool's token/WETH pair."""
        if self.amm is None:
            run = CompoundRunEntity(pool=self.ctx.pool.name, network=self.ctx.pool.network)
            return self._init(run)
        return self.amm.pool_info(self.token.address, self.weth)
