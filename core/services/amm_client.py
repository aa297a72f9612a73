from __future__ import annotations

import logging
import time
from decimal import Decimal
from typing import Any, Dict, Optional, Tuple

from web3 import Web3

from adapters.chain.erc20 import Erc20Adapter
from adapters.chain.uniswap_v2 import ZERO_ADDRESS, FactoryV2Adapter, PairV2Adapter, RouterV2Adapter
from core.domain.schemas.onchain_types import (
    Erc20Meta,
    LiquidityAdded,
    PendingTransaction,
    PoolInfoOut,
    ReserveSnapshot,
)
from core.services.amount_math import apply_bps, format_units, ratio, slippage_factor_bps
from core.services.event_watcher import LogSubscription
from core.services.exceptions import LiquidityConfirmationTimeoutError, PairNotFoundError
from core.services.tx_service import TxService
from core.services.utils import same_address

logger = logging.getLogger(__name__)

GAS_LIMIT_SWAP_TOKEN_ETH = 200_000
GAS_LIMIT_ADD_LIQUIDITY = 250_000
DEADLINE_SEC = 100
LP_MINT_TIMEOUT_SEC = 20


class AmmClient:
    """
    Access to one Uniswap-V2-style deployment: one router, its factory and
    any number of pairs.

    Mutating calls are submitted from the TxService wallet.
    """

    def __init__(
        self,
        w3: Web3,
        router: RouterV2Adapter,
        tx: TxService,
        *,
        lp_mint_timeout_sec: float = LP_MINT_TIMEOUT_SEC,
        poll_interval_sec: float = 1.0,
    ):
        self.w3 = w3
        self.router = router
        self.tx = tx
        self.lp_mint_timeout_sec = float(lp_mint_timeout_sec)
        self.poll_interval_sec = float(poll_interval_sec)

        self._weth: Optional[str] = None
        self._factory: Optional[FactoryV2Adapter] = None
        self._pairs: Dict[Tuple[str, str], PairV2Adapter] = {}

    # ---------- wiring ----------

    def resolve_base_asset(self) -> str:
        """Wrapped native asset (router.WETH()), cached."""
        if self._weth is None:
            self._weth = Web3.to_checksum_address(self.router.weth())
        return self._weth

    def factory(self) -> FactoryV2Adapter:
        if self._factory is None:
            self._factory = FactoryV2Adapter(self.w3, self.router.factory())
        return self._factory

    def get_pair(self, token_a: str, token_b: str) -> PairV2Adapter:
        key = tuple(sorted((token_a.lower(), token_b.lower())))
        hit = self._pairs.get(key)
        if hit is not None:
            return hit

        addr = self.factory().get_pair(token_a, token_b)
        if not addr or same_address(addr, ZERO_ADDRESS):
            raise PairNotFoundError(token_a, token_b)

        pair = PairV2Adapter(self.w3, addr)
        self._pairs[key] = pair
        return pair

    # ---------- prices ----------

    def get_ordered_reserves(self, token_a: str, token_b: str) -> ReserveSnapshot:
        """
        Reserves re-ordered so that `reserve_a` belongs to token_a whatever
        the pair's internal token0/token1 order is.
        """
        pair = self.get_pair(token_a, token_b)
        r0, r1 = pair.get_reserves()
        if same_address(pair.token0(), token_a):
            reserve_a, reserve_b = r0, r1
        else:
            reserve_a, reserve_b = r1, r0
        return ReserveSnapshot(token_a=token_a, token_b=token_b, reserve_a=reserve_a, reserve_b=reserve_b)

    def spot_price(self, token_a: str, token_b: str) -> Decimal:
        """
        Units of token_b per unit of token_a: reserve_b / reserve_a.
        """
        reserves = self.get_ordered_reserves(token_a, token_b)
        if reserves.reserve_a == 0:
            raise PairNotFoundError(token_a, token_b, "pair has no liquidity")
        return ratio(reserves.reserve_b, reserves.reserve_a)

    # ---------- writes ----------

    @staticmethod
    def _deadline() -> int:
        return int(time.time()) + DEADLINE_SEC

    def sell(
        self,
        token: str,
        amount: int,
        min_out: int,
        supports_fee_on_transfer: bool = False,
    ) -> PendingTransaction:
        """
        Sell `amount` of `token` for the native asset. Returns the pending
        transaction: balances are only meaningful after TxService.wait().
        """
        weth = self.resolve_base_asset()
        fn = self.router.fn_swap_exact_tokens_for_eth(
            amount,
            min_out,
            [token, weth],
            self.tx.sender_address(),
            self._deadline(),
            supporting_fee_on_transfer=supports_fee_on_transfer,
        )
        if supports_fee_on_transfer:
            desc = "UniswapV2Router02::swapExactTokensForETHSupportingFeeOnTransferTokens"
        else:
            desc = "UniswapV2Router02::swapExactTokensForETH"

        logger.info("Selling %s tokens for at least %s native", format_units(amount), format_units(min_out))
        return self.tx.submit(fn, description=desc, gas_limit=GAS_LIMIT_SWAP_TOKEN_ETH)

    def add_liquidity(
        self,
        token: str,
        token_amount: int,
        ether_amount: int,
        slippage_tolerance: float,
    ) -> LiquidityAdded:
        """
        addLiquidityETH, then read the minted LP amount from the pair's
        Transfer event addressed to the wallet (not from a balance delta).

        Raises:
            LiquidityConfirmationTimeoutError: no mint event within
                lp_mint_timeout_sec of registering interest. The add may
                still have succeeded.
        """
        weth = self.resolve_base_asset()
        pair = self.get_pair(token, weth)
        recipient = self.tx.sender_address()

        factor = slippage_factor_bps(slippage_tolerance)
        token_min = apply_bps(token_amount, factor)
        eth_min = apply_bps(ether_amount, factor)

        logger.info(
            "Adding liquidity comprised of: (%s token, %s native), min (%s, %s)",
            format_units(token_amount),
            format_units(ether_amount),
            format_units(token_min),
            format_units(eth_min),
        )

        fn = self.router.fn_add_liquidity_eth(
            token,
            token_amount,
            token_min,
            eth_min,
            recipient,
            self._deadline(),
        )

        sub = LogSubscription(
            self.w3,
            pair.contract.events.Transfer(),
            argument_filters={"to": recipient},
            poll_interval_sec=self.poll_interval_sec,
        )
        with sub:
            pending = self.tx.submit(
                fn,
                description="UniswapV2Router02::addLiquidityETH",
                value=ether_amount,
                gas_limit=GAS_LIMIT_ADD_LIQUIDITY,
            )
            self.tx.wait(pending)
            try:
                log = sub.wait(
                    self.lp_mint_timeout_sec,
                    predicate=lambda lg: _is_mint_for(lg, recipient, pending.tx_hash),
                )
            except TimeoutError as exc:
                raise LiquidityConfirmationTimeoutError(
                    tx_hash=pending.tx_hash,
                    timeout_sec=self.lp_mint_timeout_sec,
                ) from exc

        lp_amount = int(log["args"]["value"])
        logger.info("Received %s LP tokens of pair %s", format_units(lp_amount), pair.address)
        return LiquidityAdded(lp_amount=lp_amount, tx=pending)

    # ---------- reporting ----------

    def pair_symbol(self, pair: PairV2Adapter) -> str:
        """[SYM0]-[SYM1]_LPSYM, in the pair's own token0/token1 order."""
        sym0 = Erc20Adapter(self.w3, pair.token0()).symbol()
        sym1 = Erc20Adapter(self.w3, pair.token1()).symbol()
        return f"[{sym0}]-[{sym1}]_{pair.symbol()}"

    def pool_info(self, token_a: str, token_b: str) -> PoolInfoOut:
        pair = self.get_pair(token_a, token_b)
        ta = Erc20Adapter(self.w3, token_a)
        tb = Erc20Adapter(self.w3, token_b)
        meta_a = Erc20Meta(address=ta.address, symbol=ta.symbol(), decimals=ta.decimals())
        meta_b = Erc20Meta(address=tb.address, symbol=tb.symbol(), decimals=tb.decimals())

        reserves = self.get_ordered_reserves(token_a, token_b)
        reserve_a = format_units(reserves.reserve_a, meta_a.decimals)
        reserve_b = format_units(reserves.reserve_b, meta_b.decimals)
        price = ratio(reserve_b, reserve_a)

        info = PoolInfoOut(
            pair=pair.address,
            lp_symbol=self.pair_symbol(pair),
            token_a=meta_a,
            token_b=meta_b,
            reserve_a=reserve_a,
            reserve_b=reserve_b,
            price_a_in_b=price,
        )
        logger.info("Pool info: %s address=%s", info.lp_symbol, info.pair)
        logger.info("    %s reserve: %s", meta_a.symbol, reserve_a)
        logger.info("    %s reserve: %s", meta_b.symbol, reserve_b)
        logger.info("    %s price:   %s %s", meta_a.symbol, price, meta_b.symbol)
        return info


def _is_mint_for(log: Any, recipient: str, tx_hash: str) -> bool:
    args = log["args"]
    if not same_address(args["to"], recipient):
        return False
    log_tx = log.get("transactionHash") if hasattr(log, "get") else None
    if log_tx is None:
        return True
    if not isinstance(log_tx, str):
        log_tx = Web3.to_hex(log_tx)
    return log_tx.lower() == tx_hash.lower()
