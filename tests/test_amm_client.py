from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest
from web3 import Web3

from adapters.chain.uniswap_v2 import ZERO_ADDRESS
from core.domain.schemas.onchain_types import PendingTransaction
from core.services.amm_client import GAS_LIMIT_ADD_LIQUIDITY, GAS_LIMIT_SWAP_TOKEN_ETH, AmmClient
from core.services.exceptions import (
    LiquidityConfirmationTimeoutError,
    PairNotFoundError,
    TransactionRevertedError,
)

ME = Web3.to_checksum_address("0x1234567890123456789012345678901234567890")
TOKEN = Web3.to_checksum_address("0x3234567890123456789012345678901234567890")
WETH = Web3.to_checksum_address("0x4234567890123456789012345678901234567890")
PAIR = Web3.to_checksum_address("0x5234567890123456789012345678901234567890")
FACTORY = Web3.to_checksum_address("0x6234567890123456789012345678901234567890")
ROUTER = Web3.to_checksum_address("0x7234567890123456789012345678901234567890")


@pytest.fixture
def mock_factory():
    with patch("core.services.amm_client.FactoryV2Adapter") as mock:
        mock.return_value.get_pair.return_value = PAIR
        yield mock.return_value


@pytest.fixture
def mock_pair():
    with patch("core.services.amm_client.PairV2Adapter") as mock:
        pair = mock.return_value
        pair.address = PAIR
        yield pair


@pytest.fixture
def tx():
    tx = MagicMock()
    tx.sender_address.return_value = ME
    return tx


@pytest.fixture
def client(mock_factory, mock_pair, tx):
    w3 = MagicMock()
    w3.eth.block_number = 500
    router = MagicMock()
    router.address = ROUTER
    router.weth.return_value = WETH.lower()
    router.factory.return_value = FACTORY
    return AmmClient(w3, router, tx, lp_mint_timeout_sec=0, poll_interval_sec=0)


def test_base_asset_is_checksummed_and_cached(client):
    assert client.resolve_base_asset() == WETH
    assert client.resolve_base_asset() == WETH
    client.router.weth.assert_called_once()


def test_pair_is_cached_in_both_orders(client, mock_factory):
    a = client.get_pair(TOKEN, WETH)
    b = client.get_pair(WETH, TOKEN)
    assert a is b
    mock_factory.get_pair.assert_called_once_with(TOKEN, WETH)


def test_pair_not_found(client, mock_factory):
    mock_factory.get_pair.return_value = ZERO_ADDRESS
    with pytest.raises(PairNotFoundError):
        client.get_pair(TOKEN, WETH)


class TestOrderedReserves:
    def test_token0_is_token_a(self, client, mock_pair):
        mock_pair.token0.return_value = TOKEN.lower()
        mock_pair.get_reserves.return_value = (1000, 10)

        reserves = client.get_ordered_reserves(TOKEN, WETH)

        assert (reserves.reserve_a, reserves.reserve_b) == (1000, 10)

    def test_token0_is_token_b(self, client, mock_pair):
        mock_pair.token0.return_value = WETH
        mock_pair.get_reserves.return_value = (10, 1000)

        reserves = client.get_ordered_reserves(TOKEN, WETH)

        assert reserves.reserve_a == 1000
        assert reserves.reserve_b == 10

    def test_spot_price(self, client, mock_pair):
        mock_pair.token0.return_value = WETH
        mock_pair.get_reserves.return_value = (10 * 10**18, 1000 * 10**18)

        assert client.spot_price(TOKEN, WETH) == Decimal("0.01")

    def test_spot_price_empty_pool(self, client, mock_pair):
        mock_pair.token0.return_value = TOKEN
        mock_pair.get_reserves.return_value = (0, 0)

        with pytest.raises(PairNotFoundError, match="no liquidity"):
            client.spot_price(TOKEN, WETH)


class TestSell:
    @pytest.mark.parametrize(
        "fee_on_transfer,desc",
        [
            (False, "UniswapV2Router02::swapExactTokensForETH"),
            (True, "UniswapV2Router02::swapExactTokensForETHSupportingFeeOnTransferTokens"),
        ],
    )
    def test_path_and_variant(self, client, tx, fee_on_transfer, desc):
        client.sell(TOKEN, 500, 3, supports_fee_on_transfer=fee_on_transfer)

        args, kwargs = client.router.fn_swap_exact_tokens_for_eth.call_args
        assert args[0] == 500
        assert args[1] == 3
        assert args[2] == [TOKEN, WETH]
        assert args[3] == ME
        assert kwargs["supporting_fee_on_transfer"] is fee_on_transfer

        tx.submit.assert_called_once_with(
            client.router.fn_swap_exact_tokens_for_eth.return_value,
            description=desc,
            gas_limit=GAS_LIMIT_SWAP_TOKEN_ETH,
        )


class TestAddLiquidity:
    def _transfer_log(self, value, tx_hash):
        return {"args": {"from": ZERO_ADDRESS, "to": ME, "value": value}, "transactionHash": tx_hash}

    def test_lp_amount_from_mint_event(self, client, tx, mock_pair):
        pending = PendingTransaction(tx_hash="0xbb", description="UniswapV2Router02::addLiquidityETH")
        tx.submit.return_value = pending
        event = mock_pair.contract.events.Transfer.return_value
        event.get_logs.return_value = [
            self._transfer_log(5, "0xaa"),
            self._transfer_log(777, "0xBB"),
        ]

        out = client.add_liquidity(TOKEN, 10_000, 2_000, 0.01)

        assert out.lp_amount == 777
        assert out.tx == pending
        event.get_logs.assert_called_with(argument_filters={"to": ME}, from_block=500)

        args, _ = client.router.fn_add_liquidity_eth.call_args
        assert args[:4] == (TOKEN, 10_000, 9_900, 1_980)
        assert args[4] == ME
        _, kwargs = tx.submit.call_args
        assert kwargs["value"] == 2_000
        assert kwargs["gas_limit"] == GAS_LIMIT_ADD_LIQUIDITY
        tx.wait.assert_called_once_with(pending)

    def test_no_mint_event_is_a_confirmation_timeout(self, client, tx, mock_pair):
        tx.submit.return_value = PendingTransaction(tx_hash="0xbb", description="add")
        mock_pair.contract.events.Transfer.return_value.get_logs.return_value = []

        with pytest.raises(LiquidityConfirmationTimeoutError) as ei:
            client.add_liquidity(TOKEN, 10_000, 2_000, 0.01)

        assert ei.value.tx_hash == "0xbb"
        assert not isinstance(ei.value, TransactionRevertedError)

    def test_revert_is_not_a_timeout(self, client, tx, mock_pair):
        tx.submit.return_value = PendingTransaction(tx_hash="0xbb", description="add")
        tx.wait.side_effect = TransactionRevertedError(tx_hash="0xbb", description="add")

        with pytest.raises(TransactionRevertedError):
            client.add_liquidity(TOKEN, 10_000, 2_000, 0.01)

        mock_pair.contract.events.Transfer.return_value.get_logs.assert_not_called()


def test_pool_info(client, mock_pair):
    mock_pair.token0.return_value = WETH
    mock_pair.token1.return_value = TOKEN
    mock_pair.get_reserves.return_value = (10 * 10**18, 1000 * 10**18)
    mock_pair.symbol.return_value = "Cake-LP"

    token, weth = MagicMock(address=TOKEN), MagicMock(address=WETH)
    token.symbol.return_value, token.decimals.return_value = "TKN", 18
    weth.symbol.return_value, weth.decimals.return_value = "WBNB", 18
    by_address = {TOKEN: token, WETH: weth}

    with patch("core.services.amm_client.Erc20Adapter", side_effect=lambda w3, addr: by_address[addr]):
        info = client.pool_info(TOKEN, WETH)

    assert info.pair == PAIR
    assert info.lp_symbol == "[WBNB]-[TKN]_Cake-LP"
    assert info.token_a.symbol == "TKN"
    assert info.reserve_a == Decimal(1000)
    assert info.reserve_b == Decimal(10)
    assert info.price_a_in_b == Decimal("0.01")
