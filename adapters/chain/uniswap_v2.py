from typing import Optional, Sequence, Tuple

from web3 import Web3
from web3.contract import Contract
from web3.contract.contract import ContractFunction

from adapters.chain.erc20 import ABI_ERC20

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


ABI_ROUTER_V2 = [
    {"name": "factory", "inputs": [], "outputs": [{"type": "address"}], "stateMutability": "view", "type": "function"},
    {"name": "WETH", "inputs": [], "outputs": [{"type": "address"}], "stateMutability": "view", "type": "function"},
    {"name": "swapExactTokensForETH", "inputs": [
        {"type": "uint256", "name": "amountIn"},
        {"type": "uint256", "name": "amountOutMin"},
        {"type": "address[]", "name": "path"},
        {"type": "address", "name": "to"},
        {"type": "uint256", "name": "deadline"},
    ], "outputs": [{"type": "uint256[]", "name": "amounts"}], "stateMutability": "nonpayable", "type": "function"},
    {"name": "swapExactTokensForETHSupportingFeeOnTransferTokens", "inputs": [
        {"type": "uint256", "name": "amountIn"},
        {"type": "uint256", "name": "amountOutMin"},
        {"type": "address[]", "name": "path"},
        {"type": "address", "name": "to"},
        {"type": "uint256", "name": "deadline"},
    ], "outputs": [], "stateMutability": "nonpayable", "type": "function"},
    {"name": "addLiquidityETH", "inputs": [
        {"type": "address", "name": "token"},
        {"type": "uint256", "name": "amountTokenDesired"},
        {"type": "uint256", "name": "amountTokenMin"},
        {"type": "uint256", "name": "amountETHMin"},
        {"type": "address", "name": "to"},
        {"type": "uint256", "name": "deadline"},
    ], "outputs": [
        {"type": "uint256", "name": "amountToken"},
        {"type": "uint256", "name": "amountETH"},
        {"type": "uint256", "name": "liquidity"},
    ], "stateMutability": "payable", "type": "function"},
]

ABI_FACTORY_V2 = [
    {"name": "getPair", "inputs": [{"type": "address", "name": "tokenA"}, {"type": "address", "name": "tokenB"}], "outputs": [{"type": "address", "name": "pair"}], "stateMutability": "view", "type": "function"},
]

ABI_PAIR_V2 = ABI_ERC20 + [
    {"name": "token0", "inputs": [], "outputs": [{"type": "address"}], "stateMutability": "view", "type": "function"},
    {"name": "token1", "inputs": [], "outputs": [{"type": "address"}], "stateMutability": "view", "type": "function"},
    {"name": "getReserves", "inputs": [], "outputs": [
        {"type": "uint112", "name": "reserve0"},
        {"type": "uint112", "name": "reserve1"},
        {"type": "uint32", "name": "blockTimestampLast"},
    ], "stateMutability": "view", "type": "function"},
    {"name": "Transfer", "type": "event", "anonymous": False, "inputs": [
        {"indexed": True, "type": "address", "name": "from"},
        {"indexed": True, "type": "address", "name": "to"},
        {"indexed": False, "type": "uint256", "name": "value"},
    ]},
]


class RouterV2Adapter:
    """UniswapV2Router02-compatible router (Pancake, SpookySwap, ...)."""

    def __init__(self, w3: Web3, address: str):
        if not address:
            raise RuntimeError("RouterV2Adapter: address not configured")
        self.w3 = w3
        self.address = Web3.to_checksum_address(address)
        self.contract: Contract = w3.eth.contract(address=self.address, abi=ABI_ROUTER_V2)

    # ---------------- views ----------------

    def factory(self) -> str:
        return self.contract.functions.factory().call()

    def weth(self) -> str:
        return self.contract.functions.WETH().call()

    # ---------------- fn builders (for TxService.submit) ----------------

    def fn_swap_exact_tokens_for_eth(
        self,
        amount_in: int,
        amount_out_min: int,
        path: Sequence[str],
        to: str,
        deadline: int,
        *,
        supporting_fee_on_transfer: bool = False,
    ) -> ContractFunction:
        args = (
            int(amount_in),
            int(amount_out_min),
            [Web3.to_checksum_address(a) for a in path],
            Web3.to_checksum_address(to),
            int(deadline),
        )
        if supporting_fee_on_transfer:
            return self.contract.functions.swapExactTokensForETHSupportingFeeOnTransferTokens(*args)
        return self.contract.functions.swapExactTokensForETH(*args)

    def fn_add_liquidity_eth(
        self,
        token: str,
        amount_token_desired: int,
        amount_token_min: int,
        amount_eth_min: int,
        to: str,
        deadline: int,
    ) -> ContractFunction:
        return self.contract.functions.addLiquidityETH(
            Web3.to_checksum_address(token),
            int(amount_token_desired),
            int(amount_token_min),
            int(amount_eth_min),
            Web3.to_checksum_address(to),
            int(deadline),
        )


class FactoryV2Adapter:
    def __init__(self, w3: Web3, address: str):
        self.w3 = w3
        self.address = Web3.to_checksum_address(address)
        self.contract: Contract = w3.eth.contract(address=self.address, abi=ABI_FACTORY_V2)

    def get_pair(self, token_a: str, token_b: str) -> str:
        return self.contract.functions.getPair(
            Web3.to_checksum_address(token_a),
            Web3.to_checksum_address(token_b),
        ).call()


class PairV2Adapter:
    """Pair contract; also the LP token (ERC20 surface + Transfer event)."""

    def __init__(self, w3: Web3, address: str):
        self.w3 = w3
        self.address = Web3.to_checksum_address(address)
        self.contract: Contract = w3.eth.contract(address=self.address, abi=ABI_PAIR_V2)
        self._token0: Optional[str] = None

    # ---------------- views ----------------

    def token0(self) -> str:
        if self._token0 is None:
            self._token0 = self.contract.functions.token0().call()
        return self._token0

    def token1(self) -> str:
        return self.contract.functions.token1().call()

    def get_reserves(self) -> Tuple[int, int]:
        r0, r1, _ts = self.contract.functions.getReserves().call()
        return int(r0), int(r1)

    def symbol(self) -> str:
        return self.contract.functions.symbol().call()

    # ---------------- fn builders (for TxService.submit) ----------------

    def fn_approve(self, spender: str, amount: int) -> ContractFunction:
        return self.contract.functions.approve(Web3.to_checksum_address(spender), int(amount))
