from typing import List, Optional

from web3 import Web3
from web3.contract import Contract
from web3.contract.contract import ContractFunction

from core.domain.schemas.onchain_types import ContractHandle


ABI_ERC20 = [
    {"name": "name", "outputs": [{"type": "string"}], "inputs": [], "stateMutability": "view", "type": "function"},
    {"name": "symbol", "outputs": [{"type": "string"}], "inputs": [], "stateMutability": "view", "type": "function"},
    {"name": "decimals", "outputs": [{"type": "uint8"}], "inputs": [], "stateMutability": "view", "type": "function"},
    {"name": "balanceOf", "outputs": [{"type": "uint256"}], "inputs": [{"type": "address", "name": "owner"}], "stateMutability": "view", "type": "function"},
    {"name": "allowance", "outputs": [{"type": "uint256"}], "inputs": [{"type": "address", "name": "owner"}, {"type": "address", "name": "spender"}], "stateMutability": "view", "type": "function"},
    {"name": "approve", "outputs": [{"type": "bool"}], "inputs": [{"type": "address", "name": "spender"}, {"type": "uint256", "name": "amount"}], "stateMutability": "nonpayable", "type": "function"},
]


class Erc20Adapter:
    """
    Typed view of an ERC20 token. Works with the static ABI above or with a
    full ABI resolved through the contract gateway.
    """

    def __init__(self, w3: Web3, address: str, abi: Optional[List] = None):
        if not address:
            raise RuntimeError("Erc20Adapter: address not configured")
        self.w3 = w3
        self.address = Web3.to_checksum_address(address)
        self.contract: Contract = w3.eth.contract(address=self.address, abi=abi or ABI_ERC20)
        self._symbol: Optional[str] = None

    @classmethod
    def from_handle(cls, w3: Web3, handle: ContractHandle) -> "Erc20Adapter":
        return cls(w3, handle.address, handle.abi)

    # ---------------- views ----------------

    def symbol(self) -> str:
        if self._symbol is None:
            self._symbol = str(self.contract.functions.symbol().call())
        return self._symbol

    def decimals(self) -> int:
        return int(self.contract.functions.decimals().call())

    def balance_of(self, owner: str) -> int:
        return int(self.contract.functions.balanceOf(Web3.to_checksum_address(owner)).call())

    # ---------------- fn builders (for TxService.submit) ----------------

    def fn_approve(self, spender: str, amount: int) -> ContractFunction:
        return self.contract.functions.approve(Web3.to_checksum_address(spender), int(amount))
