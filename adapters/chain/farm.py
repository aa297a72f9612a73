from web3 import Web3
from web3.contract import Contract
from web3.contract.contract import ContractFunction
from web3.exceptions import MismatchedABI

from core.domain.schemas.onchain_types import ContractHandle
from core.services.exceptions import AbiUnavailableError

# Some farms overload deposit (e.g. a 3-arg referral variant). The 2-arg
# entry point is the one this tool stakes through.
SIG_DEPOSIT = "deposit(uint256,uint256)"
SIG_WITHDRAW = "withdraw(uint256,uint256)"


class FarmAdapter:
    """
    MasterChef-like farm.

    - withdraw(pid, 0) claims pending rewards without unstaking.
    - deposit(pid, amount) stakes LP tokens.

    Both entry points are bound once, by signature, from the verified ABI.
    """

    def __init__(self, w3: Web3, handle: ContractHandle):
        self.w3 = w3
        self.address = Web3.to_checksum_address(handle.address)
        self.contract: Contract = w3.eth.contract(address=self.address, abi=handle.abi)
        self._deposit = self._bind(SIG_DEPOSIT)
        self._withdraw = self._bind(SIG_WITHDRAW)

    def _bind(self, signature: str):
        try:
            return self.contract.get_function_by_signature(signature)
        except (ValueError, MismatchedABI) as exc:
            raise AbiUnavailableError(self.address, f"farm ABI has no {signature}") from exc

    # ---------------- fn builders (for TxService.submit) ----------------

    def fn_harvest(self, pid: int) -> ContractFunction:
        return self._withdraw(int(pid), 0)

    def fn_deposit(self, pid: int, amount: int) -> ContractFunction:
        return self._deposit(int(pid), int(amount))
