from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import httpx
from web3 import Web3

from core.domain.schemas.onchain_types import ContractHandle
from core.services.exceptions import AbiUnavailableError

logger = logging.getLogger(__name__)

NOT_VERIFIED = "Contract source code not verified"
LOCALHOST = "localhost"


@dataclass
class AbiGateway:
    """
    Resolves contract ABIs for one network.

    Lookup order:
      1. localhost networks: a deployments directory of `*.json` files
         shaped like {"address": ..., "abi": [...]};
      2. the on-disk cache `<cache_dir>/<address>.abi.json` (raw ABI text);
      3. the explorer API (etherscan-like), whose result is then cached.

    Cache writes go through a temp file + rename, so two processes fetching
    the same address at once may both hit the explorer but never leave a
    half-written file behind.
    """

    cache_dir: Path
    scan_api: str
    api_key: str = ""
    network_name: str = ""
    deployments_dir: Optional[Path] = None
    http_client: Optional[httpx.Client] = None
    timeout_sec: float = 15.0

    def resolve(self, address: str) -> ContractHandle:
        addr = Web3.to_checksum_address(address)
        if self.network_name == LOCALHOST:
            return self._resolve_localhost(addr)

        raw = self._read_cache(addr)
        if raw is None:
            logger.info("Fetching ABI for contract at %s", addr)
            raw = self.fetch_abi(addr)
            abi = self._parse_abi(addr, raw)
            self._write_cache(addr, raw)
        else:
            logger.info("Fetching ABI for contract at %s (USING CACHE)", addr)
            abi = self._parse_abi(addr, raw)

        return ContractHandle(address=addr, abi=abi)

    # ---------- explorer ----------

    def fetch_abi(self, address: str) -> str:
        """
        GET {scan_api}api?module=contract&action=getabi&address=...&apikey=...
        Returns the raw ABI JSON text held in the response's `result`.
        """
        if not self.scan_api:
            raise AbiUnavailableError(address, "no explorer API configured for this network")

        url = f"{self.scan_api.rstrip('/')}/api"
        params = {
            "module": "contract",
            "action": "getabi",
            "address": address,
            "apikey": self.api_key,
        }

        try:
            if self.http_client is not None:
                res = self.http_client.get(url, params=params)
            else:
                with httpx.Client(timeout=self.timeout_sec) as cli:
                    res = cli.get(url, params=params)
        except httpx.HTTPError as exc:
            raise AbiUnavailableError(address, f"explorer request failed: {exc}") from exc

        if res.status_code >= 400:
            raise AbiUnavailableError(address, f"explorer_error_{res.status_code}")

        try:
            data = res.json() if res.content else {}
        except ValueError as exc:
            raise AbiUnavailableError(address, "explorer returned non-JSON body") from exc

        result = data.get("result") if isinstance(data, dict) else None
        if not result or not isinstance(result, str):
            raise AbiUnavailableError(address, "explorer returned an empty result")
        if result == NOT_VERIFIED:
            raise AbiUnavailableError(address, NOT_VERIFIED)
        return result

    # ---------- cache ----------

    def cache_path(self, address: str) -> Path:
        return Path(self.cache_dir) / f"{address}.abi.json"

    def _read_cache(self, address: str) -> Optional[str]:
        p = self.cache_path(address)
        if not p.is_file():
            return None
        return p.read_text(encoding="utf-8")

    def _write_cache(self, address: str, raw: str) -> None:
        target = self.cache_path(address)
        target.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=target.parent, prefix=f".{address}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(raw)
            os.replace(tmp, target)
        except OSError:
            Path(tmp).unlink(missing_ok=True)
            raise

    @staticmethod
    def _parse_abi(address: str, raw: str) -> list:
        try:
            abi = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise AbiUnavailableError(address, f"ABI is not valid JSON: {exc}") from exc
        if not isinstance(abi, list) or not abi:
            raise AbiUnavailableError(address, f"expected ABI JSON list, got {type(abi).__name__}")
        return abi

    # ---------- localhost ----------

    def _resolve_localhost(self, address: str) -> ContractHandle:
        logger.info("Fetching deployment for contract at %s", address)
        root = self.deployments_dir
        if root is None or not Path(root).is_dir():
            raise AbiUnavailableError(address, f"localhost deployments directory not found: {root}")

        for p in sorted(Path(root).glob("*.json")):
            try:
                deployment = json.loads(p.read_text(encoding="utf-8"))
            except json.JSONDecodeError:
                logger.warning("Skipping unreadable deployment file %s", p)
                continue
            if not isinstance(deployment, dict):
                continue
            dep_addr = str(deployment.get("address") or "")
            if dep_addr.lower() == address.lower():
                abi = deployment.get("abi")
                if not isinstance(abi, list) or not abi:
                    raise AbiUnavailableError(address, f"deployment {p.name} has no ABI")
                return ContractHandle(address=address, abi=abi)

        raise AbiUnavailableError(address, "no localhost deployment for this address")
