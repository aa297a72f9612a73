from __future__ import annotations

import json
from pathlib import Path
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from core.services.amount_math import clamp, derive_fractions
from core.services.exceptions import ConfigurationError


class DexInfo(BaseModel):
    """
    One DEX deployment on a network. Only the router is configured,
    the factory and the wrapped native asset are read from it.
    """

    router: str

    model_config = ConfigDict(extra="ignore", frozen=True)


class NetworkConfig(BaseModel):
    """
    Per-network wiring. Secrets (explorer API key, private key) are NOT here,
    they come from the environment.
    """

    name: str = ""
    url: str = Field(..., description="JSON-RPC URL")
    chain_id: int = Field(..., alias="chainId")
    symbol: str = Field("ETH", description="Native asset symbol, e.g. BNB, FTM")
    scan_api: str = Field("", alias="scanAPI", description="Explorer API base, e.g. https://api.bscscan.com/")
    dex: Dict[str, DexInfo] = Field(default_factory=dict, alias="DEX")

    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)


class PoolConfig(BaseModel):
    name: str
    network: str
    token: str = Field(..., description="Reward token address (also the non-native side of the pair)")
    farm: str = Field(..., description="Farm (MasterChef-like) contract address")
    pid: int = Field(..., ge=0, description="Farm pool id")
    dex: str = Field(..., alias="DEX")
    has_fees: bool = Field(False, alias="hasFees", description="Token takes a fee on transfer")
    profit_fraction: Optional[float] = Field(None, alias="profitFraction")
    slippage_tolerance: Optional[float] = Field(None, alias="slippageTolerance")

    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)


class GlobalConfig(BaseModel):
    slippage_tolerance: float = Field(0.01, alias="slippageTolerance")

    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)


class CompoundConfigFile(BaseModel):
    """
    Shape of the auto-compound JSON file:

        {
          "global":   {"slippageTolerance": 0.3},
          "networks": {"bsc": {"url": ..., "chainId": 56, "symbol": "BNB",
                               "scanAPI": ..., "DEX": {"pancake": {"router": ...}}}},
          "pools":    [{"name": ..., "network": "bsc", "token": ..., "farm": ...,
                        "pid": 1, "DEX": "pancake", "hasFees": false,
                        "profitFraction": 0.2}]
        }
    """

    global_: GlobalConfig = Field(default_factory=GlobalConfig, alias="global")
    networks: Dict[str, NetworkConfig] = Field(default_factory=dict)
    pools: List[PoolConfig] = Field(default_factory=list)

    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)

    @field_validator("networks", mode="before")
    @classmethod
    def _inject_network_names(cls, v):
        if not isinstance(v, dict):
            return v
        out = {}
        for name, raw in v.items():
            if isinstance(raw, dict) and not raw.get("name"):
                raw = {**raw, "name": name}
            out[name] = raw
        return out

    @classmethod
    def load(cls, path: Union[str, Path]) -> "CompoundConfigFile":
        p = Path(path)
        if not p.is_file():
            raise ConfigurationError(f"Config file not found: {p}")
        try:
            data = json.loads(p.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ConfigurationError(f"Invalid JSON in {p}: {exc}") from exc
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            # locations and messages only; input values may hold keys
            problems = "; ".join(
                f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in exc.errors()
            )
            raise ConfigurationError(f"Invalid config in {p.name}: {problems}") from exc

    def select_pool(self, name: Optional[str] = None, index: Optional[int] = None) -> PoolConfig:
        """
        Pick a pool by name, else by index, else the first one.
        """
        if not self.pools:
            raise ConfigurationError("No pools configured")
        if name:
            for pool in self.pools:
                if pool.name == name:
                    return pool
            raise ConfigurationError(f"Unknown pool: {name}")
        idx = 0 if index is None else int(index)
        if idx < 0 or idx >= len(self.pools):
            raise ConfigurationError(f"Pool index out of range: {idx} (have {len(self.pools)})")
        return self.pools[idx]


class RuntimeParameters(BaseModel):
    """
    Per-run derived parameters, computed once from the (clamped) pool config.
    Fractions are in basis points (denominator 10000).
    """

    profit_fraction: float
    slippage_tolerance: float
    swap_fraction_bps: int = Field(..., ge=0, le=10_000)
    liquidity_ether_fraction_bps: int = Field(..., ge=0, le=10_000)

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_pool(cls, pool: PoolConfig, global_cfg: GlobalConfig) -> "RuntimeParameters":
        slippage = clamp(float(global_cfg.slippage_tolerance), 0.0, 1.0)
        if pool.slippage_tolerance is not None:
            slippage = clamp(float(pool.slippage_tolerance), 0.0, 1.0)

        f0 = 0.0
        if pool.profit_fraction is not None:
            f0 = clamp(float(pool.profit_fraction), 0.0, 1.0)

        swap_bps, ether_bps = derive_fractions(f0)
        return cls(
            profit_fraction=f0,
            slippage_tolerance=slippage,
            swap_fraction_bps=swap_bps,
            liquidity_ether_fraction_bps=ether_bps,
        )


class CompoundContext(BaseModel):
    """
    Everything one run needs, resolved once at the entry point and passed
    down explicitly.
    """

    pool: PoolConfig
    network: NetworkConfig
    dex: DexInfo
    params: RuntimeParameters
    scan_api_key: str = ""

    model_config = ConfigDict(frozen=True)

    @classmethod
    def build(
        cls,
        cfg: CompoundConfigFile,
        *,
        pool_name: Optional[str] = None,
        pool_index: Optional[int] = None,
        scan_api_keys: Optional[Dict[str, str]] = None,
    ) -> "CompoundContext":
        pool = cfg.select_pool(name=pool_name, index=pool_index)

        network = cfg.networks.get(pool.network)
        if network is None:
            raise ConfigurationError(f"Unknown network for pool {pool.name}: {pool.network}")

        dex = network.dex.get(pool.dex)
        if dex is None:
            raise ConfigurationError(f"Unknown DEX '{pool.dex}' on network {pool.network}")

        return cls(
            pool=pool,
            network=network,
            dex=dex,
            params=RuntimeParameters.from_pool(pool, cfg.global_),
            scan_api_key=(scan_api_keys or {}).get(pool.network, ""),
        )
