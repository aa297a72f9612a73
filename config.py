import os
from dotenv import load_dotenv
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Dict, List

load_dotenv()


def _parse_csv(value: str) -> List[str]:
    if not value:
        return []
    items = [x.strip() for x in value.split(",")]
    return [x for x in items if x]


def _parse_keyed_csv(value: str) -> Dict[str, str]:
    """
    Parse "network:key,network2:key2" into {"network": "key", ...}.
    Entries without a ":" separator are ignored.
    """
    out: Dict[str, str] = {}
    for item in _parse_csv(value):
        name, sep, key = item.partition(":")
        if not sep:
            continue
        out[name.strip()] = key.strip()
    return out


def _parse_int(value: str, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


@dataclass
class Settings:
    # signing
    PRIVATE_KEY: str

    # pools / networks file (JSON)
    AUTO_COMPOUND_CONFIG: str

    # ABI resolution
    ABI_CACHE_DIR: str
    LOCALHOST_DEPLOYMENTS_DIR: str

    # tx waiting
    TX_CONFIRMATIONS: int
    TX_TIMEOUT_SEC: int
    LP_MINT_TIMEOUT_SEC: int

    # MongoDB (optional run history)
    MONGO_URI: str
    MONGO_DB: str

    # generic
    LOG_LEVEL: str = "INFO"
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000

    # explorer API keys per network name
    SCAN_API_KEYS: Dict[str, str] = field(default_factory=dict)


@lru_cache()
def get_settings() -> Settings:
    return Settings(
        # Signing
        PRIVATE_KEY=os.getenv("PRIVATE_KEY", ""),

        # Pools / networks
        AUTO_COMPOUND_CONFIG=os.getenv("AUTO_COMPOUND_CONFIG", "auto-compound.json"),

        # ABI
        ABI_CACHE_DIR=os.getenv("ABI_CACHE_DIR", "data/abi"),
        LOCALHOST_DEPLOYMENTS_DIR=os.getenv("LOCALHOST_DEPLOYMENTS_DIR", "deployments/localhost"),
        SCAN_API_KEYS=_parse_keyed_csv(os.getenv("SCAN_API_KEYS", "")),

        # Tx waiting
        TX_CONFIRMATIONS=_parse_int(os.getenv("TX_CONFIRMATIONS", "1"), 1),
        TX_TIMEOUT_SEC=_parse_int(os.getenv("TX_TIMEOUT_SEC", "120"), 120),
        LP_MINT_TIMEOUT_SEC=_parse_int(os.getenv("LP_MINT_TIMEOUT_SEC", "20"), 20),

        # Mongo (empty URI disables run history)
        MONGO_URI=os.getenv("MONGO_URI", ""),
        MONGO_DB=os.getenv("MONGO_DB", "auto_compound"),

        LOG_LEVEL=os.getenv("LOG_LEVEL", "INFO"),
        API_HOST=os.getenv("API_HOST", "0.0.0.0"),
        API_PORT=_parse_int(os.getenv("API_PORT", "8000"), 8000),
    )
