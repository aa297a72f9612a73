# core/services/utils.py
from decimal import Decimal
from enum import Enum
from typing import Any
from collections.abc import Mapping

from hexbytes import HexBytes
from pydantic import BaseModel
from web3 import Web3


def to_json_safe(obj: Any) -> Any:
    """
    Recursively convert web3 receipts, run results and Decimal amounts into
    plain JSON-serializable primitives.

    - HexBytes / bytes -> "0x..." str
    - Decimal          -> str (keeps full precision)
    - Enum             -> its value
    - BaseModel        -> model_dump() then recurse
    - Mapping          -> {k: to_json_safe(v)}   (covers AttributeDict)
    - list/tuple/set   -> [to_json_safe(v), ...]
    - everything else  -> unchanged if primitive, else str(obj)
    """
    if isinstance(obj, HexBytes):
        return Web3.to_hex(obj)

    if isinstance(obj, (bytes, bytearray)):
        return "0x" + obj.hex()

    if isinstance(obj, Enum):
        return obj.value

    if isinstance(obj, Decimal):
        return str(obj)

    if isinstance(obj, (str, int, float, bool)) or obj is None:
        return obj

    if isinstance(obj, BaseModel):
        return to_json_safe(obj.model_dump())

    # dict-like (IMPORTANT: covers web3.datastructures.AttributeDict)
    if isinstance(obj, Mapping):
        return {str(k): to_json_safe(v) for (k, v) in obj.items()}

    if isinstance(obj, (list, tuple, set)):
        return [to_json_safe(v) for v in obj]

    return str(obj)


def same_address(a: str, b: str) -> bool:
    """Checksum-insensitive address equality."""
    return (a or "").lower() == (b or "").lower()
