from decimal import Decimal
from enum import Enum
from typing import Any

INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1


def sanitize_for_mongo(value: Any) -> Any:
    """
    Recursively sanitize values so they are acceptable by MongoDB/BSON.

    - ints outside int64 become strings (raw 18-decimal amounts often are)
    - Decimals become strings
    - Enums become their value
    - dicts, lists and tuples are handled recursively
    """
    if isinstance(value, bool):
        return value

    if isinstance(value, int):
        if INT64_MIN <= value <= INT64_MAX:
            return value
        return str(value)

    if isinstance(value, Decimal):
        return str(value)

    if isinstance(value, Enum):
        return value.value

    if isinstance(value, dict):
        return {k: sanitize_for_mongo(v) for k, v in value.items()}

    if isinstance(value, (list, tuple)):
        return [sanitize_for_mongo(v) for v in value]

    return value
