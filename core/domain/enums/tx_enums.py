from __future__ import annotations

from enum import StrEnum


class GasStrategy(StrEnum):
    """
    Padding applied to the node's estimateGas when a step has no fixed
    gas ceiling:

    - DEFAULT: the estimate as-is
    - BUFFERED: estimate * 1.25 + 10k
    """

    DEFAULT = "default"
    BUFFERED = "buffered"
