from __future__ import annotations

from .compound_run_repository_interface import CompoundRunRepository

__all__ = [
    "CompoundRunRepository",
]
