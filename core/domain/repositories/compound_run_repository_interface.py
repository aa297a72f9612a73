from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional, Sequence

from core.domain.entities.compound_run_entity import CompoundRunEntity


class CompoundRunRepository(ABC):
    @abstractmethod
    def ensure_indexes(self) -> None:
        raise NotImplementedError

    @abstractmethod
    def insert(self, entity: CompoundRunEntity) -> str:
        raise NotImplementedError

    @abstractmethod
    def update(self, entity: CompoundRunEntity) -> None:
        raise NotImplementedError

    @abstractmethod
    def get_by_id(self, run_id: str) -> Optional[CompoundRunEntity]:
        raise NotImplementedError

    @abstractmethod
    def list_recent(self, *, pool: str, limit: int = 50) -> Sequence[CompoundRunEntity]:
        raise NotImplementedError
