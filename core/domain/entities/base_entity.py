# core/domain/entities/base_entity.py
from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Any, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict

E = TypeVar("E", bound="MongoEntity")


class MongoEntity(BaseModel):
    """
    Pydantic base for documents persisted in MongoDB.

    `_id` lives in `id` as a string while the entity is in memory. Every
    document carries created/updated stamps twice: epoch milliseconds for
    sorting and an ISO-8601 UTC string for humans reading the collection.
    """

    id: Optional[str] = None

    created_at: Optional[int] = None
    created_at_iso: Optional[str] = None
    updated_at: Optional[int] = None
    updated_at_iso: Optional[str] = None

    model_config = ConfigDict(
        arbitrary_types_allowed=True,
        extra="allow",
        use_enum_values=True,
    )

    @staticmethod
    def now_ms() -> int:
        return int(time.time() * 1000)

    @staticmethod
    def now_iso() -> str:
        """UTC now, ISO-8601 with a trailing 'Z'."""
        return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")

    @classmethod
    def from_mongo(cls: Type[E], doc: Optional[dict[str, Any]]) -> Optional[E]:
        if not doc:
            return None
        data = dict(doc)
        oid = data.pop("_id", None)
        if oid is not None:
            data["id"] = str(oid)
        return cls.model_validate(data)

    def to_mongo(self, *, with_id: bool = True) -> dict[str, Any]:
        """
        Plain dict for pymongo. None fields are dropped; `id` is renamed
        `_id`, or left out entirely when with_id is False (inserts and $set).
        """
        data = self.model_dump(mode="python", exclude_none=True)
        doc_id = data.pop("id", None)
        if with_id and doc_id is not None:
            data["_id"] = doc_id
        return data

    def touch_for_insert(self: E) -> E:
        self.touch_for_update()
        if self.created_at is None:
            self.created_at = self.updated_at
        if self.created_at_iso is None:
            self.created_at_iso = self.updated_at_iso
        return self

    def touch_for_update(self: E) -> E:
        self.updated_at = self.now_ms()
        self.updated_at_iso = self.now_iso()
        return self
