from __future__ import annotations

from typing import Optional, Sequence

from bson import ObjectId
from bson.errors import InvalidId
from pymongo.collection import Collection
from pymongo.database import Database

from adapters.external.database.helper_repo import sanitize_for_mongo
from adapters.external.database.mongo_client import get_mongo_db

from core.domain.entities.compound_run_entity import CompoundRunEntity
from core.domain.repositories.compound_run_repository_interface import CompoundRunRepository


class CompoundRunRepositoryMongoDB(CompoundRunRepository):
    """
    One document per compounding run (collection `compound_runs`).
    """

    COLLECTION_NAME = "compound_runs"

    def __init__(self, db: Optional[Database] = None) -> None:
        self._db: Database = db if db is not None else get_mongo_db()
        self._collection: Collection = self._db[self.COLLECTION_NAME]

    @property
    def collection(self) -> Collection:
        return self._collection

    def ensure_indexes(self) -> None:
        self._collection.create_index(
            [("pool", 1), ("created_at", -1)],
            name="ix_compound_runs_pool_created_at_desc",
        )
        self._collection.create_index([("status", 1)], name="ix_compound_runs_status")

    def insert(self, entity: CompoundRunEntity) -> str:
        doc = sanitize_for_mongo(entity.touch_for_insert().to_mongo(with_id=False))
        res = self._collection.insert_one(doc)
        entity.id = str(res.inserted_id)
        return entity.id

    def update(self, entity: CompoundRunEntity) -> None:
        if not entity.id:
            raise ValueError("Cannot update a compound run that was never inserted")
        doc = sanitize_for_mongo(entity.touch_for_update().to_mongo(with_id=False))
        self._collection.update_one({"_id": ObjectId(entity.id)}, {"$set": doc})

    def get_by_id(self, run_id: str) -> Optional[CompoundRunEntity]:
        try:
            oid = ObjectId(run_id)
        except (InvalidId, TypeError):
            return None
        return CompoundRunEntity.from_mongo(self._collection.find_one({"_id": oid}))

    def list_recent(self, *, pool: str, limit: int = 50) -> Sequence[CompoundRunEntity]:
        cursor = self._collection.find({"pool": pool}, sort=[("created_at", -1)]).limit(int(limit))
        return [CompoundRunEntity.from_mongo(d) for d in cursor if d]
