"""Shared plumbing for the collection DAL classes.

Reads translate driver failures the same way unit-of-work writes do, and
write methods take an optional unit of work so a service can group them.
"""

from typing import Any, ClassVar, Generic, Optional, TypeVar

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase

from blurranker.dal.unit_of_work import UnitOfWork, Writer, direct_writer, storage_errors
from blurranker.models.common import MongoDocument

ModelT = TypeVar("ModelT", bound=MongoDocument)

Sort = list[tuple[str, int]]


def object_ids(ids: list[str]) -> list[ObjectId]:
    """Convert string ids to ObjectIds, skipping malformed ones."""
    return [ObjectId(i) for i in ids if ObjectId.is_valid(i)]


class BaseDAL(Generic[ModelT]):
    """Base data access class bound to one collection and one model."""

    COLLECTION: ClassVar[str]
    MODEL: ClassVar[type]

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._collection = db[self.COLLECTION]

    @staticmethod
    def _writer(uow: Optional[UnitOfWork]) -> Writer:
        return uow if uow is not None else direct_writer

    async def _find_one(
        self, query: dict, sort: Optional[Sort] = None
    ) -> Optional[ModelT]:
        with storage_errors(f"read {self.COLLECTION}"):
            doc = await self._collection.find_one(query, sort=sort)
        if doc is None:
            return None
        return self.MODEL.from_mongo(doc)

    async def _find(
        self,
        query: dict,
        sort: Optional[Sort] = None,
        limit: int = 0,
    ) -> list[ModelT]:
        cursor = self._collection.find(query)
        if sort:
            cursor = cursor.sort(sort)
        if limit:
            cursor = cursor.limit(limit)
        items: list[ModelT] = []
        with storage_errors(f"read {self.COLLECTION}"):
            async for doc in cursor:
                items.append(self.MODEL.from_mongo(doc))
        return items

    async def _count(self, query: dict) -> int:
        with storage_errors(f"count {self.COLLECTION}"):
            return await self._collection.count_documents(query)

    async def get_by_id(self, item_id: str) -> Optional[ModelT]:
        """Find a document by its MongoDB ``_id``; None if absent or malformed."""
        if not ObjectId.is_valid(item_id):
            return None
        return await self._find_one({"_id": ObjectId(item_id)})

    async def get_many(self, item_ids: list[str]) -> list[ModelT]:
        ids = object_ids(item_ids)
        if not ids:
            return []
        return await self._find({"_id": {"$in": ids}})

    async def _insert(self, item: ModelT, uow: Optional[UnitOfWork]) -> ModelT:
        inserted_id = await self._writer(uow).insert_one(
            self._collection, item.to_mongo_dict()
        )
        item.id = str(inserted_id)
        return item

    async def _insert_many(
        self, items: list[ModelT], uow: Optional[UnitOfWork]
    ) -> list[ModelT]:
        inserted_ids: list[Any] = await self._writer(uow).insert_many(
            self._collection, [i.to_mongo_dict() for i in items]
        )
        for item, inserted_id in zip(items, inserted_ids):
            item.id = str(inserted_id)
        return items
