"""Units of work: all-or-nothing groups of MongoDB writes.

Every mutating service operation runs inside one unit. Two strategies:

* ``TransactionUnit`` wraps a Motor client session and a multi-document
  transaction. Requires MongoDB running as a replica set.
* ``CompensatingUnit`` applies writes directly and journals the inverse of
  each one. If the unit fails, the journal is replayed newest-first so the
  touched documents return to their prior state.

Change events recorded on a unit are published only after it commits.
Writes made outside any unit go through a plain ``Writer``.
"""

import logging
from contextlib import contextmanager
from typing import Any, Awaitable, Callable, Iterator, Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorCollection, AsyncIOMotorDatabase
from pymongo.errors import BulkWriteError, DuplicateKeyError, OperationFailure, PyMongoError

from blurranker.config import settings
from blurranker.dal.change_feed import ChangeFeed
from blurranker.errors import ConflictError, PersistenceError
from blurranker.models.common import ChangeOperation, EntityType
from blurranker.models.event import ChangeEvent

logger = logging.getLogger("blurranker.dal.unit_of_work")

Undo = Callable[[], Awaitable[Any]]

_DUPLICATE_KEY = 11000


@contextmanager
def storage_errors(operation: str) -> Iterator[None]:
    """Translate PyMongo failures into library errors."""
    try:
        yield
    except DuplicateKeyError as exc:
        raise ConflictError(f"{operation}: duplicate key") from exc
    except BulkWriteError as exc:
        write_errors = (exc.details or {}).get("writeErrors", [])
        if any(e.get("code") == _DUPLICATE_KEY for e in write_errors):
            raise ConflictError(f"{operation}: duplicate key") from exc
        raise PersistenceError(f"{operation} failed: {exc}") from exc
    except OperationFailure as exc:
        if exc.has_error_label("TransientTransactionError"):
            raise ConflictError(f"{operation}: write conflict") from exc
        raise PersistenceError(f"{operation} failed: {exc}") from exc
    except PyMongoError as exc:
        raise PersistenceError(f"{operation} failed: {exc}") from exc


class Writer:
    """Plain write primitives used by the DAL classes."""

    def _options(self) -> dict:
        return {}

    async def insert_one(self, collection: AsyncIOMotorCollection, document: dict) -> Any:
        with storage_errors(f"insert into {collection.name}"):
            result = await collection.insert_one(document, **self._options())
        return result.inserted_id

    async def insert_many(
        self, collection: AsyncIOMotorCollection, documents: list[dict]
    ) -> list[Any]:
        if not documents:
            return []
        with storage_errors(f"insert into {collection.name}"):
            result = await collection.insert_many(documents, **self._options())
        return list(result.inserted_ids)

    async def update_one(
        self, collection: AsyncIOMotorCollection, query: dict, update: dict
    ) -> int:
        with storage_errors(f"update {collection.name}"):
            result = await collection.update_one(query, update, **self._options())
        return result.modified_count

    async def update_many(
        self, collection: AsyncIOMotorCollection, query: dict, update: dict
    ) -> int:
        with storage_errors(f"update {collection.name}"):
            result = await collection.update_many(query, update, **self._options())
        return result.modified_count

    async def delete_many(self, collection: AsyncIOMotorCollection, query: dict) -> int:
        with storage_errors(f"delete from {collection.name}"):
            result = await collection.delete_many(query, **self._options())
        return result.deleted_count


# Shared stateless writer for standalone DAL calls
direct_writer = Writer()


class UnitOfWork(Writer):
    """Base unit: collects change events and publishes them on commit."""

    def __init__(self, feed: Optional[ChangeFeed] = None) -> None:
        self._feed = feed
        self._changes: list[ChangeEvent] = []
        self.committed = False

    def record_change(
        self,
        entity: EntityType,
        operation: ChangeOperation,
        scope: Optional[str] = None,
    ) -> None:
        self._changes.append(
            ChangeEvent(entity=entity, operation=operation, scope=scope)
        )

    @property
    def changes(self) -> list[ChangeEvent]:
        # One event per distinct (entity, operation, scope), first-seen order
        return list(dict.fromkeys(self._changes))

    async def _begin(self) -> None:
        pass

    async def _commit(self) -> None:
        pass

    async def _rollback(self) -> None:
        pass

    async def __aenter__(self) -> "UnitOfWork":
        await self._begin()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        if exc_type is not None:
            logger.warning(
                "Unit of work failed (%s), rolling back", exc_type.__name__
            )
            await self._rollback()
            return False

        await self._commit()
        self.committed = True
        if self._feed is not None:
            self._feed.publish_many(self.changes)
        return False


class CompensatingUnit(UnitOfWork):
    """Unit that undoes its own writes on failure."""

    def __init__(self, feed: Optional[ChangeFeed] = None) -> None:
        super().__init__(feed)
        self._journal: list[Undo] = []

    async def insert_one(self, collection, document):
        inserted_id = await super().insert_one(collection, document)
        self._journal.append(
            lambda: collection.delete_one({"_id": inserted_id})
        )
        return inserted_id

    async def insert_many(self, collection, documents):
        # A failed ordered insert may already have written a prefix
        for document in documents:
            document.setdefault("_id", ObjectId())
        ids = [document["_id"] for document in documents]
        if ids:
            self._journal.append(
                lambda: collection.delete_many({"_id": {"$in": ids}})
            )
        return await super().insert_many(collection, documents)

    async def _snapshot(self, collection, query: dict) -> list[dict]:
        with storage_errors(f"read {collection.name}"):
            return await collection.find(query).to_list(length=None)

    def _journal_restore(self, collection, before: list[dict]) -> None:
        # No upsert: a document deleted since the update stays deleted
        async def restore() -> None:
            for doc in before:
                await collection.replace_one({"_id": doc["_id"]}, doc)

        self._journal.append(restore)

    async def update_one(self, collection, query, update):
        before = await self._snapshot(collection, query)
        if not before:
            return 0
        target = before[0]
        modified = await super().update_one(
            collection, {"$and": [query, {"_id": target["_id"]}]}, update
        )
        if modified:
            self._journal_restore(collection, [target])
        return modified

    async def update_many(self, collection, query, update):
        before = await self._snapshot(collection, query)
        if not before:
            return 0
        ids = [doc["_id"] for doc in before]
        modified = await super().update_many(
            collection, {"$and": [query, {"_id": {"$in": ids}}]}, update
        )
        if modified:
            self._journal_restore(collection, before)
        return modified

    async def delete_many(self, collection, query):
        before = await self._snapshot(collection, query)
        if not before:
            return 0
        ids = [doc["_id"] for doc in before]
        deleted = await super().delete_many(collection, {"_id": {"$in": ids}})
        if deleted:
            self._journal.append(lambda: collection.insert_many(before))
        return deleted

    async def _commit(self) -> None:
        self._journal.clear()

    async def _rollback(self) -> None:
        failures = 0
        for undo in reversed(self._journal):
            try:
                await undo()
            except PyMongoError:
                failures += 1
                logger.exception("Compensating write failed")
        if failures:
            logger.error(
                "Rollback incomplete: %d of %d compensating writes failed",
                failures,
                len(self._journal),
            )
        else:
            logger.info("Rolled back %d write(s)", len(self._journal))
        self._journal.clear()


class TransactionUnit(UnitOfWork):
    """Unit backed by a MongoDB multi-document transaction."""

    def __init__(self, client, feed: Optional[ChangeFeed] = None) -> None:
        super().__init__(feed)
        self._client = client
        self._session = None

    def _options(self) -> dict:
        return {"session": self._session}

    async def _begin(self) -> None:
        with storage_errors("start transaction"):
            self._session = await self._client.start_session()
            self._session.start_transaction()

    async def _commit(self) -> None:
        try:
            with storage_errors("commit transaction"):
                await self._session.commit_transaction()
        finally:
            await self._session.end_session()

    async def _rollback(self) -> None:
        try:
            with storage_errors("abort transaction"):
                await self._session.abort_transaction()
        finally:
            await self._session.end_session()


class UnitOfWorkFactory:
    """Creates the configured kind of unit for a database."""

    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        feed: Optional[ChangeFeed] = None,
        use_transactions: Optional[bool] = None,
    ) -> None:
        self._db = db
        self.feed = feed
        self.use_transactions = (
            settings.USE_TRANSACTIONS if use_transactions is None else use_transactions
        )

    def __call__(self) -> UnitOfWork:
        if self.use_transactions:
            return TransactionUnit(self._db.client, self.feed)
        return CompensatingUnit(self.feed)
