"""Persistence gateway for transactions and its MongoDB implementation."""
import abc
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.errors import PyMongoError

from models.transaction import StoredTransaction, TransactionDraft
from services.errors import StorageError

logger = logging.getLogger(__name__)


class TransactionGateway(abc.ABC):
    """
    Storage contract the transaction service depends on.

    Every lookup and mutation is keyed by (id, owner). Methods return None when
    no record matches both, whether the id is absent or owned by someone else.
    Backend failures are raised as StorageError.
    """

    @abc.abstractmethod
    def is_valid_id(self, raw_id: str) -> bool:
        ...

    async def ping(self) -> None:
        """Raise StorageError when the backend is unreachable."""

    @abc.abstractmethod
    async def insert(self, draft: TransactionDraft) -> StoredTransaction:
        ...

    @abc.abstractmethod
    async def find_by_owner(self, owner_id: str, tx_type: Optional[str] = None) -> List[StoredTransaction]:
        """Return the owner's records, newest date first, ties in insertion order."""

    @abc.abstractmethod
    async def find_one_by_id_and_owner(self, transaction_id: str, owner_id: str) -> Optional[StoredTransaction]:
        ...

    @abc.abstractmethod
    async def update_by_id_and_owner(
        self, transaction_id: str, owner_id: str, fields: Dict[str, Any]
    ) -> Optional[StoredTransaction]:
        """Apply only `fields` and re-stamp updatedAt."""

    @abc.abstractmethod
    async def delete_by_id_and_owner(self, transaction_id: str, owner_id: str) -> Optional[StoredTransaction]:
        ...


def _bson_datetime(value: datetime) -> datetime:
    # BSON dates carry millisecond precision
    return value.replace(microsecond=value.microsecond // 1000 * 1000)


def _utc(value: Any) -> Any:
    if isinstance(value, datetime) and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class MongoTransactionGateway(TransactionGateway):
    """Stores transactions as documents in a motor collection."""

    def __init__(self, collection: AsyncIOMotorCollection):
        self.collection = collection

    def is_valid_id(self, raw_id: str) -> bool:
        return isinstance(raw_id, str) and ObjectId.is_valid(raw_id)

    async def ensure_indexes(self) -> None:
        try:
            await self.collection.create_index([("ownerId", ASCENDING), ("date", DESCENDING)])
            await self.collection.create_index([("type", ASCENDING)])
        except PyMongoError as e:
            raise StorageError(f"Failed to create indexes on '{self.collection.name}': {e}") from e
        logger.info(f"Indexes ensured on collection '{self.collection.name}'.")

    async def ping(self) -> None:
        try:
            await self.collection.database.command("ping")
        except PyMongoError as e:
            raise StorageError(f"MongoDB ping failed: {e}") from e

    @staticmethod
    def _to_model(doc: Dict[str, Any]) -> StoredTransaction:
        doc = {key: _utc(value) for key, value in doc.items()}
        doc["id"] = str(doc.pop("_id"))
        return StoredTransaction(**doc)

    async def insert(self, draft: TransactionDraft) -> StoredTransaction:
        now = _bson_datetime(datetime.now(timezone.utc))
        doc = draft.model_dump(by_alias=True)
        doc["date"] = _bson_datetime(doc["date"])
        doc["createdAt"] = now
        doc["updatedAt"] = now
        try:
            result = await self.collection.insert_one(doc)
        except PyMongoError as e:
            raise StorageError(f"Database error inserting transaction: {e}") from e
        doc["_id"] = result.inserted_id
        logger.debug(f"Inserted transaction {result.inserted_id} for owner {draft.owner_id}.")
        return self._to_model(doc)

    async def find_by_owner(self, owner_id: str, tx_type: Optional[str] = None) -> List[StoredTransaction]:
        query: Dict[str, Any] = {"ownerId": owner_id}
        if tx_type is not None:
            query["type"] = tx_type
        transactions = []
        try:
            # ObjectIds grow with insertion, so _id breaks date ties in insertion order
            cursor = self.collection.find(query).sort([("date", DESCENDING), ("_id", ASCENDING)])
            async for doc in cursor:
                transactions.append(self._to_model(doc))
        except PyMongoError as e:
            raise StorageError(f"Database error fetching transactions: {e}") from e
        return transactions

    async def find_one_by_id_and_owner(self, transaction_id: str, owner_id: str) -> Optional[StoredTransaction]:
        try:
            doc = await self.collection.find_one({"_id": ObjectId(transaction_id), "ownerId": owner_id})
        except PyMongoError as e:
            raise StorageError(f"Database error fetching transaction {transaction_id}: {e}") from e
        return self._to_model(doc) if doc else None

    async def update_by_id_and_owner(
        self, transaction_id: str, owner_id: str, fields: Dict[str, Any]
    ) -> Optional[StoredTransaction]:
        changes = dict(fields)
        if "date" in changes:
            changes["date"] = _bson_datetime(changes["date"])
        changes["updatedAt"] = _bson_datetime(datetime.now(timezone.utc))
        try:
            doc = await self.collection.find_one_and_update(
                {"_id": ObjectId(transaction_id), "ownerId": owner_id},
                {"$set": changes},
                return_document=ReturnDocument.AFTER,
            )
        except PyMongoError as e:
            raise StorageError(f"Database error updating transaction {transaction_id}: {e}") from e
        return self._to_model(doc) if doc else None

    async def delete_by_id_and_owner(self, transaction_id: str, owner_id: str) -> Optional[StoredTransaction]:
        try:
            doc = await self.collection.find_one_and_delete({"_id": ObjectId(transaction_id), "ownerId": owner_id})
        except PyMongoError as e:
            raise StorageError(f"Database error deleting transaction {transaction_id}: {e}") from e
        return self._to_model(doc) if doc else None
