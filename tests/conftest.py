"""Shared fixtures: an in-memory gateway and an API client built on it."""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

from main import create_app
from models.transaction import StoredTransaction, TransactionDraft
from services.errors import StorageError
from services.storage import TransactionGateway

OWNER_A = "owner-a"
OWNER_B = "owner-b"


class InMemoryTransactionGateway(TransactionGateway):
    """Keeps records in a dict; insertion order is preserved by the dict itself."""

    def __init__(self):
        self.records: Dict[str, StoredTransaction] = {}
        self.fail = False
        self.calls: List[str] = []

    def _check(self, name: str) -> None:
        self.calls.append(name)
        if self.fail:
            raise StorageError("backend down")

    def is_valid_id(self, raw_id: str) -> bool:
        return isinstance(raw_id, str) and ObjectId.is_valid(raw_id)

    async def ping(self) -> None:
        self._check("ping")

    async def insert(self, draft: TransactionDraft) -> StoredTransaction:
        self._check("insert")
        now = datetime.now(timezone.utc)
        stored = StoredTransaction(id=str(ObjectId()), created_at=now, updated_at=now, **draft.model_dump())
        self.records[stored.id] = stored
        return stored

    async def find_by_owner(self, owner_id: str, tx_type: Optional[str] = None) -> List[StoredTransaction]:
        self._check("find_by_owner")
        owned = [r for r in self.records.values() if r.owner_id == owner_id and (tx_type is None or r.type == tx_type)]
        # sorted() stays stable with reverse=True, so equal dates keep insertion order
        return sorted(owned, key=lambda r: r.date, reverse=True)

    async def find_one_by_id_and_owner(self, transaction_id: str, owner_id: str) -> Optional[StoredTransaction]:
        self._check("find_one_by_id_and_owner")
        record = self.records.get(transaction_id)
        return record if record is not None and record.owner_id == owner_id else None

    async def update_by_id_and_owner(
        self, transaction_id: str, owner_id: str, fields: Dict[str, Any]
    ) -> Optional[StoredTransaction]:
        self._check("update_by_id_and_owner")
        record = self.records.get(transaction_id)
        if record is None or record.owner_id != owner_id:
            return None
        updated = record.model_copy(update={**fields, "updated_at": datetime.now(timezone.utc)})
        self.records[transaction_id] = updated
        return updated

    async def delete_by_id_and_owner(self, transaction_id: str, owner_id: str) -> Optional[StoredTransaction]:
        self._check("delete_by_id_and_owner")
        record = self.records.get(transaction_id)
        if record is None or record.owner_id != owner_id:
            return None
        return self.records.pop(transaction_id)


@pytest.fixture
def gateway():
    return InMemoryTransactionGateway()


@pytest.fixture
def app(gateway):
    return create_app(gateway=gateway, default_owner_id="", rate_limit_enabled=False)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        test_client.headers.update({"X-Owner-Id": OWNER_A})
        yield test_client


def make_payload(**overrides):
    payload = {"amount": 1200, "description": "Rent", "date": "2024-01-05", "type": "expense"}
    payload.update(overrides)
    return payload
