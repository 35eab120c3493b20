"""Service layer for transaction lifecycle logic."""
import logging
from typing import Any, List, Optional

from models.transaction import StoredTransaction
from services.errors import InvalidIdentifier, NotFound
from services.storage import TransactionGateway
from services.validation import parse_type_filter, validate_create, validate_update

logger = logging.getLogger(__name__)


def _check_id(gateway: TransactionGateway, transaction_id: str) -> None:
    if not gateway.is_valid_id(transaction_id):
        logger.warning(f"Rejected malformed transaction id: {transaction_id!r}")
        raise InvalidIdentifier(transaction_id)


async def create_transaction(
    gateway: TransactionGateway, payload: Any, owner_id: str, allow_zero: bool = False
) -> StoredTransaction:
    """Validates a full payload and stores it for `owner_id`."""
    draft = validate_create(payload, owner_id, allow_zero=allow_zero)
    stored = await gateway.insert(draft)
    logger.info(f"Created transaction {stored.id} ({stored.type}, {stored.amount:.2f}) for owner {owner_id}.")
    return stored


async def list_transactions(
    gateway: TransactionGateway, owner_id: str, tx_type: Optional[str] = None
) -> List[StoredTransaction]:
    """Fetches the owner's transactions, newest first, optionally filtered by type."""
    tx_type = parse_type_filter(tx_type)
    transactions = await gateway.find_by_owner(owner_id, tx_type=tx_type)
    logger.info(f"Fetched {len(transactions)} transactions for owner {owner_id}.")
    return transactions


async def get_transaction(gateway: TransactionGateway, transaction_id: str, owner_id: str) -> StoredTransaction:
    _check_id(gateway, transaction_id)
    transaction = await gateway.find_one_by_id_and_owner(transaction_id, owner_id)
    if transaction is None:
        raise NotFound(transaction_id)
    return transaction


async def update_transaction(
    gateway: TransactionGateway, transaction_id: str, owner_id: str, payload: Any, allow_zero: bool = False
) -> StoredTransaction:
    """
    Applies the supplied fields of a partial payload. Fields not supplied are
    left untouched. A payload with nothing to change performs no write.
    """
    _check_id(gateway, transaction_id)
    changes = validate_update(payload, owner_id, allow_zero=allow_zero)
    if not changes:
        logger.info(f"Update for transaction {transaction_id} carried no fields; returning current record.")
        return await get_transaction(gateway, transaction_id, owner_id)

    updated = await gateway.update_by_id_and_owner(transaction_id, owner_id, changes)
    if updated is None:
        raise NotFound(transaction_id)
    logger.info(f"Updated transaction {transaction_id} fields {sorted(changes)} for owner {owner_id}.")
    return updated


async def delete_transaction(gateway: TransactionGateway, transaction_id: str, owner_id: str) -> StoredTransaction:
    _check_id(gateway, transaction_id)
    deleted = await gateway.delete_by_id_and_owner(transaction_id, owner_id)
    if deleted is None:
        raise NotFound(transaction_id)
    logger.info(f"Deleted transaction {transaction_id} for owner {owner_id}.")
    return deleted
