"""API Routes for transactions"""
from fastapi import APIRouter, HTTPException, Depends, Request, Query, Response, Body
from typing import Any, Dict, List, Annotated, Optional
from slowapi import Limiter
from slowapi.util import get_remote_address
import config
from services import transactions_service
from services.auth import OWNER_HEADER, resolve_owner
from services.errors import (
    InvalidIdentifier,
    NotFound,
    StorageError,
    TransactionError,
    Unauthenticated,
    ValidationError,
)
from services.storage import TransactionGateway
from models.transaction import StoredTransaction
import logging

router = APIRouter()
logger = logging.getLogger(__name__)

# --- Rate Limiter Setup ---
limiter = Limiter(key_func=get_remote_address, enabled=config.RATE_LIMIT_ENABLED)

def current_rate_limit() -> str:
    """Read on every request so RATE_LIMIT changes apply without re-decorating."""
    return config.RATE_LIMIT

# --- Dependency Functions ---
def get_gateway(request: Request) -> TransactionGateway:
    """Dependency to get the transaction gateway from the application state."""
    gateway = getattr(request.app.state, "gateway", None)
    if gateway is None:
        logger.error("Transaction gateway not found in application state. Check MongoDB connection.")
        raise HTTPException(status_code=503, detail="Database service not available.")
    return gateway

def get_owner_id(request: Request) -> str:
    """Dependency resolving the caller's owner id."""
    try:
        return resolve_owner(request.headers.get(OWNER_HEADER), getattr(request.app.state, "default_owner_id", None))
    except Unauthenticated as e:
        raise HTTPException(status_code=401, detail=str(e))

GatewayDep = Annotated[TransactionGateway, Depends(get_gateway)]
OwnerDep = Annotated[str, Depends(get_owner_id)]
# Field rules live in the TransactionCreate/TransactionUpdate models; the
# service validates against them with the app's zero-amount setting.
PayloadBody = Annotated[Dict[str, Any], Body(...)]

def _allow_zero(request: Request) -> bool:
    return getattr(request.app.state, "allow_zero_amount", False)

def _http_error(error: TransactionError) -> HTTPException:
    """Maps a domain error onto the HTTP status the API reports for it."""
    if isinstance(error, ValidationError):
        return HTTPException(status_code=400, detail={"message": "Validation failed", "errors": error.violations})
    if isinstance(error, InvalidIdentifier):
        return HTTPException(status_code=400, detail="Invalid ID")
    if isinstance(error, NotFound):
        return HTTPException(status_code=404, detail="Transaction not found")
    if isinstance(error, Unauthenticated):
        return HTTPException(status_code=401, detail=str(error))
    if isinstance(error, StorageError):
        logger.error(f"Storage error: {error}", exc_info=error)
    return HTTPException(status_code=500, detail="An unexpected server error occurred.")

# --- API Routes ---

@router.get("/transactions", response_model=List[StoredTransaction], summary="List Transactions", description="Retrieves the caller's transactions sorted by date descending.")
@limiter.limit(current_rate_limit)
async def list_transactions(
    request: Request,
    gateway: GatewayDep,
    owner_id: OwnerDep,
    tx_type: Optional[str] = Query(None, alias="type", description="Filter by 'income' or 'expense'."),
) -> List[StoredTransaction]:
    logger.info(f"GET /transactions called for owner {owner_id} (type filter: {tx_type}).")
    try:
        return await transactions_service.list_transactions(gateway, owner_id, tx_type=tx_type)
    except TransactionError as e:
        raise _http_error(e)
    except Exception as e:
        logger.exception(f"Unexpected error fetching transactions: {e}")
        raise HTTPException(status_code=500, detail="An unexpected server error occurred while fetching transactions.")

@router.post("/transactions", response_model=StoredTransaction, status_code=201, summary="Create Transaction")
@limiter.limit(current_rate_limit)
async def create_transaction(request: Request, payload: PayloadBody, gateway: GatewayDep, owner_id: OwnerDep) -> StoredTransaction:
    """Validates the payload and stores a new transaction for the caller."""
    logger.info(f"POST /transactions called for owner {owner_id}.")
    try:
        return await transactions_service.create_transaction(gateway, payload, owner_id, allow_zero=_allow_zero(request))
    except TransactionError as e:
        raise _http_error(e)
    except Exception as e:
        logger.exception(f"Unexpected error adding transaction: {e}")
        raise HTTPException(status_code=500, detail="An unexpected server error occurred while adding the transaction.")

@router.get("/transactions/{transaction_id}", response_model=StoredTransaction, summary="Get Transaction")
@limiter.limit(current_rate_limit)
async def get_transaction(request: Request, transaction_id: str, gateway: GatewayDep, owner_id: OwnerDep) -> StoredTransaction:
    logger.info(f"GET /transactions/{transaction_id} called for owner {owner_id}.")
    try:
        return await transactions_service.get_transaction(gateway, transaction_id, owner_id)
    except TransactionError as e:
        raise _http_error(e)
    except Exception as e:
        logger.exception(f"Unexpected error fetching transaction {transaction_id}: {e}")
        raise HTTPException(status_code=500, detail="An unexpected server error occurred while fetching the transaction.")

@router.put("/transactions/{transaction_id}", response_model=StoredTransaction, summary="Update Transaction", description="Replaces only the supplied fields of a transaction.")
@limiter.limit(current_rate_limit)
async def update_transaction(request: Request, transaction_id: str, payload: PayloadBody, gateway: GatewayDep, owner_id: OwnerDep) -> StoredTransaction:
    logger.info(f"PUT /transactions/{transaction_id} called for owner {owner_id}.")
    try:
        return await transactions_service.update_transaction(
            gateway, transaction_id, owner_id, payload, allow_zero=_allow_zero(request)
        )
    except TransactionError as e:
        raise _http_error(e)
    except Exception as e:
        logger.exception(f"Unexpected error updating transaction {transaction_id}: {e}")
        raise HTTPException(status_code=500, detail="An unexpected server error occurred while updating the transaction.")

@router.delete("/transactions/{transaction_id}", status_code=204, response_class=Response, summary="Delete Transaction")
@limiter.limit(current_rate_limit)
async def delete_transaction(request: Request, transaction_id: str, gateway: GatewayDep, owner_id: OwnerDep) -> Response:
    logger.warning(f"DELETE /transactions/{transaction_id} called for owner {owner_id}.")
    try:
        await transactions_service.delete_transaction(gateway, transaction_id, owner_id)
    except TransactionError as e:
        raise _http_error(e)
    except Exception as e:
        logger.exception(f"Unexpected error deleting transaction {transaction_id}: {e}")
        raise HTTPException(status_code=500, detail="An unexpected server error occurred while deleting the transaction.")
    return Response(status_code=204)

@router.get("/health", summary="Health Check")
async def health(request: Request):
    """Reports whether the database answers a ping."""
    gateway = getattr(request.app.state, "gateway", None)
    if gateway is None:
        raise HTTPException(status_code=503, detail={"status": "unavailable", "database": "not configured"})
    try:
        await gateway.ping()
    except StorageError as e:
        logger.error(f"Health check failed: {e}")
        raise HTTPException(status_code=503, detail={"status": "unavailable", "database": "unreachable"})
    return {"status": "ok", "database": "connected"}
