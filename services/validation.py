"""
Payload validation on top of the TransactionCreate/TransactionUpdate models.

Both entry points collect every violation before failing, so a client gets
the full list of problems in one response. Violations are reported in field
order: amount, description, date, type, category.
"""
import logging
from typing import Any, Dict, Iterable, List, Optional

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from models.transaction import TransactionCreate, TransactionDraft, TransactionType, TransactionUpdate
from services.errors import ValidationError

logger = logging.getLogger(__name__)

_type_adapter = TypeAdapter(TransactionType)


def violations_from_errors(errors: Iterable[Dict[str, Any]]) -> List[Dict[str, str]]:
    """Flatten pydantic error dicts into `{field, message}` pairs."""
    violations = []
    for error in errors:
        # FastAPI prefixes body errors with "body"; JSON decode errors add a position
        names = [part for part in error.get("loc", ()) if isinstance(part, str) and part != "body"]
        message = error.get("msg", "Invalid value.")
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        violations.append({"field": names[0] if names else "body", "message": message})
    return violations


def _ensure_mapping(payload: Any) -> Dict[str, Any]:
    if not isinstance(payload, dict):
        raise ValidationError([{"field": "body", "message": "Request body must be a JSON object."}])
    return payload


def validate_create(payload: Any, owner_id: str, allow_zero: bool = False) -> TransactionDraft:
    """
    Validate a full payload and build a draft owned by `owner_id`.

    Any owner or id supplied in the payload is ignored. A missing date
    defaults to the current time.
    """
    payload = _ensure_mapping(payload)
    try:
        body = TransactionCreate.model_validate(payload, context={"allow_zero": allow_zero})
    except PydanticValidationError as e:
        violations = violations_from_errors(e.errors())
        logger.warning(f"Rejected transaction payload for owner {owner_id}: {violations}")
        raise ValidationError(violations) from e

    return TransactionDraft(owner_id=owner_id, **body.model_dump())


def validate_update(payload: Any, owner_id: str, allow_zero: bool = False) -> Dict[str, Any]:
    """
    Validate a partial payload. Only supplied fields are checked and returned;
    identity fields (id, ownerId, timestamps) are dropped.
    """
    payload = _ensure_mapping(payload)
    try:
        body = TransactionUpdate.model_validate(payload, context={"allow_zero": allow_zero})
    except PydanticValidationError as e:
        violations = violations_from_errors(e.errors())
        logger.warning(f"Rejected transaction update for owner {owner_id}: {violations}")
        raise ValidationError(violations) from e

    return body.model_dump(exclude_unset=True)


def parse_type_filter(value: Optional[str]) -> Optional[str]:
    """Validate the optional `type` query filter used when listing."""
    if value is None:
        return None
    try:
        return _type_adapter.validate_python(value)
    except PydanticValidationError as e:
        raise ValidationError([{"field": "type", "message": "Type must be either 'income' or 'expense'."}]) from e
