"""Pydantic models for transaction records"""
from pydantic import BaseModel, ConfigDict, Field, StringConstraints, ValidationInfo, field_validator
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Annotated, Any, Literal, Optional
import math

DEFAULT_CATEGORY = "Uncategorized"
DESCRIPTION_MAX_LENGTH = 200

TransactionType = Literal["income", "expense"]
Description = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=DESCRIPTION_MAX_LENGTH)]

_CENTS = Decimal("0.01")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def parse_amount(value: Any, allow_zero: bool = False) -> float:
    """Parse an amount and round it half-up to two decimal places."""
    if isinstance(value, bool) or not isinstance(value, (int, float, str, Decimal)):
        raise ValueError("Amount must be a number.")
    if isinstance(value, float) and not math.isfinite(value):
        raise ValueError("Amount must be a finite number.")
    if isinstance(value, str) and "_" in value:
        raise ValueError("Amount must be a plain decimal number.")
    try:
        # str() keeps the decimal text the client sent, so 1200.555 rounds up
        parsed = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValueError("Amount must be a number.")
    if not parsed.is_finite():
        raise ValueError("Amount must be a finite number.")

    if allow_zero and parsed < 0:
        raise ValueError("Amount cannot be negative.")
    if not allow_zero and parsed <= 0:
        raise ValueError("Amount must be greater than zero.")

    try:
        rounded = parsed.quantize(_CENTS, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise ValueError("Amount is too large.")
    if not allow_zero and rounded <= 0:
        raise ValueError("Amount must be at least 0.01.")
    return float(rounded)


def parse_date(value: Any) -> datetime:
    """Accept ISO-8601 dates/datetimes; naive values are taken as UTC."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, datetime.min.time())
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip())
        except ValueError:
            raise ValueError(f"Date '{value}' is not a valid ISO-8601 date.")
    else:
        raise ValueError("Date must be an ISO-8601 string.")

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    try:
        return parsed.astimezone(timezone.utc)
    except OverflowError:
        raise ValueError("Date is out of range.")


def _allow_zero(info: ValidationInfo) -> bool:
    return bool(info.context and info.context.get("allow_zero"))


class TransactionCreate(BaseModel):
    """
    Request body for creating a transaction. Owner and id fields sent by the
    client are ignored; a missing or blank date means "now".
    """
    amount: float
    description: Description
    date: datetime = Field(default_factory=_utcnow)
    type: TransactionType
    category: Optional[str] = DEFAULT_CATEGORY

    @field_validator("amount", mode="before")
    @classmethod
    def normalize_amount(cls, value: Any, info: ValidationInfo) -> float:
        return parse_amount(value, allow_zero=_allow_zero(info))

    @field_validator("date", mode="before")
    @classmethod
    def normalize_date(cls, value: Any) -> datetime:
        if _is_blank(value):
            return _utcnow()
        return parse_date(value)

    @field_validator("category")
    @classmethod
    def default_category(cls, value: Optional[str]) -> str:
        return (value or "").strip() or DEFAULT_CATEGORY


class TransactionUpdate(BaseModel):
    """
    Partial update body. Only fields the client sent are applied
    (`model_dump(exclude_unset=True)`); null is rejected except for category.
    """
    amount: Optional[float] = None
    description: Optional[Description] = None
    date: Optional[datetime] = None
    type: Optional[TransactionType] = None
    category: Optional[str] = None

    @field_validator("description", "type", mode="before")
    @classmethod
    def reject_null(cls, value: Any, info: ValidationInfo) -> Any:
        if value is None:
            raise ValueError(f"{info.field_name.capitalize()} cannot be null.")
        return value

    @field_validator("amount", mode="before")
    @classmethod
    def normalize_amount(cls, value: Any, info: ValidationInfo) -> float:
        if value is None:
            raise ValueError("Amount cannot be null.")
        return parse_amount(value, allow_zero=_allow_zero(info))

    @field_validator("date", mode="before")
    @classmethod
    def normalize_date(cls, value: Any) -> datetime:
        if value is None:
            raise ValueError("Date cannot be null.")
        if _is_blank(value):
            raise ValueError("Date cannot be empty.")
        return parse_date(value)

    @field_validator("category")
    @classmethod
    def default_category(cls, value: Optional[str]) -> str:
        return (value or "").strip() or DEFAULT_CATEGORY


class TransactionDraft(BaseModel):
    """
    A validated, normalized transaction that has not been stored yet.
    """
    model_config = ConfigDict(populate_by_name=True)

    owner_id: str = Field(..., alias="ownerId")
    amount: float = Field(..., ge=0)
    description: str = Field(..., min_length=1, max_length=DESCRIPTION_MAX_LENGTH)
    date: datetime
    type: TransactionType
    category: str = DEFAULT_CATEGORY


class StoredTransaction(TransactionDraft):
    """
    A transaction as returned by the persistence gateway.
    """
    id: str
    created_at: Optional[datetime] = Field(None, alias="createdAt")
    updated_at: Optional[datetime] = Field(None, alias="updatedAt")
