from datetime import datetime, timezone

import pytest

from models.transaction import DEFAULT_CATEGORY
from services.errors import ValidationError
from models.transaction import parse_amount
from services.validation import parse_type_filter, validate_create, validate_update
from tests.conftest import OWNER_A, make_payload


def _fields(exc_info):
    return [v["field"] for v in exc_info.value.violations]


def test_create_normalizes_a_valid_payload():
    draft = validate_create(make_payload(description="  Rent  ", category="  Housing "), OWNER_A)

    assert draft.owner_id == OWNER_A
    assert draft.amount == 1200.0
    assert draft.description == "Rent"
    assert draft.date == datetime(2024, 1, 5, tzinfo=timezone.utc)
    assert draft.type == "expense"
    assert draft.category == "Housing"


def test_create_rounds_amount_half_up_to_cents():
    draft = validate_create(make_payload(amount=1200.555), OWNER_A)
    assert draft.amount == 1200.56


@pytest.mark.parametrize("category", [None, "", "   "])
def test_create_defaults_blank_category(category):
    draft = validate_create(make_payload(category=category), OWNER_A)
    assert draft.category == DEFAULT_CATEGORY


def test_create_defaults_missing_category():
    payload = make_payload()
    payload.pop("category", None)
    assert validate_create(payload, OWNER_A).category == DEFAULT_CATEGORY


def test_create_defaults_missing_date_to_now():
    payload = make_payload()
    del payload["date"]
    before = datetime.now(timezone.utc)
    draft = validate_create(payload, OWNER_A)
    assert before <= draft.date <= datetime.now(timezone.utc)


def test_create_ignores_owner_and_id_in_payload():
    draft = validate_create(make_payload(ownerId="intruder", userId="intruder", id="abc", _id="abc"), OWNER_A)
    assert draft.owner_id == OWNER_A
    assert "id" not in draft.model_dump()


@pytest.mark.parametrize("amount", [-5, 0, "0", 0.001, "abc", "1_000", "NaN", True, None, [], float("nan"), float("inf")])
def test_create_rejects_bad_amounts(amount):
    with pytest.raises(ValidationError) as exc_info:
        validate_create(make_payload(amount=amount), OWNER_A)
    assert _fields(exc_info) == ["amount"]


def test_zero_amount_allowed_when_configured():
    assert validate_create(make_payload(amount=0), OWNER_A, allow_zero=True).amount == 0.0
    with pytest.raises(ValidationError):
        validate_create(make_payload(amount=-1), OWNER_A, allow_zero=True)


def test_numeric_string_amount_is_accepted():
    assert parse_amount("19.999") == 20.0


@pytest.mark.parametrize("description", ["", "   ", "x" * 201, 42])
def test_create_rejects_bad_descriptions(description):
    with pytest.raises(ValidationError) as exc_info:
        validate_create(make_payload(description=description), OWNER_A)
    assert _fields(exc_info) == ["description"]


def test_description_of_exactly_200_characters_is_accepted():
    assert len(validate_create(make_payload(description="x" * 200), OWNER_A).description) == 200


@pytest.mark.parametrize("value", ["2024-13-01", "yesterday", 20240105])
def test_create_rejects_bad_dates(value):
    with pytest.raises(ValidationError) as exc_info:
        validate_create(make_payload(date=value), OWNER_A)
    assert _fields(exc_info) == ["date"]


def test_datetime_with_offset_is_converted_to_utc():
    draft = validate_create(make_payload(date="2024-01-05T10:00:00+02:00"), OWNER_A)
    assert draft.date == datetime(2024, 1, 5, 8, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize("tx_type", ["Income", "transfer", "", None])
def test_create_rejects_bad_types(tx_type):
    with pytest.raises(ValidationError) as exc_info:
        validate_create(make_payload(type=tx_type), OWNER_A)
    assert _fields(exc_info) == ["type"]


def test_create_rejects_non_string_category():
    with pytest.raises(ValidationError) as exc_info:
        validate_create(make_payload(category=7), OWNER_A)
    assert _fields(exc_info) == ["category"]


def test_create_collects_every_violation_in_field_order():
    with pytest.raises(ValidationError) as exc_info:
        validate_create({"date": "nope", "category": 1}, OWNER_A)
    assert _fields(exc_info) == ["amount", "description", "date", "type", "category"]


@pytest.mark.parametrize("payload", [None, [], "amount=5"])
def test_non_object_payload_is_rejected(payload):
    with pytest.raises(ValidationError) as exc_info:
        validate_create(payload, OWNER_A)
    assert _fields(exc_info) == ["body"]


def test_update_returns_only_supplied_fields():
    changes = validate_update({"amount": "10.005", "description": " Coffee "}, OWNER_A)
    assert changes == {"amount": 10.01, "description": "Coffee"}


def test_update_drops_identity_fields():
    assert validate_update({"ownerId": OWNER_A, "id": "x", "createdAt": "2024-01-01"}, OWNER_A) == {}


def test_update_rejects_null_required_fields():
    with pytest.raises(ValidationError) as exc_info:
        validate_update({"amount": None, "type": None}, OWNER_A)
    assert _fields(exc_info) == ["amount", "type"]


def test_update_null_category_resets_to_default():
    assert validate_update({"category": None}, OWNER_A) == {"category": DEFAULT_CATEGORY}


def test_update_rejects_empty_date():
    with pytest.raises(ValidationError) as exc_info:
        validate_update({"date": ""}, OWNER_A)
    assert _fields(exc_info) == ["date"]


def test_type_filter():
    assert parse_type_filter(None) is None
    assert parse_type_filter("income") == "income"
    with pytest.raises(ValidationError):
        parse_type_filter("both")


@pytest.mark.parametrize("value", ["0001-01-01T00:00:00+01:00", "9999-12-31T23:00:00-05:00"])
def test_dates_shifted_out_of_range_are_violations(value):
    with pytest.raises(ValidationError) as exc_info:
        validate_create(make_payload(date=value), OWNER_A)
    assert exc_info.value.violations == [{"field": "date", "message": "Date is out of range."}]

    with pytest.raises(ValidationError) as exc_info:
        validate_update({"date": value}, OWNER_A)
    assert exc_info.value.violations == [{"field": "date", "message": "Date is out of range."}]


@pytest.mark.parametrize("value", ["", "   ", None])
def test_create_treats_blank_date_as_missing(value):
    before = datetime.now(timezone.utc)
    draft = validate_create(make_payload(date=value), OWNER_A)
    assert before <= draft.date <= datetime.now(timezone.utc)


def test_update_rejects_blank_date():
    with pytest.raises(ValidationError) as exc_info:
        validate_update({"date": "   "}, OWNER_A)
    assert _fields(exc_info) == ["date"]


def test_underscored_amount_is_rejected_on_update():
    with pytest.raises(ValidationError) as exc_info:
        validate_update({"amount": "1_000"}, OWNER_A)
    assert _fields(exc_info) == ["amount"]
