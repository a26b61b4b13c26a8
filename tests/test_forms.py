"""Test the record form engine: defaults, derived fields, validation."""
from datetime import date

import pytest

from propdesk.models import EntityKind, Property, Tenant
from propdesk.services.forms import (
    FormContext, FormValidationError, form_from_record, normalize, on_change,
    prepare_submission, stay_end_date, validate,
)
from propdesk.services.timeframe import add_months

PROPERTIES = [
    Property(id="p1", name="Sunset Villa", monthly_rent=150000),
    Property(id="p2", name="Kigali Heights A1", monthly_rent=200000),
]
TENANTS = [
    Tenant(id="t1", name="Alice", phone="0788111111", email="alice@example.com"),
]
CONTEXT = FormContext(properties=PROPERTIES, tenants=TENANTS)


def _tenant(**overrides):
    values = {
        "name": "Carol Ingabire",
        "phone": "0788333333",
        "idNumber": "1199280012345678",
        "propertyId": "p2",
        "status": "active",
    }
    values.update(overrides)
    return values


# ── Derived fields ──

def test_add_months_clamps_to_month_end():
    assert add_months(date(2024, 1, 15), 3) == date(2024, 4, 15)
    assert add_months(date(2024, 1, 31), 1) == date(2024, 2, 29)
    assert add_months(date(2024, 11, 30), 3) == date(2025, 2, 28)


def test_stay_end_date_requires_both_inputs():
    assert stay_end_date("2024-01-15", 3) == date(2024, 4, 15)
    assert stay_end_date("", 3) is None
    assert stay_end_date("2024-01-15", "") is None


def test_stay_end_and_total_follow_edits():
    form = normalize(EntityKind.TENANT, _tenant(payment="150000"), CONTEXT)
    form = on_change(EntityKind.TENANT, form, "stayStartDate", "2024-01-15", CONTEXT)
    form = on_change(EntityKind.TENANT, form, "monthsPaid", "3", CONTEXT)
    assert form["stayEndDate"] == "2024-04-15"
    assert form["totalAmount"] == 450000

    form = on_change(EntityKind.TENANT, form, "monthsPaid", "", CONTEXT)
    assert form["stayEndDate"] == ""
    assert form["totalAmount"] == ""


def test_selecting_property_fills_payment():
    form = normalize(EntityKind.TENANT, {}, CONTEXT)
    form = on_change(EntityKind.TENANT, form, "monthsPaid", "2", CONTEXT)
    form = on_change(EntityKind.TENANT, form, "propertyId", "p1", CONTEXT)
    assert form["payment"] == 150000
    assert form["totalAmount"] == 300000

    form = on_change(EntityKind.TENANT, form, "propertyId", "missing", CONTEXT)
    assert form["payment"] == ""


def test_derived_fields_cannot_be_edited():
    with pytest.raises(ValueError):
        on_change(EntityKind.TENANT, {}, "stayEndDate", "2030-01-01", CONTEXT)


def test_submitted_derived_values_are_recomputed():
    payload = prepare_submission(
        EntityKind.TENANT,
        _tenant(payment="200000", monthsPaid="1", stayStartDate="2024-03-01",
                stayEndDate="2099-01-01", totalAmount="1"),
        CONTEXT,
    )
    assert payload["stayEndDate"] == "2024-04-01"
    assert payload["totalAmount"] == 200000


# ── Defaults ──

def test_defaults():
    assert normalize(EntityKind.MAINTENANCE, {})["priority"] == "medium"
    assert normalize(EntityKind.MAINTENANCE, {})["status"] == "pending"
    assert normalize(EntityKind.PROPERTY, {})["type"] == "house"
    assert normalize(EntityKind.TENANT, {})["paymentMethod"] == ""


# ── Validation ──

def test_valid_tenant_has_no_errors():
    assert validate(EntityKind.TENANT, normalize(EntityKind.TENANT, _tenant()), CONTEXT) == {}


def test_phone_must_be_ten_digits():
    errors = validate(EntityKind.TENANT, _tenant(phone="07881"), CONTEXT)
    assert errors["phone"] == "Phone number must be exactly 10 digits"
    errors = validate(EntityKind.TENANT, _tenant(phone="078811111a"), CONTEXT)
    assert "phone" in errors
    assert "phone" not in validate(EntityKind.TENANT, _tenant(phone="1234567890"), CONTEXT)


def test_id_number_must_be_sixteen_digits():
    errors = validate(EntityKind.TENANT, _tenant(idNumber="119928001234567"), CONTEXT)
    assert errors["idNumber"] == "ID number must be exactly 16 digits"


def test_email_format():
    errors = validate(EntityKind.TENANT, _tenant(email="not-an-email"), CONTEXT)
    assert errors["email"] == "Enter a valid email address"


def test_duplicate_phone_and_email_rejected():
    errors = validate(EntityKind.TENANT, _tenant(phone="0788111111", email="ALICE@example.com"), CONTEXT)
    assert errors["phone"] == "Phone number is already registered to another tenant"
    assert errors["email"] == "Email is already registered to another tenant"


def test_editing_tenant_may_keep_own_phone():
    context = FormContext(properties=PROPERTIES, tenants=TENANTS, editing_id="t1")
    errors = validate(EntityKind.TENANT, _tenant(phone="0788111111"), context)
    assert "phone" not in errors


def test_required_fields():
    with pytest.raises(FormValidationError) as exc:
        prepare_submission(EntityKind.PROPERTY, {"name": "  "})
    assert exc.value.errors == {
        "name": "Property Name is required",
        "address": "Address is required",
    }


def test_negative_amount_rejected():
    errors = validate(EntityKind.PROPERTY, {"name": "A", "address": "B", "type": "house",
                                            "status": "active", "monthlyRent": "-5"})
    assert errors["monthlyRent"] == "Monthly Rent cannot be less than 0"


def test_months_paid_must_be_whole_number():
    errors = validate(EntityKind.TENANT, _tenant(monthsPaid="1.5"), CONTEXT)
    assert errors["monthsPaid"] == "Months Paid must be a whole number"


def test_choice_outside_options_rejected():
    errors = validate(EntityKind.TENANT, _tenant(status="archived"), CONTEXT)
    assert errors == {"status": "Status must be one of: active, inactive, evicted"}


def test_lease_end_must_follow_start():
    values = {"propertyId": "p1", "tenantId": "t1", "startDate": "2024-06-01",
              "endDate": "2024-05-01", "monthlyRent": "150000", "status": "active"}
    errors = validate(EntityKind.LEASE, values)
    assert errors == {"endDate": "End date must be after the start date"}


def test_payload_is_typed_and_drops_blanks():
    payload = prepare_submission(EntityKind.PROPERTY, {
        "name": " Sunset Villa ", "address": "KG 11 Ave", "type": "house",
        "status": "active", "monthlyRent": "150000", "unknown": "x",
    })
    assert payload == {
        "name": "Sunset Villa", "address": "KG 11 Ave", "type": "house",
        "status": "active", "monthlyRent": 150000.0,
    }


def test_tenant_payload_is_typed():
    payload = prepare_submission(
        EntityKind.TENANT,
        _tenant(payment="150000", monthsPaid="2", paymentDate="2024-02-01T08:00:00Z",
                paymentMethod="bank", email=""),
        CONTEXT,
    )
    assert payload["monthsPaid"] == 2
    assert payload["payment"] == 150000
    assert payload["paymentDate"] == "2024-02-01"
    assert payload["paymentMethod"] == "bank"
    assert "email" not in payload
    assert "stayEndDate" not in payload


def test_form_from_record():
    tenant = Tenant.model_validate({
        "id": "t1", "name": "Alice", "phone": "0788111111", "propertyId": "p1",
        "payment": 150000, "monthsPaid": 2, "stayStartDate": "2024-01-15T00:00:00Z",
    })
    form = form_from_record(EntityKind.TENANT, tenant)
    assert form["stayStartDate"] == "2024-01-15"
    assert form["stayEndDate"] == "2024-03-15"
    assert form["totalAmount"] == 300000
    assert "id" not in form
