"""
Form engine for the four record editors.

Each entity kind has a pydantic form model that validates a submission and
produces the API payload, plus a FormSchema of FieldSpecs (wire name, label,
input kind, choices) that the screens render from. One engine normalizes,
derives and validates all four forms.

Derived fields (never edited directly):
- tenant stayEndDate = stayStartDate + monthsPaid months
- tenant totalAmount = payment * monthsPaid
- tenant payment is auto-filled from the selected property's monthlyRent
"""
from dataclasses import dataclass, field
from datetime import date
from typing import Annotated, Any, Callable, Dict, List, Optional, Tuple

from pydantic import (
    BaseModel, BeforeValidator, ConfigDict, EmailStr, Field, TypeAdapter,
    ValidationError, ValidationInfo, field_validator, model_validator,
)
from pydantic.alias_generators import to_camel
from pydantic_core import PydanticCustomError

from propdesk.models import (
    EntityKind, IsoDate, LeaseStatus, MaintenancePriority, MaintenanceStatus,
    PaymentMethod, Property, PropertyStatus, PropertyType, RequiredIsoDate,
    Tenant, TenantStatus,
)
from propdesk.services.timeframe import add_months, format_date_iso, parse_date

# Error types raised by the form models' own rules; their message is shown as is
RULE_ERRORS = ("duplicate", "date_order")

FORMAT_MESSAGES = {
    "phone": "Phone number must be exactly 10 digits",
    "id_number": "ID number must be exactly 16 digits",
    "email": "Enter a valid email address",
}


class FormValidationError(Exception):
    """Field-level validation errors; the form is never submitted."""

    def __init__(self, errors: Dict[str, str]):
        super().__init__("; ".join(f"{k}: {v}" for k, v in errors.items()))
        self.errors = errors


@dataclass
class FormContext:
    """Data the form needs beyond its own values."""
    properties: List[Property] = field(default_factory=list)
    tenants: List[Tenant] = field(default_factory=list)
    editing_id: Optional[str] = None


@dataclass(frozen=True)
class FieldSpec:
    """How a field is rendered; validation lives on the form models."""
    name: str
    label: str
    kind: str = "text"  # text | phone | id_number | email | number | integer | date | choice | reference
    required: bool = False
    choices: Tuple[str, ...] = ()
    derived: bool = False
    default: Any = ""


@dataclass(frozen=True)
class FormSchema:
    kind: EntityKind
    fields: Tuple[FieldSpec, ...]
    derive: Optional[Callable[[Dict[str, Any], FormContext], Dict[str, Any]]] = None

    def field_named(self, name: str) -> FieldSpec:
        for f in self.fields:
            if f.name == name:
                return f
        raise KeyError(name)

    def defaults(self) -> Dict[str, Any]:
        values: Dict[str, Any] = {}
        for f in self.fields:
            if f.default != "" or f.kind != "choice" or not f.required:
                values[f.name] = f.default
            else:
                values[f.name] = f.choices[0]
        return values


def _choices(enum_cls) -> Tuple[str, ...]:
    return tuple(e.value for e in enum_cls)


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _none_if_blank(value: Any) -> Any:
    return None if _blank(value) else value


# =========================================================================
# Form models
# =========================================================================

Blank = BeforeValidator(_none_if_blank)

RequiredText = Annotated[str, Blank]
Text = Annotated[Optional[str], Blank]
Phone = Annotated[str, Blank, Field(pattern=r"^\d{10}$")]
IdNumber = Annotated[str, Blank, Field(pattern=r"^\d{16}$")]
Email = Annotated[Optional[EmailStr], Blank]
Amount = Annotated[Optional[Annotated[float, Field(ge=0)]], Blank]
RequiredAmount = Annotated[float, Blank, Field(ge=0)]
Count = Annotated[Optional[Annotated[int, Field(ge=0)]], Blank]


class FormModel(BaseModel):
    """Base for the record forms: camelCase input, API payload out."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        use_enum_values=True,
        coerce_numbers_to_str=True,
    )

    def payload(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


def _other_tenants(info: ValidationInfo) -> List[Tenant]:
    context = (info.context or {}).get("form")
    if context is None:
        return []
    return [t for t in context.tenants if t.id != context.editing_id]


class PropertyForm(FormModel):
    name: RequiredText
    address: RequiredText
    type: Annotated[PropertyType, Blank]
    status: Annotated[PropertyStatus, Blank]
    monthly_rent: Amount = None


class TenantForm(FormModel):
    name: RequiredText
    phone: Phone
    id_number: IdNumber
    email: Email = None
    address: Text = None
    property_id: RequiredText
    status: Annotated[TenantStatus, Blank]
    payment: Amount = None
    payment_date: IsoDate = None
    payment_method: Annotated[Optional[PaymentMethod], Blank] = None
    months_paid: Count = None
    stay_start_date: IsoDate = None
    stay_end_date: IsoDate = None
    total_amount: Amount = None

    @field_validator("phone")
    @classmethod
    def phone_not_taken(cls, value: str, info: ValidationInfo) -> str:
        if any(t.phone == value for t in _other_tenants(info)):
            raise PydanticCustomError("duplicate", "Phone number is already registered to another tenant")
        return value

    @field_validator("email")
    @classmethod
    def email_not_taken(cls, value: Optional[str], info: ValidationInfo) -> Optional[str]:
        if value and any((t.email or "").lower() == value.lower() for t in _other_tenants(info)):
            raise PydanticCustomError("duplicate", "Email is already registered to another tenant")
        return value

    @model_validator(mode="after")
    def derive_stay(self) -> "TenantForm":
        if self.stay_start_date is not None and self.months_paid is not None:
            self.stay_end_date = add_months(self.stay_start_date, self.months_paid)
        else:
            self.stay_end_date = None
        if self.payment is not None and self.months_paid is not None:
            self.total_amount = self.payment * self.months_paid
        else:
            self.total_amount = None
        return self


class LeaseForm(FormModel):
    property_id: RequiredText
    tenant_id: RequiredText
    start_date: RequiredIsoDate
    end_date: RequiredIsoDate
    monthly_rent: RequiredAmount
    status: Annotated[LeaseStatus, Blank]
    notes: Text = None

    @field_validator("end_date")
    @classmethod
    def ends_after_start(cls, value: date, info: ValidationInfo) -> date:
        start = info.data.get("start_date")
        if start is not None and value <= start:
            raise PydanticCustomError("date_order", "End date must be after the start date")
        return value


class MaintenanceForm(FormModel):
    title: RequiredText
    description: RequiredText
    priority: Annotated[MaintenancePriority, Blank]
    property_id: RequiredText
    cost: Amount = None
    scheduled_date: IsoDate = None
    completed_date: IsoDate = None
    notes: Text = None
    status: Annotated[MaintenanceStatus, Blank]


FORM_MODELS = {
    EntityKind.PROPERTY: PropertyForm,
    EntityKind.TENANT: TenantForm,
    EntityKind.LEASE: LeaseForm,
    EntityKind.MAINTENANCE: MaintenanceForm,
}


# =========================================================================
# Derived fields
# =========================================================================

_FLOAT = TypeAdapter(float)
_INT = TypeAdapter(int)


def _number(adapter: TypeAdapter, value: Any) -> Any:
    """Lenient read of a half-filled form value; None when it is not a number yet."""
    if _blank(value):
        return None
    try:
        return adapter.validate_python(value)
    except ValidationError:
        return None


def stay_end_date(start: Any, months_paid: Any) -> Optional[date]:
    """stayStartDate + monthsPaid months; None when either is missing."""
    start_date = parse_date(start)
    months = _number(_INT, months_paid)
    if start_date is None or months is None:
        return None
    return add_months(start_date, months)


def rent_for_property(property_id: Any, properties: List[Property]) -> Optional[float]:
    for prop in properties:
        if prop.id == property_id:
            return prop.monthly_rent
    return None


def _derive_tenant(values: Dict[str, Any], context: FormContext) -> Dict[str, Any]:
    end = stay_end_date(values.get("stayStartDate"), values.get("monthsPaid"))
    payment = _number(_FLOAT, values.get("payment"))
    months = _number(_INT, values.get("monthsPaid"))
    return {
        "stayEndDate": format_date_iso(end) if end else "",
        "totalAmount": payment * months if payment is not None and months is not None else "",
    }


# =========================================================================
# Screen layout
# =========================================================================


FORM_SCHEMAS: Dict[EntityKind, FormSchema] = {
    EntityKind.PROPERTY: FormSchema(
        kind=EntityKind.PROPERTY,
        fields=(
            FieldSpec("name", "Property Name", required=True),
            FieldSpec("address", "Address", required=True),
            FieldSpec("type", "Type", "choice", required=True, choices=_choices(PropertyType)),
            FieldSpec("status", "Status", "choice", required=True, choices=_choices(PropertyStatus)),
            FieldSpec("monthlyRent", "Monthly Rent", "number"),
        ),
    ),
    EntityKind.TENANT: FormSchema(
        kind=EntityKind.TENANT,
        fields=(
            FieldSpec("name", "Full Name", required=True),
            FieldSpec("phone", "Phone Number", "phone", required=True),
            FieldSpec("idNumber", "ID Number", "id_number", required=True),
            FieldSpec("email", "Email Address", "email"),
            FieldSpec("address", "Address"),
            FieldSpec("propertyId", "Property", "reference", required=True),
            FieldSpec("status", "Status", "choice", required=True, choices=_choices(TenantStatus)),
            FieldSpec("payment", "Payment Amount", "number"),
            FieldSpec("paymentDate", "Payment Date", "date"),
            FieldSpec("paymentMethod", "Payment Method", "choice", choices=_choices(PaymentMethod)),
            FieldSpec("monthsPaid", "Months Paid", "integer"),
            FieldSpec("stayStartDate", "Stay Start Date", "date"),
            FieldSpec("stayEndDate", "Stay End Date", "date", derived=True),
            FieldSpec("totalAmount", "Total Amount", "number", derived=True),
        ),
        derive=_derive_tenant,
    ),
    EntityKind.LEASE: FormSchema(
        kind=EntityKind.LEASE,
        fields=(
            FieldSpec("propertyId", "Property", "reference", required=True),
            FieldSpec("tenantId", "Tenant", "reference", required=True),
            FieldSpec("startDate", "Start Date", "date", required=True),
            FieldSpec("endDate", "End Date", "date", required=True),
            FieldSpec("monthlyRent", "Monthly Rent", "number", required=True),
            FieldSpec("status", "Status", "choice", required=True, choices=_choices(LeaseStatus)),
            FieldSpec("notes", "Notes"),
        ),
    ),
    EntityKind.MAINTENANCE: FormSchema(
        kind=EntityKind.MAINTENANCE,
        fields=(
            FieldSpec("title", "Title", required=True),
            FieldSpec("description", "Description", required=True),
            FieldSpec("priority", "Priority", "choice", required=True, choices=_choices(MaintenancePriority), default="medium"),
            FieldSpec("propertyId", "Property", "reference", required=True),
            FieldSpec("cost", "Cost", "number"),
            FieldSpec("scheduledDate", "Scheduled Date", "date"),
            FieldSpec("completedDate", "Completed Date", "date"),
            FieldSpec("notes", "Notes"),
            FieldSpec("status", "Status", "choice", required=True, choices=_choices(MaintenanceStatus)),
        ),
    ),
}


# =========================================================================
# Engine
# =========================================================================

def normalize(kind: EntityKind, values: Dict[str, Any], context: Optional[FormContext] = None) -> Dict[str, Any]:
    """Known fields only, strings stripped, derived fields recomputed."""
    schema = FORM_SCHEMAS[kind]
    context = context or FormContext()
    known = {f.name for f in schema.fields}
    out = schema.defaults()
    for name, value in values.items():
        if name in known:
            out[name] = value.strip() if isinstance(value, str) else value
    if schema.derive is not None:
        out.update(schema.derive(out, context))
    return out


def on_change(
    kind: EntityKind,
    values: Dict[str, Any],
    name: str,
    value: Any,
    context: Optional[FormContext] = None,
) -> Dict[str, Any]:
    """Apply one field edit and re-evaluate everything that depends on it."""
    context = context or FormContext()
    schema = FORM_SCHEMAS[kind]
    if schema.field_named(name).derived:
        raise ValueError(f"{name} is derived and cannot be edited")
    updated = dict(values)
    updated[name] = value
    if kind == EntityKind.TENANT and name == "propertyId":
        rent = rent_for_property(value, context.properties)
        updated["payment"] = rent if rent is not None else ""
    return normalize(kind, updated, context)


def _message(field_spec: FieldSpec, error: Dict[str, Any], value: Any) -> str:
    """Operator-facing text for one pydantic error."""
    label = field_spec.label
    if _blank(value):
        return f"{label} is required"
    if error["type"] in RULE_ERRORS:
        return error["msg"]
    if field_spec.kind in FORMAT_MESSAGES:
        return FORMAT_MESSAGES[field_spec.kind]
    if error["type"] == "greater_than_equal":
        return f"{label} cannot be less than {error['ctx']['ge']:g}"
    if field_spec.kind == "number":
        return f"{label} must be a number"
    if field_spec.kind == "integer":
        return f"{label} must be a whole number"
    if field_spec.kind == "date":
        return f"{label} must be a date (YYYY-MM-DD)"
    if field_spec.kind == "choice":
        return f"{label} must be one of: {', '.join(field_spec.choices)}"
    return error["msg"]


def _check(
    kind: EntityKind, values: Dict[str, Any], context: FormContext
) -> Tuple[Optional[FormModel], Dict[str, str]]:
    schema = FORM_SCHEMAS[kind]
    try:
        form = FORM_MODELS[kind].model_validate(values, context={"form": context})
    except ValidationError as e:
        errors: Dict[str, str] = {}
        for error in e.errors():
            name = str(error["loc"][0])
            errors.setdefault(name, _message(schema.field_named(name), error, values.get(name)))
        return None, errors
    return form, {}


def validate(kind: EntityKind, values: Dict[str, Any], context: Optional[FormContext] = None) -> Dict[str, str]:
    """Return {field: message}; empty when the form may be submitted."""
    _, errors = _check(kind, values, context or FormContext())
    return errors


def prepare_submission(
    kind: EntityKind, values: Dict[str, Any], context: Optional[FormContext] = None
) -> Dict[str, Any]:
    """
    Normalize, derive and validate a form; return the API payload.
    Raises FormValidationError without touching the network.
    """
    context = context or FormContext()
    form, errors = _check(kind, normalize(kind, values, context), context)
    if errors:
        raise FormValidationError(errors)
    return form.payload()


def form_from_record(kind: EntityKind, record: Any) -> Dict[str, Any]:
    """Prefill an edit form from an existing record."""
    return normalize(kind, record.to_wire())
