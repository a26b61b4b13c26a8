"""
Pydantic models for the remote property-management API.
Attributes are snake_case; the wire format is camelCase (aliases).
"""
from pydantic import BaseModel, BeforeValidator, ConfigDict
from pydantic.alias_generators import to_camel
from typing import Annotated, Any, Optional
from datetime import date
from enum import Enum


class EntityKind(str, Enum):
    """Record kinds managed by the back-office."""
    PROPERTY = "properties"
    TENANT = "tenants"
    LEASE = "leases"
    MAINTENANCE = "maintenance"


class SortOrder(str, Enum):
    ASC = "ASC"
    DESC = "DESC"


class UserRole(str, Enum):
    ADMIN = "admin"
    OWNER = "owner"


class PropertyType(str, Enum):
    HOUSE = "house"
    APARTMENT = "apartment"


class PropertyStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class TenantStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    EVICTED = "evicted"


class PaymentMethod(str, Enum):
    CASH = "cash"
    BANK = "bank"
    MOBILE_MONEY = "mobile_money"


class LeaseStatus(str, Enum):
    ACTIVE = "active"
    EXPIRED = "expired"
    TERMINATED = "terminated"


class MaintenanceStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class MaintenancePriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


def _date_part(value: Any) -> Any:
    """Accept full ISO timestamps for date-only fields ("2024-01-15T00:00:00Z")."""
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
        return value[:10]
    return value


IsoDate = Annotated[Optional[date], BeforeValidator(_date_part)]
RequiredIsoDate = Annotated[date, BeforeValidator(_date_part)]


class ApiModel(BaseModel):
    """Base for all wire models: camelCase aliases, unknown keys ignored."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        use_enum_values=True,
        coerce_numbers_to_str=True,
    )

    def to_wire(self, exclude: Optional[set] = None) -> dict:
        """Serialize with camelCase keys, dropping unset/None values."""
        return self.model_dump(
            by_alias=True, exclude_none=True, exclude=exclude, mode="json"
        )


class User(ApiModel):
    id: str
    name: str = ""
    phone: str = ""
    role: UserRole = UserRole.OWNER
    created_at: Optional[str] = None


class Property(ApiModel):
    id: str
    name: str
    address: str = ""
    type: PropertyType = PropertyType.HOUSE
    status: PropertyStatus = PropertyStatus.ACTIVE
    monthly_rent: Optional[float] = None
    owner_id: Optional[str] = None
    is_available: Optional[bool] = None  # Derived client-side, never persisted
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class Tenant(ApiModel):
    id: str
    name: str
    phone: str = ""
    id_number: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    property_id: Optional[str] = None
    status: TenantStatus = TenantStatus.ACTIVE
    payment: Optional[float] = None
    payment_date: IsoDate = None
    payment_method: Optional[PaymentMethod] = None
    months_paid: Optional[int] = 0
    total_amount: Optional[float] = None
    stay_start_date: IsoDate = None
    stay_end_date: IsoDate = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class Lease(ApiModel):
    id: str
    property_id: str
    tenant_id: str
    start_date: IsoDate = None
    end_date: IsoDate = None
    monthly_rent: Optional[float] = 0
    status: LeaseStatus = LeaseStatus.ACTIVE
    notes: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class Maintenance(ApiModel):
    id: str
    title: str
    description: str = ""
    property_id: Optional[str] = None
    status: MaintenanceStatus = MaintenanceStatus.PENDING
    priority: MaintenancePriority = MaintenancePriority.MEDIUM
    cost: Optional[float] = None
    scheduled_date: IsoDate = None
    completed_date: IsoDate = None
    notes: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class PaginationInfo(ApiModel):
    """Pagination block as reported by the API (or synthesized as a fallback)."""
    page: int = 1
    limit: int = 10
    total: int = 0
    total_pages: int = 0


class ApiResponse(ApiModel):
    """Response envelope shared by every endpoint."""
    success: bool = False
    message: str = ""
    data: Any = None
    pagination: Optional[PaginationInfo] = None


class Availability(ApiModel):
    """GET /properties/{id}/availability payload."""
    property_id: str
    is_available: bool = False
    current_tenant: Any = None


__all__ = [
    "EntityKind", "SortOrder", "UserRole", "PropertyType", "PropertyStatus",
    "TenantStatus", "PaymentMethod", "LeaseStatus", "MaintenanceStatus",
    "MaintenancePriority", "IsoDate", "RequiredIsoDate", "ApiModel", "User",
    "Property", "Tenant", "Lease", "Maintenance", "PaginationInfo", "ApiResponse",
    "Availability",
]
