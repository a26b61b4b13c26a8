"""
View models for the back-office screens.
These are what the list views and the dashboard render.
"""
from pydantic import BaseModel
from typing import Any, Dict, List, Optional

from propdesk.models import Maintenance, PaginationInfo, Tenant


class Notification(BaseModel):
    """Transient toast-style message."""
    level: str  # "success" | "error" | "loading"
    message: str
    key: Optional[str] = None
    created_at: str


class ListPage(BaseModel):
    """One fetched page of records plus its pagination block."""
    records: List[Any]
    pagination: PaginationInfo


class ListView(BaseModel):
    """Rendered state of a list screen."""
    entity: str
    query: Dict[str, Any]
    has_active_filters: bool = False
    records: List[Dict[str, Any]]
    pagination: Optional[PaginationInfo] = None
    property_names: Dict[str, str] = {}
    tenant_names: Dict[str, str] = {}
    available_properties: List[Dict[str, Any]] = []
    notifications: List[Notification] = []


class DashboardStats(BaseModel):
    """Derived dashboard figures."""
    total_properties: int = 0
    total_tenants: int = 0
    active_tenants: int = 0
    pending_maintenance: int = 0
    total_monthly_revenue: float = 0
    total_rent_collected: float = 0
    outstanding_rent: float = 0
    occupancy_rate: float = 0  # Percentage 0-100
    annual_revenue: float = 0  # Projected


class UrgentMaintenance(BaseModel):
    """Urgent/high priority slice shown on the dashboard."""
    items: List[Maintenance] = []
    total_matching: int = 0
    pagination: Optional[PaginationInfo] = None


class DashboardView(BaseModel):
    stats: DashboardStats
    urgent_maintenance: UrgentMaintenance
    recent_tenants: List[Tenant] = []  # Newest first
    loaded_at: Optional[str] = None
    notifications: List[Notification] = []
