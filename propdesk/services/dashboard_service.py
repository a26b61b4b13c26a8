"""
Dashboard Service - summary figures for the back-office home screen.

The API has no aggregation endpoint for most of these figures, so they are
folded client-side from several list requests issued concurrently:

- totalMonthlyRevenue: sum of monthlyRent over fetched properties
- occupancyRate: active tenants / properties * 100 (0 without properties)
- outstandingRent: per active tenant, max(0, months since stay start * rent - paid)
- annualRevenue (projected): total collected / tenant count * 12
- urgent maintenance: urgent/high items, 5 per page
- recent tenants: the newest tenants by createdAt

The batch is atomic: if any request fails, the previous figures stay.
These revenue formulas are provisional business rules.
"""
import asyncio
import logging
import math
from datetime import date, datetime
from typing import Dict, List, Optional

from propdesk.clients.api_client import ApiClient, ApiError
from propdesk.config import get_settings
from propdesk.models import (
    Maintenance, MaintenancePriority, MaintenanceStatus, PaginationInfo,
    Property, SortOrder, Tenant, TenantStatus,
)
from propdesk.models.views import DashboardStats, DashboardView, UrgentMaintenance
from propdesk.services.notifications import Notifier
from propdesk.services.timeframe import months_between

logger = logging.getLogger(__name__)

URGENT_PRIORITIES = (MaintenancePriority.URGENT.value, MaintenancePriority.HIGH.value)
PRIORITY_RANK = {"urgent": 0, "high": 1, "medium": 2, "low": 3}


def _count(records: list, pagination: Optional[PaginationInfo]) -> int:
    """Server-reported total, falling back to the number of records received."""
    if pagination is not None and pagination.total:
        return pagination.total
    return len(records)


def total_monthly_revenue(properties: List[Property]) -> float:
    return sum(p.monthly_rent or 0 for p in properties)


def occupancy_rate(active_tenants: int, total_properties: int) -> float:
    if total_properties <= 0:
        return 0.0
    return active_tenants / total_properties * 100


def outstanding_rent(
    tenants: List[Tenant], properties: List[Property], today: Optional[date] = None
) -> float:
    """
    Rent owed by active tenants since their stay started.
    Tenants without a resolvable property or start date contribute 0.
    """
    today = today or date.today()
    rents = {p.id: p.monthly_rent or 0 for p in properties}
    outstanding = 0.0
    for tenant in tenants:
        if tenant.status != TenantStatus.ACTIVE.value:
            continue
        if tenant.property_id not in rents or tenant.stay_start_date is None:
            continue
        months = max(0, months_between(tenant.stay_start_date, today))
        expected = months * rents[tenant.property_id]
        outstanding += max(0.0, expected - (tenant.total_amount or 0))
    return outstanding


def projected_annual_revenue(total_collected: float, tenant_count: int) -> float:
    return total_collected / max(1, tenant_count) * 12


def urgent_maintenance(
    items: List[Maintenance], page: int = 1, page_size: int = 5
) -> UrgentMaintenance:
    """Urgent/high items, urgent first, with a locally synthesized pagination block."""
    matching = [m for m in items if m.priority in URGENT_PRIORITIES]
    matching.sort(key=lambda m: PRIORITY_RANK.get(m.priority, len(PRIORITY_RANK)))
    total = len(matching)
    total_pages = math.ceil(total / page_size) if page_size else 0
    page = max(1, page)
    start = (page - 1) * page_size
    return UrgentMaintenance(
        items=matching[start:start + page_size],
        total_matching=total,
        pagination=PaginationInfo(
            page=page, limit=page_size, total=total, total_pages=total_pages
        ),
    )


class DashboardService:
    """Aggregation hook behind the dashboard screen."""

    def __init__(self, api: ApiClient, notifier: Notifier):
        settings = get_settings()
        self.api = api
        self.notifier = notifier
        self.page_size = settings.dashboard_page_size
        self.urgent_page_size = settings.urgent_page_size

        self.stats = DashboardStats()
        self.urgent = UrgentMaintenance()
        self.recent_tenants: List[Tenant] = []
        self.loaded_at: Optional[str] = None
        self._maintenance: List[Maintenance] = []

    async def _fetch_all(self) -> Dict[str, tuple]:
        limit = self.page_size
        results = await asyncio.gather(
            self.api.get_properties({"limit": limit}),
            self.api.get_tenants({"limit": limit, "sortBy": "createdAt", "sortOrder": SortOrder.DESC.value}),
            self.api.get_maintenance({"limit": limit, "sortBy": "priority", "sortOrder": SortOrder.DESC.value}),
            self.api.get_tenants({"status": TenantStatus.ACTIVE.value}),
            self.api.get_maintenance({"status": MaintenanceStatus.PENDING.value}),
            self.api.get_tenants(),
        )
        keys = ("properties", "tenants", "maintenance", "active_tenants", "pending_maintenance", "all_tenants")
        return dict(zip(keys, results))

    def compute(self, batch: Dict[str, tuple], today: Optional[date] = None) -> DashboardStats:
        """Fold one complete batch of responses into DashboardStats."""
        properties, properties_page = batch["properties"]
        tenants, tenants_page = batch["tenants"]
        active, active_page = batch["active_tenants"]
        pending, pending_page = batch["pending_maintenance"]
        all_tenants, _ = batch["all_tenants"]

        total_properties = _count(properties, properties_page)
        active_tenants = _count(active, active_page)
        collected = sum(t.total_amount or 0 for t in all_tenants)

        return DashboardStats(
            total_properties=total_properties,
            total_tenants=_count(tenants, tenants_page),
            active_tenants=active_tenants,
            pending_maintenance=_count(pending, pending_page),
            total_monthly_revenue=total_monthly_revenue(properties),
            total_rent_collected=collected,
            outstanding_rent=outstanding_rent(all_tenants, properties, today),
            occupancy_rate=occupancy_rate(active_tenants, total_properties),
            annual_revenue=projected_annual_revenue(collected, len(all_tenants)),
        )

    async def load(self, urgent_page: int = 1, today: Optional[date] = None) -> bool:
        """
        Run the whole batch. Returns True when new figures were applied;
        on failure the previous figures are kept and one error is emitted.
        """
        logger.info("[DASHBOARD] Loading dashboard data")
        try:
            batch = await self._fetch_all()
            stats = self.compute(batch, today)
        except ApiError as e:
            logger.error(f"[DASHBOARD] Load failed: {e.message}")
            self.notifier.error(f"Failed to load data: {e.message}")
            return False

        maintenance, _ = batch["maintenance"]
        self.stats = stats
        self.recent_tenants = batch["tenants"][0]
        self._maintenance = maintenance
        self.urgent = urgent_maintenance(maintenance, urgent_page, self.urgent_page_size)
        self.loaded_at = datetime.now().isoformat()
        logger.info(
            f"[DASHBOARD] {stats.total_properties} properties, {stats.active_tenants} active tenants, "
            f"occupancy {stats.occupancy_rate:.1f}%"
        )
        self.notifier.success("Dashboard data loaded successfully")
        return True

    async def refresh(self, urgent_page: int = 1) -> bool:
        self.notifier.loading("Refreshing dashboard...", key="refresh")
        try:
            return await self.load(urgent_page)
        finally:
            self.notifier.dismiss("refresh")

    def set_urgent_page(self, page: int) -> UrgentMaintenance:
        """Page through the urgent slice already held client-side."""
        self.urgent = urgent_maintenance(self._maintenance, page, self.urgent_page_size)
        return self.urgent

    def view(self) -> DashboardView:
        return DashboardView(
            stats=self.stats,
            urgent_maintenance=self.urgent,
            recent_tenants=self.recent_tenants,
            loaded_at=self.loaded_at,
            notifications=self.notifier.drain(),
        )
