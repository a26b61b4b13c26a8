"""
List Query Controller - one implementation behind every list screen.

Flow: setter -> QueryState change -> debounce timer -> fetch at page 1 -> apply.
A page change skips the debounce and fetches immediately.

Requests are numbered as they are issued; only the response to the latest
issued request is applied, whatever order the responses arrive in.
"""
import asyncio
import logging
import math
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Tuple

from propdesk.clients.api_client import ApiClient, ApiError, AuthenticationError
from propdesk.config import get_settings
from propdesk.models import EntityKind, PaginationInfo, Property
from propdesk.models.views import ListPage, ListView
from propdesk.services.notifications import Notifier
from propdesk.services.query_state import QueryState

logger = logging.getLogger(__name__)

FetchRecords = Callable[[ApiClient, Dict[str, Any]], Awaitable[Tuple[List[Any], Optional[PaginationInfo]]]]
FetchAuxiliary = Callable[[ApiClient], Awaitable[Dict[str, Any]]]
EnrichRecords = Callable[[ApiClient, List[Any]], Awaitable[List[Any]]]


@dataclass(frozen=True)
class ListDefinition:
    """What differs between list screens: endpoint, filter set, sort fields, side data."""
    kind: EntityKind
    label: str
    filters: Tuple[str, ...]
    sort_fields: Tuple[str, ...]
    fetch: FetchRecords
    auxiliary: Optional[FetchAuxiliary] = None
    enrich: Optional[EnrichRecords] = None


def fallback_pagination(count: int, page: int, limit: int) -> PaginationInfo:
    """Pagination for a response that did not send a pagination block."""
    limit = max(1, limit)
    return PaginationInfo(
        page=page, limit=limit, total=count, total_pages=math.ceil(count / limit)
    )


# =========================================================================
# Per-screen side data
# =========================================================================

async def _property_names(api: ApiClient) -> Dict[str, Any]:
    properties, _ = await api.get_properties()
    return {"property_names": {p.id: p.name for p in properties}}


async def _tenant_auxiliary(api: ApiClient) -> Dict[str, Any]:
    # All properties for display, vacant ones for the selection control
    (properties, _), available = await asyncio.gather(
        api.get_properties(), api.get_available_properties()
    )
    return {
        "property_names": {p.id: p.name for p in properties},
        "available_properties": available,
    }


async def _lease_auxiliary(api: ApiClient) -> Dict[str, Any]:
    (properties, _), (tenants, _) = await asyncio.gather(
        api.get_properties(), api.get_tenants()
    )
    return {
        "property_names": {p.id: p.name for p in properties},
        "tenant_names": {t.id: t.name for t in tenants},
    }


async def _with_availability(api: ApiClient, properties: List[Property]) -> List[Property]:
    """Attach is_available to each property from its availability check."""

    async def check(prop: Property) -> Property:
        try:
            availability = await api.check_property_availability(prop.id)
            available = availability.is_available
        except AuthenticationError:
            raise
        except ApiError as e:
            logger.warning(f"[QUERY] Availability check failed for property {prop.id}: {e.message}")
            available = True
        return prop.model_copy(update={"is_available": available})

    return list(await asyncio.gather(*(check(p) for p in properties)))


PROPERTY_LIST = ListDefinition(
    kind=EntityKind.PROPERTY,
    label="properties",
    filters=("status", "type"),
    sort_fields=("createdAt", "name", "monthlyRent", "status"),
    fetch=lambda api, params: api.get_properties(params),
    enrich=_with_availability,
)

TENANT_LIST = ListDefinition(
    kind=EntityKind.TENANT,
    label="tenants",
    filters=("status", "propertyId"),
    sort_fields=("createdAt", "name", "phone", "status", "payment"),
    fetch=lambda api, params: api.get_tenants(params),
    auxiliary=_tenant_auxiliary,
)

MAINTENANCE_LIST = ListDefinition(
    kind=EntityKind.MAINTENANCE,
    label="maintenance requests",
    filters=("status", "priority", "propertyId"),
    sort_fields=("createdAt", "title", "priority", "status", "scheduledDate"),
    fetch=lambda api, params: api.get_maintenance(params),
    auxiliary=_property_names,
)

LEASE_LIST = ListDefinition(
    kind=EntityKind.LEASE,
    label="leases",
    filters=("status", "propertyId", "tenantId"),
    sort_fields=("createdAt", "startDate", "endDate", "monthlyRent", "status"),
    fetch=lambda api, params: api.get_leases(params),
    auxiliary=_lease_auxiliary,
)

LIST_DEFINITIONS = {
    d.kind: d for d in (PROPERTY_LIST, TENANT_LIST, MAINTENANCE_LIST, LEASE_LIST)
}


class ListQueryController:
    """
    Query state + debounced refetch + fetch/reconcile for one list screen.

    set_search, set_filter, set_sort and clear_filters are the library-level
    API for an interactive screen: each edit re-arms the debounce timer. The
    HTTP list route does not use them; it builds the whole query from the
    request and calls load(). These setters must be called from inside a
    running event loop, since they arm an asyncio timer.
    """

    def __init__(
        self,
        definition: ListDefinition,
        api: ApiClient,
        notifier: Notifier,
        debounce_seconds: Optional[float] = None,
        page_size: Optional[int] = None,
    ):
        settings = get_settings()
        self.definition = definition
        self.api = api
        self.notifier = notifier
        self.debounce_seconds = (
            settings.debounce_seconds if debounce_seconds is None else debounce_seconds
        )
        self.state = QueryState(
            limit=page_size or settings.default_page_size,
            allowed_filters=definition.filters,
            sort_fields=definition.sort_fields,
        )

        self.records: List[Any] = []
        self.pagination: Optional[PaginationInfo] = None
        self.auxiliary: Dict[str, Any] = {}
        self.loaded = False

        self._issued = 0
        self._debounce_task: Optional[asyncio.Task] = None
        self._inflight: Set[asyncio.Task] = set()

    # =========================================================================
    # Query state setters
    # =========================================================================

    def _apply(self, state: QueryState) -> None:
        """Take a new query and arm the debounce timer; a no-op edit keeps the current page."""
        if state.trigger_key() == self.state.trigger_key():
            return
        self.state = state
        self._schedule_refresh()

    def set_search(self, text: Optional[str]) -> None:
        self._apply(self.state.with_search(text))

    def set_filter(self, name: str, value: Optional[str]) -> None:
        self._apply(self.state.with_filter(name, value))

    def set_sort(self, sort_by: Optional[str] = None, sort_order: Optional[str] = None) -> None:
        self._apply(self.state.with_sort(sort_by, sort_order))

    def clear_filters(self) -> None:
        self._apply(self.state.cleared())

    async def set_page(self, page: int) -> bool:
        """Page changes bypass the debounce."""
        self.state = self.state.with_page(page)
        return await self.refresh()

    async def load(self, state: Optional[QueryState] = None) -> bool:
        """Initial mount / full navigation: take the given state and fetch now."""
        if state is not None:
            self.state = state
        return await self.refresh()

    # =========================================================================
    # Debounce
    # =========================================================================

    def _schedule_refresh(self) -> None:
        if self._debounce_task is not None and not self._debounce_task.done():
            self._debounce_task.cancel()
        self._debounce_task = asyncio.create_task(self._debounced_refresh())

    async def _debounced_refresh(self) -> None:
        await asyncio.sleep(self.debounce_seconds)
        # Past this point the timer has fired; a newer edit starts a new timer
        # instead of cancelling this request.
        task = asyncio.current_task()
        if self._debounce_task is task:
            self._debounce_task = None
        self._inflight.add(task)
        try:
            self.state = self.state.with_page(1)
            await self.refresh()
        finally:
            self._inflight.discard(task)

    @property
    def refresh_pending(self) -> bool:
        return self._debounce_task is not None and not self._debounce_task.done()

    def cancel_pending(self) -> None:
        """Disarm a debounce timer that has not fired yet."""
        if self.refresh_pending:
            self._debounce_task.cancel()
        self._debounce_task = None

    async def wait_idle(self) -> None:
        """Wait for a pending debounce timer and any request it issued."""
        while True:
            tasks = [t for t in self._inflight if not t.done()]
            if self.refresh_pending:
                tasks.append(self._debounce_task)
            if not tasks:
                return
            await asyncio.wait(tasks)

    # =========================================================================
    # Fetch + reconcile
    # =========================================================================

    async def _load(self, params: Dict[str, Any]) -> Tuple[ListPage, Dict[str, Any]]:
        definition = self.definition
        jobs = [definition.fetch(self.api, params)]
        if definition.auxiliary is not None:
            jobs.append(definition.auxiliary(self.api))
        results = await asyncio.gather(*jobs)

        records, pagination = results[0]
        auxiliary = results[1] if len(results) > 1 else {}
        if definition.enrich is not None:
            records = await definition.enrich(self.api, records)

        if pagination is None:
            pagination = fallback_pagination(len(records), params["page"], params["limit"])
        return ListPage(records=records, pagination=pagination), auxiliary

    async def refresh(self) -> bool:
        """
        Fetch the current query. Returns True when the response was applied.
        Failures leave records and pagination at their last good values.
        """
        self._issued += 1
        seq = self._issued
        snapshot = self.state
        params = snapshot.to_params()
        label = self.definition.label
        logger.debug(f"[QUERY] {label} request #{seq}: {params}")

        try:
            page, auxiliary = await self._load(params)
        except ApiError as e:
            if seq != self._issued:
                logger.debug(f"[QUERY] {label} request #{seq} failed after being superseded: {e.message}")
                return False
            self.notifier.error(f"Failed to load {label}: {e.message}")
            return False

        if seq != self._issued:
            logger.debug(f"[QUERY] {label} discarding stale response #{seq} (latest #{self._issued})")
            return False

        self.records = page.records
        self.pagination = page.pagination
        self.auxiliary = auxiliary
        if self.state is snapshot:
            self.state = snapshot.model_copy(
                update={"page": page.pagination.page, "limit": page.pagination.limit}
            )

        logger.info(
            f"[QUERY] {label}: {len(page.records)} records "
            f"(page {page.pagination.page}/{page.pagination.total_pages}, total {page.pagination.total})"
        )
        if not self.loaded:
            self.loaded = True
            self.notifier.success(f"{label.capitalize()} loaded successfully")
        return True

    # =========================================================================
    # Rendering helpers
    # =========================================================================

    def property_name(self, property_id: Optional[str]) -> str:
        names = self.auxiliary.get("property_names", {})
        return names.get(property_id, "Unknown Property")

    def view(self) -> ListView:
        return ListView(
            entity=self.definition.kind.value,
            query=self.state.to_params(),
            has_active_filters=self.state.has_active_filters,
            records=[r.to_wire() for r in self.records],
            pagination=self.pagination,
            property_names=self.auxiliary.get("property_names", {}),
            tenant_names=self.auxiliary.get("tenant_names", {}),
            available_properties=[
                p.to_wire()
                for p in self.auxiliary.get("available_properties", [])
            ],
            notifications=self.notifier.drain(),
        )
