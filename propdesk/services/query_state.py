"""
List query state shared by the Properties, Tenants, Maintenance and Leases screens.

A QueryState is immutable: every setter returns a new state. Changing search,
a filter or the sort invalidates the current page, so those setters reset the
page to 1; changing the page leaves everything else alone.
"""
from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from propdesk.models import SortOrder

DEFAULT_SORT_BY = "createdAt"
DEFAULT_SORT_ORDER = SortOrder.DESC

# Wire name of every categorical filter the API understands
FILTER_NAMES = ("status", "type", "priority", "propertyId", "tenantId")


class QueryState(BaseModel):
    """Page, sort, free-text search and categorical filters of one list view."""
    model_config = ConfigDict(frozen=True)

    page: int = 1
    limit: int = 10
    sort_by: str = DEFAULT_SORT_BY
    sort_order: SortOrder = DEFAULT_SORT_ORDER
    search: str = ""
    filters: Dict[str, str] = Field(default_factory=dict)

    # Per-list constraints; empty means "anything goes"
    allowed_filters: Tuple[str, ...] = FILTER_NAMES
    sort_fields: Tuple[str, ...] = ()

    def _replace(self, **changes: Any) -> "QueryState":
        return self.model_copy(update=changes)

    def with_search(self, text: Optional[str]) -> "QueryState":
        return self._replace(search=(text or "").strip(), page=1)

    def with_filter(self, name: str, value: Optional[str]) -> "QueryState":
        if name not in self.allowed_filters:
            raise ValueError(f"Unknown filter '{name}' (allowed: {', '.join(self.allowed_filters)})")
        filters = dict(self.filters)
        if value:
            filters[name] = str(value)
        else:
            filters.pop(name, None)
        return self._replace(filters=filters, page=1)

    def with_sort(self, sort_by: Optional[str] = None, sort_order: Optional[str] = None) -> "QueryState":
        sort_by = sort_by or self.sort_by
        if self.sort_fields and sort_by not in self.sort_fields:
            raise ValueError(f"Cannot sort by '{sort_by}' (allowed: {', '.join(self.sort_fields)})")
        order = SortOrder(sort_order.upper()) if sort_order else self.sort_order
        return self._replace(sort_by=sort_by, sort_order=order, page=1)

    def with_page(self, page: int) -> "QueryState":
        return self._replace(page=max(1, int(page)))

    def with_limit(self, limit: int) -> "QueryState":
        return self._replace(limit=max(1, int(limit)), page=1)

    def cleared(self) -> "QueryState":
        return self._replace(
            search="", filters={}, sort_by=DEFAULT_SORT_BY,
            sort_order=DEFAULT_SORT_ORDER, page=1,
        )

    @property
    def has_active_filters(self) -> bool:
        return bool(
            self.search
            or self.filters
            or self.sort_by != DEFAULT_SORT_BY
            or self.sort_order != DEFAULT_SORT_ORDER
        )

    def trigger_key(self) -> Tuple:
        """Everything except the page: a change here means a debounced refetch."""
        return (
            self.search,
            tuple(sorted(self.filters.items())),
            self.sort_by,
            self.sort_order.value,
        )

    def to_params(self) -> Dict[str, Any]:
        """Request descriptor for the list endpoint; empty fields are omitted."""
        params: Dict[str, Any] = {
            "page": self.page,
            "limit": self.limit,
            "sortBy": self.sort_by,
            "sortOrder": self.sort_order.value,
        }
        if self.search:
            params["search"] = self.search
        for name in FILTER_NAMES:
            value = self.filters.get(name)
            if value:
                params[name] = value
        return params
