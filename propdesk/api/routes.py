"""
API Routes - PropDesk back-office screens.

Each list screen, the dashboard, the record forms and the exports are served
as JSON views. Data always comes from the remote API; failed loads keep the
last good data and report through the notifications attached to the view.
"""
from fastapi import APIRouter, Body, Depends, HTTPException, Query
from fastapi.responses import Response
from typing import Any, Dict, Optional

from propdesk.api.auth import LOGIN_PATH, require_session
from propdesk.backoffice import BackOffice
from propdesk.clients.api_client import ApiError, AuthenticationError
from propdesk.models import EntityKind
from propdesk.models.views import DashboardView, ListView
from propdesk.services.export_service import DATA_TYPES, EmptyExportError
from propdesk.services.forms import (
    FORM_SCHEMAS, FormValidationError, form_from_record, normalize, on_change,
)

router = APIRouter()


def _http_error(e: ApiError) -> HTTPException:
    if isinstance(e, AuthenticationError):
        return HTTPException(status_code=401, detail={"message": e.message, "redirect": LOGIN_PATH})
    if e.status_code == 404:
        return HTTPException(status_code=404, detail=e.message)
    return HTTPException(status_code=502, detail=e.message)


def _ensure_session(backoffice: BackOffice) -> None:
    """A 401 during the request tore the session down: send the operator to login."""
    if not backoffice.session.is_authenticated:
        raise HTTPException(
            status_code=401,
            detail={"message": "Session expired, please log in again", "redirect": LOGIN_PATH},
        )


# =========================================================================
# Dashboard
# =========================================================================

@router.get("/dashboard", response_model=DashboardView)
async def get_dashboard(
    urgent_page: int = Query(1, ge=1, description="Page of the urgent maintenance slice"),
    refresh: bool = Query(True, description="False pages the urgent slice without refetching"),
    backoffice: BackOffice = Depends(require_session),
):
    """
    GET: Dashboard figures.

    Returns totals, occupancy rate, rent collected, outstanding rent,
    projected annual revenue, the urgent/high maintenance slice and the
    most recently added tenants.
    """
    if not refresh and backoffice.dashboard.loaded_at:
        backoffice.dashboard.set_urgent_page(urgent_page)
        return backoffice.dashboard.view()

    await backoffice.dashboard.refresh(urgent_page)
    _ensure_session(backoffice)
    return backoffice.dashboard.view()


# =========================================================================
# Exports
# =========================================================================

@router.get("/export/{data_type}.{fmt}")
async def export_data(
    data_type: str,
    fmt: str,
    title: str = Query("Export Data"),
    backoffice: BackOffice = Depends(require_session),
):
    """GET: CSV or PDF download of tenants, properties, maintenance or all three."""
    if data_type not in DATA_TYPES or fmt not in ("csv", "pdf"):
        raise HTTPException(status_code=404, detail=f"Unknown export {data_type}.{fmt}")
    try:
        result = await backoffice.exports.export(data_type, fmt, title)
    except EmptyExportError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ApiError as e:
        raise _http_error(e)

    return Response(
        content=result.content,
        media_type=result.media_type,
        headers={"Content-Disposition": f'attachment; filename="{result.filename}"'},
    )


# =========================================================================
# Forms
# =========================================================================

@router.get("/{entity}/form")
async def get_form_schema(entity: EntityKind, backoffice: BackOffice = Depends(require_session)):
    """GET: Field schema and default values for a new record."""
    schema = FORM_SCHEMAS[entity]
    return {
        "entity": entity.value,
        "fields": [
            {
                "name": f.name, "label": f.label, "kind": f.kind, "required": f.required,
                "choices": list(f.choices), "derived": f.derived,
            }
            for f in schema.fields
        ],
        "values": normalize(entity, {}),
    }


@router.post("/{entity}/form")
async def update_form(
    entity: EntityKind,
    values: Dict[str, Any] = Body(...),
    field: str = Query(..., description="Field that changed"),
    value: Optional[str] = Query(None),
    backoffice: BackOffice = Depends(require_session),
):
    """POST: Apply one field edit and return the form with derived fields recomputed."""
    try:
        context = await backoffice.records.form_context(entity)
    except ApiError as e:
        raise _http_error(e)
    try:
        return on_change(entity, values, field, value, context)
    except (KeyError, ValueError) as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/{entity}/{record_id}/form")
async def get_edit_form(
    entity: EntityKind, record_id: str, backoffice: BackOffice = Depends(require_session)
):
    """GET: Edit form prefilled from the stored record."""
    getter = {
        EntityKind.PROPERTY: backoffice.api.get_property,
        EntityKind.TENANT: backoffice.api.get_tenant,
        EntityKind.LEASE: backoffice.api.get_lease,
        EntityKind.MAINTENANCE: backoffice.api.get_maintenance_item,
    }[entity]
    try:
        record = await getter(record_id)
    except ApiError as e:
        raise _http_error(e)
    if record is None:
        raise HTTPException(status_code=404, detail=f"{entity.value} {record_id} not found")
    return {"entity": entity.value, "id": record_id, "values": form_from_record(entity, record)}


# =========================================================================
# List screens + CRUD
# =========================================================================

@router.get("/{entity}", response_model=ListView)
async def list_records(
    entity: EntityKind,
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1, le=100),
    search: Optional[str] = None,
    sortBy: Optional[str] = None,
    sortOrder: Optional[str] = Query(None, pattern="^(ASC|DESC|asc|desc)$"),
    status: Optional[str] = None,
    type: Optional[str] = None,
    priority: Optional[str] = None,
    propertyId: Optional[str] = None,
    tenantId: Optional[str] = None,
    backoffice: BackOffice = Depends(require_session),
):
    """
    GET: One page of records for a list screen.

    Filters a screen does not support are rejected with 400:
    - properties: status, type
    - tenants: status, propertyId
    - maintenance: status, priority, propertyId
    - leases: status, propertyId, tenantId
    """
    controller = backoffice.controller(entity)
    requested = {
        "status": status, "type": type, "priority": priority,
        "propertyId": propertyId, "tenantId": tenantId,
    }
    try:
        state = controller.state.cleared()
        if limit:
            state = state.with_limit(limit)
        state = state.with_search(search)
        for name, value in requested.items():
            if value:
                state = state.with_filter(name, value)
        if sortBy or sortOrder:
            state = state.with_sort(sortBy, sortOrder)
        state = state.with_page(page)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    await controller.load(state)
    _ensure_session(backoffice)
    return backoffice.controller(entity).view()


async def _save(backoffice: BackOffice, entity: EntityKind, values: Dict[str, Any], record_id: Optional[str] = None):
    try:
        record = await backoffice.records.save(entity, values, editing_id=record_id)
    except FormValidationError as e:
        raise HTTPException(status_code=422, detail={"errors": e.errors, "notifications": [
            n.model_dump() for n in backoffice.notifier.drain()
        ]})
    except ApiError as e:
        raise _http_error(e)

    # Reload the list screen so it shows the saved record
    await backoffice.controller(entity).refresh()
    return {
        "record": record.to_wire() if record is not None else None,
        "notifications": [n.model_dump() for n in backoffice.notifier.drain()],
    }


@router.post("/{entity}", status_code=201)
async def create_record(
    entity: EntityKind,
    values: Dict[str, Any] = Body(...),
    backoffice: BackOffice = Depends(require_session),
):
    """POST: Validate and create a record."""
    return await _save(backoffice, entity, values)


@router.put("/{entity}/{record_id}")
async def update_record(
    entity: EntityKind,
    record_id: str,
    values: Dict[str, Any] = Body(...),
    backoffice: BackOffice = Depends(require_session),
):
    """PUT: Validate and update a record."""
    return await _save(backoffice, entity, values, record_id)


@router.delete("/{entity}/{record_id}")
async def delete_record(
    entity: EntityKind, record_id: str, backoffice: BackOffice = Depends(require_session)
):
    """DELETE: Remove a record and reload its list screen."""
    try:
        await backoffice.records.delete(entity, record_id)
    except ApiError as e:
        raise _http_error(e)
    await backoffice.controller(entity).refresh()
    return {"success": True, "notifications": [n.model_dump() for n in backoffice.notifier.drain()]}

