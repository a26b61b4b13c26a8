"""
Records Service - create / update / delete for every entity kind.

Forms are validated locally before anything is sent. Creating an active lease
first asks the API whether the property is still available.
"""
import asyncio
import logging
from typing import Any, Dict, Optional

from propdesk.clients.api_client import ApiClient, ApiError
from propdesk.models import EntityKind, LeaseStatus
from propdesk.services.forms import FormContext, FormValidationError, prepare_submission
from propdesk.services.notifications import Notifier

logger = logging.getLogger(__name__)

LABELS = {
    EntityKind.PROPERTY: "Property",
    EntityKind.TENANT: "Tenant",
    EntityKind.LEASE: "Lease",
    EntityKind.MAINTENANCE: "Maintenance request",
}

PROPERTY_RENTED_MESSAGE = (
    "This property is already rented. Please select a different property "
    "or terminate the existing lease first."
)


class RecordsService:
    """Form submission and deletion for the four record screens."""

    def __init__(self, api: ApiClient, notifier: Notifier):
        self.api = api
        self.notifier = notifier
        self._create = {
            EntityKind.PROPERTY: api.create_property,
            EntityKind.TENANT: api.create_tenant,
            EntityKind.LEASE: api.create_lease,
            EntityKind.MAINTENANCE: api.create_maintenance,
        }
        self._update = {
            EntityKind.PROPERTY: api.update_property,
            EntityKind.TENANT: api.update_tenant,
            EntityKind.LEASE: api.update_lease,
            EntityKind.MAINTENANCE: api.update_maintenance,
        }
        self._delete = {
            EntityKind.PROPERTY: api.delete_property,
            EntityKind.TENANT: api.delete_tenant,
            EntityKind.LEASE: api.delete_lease,
            EntityKind.MAINTENANCE: api.delete_maintenance,
        }

    async def form_context(self, kind: EntityKind, editing_id: Optional[str] = None) -> FormContext:
        """Fetch what a tenant form needs: properties (rent auto-fill) and tenants (uniqueness)."""
        if kind != EntityKind.TENANT:
            return FormContext(editing_id=editing_id)
        (properties, _), (tenants, _) = await asyncio.gather(
            self.api.get_properties(), self.api.get_tenants()
        )
        return FormContext(properties=properties, tenants=tenants, editing_id=editing_id)

    async def _ensure_available(self, property_id: str) -> None:
        try:
            availability = await self.api.check_property_availability(property_id)
        except ApiError as e:
            logger.error(f"[RECORDS] Availability check failed for {property_id}: {e.message}")
            self.notifier.error("Unable to verify property availability. Please try again.")
            raise
        if not availability.is_available:
            self.notifier.error(PROPERTY_RENTED_MESSAGE)
            raise FormValidationError({"propertyId": PROPERTY_RENTED_MESSAGE})

    async def save(
        self,
        kind: EntityKind,
        values: Dict[str, Any],
        editing_id: Optional[str] = None,
        context: Optional[FormContext] = None,
    ) -> Any:
        """
        Validate and submit a form. Creates when editing_id is None, else updates.

        Raises FormValidationError for local field errors and ApiError for
        failed calls (after emitting an error notification).
        """
        label = LABELS[kind]
        if context is None:
            try:
                context = await self.form_context(kind, editing_id)
            except ApiError as e:
                self.notifier.error(f"Failed to load data for the {label.lower()} form: {e.message}")
                raise
        payload = prepare_submission(kind, values, context)

        if (
            kind == EntityKind.LEASE
            and editing_id is None
            and payload.get("status") == LeaseStatus.ACTIVE.value
        ):
            await self._ensure_available(payload["propertyId"])

        try:
            if editing_id is None:
                record = await self._create[kind](payload)
                self.notifier.success(f"{label} created successfully")
            else:
                record = await self._update[kind](editing_id, payload)
                self.notifier.success(f"{label} updated successfully")
        except ApiError as e:
            self.notifier.error(f"Failed to save {label.lower()}: {e.message}")
            raise

        logger.info(f"[RECORDS] Saved {kind.value} {editing_id or '(new)'}")
        return record

    async def delete(self, kind: EntityKind, record_id: str) -> None:
        label = LABELS[kind]
        try:
            await self._delete[kind](record_id)
        except ApiError as e:
            self.notifier.error(f"Failed to delete {label.lower()}: {e.message}")
            raise
        logger.info(f"[RECORDS] Deleted {kind.value} {record_id}")
        self.notifier.success(f"{label} deleted successfully")
