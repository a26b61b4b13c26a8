"""
Property-management REST API client.

Every data operation of the back-office goes through this client. Requests
carry the session's bearer token; any 401 tears the session down before the
error propagates.
"""
import logging
from typing import Any, Dict, List, Optional, Tuple

import httpx
from pydantic import ValidationError

from propdesk.config import get_settings
from propdesk.models import (
    ApiResponse, Availability, Lease, Maintenance, PaginationInfo, Property,
    Tenant, User,
)
from propdesk.services.auth_service import Session

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """A failed API call. `message` is the server's message when it sent one."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class AuthenticationError(ApiError):
    """HTTP 401. The session has already been cleared when this is raised."""


def clean_params(params: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Drop None / empty-string query parameters."""
    if not params:
        return {}
    return {k: v for k, v in params.items() if v is not None and v != ""}


class ApiClient:
    """
    Async JSON client for the remote API.

    Endpoints:
    - /auth/login, /auth/profile
    - /properties, /properties/available, /properties/{id}, /properties/{id}/availability
    - /tenants, /maintenance, /leases (+ /{id})
    """

    def __init__(
        self,
        session: Session,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        settings = get_settings()
        self.session = session
        self.base_url = (base_url or settings.api_base_url).rstrip("/")
        self.timeout = timeout or settings.request_timeout
        self.transport = transport
        self.headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
        }

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
        authenticated: bool = True,
    ) -> ApiResponse:
        """Send a request and return the parsed response envelope."""
        headers = dict(self.headers)
        if authenticated:
            headers.update(self.session.auth_headers())
        query = clean_params(params)

        logger.debug(
            f"[API] {method} {path} params={query} "
            f"token={'present' if 'Authorization' in headers else 'missing'}"
        )

        try:
            async with httpx.AsyncClient(
                base_url=self.base_url, timeout=self.timeout, transport=self.transport
            ) as client:
                response = await client.request(
                    method, path, headers=headers, params=query or None, json=json
                )
        except httpx.HTTPError as e:
            logger.error(f"[API] {method} {path} failed: {e}")
            raise ApiError(str(e) or e.__class__.__name__) from e

        logger.debug(f"[API] {method} {path} -> {response.status_code}")

        body = self._parse_body(response)

        if response.status_code == 401:
            logger.warning(f"[API] 401 on {method} {path}, clearing session")
            self.session.clear()
            raise AuthenticationError(
                body.get("message") or "Session expired, please log in again", 401
            )

        if response.is_error:
            message = body.get("message") or f"{response.status_code} {response.reason_phrase}"
            logger.error(f"[API] {method} {path} -> {response.status_code}: {message}")
            raise ApiError(message, response.status_code)

        envelope = self._parse(ApiResponse, body, path)
        if body and not envelope.success and "success" in body:
            raise ApiError(envelope.message or "Request failed", response.status_code)
        return envelope

    @staticmethod
    def _parse_body(response: httpx.Response) -> Dict[str, Any]:
        if not response.content:
            return {}
        try:
            body = response.json()
        except ValueError:
            return {"message": response.text[:200]}
        return body if isinstance(body, dict) else {"data": body}

    @staticmethod
    def _parse(model, data: Any, path: str):
        """Validate one record; a payload the model rejects is a failed call."""
        try:
            return model.model_validate(data)
        except ValidationError as e:
            logger.error(f"[API] Malformed {model.__name__} from {path}: {e}")
            raise ApiError(f"Malformed response from {path}") from e

    def _records(self, envelope: ApiResponse, model, path: str) -> List[Any]:
        return [self._parse(model, item, path) for item in (envelope.data or [])]

    async def _list(
        self, path: str, model, params: Optional[Dict[str, Any]] = None
    ) -> Tuple[List[Any], Optional[PaginationInfo]]:
        envelope = await self._request("GET", path, params=params)
        return self._records(envelope, model, path), envelope.pagination

    async def _one(self, method: str, path: str, model, payload: Optional[dict] = None):
        envelope = await self._request(method, path, json=payload)
        if envelope.data is None:
            return None
        return self._parse(model, envelope.data, path)

    # =========================================================================
    # AUTH
    # =========================================================================

    async def login(self, phone: str, password: str) -> Tuple[User, str]:
        """POST /auth/login -> (user, token). Does not touch the session."""
        envelope = await self._request(
            "POST", "/auth/login",
            json={"phone": phone, "password": password},
            authenticated=False,
        )
        data = envelope.data or {}
        if not data.get("token") or not data.get("user"):
            raise ApiError(envelope.message or "Login failed")
        return self._parse(User, data["user"], "/auth/login"), data["token"]

    async def get_profile(self) -> Optional[User]:
        return await self._one("GET", "/auth/profile", User)

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    async def get_properties(self, params: Optional[Dict[str, Any]] = None):
        return await self._list("/properties", Property, params)

    async def get_available_properties(self) -> List[Property]:
        records, _ = await self._list("/properties/available", Property)
        return records

    async def get_property(self, property_id: str) -> Optional[Property]:
        return await self._one("GET", f"/properties/{property_id}", Property)

    async def check_property_availability(self, property_id: str) -> Availability:
        envelope = await self._request("GET", f"/properties/{property_id}/availability")
        data = envelope.data or {"propertyId": property_id}
        return self._parse(Availability, data, f"/properties/{property_id}/availability")

    async def create_property(self, payload: dict) -> Optional[Property]:
        return await self._one("POST", "/properties", Property, payload)

    async def update_property(self, property_id: str, payload: dict) -> Optional[Property]:
        return await self._one("PUT", f"/properties/{property_id}", Property, payload)

    async def delete_property(self, property_id: str) -> None:
        await self._request("DELETE", f"/properties/{property_id}")

    # =========================================================================
    # TENANTS
    # =========================================================================

    async def get_tenants(self, params: Optional[Dict[str, Any]] = None):
        return await self._list("/tenants", Tenant, params)

    async def get_tenant(self, tenant_id: str) -> Optional[Tenant]:
        return await self._one("GET", f"/tenants/{tenant_id}", Tenant)

    async def create_tenant(self, payload: dict) -> Optional[Tenant]:
        return await self._one("POST", "/tenants", Tenant, payload)

    async def update_tenant(self, tenant_id: str, payload: dict) -> Optional[Tenant]:
        return await self._one("PUT", f"/tenants/{tenant_id}", Tenant, payload)

    async def delete_tenant(self, tenant_id: str) -> None:
        await self._request("DELETE", f"/tenants/{tenant_id}")

    # =========================================================================
    # MAINTENANCE
    # =========================================================================

    async def get_maintenance(self, params: Optional[Dict[str, Any]] = None):
        return await self._list("/maintenance", Maintenance, params)

    async def get_maintenance_item(self, item_id: str) -> Optional[Maintenance]:
        return await self._one("GET", f"/maintenance/{item_id}", Maintenance)

    async def create_maintenance(self, payload: dict) -> Optional[Maintenance]:
        return await self._one("POST", "/maintenance", Maintenance, payload)

    async def update_maintenance(self, item_id: str, payload: dict) -> Optional[Maintenance]:
        return await self._one("PUT", f"/maintenance/{item_id}", Maintenance, payload)

    async def delete_maintenance(self, item_id: str) -> None:
        await self._request("DELETE", f"/maintenance/{item_id}")

    # =========================================================================
    # LEASES
    # =========================================================================

    async def get_leases(self, params: Optional[Dict[str, Any]] = None):
        return await self._list("/leases", Lease, params)

    async def get_lease(self, lease_id: str) -> Optional[Lease]:
        return await self._one("GET", f"/leases/{lease_id}", Lease)

    async def create_lease(self, payload: dict) -> Optional[Lease]:
        return await self._one("POST", "/leases", Lease, payload)

    async def update_lease(self, lease_id: str, payload: dict) -> Optional[Lease]:
        return await self._one("PUT", f"/leases/{lease_id}", Lease, payload)

    async def delete_lease(self, lease_id: str) -> None:
        await self._request("DELETE", f"/leases/{lease_id}")
