"""Test the remote API client: envelopes, errors and session handling."""
import httpx
import pytest

from propdesk.clients.api_client import ApiClient, ApiError, AuthenticationError, clean_params
from propdesk.models import EntityKind
from propdesk.services.auth_service import TOKEN_KEY
from tests.conftest import API_URL, TOKEN


def test_clean_params():
    assert clean_params({"a": 1, "b": None, "c": "", "d": 0}) == {"a": 1, "d": 0}
    assert clean_params(None) == {}


@pytest.mark.asyncio
async def test_requests_carry_bearer_token(backoffice, fake_api):
    records, pagination = await backoffice.api.get_properties({"status": "active", "search": None})
    assert [p.id for p in records] == ["p1", "p2"]
    assert pagination.total == 2
    assert fake_api.tokens[-1] == f"Bearer {TOKEN}"
    assert fake_api.calls[-1] == ("GET", "/properties", {"status": "active"})


@pytest.mark.asyncio
async def test_wire_records_parsed(backoffice):
    tenant = await backoffice.api.get_tenant("t1")
    assert tenant.property_id == "p1"
    assert tenant.stay_start_date.isoformat() == "2024-01-15"
    assert tenant.payment_method == "mobile_money"


@pytest.mark.asyncio
async def test_malformed_record_is_an_api_error(backoffice, fake_api):
    fake_api.collections["leases"][0]["status"] = "pending_signature"
    with pytest.raises(ApiError, match="Malformed response from /leases/l1"):
        await backoffice.api.get_lease("l1")
    with pytest.raises(ApiError, match="Malformed response from /leases"):
        await backoffice.api.get_leases()
    assert backoffice.session.is_authenticated


@pytest.mark.asyncio
async def test_login_does_not_send_token(backoffice, fake_api):
    user, token = await backoffice.api.login("0788000000", "secret")
    assert token == TOKEN
    assert user.role == "admin"
    assert fake_api.tokens[-1] is None


@pytest.mark.asyncio
async def test_unauthorized_clears_session(backoffice, fake_api, session):
    old_controller = backoffice.controller(EntityKind.TENANT)
    fake_api.fail["/tenants"] = (401, "Token expired")
    with pytest.raises(AuthenticationError) as exc:
        await backoffice.api.get_tenants()
    assert exc.value.status_code == 401
    assert exc.value.message == "Token expired"
    assert not session.is_authenticated
    assert session.store.get(TOKEN_KEY) is None
    # Records held by the screens are discarded with the session
    assert backoffice.controller(EntityKind.TENANT) is not old_controller


@pytest.mark.asyncio
async def test_error_message_from_envelope(backoffice, fake_api):
    fake_api.fail["/maintenance"] = (500, "Database unavailable")
    with pytest.raises(ApiError) as exc:
        await backoffice.api.get_maintenance()
    assert exc.value.message == "Database unavailable"
    assert exc.value.status_code == 500
    assert backoffice.session.is_authenticated


@pytest.mark.asyncio
async def test_error_without_body_uses_status(backoffice, fake_api):
    fake_api.fail["/leases"] = (503, None)
    with pytest.raises(ApiError) as exc:
        await backoffice.api.get_leases()
    assert exc.value.message == "503 Service Unavailable"


@pytest.mark.asyncio
async def test_unsuccessful_envelope_is_an_error(session):
    def handler(request):
        return httpx.Response(200, json={"success": False, "message": "Property not found"})

    api = ApiClient(session, base_url=API_URL, transport=httpx.MockTransport(handler))
    with pytest.raises(ApiError, match="Property not found"):
        await api.get_property("p9")


@pytest.mark.asyncio
async def test_transport_failure_is_an_api_error(session):
    def handler(request):
        raise httpx.ConnectError("Connection refused", request=request)

    api = ApiClient(session, base_url=API_URL, transport=httpx.MockTransport(handler))
    with pytest.raises(ApiError, match="Connection refused"):
        await api.get_properties()
    assert session.is_authenticated


@pytest.mark.asyncio
async def test_availability(backoffice, fake_api):
    fake_api.unavailable = {"p1"}
    assert not (await backoffice.api.check_property_availability("p1")).is_available
    assert (await backoffice.api.check_property_availability("p2")).is_available
    available = await backoffice.api.get_available_properties()
    assert [p.id for p in available] == ["p2", "p3"]


@pytest.mark.asyncio
async def test_crud_round_trip(backoffice, fake_api):
    created = await backoffice.api.create_maintenance(
        {"title": "Fix gate", "description": "Hinge broken", "propertyId": "p2", "priority": "high"}
    )
    assert created.id
    updated = await backoffice.api.update_maintenance(created.id, {"status": "completed"})
    assert updated.status == "completed"
    await backoffice.api.delete_maintenance(created.id)
    assert await backoffice.api.get_maintenance_item("m1") is not None
    assert len(fake_api.collections["maintenance"]) == 3
