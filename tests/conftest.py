"""
Test fixtures for the PropDesk back-office.

The remote property-management API is replaced by an in-memory fake served
through httpx.MockTransport, so tests never touch the network.
"""
import json
import math
import uuid

import httpx
import pytest
from httpx import AsyncClient, ASGITransport

from propdesk.backoffice import BackOffice, get_backoffice
from propdesk.main import app
from propdesk.models import User
from propdesk.services.auth_service import Session, SessionStore


# ── Seed data ──────────────────────────────────────────────────────────

API_URL = "http://api.test/api"
TOKEN = "test-token"
ADMIN_PHONE = "0788000000"
ADMIN_PASSWORD = "secret"
ADMIN_USER = {"id": "u1", "name": "Admin", "phone": ADMIN_PHONE, "role": "admin"}


def _seed_properties():
    return [
        {"id": "p1", "name": "Sunset Villa", "address": "KG 11 Ave", "type": "house",
         "status": "active", "monthlyRent": 150000, "createdAt": "2024-01-02T09:00:00Z"},
        {"id": "p2", "name": "Kigali Heights A1", "address": "KG 7 Ave", "type": "apartment",
         "status": "active", "monthlyRent": 200000, "createdAt": "2024-01-03T09:00:00Z"},
        {"id": "p3", "name": "Garden House", "address": "KN 5 Rd", "type": "house",
         "status": "inactive", "monthlyRent": 100000, "createdAt": "2024-01-04T09:00:00Z"},
    ]


def _seed_tenants():
    return [
        {"id": "t1", "name": "Alice Uwase", "phone": "0788111111", "idNumber": "1199080012345678",
         "email": "alice@example.com", "propertyId": "p1", "status": "active",
         "payment": 150000, "paymentMethod": "mobile_money", "monthsPaid": 2,
         "totalAmount": 300000, "stayStartDate": "2024-01-15T00:00:00Z",
         "stayEndDate": "2024-03-15", "createdAt": "2024-01-15T10:00:00Z"},
        {"id": "t2", "name": "Bob Mugisha", "phone": "0788222222", "idNumber": "1198570012345678",
         "propertyId": "p2", "status": "inactive", "payment": 200000, "monthsPaid": 1,
         "totalAmount": 200000, "stayStartDate": "2023-06-01", "createdAt": "2023-06-01T10:00:00Z"},
    ]


def _seed_maintenance():
    return [
        {"id": "m1", "title": "Leaking roof", "description": "Water in the living room",
         "propertyId": "p1", "status": "pending", "priority": "urgent", "cost": 80000},
        {"id": "m2", "title": "Broken window", "description": "Bedroom window cracked",
         "propertyId": "p2", "status": "in_progress", "priority": "high"},
        {"id": "m3", "title": "Repaint fence", "description": "Fence is peeling",
         "propertyId": "p3", "status": "pending", "priority": "low",
         "scheduledDate": "2024-06-01"},
    ]


def _seed_leases():
    return [
        {"id": "l1", "propertyId": "p1", "tenantId": "t1", "startDate": "2024-01-15",
         "endDate": "2025-01-14", "monthlyRent": 150000, "status": "active"},
    ]


class FakeApi:
    """In-memory stand-in for the remote REST API."""

    FILTERS = ("status", "type", "priority", "propertyId", "tenantId")

    def __init__(self):
        self.collections = {
            "properties": _seed_properties(),
            "tenants": _seed_tenants(),
            "maintenance": _seed_maintenance(),
            "leases": _seed_leases(),
        }
        self.unavailable = set()     # property ids that already have an active lease
        self.fail = {}               # path -> (status, message or None)
        self.omit_pagination = False
        self.calls = []              # (method, path, params)
        self.tokens = []             # Authorization header of every request

    def calls_to(self, method, path):
        return [params for m, p, params in self.calls if m == method and p == path]

    # ── Routing ──

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path[len("/api"):]
        params = dict(request.url.params)
        self.calls.append((request.method, path, params))
        self.tokens.append(request.headers.get("authorization"))

        if path in self.fail:
            status, message = self.fail[path]
            if message is None:
                return httpx.Response(status)
            return httpx.Response(status, json={"success": False, "message": message})

        if path == "/auth/login":
            return self._login(request)
        if request.headers.get("authorization") != f"Bearer {TOKEN}":
            return httpx.Response(401, json={"success": False, "message": "Invalid token"})
        if path == "/auth/profile":
            return self._ok(ADMIN_USER)

        parts = path.strip("/").split("/")
        name = parts[0]
        if name not in self.collections:
            return httpx.Response(404, json={"success": False, "message": "Not found"})

        if name == "properties" and parts[1:] == ["available"]:
            return self._ok([p for p in self.collections[name] if p["id"] not in self.unavailable])
        if name == "properties" and len(parts) == 3 and parts[2] == "availability":
            available = parts[1] not in self.unavailable
            return self._ok({"propertyId": parts[1], "isAvailable": available,
                             "currentTenant": None if available else {"id": "t1"}})

        if len(parts) == 1:
            if request.method == "GET":
                return self._list(name, params)
            if request.method == "POST":
                record = dict(json.loads(request.content), id=uuid.uuid4().hex[:8])
                self.collections[name].append(record)
                return self._ok(record, status=201)
        else:
            record = next((r for r in self.collections[name] if r["id"] == parts[1]), None)
            if record is None:
                return httpx.Response(404, json={"success": False, "message": "Not found"})
            if request.method == "GET":
                return self._ok(record)
            if request.method == "PUT":
                record.update(json.loads(request.content))
                return self._ok(record)
            if request.method == "DELETE":
                self.collections[name].remove(record)
                return self._ok(None)
        return httpx.Response(405)

    def _login(self, request):
        body = json.loads(request.content)
        if body.get("phone") != ADMIN_PHONE or body.get("password") != ADMIN_PASSWORD:
            return httpx.Response(401, json={"success": False, "message": "Invalid credentials"})
        return self._ok({"token": TOKEN, "user": ADMIN_USER})

    def _list(self, name, params):
        records = list(self.collections[name])
        for key in self.FILTERS:
            if params.get(key):
                records = [r for r in records if r.get(key) == params[key]]
        search = params.get("search", "").lower()
        if search:
            records = [r for r in records if search in (r.get("name") or r.get("title") or "").lower()]

        total = len(records)
        page = int(params.get("page", 1))
        limit = int(params.get("limit", 0)) or max(total, 1)
        start = (page - 1) * limit
        body = {"success": True, "data": records[start:start + limit]}
        if not self.omit_pagination:
            body["pagination"] = {
                "page": page, "limit": limit, "total": total,
                "totalPages": math.ceil(total / limit),
            }
        return httpx.Response(200, json=body)

    @staticmethod
    def _ok(data, status=200):
        return httpx.Response(status, json={"success": True, "message": "OK", "data": data})


# ── Fixtures ───────────────────────────────────────────────────────────

@pytest.fixture
def fake_api():
    return FakeApi()


@pytest.fixture
def session(tmp_path):
    """Logged-in session persisted to a temporary store."""
    session = Session(SessionStore(str(tmp_path / "session.json")))
    session.populate(User.model_validate(ADMIN_USER), TOKEN)
    return session


@pytest.fixture
def backoffice(fake_api, session):
    return BackOffice(
        session=session,
        transport=httpx.MockTransport(fake_api.handler),
        base_url=API_URL,
        debounce_seconds=0.01,
    )


@pytest.fixture
async def client(backoffice):
    """Async test client for the FastAPI app."""
    app.dependency_overrides[get_backoffice] = lambda: backoffice
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
