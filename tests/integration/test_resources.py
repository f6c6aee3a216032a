"""Integration tests for API-key access to business records."""

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from gateway.core.security import digest_key
from gateway.models.api_usage import ApiUsageRecord
from gateway.models.organization import Organization
from gateway.models.records import Estimate, Invoice, Project
from gateway.models.user import User
from tests.conftest import auth_headers, create_api_key

ALL_SCOPES = [
    "projects:read",
    "projects:write",
    "estimates:read",
    "estimates:write",
    "invoices:read",
    "invoices:write",
]


async def _usage(db: AsyncSession) -> list[ApiUsageRecord]:
    result = await db.execute(select(ApiUsageRecord).order_by(ApiUsageRecord.created_at))
    return list(result.scalars().all())


@pytest.mark.asyncio
class TestTenantIsolation:
    async def test_list_returns_only_the_keys_tenant(
        self,
        client: AsyncClient,
        db: AsyncSession,
        test_org: Organization,
        other_org: Organization,
    ):
        db.add_all(
            [
                Project(org_id=test_org.id, name="Harbor Warehouse"),
                Project(org_id=test_org.id, name="Elm Street Duplex"),
                Project(org_id=other_org.id, name="Competitor Tower"),
            ]
        )
        await db.commit()
        plaintext, _ = await create_api_key(db, test_org.id, ["projects:read"])

        response = await client.get("/api/projects", headers={"x-api-key": plaintext})

        assert response.status_code == 200
        names = sorted(p["name"] for p in response.json()["projects"])
        assert names == ["Elm Street Duplex", "Harbor Warehouse"]

    async def test_created_record_belongs_to_the_keys_tenant(
        self,
        client: AsyncClient,
        db: AsyncSession,
        test_org: Organization,
        other_org: Organization,
    ):
        plaintext, _ = await create_api_key(db, test_org.id, ["projects:write"])

        response = await client.post(
            "/api/projects",
            headers={"x-api-key": plaintext},
            json={"name": "Riverside Clinic", "org_id": str(other_org.id), "budget": "250000.00"},
        )

        assert response.status_code == 201
        body = response.json()["project"]
        assert body["name"] == "Riverside Clinic"
        assert "org_id" not in body

        project = (await db.execute(select(Project))).scalar_one()
        assert project.org_id == test_org.id

    async def test_pagination(self, client: AsyncClient, db: AsyncSession, test_org: Organization):
        db.add_all([Invoice(org_id=test_org.id, invoice_number=f"INV-{i}", client_name="Acme") for i in range(5)])
        await db.commit()
        plaintext, _ = await create_api_key(db, test_org.id, ["invoices:read"])

        response = await client.get(
            "/api/invoices", params={"limit": 2, "offset": 1}, headers={"x-api-key": plaintext}
        )

        assert response.status_code == 200
        assert len(response.json()["invoices"]) == 2

    async def test_bad_pagination_is_a_validation_error(
        self, client: AsyncClient, db: AsyncSession, test_org: Organization
    ):
        plaintext, _ = await create_api_key(db, test_org.id, ["invoices:read"])

        response = await client.get(
            "/api/invoices", params={"limit": "many"}, headers={"x-api-key": plaintext}
        )

        assert response.status_code == 400


@pytest.mark.asyncio
class TestPermissions:
    async def test_read_only_key_cannot_create(
        self, client: AsyncClient, db: AsyncSession, test_org: Organization
    ):
        plaintext, _ = await create_api_key(db, test_org.id, ["projects:read"])

        response = await client.post(
            "/api/projects", headers={"x-api-key": plaintext}, json={"name": "Blocked"}
        )

        assert response.status_code == 403
        assert response.json() == {"error": "Insufficient permissions"}
        assert await db.scalar(select(func.count()).select_from(Project)) == 0

        usage = await _usage(db)
        assert len(usage) == 1
        assert usage[0].response_status == 403
        assert usage[0].method == "POST"
        assert usage[0].api_key_hash == digest_key(plaintext)

    async def test_scope_is_checked_before_body(
        self, client: AsyncClient, db: AsyncSession, test_org: Organization
    ):
        plaintext, _ = await create_api_key(db, test_org.id, ["estimates:read"])

        response = await client.post(
            "/api/estimates",
            headers={"x-api-key": plaintext, "Content-Type": "application/json"},
            content=b"{not json",
        )

        assert response.status_code == 403

    async def test_scope_of_one_resource_does_not_open_another(
        self, client: AsyncClient, db: AsyncSession, test_org: Organization
    ):
        plaintext, _ = await create_api_key(db, test_org.id, ["projects:read", "projects:write"])

        response = await client.get("/api/invoices", headers={"x-api-key": plaintext})

        assert response.status_code == 403

    async def test_missing_key_is_recorded(self, client: AsyncClient, db: AsyncSession):
        response = await client.get("/api/estimates")

        assert response.status_code == 401
        assert response.json() == {"error": "API key required"}

        usage = await _usage(db)
        assert len(usage) == 1
        assert usage[0].api_key_hash is None
        assert usage[0].response_status == 401
        assert usage[0].endpoint == "/api/estimates"

    async def test_unknown_key(self, client: AsyncClient, db: AsyncSession):
        response = await client.get("/api/projects", headers={"x-api-key": "bdk_unknown"})

        assert response.status_code == 401
        assert response.json() == {"error": "Invalid API key"}

    async def test_unsupported_method(
        self, client: AsyncClient, db: AsyncSession, test_org: Organization
    ):
        plaintext, _ = await create_api_key(db, test_org.id, ALL_SCOPES)

        response = await client.delete("/api/projects", headers={"x-api-key": plaintext})

        assert response.status_code == 405
        assert response.json() == {"error": "Method Not Allowed"}


@pytest.mark.asyncio
class TestCreateRecords:
    async def test_each_resource_can_be_created_and_listed(
        self, client: AsyncClient, db: AsyncSession, test_org: Organization
    ):
        plaintext, _ = await create_api_key(db, test_org.id, ALL_SCOPES)
        headers = {"x-api-key": plaintext}

        estimate = await client.post(
            "/api/estimates",
            headers=headers,
            json={"estimate_number": "EST-7", "client_name": "Jordan Lee", "total_amount": "18400.50"},
        )
        invoice = await client.post(
            "/api/invoices",
            headers=headers,
            json={"invoice_number": "INV-12", "client_name": "Jordan Lee", "due_date": "2026-12-01"},
        )

        assert estimate.status_code == 201
        assert estimate.json()["estimate"]["estimate_number"] == "EST-7"
        assert invoice.status_code == 201
        assert invoice.json()["invoice"]["due_date"] == "2026-12-01"

        assert await db.scalar(select(func.count()).select_from(Estimate)) == 1
        listed = await client.get("/api/invoices", headers=headers)
        assert [i["invoice_number"] for i in listed.json()["invoices"]] == ["INV-12"]

    async def test_invalid_body_is_rejected_with_details(
        self, client: AsyncClient, db: AsyncSession, test_org: Organization
    ):
        plaintext, _ = await create_api_key(db, test_org.id, ["projects:write"])

        response = await client.post(
            "/api/projects",
            headers={"x-api-key": plaintext},
            json={"name": "", "completion_percentage": 140},
        )

        assert response.status_code == 400
        data = response.json()
        assert data["error"] == "Invalid request body"
        assert data["details"]
        assert await db.scalar(select(func.count()).select_from(Project)) == 0

        usage = await _usage(db)
        assert [u.response_status for u in usage] == [400]

    async def test_malformed_json(
        self, client: AsyncClient, db: AsyncSession, test_org: Organization
    ):
        plaintext, _ = await create_api_key(db, test_org.id, ["projects:write"])

        response = await client.post(
            "/api/projects",
            headers={"x-api-key": plaintext, "Content-Type": "application/json"},
            content=b"{not json",
        )

        assert response.status_code == 400
        assert response.json()["error"] == "Request body must be valid JSON"

    async def test_successful_calls_are_recorded_and_touch_the_key(
        self, client: AsyncClient, db: AsyncSession, test_org: Organization
    ):
        plaintext, key = await create_api_key(db, test_org.id, ["projects:read", "projects:write"])
        headers = {"x-api-key": plaintext, "User-Agent": "erp-sync/2.1"}

        await client.post("/api/projects", headers=headers, json={"name": "Depot"})
        await client.get("/api/projects", headers=headers)

        usage = await _usage(db)
        assert sorted(u.response_status for u in usage) == [200, 201]
        assert all(u.org_id == test_org.id for u in usage)
        assert all(u.user_agent == "erp-sync/2.1" for u in usage)

        await db.refresh(key)
        assert key.last_used_at is not None


@pytest.mark.asyncio
class TestRateLimit:
    async def test_calls_over_the_hourly_ceiling_are_rejected(
        self, client: AsyncClient, db: AsyncSession, test_org: Organization
    ):
        plaintext, _ = await create_api_key(
            db, test_org.id, ["projects:read"], rate_limit_per_hour=2
        )
        headers = {"x-api-key": plaintext}

        first = await client.get("/api/projects", headers=headers)
        second = await client.get("/api/projects", headers=headers)
        third = await client.get("/api/projects", headers=headers)

        assert first.status_code == 200
        assert second.status_code == 200
        assert third.status_code == 429
        assert third.json() == {"error": "Rate limit exceeded"}

        usage = await _usage(db)
        assert sorted(u.response_status for u in usage) == [200, 200, 429]

    async def test_issue_and_validation_do_not_consume_the_ceiling(
        self, client: AsyncClient, test_admin_user: User
    ):
        created = await client.post(
            "/create-key",
            headers=auth_headers(test_admin_user),
            json={"key_name": "Single call", "permissions": ["projects:read"], "rate_limit_per_hour": 1},
        )
        assert created.status_code == 201
        headers = {"x-api-key": created.json()["api_key"]}

        validated = await client.post("/validate-key", headers=headers)
        first = await client.get("/api/projects", headers=headers)
        second = await client.get("/api/projects", headers=headers)

        assert validated.status_code == 200
        assert first.status_code == 200
        assert second.status_code == 429
