"""Integration tests for key issuance, validation and administration."""

from datetime import UTC, datetime, timedelta

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from gateway.core.security import digest_key
from gateway.models.api_key import ApiKey
from gateway.models.api_usage import ApiUsageRecord
from gateway.models.audit_event import AuditEvent
from gateway.models.enums import AuditAction, UserRole
from gateway.models.organization import Organization
from gateway.models.user import User
from tests.conftest import auth_headers, create_api_key, create_user


@pytest.mark.asyncio
class TestValidateKey:
    async def test_valid_key_reports_tenant_scope_and_limit(
        self, client: AsyncClient, db: AsyncSession, test_org: Organization
    ):
        plaintext, _ = await create_api_key(
            db, test_org.id, ["projects:read"], rate_limit_per_hour=1000
        )

        response = await client.post("/validate-key", headers={"x-api-key": plaintext})

        assert response.status_code == 200
        assert response.json() == {
            "valid": True,
            "tenant_id": str(test_org.id),
            "permissions": ["projects:read"],
            "rate_limit": 1000,
        }

        usage = (await db.execute(select(ApiUsageRecord))).scalar_one()
        assert usage.endpoint == "/validate-key"
        assert usage.response_status == 200
        assert usage.org_id == test_org.id

    async def test_expired_key_is_rejected(
        self, client: AsyncClient, db: AsyncSession, test_org: Organization
    ):
        plaintext, _ = await create_api_key(
            db,
            test_org.id,
            ["projects:read"],
            expires_at=datetime.now(UTC) - timedelta(seconds=1),
        )

        response = await client.post("/validate-key", headers={"x-api-key": plaintext})

        assert response.status_code == 401
        assert response.json() == {"error": "Invalid API key"}

        usage = (await db.execute(select(ApiUsageRecord))).scalar_one()
        assert usage.response_status == 401
        assert usage.api_key_hash == digest_key(plaintext)

    async def test_missing_key(self, client: AsyncClient):
        response = await client.post("/validate-key")

        assert response.status_code == 401
        assert response.json() == {"error": "API key required"}

    async def test_revoked_key_is_rejected(
        self, client: AsyncClient, db: AsyncSession, test_org: Organization
    ):
        plaintext, _ = await create_api_key(db, test_org.id, ["projects:read"], is_active=False)

        response = await client.post("/validate-key", headers={"x-api-key": plaintext})

        assert response.status_code == 401
        assert response.json() == {"error": "Invalid API key"}


@pytest.mark.asyncio
class TestCreateKey:
    async def test_admin_creates_key_shown_once(
        self, client: AsyncClient, db: AsyncSession, test_admin_user: User
    ):
        response = await client.post(
            "/create-key",
            headers=auth_headers(test_admin_user),
            json={
                "key_name": "ERP integration",
                "permissions": ["projects:read", "invoices:write"],
                "rate_limit_per_hour": 300,
            },
        )

        assert response.status_code == 201
        data = response.json()
        assert data["api_key"].startswith("bdk_")
        assert data["api_key_prefix"] == data["api_key"][:12] + "..."
        assert data["permissions"] == ["projects:read", "invoices:write"]
        assert data["rate_limit_per_hour"] == 300

        stored = (await db.execute(select(ApiKey))).scalar_one()
        assert stored.api_key_hash == digest_key(data["api_key"])
        assert stored.org_id == test_admin_user.org_id

        usage = (await db.execute(select(ApiUsageRecord))).scalar_one()
        assert usage.endpoint == "/create-key"
        assert usage.response_status == 201
        assert usage.api_key_hash == stored.api_key_hash

        audit = (
            await db.execute(select(AuditEvent).where(AuditEvent.action == AuditAction.API_KEY_CREATE))
        ).scalar_one()
        assert audit.entity_id == stored.id

        # The new key works immediately
        validated = await client.post("/validate-key", headers={"x-api-key": data["api_key"]})
        assert validated.status_code == 200
        assert validated.json()["tenant_id"] == str(test_admin_user.org_id)

    async def test_default_rate_limit(self, client: AsyncClient, test_admin_user: User):
        response = await client.post(
            "/create-key",
            headers=auth_headers(test_admin_user),
            json={"key_name": "Defaults", "permissions": ["estimates:read"]},
        )

        assert response.status_code == 201
        assert response.json()["rate_limit_per_hour"] == 1000

    async def test_non_admin_is_forbidden(
        self, client: AsyncClient, db: AsyncSession, test_member_user: User
    ):
        response = await client.post(
            "/create-key",
            headers=auth_headers(test_member_user),
            json={"key_name": "Sneaky", "permissions": ["projects:read"]},
        )

        assert response.status_code == 403
        assert response.json() == {"error": "Insufficient permissions"}
        assert (await db.execute(select(ApiKey))).scalars().all() == []

    async def test_missing_bearer_is_unauthorized(self, client: AsyncClient):
        response = await client.post(
            "/create-key", json={"key_name": "Anon", "permissions": ["projects:read"]}
        )

        assert response.status_code == 401
        assert response.json() == {"error": "Authorization required"}

    async def test_invalid_bearer_is_unauthorized(self, client: AsyncClient):
        response = await client.post(
            "/create-key",
            headers={"Authorization": "Bearer not-a-jwt"},
            json={"key_name": "Anon", "permissions": ["projects:read"]},
        )

        assert response.status_code == 401

    async def test_inactive_admin_is_forbidden(
        self, client: AsyncClient, db: AsyncSession, test_org: Organization
    ):
        user = await create_user(
            db, test_org.id, "former@test.com", role=UserRole.ADMIN, is_active=False
        )

        response = await client.post(
            "/create-key",
            headers=auth_headers(user),
            json={"key_name": "Former", "permissions": ["projects:read"]},
        )

        assert response.status_code == 403
        assert response.json() == {"error": "Account is inactive"}

    @pytest.mark.parametrize(
        "body",
        [
            {"key_name": "Empty scopes", "permissions": []},
            {"key_name": "Unknown scope", "permissions": ["projects:delete"]},
            {"permissions": ["projects:read"]},
            {"key_name": "Past expiry", "permissions": ["projects:read"], "expires_at": "2020-01-01T00:00:00Z"},
        ],
    )
    async def test_invalid_body(self, client: AsyncClient, test_admin_user: User, body):
        response = await client.post("/create-key", headers=auth_headers(test_admin_user), json=body)

        assert response.status_code == 400
        assert "error" in response.json()


@pytest.mark.asyncio
class TestKeyAdministration:
    async def test_list_keys_never_exposes_secrets(
        self,
        client: AsyncClient,
        db: AsyncSession,
        test_admin_user: User,
        other_org: Organization,
    ):
        plaintext, _ = await create_api_key(db, test_admin_user.org_id, ["projects:read"])
        await create_api_key(db, other_org.id, ["projects:read"], key_name="Foreign")

        response = await client.get("/keys", headers=auth_headers(test_admin_user))

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        item = data["items"][0]
        assert item["key_name"] == "Integration key"
        assert "api_key" not in item
        assert "api_key_hash" not in item
        assert plaintext not in response.text

    async def test_viewer_cannot_list_keys(self, client: AsyncClient, test_viewer_user: User):
        response = await client.get("/keys", headers=auth_headers(test_viewer_user))

        assert response.status_code == 403

    async def test_revoke_then_key_stops_working(
        self, client: AsyncClient, db: AsyncSession, test_admin_user: User
    ):
        plaintext, key = await create_api_key(db, test_admin_user.org_id, ["projects:read"])

        first = await client.post(f"/keys/{key.id}/revoke", headers=auth_headers(test_admin_user))
        second = await client.post(f"/keys/{key.id}/revoke", headers=auth_headers(test_admin_user))

        assert first.status_code == 200
        assert first.json()["is_active"] is False
        assert second.status_code == 200

        validated = await client.post("/validate-key", headers={"x-api-key": plaintext})
        assert validated.status_code == 401

    async def test_revoke_other_tenant_key_is_not_found(
        self, client: AsyncClient, db: AsyncSession, test_admin_user: User, other_org: Organization
    ):
        _, foreign = await create_api_key(db, other_org.id, ["projects:read"])

        response = await client.post(
            f"/keys/{foreign.id}/revoke", headers=auth_headers(test_admin_user)
        )

        assert response.status_code == 404
        await db.refresh(foreign)
        assert foreign.is_active is True

    async def test_rotate_issues_replacement(
        self, client: AsyncClient, db: AsyncSession, test_admin_user: User
    ):
        old_plaintext, key = await create_api_key(
            db, test_admin_user.org_id, ["invoices:read"], rate_limit_per_hour=42
        )

        response = await client.post(f"/keys/{key.id}/rotate", headers=auth_headers(test_admin_user))

        assert response.status_code == 201
        data = response.json()
        assert data["api_key"] != old_plaintext
        assert data["permissions"] == ["invoices:read"]
        assert data["rate_limit_per_hour"] == 42

        old_check = await client.post("/validate-key", headers={"x-api-key": old_plaintext})
        new_check = await client.post("/validate-key", headers={"x-api-key": data["api_key"]})
        assert old_check.status_code == 401
        assert new_check.status_code == 200
