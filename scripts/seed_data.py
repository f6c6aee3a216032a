"""Seed script for development data.

Creates:
- Tenant "BuildDesk Dev"
- Tenant admin "admin@builddesk.local"
- A development API key with every scope (printed once)

Prints a bearer token for the admin so /create-key and the webhook routes can
be exercised locally. Can be run multiple times safely (skips what exists).
"""
import asyncio
import os
import sys
from pathlib import Path

# Repository root on the path so `gateway` imports without installation
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy import select

from gateway.core.database import AsyncSessionLocal
from gateway.core.security import create_access_token
from gateway.models.api_key import ApiKey
from gateway.models.enums import KNOWN_SCOPES, UserRole
from gateway.models.organization import Organization
from gateway.models.user import User
from gateway.services.key_service import KeyAuthority

DEV_KEY_NAME = "Development key"


async def seed_data():
    """Seed development data."""
    print("Starting database seeding...")

    org_name = os.environ.get("SEED_ORG_NAME", "BuildDesk Dev")
    admin_email = os.environ.get("SEED_ADMIN_EMAIL", "admin@builddesk.local")

    async with AsyncSessionLocal() as db:
        result = await db.execute(select(Organization).where(Organization.name == org_name))
        org = result.scalar_one_or_none()
        if org:
            print(f"✓ Organization '{org_name}' already exists (ID: {org.id})")
        else:
            org = Organization(name=org_name)
            db.add(org)
            await db.flush()
            print(f"✓ Created organization '{org_name}' (ID: {org.id})")

        result = await db.execute(select(User).where(User.email == admin_email))
        admin = result.scalar_one_or_none()
        if admin:
            print(f"✓ Admin user '{admin_email}' already exists (ID: {admin.id})")
        else:
            admin = User(org_id=org.id, email=admin_email, role=UserRole.ADMIN, is_active=True)
            db.add(admin)
            await db.flush()
            print(f"✓ Created admin user '{admin_email}'")

        result = await db.execute(
            select(ApiKey)
            .where(ApiKey.org_id == org.id)
            .where(ApiKey.key_name == DEV_KEY_NAME)
            .where(ApiKey.is_active.is_(True))
        )
        existing_key = result.scalars().first()
        if existing_key:
            print(f"✓ API key '{DEV_KEY_NAME}' already exists ({existing_key.api_key_prefix})")
        else:
            new_key = await KeyAuthority(db).issue(
                current_user=admin,
                key_name=DEV_KEY_NAME,
                permissions=sorted(KNOWN_SCOPES),
            )
            print(f"✓ Created API key '{DEV_KEY_NAME}': {new_key.plaintext}")
            print("  (store it now; it cannot be shown again)")

        await db.commit()

    print("\n✓ Database seeding completed successfully!")
    print("\nBearer token for the admin:")
    print(f"  {create_access_token({'sub': str(admin.id)})}")


if __name__ == "__main__":
    asyncio.run(seed_data())
