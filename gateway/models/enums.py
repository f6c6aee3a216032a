"""Enumerations for roles, scopes, delivery outcomes and audit actions."""

from enum import Enum


class UserRole(str, Enum):
    """Tenant user role with hierarchy.

    Hierarchy (higher can do everything lower can do):
    1. ROOT_ADMIN
    2. ADMIN (API keys and webhook endpoints)
    3. MEMBER
    4. VIEWER
    """

    ROOT_ADMIN = "root_admin"
    ADMIN = "admin"
    MEMBER = "member"
    VIEWER = "viewer"

    @classmethod
    def get_hierarchy_level(cls, role: "UserRole") -> int:
        levels = {
            cls.VIEWER: 1,
            cls.MEMBER: 2,
            cls.ADMIN: 3,
            cls.ROOT_ADMIN: 4,
        }
        return levels.get(role, 0)

    def has_permission(self, required_role: "UserRole") -> bool:
        """True if this role sits at or above ``required_role``."""
        return self.get_hierarchy_level(self) >= self.get_hierarchy_level(required_role)


class ApiResource(str, Enum):
    """Business record collections reachable with an API key."""

    PROJECTS = "projects"
    ESTIMATES = "estimates"
    INVOICES = "invoices"

    def scope(self, action: str) -> str:
        return f"{self.value}:{action}"


READ = "read"
WRITE = "write"

KNOWN_SCOPES: frozenset[str] = frozenset(
    resource.scope(action) for resource in ApiResource for action in (READ, WRITE)
)


class DeliveryStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"


class AuditAction(str, Enum):
    """Administrative actions recorded in the audit trail."""

    API_KEY_CREATE = "api_key.create"
    API_KEY_REVOKE = "api_key.revoke"
    API_KEY_ROTATE = "api_key.rotate"

    WEBHOOK_CREATE = "webhook.create"
    WEBHOOK_UPDATE = "webhook.update"
