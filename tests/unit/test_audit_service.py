"""Unit tests for audit diffs."""

from types import SimpleNamespace

from gateway.services.audit_service import field_diff

FIELDS = ("name", "events", "timeout_seconds", "is_active")


def test_diff_lists_only_changed_fields():
    endpoint = SimpleNamespace(name="ERP", events=["invoice.paid"], timeout_seconds=30, is_active=True)

    diff = field_diff(endpoint, {"name": "ERP", "timeout_seconds": 10, "is_active": False}, FIELDS)

    assert diff == {
        "timeout_seconds": {"before": 30, "after": 10},
        "is_active": {"before": True, "after": False},
    }


def test_none_means_unchanged():
    endpoint = SimpleNamespace(name="ERP", events=["invoice.paid"], timeout_seconds=30, is_active=True)

    assert field_diff(endpoint, {"events": None, "name": None}, FIELDS) == {}
