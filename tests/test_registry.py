"""Tests for the provider registry."""

import pytest

from lead_enrichment.enrichment.registry import ProviderRegistry

from conftest import TENANT, make_provider


@pytest.fixture
def registry() -> ProviderRegistry:
    return ProviderRegistry([
        make_provider("zoominfo", 0.10, fields=("phone", "company"), priority=2),
        make_provider("apollo", 0.03, fields=("email", "phone"), priority=1),
        make_provider("lusha", 0.08, fields=("phone",), priority=1),
        make_provider("rocketreach", 0.04, fields=("email",), priority=0, enabled=False),
        make_provider("apollo", 0.03, fields=("email",), tenant_id="tenant-2"),
    ])


def test_list_all_sorted_by_priority_then_id(registry):
    assert [p.id for p in registry.list_all(TENANT)] == ["rocketreach", "apollo", "lusha", "zoominfo"]


def test_list_enabled_excludes_disabled(registry):
    assert [p.id for p in registry.list_enabled(TENANT)] == ["apollo", "lusha", "zoominfo"]


def test_default_order_filters_by_field(registry):
    assert registry.default_order(TENANT, "phone") == ["apollo", "lusha", "zoominfo"]
    assert registry.default_order(TENANT, "email") == ["apollo"]
    assert registry.default_order(TENANT, "industry") == []


def test_tenants_do_not_share_entries(registry):
    assert registry.get("tenant-2", "apollo").supported_fields == ["email"]
    assert registry.get("tenant-2", "zoominfo") is None


def test_reads_do_not_mutate(registry):
    before = registry.get(TENANT, "apollo").to_dict()
    registry.list_enabled(TENANT)
    registry.default_order(TENANT, "email")
    assert registry.get(TENANT, "apollo").to_dict() == before


def test_record_observation_updates_statistics(registry):
    registry.record_observation(TENANT, "apollo", 120, True)
    provider = registry.get(TENANT, "apollo")
    assert provider.avg_latency_ms == 120
    assert provider.success_rate == 1.0

    # Unknown providers are ignored
    registry.record_observation(TENANT, "missing", 10, False)


def test_remove(registry):
    assert registry.remove(TENANT, "lusha")
    assert not registry.remove(TENANT, "lusha")
    assert registry.get(TENANT, "lusha") is None
