"""Tests for tenant administration: providers, waterfalls, health and cache."""

from datetime import timedelta

import pytest

from lead_enrichment.core.models import EnrichmentCacheEntry, JobStatus, ProviderType
from lead_enrichment.enrichment.admin import EnrichmentAdmin

from conftest import CONTACT, TENANT, hit


@pytest.fixture
def admin(harness) -> EnrichmentAdmin:
    return EnrichmentAdmin(harness.registry, harness.configs, harness.health, harness.cache)


class TestProviderAdministration:

    @pytest.mark.asyncio
    async def test_configure_new_vendor_provider(self, admin):
        result = await admin.configure_provider(TENANT, "clearbit", supported_fields=["email", "title"],
                                                cost_per_lookup=0.05, priority=1)
        assert result.ok
        assert result.value.provider_type == ProviderType.CLEARBIT
        assert result.value.name == "clearbit"
        assert [p.id for p in await admin.list_providers(TENANT)] == ["clearbit"]

    @pytest.mark.asyncio
    async def test_configure_updates_existing_provider(self, admin, harness):
        harness.add("apollo", 0.03, hit("email", "jane@acme.io", 0.9, 0.03))

        result = await admin.configure_provider(TENANT, "apollo", cost_per_lookup=0.04)

        assert result.ok
        assert harness.registry.get(TENANT, "apollo").cost_per_lookup == 0.04

    @pytest.mark.asyncio
    async def test_invalid_provider_is_not_registered(self, admin, harness):
        result = await admin.configure_provider(TENANT, "acme_data", provider_type="custom", cost_per_lookup=-1)
        assert not result.ok
        assert "cost_per_lookup must be >= 0" in result.errors
        assert harness.registry.get(TENANT, "acme_data") is None

        result = await admin.configure_provider(TENANT, "acme_data")
        assert result.errors == ["unknown provider type: acme_data"]

    @pytest.mark.asyncio
    async def test_unexpected_attribute_rejected(self, admin):
        result = await admin.configure_provider(TENANT, "hunter", colour="red")
        assert not result.ok
        assert result.errors[0].startswith("invalid provider attributes")

    @pytest.mark.asyncio
    async def test_disable_takes_effect_on_next_job(self, admin, harness):
        apollo = harness.add("apollo", 0.03, hit("email", "jane@acme.io", 0.9, 0.03))

        assert (await admin.disable_provider(TENANT, "apollo")).ok
        job = await harness.orchestrator.enrich(TENANT, CONTACT, ["email"])
        assert apollo.calls == []
        assert job.status == JobStatus.EXHAUSTED

        assert (await admin.enable_provider(TENANT, "apollo")).ok
        job = await harness.orchestrator.enrich(TENANT, CONTACT, ["email"])
        assert job.status == JobStatus.COMPLETED

    @pytest.mark.asyncio
    @pytest.mark.parametrize("operation", ["disable_provider", "enable_provider", "delete_provider"])
    async def test_missing_provider(self, admin, operation):
        result = await getattr(admin, operation)(TENANT, "ghost")
        assert result.errors == ["provider not found: ghost"]

    @pytest.mark.asyncio
    async def test_delete_provider(self, admin, harness):
        harness.add("lusha", 0.08, hit("phone", "+1 555", 0.9, 0.08), fields=("phone",))
        assert (await admin.delete_provider(TENANT, "lusha")).ok
        assert await admin.list_providers(TENANT) == []


class TestWaterfallAdministration:

    @pytest.mark.asyncio
    async def test_create_then_update(self, admin):
        created = await admin.configure_waterfall(TENANT, "email", ["hunter", "apollo"], min_confidence=0.8)
        assert created.ok

        updated = await admin.configure_waterfall(TENANT, "email", ["apollo"], max_attempts=1)
        assert updated.ok

        [config] = await admin.list_waterfalls(TENANT)
        assert config.provider_order == ["apollo"]
        assert config.max_attempts == 1
        assert config.min_confidence == 0.8

    @pytest.mark.asyncio
    async def test_unknown_field_rejected(self, admin):
        result = await admin.configure_waterfall(TENANT, "shoe_size", ["hunter"])
        assert result.errors == ["unknown field: shoe_size"]

    @pytest.mark.asyncio
    async def test_empty_order_rejected(self, admin):
        result = await admin.configure_waterfall(TENANT, "email", [])
        assert result.errors == ["provider_order must contain at least one provider"]
        assert await admin.list_waterfalls(TENANT) == []

    @pytest.mark.asyncio
    async def test_invalid_policy_leaves_existing_config(self, admin):
        await admin.configure_waterfall(TENANT, "email", ["hunter"])
        result = await admin.configure_waterfall(TENANT, "email", ["apollo"], timeout_ms=5)
        assert not result.ok

        [config] = await admin.list_waterfalls(TENANT)
        assert config.provider_order == ["hunter"]

    @pytest.mark.asyncio
    async def test_unregistered_provider_is_accepted(self, admin, caplog):
        result = await admin.configure_waterfall(TENANT, "phone", ["lusha"])
        assert result.ok
        assert "unregistered providers: lusha" in caplog.text

    @pytest.mark.asyncio
    async def test_delete_waterfall(self, admin):
        await admin.configure_waterfall(TENANT, "email", ["hunter"])
        assert (await admin.delete_waterfall(TENANT, "email")).ok
        assert not (await admin.delete_waterfall(TENANT, "email")).ok


class TestHealthAndCache:

    @pytest.mark.asyncio
    async def test_provider_health(self, admin, harness):
        await harness.health.record_failure(TENANT, "zoominfo")
        [health] = await admin.provider_health(TENANT)
        assert health.provider_id == "zoominfo"
        assert health.failure_count == 1

    @pytest.mark.asyncio
    async def test_invalidate_cache(self, admin, harness, clock):
        for field_name in ("email", "phone"):
            await harness.cache.set(EnrichmentCacheEntry(
                tenant_id=TENANT, contact_id=CONTACT, field_name=field_name, provider_id="apollo",
                value="x", confidence=0.9, expires_at=clock() + timedelta(days=1),
            ))

        assert await admin.invalidate_cache(TENANT, CONTACT, "email") == 1
        assert await admin.invalidate_cache(TENANT, CONTACT) == 1
        assert await admin.invalidate_cache(TENANT, CONTACT) == 0
