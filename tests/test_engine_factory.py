"""Tests for engine wiring from configuration."""

import textwrap

import pytest

from lead_enrichment.config.config_manager import ConfigManager
from lead_enrichment.core.models import ContactRecord, JobStatus, ResultOutcome
from lead_enrichment.enrichment.engine_factory import create_engine, default_providers
from lead_enrichment.enrichment.sources import ApolloIOSource, HunterIOSource

from conftest import ScriptedAdapter, hit


@pytest.fixture
def manager(tmp_path) -> ConfigManager:
    path = tmp_path / "waterfall.yaml"
    path.write_text(textwrap.dedent("""
        engine:
          failure_threshold: 2
        providers:
          - id: hunter
            supported_fields: [email]
            priority: 1
            cost_per_lookup: 0.02
          - id: apollo
            supported_fields: [email, phone]
            priority: 2
            cost_per_lookup: 0.03
        waterfalls:
          email:
            provider_order: [apollo, hunter]
            min_confidence: 0.8
    """), encoding="utf-8")
    return ConfigManager(path)


class TestCreateEngine:

    @pytest.mark.asyncio
    async def test_engine_runs_configured_waterfall(self, manager):
        adapters = {
            "hunter": ScriptedAdapter("hunter", hit("email", "jane@acme.io", 0.9, 0.02)),
            "apollo": ScriptedAdapter("apollo", hit("email", "j@acme.io", 0.5, 0.03)),
        }
        engine = create_engine("acme", manager, adapters)
        engine.contacts.add(ContactRecord(id="c1", tenant_id="acme", email="jane@acme.io"))

        job = await engine.orchestrator.enrich("acme", "c1", ["email"])

        assert job.status == JobStatus.COMPLETED
        assert [(r.provider, r.outcome) for r in job.results] == [
            ("apollo", ResultOutcome.LOW_CONFIDENCE), ("hunter", ResultOutcome.ACCEPTED)]
        assert engine.orchestrator.engine_config.failure_threshold == 2

    @pytest.mark.asyncio
    async def test_tenant_known_without_contacts(self, manager):
        engine = create_engine("acme", manager, adapters={})
        job = await engine.orchestrator.enrich("acme", "nobody", ["email"])
        assert job.error == "Unknown contact: nobody"

    @pytest.mark.asyncio
    async def test_admin_and_monitor_share_engine_state(self, manager):
        engine = create_engine("acme", manager, adapters={"hunter": ScriptedAdapter("hunter", healthy=False)})

        assert [p.id for p in await engine.admin.list_providers("acme")] == ["hunter", "apollo"]
        assert [c.field_name for c in await engine.admin.list_waterfalls("acme")] == ["email"]
        assert await engine.monitor.run_health_checks() == {"hunter": False}

    def test_registry_falls_back_to_adapter_metadata(self, tmp_path):
        manager = ConfigManager(tmp_path / "missing.yaml")
        adapters = {
            "hunter": HunterIOSource(api_key="h", base_url="https://h.test"),
            "apollo": ApolloIOSource(api_key="a", base_url="https://a.test"),
        }
        engine = create_engine("acme", manager, adapters)

        providers = engine.orchestrator.registry.list_all("acme")
        assert [p.id for p in providers] == ["apollo", "hunter"]
        assert providers[0].cost_per_lookup == ApolloIOSource.cost_per_lookup


def test_default_providers_follow_declaration_order():
    adapters = {"hunter": HunterIOSource(api_key="h", base_url="https://h.test"),
                "apollo": ApolloIOSource(api_key="a", base_url="https://a.test")}
    providers = default_providers("acme", adapters)
    assert providers["apollo"].priority < providers["hunter"].priority
    assert providers["hunter"].supported_fields == list(HunterIOSource.supported_fields)
