"""Tests for vendor adapters. HTTP is patched out at ``_request``."""

from unittest.mock import AsyncMock, patch

import aiohttp
import pytest

from lead_enrichment.config.config_manager import ConfigManager
from lead_enrichment.core.exceptions import (
    AuthenticationError,
    ProviderError,
    ProviderTimeoutError,
    RateLimitError,
)
from lead_enrichment.core.models import EnrichmentRequest, FieldValue
from lead_enrichment.enrichment.sources import (
    SOURCE_CLASSES,
    ApolloIOSource,
    ClearbitEnrichmentSource,
    HunterIOSource,
    LushaSource,
    PeopleDataLabsSource,
    RocketReachSource,
    ZoomInfoSource,
    build_sources,
)

REQUEST = EnrichmentRequest(email="jane@acme.io", first_name="Jane", last_name="Doe", company="Acme")


def source(cls, api_key="test-key"):
    return cls(api_key=api_key, base_url="https://api.example.test")


class FakeResponse:

    def __init__(self, status, body=None, headers=None, text=""):
        self.status = status
        self._body = body
        self.headers = headers or {}
        self._text = text

    async def json(self, content_type=None):
        return self._body

    async def text(self):
        return self._text


def values(fields):
    return {fv.field: (fv.value, fv.confidence) for fv in fields}


class TestResponseMapping:

    def test_clearbit(self):
        fields = source(ClearbitEnrichmentSource)._process_response({
            'person': {
                'email': 'jane@acme.io',
                'name': {'givenName': 'Jane', 'familyName': 'Doe'},
                'employment': {'title': 'VP Sales'},
                'linkedin': {'handle': 'janedoe'},
                'geo': {'city': 'Berlin', 'country': 'Germany'},
            },
            'company': {'name': 'Acme', 'category': {'industry': 'Software'}, 'metrics': {'employees': 250}},
        })
        mapped = values(fields)
        assert mapped['title'] == ('VP Sales', 0.9)
        assert mapped['linkedin_url'] == ('https://linkedin.com/in/janedoe', 0.95)
        assert mapped['location'] == ('Berlin, Germany', 0.8)
        assert mapped['industry'] == ('Software', 0.85)
        assert mapped['company_size'] == (250, 0.8)

    def test_apollo(self):
        fields = source(ApolloIOSource)._process_response({'person': {
            'email': 'jane@acme.io',
            'phone_numbers': [{'sanitized_number': '+15550100'}],
            'title': 'VP Sales',
            'organization': {'name': 'Acme'},
        }})
        mapped = values(fields)
        assert mapped['phone'] == ('+15550100', 0.8)
        assert mapped['company'] == ('Acme', 0.85)
        assert 'linkedin_url' not in mapped

    def test_hunter_finder(self):
        fields = source(HunterIOSource)._process_response({'author_info': {
            'email': 'jane@acme.io', 'score': 91, 'position': 'VP Sales', 'linkedin_url': 'https://linkedin.com/in/jd',
        }})
        mapped = values(fields)
        assert mapped['email'] == ('jane@acme.io', pytest.approx(0.91))
        assert mapped['title'] == ('VP Sales', 0.7)
        assert mapped['linkedin_url'][1] == 0.75

    def test_hunter_drops_undeliverable(self):
        hunter = source(HunterIOSource)
        assert hunter._process_response({'email_verification': {
            'email': 'jane@acme.io', 'result': 'undeliverable', 'score': 10}}) == []
        assert hunter._process_response({'email_verification': {
            'email': 'jane@acme.io', 'result': 'deliverable', 'score': 88}}) == [
            FieldValue('email', 'jane@acme.io', 0.88)]

    def test_peopledatalabs_likelihood_is_confidence(self):
        fields = source(PeopleDataLabsSource)._process_response({
            'status': 200,
            'likelihood': 8,
            'data': {'personal_emails': ['jane@gmail.com'], 'job_title': 'VP Sales', 'job_company_size': '51-200'},
        })
        mapped = values(fields)
        assert mapped['email'] == ('jane@gmail.com', pytest.approx(0.8))
        assert mapped['title'] == ('VP Sales', pytest.approx(0.8))
        assert mapped['company_size'] == ('51-200', pytest.approx(0.8))

    def test_zoominfo(self):
        mapped = values(source(ZoomInfoSource)._process_response({
            'phone': '+1 555 0100', 'jobTitle': 'VP Sales',
            'company': {'name': 'Acme', 'industry': 'Software', 'employeeCount': 250},
        }))
        assert mapped['phone'] == ('+1 555 0100', 0.85)
        assert mapped['company_size'] == (250, 0.85)

    def test_lusha_prefers_direct_dial(self):
        lusha = source(LushaSource)
        mapped = values(lusha._process_response({'phoneNumbers': [
            {'number': '+1 555 0000', 'type': 'mobile'},
            {'number': '+1 555 0100', 'type': 'direct'},
        ]}))
        assert mapped['phone'] == ('+1 555 0100', 0.9)

        mapped = values(lusha._process_response({'phoneNumbers': [{'number': '+1 555 0000'}],
                                                 'company': {'name': 'Acme'}}))
        assert mapped['phone'] == ('+1 555 0000', 0.75)
        assert mapped['company'] == ('Acme', 0.85)

    @pytest.mark.parametrize("emails", [['jane@acme.io'], [{'email': 'jane@acme.io'}]])
    def test_rocketreach_email_shapes(self, emails):
        mapped = values(source(RocketReachSource)._process_response({'emails': emails}))
        assert mapped['email'] == ('jane@acme.io', 0.85)


class TestEnrich:

    @pytest.mark.asyncio
    async def test_success_reports_fields_and_cost(self):
        clearbit = source(ClearbitEnrichmentSource)
        with patch.object(clearbit, '_request', AsyncMock(return_value={
            'person': {'email': 'jane@acme.io', 'employment': {'title': ''}},
        })) as request:
            result = await clearbit.enrich(REQUEST)

        assert result.success
        assert result.cost == 0.05
        assert result.get_field('email').value == 'jane@acme.io'
        assert result.get_field('title') is None
        request.assert_awaited_once_with('GET', '', params={'email': 'jane@acme.io'})

    @pytest.mark.asyncio
    async def test_no_match_is_billed_at_no_match_cost(self):
        apollo = source(ApolloIOSource)
        with patch.object(apollo, '_request', AsyncMock(return_value={'person': None})):
            result = await apollo.enrich(REQUEST)
        assert not result.success
        assert result.error == "No match found"
        assert result.cost == 0.01

    @pytest.mark.asyncio
    async def test_zoominfo_uses_first_match(self):
        zoominfo = source(ZoomInfoSource)
        with patch.object(zoominfo, '_request', AsyncMock(return_value={'data': [{'phone': '+1 555 0100'}]})):
            result = await zoominfo.enrich(REQUEST)
        assert result.get_field('phone').value == '+1 555 0100'

    @pytest.mark.asyncio
    async def test_hunter_chooses_finder_when_name_and_domain_known(self):
        hunter = source(HunterIOSource)
        response = {'data': {'email': 'jane@acme.io', 'score': 90}}
        with patch.object(hunter, '_request', AsyncMock(return_value=response)) as request:
            await hunter.enrich(REQUEST)
            assert request.await_args.args[1] == '/email-finder'

            await hunter.enrich(EnrichmentRequest(email="jane@acme.io"))
            assert request.await_args.args[1] == '/email-verifier'

    @pytest.mark.asyncio
    async def test_not_configured(self):
        clearbit = source(ClearbitEnrichmentSource, api_key="")
        with patch.object(clearbit, '_request', AsyncMock()) as request:
            result = await clearbit.enrich(REQUEST)
        assert result.error == "Clearbit not configured"
        request.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_lookup_key(self):
        result = await source(ClearbitEnrichmentSource).enrich(EnrichmentRequest(first_name="Jane"))
        assert not result.success
        assert "email" in result.error

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error, message", [
        (RateLimitError("slow down", "apollo", retry_after=30), "Rate limit exceeded"),
        (AuthenticationError("bad key", "apollo"), "Authentication failed"),
        (ProviderTimeoutError("too slow", "apollo"), "too slow"),
        (ValueError("not json"), "Malformed response"),
    ])
    async def test_vendor_errors_become_failures(self, error, message):
        apollo = source(ApolloIOSource)
        with patch.object(apollo, '_request', AsyncMock(side_effect=error)):
            result = await apollo.enrich(REQUEST)
        assert not result.success
        assert message in result.error
        assert result.cost == 0

    @pytest.mark.asyncio
    async def test_connection_errors_propagate(self):
        apollo = source(ApolloIOSource)
        with patch.object(apollo, '_request', AsyncMock(side_effect=aiohttp.ClientConnectionError("refused"))):
            with pytest.raises(aiohttp.ClientConnectionError):
                await apollo.enrich(REQUEST)


class TestHandleResponse:

    @pytest.mark.asyncio
    async def test_ok_and_not_found(self):
        hunter = source(HunterIOSource)
        assert await hunter._handle_response(FakeResponse(200, {'data': {}})) == {'data': {}}
        assert await hunter._handle_response(FakeResponse(404)) is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [401, 403])
    async def test_auth_errors(self, status):
        with pytest.raises(AuthenticationError):
            await source(HunterIOSource)._handle_response(FakeResponse(status))

    @pytest.mark.asyncio
    async def test_rate_limit_carries_retry_after(self):
        with pytest.raises(RateLimitError) as exc_info:
            await source(HunterIOSource)._handle_response(FakeResponse(429, headers={'Retry-After': '12'}))
        assert exc_info.value.retry_after == 12
        assert exc_info.value.provider == 'hunter'

    @pytest.mark.asyncio
    async def test_other_status_is_provider_error(self):
        with pytest.raises(ProviderError, match="HTTP 502"):
            await source(HunterIOSource)._handle_response(FakeResponse(502, text="bad gateway"))


class TestHealthCheck:

    @pytest.mark.asyncio
    async def test_unconfigured_is_unhealthy(self):
        assert not await source(ApolloIOSource, api_key="").health_check()

    @pytest.mark.asyncio
    async def test_without_probe_endpoint(self):
        assert await source(ClearbitEnrichmentSource).health_check()

    @pytest.mark.asyncio
    async def test_probe(self):
        apollo = source(ApolloIOSource)
        with patch.object(apollo, '_request', AsyncMock(return_value={'healthy': True})) as request:
            assert await apollo.health_check()
        request.assert_awaited_once_with('GET', '/auth/health')

        with patch.object(apollo, '_request', AsyncMock(side_effect=AuthenticationError("bad key"))):
            assert not await apollo.health_check()


class TestBuildSources:

    def test_only_configured_vendors(self, monkeypatch, tmp_path):
        monkeypatch.setenv("HUNTER_API_KEY", "h-key")
        monkeypatch.setenv("PDL_API_KEY", "p-key")
        manager = ConfigManager(tmp_path / "missing.yaml")

        sources = build_sources(manager)

        assert list(sources) == ['hunter', 'peopledatalabs']
        assert sources['hunter'].api_key == 'h-key'
        assert sources['hunter'].base_url == 'https://api.hunter.io/v2'

    def test_all_vendors(self, tmp_path):
        sources = build_sources(ConfigManager(tmp_path / "missing.yaml"), only_configured=False)
        assert list(sources) == list(SOURCE_CLASSES)
        assert not any(s.is_enabled() for s in sources.values())

    def test_cost_estimate_and_info(self):
        zoominfo = source(ZoomInfoSource)
        assert zoominfo.get_cost_estimate(10)['total_cost'] == pytest.approx(1.0)
        assert zoominfo.get_source_info()['supported_fields'] == list(ZoomInfoSource.supported_fields)
