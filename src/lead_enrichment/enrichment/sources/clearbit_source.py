"""
Clearbit Person API Integration
Premium B2B data enrichment with high accuracy
"""

from typing import Any, Dict, List, Optional

from ...core.models import EnrichmentRequest, FieldValue
from .base_source import BaseEnrichmentSource, require_lookup_key


class ClearbitEnrichmentSource(BaseEnrichmentSource):
    """
    Clearbit combined person + company lookup, keyed by email.
    Provides:
    - Professional information (title, company)
    - Company firmographics (industry, headcount)
    - Location and LinkedIn profile
    """

    provider_id = 'clearbit'
    display_name = 'Clearbit'
    supported_fields = ('email', 'first_name', 'last_name', 'company', 'title',
                        'industry', 'company_size', 'linkedin_url', 'location')
    cost_per_lookup = 0.05

    def _auth_headers(self) -> Dict[str, str]:
        return {'Authorization': f'Bearer {self.api_key}'}

    async def _fetch(self, request: EnrichmentRequest) -> Optional[Dict[str, Any]]:
        require_lookup_key(request, self.provider_id, 'email')
        return await self._request('GET', '', params={'email': request.email})

    def _process_response(self, data: Dict[str, Any]) -> List[FieldValue]:
        return self._process_clearbit_response(data)

    def _process_clearbit_response(self, data: Dict[str, Any]) -> List[FieldValue]:
        """Process Clearbit API response into field values"""
        result = []
        person = data.get('person') or {}
        company = data.get('company') or {}

        if person.get('email'):
            result.append(FieldValue('email', person['email'], 0.95))

        name = person.get('name') or {}
        if name.get('givenName'):
            result.append(FieldValue('first_name', name['givenName'], 0.95))
        if name.get('familyName'):
            result.append(FieldValue('last_name', name['familyName'], 0.95))

        employment = person.get('employment') or {}
        if employment.get('title'):
            result.append(FieldValue('title', employment['title'], 0.9))

        linkedin = person.get('linkedin') or {}
        if linkedin.get('handle'):
            result.append(FieldValue('linkedin_url', f"https://linkedin.com/in/{linkedin['handle']}", 0.95))

        # Location information
        location = person.get('location')
        if not location and person.get('geo'):
            geo = person['geo']
            location = ', '.join(p for p in (geo.get('city'), geo.get('state'), geo.get('country')) if p)
        if location:
            result.append(FieldValue('location', location, 0.8))

        if company.get('name'):
            result.append(FieldValue('company', company['name'], 0.95))

        category = company.get('category') or {}
        if category.get('industry'):
            result.append(FieldValue('industry', category['industry'], 0.85))

        metrics = company.get('metrics') or {}
        if metrics.get('employees'):
            result.append(FieldValue('company_size', metrics['employees'], 0.8))

        return result
