"""
Apollo.io People Match Integration
Contact data from Apollo's B2B people database
"""

from typing import Any, Dict, List, Optional

from ...core.models import EnrichmentRequest, FieldValue
from .base_source import BaseEnrichmentSource, require_lookup_key


class ApolloIOSource(BaseEnrichmentSource):
    """Apollo people/match. A miss is still billed at a reduced rate."""

    provider_id = 'apollo'
    display_name = 'Apollo.io'
    supported_fields = ('email', 'first_name', 'last_name', 'phone', 'title',
                        'company', 'linkedin_url')
    cost_per_lookup = 0.03
    no_match_cost = 0.01
    health_path = '/auth/health'

    def _auth_headers(self) -> Dict[str, str]:
        return {'X-Api-Key': self.api_key, 'Content-Type': 'application/json'}

    async def _fetch(self, request: EnrichmentRequest) -> Optional[Dict[str, Any]]:
        require_lookup_key(request, self.provider_id, 'email', 'linkedin_url', 'last_name')

        payload = {
            'email': request.email,
            'first_name': request.first_name,
            'last_name': request.last_name,
            'organization_name': request.company,
            'domain': request.domain,
            'linkedin_url': request.linkedin_url,
        }
        data = await self._request('POST', '/people/match',
                                   json={k: v for k, v in payload.items() if v})
        # Apollo answers 200 with an empty person on a miss
        if not data or not data.get('person'):
            return None
        return data

    def _process_response(self, data: Dict[str, Any]) -> List[FieldValue]:
        return self._process_apollo_response(data)

    def _process_apollo_response(self, data: Dict[str, Any]) -> List[FieldValue]:
        """Process Apollo API response into field values"""
        person = data.get('person') or {}
        result = []

        if person.get('email'):
            result.append(FieldValue('email', person['email'], 0.9))
        if person.get('first_name'):
            result.append(FieldValue('first_name', person['first_name'], 0.9))
        if person.get('last_name'):
            result.append(FieldValue('last_name', person['last_name'], 0.9))

        phones = person.get('phone_numbers') or []
        if phones and phones[0].get('sanitized_number'):
            result.append(FieldValue('phone', phones[0]['sanitized_number'], 0.8))

        if person.get('title'):
            result.append(FieldValue('title', person['title'], 0.85))

        organization = person.get('organization') or {}
        if organization.get('name'):
            result.append(FieldValue('company', organization['name'], 0.85))

        if person.get('linkedin_url'):
            result.append(FieldValue('linkedin_url', person['linkedin_url'], 0.9))

        return result
