"""
RocketReach Person Lookup Integration
"""

from typing import Any, Dict, List, Optional

from ...core.models import EnrichmentRequest, FieldValue
from .base_source import BaseEnrichmentSource, require_lookup_key


class RocketReachSource(BaseEnrichmentSource):

    provider_id = 'rocketreach'
    display_name = 'RocketReach'
    supported_fields = ('email', 'phone', 'linkedin_url', 'title', 'company')
    cost_per_lookup = 0.04
    health_path = '/account'

    def _auth_headers(self) -> Dict[str, str]:
        return {'Api-Key': self.api_key, 'Content-Type': 'application/json'}

    async def _fetch(self, request: EnrichmentRequest) -> Optional[Dict[str, Any]]:
        require_lookup_key(request, self.provider_id, 'email', 'linkedin_url', 'last_name')

        params = {
            'email': request.email,
            'first_name': request.first_name,
            'last_name': request.last_name,
            'current_employer': request.company,
            'linkedin_url': request.linkedin_url,
        }
        return await self._request('POST', '/person/lookup', json={k: v for k, v in params.items() if v})

    def _process_response(self, data: Dict[str, Any]) -> List[FieldValue]:
        return self._process_rocketreach_response(data)

    def _process_rocketreach_response(self, data: Dict[str, Any]) -> List[FieldValue]:
        """Process RocketReach API response into field values"""
        result = []

        emails = data.get('emails') or []
        if emails:
            email = emails[0].get('email') if isinstance(emails[0], dict) else emails[0]
            if email:
                result.append(FieldValue('email', email, 0.85))

        phones = data.get('phones') or []
        if phones and phones[0].get('number'):
            result.append(FieldValue('phone', phones[0]['number'], 0.8))

        if data.get('linkedin_url'):
            result.append(FieldValue('linkedin_url', data['linkedin_url'], 0.95))
        if data.get('current_title'):
            result.append(FieldValue('title', data['current_title'], 0.85))
        if data.get('current_employer'):
            result.append(FieldValue('company', data['current_employer'], 0.85))

        return result
