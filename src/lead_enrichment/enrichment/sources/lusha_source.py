"""
Lusha Person API Integration
"""

from typing import Any, Dict, List, Optional

from ...core.models import EnrichmentRequest, FieldValue
from .base_source import BaseEnrichmentSource, require_lookup_key


class LushaSource(BaseEnrichmentSource):
    """Lusha person lookup by name and company. Prefers direct dial numbers."""

    provider_id = 'lusha'
    display_name = 'Lusha'
    supported_fields = ('phone', 'email', 'company')
    cost_per_lookup = 0.08
    health_path = '/health'

    def _auth_headers(self) -> Dict[str, str]:
        return {'api_key': self.api_key}

    async def _fetch(self, request: EnrichmentRequest) -> Optional[Dict[str, Any]]:
        require_lookup_key(request, self.provider_id, 'last_name', 'email')

        params = {
            'firstName': request.first_name,
            'lastName': request.last_name,
            'company': request.company,
            'email': request.email,
        }
        return await self._request('GET', '/person', params={k: v for k, v in params.items() if v})

    def _process_response(self, data: Dict[str, Any]) -> List[FieldValue]:
        return self._process_lusha_response(data)

    def _process_lusha_response(self, data: Dict[str, Any]) -> List[FieldValue]:
        """Process Lusha API response into field values"""
        result = []

        phones = data.get('phoneNumbers') or []
        direct = next((p for p in phones if p.get('type') == 'direct'), None)
        if direct and direct.get('number'):
            result.append(FieldValue('phone', direct['number'], 0.9))
        elif phones and phones[0].get('number'):
            result.append(FieldValue('phone', phones[0]['number'], 0.75))

        emails = data.get('emailAddresses') or []
        if emails and emails[0].get('email'):
            result.append(FieldValue('email', emails[0]['email'], 0.85))

        company = data.get('company')
        if isinstance(company, dict):
            company = company.get('name')
        if company:
            result.append(FieldValue('company', company, 0.85))

        return result
