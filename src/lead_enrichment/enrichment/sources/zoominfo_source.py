"""
ZoomInfo Contact Enrich Integration
"""

from typing import Any, Dict, List, Optional

from ...core.models import EnrichmentRequest, FieldValue
from .base_source import BaseEnrichmentSource, require_lookup_key


class ZoomInfoSource(BaseEnrichmentSource):
    """ZoomInfo contact enrich. Direct dials and firmographics; a miss is half price."""

    provider_id = 'zoominfo'
    display_name = 'ZoomInfo'
    supported_fields = ('phone', 'company', 'title', 'industry', 'company_size')
    cost_per_lookup = 0.10
    no_match_cost = 0.05
    health_path = '/health'

    def _auth_headers(self) -> Dict[str, str]:
        return {'Authorization': f'Bearer {self.api_key}', 'Content-Type': 'application/json'}

    async def _fetch(self, request: EnrichmentRequest) -> Optional[Dict[str, Any]]:
        require_lookup_key(request, self.provider_id, 'email', 'last_name')

        match_input = {
            'emailAddress': request.email,
            'firstName': request.first_name,
            'lastName': request.last_name,
            'companyName': request.company,
        }
        data = await self._request('POST', '/enrich/contact', json={
            'matchPersonInput': [{k: v for k, v in match_input.items() if v}],
            'outputFields': ['phone', 'jobTitle', 'companyName', 'companyIndustry', 'companyEmployeeCount'],
        })

        matches = (data or {}).get('data') or []
        return matches[0] if matches else None

    def _process_response(self, data: Dict[str, Any]) -> List[FieldValue]:
        return self._process_zoominfo_response(data)

    def _process_zoominfo_response(self, contact: Dict[str, Any]) -> List[FieldValue]:
        """Process a matched ZoomInfo contact into field values"""
        result = []
        company = contact.get('company') or {}

        if contact.get('phone'):
            result.append(FieldValue('phone', contact['phone'], 0.85))
        if company.get('name'):
            result.append(FieldValue('company', company['name'], 0.9))
        if contact.get('jobTitle'):
            result.append(FieldValue('title', contact['jobTitle'], 0.85))
        if company.get('industry'):
            result.append(FieldValue('industry', company['industry'], 0.8))
        if company.get('employeeCount'):
            result.append(FieldValue('company_size', company['employeeCount'], 0.85))

        return result
