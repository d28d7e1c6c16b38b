"""
People Data Labs Person Enrichment Integration
Broad person dataset with a per-match likelihood score
"""

from typing import Any, Dict, List, Optional

from ...core.models import EnrichmentRequest, FieldValue
from .base_source import BaseEnrichmentSource, require_lookup_key


class PeopleDataLabsSource(BaseEnrichmentSource):
    """
    People Data Labs person/enrich.

    PDL reports ``likelihood`` from 1 to 10 for the match as a whole; every
    field returned inherits ``likelihood / 10`` as its confidence.
    """

    provider_id = 'peopledatalabs'
    display_name = 'People Data Labs'
    supported_fields = ('email', 'phone', 'first_name', 'last_name', 'title', 'company',
                        'industry', 'company_size', 'linkedin_url', 'location')
    cost_per_lookup = 0.01

    def _auth_headers(self) -> Dict[str, str]:
        return {'X-Api-Key': self.api_key}

    async def _fetch(self, request: EnrichmentRequest) -> Optional[Dict[str, Any]]:
        require_lookup_key(request, self.provider_id, 'email', 'linkedin_url', 'phone')

        params = {
            'email': request.email,
            'profile': request.linkedin_url,
            'phone': request.phone,
            'first_name': request.first_name,
            'last_name': request.last_name,
            'company': request.company,
        }
        data = await self._request('GET', '/person/enrich',
                                   params={k: v for k, v in params.items() if v})

        # Check if we got actual data
        if not data or data.get('status') != 200 or not data.get('data'):
            return None
        return data

    def _process_response(self, data: Dict[str, Any]) -> List[FieldValue]:
        return self._process_pdl_response(data)

    def _process_pdl_response(self, data: Dict[str, Any]) -> List[FieldValue]:
        """Process PDL API response into field values"""
        person = data.get('data') or {}
        confidence = min(max(float(data.get('likelihood') or 0), 0.0), 10.0) / 10.0
        result = []

        def add(field_name: str, value: Any):
            if value:
                result.append(FieldValue(field_name, value, confidence))

        add('email', person.get('work_email') or (person.get('personal_emails') or [None])[0])
        add('phone', person.get('mobile_phone') or (person.get('phone_numbers') or [None])[0])
        add('first_name', person.get('first_name'))
        add('last_name', person.get('last_name'))
        add('title', person.get('job_title'))
        add('company', person.get('job_company_name'))
        add('industry', person.get('industry') or person.get('job_company_industry'))
        add('company_size', person.get('job_company_size'))
        add('linkedin_url', person.get('linkedin_url'))
        add('location', person.get('location_name'))

        return result
