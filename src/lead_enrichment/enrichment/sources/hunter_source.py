"""
Hunter.io Integration
Email discovery from name + company domain, with email verification fallback
"""

from typing import Any, Dict, List, Optional

from ...core.exceptions import EnrichmentError
from ...core.models import EnrichmentRequest, FieldValue
from .base_source import BaseEnrichmentSource


class HunterIOSource(BaseEnrichmentSource):
    """
    Hunter.io enrichment source
    - email-finder when first name, last name and domain are known
    - email-verifier when only an email is known
    Hunter scores are 0-100 and become the email confidence directly.
    """

    provider_id = 'hunter'
    display_name = 'Hunter.io'
    supported_fields = ('email', 'phone', 'title', 'linkedin_url', 'company')
    cost_per_lookup = 0.02
    health_path = '/account'

    def _auth_headers(self) -> Dict[str, str]:
        return {'X-API-KEY': self.api_key}

    async def _fetch(self, request: EnrichmentRequest) -> Optional[Dict[str, Any]]:
        if request.first_name and request.last_name and request.domain:
            return await self._find_email(request)
        if request.email:
            return await self._verify_email(request.email)
        raise EnrichmentError("Hunter.io needs a name and domain, or an email", self.provider_id)

    async def _find_email(self, request: EnrichmentRequest) -> Optional[Dict[str, Any]]:
        """Find email using name and domain"""
        data = await self._request('GET', '/email-finder', params={
            'domain': request.domain,
            'first_name': request.first_name,
            'last_name': request.last_name,
        })
        if not data or not (data.get('data') or {}).get('email'):
            return None
        return {'author_info': data['data']}

    async def _verify_email(self, email: str) -> Optional[Dict[str, Any]]:
        data = await self._request('GET', '/email-verifier', params={'email': email})
        if not data or not data.get('data'):
            return None
        return {'email_verification': data['data']}

    def _process_response(self, data: Dict[str, Any]) -> List[FieldValue]:
        return self._process_hunter_response(data)

    def _process_hunter_response(self, data: Dict[str, Any]) -> List[FieldValue]:
        """Process Hunter.io API response into field values"""
        result = []

        if 'email_verification' in data:
            verification = data['email_verification']
            # Undeliverable addresses are not worth returning
            if verification.get('result') != 'undeliverable' and verification.get('email'):
                score = verification.get('score') or 0
                result.append(FieldValue('email', verification['email'], score / 100.0))

        if 'author_info' in data:
            author = data['author_info']
            score = author.get('score') or 0
            result.append(FieldValue('email', author.get('email'), score / 100.0))

            if author.get('phone_number'):
                result.append(FieldValue('phone', author['phone_number'], 0.7))
            if author.get('position'):
                result.append(FieldValue('title', author['position'], 0.7))
            if author.get('linkedin_url') or author.get('linkedin'):
                result.append(FieldValue('linkedin_url', author.get('linkedin_url') or author['linkedin'], 0.75))
            if author.get('company'):
                result.append(FieldValue('company', author['company'], 0.7))

        return result
