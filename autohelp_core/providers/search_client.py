"""Google Custom Search JSON API 客户端，供 JavadocFinder 兜底搜索文档。"""

from typing import List

import httpx

from autohelp_core.domain.exceptions import ApiError, NetworkError, ValidationError
from autohelp_core.domain.models import SearchHit
from autohelp_core.providers.base import check_response


class SearchClient:
    name = "cse"

    def __init__(self, settings):
        self._settings = settings

    async def search(self, query: str) -> List[SearchHit]:
        if not self._settings.cse_key or not self._settings.cse_id:
            raise ValidationError(code="MISSING_API_KEY", message="CSE_KEY / CSE_ID not set")
        params = {"key": self._settings.cse_key, "cx": self._settings.cse_id, "q": query}
        try:
            async with httpx.AsyncClient(timeout=self._settings.http_timeout, trust_env=False) as client:
                resp = await client.get(self._settings.cse_base_url, params=params)
        except httpx.RequestError as e:
            raise NetworkError(code="NETWORK_ERROR", message=str(e))
        check_response(resp, self.name)
        try:
            data = resp.json()
        except ValueError as e:
            raise ApiError(code="BAD_RESPONSE", message=str(e))
        hits: List[SearchHit] = []
        for item in data.get("items") or []:
            link = item.get("link")
            if link:
                hits.append(SearchHit(title=item.get("title") or "", url=link))
        return hits
