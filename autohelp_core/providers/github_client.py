"""GitHub Gist API 客户端。

gist 分享页本身是 HTML，需要先通过 ``GET /gists/<id>`` 拿到每个文件的
raw_url，再交给 PasteClient 下载。
"""

from typing import Dict, List

import httpx

from autohelp_core.domain.exceptions import ApiError, NetworkError
from autohelp_core.providers.base import check_response


class GithubClient:
    name = "github"

    def __init__(self, settings):
        self._settings = settings

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/vnd.github+json"}
        token = getattr(self._settings, "github_token", None)
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def list_gist_raw_urls(self, gist_id: str) -> List[str]:
        """返回 gist 中所有文件的 raw_url（按 API 返回顺序）。"""

        url = f"{self._settings.github_api_base.rstrip('/')}/gists/{gist_id}"
        try:
            async with httpx.AsyncClient(timeout=self._settings.http_timeout, trust_env=False) as client:
                resp = await client.get(url, headers=self._headers())
        except httpx.RequestError as e:
            raise NetworkError(code="NETWORK_ERROR", message=str(e), url=url)
        check_response(resp, self.name, url)
        try:
            files = resp.json().get("files") or {}
        except ValueError as e:
            raise ApiError(code="BAD_RESPONSE", message=str(e), url=url)
        return [f["raw_url"] for f in files.values() if isinstance(f, dict) and f.get("raw_url")]
