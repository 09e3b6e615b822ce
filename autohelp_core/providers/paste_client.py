"""Paste 站点 / raw 文本下载客户端。"""

import httpx

from autohelp_core.domain.exceptions import NetworkError
from autohelp_core.providers.base import check_response


class PasteClient:
    """下载 raw 文本。paste 站点与 gist raw 地址都走这里。"""

    name = "paste"

    def __init__(self, settings):
        self._settings = settings

    async def fetch_text(self, url: str) -> str:
        try:
            async with httpx.AsyncClient(
                timeout=self._settings.http_timeout,
                trust_env=False,
                follow_redirects=True,
            ) as client:
                resp = await client.get(url, headers={"Accept": "text/plain"})
        except httpx.RequestError as e:
            raise NetworkError(code="NETWORK_ERROR", message=str(e), url=url)
        check_response(resp, self.name, url)
        return resp.text
