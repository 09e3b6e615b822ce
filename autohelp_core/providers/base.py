"""HTTP Provider 公共部分。

所有外部服务（paste 站点、GitHub、Custom Search、Vision OCR）都通过
httpx.AsyncClient 访问，并统一把失败映射为 domain.exceptions 中的业务异常：

- 网络层错误（DNS、连接、超时） -> NetworkError
- HTTP 429 -> RateLimitError
- 其他 >= 400 -> ApiError

上层（ContentFetcher / JavadocFinder）只需要捕获 BusinessError。
"""

from typing import Protocol

import httpx

from autohelp_core.domain.exceptions import ApiError, RateLimitError


class TextClient(Protocol):
    """按 URL 抓取纯文本的客户端协议。"""

    name: str

    async def fetch_text(self, url: str) -> str:
        ...


def check_response(resp: httpx.Response, service: str, url: str = "") -> None:
    """把非 2xx 响应转换为业务异常。"""

    if resp.status_code == 429:
        raise RateLimitError(code="RATE_LIMIT", message=f"{service} rate limit", http_status=429, url=url)
    if resp.status_code >= 400:
        raise ApiError(code="API_ERROR", message=resp.text[:200], http_status=resp.status_code, url=url)
