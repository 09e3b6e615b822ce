"""Google Vision OCR 客户端。

只用到 ``images:annotate`` 的 TEXT_DETECTION，图片以 base64 内联上传。
每次调用都消耗配额，调用方需先经过 QuotaTracker。
"""

import base64
from typing import Optional

import httpx

from autohelp_core.domain.exceptions import ApiError, NetworkError, ValidationError
from autohelp_core.providers.base import check_response


class VisionClient:
    name = "vision"

    def __init__(self, settings):
        self._settings = settings

    async def read_text(self, image: bytes) -> Optional[str]:
        """识别图片中的文字；图片里没有文字时返回 None。"""

        if not self._settings.vision_api_key:
            raise ValidationError(code="MISSING_API_KEY", message="VISION_API_KEY not set")
        payload = {
            "requests": [
                {
                    "image": {"content": base64.b64encode(image).decode("ascii")},
                    "features": [{"type": "TEXT_DETECTION"}],
                }
            ]
        }
        url = f"{self._settings.vision_base_url.rstrip('/')}/images:annotate"
        try:
            async with httpx.AsyncClient(timeout=self._settings.http_timeout, trust_env=False) as client:
                resp = await client.post(url, params={"key": self._settings.vision_api_key}, json=payload)
        except httpx.RequestError as e:
            raise NetworkError(code="NETWORK_ERROR", message=str(e))
        check_response(resp, self.name)
        return self._parse_response(resp.json())

    @staticmethod
    def _parse_response(data: dict) -> Optional[str]:
        responses = data.get("responses") or []
        if not responses:
            return None
        first = responses[0] or {}
        if first.get("error"):
            err = first["error"]
            raise ApiError(code="API_ERROR", message=str(err.get("message") or err), http_status=502)
        full = first.get("fullTextAnnotation") or {}
        if full.get("text"):
            return full["text"]
        annotations = first.get("textAnnotations") or []
        if annotations and annotations[0].get("description"):
            return annotations[0]["description"]
        return None
