"""外部 HTTP 服务集成层。

该包下的模块负责：
- 公共的响应检查与文本客户端协议 (base)。
- paste 站点注册表 (registry)。
- 各服务的具体实现 (paste_client、github_client、search_client、vision_client)。

可选服务（搜索、OCR）在缺少密钥时不创建，调用方据此跳过对应功能。
"""

from typing import Optional

from autohelp_core.config.settings import settings as default_settings
from autohelp_core.providers.base import TextClient
from autohelp_core.providers.github_client import GithubClient
from autohelp_core.providers.paste_client import PasteClient
from autohelp_core.providers.search_client import SearchClient
from autohelp_core.providers.vision_client import VisionClient


def create_search_client(settings=None) -> Optional[SearchClient]:
    cfg = settings or default_settings
    if not cfg.cse_key or not cfg.cse_id:
        return None
    return SearchClient(cfg)


def create_text_recognizer(settings=None) -> Optional[VisionClient]:
    cfg = settings or default_settings
    if not cfg.vision_api_key:
        return None
    return VisionClient(cfg)


__all__ = [
    "TextClient",
    "PasteClient",
    "GithubClient",
    "SearchClient",
    "VisionClient",
    "create_search_client",
    "create_text_recognizer",
]
