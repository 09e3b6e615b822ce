"""异常类的 Javadoc 查找。

查找顺序：

1. 本地索引：包前缀 -> 文档根地址（java* 包统一用 "java"，其他取前两段包名）。
2. 索引未命中时用网页搜索 "<SimpleName> javadoc"，取第一条结果，
   截掉包路径得到文档根地址。
3. 拼出类页面地址并下载，用 BeautifulSoup 取第一段类描述。

没有包名的类名无法查索引，只用搜索结果里直接指向类页面的地址。

任何一步失败都返回 None，由 Renderer 显示为 "not found"。
"""

import re
from typing import Dict, Optional

from bs4 import BeautifulSoup

from autohelp_core.config.settings import settings
from autohelp_core.domain.conversation import DocSearch
from autohelp_core.domain.exceptions import ApiError, BusinessError
from autohelp_core.domain.models import DocEntry
from autohelp_core.infrastructure.logging.logger import logger
from autohelp_core.providers.base import TextClient


# 不同 javadoc 版本的类描述位置
DESCRIPTION_SELECTORS = (
    "section.class-description div.block",
    "section.description div.block",
    "div.description div.block",
    "div.block",
)

MAX_DESCRIPTION_LENGTH = 1000


def package_identifier(package: str) -> str:
    if package.startswith("java"):
        return "java"
    return ".".join(package.split(".")[:2])


def derive_root(hit_url: str, package: str) -> Optional[str]:
    """从搜索结果 URL 中截掉包路径，得到文档根地址。"""
    first_segment = package.split(".")[0]
    m = re.search(rf"/{re.escape(first_segment)}/", hit_url)
    if m is None:
        return None
    return hit_url[: m.start() + 1]


def extract_description(html: str) -> Optional[str]:
    soup = BeautifulSoup(html or "", "html.parser")
    for selector in DESCRIPTION_SELECTORS:
        block = soup.select_one(selector)
        if block is None:
            continue
        text = " ".join(block.get_text(" ", strip=True).split())
        if text:
            return text[:MAX_DESCRIPTION_LENGTH]
    return None


class JavadocFinder:
    def __init__(
        self,
        page_client: TextClient,
        search: Optional[DocSearch] = None,
        index: Optional[Dict[str, str]] = None,
    ):
        self._pages = page_client
        self._search = search
        self._index = dict(index if index is not None else settings.javadoc_index)
        self._cache: Dict[str, Optional[DocEntry]] = {}

    async def find(self, qualified_name: str) -> Optional[DocEntry]:
        """查找类文档；结果（包括确定的未命中）按类名缓存。

        不带包名的类名（如 "NullPointerException"）跳过本地索引，直接搜索。
        """
        if qualified_name in self._cache:
            return self._cache[qualified_name]
        package, _, simple = qualified_name.strip().rpartition(".")
        try:
            if package:
                entry = await self._find(package, simple)
            else:
                entry = await self._find_by_search(simple)
        except BusinessError as e:
            # 网络类错误不缓存，下次还可以重试
            logger.warning(
                "javadoc.lookup_failed",
                extra={"extra": {"class": qualified_name, "code": e.code, "error": e.message}},
            )
            return None
        self._cache[qualified_name] = entry
        logger.info(
            "javadoc.lookup_done",
            extra={"extra": {"class": qualified_name, "found": entry is not None}},
        )
        return entry

    async def _find(self, package: str, simple: str) -> Optional[DocEntry]:
        root = self._index.get(package_identifier(package))
        if root is None:
            root = await self._search_root(package, simple)
        if root is None:
            return None
        url = f"{root.rstrip('/')}/{package.replace('.', '/')}/{simple}.html"
        return await self._fetch_entry(url)

    async def _find_by_search(self, simple: str) -> Optional[DocEntry]:
        if self._search is None:
            return None
        hits = await self._search.search(f"{simple} javadoc")
        if not hits:
            return None
        # 没有包名可截，只接受直接指向类页面的结果
        url = hits[0].url.split("#", 1)[0].split("?", 1)[0]
        if not url.endswith(f"/{simple}.html"):
            return None
        return await self._fetch_entry(url)

    async def _fetch_entry(self, url: str) -> Optional[DocEntry]:
        try:
            html = await self._pages.fetch_text(url)
        except ApiError as e:
            if e.http_status == 404:
                return None
            raise
        return DocEntry(url=url, description=extract_description(html))

    async def _search_root(self, package: str, simple: str) -> Optional[str]:
        if self._search is None:
            return None
        hits = await self._search.search(f"{simple} javadoc")
        if not hits:
            return None
        return derive_root(hits[0].url, package)
