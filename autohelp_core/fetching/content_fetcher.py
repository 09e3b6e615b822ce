"""消息内容定位与抓取。

一条消息里的正文可能藏在很多地方：代码块、paste 站点链接、gist、
文本附件，甚至截图。ContentFetcher 负责把这些来源并发地拉下来，
统一返回 Present / Absent 列表；单个来源失败只会得到 Absent，
不会影响其他来源。
"""

import asyncio
import re
from typing import Awaitable, Callable, List, Optional, Tuple

from autohelp_core.config.settings import settings
from autohelp_core.domain.conversation import ChatTransport, TextRecognizer
from autohelp_core.domain.exceptions import BusinessError
from autohelp_core.domain.models import Absent, Attachment, ContentBody, IncomingMessage, Present
from autohelp_core.infrastructure.logging.logger import logger
from autohelp_core.providers.base import TextClient
from autohelp_core.providers.github_client import GithubClient
from autohelp_core.providers.registry import GIST_PAGE_PATTERN, GIST_RAW_PATTERN, find_paste_raw_urls
from autohelp_core.quota.tracker import QuotaTracker


CODE_BLOCK_PATTERN = re.compile(r"```(?:(?P<lang>[\w+#.-]+)?[ \t]*\n)?(?P<body>.*?)```", re.S)

_Job = Callable[[], Awaitable[List[ContentBody]]]


def find_code_blocks(text: str) -> List[str]:
    return [m.group("body") for m in CODE_BLOCK_PATTERN.finditer(text or "")]


class ContentFetcher:
    """并发抓取一条消息引用的全部正文。

    - paste_client: 下载 raw 文本（paste 站点与 gist 文件）。
    - github_client: 把 gist 页面解析成文件 raw 地址。
    - text_recognizer / quota: 可选的图片 OCR；两者都存在且配额未耗尽时才启用。
    """

    def __init__(
        self,
        transport: ChatTransport,
        paste_client: TextClient,
        github_client: Optional[GithubClient] = None,
        text_recognizer: Optional[TextRecognizer] = None,
        quota: Optional[QuotaTracker] = None,
        timeout: Optional[float] = None,
    ):
        self._transport = transport
        self._paste = paste_client
        self._github = github_client
        self._recognizer = text_recognizer
        self._quota = quota
        self._timeout = timeout if timeout is not None else settings.http_timeout

    async def fetch_message_contents(self, message: IncomingMessage) -> List[ContentBody]:
        text = message.content or ""
        bodies: List[ContentBody] = [Present(source="code_block", body=b) for b in find_code_blocks(text)]
        jobs = self._collect_jobs(message)
        if not bodies and not jobs:
            return [Present(source="message", body=text)]
        results = await asyncio.gather(*(self._guard(source, job) for source, job in jobs))
        for items in results:
            bodies.extend(items)
        return bodies

    def _collect_jobs(self, message: IncomingMessage) -> List[Tuple[str, _Job]]:
        text = message.content or ""
        jobs: List[Tuple[str, _Job]] = []
        for url in find_paste_raw_urls(text):
            jobs.append((url, self._text_job(url)))
        if self._github is not None:
            for m in GIST_PAGE_PATTERN.finditer(text):
                jobs.append((f"gist:{m.group('id')}", self._gist_job(m.group("id"))))
        for m in GIST_RAW_PATTERN.finditer(text):
            jobs.append((m.group(0), self._text_job(m.group(0))))
        for attachment in message.attachments:
            source = f"attachment:{attachment.filename}"
            if attachment.is_video:
                continue
            if attachment.is_image:
                if self._recognizer is not None and self._quota is not None:
                    jobs.append((source, self._ocr_job(attachment)))
                continue
            jobs.append((source, self._attachment_job(attachment)))
        return jobs

    def _text_job(self, url: str) -> _Job:
        async def run() -> List[ContentBody]:
            return [Present(source=url, body=await self._paste.fetch_text(url))]

        return run

    def _gist_job(self, gist_id: str) -> _Job:
        async def run() -> List[ContentBody]:
            raw_urls = await self._github.list_gist_raw_urls(gist_id)
            files = await asyncio.gather(*(self._guard(url, self._text_job(url)) for url in raw_urls))
            return [body for items in files for body in items]

        return run

    def _attachment_job(self, attachment: Attachment) -> _Job:
        async def run() -> List[ContentBody]:
            data = await self._transport.fetch_attachment(attachment)
            return [Present(source=f"attachment:{attachment.filename}", body=data.decode("utf-8", errors="replace"))]

        return run

    def _ocr_job(self, attachment: Attachment) -> _Job:
        async def run() -> List[ContentBody]:
            source = f"attachment:{attachment.filename}"
            if not self._quota.is_available:
                logger.info("fetcher.ocr_skipped", extra={"extra": {"source": source, "reason": "quota"}})
                return [Absent(source=source, reason="quota exhausted")]
            data = await self._transport.fetch_attachment(attachment)
            self._quota.register()
            text = await self._recognizer.read_text(data)
            return [Present(source=source, body=text or "")]

        return run

    async def _guard(self, source: str, job: _Job) -> List[ContentBody]:
        try:
            return await asyncio.wait_for(job(), timeout=self._timeout)
        except asyncio.TimeoutError:
            reason = "timeout"
        except BusinessError as e:
            reason = e.reason
        except Exception as e:
            reason = f"{type(e).__name__}: {e}"
        logger.warning("fetcher.source_failed", extra={"extra": {"source": source, "reason": reason}})
        return [Absent(source=source, reason=reason)]
