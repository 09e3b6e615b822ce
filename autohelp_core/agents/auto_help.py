"""AutoHelp 消息管线。

对每条入站消息：资格过滤 -> 并发抓取正文 -> 逐个解析 -> 按原文顺序 observe。
同一 (用户, 频道) 的消息按到达顺序 observe：每条消息到达时同步登记一个
排序 future，解析完后先等待前一条消息 observe 完毕。
"""

import asyncio
from typing import Dict, Iterable, List, Optional, Tuple

from autohelp_core.agents.brain import Brain
from autohelp_core.config.settings import settings
from autohelp_core.domain.models import Evidence, IncomingMessage, Present
from autohelp_core.fetching.content_fetcher import ContentFetcher
from autohelp_core.infrastructure.logging.logger import logger
from autohelp_core.parsing.stacktrace import parse


class AutoHelp:
    def __init__(
        self,
        brain: Brain,
        fetcher: ContentFetcher,
        *,
        channels: Optional[Iterable[str]] = None,
        blacklist: Optional[Iterable[str]] = None,
        bypass_word: Optional[str] = None,
    ):
        self.brain = brain
        self._fetcher = fetcher
        self._channels = set(settings.auto_help_channels if channels is None else channels)
        self._blacklist = set(settings.auto_help_blacklist if blacklist is None else blacklist)
        self._bypass_word = settings.auto_help_bypass if bypass_word is None else bypass_word
        self._tails: Dict[Tuple[str, str], asyncio.Future] = {}

    def is_eligible(self, message: IncomingMessage) -> bool:
        if message.author_is_bot:
            return False
        if self._channels and message.channel_id not in self._channels and message.category_id not in self._channels:
            return False
        if message.channel_id in self._blacklist:
            return False
        if self._bypass_word and self._bypass_word in (message.content or ""):
            return False
        return True

    def start(self) -> None:
        self.brain.start()

    async def stop(self) -> None:
        await self.brain.stop()

    async def on_message(self, message: IncomingMessage) -> None:
        """处理一条消息。任何异常都在这里记录，不会向上传播。"""
        try:
            await self._handle(message)
        except Exception:
            logger.exception(
                "auto_help.failed",
                extra={"extra": {"owner_id": message.author_id, "channel_id": message.channel_id}},
            )

    async def extract_evidence(self, message: IncomingMessage) -> List[Evidence]:
        bodies = await self._fetcher.fetch_message_contents(message)
        evidence: List[Evidence] = []
        for body in bodies:
            if isinstance(body, Present):
                evidence.extend(parse(body.body).evidence)
        return evidence

    async def _handle(self, message: IncomingMessage) -> None:
        if not self.is_eligible(message):
            return
        key = (message.author_id, message.channel_id)
        previous = self._tails.get(key)
        done = asyncio.get_running_loop().create_future()
        self._tails[key] = done
        try:
            evidence = await self.extract_evidence(message)
            if previous is not None:
                await asyncio.shield(previous)
            logger.info(
                "auto_help.message",
                extra={"extra": {"owner_id": key[0], "channel_id": key[1], "evidence": len(evidence)}},
            )
            if not evidence:
                return
            conversation = self.brain.find_conversation(*key)
            for item in evidence:
                await self.brain.observe(conversation, item)
        finally:
            if not done.done():
                done.set_result(None)
            if self._tails.get(key) is done:
                del self._tails[key]
