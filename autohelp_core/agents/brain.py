"""会话状态机。

Brain 维护每个 (用户, 频道) 的活跃会话，把新证据投影成 Answer：

- find_conversation: 取得或新建会话（受 map 锁保护）。
- observe: 追加证据并执行 think。
- think: 选择异常、查出错行、生成 NPE 提示、派发文档查找、触发渲染，
  答案完整后把会话移出活跃集合。
- sweep: 周期性清理空闲超过 TTL 的会话。

think 在不变的证据上是幂等的（文档字段除外，它由后台任务异步合并）。
"""

import asyncio
import logging
import re
import threading
import time
from functools import partial
from typing import Any, Callable, Dict, Iterable, List, Optional, Set, Tuple

from autohelp_core.agents.renderer import Renderer
from autohelp_core.config.settings import settings
from autohelp_core.domain.conversation import Conversation, ExceptionAnswer
from autohelp_core.domain.models import DocEntry, Evidence, ExceptionRecord, SourceClass, StackFrame
from autohelp_core.infrastructure.logging.logger import logger
from autohelp_core.knowledge.javadoc import JavadocFinder
from autohelp_core.knowledge.matcher import KnowledgeMatcher
from autohelp_core.knowledge.npe import build_npe_hint
from autohelp_core.prompts import render_template


def _is_blank_message(message: Optional[str]) -> bool:
    return message is None or not message.strip() or message.strip() == "null"


class Brain:
    def __init__(
        self,
        matcher: KnowledgeMatcher,
        renderer: Renderer,
        doc_finder: Optional[JavadocFinder] = None,
        *,
        ttl: Optional[float] = None,
        sweep_interval: Optional[float] = None,
        known_packages: Optional[str] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._matcher = matcher
        self._renderer = renderer
        self._doc_finder = doc_finder
        self._ttl = settings.conversation_ttl if ttl is None else ttl
        self._sweep_interval = settings.sweep_interval if sweep_interval is None else sweep_interval
        self._known_packages = re.compile(known_packages or settings.known_packages)
        self._clock = clock
        self._conversations: Dict[Tuple[str, str], Conversation] = {}
        self._lock = threading.Lock()
        self._sweep_task: Optional[asyncio.Task] = None
        self._background: Set[asyncio.Future] = set()

    # ---- 会话集合 ----

    def find_conversation(self, owner_id: str, channel_id: str) -> Conversation:
        key = (owner_id, channel_id)
        with self._lock:
            conversation = self._conversations.get(key)
            if conversation is None:
                conversation = Conversation(owner_id=owner_id, channel_id=channel_id, last_interaction=self._clock())
                self._conversations[key] = conversation
                self._log(logging.INFO, "brain.conversation_created", conversation)
            return conversation

    def get_conversation(self, owner_id: str, channel_id: str) -> Optional[Conversation]:
        with self._lock:
            return self._conversations.get((owner_id, channel_id))

    @property
    def conversations(self) -> List[Conversation]:
        with self._lock:
            return list(self._conversations.values())

    def abandon(self, conversation: Conversation) -> None:
        """把会话移出活跃集合；同一 key 下已经是新会话时不做任何事。"""
        with self._lock:
            if self._conversations.get(conversation.key) is conversation:
                del self._conversations[conversation.key]

    # ---- 证据 ----

    async def observe(self, conversation: Conversation, evidence: Evidence) -> None:
        with conversation.lock:
            if isinstance(evidence, ExceptionRecord):
                current = conversation.answer.exception
                if current is not None and current.sealed:
                    self._log(
                        logging.INFO,
                        "brain.evidence_discarded",
                        conversation,
                        exception=evidence.exception_name,
                    )
                    return
                conversation.stacktraces.append(evidence)
            else:
                conversation.classes.append(evidence)
            conversation.last_interaction = self._clock()
            self._log(logging.DEBUG, "brain.observe", conversation, kind=type(evidence).__name__)
        await self.think(conversation)

    async def think(self, conversation: Conversation) -> None:
        with conversation.lock:
            self.project(conversation)
            self._dispatch_doc_lookup(conversation)
            complete = conversation.answer.is_complete
        await self._renderer.update(conversation)
        if complete:
            self.abandon(conversation)
            self._log(logging.INFO, "brain.conversation_complete", conversation)

    def project(self, conversation: Conversation) -> None:
        """把证据投影到 conversation.answer（不含渲染与文档查找）。"""
        answer = conversation.answer
        current = answer.exception
        if current is None or not current.sealed:
            chosen = self.choose_exception(conversation.stacktraces)
            if chosen is not None and (current is None or chosen.record != current.record):
                answer.exception = chosen
        exception = answer.exception
        if exception is None:
            return
        answer.cause_content, answer.cause_note = self.resolve_cause(exception, conversation.classes)
        cause_settled = answer.cause_content is not None or answer.cause_note is not None
        if exception.explanation is not None or cause_settled:
            exception.sealed = True
        if exception.simple_name.lower() == "nullpointerexception":
            answer.npe_hint = build_npe_hint(exception.exception_message, answer.cause_content, exception.cause_line)
        else:
            answer.npe_hint = None

    def choose_exception(self, stacktraces: Iterable[ExceptionRecord]) -> Optional[ExceptionAnswer]:
        records = list(stacktraces)
        if not records:
            return None
        for record in records:
            explanation = self._matcher.lookup(record.exception_name, record.message)
            if explanation is not None:
                return self._build_answer(record, record, explanation)
            if record.cause is not None:
                explanation = self._matcher.lookup(record.cause.exception_name, record.cause.message)
                if explanation is not None:
                    return self._build_answer(record.cause, record, explanation)
        first = records[0]
        return self._build_answer(first, first, None)

    def resolve_cause(
        self, exception: ExceptionAnswer, classes: Iterable[SourceClass]
    ) -> Tuple[Optional[str], Optional[str]]:
        """返回 (出错行原文, 说明文本)。找不到同名类时两者都是 None。"""
        if not exception.cause_resolvable:
            return None, None
        note = None
        for clazz in classes:
            if clazz.name != exception.cause_class:
                continue
            lines = clazz.raw_content.splitlines()
            if 1 <= exception.cause_line <= len(lines):
                return lines[exception.cause_line - 1].strip(), None
            note = render_template("cause_out_of_range")
        return None, note

    def first_user_frame(self, frames: Iterable[StackFrame]) -> Optional[StackFrame]:
        for frame in frames:
            if not self._known_packages.match(frame.package):
                return frame
        return None

    def _build_answer(
        self, matched: ExceptionRecord, outer: ExceptionRecord, explanation: Optional[str]
    ) -> ExceptionAnswer:
        root = matched.cause or matched
        frame = self.first_user_frame(root.frames)
        causee = None
        if outer.cause is not None:
            causee = outer.exception_name if _is_blank_message(outer.message) else f"{outer.exception_name}: {outer.message}"
        return ExceptionAnswer(
            exception_name=root.exception_name,
            exception_message=root.message or None,
            causee=causee,
            explanation=explanation,
            cause_class=frame.class_name if frame else None,
            cause_line=frame.line_number if frame else None,
            record=outer,
        )

    # ---- 文档查找 ----

    def _dispatch_doc_lookup(self, conversation: Conversation) -> None:
        exception = conversation.answer.exception
        if exception is None or exception.doc_status != "pending":
            return
        if conversation.doc_task is not None:
            return
        if self._doc_finder is None:
            exception.doc_status = "not_found"
            return
        task = asyncio.ensure_future(self._doc_finder.find(exception.exception_name))
        conversation.doc_task = task
        task.add_done_callback(partial(self._on_doc_done, conversation, exception))
        self._log(logging.DEBUG, "brain.doc_dispatched", conversation, exception=exception.exception_name)

    def _on_doc_done(self, conversation: Conversation, exception: ExceptionAnswer, task: asyncio.Future) -> None:
        if task.cancelled():
            # 停止时取消的查找不写回结果，文档状态保持 pending
            with conversation.lock:
                if conversation.doc_task is task:
                    conversation.doc_task = None
            return
        entry: Optional[DocEntry] = None
        error = task.exception()
        if error is not None:
            self._log(logging.WARNING, "brain.doc_failed", conversation, error=repr(error))
        else:
            entry = task.result()
        with conversation.lock:
            conversation.doc_task = None
            stale = conversation.answer.exception is not exception
            if not stale:
                exception.doc = entry
                exception.doc_status = "found" if entry is not None else "not_found"
        # 被替换的异常需要重新 think 以派发新的查找，否则只需重新渲染
        follow_up = self.think(conversation) if stale else self._renderer.update(conversation)
        self._spawn(follow_up)

    # ---- 清理 ----

    def sweep(self, now: Optional[float] = None) -> int:
        """移除空闲超过 TTL 的会话，返回移除数量。"""
        now = self._clock() if now is None else now
        with self._lock:
            expired = [k for k, c in self._conversations.items() if now - c.last_interaction > self._ttl]
            for key in expired:
                del self._conversations[key]
        if expired:
            logger.info("brain.sweep", extra={"extra": {"expired": len(expired)}})
        return len(expired)

    def start(self) -> None:
        if self._sweep_task is None or self._sweep_task.done():
            self._sweep_task = asyncio.get_running_loop().create_task(self._sweep_loop())

    async def stop(self) -> None:
        task, self._sweep_task = self._sweep_task, None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        for conversation in self.conversations:
            if conversation.doc_task is not None:
                conversation.doc_task.cancel()
        for pending in list(self._background):
            pending.cancel()

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self._sweep_interval)
            self.sweep()

    def _spawn(self, coro: Any) -> None:
        future = asyncio.ensure_future(coro)
        self._background.add(future)
        future.add_done_callback(self._background.discard)

    @staticmethod
    def _log(level: int, message: str, conversation: Conversation, **fields: Any) -> None:
        payload = {"owner_id": conversation.owner_id, "channel_id": conversation.channel_id}
        payload.update(fields)
        logger.log(level, message, extra={"extra": payload})
