"""把 Answer 渲染成聊天消息，并保证每个会话只创建一条消息。

第一次有可展示内容时创建消息，之后只编辑。创建任务在第一个 await 之前
就挂到 conversation 上，并发的 update 会等待同一个创建任务，然后再编辑。
传输层出错时只记录日志并标记会话，不重试，会话随 TTL 过期。
"""

import asyncio
from typing import List, Optional

from autohelp_core.domain.conversation import Answer, ChatTransport, Conversation
from autohelp_core.domain.models import EmbedField, MessageHandle, RenderedAnswer
from autohelp_core.infrastructure.logging.logger import logger
from autohelp_core.prompts import render_template


MAX_FIELD_LENGTH = 1024
MAX_DESCRIPTION_LENGTH = 4096
MAX_CAUSE_CLASS_LENGTH = 100

DOC_LOADING = "Loading..."
DOC_NOT_FOUND = "No documentation found"


def _limit(text: str, size: int) -> str:
    if len(text) <= size:
        return text
    return text[: size - 3] + "..."


def render_answer(answer: Answer, locale: str = "en") -> Optional[RenderedAnswer]:
    """纯函数：Answer -> RenderedAnswer。无用的答案返回 None（不渲染）。"""
    if answer.is_useless:
        return None
    fields: List[EmbedField] = []
    title = "AutoHelp"
    description = None
    exception = answer.exception
    if exception is not None:
        title = _limit(f"AutoHelp - {exception.exception_name}", 256)
        description = exception.explanation or (exception.doc.description if exception.doc else None)
        fields.append(EmbedField("Exception", exception.exception_name))
        message = exception.exception_message
        if message and message.strip() and message != "null":
            fields.append(EmbedField("Description", message))
        if exception.doc_status == "found" and exception.doc is not None:
            fields.append(EmbedField("Exception Doc", exception.doc.url))
        elif exception.doc_status == "not_found":
            fields.append(EmbedField("Exception Doc", DOC_NOT_FOUND))
        else:
            fields.append(EmbedField("Exception Doc", DOC_LOADING))
        if exception.cause_class is not None:
            fields.append(
                EmbedField(
                    "Cause",
                    f"The error is probably located in the file "
                    f"`{exception.cause_class[:MAX_CAUSE_CLASS_LENGTH]}.java` at line `{exception.cause_line}`",
                )
            )
        if exception.causee is not None:
            fields.append(EmbedField("Caused", exception.causee))
    if answer.cause_content is not None:
        fields.append(EmbedField("Cause - Code", f"`{answer.cause_content}`"))
    else:
        fields.append(EmbedField("Cause - Code", answer.cause_note or render_template("cause_missing", locale)))
    if answer.npe_hint:
        fields.append(EmbedField("NPE Hint", answer.npe_hint))
    return RenderedAnswer(
        title=title,
        description=_limit(description, MAX_DESCRIPTION_LENGTH) if description else None,
        fields=tuple(EmbedField(f.name, _limit(f.value, MAX_FIELD_LENGTH)) for f in fields),
        footer=render_template("footer", locale),
    )


class Renderer:
    def __init__(self, transport: ChatTransport, locale: str = "en"):
        self._transport = transport
        self._locale = locale

    def render(self, conversation: Conversation) -> Optional[RenderedAnswer]:
        with conversation.lock:
            return render_answer(conversation.answer, self._locale)

    async def update(self, conversation: Conversation) -> None:
        if conversation.render_failed:
            return
        with conversation.lock:
            content = render_answer(conversation.answer, self._locale)
            if content is None:
                return
            if conversation.message_task is None:
                conversation.message_task = asyncio.ensure_future(self._create(conversation, content))
                created = True
            else:
                created = False
            task = conversation.message_task
        handle = await task
        if created or handle is None:
            return
        content = self.render(conversation)
        try:
            await self._transport.edit_message(handle, content)
        except Exception as e:
            self._fail(conversation, "renderer.edit_failed", e)

    async def _create(self, conversation: Conversation, content: RenderedAnswer) -> Optional[MessageHandle]:
        try:
            handle = await self._transport.create_message(conversation.channel_id, content)
        except Exception as e:
            self._fail(conversation, "renderer.create_failed", e)
            return None
        with conversation.lock:
            conversation.help_message = handle
        logger.info(
            "renderer.created",
            extra={"extra": {"channel_id": conversation.channel_id, "message_id": handle.message_id}},
        )
        return handle

    @staticmethod
    def _fail(conversation: Conversation, event: str, error: Exception) -> None:
        conversation.render_failed = True
        logger.warning(
            event,
            extra={
                "extra": {
                    "owner_id": conversation.owner_id,
                    "channel_id": conversation.channel_id,
                    "error": repr(error),
                }
            },
        )
