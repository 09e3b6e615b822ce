from dataclasses import dataclass, field
from typing import Any, List, Literal, Optional, Protocol
import threading

from .models import (
    Attachment,
    DocEntry,
    ExceptionRecord,
    MessageHandle,
    RenderedAnswer,
    SearchHit,
    SourceClass,
)


DocStatus = Literal["pending", "found", "not_found"]


@dataclass
class ExceptionAnswer:
    """当前选中的异常及其派生信息。

    - causee: 选中的根异常来自 cause 链时，外层异常的 "Name: message"。
    - explanation: 知识库中的解释文本。
    - cause_class / cause_line: 第一个属于用户代码的帧。
    - record: 派生出本答案的证据条目。
    - doc / doc_status: 由 JavadocFinder 异步填充。
    - sealed: 封存后不再被新的异常证据覆盖。
    """

    exception_name: str
    exception_message: Optional[str]
    causee: Optional[str]
    explanation: Optional[str]
    cause_class: Optional[str]
    cause_line: Optional[int]
    record: ExceptionRecord
    sealed: bool = False
    doc: Optional[DocEntry] = None
    doc_status: DocStatus = "pending"

    @property
    def simple_name(self) -> str:
        return self.exception_name[self.exception_name.rfind(".") + 1:].strip()

    @property
    def cause_resolvable(self) -> bool:
        return self.cause_class is not None and self.cause_line is not None


@dataclass
class Answer:
    """证据的可变投影，由 Brain.think 维护。

    cause_content 是出错行原文；找到同名类但行号越界时只设置 cause_note，
    此时出错行被认定为无法解析，答案同样视为完整。
    """

    exception: Optional[ExceptionAnswer] = None
    cause_content: Optional[str] = None
    cause_note: Optional[str] = None
    npe_hint: Optional[str] = None

    @property
    def is_useless(self) -> bool:
        return self.exception is None and self.cause_content is None

    @property
    def is_complete(self) -> bool:
        if self.exception is None:
            return False
        if self.cause_content is not None or self.cause_note is not None:
            return True
        return not self.exception.cause_resolvable


@dataclass(eq=False)
class Conversation:
    owner_id: str
    channel_id: str
    last_interaction: float
    stacktraces: List[ExceptionRecord] = field(default_factory=list)
    classes: List[SourceClass] = field(default_factory=list)
    answer: Answer = field(default_factory=Answer)
    help_message: Optional[MessageHandle] = None
    message_task: Optional[Any] = field(default=None, repr=False)
    doc_task: Optional[Any] = field(default=None, repr=False)
    render_failed: bool = False
    # 所有访问都在事件循环线程上。锁只划出同步的修改段（observe 追加、
    # think 投影、文档 done-callback 合并、Renderer 读取），从不跨 await 持有
    lock: Any = field(default_factory=threading.RLock, repr=False)

    @property
    def key(self) -> tuple:
        return (self.owner_id, self.channel_id)


class ChatTransport(Protocol):
    async def create_message(self, channel_id: str, content: RenderedAnswer) -> MessageHandle:
        ...

    async def edit_message(self, handle: MessageHandle, content: RenderedAnswer) -> None:
        ...

    async def fetch_attachment(self, attachment: Attachment) -> bytes:
        ...


class KnowledgeStore(Protocol):
    def find_explanation(self, key: str) -> Optional[str]:
        ...


class DocSearch(Protocol):
    async def search(self, query: str) -> List[SearchHit]:
        ...


class TextRecognizer(Protocol):
    async def read_text(self, image: bytes) -> Optional[str]:
        ...
