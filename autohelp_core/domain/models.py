"""统一的证据与消息数据模型。

本模块定义了 AutoHelp 在各组件之间共享的标准数据结构：

- StackFrame / ExceptionRecord / SourceClass: 解析器从文本中提取出的证据。
- Present / Absent: 单个内容来源的抓取结果（带标签的变体）。
- IncomingMessage / Attachment / MessageHandle: 与聊天传输层交互的值对象。
- RenderedAnswer: Renderer 生成、交给传输层发送或编辑的消息内容。
- DocEntry / SearchHit: 文档查找相关的结果。

解析器、抓取器与 Renderer 都只依赖这些模型，
具体聊天平台（Discord 等）的适配层负责与这些模型之间做转换。
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union


@dataclass(frozen=True)
class StackFrame:
    """堆栈中的一帧。

    - package: 所在包，如 "com.foo"（默认包时为空字符串）。
    - method: 方法名，如 "baz" 或 "<init>"。
    - class_name: 源文件对应的类名（取自 "Bar.java"），用于之后按名称查找源码。
    - line_number: 从 1 开始的行号。
    """

    package: str
    method: str
    class_name: str
    line_number: int


@dataclass(frozen=True)
class ExceptionRecord:
    """一条解析出的异常。

    frames 按原文顺序排列（最内层在前）。cause 最多嵌套一层；
    更深的 "Caused by:" 段会被语法折叠，数量记录在 collapsed_causes 中。
    """

    exception_name: str
    message: str
    frames: Tuple[StackFrame, ...] = ()
    cause: Optional["ExceptionRecord"] = None
    collapsed_causes: int = 0

    @property
    def simple_name(self) -> str:
        return self.exception_name[self.exception_name.rfind(".") + 1:].strip()


@dataclass(frozen=True)
class SourceClass:
    """用户提供的一段类源码，按 name 用于之后的出错行查找。"""

    package: str
    name: str
    raw_content: str


Evidence = Union[ExceptionRecord, SourceClass]


@dataclass(frozen=True)
class Present:
    """某个来源成功抓取到的正文（可以是空字符串）。"""

    source: str
    body: str


@dataclass(frozen=True)
class Absent:
    """某个来源抓取失败或被跳过。"""

    source: str
    reason: str = ""


ContentBody = Union[Present, Absent]


@dataclass(frozen=True)
class Attachment:
    """消息附件的描述，内容由传输层按需获取。"""

    id: str
    filename: str
    content_type: Optional[str] = None
    size: int = 0

    @property
    def is_image(self) -> bool:
        if self.content_type:
            return self.content_type.startswith("image/")
        return self.filename.lower().endswith((".png", ".jpg", ".jpeg", ".gif", ".webp", ".bmp"))

    @property
    def is_video(self) -> bool:
        if self.content_type:
            return self.content_type.startswith("video/")
        return self.filename.lower().endswith((".mp4", ".mov", ".webm", ".mkv", ".avi"))


@dataclass
class IncomingMessage:
    """传输层投递过来的一条聊天消息。"""

    author_id: str
    channel_id: str
    content: str
    attachments: List[Attachment] = field(default_factory=list)
    author_is_bot: bool = False
    category_id: Optional[str] = None
    meta: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class MessageHandle:
    """已发送消息的句柄，之后只用于编辑。"""

    channel_id: str
    message_id: str


@dataclass(frozen=True)
class EmbedField:
    name: str
    value: str


@dataclass(frozen=True)
class RenderedAnswer:
    """Renderer 输出的消息内容（与平台无关的 embed 结构）。"""

    title: str
    description: Optional[str]
    fields: Tuple[EmbedField, ...] = ()
    footer: Optional[str] = None


@dataclass(frozen=True)
class SearchHit:
    """一次网页搜索的单条结果。"""

    title: str
    url: str


@dataclass(frozen=True)
class DocEntry:
    """某个类的 API 文档。"""

    url: str
    description: Optional[str] = None
