"""堆栈与源码解析。

从任意文本中提取 ExceptionRecord 与 SourceClass。解析是全函数：
不匹配的输入只会得到空结果，永远不会抛异常。

支持的异常语法（每行一个元素）::

    [日志前缀] [Exception in thread "main"] com.foo.SomeException[: message]
    [至多一行消息续行]
        at com.foo.Bar.baz(Bar.java:42)
        ... 3 more
    Caused by: com.foo.OtherException: message
        at ...

"Caused by:" 只支持一层：更深的 cause 段会被整体吞掉，
数量记录在最外层记录的 collapsed_causes 上。
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from autohelp_core.domain.models import Evidence, ExceptionRecord, SourceClass, StackFrame


_TYPE_NAME = r"(?:[A-Za-z_$][\w$]*\.)*[\w$]*(?:Exception|Error|Throwable)"

HEADER_PATTERN = re.compile(
    r"^\s*(?:.*?\s)??(?:Exception in thread \"[^\"]*\"\s+)?"
    rf"(?<![\w$.])(?P<name>{_TYPE_NAME})(?::\s?(?P<message>.*?))?\s*$"
)

FRAME_LINE_PATTERN = re.compile(r"^\s*at\s+\S")

FRAME_PATTERN = re.compile(
    r"^\s*at\s+(?:[^\s/()]+/+)?"
    r"(?P<qualified>[\w$.]+)\.(?P<method>[\w$<>\-]+)"
    r"\((?P<file>[\w$\-]+)\.(?:java|kt|kts|groovy|scala):(?P<line>\d+)\)"
)

MORE_PATTERN = re.compile(r"^\s*\.\.\. \d+ (?:more|common frames omitted)\s*$")

CAUSED_BY_PREFIX = "Caused by:"
SUPPRESSED_PREFIX = "Suppressed:"

PACKAGE_PATTERN = re.compile(r"^[ \t]*package[ \t]+(?P<package>[A-Za-z_][\w.]*)[ \t]*;?[ \t]*$", re.M)

TYPE_DECLARATION_PATTERN = re.compile(
    r"^[ \t]*(?P<modifiers>(?:(?:public|protected|private|internal|abstract|final|static|sealed|"
    r"non-sealed|strictfp|open|data|inner|enum|annotation)\s+)*)"
    r"(?:class|interface|enum|record|object|@interface)\s+(?P<name>[A-Za-z_$][\w$]*)[^{;]*\{",
    re.M,
)

_HEADER_NOISE_LINE = re.compile(r"^\s*(?:$|//|/\*|\*|\*/)")


@dataclass
class ParseResult:
    """单个文本正文的解析结果，条目按原文位置排序。"""

    items: List[Tuple[int, Evidence]] = field(default_factory=list)

    @property
    def evidence(self) -> List[Evidence]:
        return [item for _, item in sorted(self.items, key=lambda pair: pair[0])]

    @property
    def exceptions(self) -> List[ExceptionRecord]:
        return [e for e in self.evidence if isinstance(e, ExceptionRecord)]

    @property
    def classes(self) -> List[SourceClass]:
        return [e for e in self.evidence if isinstance(e, SourceClass)]

    def __bool__(self) -> bool:
        return bool(self.items)


@dataclass
class _Block:
    name: str
    message: str
    frames: List[StackFrame]
    end: int


def parse(text: Optional[str]) -> ParseResult:
    """解析一段文本，返回其中的异常与类。"""
    result = ParseResult()
    if not text:
        return result
    lines = text.splitlines()
    offsets = _line_offsets(lines)
    for line_index, record in find_exceptions(lines):
        result.items.append((offsets[line_index], record))
    for offset, clazz in find_classes(text):
        result.items.append((offset, clazz))
    return result


def find_exceptions(lines: List[str]) -> List[Tuple[int, ExceptionRecord]]:
    found: List[Tuple[int, ExceptionRecord]] = []
    i = 0
    n = len(lines)
    while i < n:
        block = _read_block(lines, i)
        if block is None:
            i += 1
            continue
        cause: Optional[ExceptionRecord] = None
        collapsed = 0
        k = block.end
        while k < n and lines[k].lstrip().startswith(CAUSED_BY_PREFIX):
            cause_block = _read_block(lines, k)
            if cause_block is None:
                break
            if cause is None:
                cause = ExceptionRecord(
                    exception_name=cause_block.name,
                    message=cause_block.message,
                    frames=tuple(cause_block.frames),
                )
            else:
                collapsed += 1
            k = cause_block.end
        found.append(
            (
                i,
                ExceptionRecord(
                    exception_name=block.name,
                    message=block.message,
                    frames=tuple(block.frames),
                    cause=cause,
                    collapsed_causes=collapsed,
                ),
            )
        )
        i = max(k, i + 1)
    return found


def parse_frame(line: str) -> Optional[StackFrame]:
    """解析单行 "at ..."；格式不完整时返回 None。"""
    m = FRAME_PATTERN.match(line)
    if not m:
        return None
    line_number = int(m.group("line"))
    if line_number < 1:
        return None
    qualified_class = m.group("qualified")
    package = qualified_class.rpartition(".")[0]
    return StackFrame(
        package=package,
        method=m.group("method"),
        class_name=m.group("file"),
        line_number=line_number,
    )


def find_classes(text: str) -> List[Tuple[int, SourceClass]]:
    found: List[Tuple[int, SourceClass]] = []
    packages = list(PACKAGE_PATTERN.finditer(text))
    for index, pkg in enumerate(packages):
        segment_end = packages[index + 1].start() if index + 1 < len(packages) else len(text)
        previous_end = packages[index - 1].end() if index > 0 else 0
        segment = text[pkg.end():segment_end]
        declaration = _pick_declaration(segment)
        if declaration is None or "}" not in segment[declaration.end():]:
            continue
        start = _content_start(text, pkg.start(), previous_end)
        found.append(
            (
                start,
                SourceClass(
                    package=pkg.group("package"),
                    name=declaration.group("name"),
                    raw_content=text[start:segment_end].rstrip("\n"),
                ),
            )
        )
    return found


def _read_block(lines: List[str], start: int) -> Optional[_Block]:
    line = lines[start]
    if FRAME_LINE_PATTERN.match(line):
        return None
    m = HEADER_PATTERN.match(line)
    if not m:
        return None
    message = (m.group("message") or "").strip()
    n = len(lines)
    j = start + 1
    # 头部与第一帧之间允许一行续行
    if (
        j + 1 < n
        and not FRAME_LINE_PATTERN.match(lines[j])
        and not lines[j].lstrip().startswith(CAUSED_BY_PREFIX)
        and FRAME_LINE_PATTERN.match(lines[j + 1])
    ):
        message = f"{message}\n{lines[j].strip()}".strip()
        j += 1
    if j >= n or not FRAME_LINE_PATTERN.match(lines[j]):
        return None
    frames: List[StackFrame] = []
    while j < n:
        current = lines[j]
        if FRAME_LINE_PATTERN.match(current):
            frame = parse_frame(current)
            if frame is not None:
                frames.append(frame)
            j += 1
        elif MORE_PATTERN.match(current):
            j += 1
        elif current.lstrip().startswith(SUPPRESSED_PREFIX):
            suppressed = _read_block(lines, j)
            j = suppressed.end if suppressed else j + 1
        else:
            break
    return _Block(name=m.group("name"), message=message, frames=frames, end=j)


def _pick_declaration(segment: str) -> Optional[re.Match]:
    first = None
    for decl in TYPE_DECLARATION_PATTERN.finditer(segment):
        if "public" in decl.group("modifiers").split():
            return decl
        if first is None:
            first = decl
    return first


def _content_start(text: str, package_start: int, floor: int) -> int:
    """从 package 行向上回溯，把紧挨着的注释与空行也算进源码，保证行号与文件一致。"""
    start = package_start
    while start > floor:
        prev_end = start - 1
        prev_start = text.rfind("\n", floor, prev_end) + 1
        if prev_start < floor:
            prev_start = floor
        if not _HEADER_NOISE_LINE.match(text[prev_start:prev_end]):
            break
        start = prev_start
    return start


def _line_offsets(lines: List[str]) -> List[int]:
    offsets: List[int] = []
    pos = 0
    for line in lines:
        offsets.append(pos)
        pos += len(line) + 1
    return offsets
