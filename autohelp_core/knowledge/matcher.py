"""知识库匹配。

固定的决策表：按异常简单类名（小写）和消息里的字面量判断，
命中后用 key 去 KnowledgeStore 查解释文本。这里没有任何模糊匹配。
"""

import re
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from autohelp_core.domain.conversation import KnowledgeStore
from autohelp_core.infrastructure.logging.logger import logger


@dataclass(frozen=True)
class KnowledgeRule:
    """一条规则：predicate(简单类名小写, 原始消息) 为真时返回 key。"""

    key: str
    predicate: Callable[[str, str], bool]


RULES: Tuple[KnowledgeRule, ...] = (
    KnowledgeRule("nullpointerexception", lambda name, msg: name == "nullpointerexception"),
    KnowledgeRule("class-version", lambda name, msg: name == "unsupportedclassversionerror"),
    KnowledgeRule("casting", lambda name, msg: name == "classcastexception"),
    KnowledgeRule("plugin-already-initialized", lambda name, msg: msg == "Plugin already initialized!"),
    KnowledgeRule("plugin.yml", lambda name, msg: name == "invaliddescriptionexception"),
    KnowledgeRule(
        "main-class-not-found",
        lambda name, msg: name == "invalidpluginexception" and "cannot find main class" in msg.lower(),
    ),
    KnowledgeRule("ArrayIndexOutOfBoundsException", lambda name, msg: name == "arrayindexoutofboundsexception"),
)

# "java.lang.RuntimeException: java.lang.NullPointerException: foo" 里嵌套的异常头
NESTED_HEADER_PATTERN = re.compile(
    r"^\s*(?P<name>(?:[A-Za-z_$][\w$]*\.)*[\w$]*(?:Exception|Error|Throwable))(?::\s?(?P<message>.*))?$",
    re.S,
)


def normalize_name(exception_name: str) -> str:
    return exception_name[exception_name.rfind(".") + 1:].strip().lower()


class KnowledgeMatcher:
    def __init__(self, store: KnowledgeStore, rules: Optional[List[KnowledgeRule]] = None):
        self._store = store
        self._rules = tuple(rules) if rules is not None else RULES

    def lookup(self, exception_name: str, message: Optional[str]) -> Optional[str]:
        """返回解释文本；没有规则命中或知识库里没有该 key 时返回 None。"""
        explanation = self._lookup_once(exception_name, message)
        if explanation is not None:
            return explanation
        nested = NESTED_HEADER_PATTERN.match(message or "")
        if nested is None:
            return None
        return self._lookup_once(nested.group("name"), (nested.group("message") or "").strip())

    def _lookup_once(self, exception_name: str, message: Optional[str]) -> Optional[str]:
        name = normalize_name(exception_name)
        msg = message or ""
        for rule in self._rules:
            if not rule.predicate(name, msg):
                continue
            explanation = self._store.find_explanation(rule.key)
            if explanation is None:
                logger.info("matcher.key_missing", extra={"extra": {"key": rule.key}})
            return explanation
        return None
