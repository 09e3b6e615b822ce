"""NullPointerException 提示。

两种来源：
- Java 14+ 的 helpful NPE 消息（"Cannot invoke ... because "x" is null"），
  能精确说明哪个值是 null；
- 否则对出错的那一行做 token 链分析，列出可能为 null 的候选。
"""

import re
from typing import List, Optional

from autohelp_core.prompts import render_template


HELPFUL_NPE_PATTERN = re.compile(
    r"Cannot (assign|read|load from|store to|throw|invoke|enter|exit) "
    r"(?:(field|method|.* array|synchronized block|the array length|exception) )?"
    r"(?:\"(.*)\" )?because \"(.*)\" is null"
)

TOKEN_CHAIN_PATTERN = re.compile(r"[a-zA-Z_$][a-zA-Z_$0-9]*(?:\(\))?")


def _array_prefix(kind: Optional[str]) -> str:
    if not kind or kind == "array":
        return ""
    return kind[: kind.index("array")]


def describe_symptom(operator: str, kind: Optional[str], token: Optional[str]) -> str:
    if operator == "assign":
        return f"The field `{token}` cannot be assigned."
    if operator == "read":
        if kind == "the array length":
            return "The length of the array cannot be read."
        return f"The field `{token}` cannot be read."
    if operator == "load from":
        return f"No element of the {_array_prefix(kind)}array can be read."
    if operator == "store to":
        return f"No element can be stored into the {_array_prefix(kind)}array."
    if operator == "throw":
        return "The exception cannot be thrown."
    if operator == "invoke":
        return f"The method `{token}` cannot be invoked."
    if operator == "enter":
        return f"The {kind} cannot be entered."
    if operator == "exit":
        return f"The {kind} cannot be exited."
    return "Unknown, a friendly community member will help you soon."


def analyze_helpful_npe(message: Optional[str]) -> Optional[str]:
    """解析 helpful NPE 消息；不是该格式时返回 None。"""
    m = HELPFUL_NPE_PATTERN.search(message or "")
    if m is None:
        return None
    operator, kind, token, null_name = m.groups()
    parts = [f"**Symptom**: {describe_symptom(operator, kind, token)}"]
    names = TOKEN_CHAIN_PATTERN.findall(null_name)
    if names:
        name = names[-1]
        template = "npe_null_method" if name.endswith("()") else "npe_null_field"
        parts.append(render_template(template, name=name))
    return "\n".join(parts)


def chain_elements(line: str) -> List[str]:
    """出错行里可能为 null 的接收者，例如 `a.b().c()` -> [a, b()]。"""
    segments = line.strip().split(".")
    elements: List[str] = []
    for index, segment in enumerate(segments[:-1]):
        tokens = TOKEN_CHAIN_PATTERN.findall(segment)
        if not tokens:
            continue
        elements.append(tokens[-1] if index == 0 else tokens[0])
    return elements


def analyze_token_chain(line: Optional[str], line_number: Optional[int]) -> Optional[str]:
    if not line or line_number is None:
        return None
    elements = chain_elements(line)
    if not elements:
        return None
    return render_template(
        "npe_chain",
        elements=", ".join(f"`{e}`" for e in elements),
        line=line_number,
    )


def build_npe_hint(message: Optional[str], line: Optional[str], line_number: Optional[int]) -> Optional[str]:
    return analyze_helpful_npe(message) or analyze_token_chain(line, line_number)
