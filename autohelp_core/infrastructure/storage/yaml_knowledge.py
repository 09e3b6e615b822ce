"""基于 YAML 文件的知识库存储。

文件是一个简单的映射：key -> 解释文本，例如::

    nullpointerexception: |
      A NullPointerException is thrown when ...
    class-version: ...

真正的知识库（tag 数据库）属于外部协作者，这里只是默认实现。
"""

from pathlib import Path
from typing import Dict, Optional
import warnings

import yaml

from autohelp_core.config.settings import settings


class YamlKnowledgeStore:
    def __init__(self, path: str | Path | None = None, entries: Optional[Dict[str, str]] = None):
        self._path = Path(path or settings.knowledge_file)
        self._entries: Dict[str, str] = {}
        if entries is not None:
            self._entries = dict(entries)
        else:
            self.reload()

    def reload(self) -> None:
        if not self._path.exists():
            self._entries = {}
            return
        try:
            data = yaml.safe_load(self._path.read_text(encoding="utf-8")) or {}
        except Exception as exc:
            warnings.warn(f"Failed to read knowledge file {self._path}: {exc}")
            data = {}
        if not isinstance(data, dict):
            warnings.warn(f"Knowledge file {self._path} is not a mapping, ignored")
            data = {}
        self._entries = {str(k): str(v).strip() for k, v in data.items() if v}

    def find_explanation(self, key: str) -> Optional[str]:
        return self._entries.get(key)
