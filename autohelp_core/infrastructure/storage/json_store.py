import json
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional
from uuid import uuid4

from autohelp_core.config.settings import settings
from autohelp_core.domain.exceptions import BusinessError


@dataclass
class QuotaState:
    """持久化的配额状态：当前窗口内的调用次数与窗口起点。"""

    usages: int
    window_start: datetime


class JsonQuotaStore:
    """把 QuotaState 保存在一个小 JSON 文件里。

    文件格式: {"usages": 12, "window_start": "2026-10-01T00:00:00Z"}。
    写入使用临时文件 + os.replace，进程崩溃时不会留下半个文件。
    """

    def __init__(self, path: str | Path | None = None):
        self._path = Path(path or settings.quota_file).resolve()
        self._path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> Optional[QuotaState]:
        """读取状态；文件不存在时返回 None。"""
        if not self._path.exists():
            return None
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
            return QuotaState(
                usages=int(data["usages"]),
                window_start=datetime.fromisoformat(str(data["window_start"]).replace("Z", "+00:00")),
            )
        except Exception as e:
            raise BusinessError(code="STORE_READ_ERROR", message=str(e), path=str(self._path))

    def save(self, state: QuotaState) -> None:
        tmp_path = self._path.parent / f"{self._path.name}.{uuid4().hex}.tmp"
        obj = {
            "usages": state.usages,
            "window_start": state.window_start.astimezone(timezone.utc).isoformat().replace("+00:00", "Z"),
        }
        try:
            tmp_path.write_text(json.dumps(obj, ensure_ascii=False), encoding="utf-8")
            os.replace(tmp_path, self._path)
        except Exception as e:
            raise BusinessError(code="STORE_WRITE_ERROR", message=str(e), path=str(self._path))
