"""OCR 等付费增强服务的配额跟踪。

每个窗口（默认 30 天）内最多允许 max_usages 次调用，
每次变更后立即写回 JsonQuotaStore，保证进程重启后状态不丢失。
"""

from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from autohelp_core.config.settings import settings
from autohelp_core.domain.exceptions import BusinessError, QuotaExceededError
from autohelp_core.infrastructure.logging.logger import logger
from autohelp_core.infrastructure.storage.json_store import JsonQuotaStore, QuotaState


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class QuotaTracker:
    def __init__(
        self,
        store: JsonQuotaStore,
        *,
        max_usages: Optional[int] = None,
        window: Optional[timedelta] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._store = store
        self._max = settings.quota_max_usages if max_usages is None else max_usages
        self._window = window or timedelta(days=settings.quota_window_days)
        self._clock = clock
        self._lock = threading.Lock()
        self._state = self._load()

    @property
    def usages(self) -> int:
        return self._state.usages

    @property
    def max_usages(self) -> int:
        return self._max

    @property
    def is_available(self) -> bool:
        with self._lock:
            self._roll_window()
            return self._state.usages < self._max

    def register(self) -> None:
        """记录一次调用。配额耗尽时抛出 QuotaExceededError。"""
        with self._lock:
            self._roll_window()
            if self._state.usages >= self._max:
                raise QuotaExceededError(usages=self._state.usages)
            self._state = QuotaState(usages=self._state.usages + 1, window_start=self._state.window_start)
            self._store.save(self._state)

    def _load(self) -> QuotaState:
        now = self._clock()
        try:
            state = self._store.load()
        except BusinessError as exc:
            # 读不出来时按已耗尽处理，窗口滚动后自然恢复
            logger.warning(
                "quota.load_failed",
                extra={"extra": {"path": str(self._store.path), "error": exc.message}},
            )
            return QuotaState(usages=self._max, window_start=now)
        if state is None:
            state = QuotaState(usages=0, window_start=now)
            self._store.save(state)
            return state
        if now - state.window_start > self._window:
            logger.info("quota.window_reset", extra={"extra": {"previous_usages": state.usages}})
            state = QuotaState(usages=0, window_start=now)
            self._store.save(state)
        return state

    def _roll_window(self) -> None:
        now = self._clock()
        if now - self._state.window_start > self._window:
            logger.info("quota.window_reset", extra={"extra": {"previous_usages": self._state.usages}})
            self._state = QuotaState(usages=0, window_start=now)
            self._store.save(self._state)
