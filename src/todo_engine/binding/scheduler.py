"""デバウンス保存用のタイマースケジューラー

DurableBinding はこのモジュールのスケジューラーから遅延実行ハンドルを受け取り、
変更のたびに前回のハンドルをキャンセルしてから新しいタイマーを仕掛けます。

- ThreadingScheduler: threading.Timer によるバックグラウンド実行
- ManualScheduler: 仮想時計。advance() で時間を進めたときだけ発火する（テスト用）
"""

from __future__ import annotations

import heapq
import itertools
import logging
import threading
from typing import Callable, List, Optional, Protocol, Tuple

logger = logging.getLogger(__name__)


class TimerHandle(Protocol):
    """キャンセル可能な遅延実行ハンドル"""

    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """delay秒後にcallbackを1回だけ呼び出すスケジューラー"""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle: ...


class _ThreadingHandle:
    def __init__(self, timer: threading.Timer) -> None:
        self._timer = timer

    def cancel(self) -> None:
        self._timer.cancel()


class ThreadingScheduler:
    """threading.Timer ベースのスケジューラー

    コールバックは共有ロックを保持した状態で実行されるため、
    同一スケジューラー上のコールバック同士が重なることはありません。
    """

    def __init__(self, lock: Optional[threading.RLock] = None) -> None:
        self.lock = lock or threading.RLock()

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        def _run() -> None:
            with self.lock:
                try:
                    callback()
                except Exception:
                    logger.exception("Scheduled callback failed")

        timer = threading.Timer(delay, _run)
        timer.daemon = True
        timer.start()
        return _ThreadingHandle(timer)


class _ManualHandle:
    def __init__(self) -> None:
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """手動で時間を進める仮想時計スケジューラー"""

    def __init__(self) -> None:
        self.now = 0.0
        self._queue: List[Tuple[float, int, _ManualHandle, Callable[[], None]]] = []
        self._counter = itertools.count()

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        handle = _ManualHandle()
        heapq.heappush(self._queue, (self.now + delay, next(self._counter), handle, callback))
        return handle

    @property
    def pending_count(self) -> int:
        """キャンセルされていない待機中タイマーの数"""
        return sum(1 for _, _, handle, _ in self._queue if not handle.cancelled)

    def advance(self, seconds: float) -> int:
        """時間を進め、期限に達したコールバックを実行する

        Returns:
            実行されたコールバックの数
        """
        target = self.now + seconds
        fired = 0
        while self._queue and self._queue[0][0] <= target:
            due, _, handle, callback = heapq.heappop(self._queue)
            self.now = due
            if handle.cancelled:
                continue
            callback()
            fired += 1
        self.now = target
        return fired
