from typing import Awaitable, Callable, Optional
import asyncio

from easistent_timetable_core.timetable.crawler import MAX_WEEK_ID, MIN_WEEK_ID
from easistent_timetable_core.utils.logger import get_logger

logger = get_logger(logger_level="INFO")

DEFAULT_DEBOUNCE_SECONDS = 0.2


class Debouncer:
    """延遲執行的 async 動作，新的請求會取消尚未執行的舊請求

    只保留一個 asyncio.Task handle；連續呼叫 schedule 時只有最後一次會在
    安靜期 delay 秒後真正執行。
    """

    def __init__(self, delay: float = DEFAULT_DEBOUNCE_SECONDS):
        self.delay = delay
        self._task: Optional[asyncio.Task] = None

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    def schedule(self, action: Callable[[], Awaitable[None]]) -> asyncio.Task:
        self.cancel()

        async def runner() -> None:
            await asyncio.sleep(self.delay)
            await action()

        self._task = asyncio.create_task(runner())
        return self._task

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None


class WeekNavigator:
    """週次切換

    - 週次夾在 0-52 之間
    - 與目前週次相同時不重新載入
    - 連續切換只在最後一次後 200ms 觸發 on_load
    """

    def __init__(
        self,
        on_load: Callable[[int], Awaitable[None]],
        current_week: int = MIN_WEEK_ID,
        delay: float = DEFAULT_DEBOUNCE_SECONDS,
    ):
        self._on_load = on_load
        self.current_week = self.clamp(current_week)
        self._requested_week = self.current_week
        self._debouncer = Debouncer(delay)

    @staticmethod
    def clamp(week_id: int) -> int:
        return max(MIN_WEEK_ID, min(MAX_WEEK_ID, week_id))

    @property
    def requested_week(self) -> int:
        return self._requested_week

    def request_week(self, week_id: int) -> Optional[asyncio.Task]:
        """要求切換到 week_id，回傳排程中的 task；不需切換時回傳 None"""
        target = self.clamp(week_id)
        self._requested_week = target
        if target == self.current_week:
            # 回到目前週次：取消尚未執行的切換
            self._debouncer.cancel()
            return None

        async def load() -> None:
            logger.debug(f"📅 切換週次：{self.current_week} -> {target}")
            self.current_week = target
            await self._on_load(target)

        return self._debouncer.schedule(load)

    def next_week(self) -> Optional[asyncio.Task]:
        return self.request_week(self._requested_week + 1)

    def previous_week(self) -> Optional[asyncio.Task]:
        return self.request_week(self._requested_week - 1)

    def cancel(self) -> None:
        self._debouncer.cancel()
