"""Ctrl-C guard that keeps in-flight uploads from being dropped silently."""

import signal
import threading
from collections.abc import Callable
from types import FrameType
from typing import Any

from ..logging_config import get_logger

logger = get_logger(__name__)

LEAVE_WARNING = "仍有文件正在上传，再按一次 Ctrl-C 将取消上传并退出"


class LeaveGuard:
    """
    Installs a SIGINT handler while active.

    The first interrupt during an upload only warns; a second one calls
    ``on_leave`` (typically cancelling the queue) and raises KeyboardInterrupt.
    Interrupts while nothing is uploading behave normally.
    """

    def __init__(
        self,
        is_active: Callable[[], bool],
        warn: Callable[[str], None] = print,
        on_leave: Callable[[], None] | None = None,
    ) -> None:
        self.is_active = is_active
        self.warn = warn
        self.on_leave = on_leave
        self.warned = False
        self._previous_handler: Any = None
        self._installed = False

    def handle(self, signum: int, frame: FrameType | None) -> None:
        if not self.is_active():
            raise KeyboardInterrupt

        if not self.warned:
            self.warned = True
            logger.warning("leave_attempt_blocked", signal=signum)
            self.warn(LEAVE_WARNING)
            return

        logger.warning("leave_confirmed", signal=signum)
        if self.on_leave:
            self.on_leave()
        raise KeyboardInterrupt

    def __enter__(self) -> "LeaveGuard":
        # Signal handlers can only be set from the main thread
        if threading.current_thread() is threading.main_thread():
            self._previous_handler = signal.signal(signal.SIGINT, self.handle)
            self._installed = True
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._installed:
            signal.signal(signal.SIGINT, self._previous_handler)
            self._installed = False
