from dataclasses import dataclass
from typing import Callable, List, Optional
import asyncio
import itertools
import logging

logger = logging.getLogger(__name__)

@dataclass(frozen=True)
class Toast:
    id: int
    message: str
    kind: str = "info"  # "success" | "error" | "info"

class Toaster:
    """Transient user notifications. Each toast expires after `duration` seconds when a loop is running."""

    def __init__(self, duration: Optional[float] = 3.0):
        self.duration = duration
        self._toasts: List[Toast] = []
        self._listeners: List[Callable[[List[Toast]], None]] = []
        self._ids = itertools.count(1)

    @property
    def toasts(self) -> List[Toast]:
        return list(self._toasts)

    def subscribe(self, listener: Callable[[List[Toast]], None]) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)
        return unsubscribe

    def _notify(self) -> None:
        snapshot = self.toasts
        for listener in list(self._listeners):
            listener(snapshot)

    def show_toast(self, message: str, kind: str = "info") -> Toast:
        toast = Toast(id=next(self._ids), message=message, kind=kind)
        self._toasts.append(toast)
        log = logger.warning if kind == "error" else logger.info
        log(f"[toast:{kind}] {message}")
        self._notify()

        if self.duration is not None:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                loop = None
            if loop is not None:
                loop.call_later(self.duration, self.dismiss, toast.id)
        return toast

    def dismiss(self, toast_id: int) -> None:
        remaining = [t for t in self._toasts if t.id != toast_id]
        if len(remaining) != len(self._toasts):
            self._toasts = remaining
            self._notify()
