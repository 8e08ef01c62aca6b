"""
Transient user-facing toasts.

Every toast auto-dismisses after TOAST_DURATION unless a duration is given.
A toast whose id is still on screen is not raised a second time.
"""
import logging
import random
import string
import time
from typing import Callable, Dict, List, Optional

from draftio.client.models import Toast
from draftio.core.config import settings

logger = logging.getLogger(__name__)

ToastSink = Callable[[Toast], None]


def generate_toast_id() -> str:
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=8))
    return f"toast-{int(time.time() * 1000)}-{suffix}"


class Toaster:
    def __init__(
        self,
        duration: float = settings.TOAST_DURATION,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.duration = duration
        self._clock = clock
        self._active: Dict[str, Toast] = {}
        self._sinks: List[ToastSink] = []

    def add_sink(self, sink: ToastSink) -> None:
        """Register a renderer; it is called once per newly raised toast."""
        self._sinks.append(sink)

    def show(
        self,
        title: str,
        description: str = "",
        toast_id: Optional[str] = None,
        duration: Optional[float] = None,
    ) -> Toast:
        self._purge()

        if toast_id and toast_id in self._active:
            logger.debug(f"Toast {toast_id} already visible, not raised again")
            return self._active[toast_id]

        toast = Toast(
            id=toast_id or generate_toast_id(),
            title=title,
            description=description,
            duration=self.duration if duration is None else duration,
            created_at=self._clock(),
        )
        self._active[toast.id] = toast
        for sink in self._sinks:
            sink(toast)
        return toast

    def dismiss(self, toast_id: str) -> bool:
        return self._active.pop(toast_id, None) is not None

    def clear(self) -> None:
        self._active.clear()

    def active(self) -> List[Toast]:
        self._purge()
        return list(self._active.values())

    def _purge(self) -> None:
        now = self._clock()
        expired = [tid for tid, t in self._active.items() if now - t.created_at >= t.duration]
        for toast_id in expired:
            del self._active[toast_id]
