"""One-shot navigation signals for the presentation layer."""

import logging
from collections import deque
from typing import Any, Callable, Deque, List, Optional

from ridenav.config import get_settings
from ridenav.schemas.navigation import NavigationSignal, SignalType

logger = logging.getLogger(__name__)

SignalCallback = Callable[[NavigationSignal], Any]


class NavigationSignals:
    """Delivers signals to subscribers and buffers them for polling.

    The buffer is bounded; when nobody polls, the oldest signals are dropped.
    """

    def __init__(self, buffer_size: Optional[int] = None):
        if buffer_size is None:
            buffer_size = get_settings().SIGNAL_BUFFER_SIZE
        self._buffer: Deque[NavigationSignal] = deque(maxlen=buffer_size)
        self._subscribers: List[SignalCallback] = []

    def subscribe(self, callback: SignalCallback) -> Callable[[], None]:
        """Register a callback. Returns a function that unsubscribes it."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def emit(self, signal_type: SignalType, message: str, **data: Any) -> NavigationSignal:
        signal = NavigationSignal(type=signal_type, message=message, data=data)
        self._buffer.append(signal)

        logger.info(
            message,
            extra={"extra_fields": {"signal": signal_type.value, **data}},
        )

        for callback in list(self._subscribers):
            try:
                callback(signal)
            except Exception as e:
                logger.error(f"Signal subscriber failed: {str(e)}", exc_info=True)

        return signal

    def drain(self) -> List[NavigationSignal]:
        """Return and clear all buffered signals."""
        signals = list(self._buffer)
        self._buffer.clear()
        return signals

    def peek(self) -> List[NavigationSignal]:
        return list(self._buffer)
