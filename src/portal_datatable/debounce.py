from __future__ import annotations

import threading
from typing import Any, Callable, Protocol


class TimerLike(Protocol):
    def start(self) -> None: ...

    def cancel(self) -> None: ...


TimerFactory = Callable[[float, Callable[[], None]], TimerLike]


class Debouncer:
    """Latest-intent-wins delay for search input.

    Every :meth:`submit` cancels the pending timer and schedules a new one.
    Scheduled callbacks carry the generation they were created for, so a
    timer that fires after being superseded or cancelled does nothing.
    """

    def __init__(
        self,
        wait_ms: int,
        callback: Callable[[Any], None],
        timer_factory: TimerFactory = threading.Timer,
    ) -> None:
        self.wait_ms = wait_ms
        self.callback = callback
        self._timer_factory = timer_factory
        self._lock = threading.Lock()
        self._generation = 0
        self._timer: TimerLike | None = None
        self._value: Any = None
        self._pending = False

    @property
    def pending(self) -> bool:
        return self._pending

    def submit(self, value: Any) -> None:
        if self.wait_ms <= 0:
            self.cancel()
            self.callback(value)
            return
        with self._lock:
            self._cancel_timer()
            self._generation += 1
            generation = self._generation
            self._value = value
            self._pending = True
            timer = self._timer_factory(self.wait_ms / 1000, lambda: self._fire(generation))
            self._timer = timer
        timer.start()

    def _fire(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation or not self._pending:
                return
            value = self._value
            self._pending = False
            self._timer = None
        self.callback(value)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def cancel(self) -> None:
        with self._lock:
            self._cancel_timer()
            self._generation += 1
            self._pending = False
            self._value = None

    def flush(self) -> bool:
        with self._lock:
            if not self._pending:
                return False
            self._cancel_timer()
            self._generation += 1
            value = self._value
            self._pending = False
        self.callback(value)
        return True
