"""Timestamped, optionally throttled flow tracing for the scrolling engine."""

import time

from dynscroll.utils.settings import DEFAULT_SETTINGS, settings

_ALWAYS_PRINTED = {"WARNING", "ERROR"}


class FlowLog:
    """Prints `[ts][TRACE][COMPONENT][LEVEL] message` lines.

    DEBUG/INFO lines only appear when the `flow_trace_logs` setting is on (or
    when `enabled` is forced); warnings and errors are always printed.
    """

    def __init__(self, enabled: bool | None = None):
        self._enabled = enabled
        self._last_emit = {}

    def is_enabled(self) -> bool:
        if self._enabled is not None:
            return self._enabled
        try:
            return bool(settings.value(
                'flow_trace_logs',
                defaultValue=DEFAULT_SETTINGS['flow_trace_logs'], type=bool))
        except Exception:
            return False

    def __call__(self, component: str, message: str, *, level: str = "DEBUG",
                 throttle_key: str | None = None, every_s: float | None = None):
        if level not in _ALWAYS_PRINTED and not self.is_enabled():
            return

        now = time.time()
        if throttle_key and every_s is not None:
            last = self._last_emit.get(throttle_key, 0.0)
            if (now - last) < every_s:
                return
            self._last_emit[throttle_key] = now
        ts = time.strftime("%H:%M:%S", time.localtime(now)) + f".{int((now % 1) * 1000):03d}"
        print(f"[{ts}][TRACE][{component}][{level}] {message}")
