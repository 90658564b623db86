import os

import pytest

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

from dynscroll.engine import virtual_scroll_engine as engine_module  # noqa: E402
from dynscroll.engine.engine_config import EngineConfig  # noqa: E402
from dynscroll.engine.virtual_scroll_engine import VirtualScrollEngine  # noqa: E402


class FakeLog:
    def __init__(self):
        self.messages = []

    def __call__(self, component, message, **kwargs):
        self.messages.append((component, message, kwargs))

    def text(self):
        return "\n".join(f"[{component}] {message}" for component, message, _ in self.messages)


class FakeScrollHost:
    """Scroll host that clamps like a real scroll bar."""

    def __init__(self, viewport_height=600.0, scroll_top=0.0):
        self._viewport_height = float(viewport_height)
        self._scroll_top = float(scroll_top)
        self.track_height = 0.0
        self.track_calls = []
        self.scroll_by_calls = []

    def scroll_top(self):
        return self._scroll_top

    def viewport_height(self):
        return self._viewport_height

    def scroll_height(self):
        return max(self.track_height, self._viewport_height)

    def set_track_height(self, min_height, max_height):
        self.track_calls.append((min_height, max_height))
        self.track_height = max_height
        self._clamp()

    def scroll_by(self, delta):
        self.scroll_by_calls.append(delta)
        self.scroll_to(self._scroll_top + delta)

    def scroll_to(self, value):
        self._scroll_top = float(value)
        self._clamp()

    def max_scroll(self):
        return max(0.0, self.track_height - self._viewport_height)

    def _clamp(self):
        self._scroll_top = max(0.0, min(self._scroll_top, self.max_scroll()))


class FakeView:
    def __init__(self, item, height):
        self.item = item
        self.height = height
        self.top = None
        self.attached = True
        self.destroyed = False


class FakeViewFactory:
    """Records every command; `heights` maps item id to the height `measure` reports."""

    def __init__(self, heights=None, default_height=100.0):
        self.heights = dict(heights or {})
        self.default_height = default_height
        self.calls = []
        self.views = {}

    def create(self, item):
        self.calls.append(("create", item.id))
        view = FakeView(item, self.heights.get(item.id, self.default_height))
        self.views[item.id] = view
        return view

    def measure(self, view):
        self.calls.append(("measure", view.item.id))
        return view.height

    def reposition(self, view, top):
        self.calls.append(("reposition", view.item.id))
        view.top = top

    def attach(self, view):
        self.calls.append(("attach", view.item.id))
        view.attached = True

    def detach(self, view):
        self.calls.append(("detach", view.item.id))
        view.attached = False

    def destroy(self, view):
        self.calls.append(("destroy", view.item.id))
        view.destroyed = True
        self.views.pop(view.item.id, None)

    def update_data(self, view, item):
        self.calls.append(("update_data", item.id))
        view.item = item

    def calls_named(self, name):
        return [item_id for call, item_id in self.calls if call == name]


class TimerSpy:
    """Stands in for QTimer; callbacks run when the test flushes them."""

    def __init__(self):
        self.calls = []

    def singleShot(self, delay, callback):
        self.calls.append((delay, callback))

    def flush(self, limit=20000):
        fired = 0
        while self.calls:
            _, callback = self.calls.pop(0)
            callback()
            fired += 1
            if fired > limit:
                raise AssertionError("timers kept rescheduling themselves")
        return fired


@pytest.fixture
def timers(monkeypatch):
    spy = TimerSpy()
    monkeypatch.setattr(engine_module, "QTimer", spy)
    return spy


@pytest.fixture
def make_engine(timers):
    """Build an engine over fakes; config overrides go through keyword arguments."""

    def _make(heights=None, viewport_height=600.0, default_height=100.0, **config_overrides):
        config_values = {"default_item_height": default_height, "scroll_throttle_ms": 0}
        config_values.update(config_overrides)
        host = FakeScrollHost(viewport_height=viewport_height)
        factory = FakeViewFactory(heights=heights, default_height=default_height)
        engine = VirtualScrollEngine(host, factory, config=EngineConfig(**config_values), log=FakeLog())
        return engine, host, factory

    return _make


def items_for(ids):
    return [{"id": item_id, "label": f"item {item_id}"} for item_id in ids]


def scroll_and_settle(engine, host, timers, scroll_top):
    host.scroll_to(scroll_top)
    engine.on_scroll()
    timers.flush()


def drive_to_final(engine, host, timers, step=None, max_steps=5000):
    """Scroll down in viewport-sized steps until every item is measured."""
    timers.flush()
    step = step or host.viewport_height() / 2
    for _ in range(max_steps):
        if engine.phase.value == "final" and host.scroll_top() >= host.max_scroll():
            return
        scroll_and_settle(engine, host, timers, host.scroll_top() + step)
    raise AssertionError(f"engine never reached FINAL (phase={engine.phase.value})")


def brute_force_visible(engine, host):
    """Ids whose current geometry intersects the buffered window."""
    scroll_top = host.scroll_top()
    window_start = scroll_top - engine.buffer
    window_end = scroll_top + host.viewport_height() + engine.buffer
    expected = set()
    offset = 0.0
    for item in engine.registry:
        entry = engine.table.get(item.id)
        height = entry.height if entry is not None else engine.estimate
        if offset + height >= window_start and offset <= window_end:
            expected.add(item.id)
        offset += height
    return expected
