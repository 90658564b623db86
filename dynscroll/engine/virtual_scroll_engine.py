from collections import deque

from PySide6.QtCore import QTimer

from dynscroll.engine.engine_config import EngineConfig, ViewPolicy
from dynscroll.engine.errors import (SCROLL_HOST_METHODS, VIEW_FACTORY_METHODS,
                                     ScrollHostContractError, ViewFactoryContractError,
                                     require_methods)
from dynscroll.engine.events import (EngineState, GrowthReady, ItemsReplaced,
                                     MeasurementReady, RescanRequested, ScrollSettled)
from dynscroll.engine.height_estimator import HeightEstimator
from dynscroll.engine.mutation_reconciler_service import MutationReconcilerService
from dynscroll.engine.render_scheduler_service import MeasureOutcome, RenderSchedulerService
from dynscroll.engine.track_height_service import TrackHeightService
from dynscroll.engine.visibility_calculator import compute_visibility
from dynscroll.models.item_registry import ItemRegistry
from dynscroll.models.offset_table import OffsetTable
from dynscroll.utils.flow_log import FlowLog


class VirtualScrollEngine:
    """Virtual scrolling over items whose heights are only known once rendered.

    The engine never blocks: the host reports scrolls and finished layouts,
    timers report settle points, and all of it is funnelled through one event
    queue so that a scan, a measurement and a mutation never interleave.

    The host (`scroll_top`, `viewport_height`, `scroll_height`,
    `set_track_height`, `scroll_by`) and the view factory (`create`,
    `measure`, `reposition`, `detach`, `destroy`, `update_data`, plus
    `attach` under the retain policy) are checked up front.
    """

    def __init__(self, host, factory, config: EngineConfig | None = None, log: FlowLog | None = None):
        self.config = config or EngineConfig.from_settings()
        require_methods(host, SCROLL_HOST_METHODS, ScrollHostContractError, "Scroll host")
        factory_methods = VIEW_FACTORY_METHODS
        if self.config.view_policy == ViewPolicy.RETAIN:
            factory_methods = factory_methods + ('attach',)
        require_methods(factory, factory_methods, ViewFactoryContractError, "View factory")

        self.host = host
        self.factory = factory
        self.log = log or FlowLog()
        self.registry = ItemRegistry()
        self.table = OffsetTable()
        self.estimator = HeightEstimator(self.config.default_item_height)
        self.scheduler = RenderSchedulerService(self)
        self.track = TrackHeightService(self)
        self.reconciler = MutationReconcilerService(self)

        self._state = EngineState.IDLE
        self._queue = deque()
        self._dispatching = False
        self._disposed = False
        self._awaiting_id = None
        self._rescan_queued = False
        self._scroll_pending = False
        self._handlers = {
            ScrollSettled: self._on_scroll_settled,
            RescanRequested: self._on_rescan_requested,
            MeasurementReady: self._on_measurement_ready,
            GrowthReady: self._on_growth_ready,
            ItemsReplaced: self._on_items_replaced,
        }

    # Host-facing API -------------------------------------------------
    def set_items(self, items):
        """Replace the whole list; returns once the replacement is reconciled."""
        self.post(ItemsReplaced(list(items)))

    def on_scroll(self):
        """Host scroll notification; scans at most once per throttle window."""
        if self._disposed or self._scroll_pending:
            return
        self._scroll_pending = True
        if self.config.scroll_throttle_ms <= 0:
            self.post(ScrollSettled())
        else:
            self.defer(self.config.scroll_throttle_ms, ScrollSettled())

    def notify_measurement_ready(self, item_id):
        """Host hook: the view for `item_id` finished layout and can be measured."""
        self.post(MeasurementReady(item_id))

    def refresh(self, reason: str = 'refresh'):
        """Rescan at the current position, e.g. after a viewport resize."""
        self._request_rescan(reason)

    def dispose(self):
        if self._disposed:
            return
        self._disposed = True
        self._queue.clear()
        self._awaiting_id = None
        self.scheduler.discard_all()
        self._state = EngineState.IDLE
        self.log("ENGINE", "Disposed")

    # Introspection ---------------------------------------------------
    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def phase(self):
        return self.track.phase

    @property
    def track_height(self) -> float:
        return self.track.current_height

    @property
    def estimate(self) -> float:
        return self.estimator.estimate()

    @property
    def buffer(self) -> float:
        return self.estimator.max_observed()

    @property
    def awaiting_id(self):
        return self._awaiting_id

    @property
    def disposed(self) -> bool:
        return self._disposed

    def calculate_item_top(self, index: int) -> float:
        return self.table.item_top(index, self.estimator.estimate())

    def rendered_ids(self) -> set:
        return self.scheduler.rendered_ids()

    def attached_ids(self) -> set:
        return self.scheduler.attached_ids()

    # Dispatch --------------------------------------------------------
    def defer(self, delay_ms: int, event):
        """Post `event` from the event loop after `delay_ms`."""
        QTimer.singleShot(int(delay_ms), lambda: self.post(event))

    def post(self, event):
        if self._disposed:
            return
        self._queue.append(event)
        if self._dispatching:
            return
        self._dispatching = True
        try:
            while self._queue:
                queued = self._queue.popleft()
                self._handlers[type(queued)](queued)
        except Exception:
            # Leave the loop reusable; the pending work is dropped with the error.
            self._queue.clear()
            self._rescan_queued = False
            self._scroll_pending = False
            self._settle_state()
            raise
        finally:
            self._dispatching = False

    def _request_rescan(self, reason: str):
        if self._rescan_queued:
            return
        self._rescan_queued = True
        self.post(RescanRequested(reason))

    # Handlers --------------------------------------------------------
    def _on_items_replaced(self, event: ItemsReplaced):
        self.reconciler.reconcile(event.items)
        if self._awaiting_id is not None and self._awaiting_id not in self.registry:
            self.log("ENGINE", f"Awaited item {self._awaiting_id!r} was removed")
            self._awaiting_id = None
        self._settle_state()
        self._request_rescan('mutation')

    def _on_scroll_settled(self, event: ScrollSettled):
        self._scroll_pending = False
        self._scan('scroll')

    def _on_rescan_requested(self, event: RescanRequested):
        self._rescan_queued = False
        self._scan(event.reason)

    def _on_measurement_ready(self, event: MeasurementReady):
        anchor = self._capture_anchor() if self.config.compensate_above_viewport else None
        outcome = self.scheduler.measure(event.item_id, event.token)
        if outcome in (MeasureOutcome.STALE, MeasureOutcome.UNAVAILABLE):
            return

        was_awaited = event.item_id == self._awaiting_id
        if was_awaited:
            self._awaiting_id = None
        if outcome == MeasureOutcome.CHANGED:
            self.track.refresh()
            if anchor is not None:
                self._restore_anchor(anchor)
        self._settle_state()
        if was_awaited or outcome == MeasureOutcome.CHANGED:
            self._request_rescan('measurement')

    def _on_growth_ready(self, event: GrowthReady):
        chunk = self.track.apply_growth(event.token)
        self._settle_state()
        if chunk > 0:
            self._request_rescan('growth')

    # Scan ------------------------------------------------------------
    def _scan(self, reason: str):
        if self._awaiting_id is not None:
            # The measurement handler rescans once the blocking item is known.
            return
        self._state = EngineState.SCANNING
        scroll_top = self.host.scroll_top()
        viewport_height = self.host.viewport_height()
        visibility = compute_visibility(
            self.registry, self.table,
            scroll_top=scroll_top,
            viewport_height=viewport_height,
            buffer=self.estimator.max_observed(),
            estimate=self.estimator.estimate(),
            in_flight_ids=self.scheduler.in_flight_ids(),
        )
        self.scheduler.apply(visibility)
        if visibility.blocked is not None:
            self.scheduler.render_single(visibility.blocked)
            self._awaiting_id = visibility.blocked.item.id
            self.log("SCAN", f"Blocked on unmeasured item {self._awaiting_id!r} "
                             f"at {visibility.blocked.top:.0f}px ({reason})")
        else:
            self.log("SCAN", f"{len(visibility.visible)} visible in "
                             f"[{visibility.window_start:.0f}, {visibility.window_end:.0f}] ({reason})",
                     throttle_key="scan", every_s=0.25)

        self.track.refresh()
        self._maybe_grow(scroll_top, viewport_height)
        self._settle_state()

    def _maybe_grow(self, scroll_top: float, viewport_height: float):
        if not self.track.should_grow(scroll_top, viewport_height):
            return
        if self.track.growth_chunk() <= 0:
            return
        token = self.track.begin_growth()
        if token is None:
            return
        self.defer(self.config.settle_delay_ms, GrowthReady(token))

    def _settle_state(self):
        if self._awaiting_id is not None:
            self._state = EngineState.AWAITING_MEASUREMENT
        elif self.track.growth_busy:
            self._state = EngineState.GROWING
        else:
            self._state = EngineState.IDLE

    # Scroll anchoring ------------------------------------------------
    def _capture_anchor(self):
        """Topmost item intersecting the viewport, its top and the scroll position."""
        scroll_top = self.host.scroll_top()
        if scroll_top <= 0:
            return None
        estimate = self.estimator.estimate()
        offset = 0.0
        for item in self.registry:
            entry = self.table.get(item.id)
            height = entry.height if entry is not None else estimate
            if offset + height > scroll_top:
                return item.index, offset, scroll_top
            offset += height
        return None

    def _restore_anchor(self, anchor):
        index, old_top, old_scroll_top = anchor
        if index >= len(self.registry):
            return
        delta = self.calculate_item_top(index) - old_top
        if delta:
            # The track may already have clamped the position while shrinking.
            correction = old_scroll_top + delta - self.host.scroll_top()
            if correction:
                self.host.scroll_by(correction)
            self.log("ANCHOR", f"Kept item #{index} in place ({delta:+.0f}px)",
                     throttle_key="anchor", every_s=0.25)
