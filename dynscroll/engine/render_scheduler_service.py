import itertools
from collections import OrderedDict
from dataclasses import dataclass
from enum import Enum

from dynscroll.engine.engine_config import RepositionPolicy, ViewPolicy
from dynscroll.engine.errors import ViewFactoryContractError
from dynscroll.engine.events import MeasurementReady


class MeasureOutcome(str, Enum):
    STALE = 'stale'              # view gone, detached or superseded; nothing changed
    UNAVAILABLE = 'unavailable'  # not laid out yet; measurement rescheduled
    UNCHANGED = 'unchanged'
    CHANGED = 'changed'


@dataclass
class ViewRecord:
    """Engine-side bookkeeping for one view handed out by the view factory."""
    item_id: object
    handle: object
    payload: object
    attached: bool = True
    top: float | None = None
    measure_token: int | None = None


class RenderSchedulerService:
    """Turns visibility passes into view factory commands.

    Owns every view the factory created: nothing else may create or destroy
    a view, and there is at most one view per item id.
    """

    def __init__(self, engine):
        self._engine = engine
        self._views: dict = {}
        self._detached = OrderedDict()  # retain policy: least recently detached first
        self._tokens = itertools.count(1)

    # Introspection ---------------------------------------------------
    def record(self, item_id) -> ViewRecord | None:
        return self._views.get(item_id)

    def rendered_ids(self) -> set:
        return set(self._views)

    def attached_ids(self) -> set:
        return {item_id for item_id, rec in self._views.items() if rec.attached}

    def in_flight_ids(self) -> set:
        return {
            item_id for item_id, rec in self._views.items()
            if rec.attached and rec.measure_token is not None
        }

    # Commands --------------------------------------------------------
    def apply(self, visibility):
        """Materialize `visibility.visible` and hide everything else that is attached."""
        visible_ids = set()
        for placement in visibility.visible:
            visible_ids.add(placement.item.id)
            self._show(placement)

        # Items past a blocking item were not evaluated; leave them alone.
        blocked_index = None
        if visibility.blocked is not None:
            blocked_index = visibility.blocked.item.index
        registry = self._engine.registry
        for item_id in list(self._views):
            rec = self._views[item_id]
            if not rec.attached or item_id in visible_ids:
                continue
            if blocked_index is not None and registry.index_of(item_id) >= blocked_index:
                continue
            self.hide(item_id)

    def render_single(self, placement):
        """Render one blocking item so its real height can be read."""
        self._show(placement)
        rec = self._views[placement.item.id]
        if rec.measure_token is None:
            self.request_measurement(rec)

    def hide(self, item_id):
        rec = self._views.get(item_id)
        if rec is None or not rec.attached:
            return
        rec.measure_token = None
        if self._engine.config.view_policy == ViewPolicy.RETAIN:
            self._engine.factory.detach(rec.handle)
            rec.attached = False
            self._detached[item_id] = None
            self._detached.move_to_end(item_id)
            self._evict_retained()
        else:
            self.discard(item_id)

    def discard(self, item_id):
        """Destroy the view for `item_id`, whatever the policy."""
        rec = self._views.pop(item_id, None)
        self._detached.pop(item_id, None)
        if rec is None:
            return
        rec.measure_token = None
        self._engine.factory.destroy(rec.handle)

    def discard_all(self):
        for item_id in list(self._views):
            self.discard(item_id)

    def request_measurement(self, rec: ViewRecord):
        rec.measure_token = next(self._tokens)
        config = self._engine.config
        if config.measure_on_settle:
            self._engine.defer(config.settle_delay_ms, MeasurementReady(rec.item_id, rec.measure_token))

    def reposition_after(self, index: int):
        """Cascade: move every attached view below `index` to its current offset."""
        registry = self._engine.registry
        table = self._engine.table
        estimate = self._engine.estimator.estimate()
        for item_id, rec in self._views.items():
            if not rec.attached:
                continue
            item_index = registry.index_of(item_id)
            if item_index > index:
                self._reposition(rec, table.item_top(item_index, estimate))

    # Measurement -----------------------------------------------------
    def measure(self, item_id, token: int | None = None) -> MeasureOutcome:
        engine = self._engine
        rec = self._views.get(item_id)
        if rec is None or not rec.attached:
            return MeasureOutcome.STALE
        if token is not None and token != rec.measure_token:
            return MeasureOutcome.STALE
        item = engine.registry.get(item_id)
        if item is None:
            return MeasureOutcome.STALE

        height = engine.factory.measure(rec.handle)
        if height is None or height <= 0:
            engine.log("MEASURE", f"MeasurementUnavailable for {item_id!r} (height={height!r}); retrying on next settle",
                       throttle_key="measurement_unavailable", every_s=1.0)
            self.request_measurement(rec)
            return MeasureOutcome.UNAVAILABLE

        rec.measure_token = None
        table = engine.table
        entry = table.get(item_id)
        if entry is None:
            entry = table.upsert(item_id, item.index, height, pending=False)
            changed = True
        else:
            changed = entry.pending_measurement or entry.height != height
            entry.height = height
            entry.pending_measurement = False

        engine.estimator.recompute(table)
        top = table.item_top(item.index, engine.estimator.estimate())
        self._reposition(rec, top)
        if item_id == engine.registry.last_id():
            engine.track.note_last_item_bottom(top + height)

        if changed and engine.config.reposition_policy == RepositionPolicy.EAGER:
            self.reposition_after(item.index)
        return MeasureOutcome.CHANGED if changed else MeasureOutcome.UNCHANGED

    # Internal --------------------------------------------------------
    def _show(self, placement):
        engine = self._engine
        item = placement.item
        rec = self._views.get(item.id)

        if rec is None:
            handle = engine.factory.create(item)
            if handle is None:
                raise ViewFactoryContractError(
                    f"{type(engine.factory).__name__}.create returned no view for item {item.id!r}")
            rec = ViewRecord(item_id=item.id, handle=handle, payload=item.payload)
            self._views[item.id] = rec
            if engine.table.get(item.id) is None:
                engine.table.upsert(item.id, item.index, placement.height, pending=True)
            self._reposition(rec, placement.top)
            self.request_measurement(rec)
            engine.log("RENDER", f"Created view for {item.id!r} at {placement.top:.0f}px",
                       throttle_key="render_create", every_s=0.25)
            return

        needs_measure = False
        if not rec.attached:
            engine.factory.attach(rec.handle)
            rec.attached = True
            self._detached.pop(item.id, None)
            entry = engine.table.get(item.id)
            needs_measure = entry is None or entry.pending_measurement

        if self._is_stale(rec, item):
            engine.factory.update_data(rec.handle, item)
            rec.payload = item.payload
            needs_measure = True

        if rec.top != placement.top:
            self._reposition(rec, placement.top)
        if needs_measure:
            self.request_measurement(rec)

    def _reposition(self, rec: ViewRecord, top: float):
        self._engine.factory.reposition(rec.handle, top)
        rec.top = top

    @staticmethod
    def _is_stale(rec: ViewRecord, item) -> bool:
        return rec.payload is not item.payload and rec.payload != item.payload

    def _evict_retained(self):
        limit = self._engine.config.max_retained_views
        if limit <= 0:
            return
        while len(self._detached) > limit:
            item_id, _ = self._detached.popitem(last=False)
            self.discard(item_id)
