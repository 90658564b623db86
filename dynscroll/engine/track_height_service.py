import itertools
import math
from enum import Enum


class TrackPhase(str, Enum):
    INITIAL = 'initial'
    GROWING = 'growing'
    FINAL = 'final'


class TrackHeightService:
    """Owns the advertised height of the scrollable track.

    Before every item is measured the track is kept a plausible amount taller
    than the known content (lookahead padding) and grows in capped chunks when
    the user reaches its bottom. Once the last item's bottom is known and no
    entry is pending, the height is pinned to the real content.
    """

    def __init__(self, engine):
        self._engine = engine
        self.phase = TrackPhase.INITIAL
        self.current_height = 0.0
        self.last_item_bottom = 0.0
        self._growth_count = 0
        self._growth_token = None
        self._tokens = itertools.count(1)

    # Geometry --------------------------------------------------------
    def lookahead_padding(self) -> float:
        engine = self._engine
        config = engine.config
        rows = min(len(engine.registry) / config.lookahead_divisor, config.lookahead_cap)
        return rows * engine.estimator.estimate()

    def growth_chunk(self) -> float:
        """Next growth step; clamped to a fraction of the known total."""
        engine = self._engine
        known_total = engine.table.total_height()
        padding = self.lookahead_padding()
        cap = known_total * engine.config.growth_cap_fraction
        chunk = min(padding, cap)
        if chunk < padding:
            engine.log("TRACK", f"GrowthOverflow: chunk clamped {padding:.0f} -> {chunk:.0f}",
                       throttle_key="growth_overflow", every_s=1.0)
        return chunk

    # Lifecycle -------------------------------------------------------
    def reset(self):
        """Start over for a freshly populated list."""
        engine = self._engine
        self._growth_token = None
        self._growth_count = 0
        self.last_item_bottom = 0.0
        self.phase = TrackPhase.INITIAL
        self.current_height = engine.table.total_height() + self.lookahead_padding()
        self.refresh()

    def refresh(self):
        """Re-evaluate FINAL and keep the track above the deepest known item."""
        engine = self._engine
        table = engine.table
        registry = engine.registry

        if len(registry) == 0:
            self._growth_token = None
            self.phase = TrackPhase.FINAL
            self.last_item_bottom = 0.0
            self._apply(engine.config.fixed_margin)
            return

        all_measured = len(table) == len(registry) and table.pending_count() == 0
        if all_measured:
            # Every height is real now, so the total is the last item's bottom.
            self.last_item_bottom = table.total_height()
            self._growth_token = None
            if self.phase != TrackPhase.FINAL:
                engine.log("TRACK", f"FINAL at {self.last_item_bottom:.0f}px for {len(registry)} items")
            self.phase = TrackPhase.FINAL
            self._apply(self.last_item_bottom + engine.config.fixed_margin)
            return

        if self.phase == TrackPhase.FINAL:
            self.phase = TrackPhase.GROWING if self._growth_count else TrackPhase.INITIAL
        floor = table.known_bottom(engine.estimator.estimate())
        self._apply(max(self.current_height, floor))

    def note_last_item_bottom(self, bottom: float):
        self.last_item_bottom = max(0.0, float(bottom))

    # Growth ----------------------------------------------------------
    @property
    def growth_busy(self) -> bool:
        return self._growth_token is not None

    def should_grow(self, scroll_top: float, viewport_height: float) -> bool:
        if self.phase == TrackPhase.FINAL or len(self._engine.registry) == 0:
            return False
        return math.ceil(scroll_top + viewport_height) >= self.current_height

    def begin_growth(self) -> int | None:
        """Reserve the single in-flight growth step; None while one is pending."""
        if self._growth_token is not None:
            return None
        self._growth_token = next(self._tokens)
        return self._growth_token

    def apply_growth(self, token: int) -> float:
        """Apply the growth step reserved with `token`; returns the chunk added."""
        if token != self._growth_token:
            return 0.0
        self._growth_token = None
        if self.phase == TrackPhase.FINAL:
            return 0.0
        engine = self._engine
        chunk = self.growth_chunk()
        base = max(self.current_height, engine.table.total_height())
        self.phase = TrackPhase.GROWING
        self._growth_count += 1
        self._apply(base + chunk)
        engine.log("TRACK", f"Grew by {chunk:.0f}px to {self.current_height:.0f}px",
                   throttle_key="growth", every_s=0.25)
        return chunk

    # Mutations -------------------------------------------------------
    def on_items_removed(self, removed_height: float, tail_changed: bool):
        self._growth_token = None
        if tail_changed:
            self.last_item_bottom = 0.0
        self.current_height = max(0.0, self.current_height - removed_height)
        self.refresh()

    def on_items_inserted(self, inserted_height: float, tail_changed: bool):
        self._growth_token = None
        if tail_changed:
            self.last_item_bottom = 0.0
        self.current_height += inserted_height
        self.refresh()

    # Internal --------------------------------------------------------
    def _apply(self, height: float):
        self.current_height = height
        self._engine.host.set_track_height(height, height)
