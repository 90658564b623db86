"""Pure visibility pass over the offset model."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class Placement:
    item: object
    top: float
    height: float

    @property
    def bottom(self) -> float:
        return self.top + self.height


@dataclass
class VisibilityPass:
    window_start: float
    window_end: float
    visible: list = field(default_factory=list)
    blocked: Placement | None = None

    def visible_ids(self) -> list:
        return [placement.item.id for placement in self.visible]


def is_visible(top: float, bottom: float, window_start: float, window_end: float) -> bool:
    return bottom >= window_start and top <= window_end


def compute_visibility(items, table, *, scroll_top: float, viewport_height: float,
                       buffer: float, estimate: float, in_flight_ids=()) -> VisibilityPass:
    """Walk `items` in index order and decide which ones must be materialized.

    The window is `[scroll_top - buffer, scroll_top + viewport_height + buffer]`.
    An item whose entry is still pending, with no measurement in flight, and
    that sits at or above the window end stops the pass: its real height
    shifts every offset after it, so it is reported as `blocked` and the
    caller rescans once it is measured. The walk stops at the first item
    whose top passes the window end.
    """
    window_start = scroll_top - buffer
    window_end = scroll_top + viewport_height + buffer
    result = VisibilityPass(window_start=window_start, window_end=window_end)

    current_offset = 0.0
    for item in items:
        item_top = current_offset
        if item_top > window_end:
            break
        entry = table.get(item.id)
        height = entry.height if entry is not None else estimate

        if entry is not None and entry.pending_measurement and item.id not in in_flight_ids:
            result.blocked = Placement(item=item, top=item_top, height=height)
            break

        item_bottom = item_top + height
        if is_visible(item_top, item_bottom, window_start, window_end):
            result.visible.append(Placement(item=item, top=item_top, height=height))
        current_offset = item_bottom

    return result
