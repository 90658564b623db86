from dataclasses import dataclass


@dataclass
class ReconcileResult:
    removed: int = 0
    inserted: int = 0
    height_removed: float = 0.0
    scroll_delta: float = 0.0
    initial: bool = False


class MutationReconcilerService:
    """Applies a registry replacement to the offset model without visible jumps."""

    def __init__(self, engine):
        self._engine = engine

    def reconcile(self, elements) -> ReconcileResult:
        engine = self._engine
        registry = engine.registry
        table = engine.table
        estimate = engine.estimator.estimate()
        scroll_top = engine.host.scroll_top()

        # Geometry of the old layout, needed once the old order is gone.
        old_items = registry.items()
        old_geometry = {}
        offset = 0.0
        for item in old_items:
            entry = table.get(item.id)
            height = entry.height if entry is not None else estimate
            old_geometry[item.id] = (item.index, offset, height)
            offset += height

        change = registry.replace(elements)

        if change.was_empty:
            table.clear()
            engine.estimator.recompute(table)
            engine.track.reset()
            engine.log("MUTATION", f"Initial population with {len(registry)} items")
            return ReconcileResult(inserted=len(change.inserted_ids), initial=True)

        # Topmost surviving item that intersects the viewport.
        anchor_id = None
        for item in old_items:
            _, top, height = old_geometry[item.id]
            if top + height > scroll_top and item.id in registry:
                anchor_id = item.id
                break

        result = ReconcileResult()
        removed_above = 0.0
        removed = sorted(change.removed_ids, key=lambda item_id: old_geometry[item_id][0], reverse=True)
        for item_id in removed:
            _, top, height = old_geometry[item_id]
            if top + height <= scroll_top:
                removed_above += height
            entry = table.remove(item_id)
            if entry is not None:
                result.height_removed += entry.height
                table.reindex_after_removal(entry.index)
            engine.scheduler.discard(item_id)
        result.removed = len(removed)

        orphans = table.rekey(registry.ids())
        if orphans:
            engine.log("MUTATION", f"OrphanedOffsetEntry: dropped {len(orphans)} stale entries", level="WARNING")

        anchor_index = registry.index_of(anchor_id) if anchor_id is not None else -1
        inserted_above = 0
        for item_id in change.inserted_ids:
            item = registry.get(item_id)
            table.upsert(item_id, item.index, estimate, pending=True)
            if item.index < anchor_index:
                inserted_above += 1
        result.inserted = len(change.inserted_ids)

        engine.estimator.recompute(table)
        if result.removed:
            engine.track.on_items_removed(result.height_removed, change.tail_changed)
        if result.inserted:
            engine.track.on_items_inserted(result.inserted * estimate, change.tail_changed)
        if not result.removed and not result.inserted:
            engine.track.refresh()

        result.scroll_delta = inserted_above * estimate - removed_above
        if result.scroll_delta:
            # Relative to the position before the track changed; a shrinking
            # track may already have clamped it.
            correction = scroll_top + result.scroll_delta - engine.host.scroll_top()
            if correction:
                engine.host.scroll_by(correction)

        engine.log(
            "MUTATION",
            f"removed={result.removed} (-{result.height_removed:.0f}px) inserted={result.inserted} "
            f"scroll_delta={result.scroll_delta:+.0f}",
        )
        return result
