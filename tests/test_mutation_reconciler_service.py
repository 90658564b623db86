from conftest import drive_to_final, items_for, scroll_and_settle
from dynscroll.engine.events import EngineState
from dynscroll.engine.track_height_service import TrackPhase


def _topmost_visible(engine, host):
    scroll_top = host.scroll_top()
    for item in engine.registry:
        top = engine.calculate_item_top(item.index)
        entry = engine.table.get(item.id)
        height = entry.height if entry is not None else engine.estimate
        if top + height > scroll_top:
            return item.id
    return None


def _settled_engine(make_engine, timers, ids, heights=None, scroll_top=0.0):
    engine, host, factory = make_engine(heights=heights, default_height=100, viewport_height=500)
    engine.set_items(items_for(ids))
    drive_to_final(engine, host, timers)
    scroll_and_settle(engine, host, timers, scroll_top)
    return engine, host, factory


def test_inserting_above_the_viewport_keeps_the_topmost_item(make_engine, timers):
    engine, host, _ = _settled_engine(make_engine, timers, range(50), scroll_top=2000)
    assert _topmost_visible(engine, host) == 20

    engine.set_items(items_for(["x", "y", "z"] + list(range(50))))

    assert host.scroll_top() == 2000 + 3 * 100
    assert _topmost_visible(engine, host) == 20
    assert engine.table.get("x").pending_measurement is True


def test_inserting_below_the_viewport_does_not_scroll(make_engine, timers):
    engine, host, _ = _settled_engine(make_engine, timers, range(50), scroll_top=1000)
    track_before = engine.track_height

    engine.set_items(items_for(list(range(50)) + ["tail"]))

    assert host.scroll_top() == 1000
    assert engine.track_height == track_before + 100
    assert engine.phase != TrackPhase.FINAL


def test_removing_a_measured_item_above_the_viewport(make_engine, timers):
    heights = {item_id: 100 + (item_id % 5) * 20 for item_id in range(50)}
    engine, host, factory = _settled_engine(make_engine, timers, range(50), heights=heights)
    top_of_20 = engine.calculate_item_top(20)
    scroll_and_settle(engine, host, timers, top_of_20)
    assert 19 in engine.rendered_ids()
    track_before = engine.track_height
    scroll_before = host.scroll_top()

    engine.set_items(items_for([item_id for item_id in range(50) if item_id != 19]))

    assert engine.track_height == track_before - heights[19]
    assert host.scroll_top() == scroll_before - heights[19]
    assert _topmost_visible(engine, host) == 20
    assert "destroy" in [call for call, item_id in factory.calls if item_id == 19]
    assert 19 not in engine.rendered_ids()


def test_removing_an_item_below_the_viewport_keeps_scroll(make_engine, timers):
    engine, host, _ = _settled_engine(make_engine, timers, range(50), scroll_top=1000)

    engine.set_items(items_for(range(49)))

    assert host.scroll_top() == 1000
    assert engine.phase == TrackPhase.FINAL
    assert engine.track_height == 49 * 100 + 10


def test_removing_everything_collapses_to_the_margin(make_engine, timers):
    engine, host, factory = _settled_engine(make_engine, timers, range(20))

    engine.set_items([])

    assert engine.rendered_ids() == set()
    assert len(engine.table) == 0
    assert host.track_height == 10
    assert factory.views == {}


def test_reorder_rekeys_offsets(make_engine, timers):
    heights = {0: 100, 1: 300}
    engine, _, _ = _settled_engine(make_engine, timers, [0, 1], heights=heights)

    engine.set_items(items_for([1, 0]))

    assert engine.table.get(1).index == 0
    assert engine.calculate_item_top(1) == 300


def test_removed_blocking_item_releases_the_scan(make_engine, timers):
    engine, host, _ = _settled_engine(make_engine, timers, range(30))
    engine.set_items(items_for(["new"] + list(range(30))))
    assert engine.state == EngineState.AWAITING_MEASUREMENT
    assert engine.awaiting_id == "new"

    engine.set_items(items_for(range(30)))

    assert engine.awaiting_id is None
    assert engine.state != EngineState.AWAITING_MEASUREMENT


def test_removing_above_while_at_the_bottom_is_not_compensated_twice(make_engine, timers):
    engine, host, _ = _settled_engine(make_engine, timers, range(50), scroll_top=4510)
    assert host.scroll_top() == host.max_scroll() == 4510
    assert _topmost_visible(engine, host) == 45

    engine.set_items(items_for(range(1, 50)))

    # The shorter track clamps the position by exactly the removed height.
    assert host.scroll_top() == 4410
    assert _topmost_visible(engine, host) == 45
    assert host.scroll_top() - engine.calculate_item_top(44) == 10
