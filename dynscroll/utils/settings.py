from PySide6.QtCore import QSettings, Signal

# Defaults for settings that are read by the engine and the demo.
DEFAULT_SETTINGS = {
    # Placeholder height for items that have never been measured.
    'default_item_height': 300,
    # Lookahead padding = min(item_count / divisor, cap) * estimate.
    'lookahead_divisor': 4,
    'lookahead_cap': 50,
    # A single growth step never adds more than this fraction of the known total.
    'growth_cap_fraction': 0.1,
    # Space kept below the last item once every item is measured.
    'fixed_margin': 10,
    'scroll_throttle_ms': 20,
    'settle_delay_ms': 0,
    'measure_on_settle': True,
    'view_policy': 'retain',  # retain (detach and reuse) or discard (destroy on scroll-out)
    'max_retained_views': 0,  # 0 = keep every detached view
    'reposition_policy': 'lazy',  # lazy (next scan) or eager (cascade after measurement)
    'compensate_above_viewport': True,
    'flow_trace_logs': False,
    'demo_item_count': 200,
}


class Settings(QSettings):
    # Emitted with (key, value) after every write through setValue.
    change = Signal(str, object, name='settingsChanged')

    def __init__(self):
        super().__init__('dynscroll', 'dynscroll')

    def setValue(self, key, value):
        super().setValue(key, value)
        self.change.emit(key, value)

# One instance for the whole process so every listener sees the same signal.
settings = Settings()
