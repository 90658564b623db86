from dataclasses import dataclass, fields
from enum import Enum

from dynscroll.utils.settings import DEFAULT_SETTINGS, settings


class ViewPolicy(str, Enum):
    RETAIN = 'retain'    # detach on scroll-out, reattach the same view later
    DISCARD = 'discard'  # destroy on scroll-out, recreate later


class RepositionPolicy(str, Enum):
    LAZY = 'lazy'    # views move on the next scan
    EAGER = 'eager'  # views below a measured item move right after the measurement


@dataclass
class EngineConfig:
    """Tunables of the virtual scrolling engine."""

    default_item_height: float = DEFAULT_SETTINGS['default_item_height']
    lookahead_divisor: int = DEFAULT_SETTINGS['lookahead_divisor']
    lookahead_cap: int = DEFAULT_SETTINGS['lookahead_cap']
    growth_cap_fraction: float = DEFAULT_SETTINGS['growth_cap_fraction']
    fixed_margin: float = DEFAULT_SETTINGS['fixed_margin']
    scroll_throttle_ms: int = DEFAULT_SETTINGS['scroll_throttle_ms']
    settle_delay_ms: int = DEFAULT_SETTINGS['settle_delay_ms']
    measure_on_settle: bool = DEFAULT_SETTINGS['measure_on_settle']
    view_policy: ViewPolicy = ViewPolicy(DEFAULT_SETTINGS['view_policy'])
    max_retained_views: int = DEFAULT_SETTINGS['max_retained_views']
    reposition_policy: RepositionPolicy = RepositionPolicy(DEFAULT_SETTINGS['reposition_policy'])
    compensate_above_viewport: bool = DEFAULT_SETTINGS['compensate_above_viewport']

    def __post_init__(self):
        self.default_item_height = max(1.0, float(self.default_item_height))
        self.lookahead_divisor = max(1, int(self.lookahead_divisor))
        self.lookahead_cap = max(0, int(self.lookahead_cap))
        self.growth_cap_fraction = max(0.0, min(1.0, float(self.growth_cap_fraction)))
        self.fixed_margin = max(0.0, float(self.fixed_margin))
        self.scroll_throttle_ms = max(0, int(self.scroll_throttle_ms))
        self.settle_delay_ms = max(0, int(self.settle_delay_ms))
        self.max_retained_views = max(0, int(self.max_retained_views))
        self.view_policy = ViewPolicy(self.view_policy)
        self.reposition_policy = RepositionPolicy(self.reposition_policy)

    @classmethod
    def from_settings(cls) -> 'EngineConfig':
        """Build a config from the shared settings store, defaulting bad values."""
        values = {}
        for f in fields(cls):
            default = DEFAULT_SETTINGS[f.name]
            try:
                raw = settings.value(f.name, defaultValue=default, type=type(default))
                if isinstance(default, str):
                    raw = str(raw).strip().lower()
                    if f.name == 'view_policy':
                        raw = ViewPolicy(raw)
                    elif f.name == 'reposition_policy':
                        raw = RepositionPolicy(raw)
                values[f.name] = raw
            except (TypeError, ValueError):
                values[f.name] = default
        return cls(**values)
