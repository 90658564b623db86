"""Virtual scrolling engine.

Keeps only the items near the viewport materialized while item heights are
discovered lazily, one rendered view at a time:
- offset model with placeholder estimates for unmeasured items
- buffered visibility scans that stop at unmeasured items
- an advertised track height that grows ahead of the known content
- list mutations reconciled without moving what the user is looking at
"""

from .engine_config import EngineConfig, RepositionPolicy, ViewPolicy
from .errors import ContractError, ScrollHostContractError, ViewFactoryContractError
from .events import EngineState
from .track_height_service import TrackPhase
from .virtual_scroll_engine import VirtualScrollEngine

__all__ = [
    'VirtualScrollEngine',
    'EngineConfig',
    'EngineState',
    'TrackPhase',
    'ViewPolicy',
    'RepositionPolicy',
    'ContractError',
    'ScrollHostContractError',
    'ViewFactoryContractError',
]
