from continuum.domains.cache.state import CardCacheState, StreamCacheState
from continuum.domains.cache.store import CardStore, StreamStore
from continuum.domains.cache.client import ContinuumClient

__all__ = [
    "CardCacheState", "StreamCacheState",
    "CardStore", "StreamStore",
    "ContinuumClient"
]
