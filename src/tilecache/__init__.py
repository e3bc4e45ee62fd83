"""
Tile Storage Cache
Client-side caching of rendered course sections and per-user display preferences
"""

from .backends import InMemoryStorage, SQLiteStorage, StorageTier
from .consent import ConsentState
from .manager import CollapseStatus, StorageCacheManager
from .page import PageController
from .session import CacheSession

__all__ = [
    'CacheSession',
    'CollapseStatus',
    'ConsentState',
    'InMemoryStorage',
    'PageController',
    'SQLiteStorage',
    'StorageCacheManager',
    'StorageTier',
]
