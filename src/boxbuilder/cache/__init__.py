from .hasher import ContentHasher
from .lookup import CacheLookup, is_cache_key

__all__ = [
    'ContentHasher',
    'CacheLookup',
    'is_cache_key',
]
