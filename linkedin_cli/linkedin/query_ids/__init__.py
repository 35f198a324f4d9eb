"""
GraphQL query-ID cache, discovery and stale-ID recovery.
"""
from .cache import QueryIdCache, default_cache_dir, resolve_cache_path
from .discovery import QueryIdDiscovery
from .runner import MESSAGING_OPERATIONS, GraphQLQueryRunner

__all__ = [
    "QueryIdCache",
    "QueryIdDiscovery",
    "GraphQLQueryRunner",
    "MESSAGING_OPERATIONS",
    "default_cache_dir",
    "resolve_cache_path",
]
