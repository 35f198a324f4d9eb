"""LinkedIn API helper utilities."""

from .pagination import (
    FallbackBackend,
    FlagshipBackend,
    PageBinding,
    PaginationController,
    PaginationResult,
    SearchDashClustersBackend,
)

__all__ = [
    'FallbackBackend',
    'FlagshipBackend',
    'PageBinding',
    'PaginationController',
    'PaginationResult',
    'SearchDashClustersBackend',
]
