"""
API v2 endpoints.
"""

from . import search

__all__ = [
    'search',
]
