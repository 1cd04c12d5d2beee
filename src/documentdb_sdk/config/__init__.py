"""
Configuration management for DocumentDB Python SDK

Connection pool settings, consistency levels and endpoint resolution.
"""

from .connection_policy import (
    ConnectionPolicy,
    ConsistencyLevel,
    Endpoint,
    ENV_PREFIX,
)

__all__ = [
    'ConnectionPolicy',
    'ConsistencyLevel',
    'Endpoint',
    'ENV_PREFIX',
]
