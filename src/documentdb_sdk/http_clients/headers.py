"""
Header composition for gateway requests
"""

from types import MappingProxyType
from typing import Dict, Mapping, Optional

from ..config.connection_policy import ConsistencyLevel
from ..constants import HttpHeaders, Versions

REDACTED = "<redacted>"
_SENSITIVE_HEADERS = frozenset({HttpHeaders.AUTHORIZATION.lower()})


def build_default_headers(
    consistency_level: Optional[ConsistencyLevel] = None,
    user_agent: str = Versions.USER_AGENT
) -> Mapping[str, str]:
    """Build the read-only headers sent with every request of a proxy."""
    headers = {
        HttpHeaders.CACHE_CONTROL: "no-cache",
        HttpHeaders.VERSION: Versions.CURRENT_VERSION,
        HttpHeaders.USER_AGENT: user_agent,
    }
    if consistency_level is not None:
        headers[HttpHeaders.CONSISTENCY_LEVEL] = ConsistencyLevel(consistency_level).value
    return MappingProxyType(headers)


def merge_headers(defaults: Mapping[str, str],
                  overrides: Optional[Mapping[str, str]]) -> Dict[str, str]:
    """
    Apply default headers, then per-call headers on top.
    
    Keys are matched exactly (case-sensitive); a per-call header replaces a
    default with the same name. Nothing is ever removed.
    """
    merged = dict(defaults)
    if overrides:
        for name, value in overrides.items():
            merged[name] = value
    return merged


def redact_headers(headers: Mapping[str, str]) -> Dict[str, str]:
    """Copy of headers safe for logging"""
    return {
        name: (REDACTED if name.lower() in _SENSITIVE_HEADERS else value)
        for name, value in headers.items()
    }
