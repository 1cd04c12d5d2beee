"""
Connection policy and endpoint configuration for the gateway client

Provides the pool and timeout settings a proxy is built with, loadable from
JSON, files or the environment, plus the immutable endpoint the proxy talks to.
"""

import json
import os
from dataclasses import dataclass, asdict
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union
from urllib.parse import urlsplit

from ..constants import DEFAULT_HTTPS_PORT
from ..exceptions import ValidationError

ENV_PREFIX = "DOCUMENTDB_"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


class ConsistencyLevel(str, Enum):
    """Consistency levels accepted by the gateway"""
    STRONG = "Strong"
    BOUNDED_STALENESS = "BoundedStaleness"
    SESSION = "Session"
    EVENTUAL = "Eventual"


@dataclass(frozen=True)
class Endpoint:
    """Host and port of the single gateway endpoint; the scheme is always https"""
    host: str
    port: int = DEFAULT_HTTPS_PORT
    
    @classmethod
    def parse(cls, service_endpoint: str) -> 'Endpoint':
        """
        Parse a service endpoint URL.
        
        Args:
            service_endpoint: e.g. ``https://myaccount.documents.azure.com:443/``
            
        Returns:
            Endpoint: Resolved host and port (443 when the URL has none)
            
        Raises:
            ValidationError: If the URL has no host or an invalid port
        """
        if not service_endpoint:
            raise ValidationError("Service endpoint cannot be empty")
        
        parsed = urlsplit(service_endpoint)
        try:
            host = parsed.hostname
            port = parsed.port
        except ValueError as e:
            raise ValidationError(f"Invalid service endpoint: {service_endpoint}") from e
        
        if not host:
            raise ValidationError(f"Invalid service endpoint format: {service_endpoint}")
        
        return cls(host=host, port=port or DEFAULT_HTTPS_PORT)
    
    @property
    def netloc(self) -> str:
        host = f"[{self.host}]" if ':' in self.host else self.host
        return f"{host}:{self.port}"


@dataclass(frozen=True)
class ConnectionPolicy:
    """
    Pool and timeout settings for a gateway proxy
    
    Attributes:
        request_timeout: Connect and read timeout in seconds
        max_pool_size: Maximum pooled connections (total and per route)
        idle_connection_timeout: Seconds after which idle connections are closed
        verify_ssl: Verify the gateway's TLS certificate
    """
    request_timeout: int = 60
    max_pool_size: int = 100
    idle_connection_timeout: int = 60
    verify_ssl: bool = True
    
    def __post_init__(self):
        """Validate connection policy"""
        if self.request_timeout <= 0:
            raise ValidationError("Request timeout must be positive")
        
        if self.max_pool_size <= 0:
            raise ValidationError("Max pool size must be positive")
        
        if self.idle_connection_timeout <= 0:
            raise ValidationError("Idle connection timeout must be positive")
    
    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'ConnectionPolicy':
        """Build a policy from a mapping, ignoring unknown keys"""
        known = {name: data[name] for name in cls.__dataclass_fields__ if name in data}
        try:
            return cls(**known)
        except TypeError as e:
            raise ValidationError(f"Invalid connection policy: {e}", "INVALID_FORMAT") from e
    
    @classmethod
    def from_json(cls, json_string: str) -> 'ConnectionPolicy':
        """Load a policy from a JSON string"""
        try:
            data = json.loads(json_string)
        except json.JSONDecodeError as e:
            raise ValidationError(f"Failed to parse connection policy JSON: {e}", "PARSE_ERROR") from e
        
        if not isinstance(data, dict):
            raise ValidationError("Connection policy JSON must be an object", "INVALID_FORMAT")
        
        return cls.from_dict(data)
    
    @classmethod
    def from_file(cls, file_path: Union[str, Path]) -> 'ConnectionPolicy':
        """Load a policy from a JSON file"""
        try:
            with open(Path(file_path), 'r', encoding='utf-8') as f:
                json_string = f.read()
        except OSError as e:
            raise ValidationError(f"Failed to read connection policy file: {e}", "FILE_ERROR") from e
        return cls.from_json(json_string)
    
    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None,
                 prefix: str = ENV_PREFIX) -> 'ConnectionPolicy':
        """
        Load a policy from environment variables.
        
        Reads ``<prefix>REQUEST_TIMEOUT``, ``<prefix>MAX_POOL_SIZE``,
        ``<prefix>IDLE_CONNECTION_TIMEOUT`` and ``<prefix>VERIFY_SSL``; unset
        variables keep their defaults.
        """
        environ = os.environ if environ is None else environ
        data: Dict[str, Any] = {}
        
        for name in ('request_timeout', 'max_pool_size', 'idle_connection_timeout'):
            raw = environ.get(f"{prefix}{name.upper()}")
            if raw is None:
                continue
            try:
                data[name] = int(raw)
            except ValueError as e:
                raise ValidationError(f"{prefix}{name.upper()} must be an integer, got {raw!r}") from e
        
        raw = environ.get(f"{prefix}VERIFY_SSL")
        if raw is not None:
            lowered = raw.strip().lower()
            if lowered in _TRUE_VALUES:
                data['verify_ssl'] = True
            elif lowered in _FALSE_VALUES:
                data['verify_ssl'] = False
            else:
                raise ValidationError(f"{prefix}VERIFY_SSL must be a boolean, got {raw!r}")
        
        return cls.from_dict(data)
    
    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
