"""
Exception classes for DocumentDB Python SDK

Two independent roots are used. ``DocumentDBSDKError`` covers local failures
(bad configuration, transport problems) that stop a call before any remote
result exists. ``DocumentClientError`` is raised for a response the gateway
returned with an error status and carries everything needed to branch on it.
"""

import json
from typing import Optional, Dict, Any, Mapping

from .constants import HttpHeaders, StatusCodes


class DocumentDBSDKError(Exception):
    """Base exception for all local DocumentDB SDK failures"""
    
    def __init__(self, message: str, error_code: str = "UNKNOWN_ERROR", details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.error_code = error_code
        self.details = details or {}


class ValidationError(DocumentDBSDKError):
    """Exception raised for invalid arguments or configuration values"""
    pass


class ConfigurationError(DocumentDBSDKError):
    """Exception raised for fatal configuration or programming errors.

    Malformed request paths, signatures that cannot be encoded and
    unresolvable credentials end up here. Retrying never helps.
    """
    pass


class TransportError(DocumentDBSDKError):
    """Exception raised when the HTTP exchange with the gateway fails"""
    
    def __init__(self, message: str, error_code: str = "TRANSPORT_ERROR",
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message, error_code, details)


class ResponseReadError(TransportError):
    """Exception raised when an error response body cannot be drained"""
    
    def __init__(self, message: str, http_status: int = 0,
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "RESPONSE_READ_ERROR", details)
        self.http_status = http_status


class DocumentClientError(Exception):
    """
    Structured error for a gateway response at or above the error threshold.
    
    Attributes:
        status_code: HTTP status code returned by the gateway
        body: Response body decoded as UTF-8 (empty string when absent)
        response_headers: All response headers
        code: Error code parsed from a JSON body, if any
        message: Error message parsed from a JSON body, if any
    """
    
    def __init__(self, status_code: int, body: str = "",
                 response_headers: Optional[Mapping[str, str]] = None):
        self.status_code = status_code
        self.body = body
        self.response_headers: Dict[str, str] = dict(response_headers or {})
        self.code, self.message = _parse_error_body(body)
        super().__init__(
            f"Gateway returned {status_code}: {self.message or body or 'no content'}"
        )
    
    @property
    def is_not_found(self) -> bool:
        return self.status_code == StatusCodes.NOT_FOUND
    
    @property
    def is_conflict(self) -> bool:
        return self.status_code == StatusCodes.CONFLICT
    
    @property
    def is_throttled(self) -> bool:
        return self.status_code == StatusCodes.TOO_MANY_REQUESTS
    
    @property
    def retry_after_ms(self) -> Optional[int]:
        """Server suggested back-off in milliseconds, when present"""
        for name, value in self.response_headers.items():
            if name.lower() == HttpHeaders.RETRY_AFTER_IN_MILLISECONDS:
                try:
                    return int(value)
                except (TypeError, ValueError):
                    return None
        return None


def _parse_error_body(body: str):
    """Extract (code, message) from a JSON error payload; tolerate anything else."""
    if not body:
        return None, None
    try:
        data = json.loads(body)
    except ValueError:
        return None, None
    if not isinstance(data, dict):
        return None, None
    return data.get('code'), data.get('message')
