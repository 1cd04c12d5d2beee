"""
Request, response and operation types for the gateway pipeline
"""

import json
import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, BinaryIO, Callable, Dict, Iterator, Mapping, Optional, Union

import requests

from ..constants import HttpHeaders, MediaTypes
from ..exceptions import TransportError, ValidationError
from ..signing.types import HttpMethod, ResourceTypeLike

logger = logging.getLogger(__name__)

RequestBody = Union[bytes, BinaryIO, None]


class OperationType(Enum):
    """Abstract operations a caller can dispatch through the gateway"""
    CREATE = "create"
    READ = "read"
    READ_FEED = "read_feed"
    REPLACE = "replace"
    DELETE = "delete"
    EXECUTE = "execute"
    SQL_QUERY = "sql_query"


@dataclass(frozen=True)
class OperationSpec:
    """
    How an operation goes on the wire
    
    Attributes:
        method: HTTP method used for the operation
        header_overrides: Headers forced onto the request before authentication
        releases_immediately: Whether the connection is released as soon as
            the response is classified (no body is expected)
    """
    method: HttpMethod
    header_overrides: Mapping[str, str] = field(default_factory=dict)
    releases_immediately: bool = False


OPERATION_TABLE: Mapping[OperationType, OperationSpec] = MappingProxyType({
    OperationType.CREATE: OperationSpec(HttpMethod.POST),
    OperationType.READ: OperationSpec(HttpMethod.GET),
    OperationType.READ_FEED: OperationSpec(HttpMethod.GET),
    OperationType.REPLACE: OperationSpec(HttpMethod.PUT),
    OperationType.DELETE: OperationSpec(HttpMethod.DELETE, releases_immediately=True),
    OperationType.EXECUTE: OperationSpec(HttpMethod.POST),
    OperationType.SQL_QUERY: OperationSpec(
        HttpMethod.POST,
        header_overrides=MappingProxyType({
            HttpHeaders.IS_QUERY: "true",
            HttpHeaders.CONTENT_TYPE: MediaTypes.SQL,
        }),
    ),
})


@dataclass
class DocumentServiceRequest:
    """
    A single call against the gateway
    
    The ``headers`` dict belongs to this call alone. The pipeline writes the
    date, authorization and content negotiation headers into it in place, so
    a request object must not be shared between concurrent calls.
    
    Attributes:
        path: Resource path, e.g. ``/dbs/d1/colls/c1/docs``
        resource_id: Id of the resource (or owner) the request acts on
        resource_type: Resource type used for signing
        headers: Per-call header overrides
        body: Optional request entity; text is encoded as UTF-8
    """
    path: str
    resource_id: str = ""
    resource_type: ResourceTypeLike = ""
    headers: Dict[str, str] = field(default_factory=dict)
    body: Union[str, RequestBody] = None
    
    def __post_init__(self):
        """Validate request after initialization"""
        if not isinstance(self.path, str):
            raise ValidationError("Request path must be a string")
        
        if self.headers is None:
            self.headers = {}
        elif not isinstance(self.headers, dict):
            raise ValidationError("Headers must be a dictionary")
        
        if isinstance(self.body, str):
            self.body = self.body.encode('utf-8')
    
    @classmethod
    def from_json(cls, path: str, document: Any, **kwargs) -> 'DocumentServiceRequest':
        """Build a request whose body is a JSON-serialized document"""
        return cls(path=path, body=json.dumps(document, separators=(',', ':')), **kwargs)


class DocumentServiceResponse:
    """
    Successful gateway response with a lazily readable body
    
    The pooled connection stays checked out until the body has been read or
    the response is closed. Use it as a context manager, or call ``read()``,
    ``text``, ``json()`` or ``close()``.
    """
    
    def __init__(self, response: requests.Response, release: Callable[[], None]):
        self._response = response
        self._release = release
        self._content: Optional[bytes] = None
        self._released = False
        self._lock = threading.Lock()
    
    @property
    def status_code(self) -> int:
        return self._response.status_code
    
    @property
    def headers(self) -> Mapping[str, str]:
        return self._response.headers
    
    @property
    def stream(self):
        """Raw body stream; the caller must close the response when done"""
        return self._response.raw
    
    @property
    def is_released(self) -> bool:
        return self._released
    
    def iter_content(self, chunk_size: int = 8192) -> Iterator[bytes]:
        """Stream the body in chunks, releasing the connection at the end"""
        if self._content is not None:
            yield self._content
            return
        self._ensure_available()
        try:
            for chunk in self._response.iter_content(chunk_size=chunk_size):
                yield chunk
        except requests.exceptions.RequestException as e:
            raise TransportError(f"Failed to read response body: {e}") from e
        finally:
            self.close()
    
    def read(self) -> bytes:
        """Read the whole body and release the connection"""
        if self._content is not None:
            return self._content
        self._ensure_available()
        try:
            self._content = self._response.content or b""
        except (requests.exceptions.RequestException, OSError) as e:
            raise TransportError(f"Failed to read response body: {e}") from e
        finally:
            self.close()
        return self._content
    
    @property
    def text(self) -> str:
        return self.read().decode('utf-8')
    
    def json(self) -> Any:
        """Decode the body as JSON; an empty body decodes to None"""
        text = self.text
        return json.loads(text) if text else None
    
    def buffer(self) -> 'DocumentServiceResponse':
        """Drain the body into memory now and release the connection"""
        self.read()
        return self
    
    def close(self) -> None:
        """Release the pooled connection; safe to call more than once"""
        with self._lock:
            if self._released:
                return
            self._released = True
        self._release()
    
    def _ensure_available(self) -> None:
        if self._released:
            raise TransportError(
                "Response body is no longer available; the connection was already released",
                "BODY_RELEASED"
            )
    
    def __enter__(self):
        return self
    
    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
    
    def __repr__(self) -> str:
        return f"<DocumentServiceResponse [{self.status_code}]>"
