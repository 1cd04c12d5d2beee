"""
Gateway proxy: dispatches document operations to the HTTPS gateway

Every operation follows the same path: force operation headers, authenticate,
merge with the proxy's default headers, build the URI, execute through the
shared pool and classify the response. There is no retry here; callers
decide what to do with a ``TransportError`` or a ``DocumentClientError``.
"""

import logging
from typing import Callable, Mapping, Optional, Union
from urllib.parse import quote, urlunsplit

import requests

from ..config.connection_policy import ConnectionPolicy, ConsistencyLevel, Endpoint
from ..constants import GATEWAY_SCHEME, StatusCodes
from ..exceptions import ConfigurationError, TransportError
from ..signing.authenticator import RequestAuthenticator
from ..signing.authorization import (
    generate_key_authorization_signature,
    get_authorization_token_using_resource_tokens,
)
from ..signing.types import CredentialSet, KeySignatureFunction, ResourceTokenFunction
from .connection_pool import ConnectionPool
from .headers import build_default_headers, merge_headers, redact_headers
from .response_classifier import ResponseClassifier
from .types import (
    OPERATION_TABLE,
    DocumentServiceRequest,
    DocumentServiceResponse,
    OperationType,
)

logger = logging.getLogger(__name__)

# Characters left unescaped in request paths
_PATH_SAFE_CHARS = "/:@!$&'()*+,;="


class GatewayProxy:
    """
    Authenticated, pooled client for a single gateway endpoint
    
    A proxy is safe to share between threads. Each call must bring its own
    ``DocumentServiceRequest``; the request's headers are modified in place.
    
    Example:
        >>> proxy = GatewayProxy("https://myaccount.documents.azure.com:443/",
        ...                      ConnectionPolicy(), master_key=key)
        >>> with proxy.do_read(request) as response:
        ...     document = response.json()
    """
    
    def __init__(
        self,
        service_endpoint: Union[str, Endpoint],
        policy: Optional[ConnectionPolicy] = None,
        consistency_level: Optional[ConsistencyLevel] = None,
        master_key: Optional[str] = None,
        resource_tokens: Optional[Mapping[str, str]] = None,
        *,
        key_signer: KeySignatureFunction = generate_key_authorization_signature,
        resource_token_resolver: ResourceTokenFunction = get_authorization_token_using_resource_tokens,
        error_status_threshold: int = StatusCodes.MINIMUM_STATUSCODE_AS_ERROR_GATEWAY,
        session_factory: Callable[[], requests.Session] = requests.Session
    ):
        """
        Initialize the gateway proxy.
        
        Args:
            service_endpoint: Gateway URL (or a resolved Endpoint)
            policy: Pool and timeout settings (defaults to ConnectionPolicy())
            consistency_level: Optional consistency level sent with every request
            master_key: Base64 master key used to sign requests
            resource_tokens: Mapping of resource id to resource token
            key_signer: Master-key signature function
            resource_token_resolver: Resource-token lookup function
            error_status_threshold: Lowest status code treated as an error
            session_factory: Builds the underlying requests session
        """
        if isinstance(service_endpoint, Endpoint):
            self.endpoint = service_endpoint
        else:
            self.endpoint = Endpoint.parse(service_endpoint)
        
        self.policy = policy or ConnectionPolicy()
        self.default_headers = build_default_headers(consistency_level)
        self.authenticator = RequestAuthenticator(
            CredentialSet(
                master_key=master_key,
                resource_tokens=dict(resource_tokens) if resource_tokens is not None else None,
            ),
            key_signer=key_signer,
            resource_token_resolver=resource_token_resolver,
        )
        self.classifier = ResponseClassifier(error_status_threshold)
        self._pool = ConnectionPool(self.policy, session_factory=session_factory)
        
        logger.info(
            f"Gateway proxy initialized for {self.endpoint.netloc} "
            f"(authorization: {self.authenticator.strategy.value})"
        )
    
    @property
    def pool(self) -> ConnectionPool:
        return self._pool
    
    def do_create(self, request: DocumentServiceRequest) -> DocumentServiceResponse:
        return self.perform(OperationType.CREATE, request)
    
    def do_read(self, request: DocumentServiceRequest) -> DocumentServiceResponse:
        return self.perform(OperationType.READ, request)
    
    def do_replace(self, request: DocumentServiceRequest) -> DocumentServiceResponse:
        return self.perform(OperationType.REPLACE, request)
    
    def do_delete(self, request: DocumentServiceRequest) -> DocumentServiceResponse:
        return self.perform(OperationType.DELETE, request)
    
    def do_execute(self, request: DocumentServiceRequest) -> DocumentServiceResponse:
        return self.perform(OperationType.EXECUTE, request)
    
    def do_read_feed(self, request: DocumentServiceRequest) -> DocumentServiceResponse:
        return self.perform(OperationType.READ_FEED, request)
    
    def do_sql_query(self, request: DocumentServiceRequest) -> DocumentServiceResponse:
        return self.perform(OperationType.SQL_QUERY, request)
    
    def perform(self, operation: OperationType,
                request: DocumentServiceRequest) -> DocumentServiceResponse:
        """
        Dispatch one operation.
        
        Args:
            operation: Operation to perform
            request: Call context; its headers are modified in place
            
        Returns:
            DocumentServiceResponse: Success wrapper. For body-bearing verbs
                the caller owns the connection until the body is read or the
                response is closed.
            
        Raises:
            ConfigurationError: Malformed path or unusable credentials
            TransportError: The HTTP exchange failed
            DocumentClientError: The gateway answered with an error status
        """
        spec = OPERATION_TABLE[operation]
        verb = spec.method
        
        for name, value in spec.header_overrides.items():
            request.headers[name] = value
        
        self.authenticator.decorate(request, verb)
        headers = merge_headers(self.default_headers, request.headers)
        uri = self.build_uri(request.path)
        body = request.body if verb.has_body else None
        
        logger.debug(f"{operation.value}: {verb.value} {uri} headers={redact_headers(headers)}")
        
        lease = self._pool.acquire()
        try:
            response = lease.send(verb, uri, headers, body)
            result = self.classifier.classify(response, lease.release)
        except TransportError as e:
            lease.release()
            logger.error(f"{verb.value} {uri} failed: {e}")
            raise
        except BaseException:
            # no-op when the classifier already released
            lease.release()
            raise
        
        if spec.releases_immediately:
            result.buffer()
        
        return result
    
    def build_uri(self, path: str) -> str:
        """
        Build the request URI from the fixed scheme, the endpoint and a path.
        An empty path addresses the endpoint root.
        
        Raises:
            ConfigurationError: If the path cannot form a valid URI
        """
        if not isinstance(path, str) or (path and not path.startswith('/')):
            raise ConfigurationError(
                "Incorrect uri from request.",
                "INVALID_URI",
                {'path': path}
            )
        try:
            quoted_path = quote(path, safe=_PATH_SAFE_CHARS, encoding='utf-8', errors='strict')
        except UnicodeEncodeError as e:
            raise ConfigurationError(
                "Incorrect uri from request.",
                "INVALID_URI",
                {'path': path, 'original_error': str(e)}
            ) from e
        
        # Query string and fragment are never used
        return urlunsplit((GATEWAY_SCHEME, self.endpoint.netloc, quoted_path, '', ''))
    
    def close(self) -> None:
        """Shut down the connection pool"""
        self._pool.shutdown()
    
    def __enter__(self):
        return self
    
    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
