"""
DocumentDB Python SDK
Authenticated, pooled request pipeline for the DocumentDB HTTPS gateway
"""

from .version import __version__
from .constants import (
    HttpHeaders,
    MediaTypes,
    Versions,
    StatusCodes,
)
from .exceptions import (
    DocumentDBSDKError,
    ValidationError,
    ConfigurationError,
    TransportError,
    ResponseReadError,
    DocumentClientError,
)
from .config import (
    ConnectionPolicy,
    ConsistencyLevel,
    Endpoint,
)
from .signing import (
    HttpMethod,
    ResourceType,
    AuthorizationStrategy,
    CredentialSet,
    RequestAuthenticator,
    generate_key_authorization_signature,
    get_authorization_token_using_resource_tokens,
    format_x_date,
)
from .http_clients import (
    GatewayProxy,
    ConnectionPool,
    ConnectionLease,
    ResponseClassifier,
    OperationType,
    OPERATION_TABLE,
    DocumentServiceRequest,
    DocumentServiceResponse,
    merge_headers,
)


# Public API exports
__all__ = [
    '__version__',
    # Constants
    'HttpHeaders',
    'MediaTypes',
    'Versions',
    'StatusCodes',
    # Exceptions
    'DocumentDBSDKError',
    'ValidationError',
    'ConfigurationError',
    'TransportError',
    'ResponseReadError',
    'DocumentClientError',
    # Configuration
    'ConnectionPolicy',
    'ConsistencyLevel',
    'Endpoint',
    # Authorization
    'HttpMethod',
    'ResourceType',
    'AuthorizationStrategy',
    'CredentialSet',
    'RequestAuthenticator',
    'generate_key_authorization_signature',
    'get_authorization_token_using_resource_tokens',
    'format_x_date',
    # Gateway pipeline
    'GatewayProxy',
    'ConnectionPool',
    'ConnectionLease',
    'ResponseClassifier',
    'OperationType',
    'OPERATION_TABLE',
    'DocumentServiceRequest',
    'DocumentServiceResponse',
    'merge_headers',
]
