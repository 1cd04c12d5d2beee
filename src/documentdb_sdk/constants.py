"""
Protocol constants for the DocumentDB gateway

Header names keep the casing the gateway documents; comparisons that must be
case-insensitive are done explicitly by the callers.
"""

from .version import __version__


class HttpHeaders:
    """Request and response header names"""
    AUTHORIZATION = "authorization"
    CACHE_CONTROL = "Cache-Control"
    CONTENT_TYPE = "Content-Type"
    ACCEPT = "Accept"
    USER_AGENT = "User-Agent"
    HTTP_DATE = "date"
    X_DATE = "x-ms-date"
    VERSION = "x-ms-version"
    CONSISTENCY_LEVEL = "x-ms-consistency-level"
    IS_QUERY = "x-ms-documentdb-isquery"
    RETRY_AFTER_IN_MILLISECONDS = "x-ms-retry-after-ms"


class MediaTypes:
    """Content types understood by the gateway"""
    JSON = "application/json"
    SQL = "application/sql"


class Versions:
    CURRENT_VERSION = "2014-08-21"
    USER_AGENT = f"documentdb-python-sdk-{__version__}"


class StatusCodes:
    """Status codes the gateway is known to return"""
    OK = 200
    CREATED = 201
    NO_CONTENT = 204
    
    # Anything at or above this is classified as a service error
    MINIMUM_STATUSCODE_AS_ERROR_GATEWAY = 400
    
    BAD_REQUEST = 400
    UNAUTHORIZED = 401
    FORBIDDEN = 403
    NOT_FOUND = 404
    REQUEST_TIMEOUT = 408
    CONFLICT = 409
    PRECONDITION_FAILED = 412
    REQUEST_ENTITY_TOO_LARGE = 413
    TOO_MANY_REQUESTS = 429
    RETRY_WITH = 449
    INTERNAL_SERVER_ERROR = 500
    SERVICE_UNAVAILABLE = 503


# Fixed transport scheme; never negotiated
GATEWAY_SCHEME = "https"
DEFAULT_HTTPS_PORT = 443
