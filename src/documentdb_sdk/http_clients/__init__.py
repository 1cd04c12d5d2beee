"""
HTTP client module for DocumentDB SDK

This module provides the gateway request pipeline: header composition,
the shared connection pool, per-operation dispatch and response
classification.
"""

from .types import (
    OperationType,
    OperationSpec,
    OPERATION_TABLE,
    DocumentServiceRequest,
    DocumentServiceResponse,
)

from .headers import (
    build_default_headers,
    merge_headers,
    redact_headers,
)

from .connection_pool import (
    ConnectionPool,
    ConnectionLease,
)

from .response_classifier import ResponseClassifier

from .gateway_proxy import GatewayProxy

__all__ = [
    # Types
    'OperationType',
    'OperationSpec',
    'OPERATION_TABLE',
    'DocumentServiceRequest',
    'DocumentServiceResponse',
    # Headers
    'build_default_headers',
    'merge_headers',
    'redact_headers',
    # Pool
    'ConnectionPool',
    'ConnectionLease',
    # Classification
    'ResponseClassifier',
    # Dispatcher
    'GatewayProxy',
]
