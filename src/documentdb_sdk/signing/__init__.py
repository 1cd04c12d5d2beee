"""
DocumentDB Python SDK - Request Authorization Module

Master-key signing and resource-token resolution for gateway requests,
plus the authenticator that stamps them onto outgoing calls.
"""

from .types import (
    HttpMethod,
    ResourceType,
    AuthorizationStrategy,
    CredentialSet,
    KeySignatureFunction,
    ResourceTokenFunction,
)

from .authorization import (
    generate_key_authorization_signature,
    get_authorization_token_using_resource_tokens,
)

from .authenticator import RequestAuthenticator

from .utils import (
    format_x_date,
    encode_authorization,
    header_present,
)

# Public API exports
__all__ = [
    # Types
    'HttpMethod',
    'ResourceType',
    'AuthorizationStrategy',
    'CredentialSet',
    'KeySignatureFunction',
    'ResourceTokenFunction',
    # Signing collaborators
    'generate_key_authorization_signature',
    'get_authorization_token_using_resource_tokens',
    # Authenticator
    'RequestAuthenticator',
    # Utilities
    'format_x_date',
    'encode_authorization',
    'header_present',
]
