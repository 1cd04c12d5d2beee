"""
Type definitions for request authorization

This module provides the enums, credential container and collaborator
protocols used when stamping gateway requests with an authorization header.
"""

from typing import Optional, Union, Mapping, MutableMapping, Protocol, runtime_checkable
from dataclasses import dataclass
from enum import Enum


class HttpMethod(str, Enum):
    """HTTP methods used by the gateway protocol"""
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    
    @property
    def has_body(self) -> bool:
        return self in (HttpMethod.POST, HttpMethod.PUT)


class ResourceType(str, Enum):
    """Resource types, named by the path segment the gateway uses for them"""
    DATABASE = "dbs"
    DOCUMENT_COLLECTION = "colls"
    DOCUMENT = "docs"
    ATTACHMENT = "attachments"
    MEDIA = "media"
    USER = "users"
    PERMISSION = "permissions"
    STORED_PROCEDURE = "sprocs"
    TRIGGER = "triggers"
    USER_DEFINED_FUNCTION = "udfs"
    CONFLICT = "conflicts"
    OFFER = "offers"


class AuthorizationStrategy(Enum):
    """How requests from one proxy are authorized"""
    MASTER_KEY = "master_key"
    RESOURCE_TOKEN = "resource_token"
    ANONYMOUS = "anonymous"


@dataclass(frozen=True)
class CredentialSet:
    """
    Credentials configured for a proxy instance
    
    Attributes:
        master_key: Base64 master key used to sign each request locally
        resource_tokens: Mapping of resource id to pre-issued resource token
    """
    master_key: Optional[str] = None
    resource_tokens: Optional[Mapping[str, str]] = None
    
    @property
    def strategy(self) -> AuthorizationStrategy:
        # master key always wins when both are present
        if self.master_key is not None:
            return AuthorizationStrategy.MASTER_KEY
        if self.resource_tokens is not None:
            return AuthorizationStrategy.RESOURCE_TOKEN
        return AuthorizationStrategy.ANONYMOUS
    
    @property
    def is_mixed(self) -> bool:
        return self.master_key is not None and self.resource_tokens is not None


ResourceTypeLike = Union[ResourceType, str]


@runtime_checkable
class KeySignatureFunction(Protocol):
    """Computes a master-key authorization value for one request"""
    
    def __call__(
        self,
        verb: str,
        resource_id: str,
        resource_type: ResourceTypeLike,
        headers: MutableMapping[str, str],
        master_key: str
    ) -> str:
        ...


@runtime_checkable
class ResourceTokenFunction(Protocol):
    """Picks the resource token that authorizes one request"""
    
    def __call__(
        self,
        resource_tokens: Mapping[str, str],
        path: str,
        resource_id: str
    ) -> Optional[str]:
        ...
