"""
Default authorization collaborators

The pipeline only sees these as callables; any function with the same
signature can be injected instead. The master-key scheme is an HMAC-SHA256
over the verb, resource type, resource id and date headers, computed with
the ``cryptography`` package.
"""

import base64
import binascii
import logging
from typing import Mapping, MutableMapping, Optional

from cryptography.hazmat.primitives import hashes, hmac

from ..constants import HttpHeaders
from ..exceptions import ConfigurationError
from .types import ResourceType, ResourceTypeLike

logger = logging.getLogger(__name__)

MASTER_TOKEN_TYPE = "master"
TOKEN_VERSION = "1.0"

# Path segments that name a resource type rather than a resource id
_RESOURCE_TYPE_SEGMENTS = frozenset(rt.value for rt in ResourceType)


def _resource_type_value(resource_type: ResourceTypeLike) -> str:
    if isinstance(resource_type, ResourceType):
        return resource_type.value
    return str(resource_type or "")


def _header_value(headers: Mapping[str, str], name: str) -> str:
    lowered = name.lower()
    for key, value in headers.items():
        if key.lower() == lowered:
            return value or ""
    return ""


def generate_key_authorization_signature(
    verb: str,
    resource_id: str,
    resource_type: ResourceTypeLike,
    headers: MutableMapping[str, str],
    master_key: str
) -> str:
    """
    Generate a master-key authorization value for a request.
    
    Args:
        verb: HTTP method
        resource_id: Id of the resource (or owner) the request acts on
        resource_type: Resource type of the request
        headers: Request headers; x-ms-date must already be set
        master_key: Base64 encoded master key
        
    Returns:
        str: ``type=master&ver=1.0&sig=<base64 signature>``
        
    Raises:
        ConfigurationError: If the master key is not valid base64
    """
    try:
        key = base64.b64decode(master_key, validate=True)
    except (binascii.Error, ValueError, TypeError) as e:
        raise ConfigurationError(
            "Master key is not valid base64",
            "INVALID_MASTER_KEY",
            {"original_error": str(e)}
        ) from e
    
    text = (
        f"{(verb or '').lower()}\n"
        f"{_resource_type_value(resource_type).lower()}\n"
        f"{(resource_id or '').lower()}\n"
        f"{_header_value(headers, HttpHeaders.X_DATE).lower()}\n"
        f"{_header_value(headers, HttpHeaders.HTTP_DATE).lower()}\n"
    )
    
    mac = hmac.HMAC(key, hashes.SHA256())
    mac.update(text.encode('utf-8'))
    signature = base64.b64encode(mac.finalize()).decode('ascii')
    
    return f"type={MASTER_TOKEN_TYPE}&ver={TOKEN_VERSION}&sig={signature}"


def get_authorization_token_using_resource_tokens(
    resource_tokens: Mapping[str, str],
    path: str,
    resource_id: str
) -> Optional[str]:
    """
    Pick the resource token that authorizes a request.
    
    A token registered for the resource id itself is preferred. Otherwise the
    path is walked from the innermost segment outwards and the first resource
    id with a registered token is used.
    
    Args:
        resource_tokens: Mapping of resource id to resource token
        path: Request path, e.g. ``/dbs/d1/colls/c1/docs``
        resource_id: Id of the resource (or owner) the request acts on
        
    Returns:
        The matching token, or None if no token covers the request
    """
    if resource_id and resource_id in resource_tokens:
        return resource_tokens[resource_id]
    
    segments = [segment for segment in (path or "").split('/') if segment]
    for segment in reversed(segments):
        if segment in _RESOURCE_TYPE_SEGMENTS:
            continue
        token = resource_tokens.get(segment)
        if token:
            logger.debug(f"Using resource token registered for path segment '{segment}'")
            return token
    
    return None
