"""
Utility functions for request authorization

Date stamping and authorization value encoding used by the authenticator.
"""

import time
from email.utils import formatdate
from typing import Optional
from urllib.parse import quote_plus

from ..exceptions import ConfigurationError


def format_x_date(timestamp: Optional[float] = None) -> str:
    """
    Format a timestamp for the x-ms-date header.
    
    The value is RFC 1123 style and always expressed in GMT, independent of
    the local timezone and locale, e.g. ``Tue, 07 Oct 2014 18:31:05 GMT``.
    
    Args:
        timestamp: Unix timestamp (uses current time if None)
        
    Returns:
        str: Formatted date string
    """
    if timestamp is None:
        timestamp = time.time()
    return formatdate(timestamp, usegmt=True)


def encode_authorization(signature: str) -> str:
    """
    URL-encode an authorization value as UTF-8 form data.
    
    Args:
        signature: Raw value returned by a signing collaborator
        
    Returns:
        str: Encoded value ready for the authorization header
        
    Raises:
        ConfigurationError: If the value cannot be encoded
    """
    if not isinstance(signature, str):
        raise ConfigurationError(
            f"Authorization value must be a string, got {type(signature).__name__}",
            "AUTH_TOKEN_ENCODING_FAILED"
        )
    try:
        encoded = quote_plus(signature, safe='*', encoding='utf-8', errors='strict')
    except UnicodeEncodeError as e:
        raise ConfigurationError(
            "Failed to encode authtoken.",
            "AUTH_TOKEN_ENCODING_FAILED",
            {"original_error": str(e)}
        ) from e
    # form encoding escapes '~', which quote_plus always leaves as is
    return encoded.replace('~', '%7E')


def header_present(headers, name: str) -> bool:
    """Check whether a header is already set, ignoring name casing."""
    lowered = name.lower()
    return any(key.lower() == lowered for key in headers)
