"""
Status-code driven classification of gateway responses
"""

import logging
from typing import Callable

import requests

from ..constants import StatusCodes
from ..exceptions import DocumentClientError, ResponseReadError
from .types import DocumentServiceResponse

logger = logging.getLogger(__name__)


class ResponseClassifier:
    """
    Turns a raw response into a success wrapper or a ``DocumentClientError``
    
    Responses below ``error_threshold`` are wrapped untouched, body unread.
    Anything at or above it has its body fully drained and decoded as UTF-8
    before the error is raised, and the connection is released either way.
    """
    
    def __init__(self, error_threshold: int = StatusCodes.MINIMUM_STATUSCODE_AS_ERROR_GATEWAY):
        self.error_threshold = error_threshold
    
    def is_error(self, status_code: int) -> bool:
        return status_code >= self.error_threshold
    
    def classify(self, response: requests.Response,
                 release: Callable[[], None]) -> DocumentServiceResponse:
        """
        Classify a response.
        
        Args:
            response: Streamed response with its status line read
            release: Releases the response's pooled connection
            
        Returns:
            DocumentServiceResponse: For non-error status codes
            
        Raises:
            DocumentClientError: For status codes at or above the threshold
            ResponseReadError: If the error body cannot be read
        """
        status_code = response.status_code
        if not self.is_error(status_code):
            return DocumentServiceResponse(response, release)
        
        try:
            body = self._drain(response)
        finally:
            release()
        
        response_headers = {name: value for name, value in response.headers.items()}
        logger.debug(f"Gateway returned error status {status_code}")
        raise DocumentClientError(status_code, body, response_headers)
    
    @staticmethod
    def _drain(response: requests.Response) -> str:
        try:
            content = response.content
        except (requests.exceptions.RequestException, OSError) as e:
            raise ResponseReadError(
                "Failed to get content from the http response",
                http_status=response.status_code,
                details={'original_error': str(e)}
            ) from e
        
        if not content:
            return ""
        try:
            return content.decode('utf-8')
        except UnicodeDecodeError as e:
            raise ResponseReadError(
                "Error response body is not valid UTF-8",
                http_status=response.status_code,
                details={'original_error': str(e)}
            ) from e
