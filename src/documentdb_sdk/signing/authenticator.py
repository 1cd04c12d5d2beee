"""
Request authentication for gateway calls

``RequestAuthenticator.decorate`` mutates the call's own header mapping in
place, in a fixed order: date stamp, authorization, content-type default,
accept default. The signature must see the date header, and defaults never
replace values the caller already supplied.
"""

import logging
import time
from typing import Callable, Mapping, Optional

from ..constants import HttpHeaders, MediaTypes
from ..exceptions import ConfigurationError
from .authorization import (
    generate_key_authorization_signature,
    get_authorization_token_using_resource_tokens,
)
from .types import (
    AuthorizationStrategy,
    CredentialSet,
    HttpMethod,
    KeySignatureFunction,
    ResourceTokenFunction,
)
from .utils import encode_authorization, format_x_date, header_present

logger = logging.getLogger(__name__)


class RequestAuthenticator:
    """
    Stamps date, authorization and content negotiation headers on a request
    
    Exactly one authorization mechanism is evaluated per call. A master key
    takes precedence over resource tokens; with neither configured the
    request goes out anonymously.
    """
    
    def __init__(
        self,
        credentials: Optional[CredentialSet] = None,
        key_signer: KeySignatureFunction = generate_key_authorization_signature,
        resource_token_resolver: ResourceTokenFunction = get_authorization_token_using_resource_tokens,
        clock: Callable[[], float] = time.time
    ):
        """
        Initialize the authenticator.
        
        Args:
            credentials: Master key and/or resource tokens
            key_signer: Master-key signature function
            resource_token_resolver: Resource-token lookup function
            clock: Source of the current Unix time
        """
        self.credentials = credentials or CredentialSet()
        self.key_signer = key_signer
        self.resource_token_resolver = resource_token_resolver
        self._clock = clock
        
        if self.credentials.is_mixed:
            logger.warning(
                "Both a master key and resource tokens were configured; "
                "the master key will be used for every request"
            )
    
    @property
    def strategy(self) -> AuthorizationStrategy:
        return self.credentials.strategy
    
    def decorate(self, request, verb: HttpMethod) -> None:
        """
        Add authentication and default content headers to a request.
        
        Args:
            request: DocumentServiceRequest whose headers are mutated in place
            verb: HTTP method the request will be sent with
            
        Raises:
            ConfigurationError: If no authorization value can be produced
        """
        headers = request.headers
        strategy = self.strategy
        
        if strategy is AuthorizationStrategy.MASTER_KEY:
            headers[HttpHeaders.X_DATE] = format_x_date(self._clock())
        
        if strategy is not AuthorizationStrategy.ANONYMOUS:
            authorization = self._get_authorization_token(request, verb, strategy)
            headers[HttpHeaders.AUTHORIZATION] = encode_authorization(authorization)
        
        if verb.has_body and not header_present(headers, HttpHeaders.CONTENT_TYPE):
            headers[HttpHeaders.CONTENT_TYPE] = MediaTypes.JSON
        
        if not header_present(headers, HttpHeaders.ACCEPT):
            headers[HttpHeaders.ACCEPT] = MediaTypes.JSON
    
    def _get_authorization_token(self, request, verb: HttpMethod,
                                 strategy: AuthorizationStrategy) -> str:
        if strategy is AuthorizationStrategy.MASTER_KEY:
            return self.key_signer(
                verb.value,
                request.resource_id,
                request.resource_type,
                request.headers,
                self.credentials.master_key
            )
        
        token = self.resource_token_resolver(
            self.credentials.resource_tokens,
            request.path,
            request.resource_id
        )
        if token is None:
            raise ConfigurationError(
                f"No resource token authorizes {verb.value} {request.path}",
                "RESOURCE_TOKEN_NOT_FOUND",
                {"path": request.path, "resource_id": request.resource_id}
            )
        return token
