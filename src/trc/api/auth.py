"""TRC API bearer authentication.

Two authenticators, selected by ``auth.type``:
- JwtAuthenticator: HMAC-signed JWTs (HS256/HS384/HS512) verified with python-jose
- SharedSecretAuthenticator: constant-time comparison against a static secret

Both fail closed. Every verification failure collapses to "Invalid token";
only the logged ``reason`` distinguishes a missing header from a bad token.
"""

import hmac
import logging
from abc import ABC, abstractmethod

from jose import JWTError, jwt

from trc.config.models import AuthConfig, JwtAuthConfig, SharedSecretAuthConfig

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "
JWT_ALGORITHMS = ["HS256", "HS384", "HS512"]

REASON_MISSING = "missing_bearer_token"
REASON_INVALID = "invalid_token"


class AuthenticationError(Exception):
    """Raised when a request carries no usable credential.

    Attributes:
        reason: Machine-readable reason for logs ("missing_bearer_token", "invalid_token").
        message: Client-visible message.
    """

    def __init__(self, reason: str, message: str) -> None:
        super().__init__(message)
        self.reason = reason
        self.message = message


def extract_bearer_token(authorization: str | None) -> str:
    """Extract the credential from an ``Authorization: Bearer <token>`` header.

    Raises:
        AuthenticationError: If the header is absent, not a Bearer header, or empty.
    """
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        raise AuthenticationError(REASON_MISSING, "Missing bearer token")

    token = authorization[len(BEARER_PREFIX) :].strip()
    if not token:
        raise AuthenticationError(REASON_MISSING, "Missing bearer token")
    return token


class Authenticator(ABC):
    """Verifies the Authorization header of a request.

    Instances hold immutable key material and are shared by all requests.
    """

    def authenticate(self, authorization: str | None) -> None:
        """Authenticate a request.

        Args:
            authorization: Raw Authorization header value, if any.

        Raises:
            AuthenticationError: If the credential is missing or invalid.
        """
        token = extract_bearer_token(authorization)
        if not self.verify(token):
            raise AuthenticationError(REASON_INVALID, "Invalid token")

    @abstractmethod
    def verify(self, token: str) -> bool:
        """Return True when the bearer credential is valid."""
        ...


class JwtAuthenticator(Authenticator):
    """Accepts bearer JWTs signed with the configured HMAC secret.

    Signature and expiry (``exp``, when present) are verified. Audience is
    not checked.
    """

    def __init__(self, secret: str) -> None:
        self._secret = secret

    def verify(self, token: str) -> bool:
        try:
            jwt.decode(
                token,
                self._secret,
                algorithms=JWT_ALGORITHMS,
                options={"verify_aud": False},
            )
        except JWTError as e:
            logger.debug("JWT verification failed: %s", type(e).__name__)
            return False
        return True


class SharedSecretAuthenticator(Authenticator):
    """Accepts a bearer credential equal to the configured shared secret."""

    def __init__(self, secret: str) -> None:
        self._secret = secret.encode("utf-8")

    def verify(self, token: str) -> bool:
        provided = token.encode("utf-8")
        # Length first, then constant-time content comparison.
        if len(provided) != len(self._secret):
            return False
        return hmac.compare_digest(provided, self._secret)


def create_authenticator(config: AuthConfig) -> Authenticator:
    """Create the authenticator described by an auth config."""
    match config:
        case JwtAuthConfig():
            return JwtAuthenticator(config.jwt.secret.get_secret_value())
        case SharedSecretAuthConfig():
            return SharedSecretAuthenticator(config.shared_secret.secret.get_secret_value())
        case _:
            raise TypeError(f"Unsupported auth config: {type(config).__name__}")
