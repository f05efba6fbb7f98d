"""
Flask decorators and helpers for caller authentication.

Callers present a Firebase ID token as an OAuth 2.0 Bearer token (RFC 6750).
Tokens are verified locally with PyJWT against Google's securetoken JWKS.

Security:
- RSA-SHA256 signature verification via JWKS (RFC 7517)
- Expiration, issuer (https://securetoken.google.com/<project>) and audience
  (<project>) validation (RFC 7519)
- JWKS caching (1-hour refresh)
- Tokens are never logged; only a truncated SHA-256 fingerprint is
"""

import hashlib
import logging
import re
from functools import wraps
from typing import Any, Dict, Optional

import jwt
from jwt import PyJWKClient
from jwt.exceptions import (
    DecodeError,
    ExpiredSignatureError,
    InvalidAudienceError,
    InvalidIssuerError,
    InvalidSignatureError,
    PyJWKClientError,
)
from flask import current_app, g, jsonify, request

from internquest.core.authz import CallerIdentity
from internquest.core.errors import ErrorKind, ServiceError

logger = logging.getLogger(__name__)

_BEARER_PATTERN = re.compile(r"^Bearer\s+(.+)$", re.IGNORECASE)

# Global JWKS client (cached singleton)
_jwks_client: Optional[PyJWKClient] = None


class TokenValidationError(Exception):
    """Exception raised when ID token validation fails."""
    pass


def token_fingerprint(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()[:12]


def get_jwks_client() -> PyJWKClient:
    """
    Get cached JWKS client (singleton pattern).

    Returns:
        PyJWKClient: Client for Google's securetoken signing keys
    """
    global _jwks_client

    if _jwks_client is None:
        cfg = current_app.config["APP_CONFIG"]
        logger.info("Initializing JWKS client for: %s", cfg.id_token_jwks_url)
        _jwks_client = PyJWKClient(
            cfg.id_token_jwks_url,
            cache_keys=True,
            max_cached_keys=16,
            lifespan=3600,
            headers={"User-Agent": "InternQuest-Functions/1.0"},
        )

    return _jwks_client


def get_bearer_token() -> Optional[str]:
    """Extract the bearer token from the Authorization header, or None."""
    auth_header = str(request.headers.get("Authorization", ""))
    match = _BEARER_PATTERN.match(auth_header.strip())
    if not match:
        return None
    token = match.group(1).strip()
    return token or None


def validate_id_token(token: str) -> Dict[str, Any]:
    """
    Validate a Firebase ID token.

    Validations performed:
    1. Signature verification (RS256 via JWKS)
    2. Expiration and issued-at (exp, iat required; 5 s leeway)
    3. Issuer and audience bound to the Firebase project
    4. Non-empty subject (the uid)

    Returns:
        dict: Validated token claims

    Raises:
        TokenValidationError: If any validation fails
    """
    cfg = current_app.config["APP_CONFIG"]
    if not cfg.project_id:
        raise TokenValidationError("Firebase project id is not configured")

    try:
        signing_key = get_jwks_client().get_signing_key_from_jwt(token)
        claims = jwt.decode(
            token,
            signing_key.key,
            algorithms=["RS256"],
            audience=cfg.project_id,
            issuer=cfg.token_issuer,
            options={
                "verify_signature": True,
                "verify_exp": True,
                "verify_iat": True,
                "verify_aud": True,
                "verify_iss": True,
                "require": ["exp", "iat", "sub"],
            },
            leeway=5,
        )
    except ExpiredSignatureError:
        raise TokenValidationError("Token expired (exp claim)")
    except InvalidIssuerError as e:
        raise TokenValidationError(f"Invalid issuer: {e}")
    except InvalidAudienceError as e:
        raise TokenValidationError(f"Invalid audience: {e}")
    except InvalidSignatureError:
        raise TokenValidationError("Invalid signature")
    except DecodeError as e:
        raise TokenValidationError(f"Token decode error (malformed JWT): {e}")
    except PyJWKClientError as e:
        raise TokenValidationError(f"Signing key unavailable: {e}")
    except jwt.InvalidTokenError as e:
        raise TokenValidationError(f"Token validation failed: {e}")

    if not claims.get("sub"):
        raise TokenValidationError("Token has an empty subject")
    logger.debug("ID token validated (uid=%s)", claims["sub"])
    return claims


def resolve_caller() -> Optional[CallerIdentity]:
    """Resolve the caller for a callable request.

    Returns None when no token is presented. A presented but invalid token is
    rejected rather than treated as anonymous.

    Raises:
        ServiceError: UNAUTHENTICATED for an invalid token
    """
    token = get_bearer_token()
    if token is None:
        return None
    try:
        claims = validate_id_token(token)
    except TokenValidationError as e:
        logger.warning("ID token rejected (fp=%s): %s", token_fingerprint(token), e)
        raise ServiceError(ErrorKind.UNAUTHENTICATED, "Invalid auth token")
    return CallerIdentity.from_claims(claims)


def authenticate_request():
    """Verify the bearer token of an HTTP function request.

    Returns:
        (CallerIdentity, None) on success, (None, 401 response) otherwise
    """
    token = get_bearer_token()
    if token is None:
        return None, (jsonify({"error": "Missing Authorization bearer token"}), 401)
    try:
        claims = validate_id_token(token)
    except TokenValidationError as e:
        logger.warning("ID token rejected (fp=%s): %s", token_fingerprint(token), e)
        return None, (jsonify({"error": "Invalid auth token"}), 401)
    caller = CallerIdentity.from_claims(claims)
    g.caller = caller
    return caller, None


def require_id_token(fn):
    """
    Decorator requiring a valid Firebase ID token on an HTTP function.

    Responds 401 {"error": ...} when the token is missing or invalid;
    otherwise stores the CallerIdentity in g.caller.
    """
    @wraps(fn)
    def wrapper(*args, **kwargs):
        _, error_response = authenticate_request()
        if error_response is not None:
            return error_response
        return fn(*args, **kwargs)

    return wrapper


def get_caller() -> Optional[CallerIdentity]:
    """Get the caller stored by @require_id_token, or None."""
    return getattr(g, "caller", None)
