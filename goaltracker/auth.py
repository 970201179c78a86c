import logging
from typing import Optional
from fastapi import Header
from google.auth.exceptions import GoogleAuthError, TransportError
from google.oauth2 import id_token
from google.auth.transport import requests as grequests
from config import GOOGLE_CLIENT_ID
from .errors import AuthorizationError, ConnectivityError, ForbiddenError

logger = logging.getLogger(__name__)


def verify_google_token(token: str, audience: str):
    try:
        idinfo = id_token.verify_oauth2_token(token, grequests.Request(), audience)
        return idinfo  # contains: sub, email, name, picture, etc.
    except TransportError as e:
        logger.error(f"Could not fetch Google certificates: {e}")
        raise ConnectivityError("Could not reach Google to verify your sign-in. Please try again.") from e
    except (ValueError, GoogleAuthError) as e:
        logger.warning(f"Token verification failed: {e}")
        return None


def authenticate(token: Optional[str]) -> dict:
    """Resolve a Google ID token into the signed-in user's claims."""
    if not token:
        raise AuthorizationError("Please sign in to continue.")
    user_info = verify_google_token(token, GOOGLE_CLIENT_ID)
    if not user_info:
        raise AuthorizationError()
    return user_info


def get_current_user(authorization: Optional[str] = Header(default=None)) -> dict:
    token = None
    if authorization and authorization.lower().startswith("bearer "):
        token = authorization[7:].strip()
    return authenticate(token)


def ensure_same_user(user_info: dict, user_id: str) -> None:
    if user_id != user_info["sub"]:
        raise ForbiddenError()
