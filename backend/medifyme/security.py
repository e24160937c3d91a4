# medifyme/security.py
#
# This module handles security-related functions: exchanging an OAuth access
# token for the provider's profile, and signing video-meeting tokens.

import logging
import os
import time
from typing import Any, Dict, Optional

import httpx
import jwt as pyjwt

from .errors import InvalidCredentialsError, ProviderError

logger = logging.getLogger(__name__)

# --- Configuration ---
GOOGLE_USERINFO_URL = os.getenv("GOOGLE_USERINFO_URL", "https://www.googleapis.com/oauth2/v3/userinfo")

VIDEOSDK_API_KEY = os.getenv("VIDEOSDK_API_KEY")
VIDEOSDK_SECRET_KEY = os.getenv("VIDEOSDK_SECRET_KEY")

# --- Constants ---
JWT_ALGORITHM = "HS256"
MEET_TOKEN_EXPIRY_MINUTES = 120
MEET_PERMISSIONS = ["allow_join", "allow_mod"]


async def fetch_google_userinfo(access_token: str, client: Optional[httpx.AsyncClient] = None) -> Dict[str, Any]:
    """
    Exchanges a Google access token for `{name, email, photo}`.
    Raises InvalidCredentialsError on any network or provider failure.
    """
    headers = {"Authorization": f"Bearer {access_token}"}
    try:
        if client is None:
            async with httpx.AsyncClient() as owned_client:
                response = await owned_client.get(GOOGLE_USERINFO_URL, headers=headers)
        else:
            response = await client.get(GOOGLE_USERINFO_URL, headers=headers)
        response.raise_for_status()
        data = response.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.warning("AUTH: Userinfo lookup failed: %r", e)
        raise InvalidCredentialsError("Invalid access token!!!!")

    if not data.get("email"):
        logger.warning("AUTH: Userinfo response carried no email")
        raise InvalidCredentialsError("Invalid access token!!!!")

    return {
        "name": data.get("name"),
        "email": data["email"],
        "photo": data.get("picture"),
    }


def create_meet_token(api_key: Optional[str] = None, secret_key: Optional[str] = None) -> str:
    """Signs a video-meeting token valid for MEET_TOKEN_EXPIRY_MINUTES."""
    api_key = api_key if api_key is not None else VIDEOSDK_API_KEY
    secret_key = secret_key if secret_key is not None else VIDEOSDK_SECRET_KEY
    if not secret_key:
        logger.error("MEET: VIDEOSDK_SECRET_KEY is not configured")
        raise ProviderError("Failed to generate token")

    now = int(time.time())
    payload = {
        "apikey": api_key,
        "permissions": MEET_PERMISSIONS,
        "iat": now,
        "exp": now + MEET_TOKEN_EXPIRY_MINUTES * 60,
    }
    try:
        token = pyjwt.encode(payload, secret_key, algorithm=JWT_ALGORITHM)
    except pyjwt.PyJWTError as e:
        logger.error("MEET: Error generating token: %r", e)
        raise ProviderError("Failed to generate token")
    logger.info("JWT: Generated meeting token")
    return token
