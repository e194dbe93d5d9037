# storefront/auth.py
import logging
from typing import Any, Callable, Dict, Optional

from fastapi import Depends, Header, HTTPException
from firebase_admin import auth
from starlette.concurrency import run_in_threadpool

from .core import parse_authorization_header
from .database import get_token_verifier

logger = logging.getLogger(__name__)

TOKEN_ERRORS = (ValueError, auth.InvalidIdTokenError, auth.UserDisabledError, auth.CertificateFetchError)


async def _verify(verify: Callable[[str], Dict[str, Any]], token: str, purpose: str) -> Optional[Dict[str, Any]]:
    """Decoded claims, or None when the token is rejected or the verifier fails."""
    try:
        return await run_in_threadpool(verify, token)
    except TOKEN_ERRORS as e:
        logger.warning("rejected %s token: %s", purpose, e)
    except Exception:
        logger.exception("token verification failed for %s", purpose)
    return None


async def require_admin(
    authorization: Optional[str] = Header(None),
    verify: Callable[[str], Dict[str, Any]] = Depends(get_token_verifier),
) -> Dict[str, Any]:
    token = parse_authorization_header(authorization)
    if not token:
        raise HTTPException(status_code=401, detail="Missing admin authentication. Sign in again.")

    claims = await _verify(verify, token, "admin")
    if claims is None:
        raise HTTPException(status_code=401, detail="Invalid or expired session.")
    return claims


async def require_customer(
    authorization: Optional[str] = Header(None),
    verify: Callable[[str], Dict[str, Any]] = Depends(get_token_verifier),
) -> Dict[str, Any]:
    token = parse_authorization_header(authorization)
    if not token:
        raise HTTPException(status_code=401, detail="Missing authentication token.")

    claims = await _verify(verify, token, "account")
    if claims is None:
        raise HTTPException(status_code=401, detail="Invalid or expired session.")
    return {"uid": claims.get("uid"), "email": claims.get("email")}


async def optional_customer(
    authorization: Optional[str] = Header(None),
    verify: Callable[[str], Dict[str, Any]] = Depends(get_token_verifier),
) -> Dict[str, Any]:
    """Decoded claims of a shopper's token, or {} when absent or unverifiable."""
    token = parse_authorization_header(authorization)
    if not token:
        return {}
    claims = await _verify(verify, token, "checkout")
    if claims is None:
        return {}
    return {"uid": claims.get("uid"), "email": claims.get("email")}
