import base64
import json
import logging
import time
from typing import Optional

import httpx
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding
from cryptography.x509 import load_pem_x509_certificate
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from .config import FIREBASE_PROJECT_ID
from .database import get_db
from .models import ProviderStaff, User, UserRole
from .shared.errors import Unauthorized

logger = logging.getLogger(__name__)

security = HTTPBearer()

GOOGLE_KEYS_URL = (
    "https://www.googleapis.com/robot/v1/metadata/x509/securetoken@system.gserviceaccount.com"
)

# Cache for Google's public keys
_cached_keys = None


def _b64decode(segment: str) -> bytes:
    padding_len = 4 - len(segment) % 4
    return base64.urlsafe_b64decode(segment + ("=" * padding_len if padding_len != 4 else ""))


async def get_google_public_keys(refresh: bool = False):
    """Fetch Google's public keys for Firebase token verification"""
    global _cached_keys
    if _cached_keys and not refresh:
        return _cached_keys

    try:
        async with httpx.AsyncClient() as client:
            response = await client.get(GOOGLE_KEYS_URL)
        if response.status_code == 200:
            _cached_keys = response.json()
            logger.info(f"✅ Fetched {len(_cached_keys)} Google public keys")
            return _cached_keys
        logger.error(f"❌ Failed to fetch Google public keys: HTTP {response.status_code}")
    except httpx.HTTPError as e:
        logger.error(f"❌ Error fetching Google public keys: {str(e)}")
    return None


async def verify_firebase_token(token: str) -> dict:
    """
    Verify a Firebase ID token with full signature verification against
    Google's published certificates, then check audience, issuer and expiry.
    """
    if not FIREBASE_PROJECT_ID:
        logger.error("❌ FIREBASE_PROJECT_ID not configured")
        raise HTTPException(status_code=500, detail="Identity provider not configured")

    parts = token.split(".")
    if len(parts) != 3:
        raise HTTPException(status_code=401, detail="Invalid token format")
    header_b64, payload_b64, signature_b64 = parts

    try:
        header = json.loads(_b64decode(header_b64))
        payload = json.loads(_b64decode(payload_b64))
        signature = _b64decode(signature_b64)
    except (ValueError, json.JSONDecodeError) as e:
        raise HTTPException(status_code=401, detail="Invalid token encoding") from e

    if header.get("alg") != "RS256" or not header.get("kid"):
        logger.error(f"❌ Invalid token header: alg={header.get('alg')}")
        raise HTTPException(status_code=401, detail="Invalid token header")

    kid = header["kid"]
    public_keys = await get_google_public_keys()
    if not public_keys or kid not in public_keys:
        logger.warning(f"⚠️ Key ID {kid} not found in public keys, refreshing")
        public_keys = await get_google_public_keys(refresh=True)
        if not public_keys or kid not in public_keys:
            raise HTTPException(status_code=401, detail="Unable to verify token signature")

    cert = load_pem_x509_certificate(public_keys[kid].encode())
    try:
        cert.public_key().verify(
            signature, f"{header_b64}.{payload_b64}".encode(), padding.PKCS1v15(), hashes.SHA256()
        )
    except Exception as e:
        logger.error(f"❌ Token signature verification failed: {str(e)}")
        raise HTTPException(status_code=401, detail="Invalid token signature") from e

    if payload.get("aud") != FIREBASE_PROJECT_ID:
        raise HTTPException(status_code=401, detail="Invalid token audience")
    if payload.get("iss") != f"https://securetoken.google.com/{FIREBASE_PROJECT_ID}":
        raise HTTPException(status_code=401, detail="Invalid token issuer")
    if payload.get("exp", 0) < time.time():
        raise HTTPException(
            status_code=401,
            detail="Token has expired. Please refresh your session.",
            headers={"X-Token-Expired": "true"},
        )
    if payload.get("iat", 0) > time.time() + 60:  # Allow 60 seconds clock skew
        raise HTTPException(status_code=401, detail="Invalid token")

    return payload


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    """Resolve the authenticated actor. The identity provider's role claim is trusted as given."""
    decoded_token = await verify_firebase_token(credentials.credentials)

    firebase_uid = decoded_token.get("sub") or decoded_token.get("user_id")
    if not firebase_uid:
        raise HTTPException(status_code=401, detail="Invalid token claims")

    role = decoded_token.get("role")
    if role not in UserRole.ALL:
        role = UserRole.PARENT

    user = db.query(User).filter(User.firebase_uid == firebase_uid).first()
    if user:
        if user.role != role:
            logger.info(f"🔄 Updating role for user {user.id}: {user.role} -> {role}")
            user.role = role
            db.commit()
        return user

    logger.info(f"🆕 Creating new user: {decoded_token.get('email')}")
    user = User(
        firebase_uid=firebase_uid,
        email=decoded_token.get("email") or f"{firebase_uid}@users.carebook.invalid",
        full_name=decoded_token.get("name"),
        role=role,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


# ============================================================================
# ROLE AND TENANT RESOLUTION
# ============================================================================


def require_requester(user: Optional[User]) -> User:
    """Only parents and patients create and manage their own bookings"""
    if user is None or user.role not in UserRole.REQUESTER_ROLES:
        raise Unauthorized()
    return user


def resolve_staff_provider_id(
    db: Session, user: Optional[User], staff_roles: Optional[tuple[str, ...]] = None
) -> int:
    """
    Return the provider the staff member acts for.

    Raises:
        Unauthorized: when the user is not provider staff or has no provider
    """
    if user is None or user.role not in UserRole.STAFF_ROLES:
        raise Unauthorized()

    query = db.query(ProviderStaff.provider_id).filter(ProviderStaff.user_id == user.id)
    if staff_roles:
        query = query.filter(ProviderStaff.role.in_(staff_roles))

    membership = query.order_by(ProviderStaff.id).first()
    if membership is None:
        logger.warning(f"⚠️ Staff user {user.id} has no provider association")
        raise Unauthorized("No provider found for this account")
    return membership.provider_id
