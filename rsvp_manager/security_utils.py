"""
Security Utilities
Password hashing, access tokens, invitation tokens, credential encryption
and input sanitization
"""

import base64
import hashlib
import logging
import secrets
from datetime import datetime, timedelta
from typing import Any, Optional

import bleach
from cryptography.fernet import Fernet, InvalidToken
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer
from jose import JWTError
from jose import jwt as jose_jwt
from passlib.context import CryptContext

from .config import ACCESS_TOKEN_EXPIRE_MINUTES, SECRET_KEY

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"

# Password hashing context
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# Fernet needs a 32-byte urlsafe base64 key; derive one from SECRET_KEY
_fernet_key = base64.urlsafe_b64encode(hashlib.sha256(SECRET_KEY.encode()).digest())
cipher_suite = Fernet(_fernet_key)

INVITE_TOKEN_SALT = "collaborator-invite"
INVITE_TOKEN_MAX_AGE = 7 * 24 * 3600


# ============================================================================
# PASSWORD SECURITY
# ============================================================================


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify password against bcrypt hash"""
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except Exception as e:
        logger.error(f"Password verification error: {e}")
        return False


# ============================================================================
# TOKENS
# ============================================================================


def create_access_token(user_id: int, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a JWT access token

    Args:
        user_id: Subject of the token
        expires_delta: Token lifetime (default ACCESS_TOKEN_EXPIRE_MINUTES)
    """
    expire = datetime.utcnow() + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode = {"sub": str(user_id), "exp": expire, "type": "access"}
    return jose_jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def verify_access_token(token: str) -> Optional[dict[str, Any]]:
    """
    Verify and decode a JWT token

    Returns:
        Decoded payload if valid, None if invalid or expired
    """
    try:
        return jose_jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError as e:
        logger.warning(f"JWT verification failed: {e}")
        return None


def generate_invite_token(event_id: int, email: str) -> str:
    """Signed, time-limited token emailed to an invited collaborator"""
    serializer = URLSafeTimedSerializer(SECRET_KEY)
    payload = {"event_id": event_id, "email": email, "nonce": secrets.token_hex(4)}
    return serializer.dumps(payload, salt=INVITE_TOKEN_SALT)


def verify_invite_token(token: str, max_age: int = INVITE_TOKEN_MAX_AGE) -> Optional[dict[str, Any]]:
    serializer = URLSafeTimedSerializer(SECRET_KEY)
    try:
        return serializer.loads(token, salt=INVITE_TOKEN_SALT, max_age=max_age)
    except SignatureExpired:
        logger.warning("Invite token expired")
        return None
    except BadSignature:
        logger.warning("Invalid invite token signature")
        return None


# ============================================================================
# CREDENTIAL ENCRYPTION
# ============================================================================


def encrypt_credential(value: str) -> str:
    return cipher_suite.encrypt(value.encode()).decode()


def decrypt_credential(encrypted_value: str) -> str:
    """Decrypt a stored credential"""
    try:
        return cipher_suite.decrypt(encrypted_value.encode()).decode()
    except InvalidToken:
        logger.error("❌ Failed to decrypt credential - SECRET_KEY changed?")
        raise


def mask_sensitive_data(data: Optional[str], visible_chars: int = 4) -> Optional[str]:
    """
    Mask sensitive data for logging/display

    Returns:
        Masked string with only the last visible_chars characters shown
    """
    if not data:
        return data
    if len(data) <= visible_chars:
        return "*" * len(data)
    return "*" * (len(data) - visible_chars) + data[-visible_chars:]


# ============================================================================
# INPUT SANITIZATION
# ============================================================================

RICH_TEXT_TAGS = ["p", "br", "strong", "em", "u", "a", "ul", "ol", "li", "h1", "h2", "h3"]


def sanitize_text(value: Optional[str]) -> Optional[str]:
    """Strip all markup from free text submitted by guests"""
    if value is None:
        return None
    return bleach.clean(value, tags=[], attributes={}, strip=True).strip()


def sanitize_html(html_content: Optional[str]) -> Optional[str]:
    """Allow a small safe subset of tags (RSVP page welcome message)"""
    if html_content is None:
        return None
    return bleach.clean(
        html_content,
        tags=RICH_TEXT_TAGS,
        attributes={"a": ["href", "title", "target"]},
        strip=True,
    )
