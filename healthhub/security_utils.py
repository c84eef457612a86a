"""
Security Utilities
PIN hashing, session tokens, input sanitization and payload signing
"""

import hashlib
import hmac
import logging
import re
import secrets
from typing import Any, Optional

# Input sanitization
import bleach

# PIN hashing
from passlib.context import CryptContext

from .shared.clock import utcnow

logger = logging.getLogger(__name__)

BCRYPT_ROUNDS = 10
SESSION_TOKEN_BYTES = 32

# PIN hashing context
pin_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=BCRYPT_ROUNDS)


# ============================================================================
# PIN SECURITY
# ============================================================================


def hash_pin(pin: str) -> str:
    """Hash an employee PIN using bcrypt"""
    return pin_context.hash(pin)


def verify_pin(pin: str, pin_hash: str) -> bool:
    """Verify a PIN against its bcrypt hash"""
    try:
        return pin_context.verify(pin, pin_hash)
    except (ValueError, TypeError) as e:
        logger.error(f"PIN verification error: {e}")
        return False


def generate_random_pin(length: int = 4) -> str:
    """Generate a numeric PIN for initial setup or reset"""
    return "".join(secrets.choice("0123456789") for _ in range(length))


# ============================================================================
# TOKEN GENERATION
# ============================================================================


def generate_session_token() -> str:
    """Generate a cryptographically secure hex session token"""
    return secrets.token_hex(SESSION_TOKEN_BYTES)


def constant_time_compare(a: str, b: str) -> bool:
    """Compare two strings in constant time to prevent timing attacks"""
    if not a or not b:
        return False
    return hmac.compare_digest(a.encode(), b.encode())


# ============================================================================
# INPUT SANITIZATION
# ============================================================================


def sanitize_text(content: Optional[str]) -> Optional[str]:
    """
    Strip all markup from user supplied text (chat messages, notes).

    Entities produced by bleach for bare '&', '<' and '>' are left as is so the
    stored value is always safe to render.
    """
    if content is None:
        return None
    return bleach.clean(content, tags=[], attributes={}, strip=True).strip()


_UNSAFE_FILENAME_CHARS = re.compile(r"[^a-zA-Z0-9.-]")


def safe_storage_name(filename: str) -> str:
    """Make a filename safe to embed in an object storage key"""
    return _UNSAFE_FILENAME_CHARS.sub("_", filename or "file")


# ============================================================================
# PAYLOAD SIGNING
# ============================================================================


def compute_hmac_sha256(secret: str, payload: bytes) -> str:
    """Compute HMAC-SHA256 signature of payload"""
    return hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()


def signature_header(secret: str, payload: bytes) -> str:
    """Value of the X-Webhook-Signature header sent to integrations"""
    return f"sha256={compute_hmac_sha256(secret, payload)}"


def verify_signature_header(secret: str, payload: bytes, header: Optional[str]) -> bool:
    if not header or not header.startswith("sha256="):
        return False
    return constant_time_compare(header, signature_header(secret, payload))


# ============================================================================
# HEADERS & AUDIT LOGGING
# ============================================================================


def get_security_headers() -> dict[str, str]:
    """Recommended security headers for API responses"""
    return {
        "X-Content-Type-Options": "nosniff",
        "X-Frame-Options": "DENY",
        "Referrer-Policy": "strict-origin-when-cross-origin",
        "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
        "Permissions-Policy": "geolocation=(), microphone=(), camera=()",
    }


def log_security_event(
    event_type: str,
    user_id: Optional[str] = None,
    ip_address: Optional[str] = None,
    details: Optional[dict[str, Any]] = None,
):
    """
    Log security-related events for audit trail

    Args:
        event_type: Type of security event (employee_login, employee_lockout, ...)
        user_id: Actor identifier
        ip_address: Client IP address
        details: Additional event details
    """
    log_entry = {
        "timestamp": utcnow().isoformat(),
        "event_type": event_type,
        "user_id": user_id,
        "ip_address": ip_address,
        "details": details or {},
    }
    logger.info(f"SECURITY_EVENT: {log_entry}")
