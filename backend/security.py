import base64
import hashlib
import hmac
import json
import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy import select
from sqlalchemy.orm import Session

import config
from db import get_db
from models import AuthSession, Profile

log = logging.getLogger(__name__)


class URLSafeSerializer:
    """Tiny URL-safe HMAC serializer.

    Encodes/decodes JSON payloads with an HMAC-SHA256 signature:
    token = base64url(payload) + "." + base64url(signature).
    """

    def __init__(self, secret_key, salt=""):
        self.secret_key = (secret_key or "").encode("utf-8")
        self.salt = salt or ""

    def _b64(self, data: bytes) -> str:
        return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")

    def _unb64(self, s: str) -> bytes:
        s_bytes = s.encode("ascii")
        padding = b"=" * (-len(s_bytes) % 4)
        return base64.urlsafe_b64decode(s_bytes + padding)

    def _sign(self, payload: bytes) -> bytes:
        return hmac.new(self.secret_key + self.salt.encode("utf-8"), payload, hashlib.sha256).digest()

    def dumps(self, obj) -> str:
        """Serialize and sign a JSON-serializable value."""
        payload = json.dumps(obj, separators=(",", ":"), sort_keys=True).encode("utf-8")
        return f"{self._b64(payload)}.{self._b64(self._sign(payload))}"

    def loads(self, token: str):
        """Verify signature and deserialize an object.

        Raises:
            ValueError: If token format or signature is invalid.
        """
        try:
            payload_b64, sig_b64 = token.rsplit(".", 1)
            payload = self._unb64(payload_b64)
            sig = self._unb64(sig_b64)
        except (ValueError, UnicodeEncodeError):
            raise ValueError("Invalid token format")
        if not hmac.compare_digest(sig, self._sign(payload)):
            raise ValueError("Invalid signature")
        return json.loads(payload.decode("utf-8"))


signer = URLSafeSerializer(secret_key=config.SESSION_SECRET, salt="auth-session")


def _now_utc() -> datetime:
    """Return the current UTC time as an aware datetime."""
    return datetime.now(timezone.utc)


# ------------------------
# Passwords
# ------------------------
MIN_PASSWORD_LENGTH = 6
MAX_PASSWORD_BYTES = 72  # bcrypt ignores anything past this


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=config.BCRYPT_ROUNDS)).decode("ascii")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("ascii"))
    except ValueError:
        return False


def validate_password(password: str) -> None:
    if len(password or "") < MIN_PASSWORD_LENGTH:
        raise HTTPException(400, f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise HTTPException(400, f"Password must be at most {MAX_PASSWORD_BYTES} bytes")


# ------------------------
# Device fingerprint
# ------------------------
def fingerprint(request: Request) -> str:
    """Digest of the browser properties visible to the server."""
    user_agent = request.headers.get("user-agent", "")
    language = request.headers.get("accept-language", "")
    return hashlib.sha256(f"{user_agent}-{language}".encode("utf-8")).hexdigest()


# ------------------------
# Sessions
# ------------------------
def load_token_with_expiry(token: str) -> tuple[dict, bool]:
    """Decode a token and determine if it is expired.

    Returns:
        tuple[dict, bool]: (payload, expired_flag)

    Raises:
        ValueError: If token format/signature invalid.
    """
    data = signer.loads(token)
    exp = int(data.get("exp", 0) or 0)
    expired = bool(exp and _now_utc().timestamp() > exp)
    return data, expired


def issue_session(user: Profile, request: Request, db: Session) -> AuthSession:
    """Create a signed session token for a user and persist it."""
    expires_at = _now_utc() + timedelta(hours=config.SESSION_TTL_HOURS)
    token = signer.dumps({
        "uid": user.id,
        "nonce": uuid.uuid4().hex,
        "exp": int(expires_at.timestamp()),
    })
    row = AuthSession(user_id=user.id, token=token, is_active=True,
                      fingerprint=fingerprint(request), expires_at=expires_at)
    db.add(row)
    db.commit()
    return row


def resolve_session(token: str, request: Request, db: Session) -> AuthSession:
    """Validate a bearer token against the stored session.

    Raises:
        HTTPException: 401 if the token is invalid, expired, revoked, or was
            issued to another device.
    """
    try:
        data, expired = load_token_with_expiry(token)
    except ValueError:
        raise HTTPException(401, "Invalid session token")
    if expired:
        raise HTTPException(401, "Session expired")

    row = db.execute(select(AuthSession).where(AuthSession.token == token)).scalar_one_or_none()
    if not row or not row.is_active or row.user_id != data.get("uid"):
        raise HTTPException(401, "Session is no longer active")

    if config.SESSION_BIND_DEVICE and row.fingerprint and row.fingerprint != fingerprint(request):
        log.warning("session %s presented from another device, signing out", row.id)
        row.is_active = False
        db.commit()
        raise HTTPException(401, "Session started on another device")
    return row


def _bearer_token(authorization: str) -> str:
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer":
        return ""
    return token.strip()


def get_current_session(request: Request, authorization: str = Header(default=""),
                        db: Session = Depends(get_db)) -> AuthSession:
    token = _bearer_token(authorization)
    if not token:
        raise HTTPException(401, "Not authenticated")
    return resolve_session(token, request, db)


def get_current_user(session: AuthSession = Depends(get_current_session)) -> Profile:
    return session.user


def get_optional_user(request: Request, authorization: str = Header(default=""),
                      db: Session = Depends(get_db)) -> Optional[Profile]:
    """Current user for public routes; anonymous when no usable session is presented."""
    token = _bearer_token(authorization)
    if not token:
        return None
    try:
        return resolve_session(token, request, db).user
    except HTTPException as exc:
        log.info("ignoring unusable session on public route: %s", exc.detail)
        return None


# ------------------------
# Roles
# ------------------------
def has_role(user: Profile, *roles: str) -> bool:
    return any(r.role in roles for r in user.roles)


def require_creator(user: Profile = Depends(get_current_user)) -> Profile:
    if not has_role(user, "admin", "creator"):
        raise HTTPException(403, "You do not have permission to perform this action")
    return user


def require_admin(user: Profile = Depends(get_current_user)) -> Profile:
    if not has_role(user, "admin"):
        raise HTTPException(403, "Administrator role required")
    return user
