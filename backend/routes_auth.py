import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy import select
from sqlalchemy.orm import Session

import config
from db import get_db
from models import AuthSession, Profile, UserRole
from schemas import SignUp, SignIn, SessionOut, AuthUser, ProfileOut
from security import (issue_session, get_current_session, get_current_user,
                      hash_password, verify_password, validate_password)

log = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def _normalize_email(email: str) -> str:
    email = (email or "").strip().lower()
    if "@" not in email or email.startswith("@") or email.endswith("@"):
        raise HTTPException(400, "A valid email is required")
    return email


def auth_user(user: Profile) -> AuthUser:
    roles = user.role_names
    return AuthUser(
        id=user.id,
        email=user.email,
        profile=ProfileOut.model_validate(user),
        roles=roles,
        is_admin="admin" in roles,
        is_creator="creator" in roles,
        is_viewer="viewer" in roles,
    )


def _session_out(row: AuthSession) -> SessionOut:
    return SessionOut(access_token=row.token, expires_at=row.expires_at, user=auth_user(row.user))


@router.post("/signup", response_model=SessionOut)
def sign_up(body: SignUp, request: Request, db: Session = Depends(get_db)):
    """Register an account with the default viewer role and sign it in.

    Raises:
        HTTPException: 400 on invalid email/password; 409 if the email is taken.
    """
    email = _normalize_email(body.email)
    validate_password(body.password)
    if db.execute(select(Profile.id).where(Profile.email == email)).first():
        raise HTTPException(409, "An account with this email already exists")

    user = Profile(email=email, password_hash=hash_password(body.password),
                   display_name=(body.display_name or "").strip() or None)
    db.add(user)
    db.flush()
    db.add(UserRole(user_id=user.id, role="viewer"))
    if email in config.ADMIN_EMAILS:
        db.add(UserRole(user_id=user.id, role="admin"))
    db.commit()
    log.info("new account %s", user.id)
    return _session_out(issue_session(user, request, db))


@router.post("/signin", response_model=SessionOut)
def sign_in(body: SignIn, request: Request, db: Session = Depends(get_db)):
    """Password sign-in; returns a bearer token bound to this device."""
    email = (body.email or "").strip().lower()
    user = db.execute(select(Profile).where(Profile.email == email)).scalar_one_or_none()
    if not user or not verify_password(body.password or "", user.password_hash):
        log.info("failed sign-in for %s", email)
        raise HTTPException(401, "Invalid email or password")
    row = issue_session(user, request, db)
    log.info("sign-in %s (session %s)", user.id, row.id)
    return _session_out(row)


@router.get("/session", response_model=AuthUser)
def get_session(user: Profile = Depends(get_current_user)):
    return auth_user(user)


@router.post("/signout")
def sign_out(session: AuthSession = Depends(get_current_session), db: Session = Depends(get_db)):
    session.is_active = False
    db.commit()
    log.info("sign-out %s (session %s)", session.user_id, session.id)
    return {"ok": True}
