import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

import audit
import config
from db import get_db
from errors import DUPLICATE_MESSAGE
from models import AuditLog, Profile, UserRole
from schemas import ProfileOut, ProfileUpdate, UserWithRoles, RoleAssign, RoleName, AuditLogOut, AuditAction
from security import require_admin

log = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])


# ------------------------
# Admin: users
# ------------------------
@router.get("/users", response_model=list[ProfileOut])
def list_users(q: str = Query("", description="Filter by name or id"), db: Session = Depends(get_db)):
    """All profiles, newest first, optionally filtered by a case-insensitive term."""
    rows = db.execute(select(Profile).order_by(Profile.created_at.desc())).scalars().all()
    term = q.strip().lower()
    if not term:
        return rows
    return [p for p in rows if term in (p.display_name or "").lower() or term in p.id.lower()]


@router.put("/users/{user_id}", response_model=ProfileOut)
def update_user(user_id: str, body: ProfileUpdate, request: Request,
                admin: Profile = Depends(require_admin), db: Session = Depends(get_db)):
    p = db.get(Profile, user_id)
    if not p:
        raise HTTPException(404, "User not found")
    changes = body.model_dump(exclude_unset=True)
    before = {k: getattr(p, k) for k in changes}
    for field, value in changes.items():
        setattr(p, field, (value.strip() or None) if isinstance(value, str) else value)
    audit.record(db, user_id=admin.id, action="update", table_name="profiles", record_id=p.id,
                 old_values=before, new_values=changes, request=request)
    db.commit()
    return p


@router.delete("/users/{user_id}")
def delete_user(user_id: str, request: Request, admin: Profile = Depends(require_admin),
                db: Session = Depends(get_db)):
    """Delete a profile and everything it owns (roles, sessions, surveys, responses).

    Raises:
        HTTPException: 404 if unknown; 400 when an admin targets their own account.
    """
    if user_id == admin.id:
        raise HTTPException(400, "You cannot delete your own account")
    p = db.get(Profile, user_id)
    if not p:
        raise HTTPException(404, "User not found")
    audit.record(db, user_id=admin.id, action="delete", table_name="profiles", record_id=p.id,
                 old_values={"email": p.email, "display_name": p.display_name}, request=request)
    db.delete(p)
    db.commit()
    log.info("user %s deleted by %s", user_id, admin.id)
    return {"ok": True}


# ------------------------
# Admin: roles
# ------------------------
@router.get("/roles", response_model=list[UserWithRoles])
def list_roles(db: Session = Depends(get_db)):
    profiles = db.execute(select(Profile).order_by(Profile.created_at.desc())).scalars().all()
    return [UserWithRoles(user_id=p.id, email=p.email, display_name=p.display_name, roles=p.role_names)
            for p in profiles]


@router.post("/roles")
def assign_role(body: RoleAssign, request: Request, admin: Profile = Depends(require_admin),
                db: Session = Depends(get_db)):
    """Grant a role to a user.

    Raises:
        HTTPException: 404 if the user is unknown; 409 if already assigned.
    """
    if not db.get(Profile, body.user_id):
        raise HTTPException(404, "User not found")
    row = UserRole(user_id=body.user_id, role=body.role, assigned_by=admin.id)
    db.add(row)
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        raise HTTPException(409, DUPLICATE_MESSAGE)
    audit.record(db, user_id=admin.id, action="create", table_name="user_roles", record_id=row.id,
                 new_values={"user_id": body.user_id, "role": body.role}, request=request)
    db.commit()
    log.info("role %s granted to %s by %s", body.role, body.user_id, admin.id)
    return {"ok": True, "id": row.id}


@router.delete("/roles/{user_id}/{role}")
def revoke_role(user_id: str, role: RoleName, request: Request, admin: Profile = Depends(require_admin),
                db: Session = Depends(get_db)):
    row = db.execute(
        select(UserRole).where(UserRole.user_id == user_id, UserRole.role == role)
    ).scalar_one_or_none()
    if not row:
        raise HTTPException(404, "Role assignment not found")
    audit.record(db, user_id=admin.id, action="delete", table_name="user_roles", record_id=row.id,
                 old_values={"user_id": user_id, "role": role}, request=request)
    db.delete(row)
    db.commit()
    log.info("role %s revoked from %s by %s", role, user_id, admin.id)
    return {"ok": True}


# ------------------------
# Admin: audit trail
# ------------------------
@router.get("/audit", response_model=list[AuditLogOut])
def list_audit(action: Optional[AuditAction] = None, table_name: Optional[str] = None,
               limit: Optional[int] = Query(None, ge=1, le=1000), db: Session = Depends(get_db)):
    """Most recent audit records first, optionally filtered."""
    q = select(AuditLog).order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
    if action:
        q = q.where(AuditLog.action == action)
    if table_name:
        q = q.where(AuditLog.table_name == table_name)
    return db.execute(q.limit(limit or config.AUDIT_LOG_LIMIT)).scalars().all()
