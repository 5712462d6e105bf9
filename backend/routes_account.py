import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy import select, or_, func
from sqlalchemy.orm import Session

import audit
import config
import crud
from db import get_db
from models import Survey, Response, Profile
from schemas import (Dashboard, DashboardStats, RecentActivity, SurveyOut, MyResponse,
                     ProfileOut, ProfileUpdate)
from security import get_current_user

log = logging.getLogger(__name__)

router = APIRouter(tags=["account"])

RECENT_ACTIVITY_SIZE = 5


def _as_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if dt is None or dt.tzinfo is not None:
        return dt
    return dt.replace(tzinfo=timezone.utc)


@router.get("/me/dashboard", response_model=Dashboard)
def dashboard(user: Profile = Depends(get_current_user), db: Session = Depends(get_db)):
    """KPIs over the caller's own surveys plus their latest survey activity."""
    surveys = db.execute(select(Survey.id, Survey.status).where(Survey.owner_id == user.id)).all()
    survey_ids = [sid for sid, _ in surveys]
    submitted = []
    if survey_ids:
        submitted = db.execute(
            select(Response.submitted_at).where(Response.survey_id.in_(survey_ids))
        ).scalars().all()

    week_ago = datetime.now(timezone.utc) - timedelta(days=config.RECENT_DAYS)
    stats = DashboardStats(
        total_surveys=len(surveys),
        total_responses=len(submitted),
        active_surveys=sum(1 for _, status in surveys if status == "published"),
        recent_responses=sum(1 for ts in submitted if ts and _as_utc(ts) >= week_ago),
    )

    recent = db.execute(
        select(Survey).where(Survey.owner_id == user.id).order_by(Survey.updated_at.desc()).limit(RECENT_ACTIVITY_SIZE)
    ).scalars().all()
    activity = [RecentActivity(
        id=s.id,
        survey_id=s.id,
        survey_title=s.title,
        action=crud.STATUS_LABELS.get(s.status, s.status),
        timestamp=s.updated_at,
        user_name=user.display_name or user.email,
    ) for s in recent]
    return Dashboard(stats=stats, recent_activity=activity)


@router.get("/available-surveys", response_model=list[SurveyOut])
def available_surveys(q: str = Query("", description="Search in title and description"),
                      user: Profile = Depends(get_current_user), db: Session = Depends(get_db)):
    """Published surveys anyone signed in can answer, newest first."""
    stmt = select(Survey).where(Survey.status == "published").order_by(Survey.created_at.desc())
    term = q.strip().lower()
    if term:
        pattern = f"%{term}%"
        stmt = stmt.where(or_(func.lower(Survey.title).like(pattern),
                              func.lower(func.coalesce(Survey.description, "")).like(pattern)))
    return db.execute(stmt).scalars().all()


@router.get("/me/responses", response_model=list[MyResponse])
def my_responses(user: Profile = Depends(get_current_user), db: Session = Depends(get_db)):
    rows = db.execute(
        select(Response, Survey)
        .join(Survey, Survey.id == Response.survey_id)
        .where(Response.user_id == user.id)
        .order_by(Response.submitted_at.desc(), Response.id.desc())
    ).all()
    return [MyResponse(
        id=r.id,
        survey_id=r.survey_id,
        submitted_at=r.submitted_at,
        survey_title=s.title or "Untitled survey",
        survey_description=s.description or "",
    ) for r, s in rows]


@router.get("/me/profile", response_model=ProfileOut)
def get_profile(user: Profile = Depends(get_current_user)):
    return user


@router.put("/me/profile", response_model=ProfileOut)
def update_profile(body: ProfileUpdate, request: Request, user: Profile = Depends(get_current_user),
                   db: Session = Depends(get_db)):
    """Update the caller's own profile fields (only those sent)."""
    changes = body.model_dump(exclude_unset=True)
    before = {k: getattr(user, k) for k in changes}
    for field, value in changes.items():
        setattr(user, field, (value.strip() or None) if isinstance(value, str) else value)
    audit.record(db, user_id=user.id, action="update", table_name="profiles", record_id=user.id,
                 old_values=before, new_values=changes, request=request)
    db.commit()
    return user
