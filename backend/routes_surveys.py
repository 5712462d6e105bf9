import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response as HTTPResponse
from sqlalchemy import select
from sqlalchemy.orm import Session

import audit
import crud
import qr
from db import get_db
from models import Survey, Response, Profile, _now_utc
from schemas import (SurveySave, SurveyOut, SurveyListItem, SurveyForm, SurveyDetail,
                     QuestionOut, ResponseOut, StatusChange, SurveyStatus)
from security import require_creator, has_role

log = logging.getLogger(__name__)

router = APIRouter(prefix="/surveys", tags=["surveys"])


def _validate_save(payload: SurveySave) -> str:
    title = (payload.title or "").strip()
    if not title:
        raise HTTPException(400, "Title is required")
    if not payload.questions:
        raise HTTPException(400, "Add at least one question")
    return title


# ------------------------
# Create / list
# ------------------------
@router.post("", response_model=SurveyOut)
def create_survey(payload: SurveySave, request: Request, user: Profile = Depends(require_creator),
                  db: Session = Depends(get_db)):
    """Create a survey with its questions, as draft or published.

    Raises:
        HTTPException: 400 if the title is blank or there are no questions.
    """
    title = _validate_save(payload)
    questions = crud.build_questions(payload.questions)
    slug = crud.unique_public_slug(db, title)

    s = Survey(owner_id=user.id, title=title, description=(payload.description or "").strip() or None,
               status=payload.status, slug=slug, public_slug=slug, cover_image_url=payload.cover_image_url)
    s.questions.extend(questions)
    db.add(s)
    db.flush()
    audit.record(db, user_id=user.id, action="create", table_name="surveys", record_id=s.id,
                 new_values=audit.survey_snapshot(s), request=request)
    if s.status == "published":
        audit.record(db, user_id=user.id, action="publish", table_name="surveys", record_id=s.id, request=request)
    db.commit()
    log.info("survey %s created by %s (%s)", s.id, user.id, s.status)
    return s


@router.get("", response_model=list[SurveyListItem])
def list_surveys(status: Optional[SurveyStatus] = None, user: Profile = Depends(require_creator),
                 db: Session = Depends(get_db)):
    """List surveys (all for admins, own for creators), most recently updated first."""
    q = select(Survey).order_by(Survey.updated_at.desc())
    if not has_role(user, "admin"):
        q = q.where(Survey.owner_id == user.id)
    if status:
        q = q.where(Survey.status == status)
    out = []
    for s in db.execute(q).scalars().all():
        item = SurveyListItem.model_validate(s)
        item.questions_count = crud.count_questions(db, s.id)
        item.responses_count = crud.count_responses(db, s.id)
        out.append(item)
    return out


# ------------------------
# Read / edit
# ------------------------
@router.get("/{survey_id}", response_model=SurveyDetail)
def survey_detail(survey_id: int, user: Profile = Depends(require_creator), db: Session = Depends(get_db)):
    """Survey with ordered questions, public URL and responses (newest first)."""
    s = crud.get_manageable_survey(db, survey_id, user)
    responses = db.execute(
        select(Response).where(Response.survey_id == s.id).order_by(Response.submitted_at.desc(), Response.id.desc())
    ).scalars().all()
    return SurveyDetail(
        survey=SurveyOut.model_validate(s),
        questions=[QuestionOut.model_validate(q) for q in crud.ordered_questions(db, s.id)],
        public_url=crud.public_url(s),
        responses_count=len(responses),
        responses=[ResponseOut.model_validate(r) for r in responses],
    )


@router.get("/{survey_id}/edit", response_model=SurveyForm)
def load_survey_form(survey_id: int, user: Profile = Depends(require_creator), db: Session = Depends(get_db)):
    s = crud.get_manageable_survey(db, survey_id, user)
    return SurveyForm(
        survey=SurveyOut.model_validate(s),
        questions=[QuestionOut.model_validate(q) for q in crud.ordered_questions(db, s.id)],
    )


@router.put("/{survey_id}", response_model=SurveyOut)
def update_survey(survey_id: int, payload: SurveySave, request: Request,
                  user: Profile = Depends(require_creator), db: Session = Depends(get_db)):
    """Overwrite a survey's fields and replace its whole question set.

    Existing questions (and the answers stored against them) are removed.
    """
    s = crud.get_manageable_survey(db, survey_id, user)
    title = _validate_save(payload)
    questions = crud.build_questions(payload.questions)
    before = audit.survey_snapshot(s)
    was_published = s.status == "published"

    s.title = title
    s.description = (payload.description or "").strip() or None
    s.status = payload.status
    s.cover_image_url = payload.cover_image_url
    s.updated_at = _now_utc()
    s.questions.clear()
    db.flush()
    s.questions.extend(questions)
    db.flush()

    audit.record(db, user_id=user.id, action="update", table_name="surveys", record_id=s.id,
                 old_values=before, new_values=audit.survey_snapshot(s), request=request)
    if s.status == "published" and not was_published:
        audit.record(db, user_id=user.id, action="publish", table_name="surveys", record_id=s.id, request=request)
    db.commit()
    log.info("survey %s updated by %s", s.id, user.id)
    return s


@router.patch("/{survey_id}/status", response_model=SurveyOut)
def change_status(survey_id: int, body: StatusChange, request: Request,
                  user: Profile = Depends(require_creator), db: Session = Depends(get_db)):
    """Close a published survey or (re)open a draft/closed one.

    Raises:
        HTTPException: 409 if the transition is not allowed.
    """
    s = crud.get_manageable_survey(db, survey_id, user)
    if body.status not in crud.STATUS_TRANSITIONS.get(s.status, set()):
        raise HTTPException(409, f"Cannot change status from {s.status} to {body.status}")
    old = s.status
    s.status = body.status
    audit.record(db, user_id=user.id, action="publish" if body.status == "published" else "update",
                 table_name="surveys", record_id=s.id, old_values={"status": old},
                 new_values={"status": body.status}, request=request)
    db.commit()
    log.info("survey %s status %s -> %s", s.id, old, s.status)
    return s


@router.post("/{survey_id}/duplicate", response_model=SurveyOut)
def duplicate_survey(survey_id: int, request: Request, user: Profile = Depends(require_creator),
                     db: Session = Depends(get_db)):
    """Copy a survey (questions and options) into a new draft owned by the caller."""
    original = crud.get_manageable_survey(db, survey_id, user)
    title = f"{original.title} (Copy)"
    slug = crud.unique_public_slug(db, title)
    s = Survey(owner_id=user.id, title=title, description=original.description, status="draft",
               slug=slug, public_slug=slug, cover_image_url=original.cover_image_url)
    s.questions.extend(crud.copy_questions(crud.ordered_questions(db, original.id)))
    db.add(s)
    db.flush()
    audit.record(db, user_id=user.id, action="create", table_name="surveys", record_id=s.id,
                 new_values={**audit.survey_snapshot(s), "copied_from": original.id}, request=request)
    db.commit()
    return s


@router.delete("/{survey_id}")
def delete_survey(survey_id: int, request: Request, user: Profile = Depends(require_creator),
                  db: Session = Depends(get_db)):
    """Hard-delete a survey and all related rows."""
    s = crud.get_manageable_survey(db, survey_id, user)
    audit.record(db, user_id=user.id, action="delete", table_name="surveys", record_id=s.id,
                 old_values=audit.survey_snapshot(s), request=request)
    db.delete(s)
    db.commit()
    log.info("survey %s deleted by %s", survey_id, user.id)
    return {"ok": True}


# ------------------------
# QR code
# ------------------------
@router.get("/{survey_id}/qr.png")
def survey_qr(survey_id: int, download: bool = Query(False), user: Profile = Depends(require_creator),
              db: Session = Depends(get_db)):
    """QR code of the public link; `download=1` returns the printable card."""
    s = crud.get_manageable_survey(db, survey_id, user)
    url = crud.public_url(s)
    if download:
        return HTTPResponse(content=qr.render_card(s.title, url), media_type="image/png",
                            headers={"Content-Disposition": f"attachment; filename=qr-{s.slug}.png"})
    return HTTPResponse(content=qr.render_png(url), media_type="image/png")
