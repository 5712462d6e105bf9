import logging

from fastapi import APIRouter, Depends, HTTPException, Response as HTTPResponse
from sqlalchemy import select
from sqlalchemy.orm import Session

import crud
import results
from db import get_db
from models import Survey, Response, Profile
from schemas import ResponseDetail, AnswerDetail, OptionOut
from security import get_current_user, require_creator

log = logging.getLogger(__name__)

router = APIRouter(prefix="/surveys", tags=["responses"])


@router.get("/{survey_id}/responses/{response_id}", response_model=ResponseDetail)
def response_detail(survey_id: int, response_id: int, user: Profile = Depends(get_current_user),
                    db: Session = Depends(get_db)):
    """One response with every question of the survey and its answer (if any).

    Visible to the survey owner, admins, and the respondent.

    Raises:
        HTTPException: 404 if missing or not visible to the caller.
    """
    s = db.get(Survey, survey_id)
    r = db.get(Response, response_id)
    if not s or not r or r.survey_id != s.id:
        raise HTTPException(404, "Response not found")
    if not (crud.can_manage(user, s) or (r.user_id and r.user_id == user.id)):
        raise HTTPException(404, "Response not found")

    by_q = {it.question_id: it for it in r.items}
    answers = []
    for q in crud.ordered_questions(db, s.id):
        it = by_q.get(q.id)
        answers.append(AnswerDetail(
            question_id=q.id,
            question_text=q.question_text,
            question_type=q.type,
            answer_text=it.value_text if it else None,
            answer_numeric=it.value_numeric if it else None,
            answer_json=it.value_json if it else None,
            options=[OptionOut.model_validate(o) for o in q.options_list],
        ))

    user_name = None
    if r.user_id:
        user_name = (r.user.display_name if r.user else None) or "Unnamed user"
    return ResponseDetail(id=r.id, survey_id=s.id, survey_title=s.title, submitted_at=r.submitted_at,
                          user_id=r.user_id, user_name=user_name, answers=answers)


@router.get("/{survey_id}/results")
def survey_results(survey_id: int, user: Profile = Depends(require_creator), db: Session = Depends(get_db)):
    """Aggregated answers per question."""
    s = crud.get_manageable_survey(db, survey_id, user)
    return results.survey_results(db, s.id, crud.ordered_questions(db, s.id))


@router.get("/{survey_id}/export.csv")
def export_csv(survey_id: int, user: Profile = Depends(require_creator), db: Session = Depends(get_db)):
    """Export survey responses as CSV (sorted by response, then question order).

    Returns:
        Response: text/csv attachment `survey_<id>_responses.csv`.
    """
    s = crud.get_manageable_survey(db, survey_id, user)
    user_ids = {uid for uid in db.execute(
        select(Response.user_id).where(Response.survey_id == s.id, Response.user_id.is_not(None))
    ).scalars().all()}
    names = {}
    if user_ids:
        names = {p.id: p.display_name or p.email for p in
                 db.execute(select(Profile).where(Profile.id.in_(user_ids))).scalars().all()}
    df = results.export_frame(db, s.id, crud.ordered_questions(db, s.id), names)
    csv_bytes = df.to_csv(index=False).encode("utf-8")
    log.info("exported %d rows for survey %s", len(df), s.id)
    return HTTPResponse(content=csv_bytes, media_type="text/csv",
                        headers={"Content-Disposition": f"attachment; filename=survey_{s.id}_responses.csv"})
