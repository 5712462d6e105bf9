import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy import select
from sqlalchemy.orm import Session

import crud
from audit import client_ip
from db import get_db
from models import Survey, SurveyQuestion, Response, ResponseItem, Profile
from schemas import PublicSurvey, SurveyOut, QuestionOut, SubmitResponse
from security import get_optional_user

log = logging.getLogger(__name__)

router = APIRouter(prefix="/public", tags=["public"])

CLOSED_MESSAGE = "This survey has been closed and no longer accepts responses"
NOT_READY_MESSAGE = "This survey is not available yet"


def get_open_survey(slug: str, db: Session) -> Survey:
    """Resolve a public slug to a survey that accepts responses.

    Raises:
        HTTPException: 404 if unknown; 403 if the survey is a draft or closed.
    """
    s = db.execute(select(Survey).where(Survey.public_slug == slug)).scalar_one_or_none()
    if not s:
        raise HTTPException(404, "Survey not found")
    if s.status != "published":
        raise HTTPException(403, CLOSED_MESSAGE if s.status == "closed" else NOT_READY_MESSAGE)
    return s


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple)):
        return len(value) == 0
    return False


def build_item(q: SurveyQuestion, value: Any) -> ResponseItem:
    """Store an answer in the column its question type uses.

    text/single -> value_text, likert -> value_numeric, multiple -> value_json.

    Raises:
        HTTPException: 400 if a choice is not one of the question's options.
    """
    allowed = {o.value for o in q.options_list}
    n = q.order_index + 1

    if q.type == "multiple":
        values = value if isinstance(value, (list, tuple)) else [value]
        values = [str(v) for v in values]
        bad = [v for v in values if v not in allowed]
        if bad:
            raise HTTPException(400, f"Question {n}: invalid option(s) {bad}")
        return ResponseItem(question_id=q.id, value_json={"values": values})

    if isinstance(value, (list, tuple, dict)):
        raise HTTPException(400, f"Question {n} takes a single answer")
    text = str(value).strip()

    if q.type == "text":
        return ResponseItem(question_id=q.id, value_text=text)
    if text not in allowed:
        raise HTTPException(400, f"Question {n}: invalid option {text!r}")
    if q.type == "likert":
        try:
            return ResponseItem(question_id=q.id, value_numeric=int(text))
        except ValueError:
            raise HTTPException(400, f"Question {n}: likert value must be an integer")
    return ResponseItem(question_id=q.id, value_text=text)


# ------------------------
# Public: load survey by slug
# ------------------------
@router.get("/surveys/{slug}", response_model=PublicSurvey)
def load_public_survey(slug: str, db: Session = Depends(get_db)):
    """Survey content for respondents arriving through the public link / QR code."""
    s = get_open_survey(slug, db)
    return PublicSurvey(
        survey=SurveyOut.model_validate(s),
        questions=[QuestionOut.model_validate(q) for q in crud.ordered_questions(db, s.id)],
    )


# ------------------------
# Public: submit
# ------------------------
@router.post("/surveys/{slug}/responses")
def submit_response(slug: str, body: SubmitResponse, request: Request,
                    user: Optional[Profile] = Depends(get_optional_user), db: Session = Depends(get_db)):
    """Record one submission, anonymous unless a valid session is presented.

    Returns:
        dict: {"ok": True, "response_id": int}

    Raises:
        HTTPException: 400 on unanswered required questions, unknown questions
            or invalid choices; 403/404 as for loading.
    """
    s = get_open_survey(slug, db)
    questions = {q.id: q for q in crud.ordered_questions(db, s.id)}

    unknown = sorted(qid for qid in body.answers if qid not in questions)
    if unknown:
        raise HTTPException(400, f"Unknown question id(s) for this survey: {unknown}")

    missing = [q.order_index + 1 for q in questions.values()
               if q.required and _is_blank(body.answers.get(q.id))]
    if missing:
        raise HTTPException(400, f"Please answer all required questions (missing: {missing})")

    items = [build_item(questions[qid], value) for qid, value in body.answers.items() if not _is_blank(value)]
    if not items:
        raise HTTPException(400, "No answers to submit")

    resp = Response(survey_id=s.id, user_id=user.id if user else None,
                    ip_address=client_ip(request), user_agent=request.headers.get("user-agent"))
    resp.items.extend(items)
    db.add(resp)
    db.commit()
    log.info("response %s submitted to survey %s (%s)", resp.id, s.id, "user" if user else "anonymous")
    return {"ok": True, "response_id": resp.id}
