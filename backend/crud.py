# Shared survey queries and builders used by the route modules
import re
import secrets
import time
import unicodedata
from typing import Iterable, Optional

from fastapi import HTTPException
from sqlalchemy import select, func
from sqlalchemy.orm import Session

import config
from models import Survey, SurveyQuestion, SurveyOption, Response, Profile
from schemas import QuestionIn
from security import has_role

SLUG_BASE_MAX = 50

LIKERT_DEFAULT = [
    ("Strongly disagree", "1"),
    ("Disagree", "2"),
    ("Neutral", "3"),
    ("Agree", "4"),
    ("Strongly agree", "5"),
]

STATUS_LABELS = {"published": "Published", "draft": "Draft", "closed": "Closed"}

# allowed lifecycle moves for the status endpoint
STATUS_TRANSITIONS = {
    "draft": {"published"},
    "published": {"closed"},
    "closed": {"published"},
}

_B36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def _base36(n: int) -> str:
    if n == 0:
        return "0"
    out = []
    while n:
        n, r = divmod(n, 36)
        out.append(_B36[r])
    return "".join(reversed(out))


def generate_slug(title: str, now_ms: Optional[int] = None) -> str:
    """Build a URL slug from a title plus a base36 millisecond timestamp.

    Args:
        title (str): Survey title.
        now_ms (int|None): Timestamp override in milliseconds.

    Returns:
        str: e.g. "encuesta-de-satisfaccion-lz3k9q1a"
    """
    decomposed = unicodedata.normalize("NFD", (title or "").lower())
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    base = re.sub(r"[^a-z0-9]+", "-", stripped).strip("-")[:SLUG_BASE_MAX]
    stamp = _base36(now_ms if now_ms is not None else int(time.time() * 1000))
    return f"{base}-{stamp}" if base else stamp


def unique_public_slug(db: Session, title: str) -> str:
    slug = generate_slug(title)
    while db.execute(select(Survey.id).where(Survey.public_slug == slug)).first():
        slug = f"{generate_slug(title)}-{secrets.token_hex(2)}"
    return slug


def public_url(s: Survey) -> str:
    return f"{config.PUBLIC_BASE_URL}/s/{s.public_slug}"


# ------------------------
# Questions
# ------------------------
def likert_options(opts: list[tuple[str, str]], n: int) -> list[tuple[str, str]]:
    """Likert answers are stored as integers: blank values take the 1-based
    position, anything else must already be an integer.

    Raises:
        HTTPException: 400 on a non-integer value.
    """
    out = []
    for j, (label, value) in enumerate(opts):
        value = value or str(j + 1)
        try:
            int(value)
        except ValueError:
            raise HTTPException(400, f"Question {n}: likert option values must be integers (got {value!r})")
        out.append((label, value))
    return out


def build_questions(payload: Iterable[QuestionIn]) -> list[SurveyQuestion]:
    """Validate question payloads and turn them into ORM rows (unsaved).

    Raises:
        HTTPException: 400 on empty question text or too few choice options.
    """
    rows = []
    for i, q in enumerate(payload):
        text = (q.question_text or "").strip()
        if not text:
            raise HTTPException(400, f"Question {i + 1} needs a text")

        opts = [(o.label.strip(), (o.value or "").strip()) for o in q.options_list if o.label.strip()]
        if q.type == "text":
            opts = []
        elif q.type == "likert":
            opts = likert_options(opts, i + 1) if opts else list(LIKERT_DEFAULT)
        if q.type != "text" and len(opts) < 2:
            raise HTTPException(400, f"Question {i + 1} needs at least two options")

        row = SurveyQuestion(type=q.type, question_text=text, required=q.required,
                             order_index=i, options=q.options)
        for j, (label, value) in enumerate(opts):
            row.options_list.append(SurveyOption(label=label, value=value or f"option_{j + 1}", order_index=j))
        rows.append(row)
    return rows


def copy_questions(questions: Iterable[SurveyQuestion]) -> list[SurveyQuestion]:
    out = []
    for q in questions:
        row = SurveyQuestion(type=q.type, question_text=q.question_text, required=q.required,
                             order_index=q.order_index, options=q.options)
        for o in q.options_list:
            row.options_list.append(SurveyOption(label=o.label, value=o.value, order_index=o.order_index))
        out.append(row)
    return out


def ordered_questions(db: Session, survey_id: int) -> list[SurveyQuestion]:
    return db.execute(
        select(SurveyQuestion).where(SurveyQuestion.survey_id == survey_id).order_by(SurveyQuestion.order_index)
    ).scalars().all()


# ------------------------
# Access
# ------------------------
def can_manage(user: Profile, s: Survey) -> bool:
    return s.owner_id == user.id or has_role(user, "admin")


def get_manageable_survey(db: Session, survey_id: int, user: Profile) -> Survey:
    """Load a survey the user owns (or any survey for admins).

    Raises:
        HTTPException: 404 if the survey is missing or not visible to the user.
    """
    s = db.get(Survey, survey_id)
    if not s or not can_manage(user, s):
        raise HTTPException(404, "Survey not found")
    return s


# ------------------------
# Counters
# ------------------------
def count_questions(db: Session, survey_id: int) -> int:
    return db.execute(
        select(func.count()).select_from(SurveyQuestion).where(SurveyQuestion.survey_id == survey_id)
    ).scalar_one()


def count_responses(db: Session, survey_id: int) -> int:
    return db.execute(
        select(func.count()).select_from(Response).where(Response.survey_id == survey_id)
    ).scalar_one()
