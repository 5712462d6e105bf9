# Aggregated results and CSV export for a survey's responses
from typing import Optional

import pandas as pd
from sqlalchemy import select
from sqlalchemy.orm import Session

from models import Response, ResponseItem, SurveyQuestion

EXPORT_COLUMNS = ["response_id", "submitted_at", "respondent", "order_index", "question", "type", "answer"]


def answer_values(item: ResponseItem) -> list[str]:
    """Flatten a stored answer into the option values / text it holds."""
    if item.value_json is not None:
        return [str(v) for v in (item.value_json or {}).get("values", [])]
    if item.value_numeric is not None:
        n = item.value_numeric
        return [str(int(n)) if float(n).is_integer() else str(n)]
    if item.value_text is not None:
        return [item.value_text]
    return []


def _items_by_question(db: Session, survey_id: int) -> dict[int, list[ResponseItem]]:
    rows = db.execute(
        select(ResponseItem)
        .join(Response, ResponseItem.response_id == Response.id)
        .where(Response.survey_id == survey_id)
        .order_by(Response.submitted_at, ResponseItem.id)
    ).scalars().all()
    out: dict[int, list[ResponseItem]] = {}
    for it in rows:
        out.setdefault(it.question_id, []).append(it)
    return out


def question_summary(q: SurveyQuestion, items: list[ResponseItem]) -> dict:
    """Summarize one question.

    Choice questions report counts per option (in option order); likert also
    reports the mean; text questions list the answers.
    """
    summary = {
        "question_id": q.id,
        "order_index": q.order_index,
        "question_text": q.question_text,
        "type": q.type,
        "answered": len(items),
    }
    if q.type == "text":
        summary["answers"] = [it.value_text for it in items if it.value_text]
        return summary

    counts = {o.value: 0 for o in q.options_list}
    for it in items:
        for v in answer_values(it):
            if v in counts:
                counts[v] += 1
    summary["options"] = [
        {"value": o.value, "label": o.label, "count": counts[o.value],
         "share": round(counts[o.value] / len(items), 4) if items else 0.0}
        for o in q.options_list
    ]
    if q.type == "likert":
        nums = [it.value_numeric for it in items if it.value_numeric is not None]
        summary["mean"] = round(sum(nums) / len(nums), 2) if nums else None
    return summary


def survey_results(db: Session, survey_id: int, questions: list[SurveyQuestion]) -> dict:
    total = db.execute(select(Response.id).where(Response.survey_id == survey_id)).scalars().all()
    by_q = _items_by_question(db, survey_id)
    return {
        "survey_id": survey_id,
        "total_responses": len(total),
        "questions": [question_summary(q, by_q.get(q.id, [])) for q in questions],
    }


def export_frame(db: Session, survey_id: int, questions: list[SurveyQuestion],
                 names: Optional[dict[str, str]] = None) -> pd.DataFrame:
    """Long-format table: one row per answered question per response,
    sorted by response then question order.
    """
    names = names or {}
    qmap = {q.id: q for q in questions}
    labels = {q.id: {o.value: o.label for o in q.options_list} for q in questions}
    rows = db.execute(
        select(Response).where(Response.survey_id == survey_id).order_by(Response.id)
    ).scalars().all()

    records = []
    for r in rows:
        respondent = names.get(r.user_id, r.user_id) if r.user_id else "anonymous"
        for it in r.items:
            q = qmap.get(it.question_id)
            if not q:
                continue
            values = answer_values(it)
            if q.type != "text":
                values = [labels[q.id].get(v, v) for v in values]
            records.append({
                "response_id": r.id,
                "submitted_at": r.submitted_at,
                "respondent": respondent,
                "order_index": q.order_index,
                "question": q.question_text,
                "type": q.type,
                "answer": "; ".join(values),
            })
    df = pd.DataFrame.from_records(records, columns=EXPORT_COLUMNS)
    return df.sort_values(["response_id", "order_index"], kind="stable")
