import runpy

import pytest
import uvicorn
from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError

from crud import generate_slug, build_questions
from errors import describe_integrity_error
from qr import render_card
from schemas import QuestionIn
from security import URLSafeSerializer, hash_password, verify_password


def test_serializer_rejects_other_keys_and_garbage():
    a = URLSafeSerializer("key-a", salt="s")
    b = URLSafeSerializer("key-b", salt="s")
    token = a.dumps({"uid": "u1", "exp": 1})
    assert a.loads(token) == {"uid": "u1", "exp": 1}
    with pytest.raises(ValueError):
        b.loads(token)
    with pytest.raises(ValueError):
        a.loads("no-dot-here")


def test_password_hashing():
    h = hash_password("secret123")
    assert h != "secret123"
    assert verify_password("secret123", h)
    assert not verify_password("secret124", h)
    assert not verify_password("secret123", "not-a-hash")


@pytest.mark.parametrize("title, base", [
    ("Encuesta de Satisfacción 2024", "encuesta-de-satisfaccion-2024"),
    ("  --Hello, World!--  ", "hello-world"),
    ("x" * 80, "x" * 50),
])
def test_generate_slug(title, base):
    # 1_000_000 ms is "lfls" in base36
    assert generate_slug(title, now_ms=1_000_000) == f"{base}-lfls"


def test_generate_slug_without_usable_characters():
    assert generate_slug("¿¡!?", now_ms=35) == "z"


def test_build_questions_per_type():
    rows = build_questions([
        QuestionIn(type="text", question_text="Why?", options_list=[{"label": "ignored"}]),
        QuestionIn(type="likert", question_text="Rate"),
        QuestionIn(type="multiple", question_text="Pick", options_list=[{"label": "A", "value": "a"}, {"label": "B"}]),
    ])
    assert [r.order_index for r in rows] == [0, 1, 2]
    assert rows[0].options_list == []
    assert [o.label for o in rows[1].options_list][0] == "Strongly disagree"
    assert [o.value for o in rows[2].options_list] == ["a", "option_2"]

    with pytest.raises(HTTPException) as exc:
        build_questions([QuestionIn(type="single", question_text="Pick", options_list=[])])
    assert exc.value.status_code == 400


def test_integrity_error_mapping():
    unique = IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed: user_roles.user_id"))
    fk = IntegrityError("INSERT", {}, Exception("FOREIGN KEY constraint failed"))
    assert describe_integrity_error(unique) == (409, "This record already exists")
    assert describe_integrity_error(fk) == (400, "Invalid reference to another record")
    other = IntegrityError("INSERT", {}, Exception("NOT NULL constraint failed: surveys.title"))
    # driver text stays in the log, never in the response
    assert describe_integrity_error(other) == (400, "Unexpected database error")


def test_card_wraps_long_titles():
    png = render_card("A very long survey title " * 6, "http://localhost:5173/s/abc")
    assert png.startswith(b"\x89PNG")


def test_running_main_serves_with_uvicorn(monkeypatch, tmp_path):
    calls = []
    monkeypatch.setattr(uvicorn, "run", lambda app, **kw: calls.append((app, kw)))
    # default sqlite url is relative to the working directory
    monkeypatch.chdir(tmp_path)
    ns = runpy.run_module("main", run_name="__main__")
    assert calls and calls[0][0] is ns["app"]
    assert calls[0][1]["port"] == 8000
