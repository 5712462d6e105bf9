import io, csv

from conftest import survey_payload


def _submit(client, s, qids, single, multiple, likert, text=None, headers=None):
    answers = {str(qids["single"]): single, str(qids["multiple"]): multiple, str(qids["likert"]): likert}
    if text:
        answers[str(qids["text"])] = text
    r = client.post(f"/public/surveys/{s['public_slug']}/responses", json={"answers": answers}, headers=headers or {})
    assert r.status_code == 200, r.text
    return r.json()["response_id"]


def test_results_aggregate_per_question(client, creator, published_survey):
    s, qids = published_survey
    _submit(client, s, qids, "yes", ["food", "service"], "5", "Loved it")
    _submit(client, s, qids, "yes", ["food"], "4")
    _submit(client, s, qids, "no", [], "3")

    res = client.get(f"/surveys/{s['id']}/results", headers=creator["headers"]).json()
    assert res["total_responses"] == 3
    by_type = {q["type"]: q for q in res["questions"]}

    single = {o["value"]: o["count"] for o in by_type["single"]["options"]}
    assert single == {"yes": 2, "no": 1}
    multiple = {o["value"]: o["count"] for o in by_type["multiple"]["options"]}
    assert multiple == {"food": 2, "service": 1, "price": 0}
    assert by_type["multiple"]["answered"] == 2
    assert by_type["likert"]["mean"] == 4.0
    assert by_type["text"]["answers"] == ["Loved it"]


def test_export_csv(client, creator, published_survey):
    s, qids = published_survey
    _submit(client, s, qids, "yes", ["food", "price"], "2", "ok")

    r = client.get(f"/surveys/{s['id']}/export.csv", headers=creator["headers"])
    assert r.status_code == 200
    assert "text/csv" in r.headers.get("content-type", "")

    reader = csv.reader(io.StringIO(r.content.decode("utf-8")))
    header = next(reader)
    for col in ["response_id", "submitted_at", "respondent", "order_index", "question", "type", "answer"]:
        assert col in header
    rows = [dict(zip(header, row)) for row in reader]
    assert [row["order_index"] for row in rows] == ["0", "1", "2", "3"]
    assert rows[0]["respondent"] == "anonymous"
    assert rows[0]["answer"] == "Yes"
    assert rows[1]["answer"] == "Food; Price"


def test_response_detail_access(client, make_user, creator, published_survey):
    s, qids = published_survey
    respondent = make_user(display_name="Rita")
    rid = _submit(client, s, qids, "no", ["service"], "1", headers=respondent["headers"])
    url = f"/surveys/{s['id']}/responses/{rid}"

    d = client.get(url, headers=creator["headers"]).json()
    assert d["user_name"] == "Rita"
    assert d["survey_title"] == s["title"]
    answers = {a["question_type"]: a for a in d["answers"]}
    assert answers["single"]["answer_text"] == "no"
    assert answers["multiple"]["answer_json"] == {"values": ["service"]}
    assert answers["likert"]["answer_numeric"] == 1
    assert answers["text"]["answer_text"] is None
    assert len(answers["likert"]["options"]) == 5

    assert client.get(url, headers=respondent["headers"]).status_code == 200
    assert client.get(url, headers=make_user()["headers"]).status_code == 404
    assert client.get(f"/surveys/{s['id']}/responses/999999", headers=creator["headers"]).status_code == 404


def test_dashboard_stats(client, make_user):
    owner = make_user("creator", display_name="Dana")
    hdr = owner["headers"]
    live = client.post("/surveys", json=survey_payload(title="Live"), headers=hdr).json()
    client.post("/surveys", json=survey_payload(title="Draft", status="draft"), headers=hdr)
    qids = {q["type"]: q["id"] for q in client.get(f"/surveys/{live['id']}/edit", headers=hdr).json()["questions"]}
    _submit(client, live, qids, "yes", [], "3")

    d = client.get("/me/dashboard", headers=hdr).json()
    assert d["stats"] == {"total_surveys": 2, "total_responses": 1, "active_surveys": 1, "recent_responses": 1}
    assert [a["survey_title"] for a in d["recent_activity"]] == ["Draft", "Live"]
    assert d["recent_activity"][0]["action"] == "Draft"
    assert d["recent_activity"][0]["user_name"] == "Dana"


def test_available_surveys_search(client, make_user, creator):
    hdr = creator["headers"]
    client.post("/surveys", json=survey_payload(title="Zebra habits study", description="About stripes"), headers=hdr)
    client.post("/surveys", json=survey_payload(title="Hidden zebra draft", status="draft"), headers=hdr)
    viewer = make_user()

    found = client.get("/available-surveys", params={"q": "ZEBRA"}, headers=viewer["headers"]).json()
    assert [f["title"] for f in found] == ["Zebra habits study"]
    by_desc = client.get("/available-surveys", params={"q": "stripes"}, headers=viewer["headers"]).json()
    assert [f["title"] for f in by_desc] == ["Zebra habits study"]
    assert client.get("/available-surveys").status_code == 401


def test_profile_update(client, make_user):
    u = make_user()
    r = client.put("/me/profile", json={"display_name": "  New Name ", "phone": "555-1234",
                                        "gender": "female", "birth_date": "1990-05-17"}, headers=u["headers"])
    assert r.status_code == 200, r.text
    p = client.get("/me/profile", headers=u["headers"]).json()
    assert p["display_name"] == "New Name"
    assert p["phone"] == "555-1234" and p["gender"] == "female" and p["birth_date"] == "1990-05-17"
    assert client.put("/me/profile", json={"birth_date": "17/05/1990"}, headers=u["headers"]).status_code == 422
