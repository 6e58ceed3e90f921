from conftest import SUBJECT


def _create(client, count=5, minutes=30):
    r = client.post("/api/exams", json={
        "subject_ids": [SUBJECT], "question_count": count, "time_limit_minutes": minutes,
    })
    assert r.status_code == 200, r.text
    return r.json()["exam_id"]


def _open(client, exam_id):
    r = client.post(f"/api/exams/{exam_id}/open")
    assert r.status_code == 200, r.text
    return r.json()


def test_health(test_client):
    r = test_client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"


def test_exam_flow(test_client, gateway):
    exam_id = _create(test_client)
    state = _open(test_client, exam_id)
    assert state["total"] == 5
    assert state["remaining"] == "30:00"
    assert state["position"] == 1
    assert state["slot_states"][0] == "current"
    assert state["unanswered_count"] == 5
    assert "correct_answer" not in state["question"]
    assert set(state["question"]["options"]) == {"A", "B", "C", "D", "E"}

    r = test_client.post(f"/api/exams/{exam_id}/answer", json={"option": "A"})
    assert r.status_code == 200
    assert r.json()["user_answer"] == "A"
    assert r.json()["unanswered_count"] == 4

    r = test_client.post(f"/api/exams/{exam_id}/flag")
    assert r.json()["is_flagged"] is True

    r = test_client.post(f"/api/exams/{exam_id}/navigate", json={"index": 99})
    assert r.json()["position"] == 5
    assert r.json()["slot_states"][0] == "answered"

    r = test_client.post(f"/api/exams/{exam_id}/previous")
    assert r.json()["position"] == 4

    r = test_client.post(f"/api/exams/{exam_id}/answer", json={"option": "Z"})
    assert r.status_code == 400

    r = test_client.post(f"/api/exams/{exam_id}/finish")
    assert r.status_code == 200, r.text
    result = r.json()
    first_q = min(
        (s for s in gateway.slots.values() if s.exam_id == exam_id),
        key=lambda s: s.question_order,
    ).question_id
    expected_correct = 1 if gateway.questions[first_q].correct_answer == "A" else 0
    assert result["total_correct"] == expected_correct
    assert result["score"] == expected_correct / 5 * 100
    assert result["redirect"] == f"/api/exams/{exam_id}/review"

    # 종료 후 라이브 세션 없음, 재진입은 결과 화면으로
    assert test_client.get(f"/api/exams/{exam_id}/state").status_code == 404
    r = test_client.post(f"/api/exams/{exam_id}/open")
    assert r.status_code == 409
    assert r.json()["detail"]["redirect"].endswith("/review")

    r = test_client.get(f"/api/exams/{exam_id}/review")
    assert r.status_code == 200
    review = r.json()
    assert review["total_questions"] == 5
    assert len(review["items"]) == 5

    r = test_client.get(f"/api/exams/{exam_id}/review", params={"only_errors": True})
    assert len(r.json()["items"]) == 5 - expected_correct


def test_open_missing_exam(test_client):
    assert test_client.post("/api/exams/nope/open").status_code == 404


def test_other_viewer_cannot_open_exam(test_client):
    exam_id = _create(test_client)
    test_client.cookies.clear()
    assert test_client.post(f"/api/exams/{exam_id}/open").status_code == 404


def test_create_exam_errors(test_client):
    r = test_client.post("/api/exams", json={"subject_ids": []})
    assert r.status_code == 400
    r = test_client.post("/api/exams", json={"subject_ids": ["history"]})
    assert r.status_code == 404


def test_finish_failure_keeps_session_for_retry(test_client, gateway):
    exam_id = _create(test_client)
    _open(test_client, exam_id)
    gateway.fail_ops.add("update_exam")

    r = test_client.post(f"/api/exams/{exam_id}/finish")
    assert r.status_code == 502
    state = test_client.get(f"/api/exams/{exam_id}/state").json()
    assert state["finished"] is False
    assert state["finalizing"] is False

    gateway.fail_ops.clear()
    r = test_client.post(f"/api/exams/{exam_id}/finish")
    assert r.status_code == 200
    assert gateway.exams[exam_id].status == "finished"


def test_close_keeps_exam_in_progress_and_reopen_resets_clock(test_client, gateway):
    exam_id = _create(test_client, minutes=10)
    _open(test_client, exam_id)
    test_client.post(f"/api/exams/{exam_id}/answer", json={"option": "B"})

    r = test_client.delete(f"/api/exams/{exam_id}")
    assert r.status_code == 200
    assert test_client.get(f"/api/exams/{exam_id}/state").status_code == 404
    assert gateway.exams[exam_id].status == "in_progress"

    state = _open(test_client, exam_id)
    assert state["remaining"] == "10:00"
    assert state["user_answer"] == "B"


def test_review_of_unfinished_exam(test_client):
    exam_id = _create(test_client)
    assert test_client.get(f"/api/exams/{exam_id}/review").status_code == 400
